# storefront/services/order_service.py
import logging
import secrets
import string
import uuid
from datetime import datetime

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session
from tenacity import retry, retry_if_exception_type, stop_after_attempt

from storefront.core.errors import (
    AuthorizationError,
    ConflictError,
    InsufficientStockError,
    NotFoundError,
    ValidationError,
)
from storefront.core.timeutils import utcnow
from storefront.models.cart import Cart, CartItem, UserOwner
from storefront.models.order import Order, OrderItem, OrderStatusHistory
from storefront.models.user import User
from storefront.repositories.cart_repo import CartRepository
from storefront.repositories.order_repo import OrderRepository
from storefront.repositories.product_repo import ProductRepository
from storefront.schemas.order import (
    OrderCreate,
    OrderDetailRead,
    OrderItemRead,
    OrderPage,
    OrderRead,
    OrderStatusUpdate,
    PaymentStatusUpdate,
    StatusHistoryRead,
)
from storefront.services.address_service import AddressService
from storefront.services.cart_service import CartService
from storefront.services.order_state import (
    FULFILLMENT_FOR_STATUS,
    check_order_transition,
    check_payment_transition,
)
from storefront.services.pricing import (
    CouponTerms,
    PriceLine,
    calculate_totals,
)

logger = logging.getLogger(__name__)

ORDER_PREFIX = "ORD"
SUFFIX_ALPHABET = string.digits + string.ascii_uppercase
SUFFIX_LENGTH = 5
SYSTEM_ACTOR = "system"


class OrderNumberCollision(Exception):
    """Another transaction committed the same order number first."""


def order_number_retry():
    # One retry; a second collision propagates as a server error.
    return retry(
        reraise=True,
        stop=stop_after_attempt(2),
        retry=retry_if_exception_type(OrderNumberCollision),
    )


def _actor(user: User) -> str:
    kind = "admin" if user.role == "admin" else "user"
    return f"{kind}:{user.id}"


class OrderService:
    """
    Business logic for orders.

    Responsibilities:
      - Checkout: validate cart, freeze prices, number the order, convert the
        cart, decrement stock; one transaction
      - Status / payment changes through the tables in order_state
      - Append-only status history
    """

    def __init__(
        self,
        order_repo: OrderRepository,
        cart_repo: CartRepository,
        product_repo: ProductRepository,
        cart_service: CartService,
        address_service: AddressService,
    ):
        self.order_repo = order_repo
        self.cart_repo = cart_repo
        self.product_repo = product_repo
        self.cart_service = cart_service
        self.address_service = address_service

    # -------- Order numbers --------

    def generate_order_number(self, session: Session) -> str:
        """
        ORD-<yyyymmdd>-<6-digit daily sequence>-<5 random base36 chars>

        Checked against existing numbers; the unique index is the final guard.
        """
        prefix = f"{ORDER_PREFIX}-{utcnow():%Y%m%d}-"
        sequence = self.order_repo.count_with_prefix(session, prefix) + 1
        while True:
            suffix = "".join(secrets.choice(SUFFIX_ALPHABET) for _ in range(SUFFIX_LENGTH))
            number = f"{prefix}{sequence:06d}-{suffix}"
            if not self.order_repo.number_exists(session, number):
                return number

    # -------- Checkout --------

    def checkout(
        self,
        session: Session,
        user: User,
        payload: OrderCreate,
    ) -> OrderDetailRead:
        """
        Convert the current user's cart into an Order.

        Steps:
          1. Load the cart (an expired one counts as gone); error if empty.
          2. Re-validate against live products; any blocking issue aborts
             with the issue list in `details`.
          3. Freeze prices + snapshots, compute totals.
          4. Number the order, convert the cart, decrement stock, write the
             first history entry; commit all of it at once.
        """
        cart = self.cart_service.find_cart(session, UserOwner(user.id))
        items = self.cart_repo.list_items(session, cart.id) if cart else []
        if not items:
            raise ValidationError("Cart is empty")
        shipping_address, billing_address = self._resolve_addresses(
            session, user, payload
        )

        if cart.status != "active":
            cart.status = "active"
            session.add(cart)
            session.commit()

        issues = self.cart_service.issues_for(session, cart, items)
        blocking = [i for i in issues if i.severity == "error"]
        if blocking:
            raise ValidationError(
                "Cart validation failed",
                details=[i.model_dump(mode="json") for i in blocking],
            )

        order = self._place_order(
            session, user, cart.id, payload, shipping_address, billing_address
        )
        logger.info(
            "Order %s placed by user %s (total %s %s)",
            order.order_number,
            user.id,
            order.total,
            order.currency,
        )
        return self._to_detail(session, order)

    def _resolve_addresses(
        self, session: Session, user: User, payload: OrderCreate
    ) -> tuple[dict, dict]:
        """Inline or saved addresses as the dicts stored on the order."""
        if payload.shipping_address_id is not None:
            shipping = self.address_service.postal_snapshot(
                session, user, payload.shipping_address_id
            )
        else:
            shipping = payload.shipping_address.model_dump()

        if payload.use_shipping_as_billing:
            billing = dict(shipping)
        elif payload.billing_address_id is not None:
            billing = self.address_service.postal_snapshot(
                session, user, payload.billing_address_id
            )
        else:
            billing = payload.billing_address.model_dump()
        return shipping, billing

    @order_number_retry()
    def _place_order(
        self,
        session: Session,
        user: User,
        cart_id: uuid.UUID,
        payload: OrderCreate,
        shipping_address: dict,
        billing_address: dict,
    ) -> Order:
        cart: Cart = self.cart_repo.get_by_id(session, cart_id)
        items: list[CartItem] = self.cart_repo.list_items(session, cart_id)
        products = self.product_repo.get_many(session, (it.product_id for it in items))

        coupon = None
        if cart.coupon_code is not None:
            coupon = CouponTerms(type=cart.coupon_type, value=cart.coupon_value)
        totals = calculate_totals(
            (PriceLine(it.quantity, it.unit_price) for it in items),
            self.cart_service.policy,
            coupon,
        )

        now = utcnow()
        try:
            order = self.order_repo.create_order(
                session,
                Order(
                    order_number=self.generate_order_number(session),
                    user_id=user.id,
                    customer_name=user.full_name,
                    customer_email=user.email,
                    customer_phone=user.phone,
                    subtotal=totals.subtotal,
                    tax=totals.tax,
                    shipping=totals.shipping,
                    discount=totals.discount,
                    total=totals.total,
                    currency=cart.currency,
                    coupon_code=cart.coupon_code,
                    coupon_type=cart.coupon_type,
                    coupon_value=cart.coupon_value,
                    shipping_address=shipping_address,
                    billing_address=billing_address,
                    status="pending",
                    fulfillment_status=FULFILLMENT_FOR_STATUS["pending"],
                    payment_method=payload.payment_method,
                    payment_status="pending",
                    special_instructions=payload.special_instructions,
                    cart_id=cart.id,
                    created_at=now,
                    updated_at=now,
                ),
            )

            self.order_repo.create_items(
                session,
                [
                    OrderItem(
                        order_id=order.id,
                        product_id=it.product_id,
                        product_name=it.product_name or products[it.product_id].name,
                        product_slug=it.product_slug or products[it.product_id].slug,
                        product_sku=it.product_sku or products[it.product_id].sku,
                        product_image=it.product_image,
                        variants=list(it.variants or []),
                        quantity=it.quantity,
                        unit_price=it.unit_price,
                        line_total=PriceLine(it.quantity, it.unit_price).line_total,
                    )
                    for it in items
                ],
            )

            for it in items:
                taken = self.product_repo.decrement_stock(
                    session, it.product_id, it.quantity, now
                )
                if taken != 1:
                    raise InsufficientStockError(
                        f"Not enough stock left for {it.product_name}",
                        details={
                            "product_id": str(it.product_id),
                            "requested": it.quantity,
                        },
                    )

            self.order_repo.add_history(
                session,
                OrderStatusHistory(
                    order_id=order.id,
                    status="pending",
                    actor=_actor(user),
                    reason="Order placed",
                    created_at=now,
                ),
            )

            if self.cart_repo.mark_converted(session, cart.id, cart.version) != 1:
                raise ConflictError(
                    "Cart was modified or checked out concurrently, please retry"
                )

            session.commit()
        except IntegrityError as exc:
            session.rollback()
            if "order_number" in str(exc.orig):
                logger.warning("Order number collision, retrying")
                raise OrderNumberCollision() from exc
            raise
        except (ConflictError, InsufficientStockError):
            session.rollback()
            raise

        session.refresh(order)
        return order

    # -------- Queries --------

    def list_orders(
        self,
        session: Session,
        user: User,
        skip: int = 0,
        limit: int = 20,
        status: str | None = None,
        user_id: uuid.UUID | None = None,
        order_number: str | None = None,
    ) -> OrderPage:
        """
        Customers see their own orders; admins see all, with optional
        user / order-number filters.
        """
        if user.role != "admin":
            user_id = user.id
            order_number = None
        orders, total = self.order_repo.list_orders(
            session,
            skip=skip,
            limit=limit,
            user_id=user_id,
            status=status,
            order_number=order_number,
        )
        return OrderPage(
            items=[OrderRead.model_validate(o, from_attributes=True) for o in orders],
            total=total,
            skip=skip,
            limit=limit,
        )

    def _get_visible(self, session: Session, user: User, order_ref: str) -> Order:
        """
        Resolve an order by id or order number.

        Orders of other customers are reported as not found.
        """
        try:
            order = self.order_repo.get_by_id(session, uuid.UUID(order_ref))
        except ValueError:
            order = self.order_repo.get_by_number(session, order_ref)
        if order is None or (user.role != "admin" and order.user_id != user.id):
            raise NotFoundError("Order not found")
        return order

    def get_order(self, session: Session, user: User, order_ref: str) -> OrderDetailRead:
        return self._to_detail(session, self._get_visible(session, user, order_ref))

    # -------- Status changes --------

    def _apply_status(
        self,
        session: Session,
        order: Order,
        new_status: str,
        actor: str,
        reason: str | None,
    ) -> bool:
        """Validate and apply one transition; history is appended for real changes."""
        if not check_order_transition(order.status, new_status):
            return False

        now = utcnow()
        previous = order.status
        order.status = new_status
        order.fulfillment_status = FULFILLMENT_FOR_STATUS[new_status]
        order.updated_at = now

        if new_status == "delivered":
            order.delivered_at = now
        elif new_status == "cancelled":
            order.cancelled_at = now
            order.cancel_reason = reason
            self._restore_stock(session, order, now)
            if order.payment_status == "pending":
                order.payment_status = "cancelled"

        self.order_repo.update_order(session, order)
        self.order_repo.add_history(
            session,
            OrderStatusHistory(
                order_id=order.id,
                status=new_status,
                actor=actor,
                reason=reason,
                created_at=now,
            ),
        )
        logger.info(
            "Order %s: %s -> %s by %s", order.order_number, previous, new_status, actor
        )
        return True

    def _restore_stock(self, session: Session, order: Order, now: datetime) -> None:
        for it in self.order_repo.list_items_for_order(session, order.id):
            self.product_repo.increment_stock(session, it.product_id, it.quantity, now)

    def update_status(
        self,
        session: Session,
        user: User,
        order_ref: str,
        payload: OrderStatusUpdate,
    ) -> OrderDetailRead:
        """
        Admins may make any transition the table allows.
        Customers may only cancel their own orders.
        """
        order = self._get_visible(session, user, order_ref)
        if user.role != "admin" and payload.status != "cancelled":
            raise AuthorizationError("Customers can only cancel their orders")

        self._apply_status(session, order, payload.status, _actor(user), payload.reason)
        session.commit()
        session.refresh(order)
        return self._to_detail(session, order)

    def update_payment(
        self,
        session: Session,
        user: User,
        order_ref: str,
        payload: PaymentStatusUpdate,
    ) -> OrderDetailRead:
        """
        Admin-only payment status change.

          - paid on a pending order confirms it (actor 'system')
          - refunded on a returned order moves it to refunded
        """
        order = self._get_visible(session, user, order_ref)
        new = payload.payment_status
        previous = order.payment_status

        if check_payment_transition(previous, new):
            now = utcnow()
            order.payment_status = new
            order.updated_at = now
            if payload.transaction_id is not None:
                order.transaction_id = payload.transaction_id
            if new == "paid":
                order.paid_at = now
            elif new == "failed":
                order.payment_failed_at = now
            elif new in ("refunded", "partially_refunded"):
                order.refunded_at = now
            self.order_repo.update_order(session, order)
            logger.info(
                "Order %s payment: %s -> %s", order.order_number, previous, new
            )

            if new == "paid" and order.status == "pending":
                self._apply_status(
                    session, order, "confirmed", SYSTEM_ACTOR, "Payment received"
                )
            elif new == "refunded" and order.status == "returned":
                self._apply_status(
                    session, order, "refunded", SYSTEM_ACTOR, "Payment refunded"
                )

        session.commit()
        session.refresh(order)
        return self._to_detail(session, order)

    # -------- Helper DTO builder --------

    def _to_detail(self, session: Session, order: Order) -> OrderDetailRead:
        items = self.order_repo.list_items_for_order(session, order.id)
        history = self.order_repo.list_history(session, order.id)
        return OrderDetailRead(
            **OrderRead.model_validate(order, from_attributes=True).model_dump(),
            customer_name=order.customer_name,
            customer_email=order.customer_email,
            customer_phone=order.customer_phone,
            coupon_code=order.coupon_code,
            coupon_type=order.coupon_type,
            coupon_value=order.coupon_value,
            shipping_address=order.shipping_address,
            billing_address=order.billing_address,
            transaction_id=order.transaction_id,
            paid_at=order.paid_at,
            payment_failed_at=order.payment_failed_at,
            refunded_at=order.refunded_at,
            special_instructions=order.special_instructions,
            cart_id=order.cart_id,
            delivered_at=order.delivered_at,
            cancelled_at=order.cancelled_at,
            cancel_reason=order.cancel_reason,
            items=[OrderItemRead.model_validate(it, from_attributes=True) for it in items],
            status_history=[
                StatusHistoryRead.model_validate(h, from_attributes=True) for h in history
            ],
        )
