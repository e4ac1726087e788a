# storefront/services/cart_service.py
import logging
import uuid
from datetime import datetime, timedelta

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from storefront.core.config import Settings
from storefront.core.errors import (
    InsufficientStockError,
    NotFoundError,
    ValidationError,
)
from storefront.core.timeutils import as_utc, utcnow
from storefront.models.cart import (
    MAX_LINE_QUANTITY,
    Cart,
    CartItem,
    CartOwner,
    SessionOwner,
    UserOwner,
    variant_key,
)
from storefront.models.product import Product
from storefront.repositories.cart_repo import CartRepository
from storefront.repositories.product_repo import ProductRepository
from storefront.schemas.cart import (
    AppliedCoupon,
    CartIssue,
    CartItemCreate,
    CartItemRead,
    CartItemUpdate,
    CartMergeResult,
    CartRead,
    CartSummary,
    CartSweepResult,
    CartValidation,
    MergePolicy,
    VariantChoice,
)
from storefront.services.coupon_service import CouponService
from storefront.services.pricing import (
    CouponTerms,
    PriceLine,
    PricingPolicy,
    StandardPricingPolicy,
    calculate_totals,
)

logger = logging.getLogger(__name__)

BLOCKING = "error"
WARNING = "warning"


class CartService:
    """
    Business logic for cart operations.

    Responsibilities:
      - resolve the cart of a user or guest session (created lazily)
      - validate product existence, purchasability and stock
      - capture unit price + display snapshot at add time
      - recompute totals from the persisted lines after every mutation
      - coupons, validation / reconciliation against live products
      - guest -> user merge at login, expiry sweep

    Every public mutation commits exactly once.
    """

    def __init__(
        self,
        cart_repo: CartRepository,
        product_repo: ProductRepository,
        coupon_service: CouponService,
        settings: Settings,
        policy: PricingPolicy | None = None,
    ):
        self.cart_repo = cart_repo
        self.product_repo = product_repo
        self.coupon_service = coupon_service
        self.settings = settings
        self.policy = policy or StandardPricingPolicy.from_settings(settings)

    # ---- internal helpers ----

    def _ttl(self, owner: CartOwner) -> timedelta:
        if isinstance(owner, UserOwner):
            return timedelta(days=self.settings.USER_CART_TTL_DAYS)
        return timedelta(days=self.settings.GUEST_CART_TTL_DAYS)

    def find_cart(self, session: Session, owner: CartOwner) -> Cart | None:
        """Open cart of the owner; an expired one is dropped on sight."""
        cart = self.cart_repo.get_open_for_owner(session, owner)
        if cart is not None and as_utc(cart.expires_at) <= utcnow():
            logger.info("Dropping expired cart %s", cart.id)
            self.cart_repo.delete_cart(session, cart)
            return None
        return cart

    def _get_or_create(self, session: Session, owner: CartOwner) -> Cart:
        cart = self.find_cart(session, owner)
        if cart is None:
            now = utcnow()
            cart = Cart.for_owner(
                owner,
                currency=self.settings.CURRENCY,
                expires_at=now + self._ttl(owner),
                created_at=now,
                updated_at=now,
            )
            self.cart_repo.add(session, cart)
        return cart

    def _touch(self, cart: Cart, now: datetime) -> None:
        cart.version += 1
        cart.updated_at = now
        cart.expires_at = now + self._ttl(cart.owner)
        cart.status = "active"

    def _recompute(self, session: Session, cart: Cart) -> list[CartItem]:
        """Derive totals from the persisted lines. Safe to call any number of times."""
        items = self.cart_repo.list_items(session, cart.id)
        if not items:
            self._drop_coupon(cart)

        coupon = None
        if cart.coupon_code is not None:
            coupon = CouponTerms(type=cart.coupon_type, value=cart.coupon_value)

        totals = calculate_totals(
            (PriceLine(it.quantity, it.unit_price) for it in items),
            self.policy,
            coupon,
        )
        cart.subtotal = totals.subtotal
        cart.tax = totals.tax
        cart.shipping = totals.shipping
        cart.discount = totals.discount
        cart.total = totals.total
        session.add(cart)
        session.flush()
        return items

    def _commit(self, session: Session, cart: Cart) -> CartRead:
        now = utcnow()
        self._touch(cart, now)
        items = self._recompute(session, cart)
        session.commit()
        session.refresh(cart)
        return self._to_read(cart, items)

    @staticmethod
    def _drop_coupon(cart: Cart) -> None:
        cart.coupon_code = None
        cart.coupon_type = None
        cart.coupon_value = None

    @staticmethod
    def _user_id(cart: Cart) -> uuid.UUID | None:
        owner = cart.owner
        return owner.user_id if isinstance(owner, UserOwner) else None

    def _get_purchasable(self, session: Session, product_id: uuid.UUID) -> Product:
        product = self.product_repo.get_by_id(session, product_id)
        if product is None or not product.is_purchasable:
            raise NotFoundError(
                "Product not found or not available",
                details={"product_id": str(product_id)},
            )
        return product

    @staticmethod
    def _check_stock(product: Product, quantity: int) -> None:
        if not product.available_for(quantity):
            raise InsufficientStockError(
                f"Only {product.stock_quantity} of {product.name} available",
                details={
                    "product_id": str(product.id),
                    "requested": quantity,
                    "available": product.stock_quantity,
                },
            )

    def _snapshot(self, session: Session, product: Product) -> dict:
        images = self.product_repo.main_images(session, [product.id])
        return {
            "unit_price": product.price,
            "product_name": product.name,
            "product_slug": product.slug,
            "product_sku": product.sku,
            "product_image": images.get(product.id),
        }

    def _add_line(
        self,
        session: Session,
        cart: Cart,
        product: Product,
        variants: list[dict[str, str]],
        quantity: int,
        now: datetime,
    ) -> None:
        """
        Increment the matching line or insert a new one.

        A concurrent first insert of the same line loses on the unique
        constraint and falls back to the increment.
        """
        key = variant_key(variants)
        existing = self.cart_repo.find_line(session, cart.id, product.id, key)
        if existing is not None:
            self.cart_repo.increment_quantity(session, existing.id, quantity, now)
            return

        item = CartItem(
            cart_id=cart.id,
            product_id=product.id,
            quantity=min(quantity, MAX_LINE_QUANTITY),
            variants=variants,
            variant_key=key,
            created_at=now,
            updated_at=now,
            **self._snapshot(session, product),
        )
        try:
            with session.begin_nested():
                self.cart_repo.insert_item(session, item)
        except IntegrityError:
            existing = self.cart_repo.find_line(session, cart.id, product.id, key)
            if existing is None:
                raise
            self.cart_repo.increment_quantity(session, existing.id, quantity, now)

    def _to_read(self, cart: Cart, items: list[CartItem]) -> CartRead:
        item_reads = [
            CartItemRead(
                id=it.id,
                product_id=it.product_id,
                quantity=it.quantity,
                unit_price=it.unit_price,
                line_total=PriceLine(it.quantity, it.unit_price).line_total,
                variants=[VariantChoice(**v) for v in it.variants or []],
                product_name=it.product_name,
                product_slug=it.product_slug,
                product_image=it.product_image,
                product_sku=it.product_sku,
                created_at=it.created_at,
            )
            for it in items
        ]
        coupon = None
        if cart.coupon_code is not None:
            coupon = AppliedCoupon(
                code=cart.coupon_code, type=cart.coupon_type, value=cart.coupon_value
            )
        return CartRead(
            id=cart.id,
            user_id=cart.user_id,
            session_id=cart.session_id,
            status=cart.status,
            items=item_reads,
            item_count=sum(it.quantity for it in items),
            is_empty=not items,
            subtotal=cart.subtotal,
            tax=cart.tax,
            shipping=cart.shipping,
            discount=cart.discount,
            total=cart.total,
            currency=cart.currency,
            coupon=coupon,
            expires_at=cart.expires_at,
            updated_at=cart.updated_at,
        )

    # ---- public operations ----

    def get_cart(self, session: Session, owner: CartOwner) -> CartRead:
        """Return the owner's cart, creating an empty one on first access."""
        cart = self.find_cart(session, owner)
        if cart is None:
            cart = self._get_or_create(session, owner)
            session.commit()
            session.refresh(cart)
        return self._to_read(cart, self.cart_repo.list_items(session, cart.id))

    def summary(self, session: Session, owner: CartOwner) -> CartSummary:
        cart = self.get_cart(session, owner)
        return CartSummary(
            item_count=cart.item_count,
            is_empty=cart.is_empty,
            subtotal=cart.subtotal,
            tax=cart.tax,
            shipping=cart.shipping,
            discount=cart.discount,
            total=cart.total,
            currency=cart.currency,
        )

    def add_item(
        self,
        session: Session,
        owner: CartOwner,
        payload: CartItemCreate,
    ) -> CartRead:
        """
        Add a product to the owner's cart.

        Rules:
          - product must exist and be purchasable (404 otherwise)
          - a request alone above 100 units is rejected without touching the cart
          - same product + variants increments the existing line, capped at 100
          - tracked stock must cover the resulting quantity unless backorder
          - unit price + snapshot are taken from the current product
        """
        if payload.quantity > MAX_LINE_QUANTITY or payload.quantity < 1:
            raise ValidationError(
                f"Quantity must be between 1 and {MAX_LINE_QUANTITY}",
                details={"quantity": payload.quantity},
            )

        product = self._get_purchasable(session, payload.product_id)
        variants = [v.model_dump() for v in payload.variants]
        cart = self._get_or_create(session, owner)

        existing = self.cart_repo.find_line(
            session, cart.id, product.id, variant_key(variants)
        )
        current = existing.quantity if existing is not None else 0
        self._check_stock(product, min(current + payload.quantity, MAX_LINE_QUANTITY))

        self._add_line(session, cart, product, variants, payload.quantity, utcnow())
        return self._commit(session, cart)

    def update_item(
        self,
        session: Session,
        owner: CartOwner,
        item_id: uuid.UUID,
        payload: CartItemUpdate,
    ) -> CartRead:
        """
        Set the quantity of a line. 0 removes it.

        Unknown item => 404; stock re-checked against the live product.
        """
        if payload.quantity > MAX_LINE_QUANTITY or payload.quantity < 0:
            raise ValidationError(
                f"Quantity must be between 0 and {MAX_LINE_QUANTITY}",
                details={"quantity": payload.quantity},
            )

        cart = self.find_cart(session, owner)
        item = self.cart_repo.get_item(session, cart.id, item_id) if cart else None
        if item is None:
            raise NotFoundError("Cart item not found", details={"item_id": str(item_id)})

        if payload.quantity == 0:
            self.cart_repo.delete_item(session, item)
        else:
            product = self._get_purchasable(session, item.product_id)
            self._check_stock(product, payload.quantity)
            self.cart_repo.set_quantity(session, item, payload.quantity, utcnow())

        return self._commit(session, cart)

    def remove_item(
        self,
        session: Session,
        owner: CartOwner,
        item_id: uuid.UUID,
    ) -> CartRead:
        """
        Remove a line if present. Removing an absent line is not an error.
        """
        cart = self._get_or_create(session, owner)
        item = self.cart_repo.get_item(session, cart.id, item_id)
        if item is not None:
            self.cart_repo.delete_item(session, item)
        return self._commit(session, cart)

    def clear(self, session: Session, owner: CartOwner) -> CartRead:
        """
        Clear all items and the coupon. Never fails; returns the empty cart.
        """
        cart = self._get_or_create(session, owner)
        self.cart_repo.delete_items(session, cart.id)
        self._drop_coupon(cart)
        return self._commit(session, cart)

    def apply_coupon(self, session: Session, owner: CartOwner, code: str) -> CartRead:
        """
        Apply a coupon, replacing any coupon already on the cart.

        - empty cart => 400
        - unknown code => 404
        - inactive / ineligible => 400 with the failing rule in details
        """
        cart = self._get_or_create(session, owner)
        items = self._recompute(session, cart)
        if not items:
            raise ValidationError("Cannot apply a coupon to an empty cart")

        coupon = self.coupon_service.get_by_code(session, code)
        self.coupon_service.ensure_eligible(
            session, coupon, cart.subtotal, user_id=self._user_id(cart)
        )

        cart.coupon_code = coupon.code
        cart.coupon_type = coupon.type
        cart.coupon_value = coupon.value
        return self._commit(session, cart)

    def remove_coupon(self, session: Session, owner: CartOwner) -> CartRead:
        cart = self._get_or_create(session, owner)
        if cart.coupon_code is None:
            session.commit()
            return self._to_read(cart, self.cart_repo.list_items(session, cart.id))
        self._drop_coupon(cart)
        return self._commit(session, cart)

    # ---- validation ----

    def issues_for(
        self, session: Session, cart: Cart, items: list[CartItem]
    ) -> list[CartIssue]:
        """
        Re-check every line (and the coupon) against live state.

        Read-only. Blocking issues have severity 'error'.
        """
        products = self.product_repo.get_many(session, (it.product_id for it in items))
        issues: list[CartIssue] = []

        for it in items:
            product = products.get(it.product_id)
            name = it.product_name or str(it.product_id)
            if product is None:
                issues.append(
                    CartIssue(
                        code="product_missing",
                        severity=BLOCKING,
                        message=f"{name} no longer exists",
                        item_id=it.id,
                        product_id=it.product_id,
                    )
                )
                continue
            if not product.is_purchasable:
                issues.append(
                    CartIssue(
                        code="product_unavailable",
                        severity=BLOCKING,
                        message=f"{product.name} is no longer available",
                        item_id=it.id,
                        product_id=it.product_id,
                    )
                )
                continue
            if not product.available_for(it.quantity):
                issues.append(
                    CartIssue(
                        code="insufficient_stock",
                        severity=BLOCKING,
                        message=(
                            f"Only {product.stock_quantity} of {product.name} "
                            f"available, {it.quantity} in cart"
                        ),
                        item_id=it.id,
                        product_id=it.product_id,
                    )
                )
            elif product.is_low_stock:
                issues.append(
                    CartIssue(
                        code="low_stock",
                        severity=WARNING,
                        message=f"Only {product.stock_quantity} of {product.name} left",
                        item_id=it.id,
                        product_id=it.product_id,
                    )
                )
            if product.price != it.unit_price:
                issues.append(
                    CartIssue(
                        code="price_changed",
                        severity=BLOCKING,
                        message=(
                            f"Price of {product.name} changed from "
                            f"{it.unit_price} to {product.price}"
                        ),
                        item_id=it.id,
                        product_id=it.product_id,
                    )
                )

        if cart.coupon_code is not None:
            issue = self._coupon_issue(session, cart)
            if issue is not None:
                issues.append(issue)

        return issues

    def _coupon_issue(self, session: Session, cart: Cart) -> CartIssue | None:
        coupon = self.coupon_service.coupon_repo.get_by_code(session, cart.coupon_code)
        if coupon is None:
            message = f"Coupon {cart.coupon_code} no longer exists"
        else:
            failure = self.coupon_service.first_failure(
                session, coupon, cart.subtotal, user_id=self._user_id(cart)
            )
            if failure is None:
                return None
            message = failure[1]
        return CartIssue(code="coupon_ineligible", severity=BLOCKING, message=message)

    def validate(self, session: Session, owner: CartOwner) -> CartValidation:
        """Report issues without changing the cart."""
        cart = self.find_cart(session, owner)
        if cart is None:
            cart = self._get_or_create(session, owner)
            session.commit()
            session.refresh(cart)
        items = self.cart_repo.list_items(session, cart.id)
        issues = self.issues_for(session, cart, items)
        return CartValidation(
            is_valid=not any(i.severity == BLOCKING for i in issues),
            issues=issues,
            fixed=False,
            cart=self._to_read(cart, items),
        )

    def reconcile(self, session: Session, owner: CartOwner) -> CartValidation:
        """
        Auto-correct the cart against live product state.

          - missing / unavailable products => line removed
          - insufficient stock => quantity clamped to stock (removed if none)
          - price drift => unit price and snapshot refreshed
          - ineligible coupon => coupon removed

        Returns the issues that were resolved.
        """
        cart = self._get_or_create(session, owner)
        items = self.cart_repo.list_items(session, cart.id)
        products = self.product_repo.get_many(session, (it.product_id for it in items))
        now = utcnow()
        resolved: list[CartIssue] = []

        line_issues = [
            i for i in self.issues_for(session, cart, items)
            if i.item_id is not None and i.severity == BLOCKING
        ]
        by_item = {it.id: it for it in items}
        removed: set[uuid.UUID] = set()

        for issue in line_issues:
            item = by_item[issue.item_id]
            if item.id in removed:
                continue
            product = products.get(item.product_id)
            if issue.code in ("product_missing", "product_unavailable"):
                self.cart_repo.delete_item(session, item)
                removed.add(item.id)
            elif issue.code == "insufficient_stock":
                available = min(product.stock_quantity, MAX_LINE_QUANTITY)
                if available < 1:
                    self.cart_repo.delete_item(session, item)
                    removed.add(item.id)
                else:
                    self.cart_repo.set_quantity(session, item, available, now)
            elif issue.code == "price_changed":
                for field, value in self._snapshot(session, product).items():
                    setattr(item, field, value)
                item.updated_at = now
                session.add(item)
            resolved.append(issue)

        self._recompute(session, cart)
        if cart.coupon_code is not None:
            issue = self._coupon_issue(session, cart)
            if issue is not None:
                self._drop_coupon(cart)
                resolved.append(issue)

        result = self._commit(session, cart)
        remaining = self.issues_for(
            session, cart, self.cart_repo.list_items(session, cart.id)
        )
        if resolved:
            logger.info("Reconciled cart %s: %d issue(s) fixed", cart.id, len(resolved))
        return CartValidation(
            is_valid=not any(i.severity == BLOCKING for i in remaining),
            issues=resolved,
            fixed=True,
            cart=result,
        )

    # ---- merge ----

    def merge(
        self,
        session: Session,
        user_id: uuid.UUID,
        session_id: str,
        policy: MergePolicy = "merge",
    ) -> CartMergeResult:
        """
        Fold the guest cart of `session_id` into the user's cart.

          merge         - guest lines added via the add-item increment rule
          replace       - user lines discarded, guest lines (and coupon) copied
          keep_existing - user cart untouched

        The guest cart is deleted afterwards whatever the policy.
        No guest cart => no-op success.
        """
        guest = self.find_cart(session, SessionOwner(session_id))
        if guest is None:
            user_cart = self.find_cart(session, UserOwner(user_id))
            session.commit()
            cart_read = None
            if user_cart is not None:
                cart_read = self._to_read(
                    user_cart, self.cart_repo.list_items(session, user_cart.id)
                )
            return CartMergeResult(policy=policy, cart=cart_read)

        user_cart = self._get_or_create(session, UserOwner(user_id))
        guest_items = self.cart_repo.list_items(session, guest.id)
        user_items = self.cart_repo.list_items(session, user_cart.id)
        result = CartMergeResult(policy=policy)
        now = utcnow()

        if policy == "merge":
            products = self.product_repo.get_many(
                session, (it.product_id for it in guest_items)
            )
            result.kept = len(user_items)
            for gi in guest_items:
                product = products.get(gi.product_id)
                if product is None or not product.is_purchasable:
                    result.skipped += 1
                    continue
                existing = self.cart_repo.find_line(
                    session, user_cart.id, gi.product_id, gi.variant_key
                )
                current = existing.quantity if existing is not None else 0
                if not product.available_for(min(current + gi.quantity, MAX_LINE_QUANTITY)):
                    result.skipped += 1
                    continue
                self._add_line(session, user_cart, product, list(gi.variants), gi.quantity, now)
                result.merged += 1

        elif policy == "replace":
            self.cart_repo.delete_items(session, user_cart.id)
            for gi in guest_items:
                self.cart_repo.insert_item(
                    session,
                    CartItem(
                        cart_id=user_cart.id,
                        product_id=gi.product_id,
                        quantity=gi.quantity,
                        unit_price=gi.unit_price,
                        variants=list(gi.variants),
                        variant_key=gi.variant_key,
                        product_name=gi.product_name,
                        product_slug=gi.product_slug,
                        product_image=gi.product_image,
                        product_sku=gi.product_sku,
                        created_at=now,
                        updated_at=now,
                    ),
                )
            user_cart.coupon_code = guest.coupon_code
            user_cart.coupon_type = guest.coupon_type
            user_cart.coupon_value = guest.coupon_value
            result.replaced = len(guest_items)

        else:
            result.kept = len(user_items)

        self.cart_repo.delete_cart(session, guest)
        result.cart = self._commit(session, user_cart)

        logger.info(
            "Merged guest cart into user %s (policy=%s merged=%d replaced=%d kept=%d skipped=%d)",
            user_id,
            policy,
            result.merged,
            result.replaced,
            result.kept,
            result.skipped,
        )
        return result

    # ---- maintenance ----

    def sweep(self, session: Session, now: datetime | None = None) -> CartSweepResult:
        """
        Mark idle non-empty carts abandoned and delete expired ones.

        Converted carts are never touched.
        """
        now = now or utcnow()
        idle_since = now - timedelta(hours=self.settings.CART_ABANDON_AFTER_HOURS)

        abandoned = self.cart_repo.mark_idle_abandoned(session, idle_since)
        expired = self.cart_repo.list_expired(session, now)
        for cart in expired:
            self.cart_repo.delete_cart(session, cart)
        session.commit()

        logger.info("Cart sweep: %d abandoned, %d deleted", abandoned, len(expired))
        return CartSweepResult(abandoned=abandoned, deleted=len(expired))
