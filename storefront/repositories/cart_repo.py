# storefront/repositories/cart_repo.py
import uuid
from datetime import datetime

from sqlalchemy import case, delete, update
from sqlmodel import Session, col, select

from storefront.models.cart import (
    MAX_LINE_QUANTITY,
    Cart,
    CartItem,
    CartOwner,
    SessionOwner,
    UserOwner,
)


class CartRepository:
    """
    Data access layer for carts and cart_items.

    NOTE:
      - Row-level writes flush but do not commit; CartService commits once
        per operation so a request never leaves a half-applied cart.
    """

    # ---- Carts ----

    def get_by_id(self, session: Session, cart_id: uuid.UUID) -> Cart | None:
        return session.get(Cart, cart_id)

    def get_open_for_owner(self, session: Session, owner: CartOwner) -> Cart | None:
        """Active or abandoned cart of an owner (never a converted one)."""
        stmt = select(Cart).where(col(Cart.status).in_(("active", "abandoned")))
        if isinstance(owner, UserOwner):
            stmt = stmt.where(Cart.user_id == owner.user_id)
        else:
            stmt = stmt.where(Cart.session_id == owner.session_id)
        stmt = stmt.order_by(col(Cart.updated_at).desc())
        return session.exec(stmt).first()

    def add(self, session: Session, cart: Cart) -> Cart:
        session.add(cart)
        session.flush()
        return cart

    def delete_cart(self, session: Session, cart: Cart) -> None:
        session.exec(delete(CartItem).where(CartItem.cart_id == cart.id))
        session.delete(cart)
        session.flush()

    def mark_converted(self, session: Session, cart_id: uuid.UUID, version: int) -> int:
        """
        Flip an active cart to converted.

        Conditional on status and version so two concurrent checkouts of the
        same cart cannot both succeed. Returns affected row count.
        """
        result = session.exec(
            update(Cart)
            .where(
                Cart.id == cart_id,
                Cart.status == "active",
                Cart.version == version,
            )
            .values(status="converted", version=Cart.version + 1)
        )
        return result.rowcount

    def list_expired(self, session: Session, now: datetime) -> list[Cart]:
        stmt = select(Cart).where(
            Cart.expires_at < now,
            col(Cart.status).in_(("active", "abandoned")),
        )
        return session.exec(stmt).all()

    def mark_idle_abandoned(self, session: Session, idle_since: datetime) -> int:
        result = session.exec(
            update(Cart)
            .where(
                Cart.status == "active",
                Cart.updated_at < idle_since,
                col(Cart.id).in_(select(CartItem.cart_id)),
            )
            .values(status="abandoned")
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    # ---- Items ----

    def list_items(self, session: Session, cart_id: uuid.UUID) -> list[CartItem]:
        stmt = (
            select(CartItem)
            .where(CartItem.cart_id == cart_id)
            .order_by(col(CartItem.created_at), col(CartItem.id))
        )
        return session.exec(stmt).all()

    def get_item(
        self, session: Session, cart_id: uuid.UUID, item_id: uuid.UUID
    ) -> CartItem | None:
        stmt = select(CartItem).where(
            CartItem.cart_id == cart_id, CartItem.id == item_id
        )
        return session.exec(stmt).first()

    def find_line(
        self,
        session: Session,
        cart_id: uuid.UUID,
        product_id: uuid.UUID,
        variant_key: str,
    ) -> CartItem | None:
        stmt = select(CartItem).where(
            CartItem.cart_id == cart_id,
            CartItem.product_id == product_id,
            CartItem.variant_key == variant_key,
        )
        return session.exec(stmt).first()

    def insert_item(self, session: Session, item: CartItem) -> CartItem:
        session.add(item)
        session.flush()
        return item

    def increment_quantity(
        self,
        session: Session,
        item_id: uuid.UUID,
        delta: int,
        now: datetime,
    ) -> None:
        """
        Atomic, capped increment executed by the database:

            UPDATE cart_items
               SET quantity = CASE WHEN quantity + :delta > 100
                                   THEN 100 ELSE quantity + :delta END
             WHERE id = :item_id

        Two concurrent adds of the same line both land; neither overwrites
        the other's read.
        """
        session.exec(
            update(CartItem)
            .where(CartItem.id == item_id)
            .values(
                quantity=case(
                    (CartItem.quantity + delta > MAX_LINE_QUANTITY, MAX_LINE_QUANTITY),
                    else_=CartItem.quantity + delta,
                ),
                updated_at=now,
            )
            .execution_options(synchronize_session="fetch")
        )
        session.flush()

    def set_quantity(
        self, session: Session, item: CartItem, quantity: int, now: datetime
    ) -> CartItem:
        item.quantity = quantity
        item.updated_at = now
        session.add(item)
        session.flush()
        return item

    def delete_item(self, session: Session, item: CartItem) -> None:
        session.delete(item)
        session.flush()

    def delete_items(self, session: Session, cart_id: uuid.UUID) -> int:
        result = session.exec(
            delete(CartItem)
            .where(CartItem.cart_id == cart_id)
            .execution_options(synchronize_session="fetch")
        )
        session.flush()
        return result.rowcount
