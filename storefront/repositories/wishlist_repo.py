# storefront/repositories/wishlist_repo.py
import uuid

from sqlalchemy import delete, update
from sqlmodel import Session, col, select

from storefront.models.wishlist import Wishlist, WishlistItem, WishlistShare


class WishlistRepository:
    """
    Data access layer for wishlists, their items and share grants.

    Writes flush; WishlistService commits once per operation.
    """

    # ---- Wishlists ----

    def list_for_user(self, session: Session, user_id: uuid.UUID) -> list[Wishlist]:
        stmt = (
            select(Wishlist)
            .where(Wishlist.user_id == user_id)
            .order_by(col(Wishlist.is_default).desc(), col(Wishlist.created_at).desc())
        )
        return session.exec(stmt).all()

    def get_by_id(self, session: Session, wishlist_id: uuid.UUID) -> Wishlist | None:
        return session.get(Wishlist, wishlist_id)

    def get_default(self, session: Session, user_id: uuid.UUID) -> Wishlist | None:
        stmt = select(Wishlist).where(
            Wishlist.user_id == user_id,
            Wishlist.is_default == True,  # noqa: E712
        )
        return session.exec(stmt).first()

    def get_by_share_token(self, session: Session, token: str) -> Wishlist | None:
        stmt = select(Wishlist).where(Wishlist.share_token == token)
        return session.exec(stmt).first()

    def clear_default(self, session: Session, user_id: uuid.UUID) -> None:
        """Unflag the user's current default; must run before flagging another."""
        session.exec(
            update(Wishlist)
            .where(
                Wishlist.user_id == user_id,
                Wishlist.is_default == True,  # noqa: E712
            )
            .values(is_default=False)
            .execution_options(synchronize_session="fetch")
        )
        session.flush()

    def save(self, session: Session, wishlist: Wishlist) -> Wishlist:
        session.add(wishlist)
        session.flush()
        return wishlist

    def delete(self, session: Session, wishlist: Wishlist) -> None:
        session.exec(delete(WishlistItem).where(WishlistItem.wishlist_id == wishlist.id))
        session.exec(
            delete(WishlistShare).where(WishlistShare.wishlist_id == wishlist.id)
        )
        session.delete(wishlist)
        session.flush()

    # ---- Items ----

    def list_items(self, session: Session, wishlist_id: uuid.UUID) -> list[WishlistItem]:
        stmt = (
            select(WishlistItem)
            .where(WishlistItem.wishlist_id == wishlist_id)
            .order_by(col(WishlistItem.added_at).desc(), col(WishlistItem.id))
        )
        return session.exec(stmt).all()

    def get_item(
        self, session: Session, wishlist_id: uuid.UUID, product_id: uuid.UUID
    ) -> WishlistItem | None:
        stmt = select(WishlistItem).where(
            WishlistItem.wishlist_id == wishlist_id,
            WishlistItem.product_id == product_id,
        )
        return session.exec(stmt).first()

    def save_item(self, session: Session, item: WishlistItem) -> WishlistItem:
        session.add(item)
        session.flush()
        return item

    def delete_item(self, session: Session, item: WishlistItem) -> None:
        session.delete(item)
        session.flush()

    def clear_items(self, session: Session, wishlist_id: uuid.UUID) -> int:
        result = session.exec(
            delete(WishlistItem)
            .where(WishlistItem.wishlist_id == wishlist_id)
            .execution_options(synchronize_session="fetch")
        )
        session.flush()
        return result.rowcount

    # ---- Share grants ----

    def list_shares(self, session: Session, wishlist_id: uuid.UUID) -> list[WishlistShare]:
        stmt = (
            select(WishlistShare)
            .where(WishlistShare.wishlist_id == wishlist_id)
            .order_by(col(WishlistShare.shared_at), col(WishlistShare.email))
        )
        return session.exec(stmt).all()

    def get_share(
        self, session: Session, wishlist_id: uuid.UUID, email: str
    ) -> WishlistShare | None:
        stmt = select(WishlistShare).where(
            WishlistShare.wishlist_id == wishlist_id,
            WishlistShare.email == email,
        )
        return session.exec(stmt).first()

    def save_share(self, session: Session, share: WishlistShare) -> WishlistShare:
        session.add(share)
        session.flush()
        return share
