# storefront/repositories/address_repo.py
import uuid

from sqlalchemy import update
from sqlmodel import Session, col, select

from storefront.models.address import Address


class AddressRepository:
    """
    Data access layer for the user address book.

    Writes flush; AddressService commits.
    """

    def list_for_user(self, session: Session, user_id: uuid.UUID) -> list[Address]:
        stmt = (
            select(Address)
            .where(Address.user_id == user_id)
            .order_by(col(Address.is_default).desc(), col(Address.created_at))
        )
        return session.exec(stmt).all()

    def get_for_user(
        self, session: Session, user_id: uuid.UUID, address_id: uuid.UUID
    ) -> Address | None:
        stmt = select(Address).where(
            Address.id == address_id,
            Address.user_id == user_id,
        )
        return session.exec(stmt).first()

    def get_default(self, session: Session, user_id: uuid.UUID) -> Address | None:
        stmt = select(Address).where(
            Address.user_id == user_id,
            Address.is_default == True,  # noqa: E712
        )
        return session.exec(stmt).first()

    def clear_default(self, session: Session, user_id: uuid.UUID) -> None:
        """Unflag the user's current default; must run before flagging another."""
        session.exec(
            update(Address)
            .where(
                Address.user_id == user_id,
                Address.is_default == True,  # noqa: E712
            )
            .values(is_default=False)
            .execution_options(synchronize_session="fetch")
        )
        session.flush()

    def save(self, session: Session, address: Address) -> Address:
        session.add(address)
        session.flush()
        return address

    def delete(self, session: Session, address: Address) -> None:
        session.delete(address)
        session.flush()
