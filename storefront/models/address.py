# storefront/models/address.py
import uuid
from datetime import datetime, timezone

from sqlalchemy import Index, text
from sqlmodel import SQLModel, Field


class Address(SQLModel, table=True):
    """
    Saved postal address in a user's address book.

    At most one address per user carries is_default=True; AddressService
    moves the flag and promotes another address when the default is deleted.
    Orders copy the fields at checkout, so editing an address never changes
    a placed order.
    """

    __tablename__ = "addresses"
    __table_args__ = (
        Index(
            "uq_addresses_one_default_per_user",
            "user_id",
            unique=True,
            sqlite_where=text("is_default = 1"),
            postgresql_where=text("is_default"),
        ),
    )

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    user_id: uuid.UUID = Field(
        foreign_key="users.id",
        index=True,
    )

    label: str | None = Field(default=None, max_length=50)

    first_name: str = Field(max_length=50)
    last_name: str = Field(max_length=50)
    company: str | None = Field(default=None, max_length=100)
    address_line1: str = Field(max_length=100)
    address_line2: str | None = Field(default=None, max_length=100)
    city: str = Field(max_length=50)
    state: str = Field(max_length=50)
    postal_code: str = Field(max_length=20)
    country: str = Field(max_length=50)
    phone: str | None = Field(default=None, max_length=20)

    is_default: bool = Field(default=False)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
