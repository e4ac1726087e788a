# storefront/models/wishlist.py
import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, Column, Index, UniqueConstraint, text
from sqlmodel import SQLModel, Field

WISHLIST_PRIVACY = ("private", "public", "shared")
WISHLIST_PRIORITIES = ("low", "medium", "high")
SHARE_PERMISSIONS = ("view", "edit")

DEFAULT_WISHLIST_NAME = "My Wishlist"


class Wishlist(SQLModel, table=True):
    """
    Named product collection owned by a user.

    Exactly one wishlist per user has is_default=True (partial unique index);
    the default one cannot be deleted.
    """

    __tablename__ = "wishlists"
    __table_args__ = (
        Index(
            "uq_wishlists_one_default_per_user",
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

    name: str = Field(default=DEFAULT_WISHLIST_NAME, max_length=100)
    description: str | None = Field(default=None, max_length=500)

    # private | public | shared
    privacy: str = Field(default="private", index=True)

    is_default: bool = Field(default=False)

    tags: list[str] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
    )

    share_token: str | None = Field(default=None, unique=True, index=True)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )


class WishlistItem(SQLModel, table=True):
    __tablename__ = "wishlist_items"
    __table_args__ = (
        UniqueConstraint("wishlist_id", "product_id", name="uq_wishlist_items_product"),
    )

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    wishlist_id: uuid.UUID = Field(
        foreign_key="wishlists.id",
        index=True,
    )

    product_id: uuid.UUID = Field(index=True)

    note: str | None = Field(default=None, max_length=200)

    # low | medium | high
    priority: str = Field(default="medium")

    added_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )


class WishlistShare(SQLModel, table=True):
    """Email grant on a shared wishlist."""

    __tablename__ = "wishlist_shares"
    __table_args__ = (
        UniqueConstraint("wishlist_id", "email", name="uq_wishlist_shares_email"),
    )

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    wishlist_id: uuid.UUID = Field(
        foreign_key="wishlists.id",
        index=True,
    )

    email: str = Field(max_length=255)

    # view | edit
    permission: str = Field(default="view")

    shared_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
