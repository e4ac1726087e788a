# storefront/schemas/wishlist.py
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import ConfigDict, EmailStr, field_validator
from sqlmodel import SQLModel, Field

Privacy = Literal["private", "public", "shared"]
Priority = Literal["low", "medium", "high"]
SharePermission = Literal["view", "edit"]

MAX_TAGS = 20


def _clean_tags(tags: list[str] | None) -> list[str] | None:
    if tags is None:
        return None
    cleaned: list[str] = []
    for tag in tags:
        tag = tag.strip()
        if not tag:
            continue
        if len(tag) > 30:
            raise ValueError("tag cannot exceed 30 characters")
        if tag not in cleaned:
            cleaned.append(tag)
    if len(cleaned) > MAX_TAGS:
        raise ValueError(f"at most {MAX_TAGS} tags allowed")
    return cleaned


class WishlistCreate(SQLModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    privacy: Privacy = "private"
    tags: list[str] = Field(default_factory=list)
    is_default: bool = False

    @field_validator("name", mode="before")
    @classmethod
    def not_empty(cls, v: str) -> str:
        if isinstance(v, str):
            v = v.strip()
        if not v:
            raise ValueError("name cannot be empty")
        return v

    @field_validator("tags")
    @classmethod
    def normalize_tags(cls, v: list[str]) -> list[str]:
        return _clean_tags(v) or []


class WishlistUpdate(SQLModel):
    """
    Partial update. is_default=True moves the default flag here;
    is_default=False is ignored (a user always keeps one default).
    """

    model_config = ConfigDict(extra="forbid")

    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    privacy: Privacy | None = None
    tags: list[str] | None = None
    is_default: bool | None = None

    @field_validator("name")
    @classmethod
    def not_empty(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("name cannot be empty")
        return v

    @field_validator("tags")
    @classmethod
    def normalize_tags(cls, v: list[str] | None) -> list[str] | None:
        return _clean_tags(v)


class WishlistItemAdd(SQLModel):
    model_config = ConfigDict(extra="forbid")

    note: str | None = Field(default=None, max_length=200)
    priority: Priority | None = None


class WishlistItemRead(SQLModel):
    id: uuid.UUID
    product_id: uuid.UUID
    note: str | None = None
    priority: str
    added_at: datetime
    # Live product info; None when the product has been deleted
    product_name: str | None = None
    product_slug: str | None = None
    product_price: Decimal | None = None
    product_image: str | None = None
    is_available: bool = False


class WishlistShareRead(SQLModel):
    email: str
    permission: str
    shared_at: datetime


class WishlistRead(SQLModel):
    id: uuid.UUID
    user_id: uuid.UUID
    name: str
    description: str | None = None
    privacy: str
    is_default: bool
    tags: list[str]
    items: list[WishlistItemRead]
    item_count: int
    shared_with: list[WishlistShareRead] = Field(default_factory=list)
    is_shared: bool
    created_at: datetime
    updated_at: datetime


class SharedWishlistRead(SQLModel):
    """Public view of a shared wishlist (no grants, no owner email)."""

    id: uuid.UUID
    name: str
    description: str | None = None
    tags: list[str]
    items: list[WishlistItemRead]
    item_count: int
    owner_name: str
    updated_at: datetime


class WishlistAddResult(SQLModel):
    added: bool
    notice: str | None = None
    wishlist: WishlistRead


class WishlistShareRequest(SQLModel):
    model_config = ConfigDict(extra="forbid")

    emails: list[EmailStr] = Field(default_factory=list, max_length=50)
    permission: SharePermission = "view"
    regenerate: bool = False


class WishlistShareResult(SQLModel):
    share_token: str
    share_url: str
    shared_with: list[WishlistShareRead]


class MoveToCartRequest(SQLModel):
    """product_ids=None moves every item of the wishlist."""

    model_config = ConfigDict(extra="forbid")

    product_ids: list[uuid.UUID] | None = None
    quantity: int = Field(default=1, ge=1, le=100)
    remove_after_move: bool = False


class MoveFailure(SQLModel):
    product_id: uuid.UUID
    code: str
    message: str


class MoveToCartResult(SQLModel):
    moved: list[uuid.UUID]
    failed: list[MoveFailure]
    wishlist: WishlistRead
