# storefront/models/category.py
import uuid
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field

MAX_CATEGORY_LEVEL = 3


class Category(SQLModel, table=True):
    """
    Product category, optionally nested under a parent.

    level is 0 for root categories and parent.level + 1 below that,
    up to MAX_CATEGORY_LEVEL. Inactive categories are hidden from the public
    listing but keep their products.
    """

    __tablename__ = "categories"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    name: str = Field(max_length=100, index=True)

    slug: str = Field(
        max_length=120,
        unique=True,
        index=True,
        description="URL-friendly identifier (unique)",
    )

    description: str | None = Field(default=None, max_length=500)

    parent_id: uuid.UUID | None = Field(
        default=None,
        foreign_key="categories.id",
        index=True,
    )
    level: int = Field(default=0, ge=0, le=MAX_CATEGORY_LEVEL)

    is_active: bool = Field(default=True, index=True)
    sort_order: int = Field(default=0)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
