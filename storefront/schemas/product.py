# storefront/schemas/product.py
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import ConfigDict, field_validator
from sqlmodel import SQLModel, Field

ProductStatus = Literal["active", "inactive", "draft", "archived"]
ProductVisibility = Literal["public", "private", "hidden"]


class ProductImageIn(SQLModel):
    """
    Image reference supplied by an admin (URL only, no uploads).

    If no image in a payload has is_main=True the first one becomes main;
    if several do, only the first keeps the flag.
    """

    model_config = ConfigDict(extra="forbid")

    url: str = Field(min_length=1, max_length=500)
    alt: str | None = Field(default=None, max_length=200)
    is_main: bool = False


class ProductImageRead(SQLModel):
    """
    Read model for gallery images.
    """

    id: uuid.UUID
    url: str
    alt: str | None = None
    is_main: bool
    sort_order: int


class ProductCreate(SQLModel):
    """
    Payload for creating a product.

    - slug is optional: if omitted, generated from `name`.
    """

    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=2, max_length=200)
    slug: str | None = None
    sku: str = Field(min_length=1, max_length=64)
    description: str | None = None
    category_id: uuid.UUID | None = None
    price: Decimal = Field(ge=0, max_digits=12, decimal_places=2)
    compare_price: Decimal | None = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    currency: str = Field(default="USD", min_length=3, max_length=3)
    track_quantity: bool = True
    stock_quantity: int = Field(default=0, ge=0)
    allow_backorder: bool = False
    low_stock_threshold: int = Field(default=10, ge=0)
    status: ProductStatus = "draft"
    visibility: ProductVisibility = "public"
    images: list[ProductImageIn] = Field(default_factory=list)

    @field_validator("name", "sku")
    @classmethod
    def not_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("field cannot be empty")
        return v

    @field_validator("slug")
    @classmethod
    def normalize_slug(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        if not v:
            raise ValueError("slug cannot be empty if provided")
        return v


class ProductUpdate(SQLModel):
    """
    Partial update payload for products.
    All fields are optional; `images`, when given, replaces the gallery.
    """

    model_config = ConfigDict(extra="forbid")

    name: str | None = Field(default=None, min_length=2, max_length=200)
    slug: str | None = None
    description: str | None = None
    category_id: uuid.UUID | None = None
    price: Decimal | None = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    compare_price: Decimal | None = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    track_quantity: bool | None = None
    stock_quantity: int | None = Field(default=None, ge=0)
    allow_backorder: bool | None = None
    low_stock_threshold: int | None = Field(default=None, ge=0)
    status: ProductStatus | None = None
    visibility: ProductVisibility | None = None
    images: list[ProductImageIn] | None = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("name cannot be empty")
        return v

    @field_validator("slug")
    @classmethod
    def normalize_slug(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("slug cannot be empty")
        return v


class ProductRead(SQLModel):
    """
    Product representation for clients.
    """

    id: uuid.UUID
    name: str
    slug: str
    sku: str
    description: str | None = None
    category_id: uuid.UUID | None = None
    price: Decimal
    compare_price: Decimal | None = None
    currency: str
    track_quantity: bool
    stock_quantity: int
    allow_backorder: bool
    low_stock_threshold: int
    in_stock: bool
    is_low_stock: bool
    rating_average: float
    rating_count: int
    status: str
    visibility: str
    images: list[ProductImageRead] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class ProductPage(SQLModel):
    items: list[ProductRead]
    total: int
    skip: int
    limit: int
