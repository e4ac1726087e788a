# storefront/models/product.py
import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlmodel import SQLModel, Field

PRODUCT_STATUSES = ("active", "inactive", "draft", "archived")
PRODUCT_VISIBILITIES = ("public", "private", "hidden")


class Product(SQLModel, table=True):
    """
    Catalog entry.

    Read-mostly from the checkout point of view: carts capture price and a
    display snapshot at add time, and validate against this row later.
    A product is purchasable only when status='active' and visibility='public'.
    """

    __tablename__ = "products"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    name: str = Field(
        max_length=200,
        min_length=2,
        index=True,
    )

    slug: str = Field(
        max_length=255,
        unique=True,
        index=True,
        description="URL-friendly identifier (unique)",
    )

    sku: str = Field(
        max_length=64,
        unique=True,
        index=True,
    )

    description: str | None = None

    category_id: uuid.UUID | None = Field(
        default=None,
        foreign_key="categories.id",
        index=True,
    )

    # Pricing block
    price: Decimal = Field(max_digits=12, decimal_places=2, ge=0)
    compare_price: Decimal | None = Field(
        default=None, max_digits=12, decimal_places=2, ge=0
    )
    currency: str = Field(default="USD", max_length=3)

    # Inventory block
    track_quantity: bool = Field(default=True)
    stock_quantity: int = Field(default=0, ge=0)
    allow_backorder: bool = Field(default=False)
    low_stock_threshold: int = Field(default=10, ge=0)

    # Rating aggregate, recomputed by ReviewService from approved reviews
    rating_average: float = Field(default=0.0, ge=0, le=5)
    rating_count: int = Field(default=0, ge=0)

    status: str = Field(
        default="draft",
        index=True,
        description="active | inactive | draft | archived",
    )
    visibility: str = Field(
        default="public",
        index=True,
        description="public | private | hidden",
    )

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp (UTC)",
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )

    @property
    def is_purchasable(self) -> bool:
        return self.status == "active" and self.visibility == "public"

    def available_for(self, quantity: int) -> bool:
        """True when `quantity` units can be sold right now."""
        if not self.track_quantity or self.allow_backorder:
            return True
        return self.stock_quantity >= quantity

    @property
    def is_low_stock(self) -> bool:
        return self.track_quantity and self.stock_quantity <= self.low_stock_threshold


class ProductImage(SQLModel, table=True):
    """
    Product gallery image (URL only; uploads are handled elsewhere).

    Exactly one image per product carries is_main=True whenever the product
    has images; ProductService maintains that.
    """

    __tablename__ = "product_images"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    product_id: uuid.UUID = Field(
        foreign_key="products.id",
        index=True,
        description="FK to products.id",
    )

    url: str
    alt: str | None = Field(default=None, max_length=200)
    is_main: bool = Field(default=False)

    sort_order: int = Field(
        default=0,
        ge=0,
        description="Ordering index within the gallery",
    )
