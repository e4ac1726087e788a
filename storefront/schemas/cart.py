# storefront/schemas/cart.py
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import ConfigDict, field_validator
from sqlmodel import SQLModel, Field

from storefront.models.cart import MAX_LINE_QUANTITY

MergePolicy = Literal["merge", "replace", "keep_existing"]
IssueSeverity = Literal["error", "warning"]


class VariantChoice(SQLModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1, max_length=50)
    value: str = Field(min_length=1, max_length=100)

    @field_validator("name", "value")
    @classmethod
    def not_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("field cannot be empty")
        return v


class CartItemCreate(SQLModel):
    """
    Payload for adding to cart.
    """

    model_config = ConfigDict(extra="forbid")

    product_id: uuid.UUID
    quantity: int = Field(default=1, ge=1, le=MAX_LINE_QUANTITY)
    variants: list[VariantChoice] = Field(default_factory=list)


class CartItemUpdate(SQLModel):
    """
    Payload for updating quantity of a cart item. 0 removes the line.
    """

    model_config = ConfigDict(extra="forbid")

    quantity: int = Field(ge=0, le=MAX_LINE_QUANTITY)


class CouponApply(SQLModel):
    model_config = ConfigDict(extra="forbid")

    code: str = Field(min_length=3, max_length=50)

    @field_validator("code")
    @classmethod
    def normalize_code(cls, v: str) -> str:
        v = v.strip().upper()
        if len(v) < 3:
            raise ValueError("coupon code must be at least 3 characters")
        return v


class CartMergeRequest(SQLModel):
    model_config = ConfigDict(extra="forbid")

    session_id: str = Field(min_length=10, max_length=128)
    policy: MergePolicy = "merge"


class CartItemRead(SQLModel):
    """
    Read model for a single cart item, including line_total.
    """

    id: uuid.UUID
    product_id: uuid.UUID
    quantity: int
    unit_price: Decimal
    line_total: Decimal
    variants: list[VariantChoice]
    product_name: str | None = None
    product_slug: str | None = None
    product_image: str | None = None
    product_sku: str | None = None
    created_at: datetime


class AppliedCoupon(SQLModel):
    code: str
    type: str
    value: Decimal


class CartRead(SQLModel):
    """
    Full cart response model with totals.
    """

    id: uuid.UUID
    user_id: uuid.UUID | None
    session_id: str | None
    status: str
    items: list[CartItemRead]
    item_count: int
    is_empty: bool
    subtotal: Decimal
    tax: Decimal
    shipping: Decimal
    discount: Decimal
    total: Decimal
    currency: str
    coupon: AppliedCoupon | None = None
    expires_at: datetime
    updated_at: datetime


class CartSummary(SQLModel):
    item_count: int
    is_empty: bool
    subtotal: Decimal
    tax: Decimal
    shipping: Decimal
    discount: Decimal
    total: Decimal
    currency: str


class CartIssue(SQLModel):
    """One problem found when re-checking a cart against live product state."""

    code: str
    severity: IssueSeverity
    message: str
    item_id: uuid.UUID | None = None
    product_id: uuid.UUID | None = None


class CartValidation(SQLModel):
    is_valid: bool
    issues: list[CartIssue]
    fixed: bool = False
    cart: CartRead


class CartMergeResult(SQLModel):
    policy: MergePolicy
    merged: int = 0
    replaced: int = 0
    kept: int = 0
    skipped: int = 0
    cart: CartRead | None = None


class CartSweepResult(SQLModel):
    abandoned: int
    deleted: int
