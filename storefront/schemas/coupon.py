# storefront/schemas/coupon.py
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import ConfigDict, field_validator, model_validator
from sqlmodel import SQLModel, Field

CouponType = Literal["percentage", "fixed"]


class CouponCreate(SQLModel):
    """
    Admin payload for a new discount code.

    - code is stored upper-cased
    - percentage coupons must be within 0..100
    """

    model_config = ConfigDict(extra="forbid")

    code: str = Field(min_length=3, max_length=50)
    type: CouponType = "percentage"
    value: Decimal = Field(ge=0, max_digits=12, decimal_places=2)
    is_active: bool = True
    min_subtotal: Decimal | None = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    starts_at: datetime | None = None
    expires_at: datetime | None = None
    usage_limit: int | None = Field(default=None, ge=1)
    per_user_limit: int | None = Field(default=None, ge=1)

    @field_validator("code")
    @classmethod
    def normalize_code(cls, v: str) -> str:
        v = v.strip().upper()
        if len(v) < 3:
            raise ValueError("coupon code must be at least 3 characters")
        return v

    @model_validator(mode="after")
    def check_terms(self) -> "CouponCreate":
        if self.type == "percentage" and self.value > 100:
            raise ValueError("percentage coupon cannot exceed 100")
        if self.starts_at and self.expires_at and self.expires_at <= self.starts_at:
            raise ValueError("expires_at must be after starts_at")
        return self


class CouponRead(SQLModel):
    id: uuid.UUID
    code: str
    type: str
    value: Decimal
    is_active: bool
    min_subtotal: Decimal | None = None
    starts_at: datetime | None = None
    expires_at: datetime | None = None
    usage_limit: int | None = None
    per_user_limit: int | None = None
    created_at: datetime
