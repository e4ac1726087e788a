# storefront/models/coupon.py
import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlmodel import SQLModel, Field

COUPON_TYPES = ("percentage", "fixed")


class Coupon(SQLModel, table=True):
    """
    Discount code.

    Eligibility beyond `is_active` (window, minimum subtotal, usage limits)
    is evaluated by the rule set in services/coupon_service.py.
    """

    __tablename__ = "coupons"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    code: str = Field(unique=True, index=True, max_length=50)

    # percentage | fixed
    type: str = Field(default="percentage")
    value: Decimal = Field(max_digits=12, decimal_places=2)

    is_active: bool = Field(default=True)

    min_subtotal: Decimal | None = Field(default=None, max_digits=12, decimal_places=2)
    starts_at: datetime | None = None
    expires_at: datetime | None = None

    usage_limit: int | None = Field(default=None, ge=1)
    per_user_limit: int | None = Field(default=None, ge=1)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
