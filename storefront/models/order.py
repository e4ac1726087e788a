# storefront/models/order.py
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from sqlalchemy import JSON, Column
from sqlmodel import SQLModel, Field


def _money(**kwargs: Any):
    return Field(default=Decimal("0.00"), max_digits=12, decimal_places=2, **kwargs)


class Order(SQLModel, table=True):
    """
    Immutable checkout snapshot.

    Items, prices and totals are frozen at checkout and never recomputed
    from live product or cart state. Only the status fields move, forward,
    through the tables in services/order_state.py. Orders are never deleted.
    """

    __tablename__ = "orders"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    order_number: str = Field(
        unique=True,
        index=True,
        max_length=40,
        description="Human-readable identifier, e.g. ORD-20261018-000042-K3F9Q",
    )

    user_id: uuid.UUID = Field(
        foreign_key="users.id",
        index=True,
    )

    # Customer details at checkout time
    customer_name: str
    customer_email: str
    customer_phone: str | None = None

    subtotal: Decimal = _money()
    tax: Decimal = _money()
    shipping: Decimal = _money()
    discount: Decimal = _money()
    total: Decimal = _money()
    currency: str = Field(default="USD", max_length=3)

    coupon_code: str | None = None
    coupon_type: str | None = None
    coupon_value: Decimal | None = Field(default=None, max_digits=12, decimal_places=2)

    shipping_address: dict[str, Any] = Field(sa_column=Column(JSON, nullable=False))
    billing_address: dict[str, Any] = Field(sa_column=Column(JSON, nullable=False))

    # pending | confirmed | processing | shipped | delivered
    # | cancelled | returned | refunded
    status: str = Field(default="pending", index=True)

    # pending | in_progress | shipped | delivered | cancelled | returned
    fulfillment_status: str = Field(default="pending")

    payment_method: str
    # pending | paid | failed | cancelled | refunded | partially_refunded
    payment_status: str = Field(default="pending", index=True)
    transaction_id: str | None = None
    paid_at: datetime | None = None
    payment_failed_at: datetime | None = None
    refunded_at: datetime | None = None

    special_instructions: str | None = Field(default=None, max_length=1000)

    cart_id: uuid.UUID | None = Field(default=None, index=True)

    delivered_at: datetime | None = None
    cancelled_at: datetime | None = None
    cancel_reason: str | None = None

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        index=True,
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )


class OrderItem(SQLModel, table=True):
    """Line item inside an order, with the product data frozen at checkout."""

    __tablename__ = "order_items"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    order_id: uuid.UUID = Field(
        foreign_key="orders.id",
        index=True,
    )

    # No FK: the order must survive product deletion.
    product_id: uuid.UUID = Field(index=True)

    product_name: str
    product_slug: str
    product_sku: str
    product_image: str | None = None

    variants: list[dict[str, str]] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
    )

    quantity: int = Field(gt=0)

    unit_price: Decimal = Field(max_digits=12, decimal_places=2)
    line_total: Decimal = Field(max_digits=12, decimal_places=2)


class OrderStatusHistory(SQLModel, table=True):
    """Append-only audit trail of order status transitions."""

    __tablename__ = "order_status_history"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    order_id: uuid.UUID = Field(
        foreign_key="orders.id",
        index=True,
    )

    status: str
    actor: str = Field(description="user:<id> | admin:<id> | system")
    reason: str | None = None

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
