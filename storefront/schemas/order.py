# storefront/schemas/order.py
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Literal

from pydantic import ConfigDict, field_validator, model_validator
from sqlmodel import SQLModel, Field

PaymentMethod = Literal[
    "credit_card",
    "debit_card",
    "paypal",
    "stripe",
    "bank_transfer",
    "cash_on_delivery",
]
OrderStatus = Literal[
    "pending",
    "confirmed",
    "processing",
    "shipped",
    "delivered",
    "cancelled",
    "returned",
    "refunded",
]
PaymentStatus = Literal[
    "pending", "paid", "failed", "cancelled", "refunded", "partially_refunded"
]


class AddressIn(SQLModel):
    """Postal address captured on the order as structured JSON."""

    model_config = ConfigDict(extra="forbid")

    first_name: str = Field(min_length=2, max_length=50)
    last_name: str = Field(min_length=2, max_length=50)
    company: str | None = Field(default=None, max_length=100)
    address_line1: str = Field(min_length=5, max_length=100)
    address_line2: str | None = Field(default=None, max_length=100)
    city: str = Field(min_length=2, max_length=50)
    state: str = Field(min_length=2, max_length=50)
    postal_code: str = Field(min_length=3, max_length=20)
    country: str = Field(min_length=2, max_length=50)
    phone: str | None = Field(default=None, max_length=20)

    @field_validator(
        "first_name",
        "last_name",
        "address_line1",
        "city",
        "state",
        "postal_code",
        "country",
        mode="before",
    )
    @classmethod
    def not_empty(cls, v: str) -> str:
        if isinstance(v, str):
            v = v.strip()
        if not v:
            raise ValueError("field cannot be empty")
        return v

    @field_validator("company", "address_line2", "phone")
    @classmethod
    def blank_to_none(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        return v or None


class OrderCreate(SQLModel):
    """
    Payload for creating an order from the current cart.

    User provides:
      - shipping address, inline or as a saved address id
      - billing address (inline or saved) unless use_shipping_as_billing
      - payment method
      - special instructions (optional)

    Backend derives:
      - user_id and customer snapshot from token
      - items, prices and totals from the cart
      - order number, status='pending', payment_status='pending'
    """

    model_config = ConfigDict(extra="forbid")

    shipping_address: AddressIn | None = None
    shipping_address_id: uuid.UUID | None = None
    billing_address: AddressIn | None = None
    billing_address_id: uuid.UUID | None = None
    use_shipping_as_billing: bool = True
    payment_method: PaymentMethod
    special_instructions: str | None = Field(default=None, max_length=1000)

    @field_validator("special_instructions")
    @classmethod
    def normalize_note(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        return v or None

    @model_validator(mode="after")
    def addresses_given(self) -> "OrderCreate":
        if (self.shipping_address is None) == (self.shipping_address_id is None):
            raise ValueError(
                "provide exactly one of shipping_address or shipping_address_id"
            )
        if self.billing_address is not None and self.billing_address_id is not None:
            raise ValueError(
                "provide at most one of billing_address or billing_address_id"
            )
        if (
            not self.use_shipping_as_billing
            and self.billing_address is None
            and self.billing_address_id is None
        ):
            raise ValueError(
                "billing_address is required when use_shipping_as_billing is false"
            )
        return self


class OrderItemRead(SQLModel):
    id: uuid.UUID
    product_id: uuid.UUID
    product_name: str
    product_slug: str
    product_sku: str
    product_image: str | None = None
    variants: list[dict[str, str]]
    quantity: int
    unit_price: Decimal
    line_total: Decimal


class StatusHistoryRead(SQLModel):
    status: str
    actor: str
    reason: str | None = None
    created_at: datetime


class OrderRead(SQLModel):
    """
    Lightweight representation of an order (without items).
    """

    id: uuid.UUID
    order_number: str
    user_id: uuid.UUID
    status: str
    fulfillment_status: str
    payment_method: str
    payment_status: str
    subtotal: Decimal
    tax: Decimal
    shipping: Decimal
    discount: Decimal
    total: Decimal
    currency: str
    created_at: datetime
    updated_at: datetime


class OrderDetailRead(OrderRead):
    """
    Full order with items, addresses and status history.
    """

    customer_name: str
    customer_email: str
    customer_phone: str | None = None
    coupon_code: str | None = None
    coupon_type: str | None = None
    coupon_value: Decimal | None = None
    shipping_address: dict[str, Any]
    billing_address: dict[str, Any]
    transaction_id: str | None = None
    paid_at: datetime | None = None
    payment_failed_at: datetime | None = None
    refunded_at: datetime | None = None
    special_instructions: str | None = None
    cart_id: uuid.UUID | None = None
    delivered_at: datetime | None = None
    cancelled_at: datetime | None = None
    cancel_reason: str | None = None
    items: list[OrderItemRead]
    status_history: list[StatusHistoryRead]


class OrderPage(SQLModel):
    items: list[OrderRead]
    total: int
    skip: int
    limit: int


class OrderStatusUpdate(SQLModel):
    """
    Status change request. Customers may only send status='cancelled'.
    """

    model_config = ConfigDict(extra="forbid")

    status: OrderStatus
    reason: str | None = Field(default=None, max_length=500)


class PaymentStatusUpdate(SQLModel):
    """
    Admin-only payment status change (e.g. from a payment webhook relay).
    """

    model_config = ConfigDict(extra="forbid")

    payment_status: PaymentStatus
    transaction_id: str | None = Field(default=None, max_length=200)
