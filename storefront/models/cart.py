# storefront/models/cart.py
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Union

from sqlalchemy import JSON, CheckConstraint, Column, UniqueConstraint
from sqlmodel import SQLModel, Field

CART_STATUSES = ("active", "abandoned", "converted")
MAX_LINE_QUANTITY = 100


@dataclass(frozen=True)
class UserOwner:
    user_id: uuid.UUID


@dataclass(frozen=True)
class SessionOwner:
    session_id: str


# A cart belongs to exactly one of these.
CartOwner = Union[UserOwner, SessionOwner]


def _money(**kwargs: Any):
    return Field(default=Decimal("0.00"), max_digits=12, decimal_places=2, **kwargs)


class Cart(SQLModel, table=True):
    """
    Shopping cart for a registered user or a guest session.

    Totals are derived: CartService recomputes them from the persisted
    lines after every mutation and nothing else writes them.
    """

    __tablename__ = "carts"
    __table_args__ = (
        CheckConstraint(
            "(user_id IS NULL) <> (session_id IS NULL)",
            name="ck_carts_single_owner",
        ),
    )

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    user_id: uuid.UUID | None = Field(
        default=None,
        foreign_key="users.id",
        index=True,
    )
    session_id: str | None = Field(default=None, max_length=128, index=True)

    subtotal: Decimal = _money()
    tax: Decimal = _money()
    shipping: Decimal = _money()
    discount: Decimal = _money()
    total: Decimal = _money()

    # At most one coupon is applied at a time
    coupon_code: str | None = Field(default=None, max_length=50)
    coupon_type: str | None = Field(default=None, description="percentage | fixed")
    coupon_value: Decimal | None = Field(
        default=None, max_digits=12, decimal_places=2
    )

    # active | abandoned | converted
    status: str = Field(default="active", index=True)

    currency: str = Field(default="USD", max_length=3)
    notes: str | None = Field(default=None, max_length=500)

    # Bumped on every write
    version: int = Field(default=1)

    expires_at: datetime = Field(index=True)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )

    @classmethod
    def for_owner(cls, owner: CartOwner, **kwargs: Any) -> "Cart":
        if isinstance(owner, UserOwner):
            return cls(user_id=owner.user_id, session_id=None, **kwargs)
        return cls(user_id=None, session_id=owner.session_id, **kwargs)

    @property
    def owner(self) -> CartOwner:
        if self.user_id is not None:
            return UserOwner(self.user_id)
        return SessionOwner(self.session_id)  # type: ignore[arg-type]

    def assign_owner(self, owner: CartOwner) -> None:
        if isinstance(owner, UserOwner):
            self.user_id, self.session_id = owner.user_id, None
        else:
            self.user_id, self.session_id = None, owner.session_id


class CartItem(SQLModel, table=True):
    """
    Line item of a cart.

    (cart_id, product_id, variant_key) is unique: adding the same product with
    the same variant choices increments the existing line.
    """

    __tablename__ = "cart_items"
    __table_args__ = (
        UniqueConstraint(
            "cart_id", "product_id", "variant_key", name="uq_cart_items_line"
        ),
    )

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    cart_id: uuid.UUID = Field(
        foreign_key="carts.id",
        index=True,
    )

    # No FK: products may be deleted while still sitting in carts.
    product_id: uuid.UUID = Field(index=True)

    quantity: int = Field(
        ge=1,
        le=MAX_LINE_QUANTITY,
    )

    unit_price: Decimal = Field(
        max_digits=12,
        decimal_places=2,
        description="Price when added to cart",
    )

    variants: list[dict[str, str]] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
    )
    variant_key: str = Field(default="", max_length=500)

    # Display snapshot, so the cart renders without a product lookup
    product_name: str | None = None
    product_slug: str | None = None
    product_image: str | None = None
    product_sku: str | None = None

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )


def variant_key(variants: list[dict[str, str]] | None) -> str:
    """
    Canonical key for a set of variant choices.

    Choices are compared by name, regardless of the order the client sent them in.
    """
    if not variants:
        return ""
    pairs = sorted((v["name"].strip().lower(), v["value"].strip()) for v in variants)
    return "|".join(f"{name}={value}" for name, value in pairs)
