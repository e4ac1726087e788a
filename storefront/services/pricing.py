# storefront/services/pricing.py
"""
Cart and order totals.

All money is Decimal, quantized to cents with ROUND_HALF_UP at every step
that produces a stored value, so recomputing the same cart any number of
times always yields the same pennies.

    subtotal = sum(quantity * unit_price)
    discount = subtotal * value / 100          (percentage coupon)
             = min(value, subtotal)            (fixed coupon)
    total    = max(0, subtotal + tax + shipping - discount)

Tax and shipping come from a PricingPolicy; the default one mirrors the
storefront's configured rates (flat tax rate on the pre-discount subtotal,
free shipping above a threshold).
"""
from collections.abc import Iterable
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Protocol

from storefront.core.config import Settings
from storefront.core.errors import ValidationError

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value: Decimal | int | float | str) -> Decimal:
    if isinstance(value, float):
        value = str(value)
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class PriceLine:
    quantity: int
    unit_price: Decimal

    @property
    def line_total(self) -> Decimal:
        return to_money(self.unit_price * self.quantity)


@dataclass(frozen=True)
class CouponTerms:
    type: str  # percentage | fixed
    value: Decimal


@dataclass(frozen=True)
class Totals:
    subtotal: Decimal
    tax: Decimal
    shipping: Decimal
    discount: Decimal
    total: Decimal

    @classmethod
    def zero(cls) -> "Totals":
        return cls(ZERO, ZERO, ZERO, ZERO, ZERO)


class PricingPolicy(Protocol):
    def tax_for(self, subtotal: Decimal) -> Decimal: ...

    def shipping_for(self, subtotal: Decimal, item_count: int) -> Decimal: ...


@dataclass(frozen=True)
class StandardPricingPolicy:
    tax_rate: Decimal = Decimal("0.10")
    free_shipping_threshold: Decimal | None = Decimal("100")
    flat_shipping: Decimal = Decimal("10")

    @classmethod
    def from_settings(cls, settings: Settings) -> "StandardPricingPolicy":
        return cls(
            tax_rate=Decimal(settings.TAX_RATE),
            free_shipping_threshold=Decimal(settings.FREE_SHIPPING_THRESHOLD),
            flat_shipping=Decimal(settings.SHIPPING_FLAT_RATE),
        )

    def tax_for(self, subtotal: Decimal) -> Decimal:
        return to_money(subtotal * self.tax_rate)

    def shipping_for(self, subtotal: Decimal, item_count: int) -> Decimal:
        if item_count == 0:
            return ZERO
        if (
            self.free_shipping_threshold is not None
            and subtotal >= self.free_shipping_threshold
        ):
            return ZERO
        return to_money(self.flat_shipping)


def _check_lines(lines: Iterable[PriceLine]) -> list[PriceLine]:
    checked = []
    for line in lines:
        if line.quantity < 0:
            raise ValidationError("Quantity cannot be negative")
        if line.unit_price < 0:
            raise ValidationError("Unit price cannot be negative")
        checked.append(line)
    return checked


def discount_for(subtotal: Decimal, coupon: CouponTerms | None) -> Decimal:
    if coupon is None:
        return ZERO
    if coupon.value < 0:
        raise ValidationError("Coupon value cannot be negative")
    if coupon.type == "percentage":
        if coupon.value > 100:
            raise ValidationError("Percentage coupon cannot exceed 100")
        return to_money(subtotal * coupon.value / 100)
    if coupon.type == "fixed":
        return to_money(min(coupon.value, subtotal))
    raise ValidationError(f"Unknown coupon type: {coupon.type}")


def calculate_totals(
    lines: Iterable[PriceLine],
    policy: PricingPolicy,
    coupon: CouponTerms | None = None,
) -> Totals:
    checked = _check_lines(lines)

    subtotal = to_money(sum((line.line_total for line in checked), ZERO))
    item_count = sum(line.quantity for line in checked)

    tax = to_money(policy.tax_for(subtotal))
    shipping = to_money(policy.shipping_for(subtotal, item_count))
    discount = discount_for(subtotal, coupon)

    total = max(ZERO, to_money(subtotal + tax + shipping - discount))

    return Totals(
        subtotal=subtotal,
        tax=tax,
        shipping=shipping,
        discount=discount,
        total=total,
    )
