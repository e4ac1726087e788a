from decimal import Decimal

import pytest

from storefront.core.errors import ValidationError
from storefront.services.pricing import (
    CouponTerms,
    PriceLine,
    StandardPricingPolicy,
    Totals,
    calculate_totals,
    discount_for,
    to_money,
)

D = Decimal

POLICY = StandardPricingPolicy(
    tax_rate=D("0.08"), free_shipping_threshold=D("100"), flat_shipping=D("10")
)


class TestTotals:
    def test_empty_cart_is_all_zero(self):
        assert calculate_totals([], POLICY) == Totals.zero()

    def test_two_lines_with_percentage_coupon(self):
        totals = calculate_totals(
            [PriceLine(2, D("10.00")), PriceLine(1, D("5.00"))],
            POLICY,
            CouponTerms("percentage", D("10")),
        )
        assert totals.subtotal == D("25.00")
        assert totals.discount == D("2.50")
        assert totals.tax == D("2.00")
        assert totals.shipping == D("10.00")
        assert totals.total == D("34.50")

    def test_free_shipping_at_threshold(self):
        totals = calculate_totals([PriceLine(1, D("100.00"))], POLICY)
        assert totals.tax == D("8.00")
        assert totals.shipping == D("0.00")
        assert totals.total == D("108.00")

    def test_twenty_percent_coupon_on_free_shipping_order(self):
        totals = calculate_totals(
            [PriceLine(1, D("100.00"))], POLICY, CouponTerms("percentage", D("20"))
        )
        assert totals.discount == D("20.00")
        assert totals.total == D("88.00")

    def test_fixed_coupon_capped_at_subtotal(self):
        totals = calculate_totals(
            [PriceLine(1, D("5.00"))],
            StandardPricingPolicy(tax_rate=D("0"), flat_shipping=D("0")),
            CouponTerms("fixed", D("50")),
        )
        assert totals.discount == D("5.00")
        assert totals.total == D("0.00")

    def test_total_never_negative(self):
        class GenerousPolicy:
            def tax_for(self, subtotal):
                return D("0")

            def shipping_for(self, subtotal, item_count):
                return D("0")

        totals = calculate_totals(
            [PriceLine(1, D("1.00"))], GenerousPolicy(), CouponTerms("fixed", D("1.00"))
        )
        assert totals.total == D("0.00")

    def test_rounding_is_half_up(self):
        assert to_money(D("0.125")) == D("0.13")
        assert to_money(D("2.675")) == D("2.68")
        assert discount_for(D("0.05"), CouponTerms("percentage", D("50"))) == D("0.03")

    def test_recomputation_is_stable(self):
        lines = [PriceLine(3, D("19.99")), PriceLine(1, D("0.01"))]
        coupon = CouponTerms("percentage", D("15"))
        assert calculate_totals(lines, POLICY, coupon) == calculate_totals(
            lines, POLICY, coupon
        )


class TestInvalidInput:
    def test_negative_quantity(self):
        with pytest.raises(ValidationError):
            calculate_totals([PriceLine(-1, D("1.00"))], POLICY)

    def test_negative_price(self):
        with pytest.raises(ValidationError):
            calculate_totals([PriceLine(1, D("-1.00"))], POLICY)

    def test_percentage_above_hundred(self):
        with pytest.raises(ValidationError):
            discount_for(D("10"), CouponTerms("percentage", D("101")))

    def test_negative_coupon_value(self):
        with pytest.raises(ValidationError):
            discount_for(D("10"), CouponTerms("fixed", D("-1")))

    def test_unknown_coupon_type(self):
        with pytest.raises(ValidationError):
            discount_for(D("10"), CouponTerms("bogo", D("1")))
