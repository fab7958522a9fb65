"""
Pricing calculator tests.

Verifies:
- Line totals, discount clamping and non-negative lines
- Taxes summed on the pre-tax subtotal (no compounding)
- Half-up rounding to whole currency units
"""

from decimal import Decimal

import pytest

from backoffice.services.pricing_service import (
    LineItem,
    PricingError,
    TaxConfigurationError,
    TaxRate,
    clamp_discount,
    compute_taxes,
    format_currency,
    line_discount,
    line_total,
    price_cart,
    round_amount,
    subtotal,
    total,
)

VAT = TaxRate(name="TVA", rate=Decimal("18"))
WITHHOLDING = TaxRate(name="Précompte", rate=Decimal("1"))


class TestLineArithmetic:

    def test_percentage_discount(self):
        item = LineItem(name="Filtre", unit_price=1000, quantity=2, discount=Decimal("10"))
        assert line_discount(item) == Decimal("200")
        assert line_total(item) == Decimal("1800")

    def test_fixed_discount(self):
        item = LineItem(name="Filtre", unit_price=1000, quantity=2, discount=Decimal("300"), discount_type="fixed")
        assert line_total(item) == Decimal("1700")

    def test_line_total_never_negative(self):
        item = LineItem(name="Filtre", unit_price=1000, quantity=1, discount=Decimal("5000"), discount_type="fixed")
        assert line_total(item) == Decimal("0")

    def test_subtotal_is_sum_of_lines(self):
        items = [
            LineItem(name="A", unit_price=1000, quantity=2, discount=Decimal("10")),
            LineItem(name="B", unit_price=250, quantity=4),
        ]
        assert subtotal(items) == Decimal("2800")


class TestClampDiscount:

    @pytest.mark.parametrize("raw,expected", [(-5, 0), (0, 0), (45, 45), (100, 100), (150, 100)])
    def test_percentage_range(self, raw, expected):
        assert clamp_discount(raw, "percentage", 1000) == Decimal(expected)

    @pytest.mark.parametrize("raw,expected", [(-1, 0), (400, 400), (1000, 1000), (1500, 1000)])
    def test_fixed_range(self, raw, expected):
        assert clamp_discount(raw, "fixed", 1000) == Decimal(expected)

    def test_unknown_type(self):
        with pytest.raises(PricingError):
            clamp_discount(10, "bogus", 1000)


class TestTaxes:

    def test_no_compounding(self):
        tax_lines = compute_taxes(1000, [WITHHOLDING, VAT])
        assert [t.amount for t in tax_lines] == [Decimal("10"), Decimal("180")]
        assert total(1000, tax_lines) == Decimal("1190")

    def test_fixed_tax_is_flat(self):
        stamp = TaxRate(name="Timbre", rate=Decimal("100"), type="fixed")
        assert total(5000, compute_taxes(5000, [stamp])) == Decimal("5100")

    def test_inactive_tax_ignored(self):
        inactive = TaxRate(name="Old", rate=Decimal("5"), is_active=False)
        assert compute_taxes(1000, [inactive]) == []

    def test_unknown_tax_type(self):
        with pytest.raises(TaxConfigurationError):
            compute_taxes(1000, [TaxRate(name="Weird", rate=Decimal("5"), type="compound")])


class TestRounding:

    @pytest.mark.parametrize("raw,expected", [
        ("1200.4", 1200),
        ("1200.5", 1201),
        ("1200.6", 1201),
        ("0.5", 1),
    ])
    def test_half_up(self, raw, expected):
        assert round_amount(Decimal(raw)) == expected

    def test_format_currency(self):
        assert format_currency(2124) == "2 124 FCFA"
        assert format_currency(1234567, "XOF") == "1 234 567 XOF"


class TestPriceCart:

    def test_reference_scenario(self):
        """1000 x 2, 10 % discount, 18 % VAT -> 1800 / 324 / 2124."""
        item = LineItem(name="Filtre", unit_price=1000, quantity=2, discount=Decimal("10"))
        breakdown = price_cart([item], [VAT])

        assert breakdown.line_totals == [1800]
        assert breakdown.subtotal == 1800
        assert breakdown.discount_total == 200
        assert breakdown.tax_total == 324
        assert breakdown.total == 2124

    def test_stored_lines_add_up_to_subtotal(self):
        items = [
            LineItem(name="A", unit_price=333, quantity=1, discount=Decimal("15")),
            LineItem(name="B", unit_price=999, quantity=3, discount=Decimal("7.5")),
        ]
        breakdown = price_cart(items, [VAT, WITHHOLDING])

        assert sum(breakdown.line_totals) == breakdown.subtotal
        assert breakdown.total == breakdown.subtotal + sum(int(t.amount) for t in breakdown.tax_lines)

    def test_empty_cart(self):
        breakdown = price_cart([], [VAT])
        assert breakdown.subtotal == 0
        assert breakdown.total == 0
