# Overview: Pure pricing arithmetic for carts and documents; line totals, discounts, taxes and rounding.

"""
Pricing Calculator

WHY: Tickets, quotes and invoices are all priced the same way. Keeping the
arithmetic in pure functions (no session, no request) lets the routes, the
document service and the preview endpoint share one implementation.

RULES:
- line total = unit_price * quantity - discount, never negative
- percentage discount clamped to [0, 100]; fixed discount to [0, line subtotal]
- taxes are computed on the pre-tax subtotal and summed (no compounding)
- money is computed exactly (Decimal) and rounded half-up to whole units
  once, when a breakdown is produced for persistence
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable

DISCOUNT_PERCENTAGE = "percentage"
DISCOUNT_FIXED = "fixed"
VALID_DISCOUNT_TYPES = (DISCOUNT_PERCENTAGE, DISCOUNT_FIXED)

TAX_PERCENTAGE = "percentage"
TAX_FIXED = "fixed"

ZERO = Decimal("0")
HUNDRED = Decimal("100")


class PricingError(Exception):
    """Raised for malformed pricing input."""
    pass


class TaxConfigurationError(PricingError):
    """Raised when a tax row cannot be interpreted (unknown type)."""
    pass


def to_decimal(value) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


@dataclass
class LineItem:
    """
    One cart entry.

    name and unit_price are a snapshot taken when the article was added, so
    later catalog edits never reprice an open cart.
    """
    name: str
    unit_price: int
    quantity: int = 1
    discount: Decimal = ZERO
    discount_type: str = DISCOUNT_PERCENTAGE
    article_id: int | None = None
    description: str | None = None

    def to_dict(self) -> dict:
        return {
            "article_id": self.article_id,
            "name": self.name,
            "description": self.description,
            "unit_price": self.unit_price,
            "quantity": self.quantity,
            "discount": float(self.discount) if self.discount % 1 else int(self.discount),
            "discount_type": self.discount_type,
        }


@dataclass(frozen=True)
class TaxRate:
    name: str
    rate: Decimal
    type: str = TAX_PERCENTAGE
    is_active: bool = True

    @classmethod
    def from_model(cls, tax) -> "TaxRate":
        return cls(name=tax.name, rate=to_decimal(tax.rate), type=tax.type, is_active=bool(tax.is_active))


@dataclass(frozen=True)
class TaxLine:
    name: str
    rate: Decimal
    type: str
    amount: Decimal

    def to_dict(self) -> dict:
        rate = float(self.rate) if self.rate % 1 else int(self.rate)
        return {"name": self.name, "rate": rate, "type": self.type, "amount": int(self.amount)}


@dataclass
class PricingBreakdown:
    """Rounded figures, ready to be persisted on a document."""
    line_totals: list[int] = field(default_factory=list)
    subtotal: int = 0
    discount_total: int = 0
    tax_lines: list[TaxLine] = field(default_factory=list)
    tax_total: int = 0
    total: int = 0

    def to_dict(self) -> dict:
        return {
            "line_totals": list(self.line_totals),
            "subtotal": self.subtotal,
            "discount_total": self.discount_total,
            "tax_lines": [t.to_dict() for t in self.tax_lines],
            "tax_total": self.tax_total,
            "total": self.total,
        }


def round_amount(value) -> int:
    """Round half up to a whole currency unit: 1200.4 -> 1200, 1200.5 -> 1201."""
    return int(to_decimal(value).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def clamp_discount(discount, discount_type: str, line_subtotal) -> Decimal:
    """
    Clamp a discount to its valid range for a line.

    percentage: [0, 100]
    fixed: [0, line subtotal]
    """
    value = to_decimal(discount)
    if discount_type == DISCOUNT_PERCENTAGE:
        return min(max(value, ZERO), HUNDRED)
    if discount_type == DISCOUNT_FIXED:
        return min(max(value, ZERO), max(to_decimal(line_subtotal), ZERO))
    raise PricingError(f"Invalid discount type: {discount_type}. Must be one of {list(VALID_DISCOUNT_TYPES)}")


def line_subtotal(item: LineItem) -> int:
    return item.unit_price * item.quantity


def line_discount(item: LineItem) -> Decimal:
    """Discount actually applied on the line (always consistent with line_total)."""
    gross = line_subtotal(item)
    discount = clamp_discount(item.discount, item.discount_type, gross)
    if item.discount_type == DISCOUNT_PERCENTAGE:
        applied = Decimal(gross) * discount / HUNDRED
    else:
        applied = discount
    return min(applied, Decimal(max(gross, 0)))


def line_total(item: LineItem) -> Decimal:
    return max(Decimal(line_subtotal(item)) - line_discount(item), ZERO)


def subtotal(items: Iterable[LineItem]) -> Decimal:
    return sum((line_total(item) for item in items), ZERO)


def discount_total(items: Iterable[LineItem]) -> Decimal:
    return sum((line_discount(item) for item in items), ZERO)


def compute_taxes(amount, taxes: Iterable[TaxRate]) -> list[TaxLine]:
    """
    One TaxLine per active tax, each computed on the same pre-tax amount.

    Raises TaxConfigurationError on an unknown tax type.
    """
    base = to_decimal(amount)
    lines: list[TaxLine] = []
    for tax in taxes:
        if not tax.is_active:
            continue
        rate = to_decimal(tax.rate)
        if tax.type == TAX_PERCENTAGE:
            tax_amount = base * rate / HUNDRED
        elif tax.type == TAX_FIXED:
            tax_amount = rate
        else:
            raise TaxConfigurationError(
                f"Tax '{tax.name}' has unknown type '{tax.type}'; expected 'percentage' or 'fixed'"
            )
        lines.append(TaxLine(name=tax.name, rate=rate, type=tax.type, amount=tax_amount))
    return lines


def total(amount, tax_lines: Iterable[TaxLine]) -> Decimal:
    return to_decimal(amount) + sum((t.amount for t in tax_lines), ZERO)


def price_cart(items: Iterable[LineItem], taxes: Iterable[TaxRate]) -> PricingBreakdown:
    """
    Price a cart for persistence.

    Each line total is rounded once; the subtotal is the sum of the rounded
    lines so that stored lines always add up to the stored subtotal. Taxes
    are computed on that subtotal and rounded individually.
    """
    items = list(items)
    rounded_lines = [round_amount(line_total(item)) for item in items]
    gross = sum(line_subtotal(item) for item in items)
    sub = sum(rounded_lines)

    tax_lines = [
        TaxLine(name=t.name, rate=t.rate, type=t.type, amount=Decimal(round_amount(t.amount)))
        for t in compute_taxes(sub, taxes)
    ]
    tax_sum = sum(int(t.amount) for t in tax_lines)

    return PricingBreakdown(
        line_totals=rounded_lines,
        subtotal=sub,
        discount_total=gross - sub,
        tax_lines=tax_lines,
        tax_total=tax_sum,
        total=sub + tax_sum,
    )


def format_currency(amount, label: str = "FCFA") -> str:
    """Receipt formatting: '2124' -> '2 124 FCFA'."""
    rounded = round_amount(amount)
    sign = "-" if rounded < 0 else ""
    grouped = f"{abs(rounded):,}".replace(",", " ")
    return f"{sign}{grouped} {label}"
