# Overview: In-memory line-item cart used to assemble tickets, quotes and invoices before they are priced and persisted.

"""
Line-Item Cart

WHY: Every mutation is validated when it happens (quantity, discount range,
available stock) so that the calculator only ever sees valid lines.

- quantity <= 0 is ignored (no-op), never stored
- percentage discounts are clamped to [0, 100]
- fixed discounts are clamped to [0, line subtotal] and re-clamped when the
  quantity shrinks
"""

from __future__ import annotations

from decimal import Decimal

from .pricing_service import (
    DISCOUNT_FIXED,
    DISCOUNT_PERCENTAGE,
    VALID_DISCOUNT_TYPES,
    LineItem,
    PricingBreakdown,
    TaxRate,
    clamp_discount,
    line_subtotal,
    price_cart,
    to_decimal,
)


class CartError(Exception):
    """Raised for invalid cart operations (unknown line, stock exceeded)."""
    pass


class Cart:
    def __init__(self, items: list[LineItem] | None = None):
        self._items: list[LineItem] = list(items or [])

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self):
        return iter(self._items)

    @property
    def items(self) -> list[LineItem]:
        return list(self._items)

    @property
    def is_empty(self) -> bool:
        return not self._items

    def _line(self, index: int) -> LineItem:
        if index < 0 or index >= len(self._items):
            raise CartError(f"Cart line {index} does not exist")
        return self._items[index]

    def _article_quantity(self, article_id: int, *, skip: int | None = None) -> int:
        return sum(
            item.quantity
            for index, item in enumerate(self._items)
            if item.article_id == article_id and index != skip
        )

    def _mergeable(self, article_id, unit_price: int, discount: Decimal, discount_type: str) -> int | None:
        if article_id is None:
            return None
        # A fixed discount is an amount per line; folding two lines would drop one of them
        if discount_type == DISCOUNT_FIXED and discount:
            return None
        for index, item in enumerate(self._items):
            if (
                item.article_id == article_id
                and item.unit_price == unit_price
                and item.discount_type == discount_type
                and item.discount == discount
            ):
                return index
        return None

    def add(
        self,
        *,
        name: str,
        unit_price: int,
        quantity: int = 1,
        article_id: int | None = None,
        description: str | None = None,
        available_stock: int | None = None,
        discount=0,
        discount_type: str = DISCOUNT_PERCENTAGE,
    ) -> int:
        """
        Add an article (or free-text line) and return its line index.

        Adding an article already in the cart at the same unit price and the
        same percentage discount (or no discount) increases that line's
        quantity. Any other price or discount opens a new line, so every
        line keeps the discount it was added with. Free-text lines are never
        merged. available_stock, when given, caps the article's quantity
        summed over all of its lines.
        """
        if quantity <= 0:
            raise CartError("Quantity must be at least 1")
        if unit_price < 0:
            raise CartError("Unit price cannot be negative")
        if discount_type not in VALID_DISCOUNT_TYPES:
            raise CartError(f"Invalid discount type: {discount_type}")

        if article_id is not None and available_stock is not None:
            if self._article_quantity(article_id) + quantity > available_stock:
                raise CartError(f"Insufficient stock for {name}: {available_stock} available")

        discount = clamp_discount(to_decimal(discount), discount_type, unit_price * quantity)
        index = self._mergeable(article_id, unit_price, discount, discount_type)
        if index is not None:
            self._items[index].quantity += quantity
            return index

        self._items.append(LineItem(
            article_id=article_id,
            name=name,
            description=description,
            unit_price=unit_price,
            quantity=quantity,
            discount=discount,
            discount_type=discount_type,
        ))
        return len(self._items) - 1

    def set_quantity(self, index: int, quantity: int, *, available_stock: int | None = None) -> None:
        item = self._line(index)
        if quantity <= 0:
            return
        if available_stock is not None and item.article_id is not None:
            if self._article_quantity(item.article_id, skip=index) + quantity > available_stock:
                raise CartError(f"Insufficient stock for {item.name}: {available_stock} available")
        item.quantity = quantity
        if item.discount_type == DISCOUNT_FIXED:
            item.discount = clamp_discount(item.discount, DISCOUNT_FIXED, line_subtotal(item))

    def set_discount(self, index: int, discount, discount_type: str = DISCOUNT_PERCENTAGE) -> Decimal:
        if discount_type not in VALID_DISCOUNT_TYPES:
            raise CartError(f"Invalid discount type: {discount_type}")
        item = self._line(index)
        item.discount_type = discount_type
        item.discount = clamp_discount(to_decimal(discount), discount_type, line_subtotal(item))
        return item.discount

    def remove(self, index: int) -> LineItem:
        self._line(index)
        return self._items.pop(index)

    def clear(self) -> None:
        self._items.clear()

    def quantities_by_article(self) -> dict[int, int]:
        totals: dict[int, int] = {}
        for item in self._items:
            if item.article_id is not None:
                totals[item.article_id] = totals.get(item.article_id, 0) + item.quantity
        return totals

    def price(self, taxes: list[TaxRate]) -> PricingBreakdown:
        return price_cart(self._items, taxes)
