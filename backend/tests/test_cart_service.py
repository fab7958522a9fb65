"""Line-item cart tests: merging, stock caps and discount clamping."""

from decimal import Decimal

import pytest

from backoffice.services.cart_service import Cart, CartError
from backoffice.services.pricing_service import TaxRate


class TestCart:

    def test_same_article_merges_into_one_line(self):
        cart = Cart()
        first = cart.add(article_id=1, name="Filtre", unit_price=1000, quantity=1)
        second = cart.add(article_id=1, name="Filtre", unit_price=1000, quantity=2)

        assert first == second
        assert len(cart) == 1
        assert cart.items[0].quantity == 3

    def test_free_text_lines_never_merge(self):
        cart = Cart()
        cart.add(name="Main d'oeuvre", unit_price=5000)
        cart.add(name="Main d'oeuvre", unit_price=5000)
        assert len(cart) == 2

    def test_stock_cap(self):
        cart = Cart()
        cart.add(article_id=1, name="Filtre", unit_price=1000, quantity=2, available_stock=3)
        with pytest.raises(CartError):
            cart.add(article_id=1, name="Filtre", unit_price=1000, quantity=2, available_stock=3)
        assert cart.items[0].quantity == 2

    def test_non_positive_quantity_rejected_on_add(self):
        with pytest.raises(CartError):
            Cart().add(name="X", unit_price=10, quantity=0)

    def test_set_quantity_zero_is_noop(self):
        cart = Cart()
        index = cart.add(article_id=1, name="Filtre", unit_price=1000, quantity=2)
        cart.set_quantity(index, 0)
        cart.set_quantity(index, -3)
        assert cart.items[index].quantity == 2

    def test_fixed_discount_reclamped_when_quantity_shrinks(self):
        cart = Cart()
        index = cart.add(article_id=1, name="Filtre", unit_price=1000, quantity=3)
        cart.set_discount(index, 2500, "fixed")
        cart.set_quantity(index, 2)
        assert cart.items[index].discount == Decimal("2000")

    def test_percentage_discount_clamped(self):
        cart = Cart()
        index = cart.add(name="X", unit_price=1000)
        assert cart.set_discount(index, 140, "percentage") == Decimal("100")

    def test_unknown_line(self):
        with pytest.raises(CartError):
            Cart().remove(0)

    def test_quantities_by_article_skips_free_text(self):
        cart = Cart()
        cart.add(article_id=7, name="Filtre", unit_price=1000, quantity=2)
        cart.add(name="Main d'oeuvre", unit_price=5000)
        assert cart.quantities_by_article() == {7: 2}

    def test_price(self):
        cart = Cart()
        index = cart.add(article_id=1, name="Filtre", unit_price=1000, quantity=2)
        cart.set_discount(index, 10)
        assert cart.price([TaxRate(name="TVA", rate=Decimal("18"))]).total == 2124

    def test_different_discounts_open_separate_lines(self):
        cart = Cart()
        first = cart.add(article_id=1, name="Filtre", unit_price=1000, discount=50)
        second = cart.add(article_id=1, name="Filtre", unit_price=1000)

        assert first != second
        assert [(i.quantity, i.discount) for i in cart.items] == [(1, Decimal("50")), (1, Decimal("0"))]
        assert cart.price([]).subtotal == 1500

    def test_fixed_discounts_never_merge(self):
        cart = Cart()
        cart.add(article_id=1, name="Filtre", unit_price=1000, discount=100, discount_type="fixed")
        cart.add(article_id=1, name="Filtre", unit_price=1000, discount=100, discount_type="fixed")

        assert len(cart) == 2
        assert cart.price([]).subtotal == 1800

    def test_stock_cap_spans_lines_of_one_article(self):
        cart = Cart()
        cart.add(article_id=1, name="Filtre", unit_price=1000, quantity=2, available_stock=3, discount=5)
        with pytest.raises(CartError):
            cart.add(article_id=1, name="Filtre", unit_price=1000, quantity=2, available_stock=3)
        assert cart.quantities_by_article() == {1: 2}
