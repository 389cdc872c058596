from decimal import Decimal

import pytest

from storefront.models import CartItem
from storefront.pricing import calc_price


def item(price: str, qty: int = 1, product_id: str = "p1") -> CartItem:
    return CartItem(product_id=product_id, name="Item", slug="item", price=price, qty=qty)


class TestCalcPrice:
    def test_free_shipping_at_threshold(self):
        prices = calc_price([item("100.00")])
        assert prices.items_price == Decimal("100.00")
        assert prices.shipping_price == Decimal("0.00")

    def test_flat_shipping_below_threshold(self):
        prices = calc_price([item("99.99")])
        assert prices.shipping_price == Decimal("10.00")

    def test_tax_is_fifteen_percent(self):
        assert calc_price([item("100.00")]).tax_price == Decimal("15.00")

    def test_tax_rounds_half_up(self):
        # 0.15 * 0.10 = 0.015
        assert calc_price([item("0.10")]).tax_price == Decimal("0.02")

    def test_items_price_sums_price_times_qty(self):
        prices = calc_price([item("33.33", qty=3, product_id="a"), item("0.01", product_id="b")])
        assert prices.items_price == Decimal("100.00")

    @pytest.mark.parametrize("lines", [
        [("19.99", 1)],
        [("50.00", 2)],
        [("12.34", 3), ("0.99", 7)],
        [("99.99", 1), ("0.01", 1)],
        [("1234.56", 4)],
    ])
    def test_total_is_sum_of_components(self, lines):
        items = [item(p, q, product_id=str(i)) for i, (p, q) in enumerate(lines)]
        prices = calc_price(items)
        assert prices.total_price == prices.items_price + prices.shipping_price + prices.tax_price
        for value in prices.as_dict().values():
            assert value == value.quantize(Decimal("0.01"))

    def test_empty_items_price_to_zero(self):
        prices = calc_price([])
        assert prices.as_dict() == {
            "items_price": Decimal("0"),
            "shipping_price": Decimal("0"),
            "tax_price": Decimal("0"),
            "total_price": Decimal("0"),
        }
