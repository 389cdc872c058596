"""
Cart pricing: the only place the four derived price fields are computed.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from storefront.config import Config
from storefront.money import ZERO, round2, to_decimal


@dataclass(frozen=True)
class CartPrices:
    items_price: Decimal
    shipping_price: Decimal
    tax_price: Decimal
    total_price: Decimal

    def as_dict(self) -> dict:
        return {
            "items_price": self.items_price,
            "shipping_price": self.shipping_price,
            "tax_price": self.tax_price,
            "total_price": self.total_price,
        }


ZERO_PRICES = CartPrices(ZERO, ZERO, ZERO, ZERO)


def shipping_for(items_price: Decimal) -> Decimal:
    """Free shipping from the threshold upwards, flat rate below it."""
    if items_price >= Config.FREE_SHIPPING_THRESHOLD:
        return ZERO
    return round2(Config.SHIPPING_PRICE)


def tax_for(items_price: Decimal) -> Decimal:
    return round2(Config.TAX_RATE * items_price)


def calc_price(items: Iterable) -> CartPrices:
    """
    Compute derived prices from cart or order line items.

    Each item needs ``price`` and ``qty``. An empty item set prices to zero
    across the board, which is also the state of a freshly cleared cart.
    """
    items = list(items)
    if not items:
        return ZERO_PRICES

    items_price = round2(sum((to_decimal(i.price) * i.qty for i in items), Decimal("0")))
    shipping_price = shipping_for(items_price)
    tax_price = tax_for(items_price)
    total_price = round2(items_price + shipping_price + tax_price)
    return CartPrices(
        items_price=items_price,
        shipping_price=shipping_price,
        tax_price=tax_price,
        total_price=total_price,
    )
