"""
Stock guard for quantity-increasing cart mutations.

The check is advisory: it reads the product's stock at the moment of the cart
write and takes no lock. Two sessions can each pass the guard for the last unit.
Authoritative stock only moves at settlement, where the decrement is
conditional (see ``OrderService.update_order_to_paid``).
"""
from storefront.exceptions import InsufficientStock


def check_available(product, requested_qty: int) -> bool:
    """True when ``requested_qty`` units of ``product`` are in stock."""
    return requested_qty <= product.stock


def ensure_available(product, requested_qty: int) -> None:
    if not check_available(product, requested_qty):
        raise InsufficientStock(product.id, requested_qty, product.stock)
