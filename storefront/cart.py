"""
Cart engine: pure add/remove mutations on the Cart aggregate.

Functions here never touch storage. Each returns a new, repriced ``Cart`` and
leaves its input untouched, so a failed mutation cannot leak partial state.
"""
from typing import Optional, Tuple

from storefront.exceptions import CartNotFound, ItemNotFound, NoSession
from storefront.models import Cart, CartItem, Product, RequestContext
from storefront.stock import ensure_available


def new_cart_for(context: RequestContext, items) -> Cart:
    """Create a cart owned by the user when signed in, else by the session"""
    if context.user_id:
        return Cart.priced(items=items, user_id=context.user_id)
    return Cart.priced(items=items, session_cart_id=context.session_cart_id)


def add_item(cart: Optional[Cart], product: Product, context: RequestContext) -> Tuple[Cart, bool]:
    """
    Add one unit of ``product`` to ``cart``.

    Returns the updated cart and whether the product was already in it.

    Raises:
        NoSession: no session cart id on the request
        InsufficientStock: the resulting quantity exceeds product stock
    """
    if not context.session_cart_id:
        raise NoSession()

    if cart is None:
        ensure_available(product, 1)
        return new_cart_for(context, [CartItem.from_product(product)]), False

    existing = cart.find_item(product.id)
    if existing is not None:
        ensure_available(product, existing.qty + 1)
        items = [
            i.model_copy(update={"qty": i.qty + 1}) if i.product_id == product.id else i
            for i in cart.items
        ]
        return cart.with_items(items), True

    ensure_available(product, 1)
    return cart.with_items(cart.items + [CartItem.from_product(product)]), False


def remove_item(cart: Optional[Cart], product_id: str) -> Tuple[Cart, bool]:
    """
    Remove one unit of ``product_id``; the line item goes away at qty 1.

    Returns the updated cart and whether the line item was removed entirely.
    """
    if cart is None:
        raise CartNotFound()

    existing = cart.find_item(product_id)
    if existing is None:
        raise ItemNotFound(product_id)

    if existing.qty == 1:
        items = [i for i in cart.items if i.product_id != product_id]
        return cart.with_items(items), True

    items = [
        i.model_copy(update={"qty": i.qty - 1}) if i.product_id == product_id else i
        for i in cart.items
    ]
    return cart.with_items(items), False


def clear(cart: Cart) -> Cart:
    """Empty the cart; prices drop to zero with the items"""
    return cart.with_items([])
