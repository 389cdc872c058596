"""
Cart service: request-scoped cart operations persisted in Redis.
"""
import logging
from typing import Optional

from storefront import cart as cart_engine
from storefront.actions import action
from storefront.exceptions import NoSession, ProductNotFound, RedirectRequired
from storefront.logging_config import hash_identifier
from storefront.models import ActionResult, AddToCartRequest, Cart, RequestContext
from storefront.redis_client import RedisClient, get_redis_client
from storefront.repositories import CartRepository, ProductRepository
from storefront.unit_of_work import UnitOfWork, run_in_transaction
from storefront.validators import require_valid

logger = logging.getLogger(__name__)


class CartService:
    """Service for cart operations"""

    def __init__(self, redis: Optional[RedisClient] = None):
        self.redis = redis or get_redis_client()
        self.carts = CartRepository(self.redis)
        self.products = ProductRepository(self.redis)

    def get_my_cart(self, context: RequestContext) -> Optional[Cart]:
        """Cart of the signed-in user, else of the session; None when there is none"""
        return self.carts.find_for(context)

    def require_cart(self, context: RequestContext) -> Cart:
        """Return the caller's non-empty cart or redirect them back to it"""
        cart = self.get_my_cart(context)
        if cart is None or not cart.items:
            raise RedirectRequired("/cart")
        return cart

    @action
    def add_item(self, context: RequestContext, data) -> ActionResult:
        """
        Add one unit of a product to the caller's cart, creating the cart on
        first use.

        The stock check reads the product inside the same transaction as the
        cart write, but nothing is reserved: another session can still take
        the last unit before this cart is checked out.
        """
        if not context.session_cart_id:
            raise NoSession()
        request = require_valid(AddToCartRequest, data)

        def work(uow: UnitOfWork):
            product = self.products.get(request.product_id, uow)
            if product is None:
                raise ProductNotFound(request.product_id)
            current = self.carts.find_for(context, uow)
            updated, existed = cart_engine.add_item(current, product, context)
            self.carts.save(uow, updated)
            return product, updated, existed

        product, updated, existed = run_in_transaction(self.redis, work)

        logger.info(
            "Cart item added",
            extra={
                "hashed_cart_id": hash_identifier(updated.id),
                "product_id": product.id,
                "items_price": str(updated.items_price),
            }
        )
        if existed:
            return ActionResult(success=True, message=f"{product.name} updated in cart successfully")
        return ActionResult(success=True, message=f"{product.name} added to cart successfully")

    @action
    def remove_item(self, context: RequestContext, product_id: str) -> ActionResult:
        """
        Remove one unit of a product; the line item goes away at qty 1.

        Works from the cart line alone, so items whose product has left the
        catalog can still be removed.
        """
        if not context.session_cart_id:
            raise NoSession()

        def work(uow: UnitOfWork):
            current = self.carts.find_for(context, uow)
            updated, removed = cart_engine.remove_item(current, product_id)
            self.carts.save(uow, updated)
            return current.find_item(product_id), updated, removed

        line, updated, removed = run_in_transaction(self.redis, work)

        logger.info(
            "Cart item removed",
            extra={
                "hashed_cart_id": hash_identifier(updated.id),
                "product_id": product_id,
                "line_removed": removed,
            }
        )
        if removed:
            return ActionResult(success=True, message=f"{line.name} removed from cart successfully")
        return ActionResult(success=True, message=f"{line.name} updated in cart successfully")
