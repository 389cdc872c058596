"""
Redis key layout and (de)serialization for products, carts, users, reviews and orders.

Reads accept an optional ``UnitOfWork``; when one is given the read goes
through it, so the key is watched for the rest of that transaction.
Writes are always queued on a unit of work.
"""
import math
from typing import List, Optional, Tuple

from storefront.config import Config
from storefront.models import Cart, Order, OrderItem, Product, RequestContext, Review, User
from storefront.redis_client import RedisClient
from storefront.unit_of_work import UnitOfWork


def _score(model) -> float:
    return model.created_at.timestamp()


def total_pages(count: int, page_size: int) -> int:
    return max(1, math.ceil(count / page_size)) if page_size > 0 else 1


class _Repository:
    def __init__(self, redis: RedisClient):
        self.redis = redis

    def _get(self, key: str, uow: Optional[UnitOfWork] = None) -> Optional[str]:
        if uow is not None:
            return uow.get(key)
        return self.redis.get(key)


class ProductRepository(_Repository):
    INDEX = "products"

    @staticmethod
    def key(product_id: str) -> str:
        return f"product:{product_id}"

    @staticmethod
    def slug_key(slug: str) -> str:
        return f"product:slug:{slug}"

    def get(self, product_id: str, uow: Optional[UnitOfWork] = None) -> Optional[Product]:
        data = self._get(self.key(product_id), uow)
        return Product.model_validate_json(data) if data else None

    def get_by_slug(self, slug: str) -> Optional[Product]:
        product_id = self.redis.get(self.slug_key(slug))
        return self.get(product_id) if product_id else None

    def get_many(self, product_ids: List[str]) -> List[Product]:
        values = self.redis.mget([self.key(pid) for pid in product_ids])
        return [Product.model_validate_json(v) for v in values if v]

    def latest(self, limit: int) -> List[Product]:
        return self.get_many(self.redis.zrevrange(self.INDEX, 0, limit - 1))

    def all(self) -> List[Product]:
        """All products, newest first"""
        return self.get_many(self.redis.zrevrange(self.INDEX, 0, -1))

    def count(self) -> int:
        return self.redis.zcard(self.INDEX)

    def slug_owner(self, slug: str, uow: Optional[UnitOfWork] = None) -> Optional[str]:
        return self._get(self.slug_key(slug), uow)

    def save(self, uow: UnitOfWork, product: Product, previous_slug: Optional[str] = None) -> None:
        if previous_slug and previous_slug != product.slug:
            uow.delete(self.slug_key(previous_slug))
        uow.set(self.key(product.id), product.model_dump_json())
        uow.set(self.slug_key(product.slug), product.id)
        uow.zadd(self.INDEX, {product.id: _score(product)})

    def delete(self, uow: UnitOfWork, product: Product) -> None:
        uow.delete(self.key(product.id), self.slug_key(product.slug))
        uow.zrem(self.INDEX, product.id)


class CartRepository(_Repository):

    @staticmethod
    def key(cart_id: str) -> str:
        return f"cart:{cart_id}"

    @staticmethod
    def owner_key(cart: Cart) -> str:
        if cart.user_id:
            return f"cart:user:{cart.user_id}"
        return f"cart:session:{cart.session_cart_id}"

    @staticmethod
    def lookup_key(context: RequestContext) -> Optional[str]:
        if context.user_id:
            return f"cart:user:{context.user_id}"
        if context.session_cart_id:
            return f"cart:session:{context.session_cart_id}"
        return None

    @staticmethod
    def ttl_for(cart: Cart) -> int:
        if cart.user_id:
            return Config.CART_TTL_SECONDS
        return Config.GUEST_CART_TTL_SECONDS

    def get(self, cart_id: str, uow: Optional[UnitOfWork] = None) -> Optional[Cart]:
        data = self._get(self.key(cart_id), uow)
        return Cart.model_validate_json(data) if data else None

    def find_for(self, context: RequestContext, uow: Optional[UnitOfWork] = None) -> Optional[Cart]:
        """Look up the cart of the authenticated user, or of the anonymous session"""
        lookup = self.lookup_key(context)
        if lookup is None:
            return None
        cart_id = self._get(lookup, uow)
        if not cart_id:
            return None
        return self.get(cart_id, uow)

    def save(self, uow: UnitOfWork, cart: Cart) -> None:
        ttl = self.ttl_for(cart)
        uow.set(self.key(cart.id), cart.model_dump_json(), ex=ttl)
        uow.set(self.owner_key(cart), cart.id, ex=ttl)


class UserRepository(_Repository):
    INDEX = "users"

    @staticmethod
    def key(user_id: str) -> str:
        return f"user:{user_id}"

    def get(self, user_id: str, uow: Optional[UnitOfWork] = None) -> Optional[User]:
        data = self._get(self.key(user_id), uow)
        return User.model_validate_json(data) if data else None

    def count(self) -> int:
        return self.redis.zcard(self.INDEX)

    def save(self, uow: UnitOfWork, user: User) -> None:
        uow.set(self.key(user.id), user.model_dump_json())
        uow.zadd(self.INDEX, {user.id: _score(user)})


class ReviewRepository(_Repository):

    @staticmethod
    def key(review_id: str) -> str:
        return f"review:{review_id}"

    @staticmethod
    def product_index(product_id: str) -> str:
        return f"reviews:product:{product_id}"

    @staticmethod
    def author_key(user_id: str, product_id: str) -> str:
        return f"review:user:{user_id}:product:{product_id}"

    def get(self, review_id: str, uow: Optional[UnitOfWork] = None) -> Optional[Review]:
        data = self._get(self.key(review_id), uow)
        return Review.model_validate_json(data) if data else None

    def find_by_author(self, user_id: str, product_id: str, uow: Optional[UnitOfWork] = None) -> Optional[Review]:
        review_id = self._get(self.author_key(user_id, product_id), uow)
        return self.get(review_id, uow) if review_id else None

    def for_product(self, product_id: str, uow: Optional[UnitOfWork] = None) -> List[Review]:
        """Reviews of a product, newest first; watched when read through ``uow``"""
        index = self.product_index(product_id)
        if uow is None:
            values = self.redis.mget([self.key(rid) for rid in self.redis.zrevrange(index, 0, -1)])
        else:
            values = [uow.get(self.key(rid)) for rid in reversed(uow.zrange(index))]
        return [Review.model_validate_json(v) for v in values if v]

    def save(self, uow: UnitOfWork, review: Review) -> None:
        uow.set(self.key(review.id), review.model_dump_json())
        uow.set(self.author_key(review.user_id, review.product_id), review.id)
        uow.zadd(self.product_index(review.product_id), {review.id: _score(review)})


class OrderRepository(_Repository):
    INDEX = "orders"

    @staticmethod
    def key(order_id: str) -> str:
        return f"order:{order_id}"

    @staticmethod
    def items_key(order_id: str) -> str:
        return f"order:{order_id}:items"

    @staticmethod
    def user_index(user_id: str) -> str:
        return f"orders:user:{user_id}"

    def get(self, order_id: str, uow: Optional[UnitOfWork] = None) -> Optional[Order]:
        """Load an order header together with its line items"""
        data = self._get(self.key(order_id), uow)
        if not data:
            return None
        if uow is not None:
            raw_items = uow.lrange(self.items_key(order_id))
        else:
            raw_items = self.redis.lrange(self.items_key(order_id))
        order = Order.model_validate_json(data)
        order.order_items = [OrderItem.model_validate_json(raw) for raw in raw_items]
        return order

    def get_many(self, order_ids: List[str]) -> List[Order]:
        return [order for order in (self.get(oid) for oid in order_ids) if order is not None]

    def add(self, uow: UnitOfWork, order: Order) -> None:
        """Queue the order header, one entry per line item, and index entries"""
        self.save_header(uow, order)
        for item in order.order_items:
            uow.rpush(self.items_key(order.id), item.model_dump_json())
        uow.zadd(self.INDEX, {order.id: _score(order)})
        uow.zadd(self.user_index(order.user_id), {order.id: _score(order)})

    def save_header(self, uow: UnitOfWork, order: Order) -> None:
        uow.set(self.key(order.id), order.model_dump_json(exclude={"order_items"}))

    def delete(self, uow: UnitOfWork, order: Order) -> None:
        uow.delete(self.key(order.id), self.items_key(order.id))
        uow.zrem(self.INDEX, order.id)
        uow.zrem(self.user_index(order.user_id), order.id)

    def page_for_user(self, user_id: str, page: int, page_size: int) -> Tuple[List[Order], int]:
        return self._page(self.user_index(user_id), page, page_size)

    def page_all(self, page: int, page_size: int) -> Tuple[List[Order], int]:
        return self._page(self.INDEX, page, page_size)

    def _page(self, index: str, page: int, page_size: int) -> Tuple[List[Order], int]:
        start = (max(page, 1) - 1) * page_size
        order_ids = self.redis.zrevrange(index, start, start + page_size - 1)
        return self.get_many(order_ids), total_pages(self.redis.zcard(index), page_size)

    def latest(self, limit: int) -> List[Order]:
        return self.get_many(self.redis.zrevrange(self.INDEX, 0, limit - 1))

    def all_headers(self) -> List[Order]:
        """Every order header without line items, newest first"""
        order_ids = self.redis.zrevrange(self.INDEX, 0, -1)
        values = self.redis.mget([self.key(oid) for oid in order_ids])
        return [Order.model_validate_json(v) for v in values if v]

    def count(self) -> int:
        return self.redis.zcard(self.INDEX)
