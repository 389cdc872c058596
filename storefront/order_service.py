"""
Order service: checkout, settlement and fulfillment of orders in Redis.

Order creation writes the order header, its line items and the emptied cart in
one unit of work. Settlement decrements product stock and marks the order paid
in one unit of work; the receipt goes out afterwards as a post-commit hook.
"""
import logging
from collections import OrderedDict
from datetime import datetime
from decimal import Decimal
from typing import Dict, Optional

from storefront import cart as cart_engine
from storefront.actions import action
from storefront.config import Config
from storefront.exceptions import (
    EmptyCart,
    InsufficientStock,
    MissingAddress,
    MissingPaymentMethod,
    OperationFailed,
    OrderNotFound,
    ProductNotFound,
    Unauthenticated,
)
from storefront.fulfillment import mark_delivered, mark_paid
from storefront.logging_config import hash_identifier
from storefront.models import (
    ActionResult,
    Cart,
    MonthlySales,
    Order,
    OrderItem,
    OrderPage,
    OrderSummary,
    PaymentResult,
    RequestContext,
    User,
    new_id,
    utcnow,
)
from storefront.money import ZERO, round2
from storefront.notifications import LoggingReceiptNotifier, ReceiptNotifier
from storefront.redis_client import RedisClient, get_redis_client
from storefront.repositories import (
    CartRepository,
    OrderRepository,
    ProductRepository,
    UserRepository,
)
from storefront.stock import ensure_available
from storefront.unit_of_work import UnitOfWork, run_in_transaction

logger = logging.getLogger(__name__)

# Where the user can fix each missing checkout precondition
CHECKOUT_REDIRECTS = {
    MissingAddress: "/shipping-address",
    MissingPaymentMethod: "/payment-method",
    EmptyCart: "/cart",
}

LATEST_SALES_LIMIT = 6


def build_order_draft(cart: Optional[Cart], user: User, now: Optional[datetime] = None) -> Order:
    """
    Snapshot ``cart`` into an unsaved order for ``user``.

    Prices are copied from the cart as they stand, not recomputed, and each
    line item keeps the unit price it had in the cart.

    Raises:
        MissingAddress, MissingPaymentMethod, EmptyCart
    """
    if user.address is None:
        raise MissingAddress()
    if not user.payment_method:
        raise MissingPaymentMethod()
    if cart is None or not cart.items:
        raise EmptyCart()

    order_id = new_id()
    return Order(
        id=order_id,
        user_id=user.id,
        shipping_address=user.address,
        payment_method=user.payment_method,
        items_price=cart.items_price,
        shipping_price=cart.shipping_price,
        tax_price=cart.tax_price,
        total_price=cart.total_price,
        created_at=now or utcnow(),
        order_items=[
            OrderItem(
                order_id=order_id,
                product_id=item.product_id,
                name=item.name,
                slug=item.slug,
                image=item.image,
                price=item.price,
                qty=item.qty,
            )
            for item in cart.items
        ],
    )


class OrderService:
    """Service for order operations"""

    def __init__(self, redis: Optional[RedisClient] = None, notifier: Optional[ReceiptNotifier] = None):
        self.redis = redis or get_redis_client()
        self.notifier = notifier or LoggingReceiptNotifier()
        self.carts = CartRepository(self.redis)
        self.orders = OrderRepository(self.redis)
        self.products = ProductRepository(self.redis)
        self.users = UserRepository(self.redis)

    @action
    def create_order(self, context: RequestContext) -> ActionResult:
        """
        Turn the signed-in user's cart into an order.

        A missing address, payment method or cart item is not an error: the
        result carries ``redirect_to`` pointing at the page that fixes it.
        Every line item's product is re-read under WATCH; a product that is
        gone or short of stock fails the order and leaves the cart as it was.
        """
        if not context.user_id:
            raise Unauthenticated()

        def work(uow: UnitOfWork) -> Order:
            user = self.users.get(context.user_id, uow)
            if user is None:
                raise Unauthenticated()
            current = self.carts.find_for(context, uow)
            order = build_order_draft(current, user, context.now)

            for item in order.order_items:
                product = self.products.get(item.product_id, uow)
                if product is None:
                    raise ProductNotFound(item.product_id)
                ensure_available(product, item.qty)

            self.orders.add(uow, order)
            self.carts.save(uow, cart_engine.clear(current))
            return order

        try:
            order = run_in_transaction(self.redis, work)
        except (MissingAddress, MissingPaymentMethod, EmptyCart) as e:
            return ActionResult(success=False, message=e.message, redirect_to=CHECKOUT_REDIRECTS[type(e)])

        logger.info(
            f"Order created: {order.id}, Total: ${order.total_price}",
            extra={
                "order_id": order.id,
                "hashed_user_id": hash_identifier(order.user_id),
                "line_items": len(order.order_items),
            }
        )
        return ActionResult(
            success=True,
            message="Order created successfully",
            redirect_to=f"/order/{order.id}",
            order_id=order.id,
        )

    def update_order_to_paid(
        self,
        order_id: str,
        payment_result: Optional[PaymentResult] = None,
        now: Optional[datetime] = None
    ) -> Order:
        """
        Settle an order: decrement stock for every line item and mark it paid.

        Each decrement is conditional on enough stock remaining; if any line
        item cannot be covered the whole settlement aborts with
        ``InsufficientStock`` and nothing changes.

        Raises:
            OrderNotFound, AlreadyPaid, ProductNotFound, InsufficientStock
        """
        paid_at = now or utcnow()

        def work(uow: UnitOfWork) -> Order:
            order = self.orders.get(order_id, uow)
            if order is None:
                raise OrderNotFound(order_id)
            paid = mark_paid(order, paid_at, payment_result)

            required: Dict[str, int] = OrderedDict()
            for item in order.order_items:
                required[item.product_id] = required.get(item.product_id, 0) + item.qty

            updated_products = []
            for product_id, qty in required.items():
                product = self.products.get(product_id, uow)
                if product is None:
                    raise ProductNotFound(product_id)
                if product.stock < qty:
                    raise InsufficientStock(product_id, qty, product.stock)
                updated_products.append(product.model_copy(update={"stock": product.stock - qty}))

            for product in updated_products:
                self.products.save(uow, product)
            self.orders.save_header(uow, paid)
            uow.on_commit(lambda: self._send_receipt(paid))
            return paid

        order = run_in_transaction(self.redis, work)
        logger.info(f"Order paid: {order.id}", extra={"order_id": order.id})
        return order

    def _send_receipt(self, order: Order) -> None:
        self.notifier.send_receipt(order, self.users.get(order.user_id))

    @action
    def update_cod_order_to_paid(self, order_id: str) -> ActionResult:
        """Admin settlement for cash-on-delivery orders"""
        self.update_order_to_paid(order_id)
        return ActionResult(success=True, message="Order marked as paid")

    @action
    def deliver_order(self, order_id: str, now: Optional[datetime] = None) -> ActionResult:
        delivered_at = now or utcnow()

        def work(uow: UnitOfWork) -> Order:
            order = self.orders.get(order_id, uow)
            if order is None:
                raise OrderNotFound(order_id)
            delivered = mark_delivered(order, delivered_at)
            self.orders.save_header(uow, delivered)
            return delivered

        run_in_transaction(self.redis, work)
        logger.info(f"Order delivered: {order_id}", extra={"order_id": order_id})
        return ActionResult(success=True, message="Order has been marked delivered")

    @action
    def delete_order(self, order_id: str) -> ActionResult:
        def work(uow: UnitOfWork) -> None:
            order = self.orders.get(order_id, uow)
            if order is None:
                raise OperationFailed(f"Order not found: {order_id}")
            self.orders.delete(uow, order)

        run_in_transaction(self.redis, work)
        logger.info(f"Order deleted: {order_id}", extra={"order_id": order_id})
        return ActionResult(success=True, message="Order deleted successfully")

    def get_order_by_id(self, order_id: str) -> Optional[Order]:
        return self.orders.get(order_id)

    def get_my_orders(self, context: RequestContext, page: int = 1, limit: Optional[int] = None) -> OrderPage:
        if not context.user_id:
            raise Unauthenticated()
        orders, pages = self.orders.page_for_user(context.user_id, page, limit or Config.PAGE_SIZE)
        return OrderPage(data=orders, total_pages=pages)

    def get_all_orders(self, page: int = 1, limit: Optional[int] = None) -> OrderPage:
        orders, pages = self.orders.page_all(page, limit or Config.PAGE_SIZE)
        return OrderPage(data=orders, total_pages=pages)

    def get_order_summary(self) -> OrderSummary:
        """Admin overview: counts, total sales and sales per month"""
        headers = self.orders.all_headers()

        monthly: Dict[str, Decimal] = {}
        for order in sorted(headers, key=lambda o: o.created_at):
            month = order.created_at.strftime("%m/%y")
            monthly[month] = monthly.get(month, ZERO) + order.total_price

        return OrderSummary(
            orders_count=len(headers),
            products_count=self.products.count(),
            users_count=self.users.count(),
            total_sales=round2(sum((o.total_price for o in headers), ZERO)),
            sales_data=[MonthlySales(month=m, total_sales=round2(total)) for m, total in monthly.items()],
            latest_sales=self.orders.latest(LATEST_SALES_LIMIT),
        )
