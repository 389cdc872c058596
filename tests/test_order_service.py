from datetime import datetime, timezone
from decimal import Decimal

import pytest

from storefront.cart_service import CartService
from storefront.exceptions import (
    AlreadyPaid,
    EmptyCart,
    InsufficientStock,
    MissingAddress,
    MissingPaymentMethod,
    OrderNotFound,
)
from storefront.models import PaymentResult, RequestContext
from storefront.order_service import OrderService, build_order_draft
from storefront.repositories import CartRepository, OrderRepository, ProductRepository


class RecordingNotifier:
    def __init__(self):
        self.sent = []

    def send_receipt(self, order, user):
        self.sent.append((order.id, user.email))


class FailingNotifier:
    def send_receipt(self, order, user):
        raise RuntimeError("mail transport down")


@pytest.fixture()
def notifier():
    return RecordingNotifier()


@pytest.fixture()
def orders(redis, notifier):
    return OrderService(redis, notifier)


@pytest.fixture()
def carts(redis):
    return CartService(redis)


def fill_cart(carts, context, *products_and_qty):
    for product, qty in products_and_qty:
        for _ in range(qty):
            assert carts.add_item(context, {"product_id": product.id}).success


def place_order(carts, orders, context, *products_and_qty):
    fill_cart(carts, context, *products_and_qty)
    result = orders.create_order(context)
    assert result.success, result.message
    return orders.get_order_by_id(result.order_id)


class TestBuildOrderDraft:
    def test_copies_cart_prices_and_snapshots_items(self, carts, make_product, shopper, shopper_context):
        product = make_product(price="50.00")
        fill_cart(carts, shopper_context, (product, 2))
        cart = carts.get_my_cart(shopper_context)

        draft = build_order_draft(cart, shopper)

        assert draft.user_id == shopper.id
        assert draft.payment_method == "PayPal"
        assert draft.shipping_address == shopper.address
        assert (draft.items_price, draft.shipping_price, draft.tax_price, draft.total_price) == (
            cart.items_price, cart.shipping_price, cart.tax_price, cart.total_price
        )
        assert [(i.product_id, i.price, i.qty, i.order_id) for i in draft.order_items] == [
            (product.id, Decimal("50.00"), 2, draft.id)
        ]
        assert draft.is_paid is False and draft.is_delivered is False

    def test_missing_address(self, make_user):
        with pytest.raises(MissingAddress):
            build_order_draft(None, make_user(payment_method="PayPal"))

    def test_missing_payment_method(self, make_user, address):
        with pytest.raises(MissingPaymentMethod):
            build_order_draft(None, make_user(address=address))

    def test_empty_cart(self, shopper):
        with pytest.raises(EmptyCart):
            build_order_draft(None, shopper)


class TestCreateOrder:
    def test_missing_address_redirects_without_creating_order(self, redis, carts, orders, make_product, make_user):
        user = make_user(payment_method="PayPal")
        context = RequestContext(user_id=user.id, session_cart_id="sess-1")
        fill_cart(carts, context, (make_product(price="50.00"), 2))

        result = orders.create_order(context)

        assert result.success is False
        assert result.redirect_to == "/shipping-address"
        assert result.message == "Shipping address is missing"
        assert OrderRepository(redis).count() == 0
        assert len(carts.get_my_cart(context).items) == 1

    def test_missing_payment_method_redirects(self, carts, orders, make_product, make_user, address):
        user = make_user(address=address)
        context = RequestContext(user_id=user.id, session_cart_id="sess-1")
        fill_cart(carts, context, (make_product(), 1))

        result = orders.create_order(context)

        assert result.success is False
        assert result.redirect_to == "/payment-method"

    def test_empty_cart_redirects(self, orders, shopper_context):
        result = orders.create_order(shopper_context)
        assert result.success is False
        assert result.redirect_to == "/cart"

    def test_requires_authenticated_user(self, orders, guest):
        result = orders.create_order(guest)
        assert result.success is False
        assert result.redirect_to is None
        assert result.message == "User not authenticated"

    def test_unknown_user_is_unauthenticated(self, orders):
        result = orders.create_order(RequestContext(user_id="ghost", session_cart_id="s"))
        assert result.success is False
        assert result.message == "User not authenticated"

    def test_creates_order_items_and_resets_cart(self, redis, carts, orders, make_product, shopper_context):
        shirt = make_product(price="50.00")
        socks = make_product(price="4.99")
        fill_cart(carts, shopper_context, (shirt, 2), (socks, 3))

        result = orders.create_order(shopper_context)

        assert result.success is True
        assert result.redirect_to == f"/order/{result.order_id}"
        assert OrderRepository(redis).count() == 1

        order = orders.get_order_by_id(result.order_id)
        assert order.user_id == shopper_context.user_id
        assert order.items_price == Decimal("114.97")
        assert order.shipping_price == Decimal("0.00")
        assert order.tax_price == Decimal("17.25")
        assert order.total_price == Decimal("132.22")
        assert [(i.product_id, i.qty) for i in order.order_items] == [(shirt.id, 2), (socks.id, 3)]
        assert all(i.order_id == order.id for i in order.order_items)

        cart = carts.get_my_cart(shopper_context)
        assert cart.items == []
        assert (cart.items_price, cart.shipping_price, cart.tax_price, cart.total_price) == (0, 0, 0, 0)

    def test_stock_is_untouched_until_settlement(self, redis, carts, orders, make_product, shopper_context):
        product = make_product(stock=5)
        place_order(carts, orders, shopper_context, (product, 2))
        assert ProductRepository(redis).get(product.id).stock == 5

    def test_price_snapshot_survives_catalog_change(self, redis, carts, orders, make_product, shopper_context):
        from storefront.product_service import ProductService

        product = make_product(price="50.00")
        order = place_order(carts, orders, shopper_context, (product, 1))

        data = product.model_dump(include={"name", "slug", "category", "brand", "description", "images", "stock"})
        assert ProductService(redis).update_product(product.id, {**data, "price": "75.00"}).success
        assert orders.get_order_by_id(order.id).order_items[0].price == Decimal("50.00")

    def test_stock_sold_out_before_checkout_blocks_order(self, redis, carts, orders, make_product, shopper_context):
        from storefront.product_service import ProductService

        product = make_product(stock=1)
        fill_cart(carts, shopper_context, (product, 1))
        before = carts.get_my_cart(shopper_context)
        data = product.model_dump(include={"name", "slug", "category", "brand", "description", "images", "price"})
        assert ProductService(redis).update_product(product.id, {**data, "stock": 0}).success

        result = orders.create_order(shopper_context)

        assert result.success is False
        assert result.message == "Not enough stock available"
        assert result.order_id is None
        assert OrderRepository(redis).count() == 0
        assert carts.get_my_cart(shopper_context) == before

    def test_product_deleted_before_checkout_blocks_order(self, redis, carts, orders, make_product, shopper_context):
        from storefront.product_service import ProductService

        product = make_product()
        fill_cart(carts, shopper_context, (product, 1))
        assert ProductService(redis).delete_product(product.id).success

        result = orders.create_order(shopper_context)

        assert result.success is False
        assert result.message == f"Product not found: {product.id}"
        assert OrderRepository(redis).count() == 0

    def test_failure_mid_transaction_persists_nothing(self, redis, carts, orders, make_product, shopper_context, monkeypatch):
        fill_cart(carts, shopper_context, (make_product(), 1))
        before = carts.get_my_cart(shopper_context)

        def broken_save(self, uow, cart):
            raise RuntimeError("disk full")

        monkeypatch.setattr(CartRepository, "save", broken_save)
        result = orders.create_order(shopper_context)

        assert result.success is False
        assert result.message == "disk full"
        assert OrderRepository(redis).count() == 0
        assert redis.client.keys("order:*") == []
        monkeypatch.undo()
        assert carts.get_my_cart(shopper_context) == before


class TestUpdateOrderToPaid:
    def test_decrements_stock_and_marks_paid(self, redis, carts, orders, notifier, make_product, shopper_context):
        shirt = make_product(stock=5)
        socks = make_product(stock=10)
        order = place_order(carts, orders, shopper_context, (shirt, 2), (socks, 1))
        paid_at = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)

        paid = orders.update_order_to_paid(order.id, now=paid_at)

        assert paid.is_paid is True
        assert paid.paid_at == paid_at
        products = ProductRepository(redis)
        assert products.get(shirt.id).stock == 3
        assert products.get(socks.id).stock == 9
        stored = orders.get_order_by_id(order.id)
        assert stored.is_paid is True
        assert len(stored.order_items) == 2
        assert notifier.sent == [(order.id, "jane@example.com")]

    def test_records_payment_result(self, carts, orders, make_product, shopper_context):
        order = place_order(carts, orders, shopper_context, (make_product(), 1))
        payment = PaymentResult(id="PAY-1", status="COMPLETED", email_address="jane@example.com", price_paid="67.50")

        orders.update_order_to_paid(order.id, payment_result=payment)

        assert orders.get_order_by_id(order.id).payment_result == payment

    def test_already_paid_does_not_double_decrement(self, redis, carts, orders, notifier, make_product, shopper_context):
        product = make_product(stock=5)
        order = place_order(carts, orders, shopper_context, (product, 2))
        orders.update_order_to_paid(order.id)

        with pytest.raises(AlreadyPaid):
            orders.update_order_to_paid(order.id)

        assert ProductRepository(redis).get(product.id).stock == 3
        assert len(notifier.sent) == 1

    def test_unknown_order(self, orders):
        with pytest.raises(OrderNotFound):
            orders.update_order_to_paid("missing")

    def test_insufficient_stock_aborts_settlement(self, redis, carts, orders, make_product, make_user, address):
        product = make_product(stock=1)
        first_user = make_user(address=address, payment_method="PayPal")
        second_user = make_user(email="john@example.com", address=address, payment_method="Stripe")
        first = RequestContext(user_id=first_user.id, session_cart_id="sess-a")
        second = RequestContext(user_id=second_user.id, session_cart_id="sess-b")
        first_order = place_order(carts, orders, first, (product, 1))
        second_order = place_order(carts, orders, second, (product, 1))

        orders.update_order_to_paid(first_order.id)
        with pytest.raises(InsufficientStock):
            orders.update_order_to_paid(second_order.id)

        assert ProductRepository(redis).get(product.id).stock == 0
        assert orders.get_order_by_id(second_order.id).is_paid is False

    def test_notification_failure_does_not_undo_payment(self, redis, carts, make_product, shopper_context):
        orders = OrderService(redis, FailingNotifier())
        product = make_product(stock=5)
        order = place_order(carts, orders, shopper_context, (product, 1))

        paid = orders.update_order_to_paid(order.id)

        assert paid.is_paid is True
        assert orders.get_order_by_id(order.id).is_paid is True
        assert ProductRepository(redis).get(product.id).stock == 4

    def test_cod_admin_action_wraps_errors(self, carts, orders, make_product, shopper_context):
        order = place_order(carts, orders, shopper_context, (make_product(), 1))
        assert orders.update_cod_order_to_paid(order.id).success is True

        result = orders.update_cod_order_to_paid(order.id)
        assert result.success is False
        assert result.message == "Order is already paid"


class TestDeliverOrder:
    def test_unpaid_order_cannot_be_delivered(self, carts, orders, make_product, shopper_context):
        order = place_order(carts, orders, shopper_context, (make_product(), 1))
        result = orders.deliver_order(order.id)
        assert result.success is False
        assert result.message == "Order is not paid"
        assert orders.get_order_by_id(order.id).is_delivered is False

    def test_delivers_paid_order(self, carts, orders, make_product, shopper_context):
        order = place_order(carts, orders, shopper_context, (make_product(), 1))
        orders.update_order_to_paid(order.id)
        delivered_at = datetime(2026, 2, 1, tzinfo=timezone.utc)

        result = orders.deliver_order(order.id, now=delivered_at)

        assert result.success is True
        stored = orders.get_order_by_id(order.id)
        assert stored.is_delivered is True
        assert stored.delivered_at == delivered_at

    def test_cannot_deliver_twice(self, carts, orders, make_product, shopper_context):
        order = place_order(carts, orders, shopper_context, (make_product(), 1))
        orders.update_order_to_paid(order.id)
        orders.deliver_order(order.id)

        result = orders.deliver_order(order.id)
        assert result.success is False
        assert result.message == "Order is already delivered"

    def test_unknown_order(self, orders):
        result = orders.deliver_order("missing")
        assert result.success is False
        assert result.message == "Order not found: missing"


class TestDeleteOrder:
    def test_deletes_order_and_items(self, redis, carts, orders, make_product, shopper_context):
        order = place_order(carts, orders, shopper_context, (make_product(), 1))

        result = orders.delete_order(order.id)

        assert result.success is True
        assert orders.get_order_by_id(order.id) is None
        assert redis.client.exists(OrderRepository.items_key(order.id)) == 0
        assert orders.get_my_orders(shopper_context).data == []

    def test_unknown_order_fails(self, orders):
        result = orders.delete_order("missing")
        assert result.success is False
        assert result.message == "Order not found: missing"


class TestOrderQueries:
    def test_my_orders_newest_first_and_paged(self, carts, orders, make_product, shopper_context):
        product = make_product(stock=50)
        placed = []
        for day in range(1, 4):
            context = RequestContext(
                user_id=shopper_context.user_id,
                session_cart_id=shopper_context.session_cart_id,
                now=datetime(2026, 3, day, tzinfo=timezone.utc),
            )
            placed.append(place_order(carts, orders, context, (product, 1)))

        first_page = orders.get_my_orders(shopper_context, page=1, limit=2)
        second_page = orders.get_my_orders(shopper_context, page=2, limit=2)

        assert first_page.total_pages == 2
        assert [o.id for o in first_page.data] == [placed[2].id, placed[1].id]
        assert [o.id for o in second_page.data] == [placed[0].id]

    def test_summary_totals_sales_by_month(self, carts, orders, make_product, shopper_context):
        product = make_product(price="50.00", stock=50)
        for month in (1, 1, 2):
            context = RequestContext(
                user_id=shopper_context.user_id,
                session_cart_id=shopper_context.session_cart_id,
                now=datetime(2026, month, 10, tzinfo=timezone.utc),
            )
            place_order(carts, orders, context, (product, 1))

        summary = orders.get_order_summary()

        assert summary.orders_count == 3
        assert summary.products_count == 1
        assert summary.users_count == 1
        assert summary.total_sales == Decimal("202.50")
        assert [(s.month, s.total_sales) for s in summary.sales_data] == [
            ("01/26", Decimal("135.00")),
            ("02/26", Decimal("67.50")),
        ]
        assert len(summary.latest_sales) == 3
