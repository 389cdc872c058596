from datetime import datetime, timezone

import pytest
from pydantic import ValidationError as PydanticValidationError

from storefront.exceptions import AlreadyDelivered, AlreadyPaid, NotPaid
from storefront.fulfillment import OrderStatus, mark_delivered, mark_paid, status_of
from storefront.models import Order

NOW = datetime(2026, 5, 1, 9, 30, tzinfo=timezone.utc)


@pytest.fixture()
def order(address):
    return Order(
        user_id="u1",
        shipping_address=address,
        payment_method="PayPal",
        items_price="50.00",
        shipping_price="10.00",
        tax_price="7.50",
        total_price="67.50",
    )


class TestTransitions:
    def test_new_order_is_created(self, order):
        assert status_of(order) is OrderStatus.CREATED

    def test_created_to_paid_to_delivered(self, order):
        paid = mark_paid(order, NOW)
        assert status_of(paid) is OrderStatus.PAID
        assert paid.paid_at == NOW

        delivered = mark_delivered(paid, NOW)
        assert status_of(delivered) is OrderStatus.DELIVERED
        assert delivered.delivered_at == NOW

    def test_transitions_do_not_mutate_input(self, order):
        mark_paid(order, NOW)
        assert order.is_paid is False
        assert order.paid_at is None

    def test_cannot_pay_twice(self, order):
        with pytest.raises(AlreadyPaid):
            mark_paid(mark_paid(order, NOW), NOW)

    def test_cannot_pay_delivered_order(self, order):
        delivered = mark_delivered(mark_paid(order, NOW), NOW)
        with pytest.raises(AlreadyPaid):
            mark_paid(delivered, NOW)

    def test_cannot_deliver_unpaid(self, order):
        with pytest.raises(NotPaid):
            mark_delivered(order, NOW)

    def test_cannot_deliver_twice(self, order):
        delivered = mark_delivered(mark_paid(order, NOW), NOW)
        with pytest.raises(AlreadyDelivered):
            mark_delivered(delivered, NOW)


class TestLifecycleInvariants:
    def test_paid_at_requires_is_paid(self, order):
        with pytest.raises(PydanticValidationError):
            Order(**{**order.model_dump(), "paid_at": NOW})

    def test_delivered_requires_paid(self, order):
        with pytest.raises(PydanticValidationError):
            Order(**{**order.model_dump(), "is_delivered": True, "delivered_at": NOW})

    def test_stored_order_round_trips(self, order):
        paid = mark_paid(order, NOW)
        assert Order.model_validate_json(paid.model_dump_json()) == paid
