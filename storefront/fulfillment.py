"""
Order lifecycle: Created -> Paid -> Delivered.

Transitions only move forward. Deleting an order is not a transition and is
handled by the order service directly.
"""
from datetime import datetime
from enum import Enum
from typing import Optional

from storefront.exceptions import AlreadyDelivered, AlreadyPaid, NotPaid
from storefront.models import Order, PaymentResult


class OrderStatus(Enum):
    CREATED = "Created"
    PAID = "Paid"
    DELIVERED = "Delivered"


def status_of(order: Order) -> OrderStatus:
    if order.is_delivered:
        return OrderStatus.DELIVERED
    if order.is_paid:
        return OrderStatus.PAID
    return OrderStatus.CREATED


def mark_paid(order: Order, now: datetime, payment_result: Optional[PaymentResult] = None) -> Order:
    """Created -> Paid"""
    if status_of(order) is not OrderStatus.CREATED:
        raise AlreadyPaid()
    update = {"is_paid": True, "paid_at": now}
    if payment_result is not None:
        update["payment_result"] = payment_result
    return order.model_copy(update=update)


def mark_delivered(order: Order, now: datetime) -> Order:
    """Paid -> Delivered"""
    status = status_of(order)
    if status is OrderStatus.CREATED:
        raise NotPaid()
    if status is OrderStatus.DELIVERED:
        raise AlreadyDelivered()
    return order.model_copy(update={"is_delivered": True, "delivered_at": now})
