"""
Purchase receipt notifications, sent after an order is settled.
"""
import logging
from typing import Optional, Protocol

from storefront.config import Config
from storefront.logging_config import hash_identifier
from storefront.models import Order, User
from storefront.money import format_money

logger = logging.getLogger(__name__)


class ReceiptNotifier(Protocol):
    def send_receipt(self, order: Order, user: Optional[User]) -> None:
        ...


class LoggingReceiptNotifier:
    """Renders the receipt and writes it to the log instead of a mail transport"""

    def __init__(self, sender: Optional[str] = None, app_name: Optional[str] = None):
        self.sender = sender or Config.SENDER_EMAIL
        self.app_name = app_name or Config.APP_NAME

    def render(self, order: Order, user: Optional[User]) -> str:
        lines = [
            f"Order {order.id}",
            f"Purchased {order.created_at:%Y-%m-%d}",
            f"Paid {format_money(order.total_price)}",
        ]
        for item in order.order_items:
            lines.append(f"  {item.qty} x {item.name} @ {format_money(item.price)}")
        lines.extend([
            f"Items: {format_money(order.items_price)}",
            f"Tax: {format_money(order.tax_price)}",
            f"Shipping: {format_money(order.shipping_price)}",
            f"Total: {format_money(order.total_price)}",
        ])
        return "\n".join(lines)

    def send_receipt(self, order: Order, user: Optional[User]) -> None:
        if user is None:
            raise ValueError(f"No recipient for order {order.id}")
        logger.info(
            f"Sending receipt for order {order.id}",
            extra={
                "from": f"{self.app_name} <{self.sender}>",
                "hashed_recipient": hash_identifier(user.email),
                "subject": f"Order Confirmation {order.id}",
                "body": self.render(order, user),
            }
        )
