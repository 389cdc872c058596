"""
Custom exceptions for the storefront core.

Every failure kind a cart or order operation can report is a ``StorefrontError``
with a stable ``code``. ``RedirectRequired`` is not part of that
hierarchy: it is a navigation signal that result wrappers re-raise unchanged.
"""
from typing import List, Optional


class StorefrontError(Exception):
    """Base exception for cart and order operations"""
    code = "OPERATION_FAILED"
    default_message = "Operation failed"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthenticated(StorefrontError):
    code = "UNAUTHENTICATED"
    default_message = "User not authenticated"


class NoSession(StorefrontError):
    code = "NO_SESSION"
    default_message = "No session cart ID found"


class ProductNotFound(StorefrontError):
    """Raised when a product id or slug is unknown to the catalog"""
    code = "PRODUCT_NOT_FOUND"

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Product not found: {product_id}")


class InsufficientStock(StorefrontError):
    """Raised when a requested quantity exceeds available stock"""
    code = "INSUFFICIENT_STOCK"

    def __init__(self, product_id: str, requested: int, available: int):
        self.product_id = product_id
        self.requested = requested
        self.available = available
        super().__init__("Not enough stock available")


class CartNotFound(StorefrontError):
    code = "CART_NOT_FOUND"
    default_message = "Cart not found"


class ItemNotFound(StorefrontError):
    """Raised when a product is not present in the cart"""
    code = "ITEM_NOT_FOUND"

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__("Item not found in cart")


class MissingAddress(StorefrontError):
    code = "MISSING_ADDRESS"
    default_message = "Shipping address is missing"


class MissingPaymentMethod(StorefrontError):
    code = "MISSING_PAYMENT_METHOD"
    default_message = "Payment method is missing"


class EmptyCart(StorefrontError):
    code = "EMPTY_CART"
    default_message = "Cart is empty"


class OrderNotFound(StorefrontError):
    code = "ORDER_NOT_FOUND"

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Order not found: {order_id}")


class AlreadyPaid(StorefrontError):
    code = "ALREADY_PAID"
    default_message = "Order is already paid"


class NotPaid(StorefrontError):
    code = "NOT_PAID"
    default_message = "Order is not paid"


class AlreadyDelivered(StorefrontError):
    code = "ALREADY_DELIVERED"
    default_message = "Order is already delivered"


class ValidationError(StorefrontError):
    """Raised when an input shape fails validation"""
    code = "VALIDATION_ERROR"

    def __init__(self, message: str, reasons: Optional[List[str]] = None):
        self.reasons = reasons or [message]
        super().__init__(message)


class OperationFailed(StorefrontError):
    """Generic storage or transaction failure"""
    code = "OPERATION_FAILED"


class StorageError(OperationFailed):
    """Raised when Redis is unreachable or rejects a command"""
    code = "STORAGE_UNAVAILABLE"


class RedirectRequired(Exception):
    """Navigation signal: the caller must send the user to ``location``"""

    def __init__(self, location: str):
        self.location = location
        super().__init__(f"Redirect to {location}")
