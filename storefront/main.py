"""
FastAPI application for the storefront: catalog, reviews, cart, checkout and order admin.
"""
import logging
import time
from typing import List, Optional

from fastapi import Depends, FastAPI, Header, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse

from storefront.cart_service import CartService
from storefront.config import Config
from storefront.exceptions import (
    OrderNotFound,
    ProductNotFound,
    RedirectRequired,
    StorageError,
    StorefrontError,
    Unauthenticated,
    ValidationError,
)
from storefront.logging_config import configure_logging
from storefront.middleware import MetricsMiddleware
from storefront.models import (
    ActionResult,
    AddToCartRequest,
    Cart,
    Order,
    OrderPage,
    OrderSummary,
    PaymentMethodRequest,
    PaymentResult,
    Product,
    ProductInput,
    ProductPage,
    RequestContext,
    Review,
    ReviewInput,
    ShippingAddress,
)
from storefront.notifications import LoggingReceiptNotifier, ReceiptNotifier
from storefront.order_service import OrderService
from storefront.product_service import ProductService
from storefront.redis_client import RedisClient, get_redis_client
from storefront.review_service import ReviewService
from storefront.user_service import UserService

configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Storefront API",
    description="Catalog, cart, checkout and order administration",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(MetricsMiddleware)


# Dependencies

def get_redis() -> RedisClient:
    return get_redis_client()


def get_notifier() -> ReceiptNotifier:
    return LoggingReceiptNotifier()


def get_cart_service(redis: RedisClient = Depends(get_redis)) -> CartService:
    return CartService(redis)


def get_order_service(
    redis: RedisClient = Depends(get_redis),
    notifier: ReceiptNotifier = Depends(get_notifier)
) -> OrderService:
    return OrderService(redis, notifier)


def get_product_service(redis: RedisClient = Depends(get_redis)) -> ProductService:
    return ProductService(redis)


def get_review_service(redis: RedisClient = Depends(get_redis)) -> ReviewService:
    return ReviewService(redis)


def get_user_service(redis: RedisClient = Depends(get_redis)) -> UserService:
    return UserService(redis)


def get_request_context(
    user_id: Optional[str] = Header(None, alias="X-User-ID", description="Authenticated user identifier"),
    session_cart_id: Optional[str] = Header(None, alias="X-Session-Cart-ID", description="Anonymous session cart identifier")
) -> RequestContext:
    return RequestContext(
        user_id=(user_id or "").strip() or None,
        session_cart_id=(session_cart_id or "").strip() or None,
    )


# Health check endpoint for ALB
@app.get("/health")
async def health_check(redis: RedisClient = Depends(get_redis)):
    """
    Health check endpoint.
    Always returns HTTP 200 if the application is running and reports
    Redis connectivity separately.
    """
    ping_start = time.time()
    redis_ok = redis.ping()
    redis_latency_ms = round((time.time() - ping_start) * 1000, 2)

    return JSONResponse(
        status_code=200,
        content={
            "status": "healthy",
            "service": Config.PROJECT_NAME,
            "redis": {
                "status": "healthy" if redis_ok else "unhealthy",
                "latency_ms": redis_latency_ms if redis_ok else None
            },
            "timestamp": time.time()
        }
    )


# Catalog endpoints
@app.get("/products/latest", response_model=List[Product])
def latest_products(products: ProductService = Depends(get_product_service)):
    return products.get_latest_products()


@app.get("/products", response_model=ProductPage)
def list_products(
    query: str = Query(""),
    category: str = Query(""),
    page: int = Query(1, ge=1),
    products: ProductService = Depends(get_product_service)
):
    return products.get_all_products(query=query, category=category, page=page)


@app.get("/products/{slug}", response_model=Product)
def product_by_slug(slug: str, products: ProductService = Depends(get_product_service)):
    product = products.get_product_by_slug(slug)
    if product is None:
        raise ProductNotFound(slug)
    return product


# Review endpoints
@app.get("/products/{product_id}/reviews", response_model=List[Review])
def product_reviews(product_id: str, reviews: ReviewService = Depends(get_review_service)):
    return reviews.get_reviews(product_id)


@app.get("/products/{product_id}/reviews/mine", response_model=Optional[Review])
def my_product_review(
    product_id: str,
    context: RequestContext = Depends(get_request_context),
    reviews: ReviewService = Depends(get_review_service)
):
    """The caller's own review of a product, or null"""
    return reviews.get_review_by_product_id(context, product_id)


@app.post("/reviews", response_model=ActionResult)
def create_update_review(
    request: ReviewInput,
    context: RequestContext = Depends(get_request_context),
    reviews: ReviewService = Depends(get_review_service)
):
    return reviews.create_update_review(context, request)


# Cart endpoints
@app.get("/cart", response_model=Optional[Cart])
def get_cart(
    context: RequestContext = Depends(get_request_context),
    carts: CartService = Depends(get_cart_service)
):
    """Get the caller's cart, or null when none has been created yet"""
    return carts.get_my_cart(context)


@app.post("/cart/items", response_model=ActionResult)
def add_cart_item(
    request: AddToCartRequest,
    context: RequestContext = Depends(get_request_context),
    carts: CartService = Depends(get_cart_service)
):
    return carts.add_item(context, request)


@app.delete("/cart/items/{product_id}", response_model=ActionResult)
def remove_cart_item(
    product_id: str,
    context: RequestContext = Depends(get_request_context),
    carts: CartService = Depends(get_cart_service)
):
    return carts.remove_item(context, product_id)


# Checkout endpoints
@app.get("/checkout/shipping-address", response_model=Optional[ShippingAddress])
def checkout_shipping_address(
    context: RequestContext = Depends(get_request_context),
    carts: CartService = Depends(get_cart_service),
    users: UserService = Depends(get_user_service)
):
    """Current shipping address for checkout; redirects to the cart when it is empty"""
    carts.require_cart(context)
    user = users.get_user(context.user_id) if context.user_id else None
    if user is None:
        raise Unauthenticated()
    return user.address


@app.put("/user/address", response_model=ActionResult)
def update_address(
    address: ShippingAddress,
    context: RequestContext = Depends(get_request_context),
    users: UserService = Depends(get_user_service)
):
    return users.update_user_address(context, address)


@app.put("/user/payment-method", response_model=ActionResult)
def update_payment_method(
    request: PaymentMethodRequest,
    context: RequestContext = Depends(get_request_context),
    users: UserService = Depends(get_user_service)
):
    return users.update_user_payment_method(context, request)


@app.post("/orders", response_model=ActionResult)
def create_order(
    context: RequestContext = Depends(get_request_context),
    orders: OrderService = Depends(get_order_service)
):
    """
    Place an order from the caller's cart.
    Clients must follow ``redirect_to`` before treating ``success: false`` as final.
    """
    return orders.create_order(context)


@app.get("/orders/mine", response_model=OrderPage)
def my_orders(
    page: int = Query(1, ge=1),
    context: RequestContext = Depends(get_request_context),
    orders: OrderService = Depends(get_order_service)
):
    return orders.get_my_orders(context, page=page)


@app.get("/orders/{order_id}", response_model=Order)
def order_by_id(order_id: str, orders: OrderService = Depends(get_order_service)):
    order = orders.get_order_by_id(order_id)
    if order is None:
        raise OrderNotFound(order_id)
    return order


@app.post("/orders/{order_id}/pay", response_model=Order)
def confirm_payment(
    order_id: str,
    payment_result: Optional[PaymentResult] = None,
    orders: OrderService = Depends(get_order_service)
):
    """Payment confirmation callback; settles the order"""
    return orders.update_order_to_paid(order_id, payment_result)


# Admin endpoints
@app.get("/admin/overview", response_model=OrderSummary)
def admin_overview(orders: OrderService = Depends(get_order_service)):
    return orders.get_order_summary()


@app.get("/admin/orders", response_model=OrderPage)
def admin_orders(page: int = Query(1, ge=1), orders: OrderService = Depends(get_order_service)):
    return orders.get_all_orders(page=page)


@app.put("/admin/orders/{order_id}/pay", response_model=ActionResult)
def admin_mark_paid(order_id: str, orders: OrderService = Depends(get_order_service)):
    return orders.update_cod_order_to_paid(order_id)


@app.put("/admin/orders/{order_id}/deliver", response_model=ActionResult)
def admin_deliver(order_id: str, orders: OrderService = Depends(get_order_service)):
    return orders.deliver_order(order_id)


@app.delete("/admin/orders/{order_id}", response_model=ActionResult)
def admin_delete_order(order_id: str, orders: OrderService = Depends(get_order_service)):
    return orders.delete_order(order_id)


@app.post("/admin/products", response_model=ActionResult)
def admin_create_product(data: ProductInput, products: ProductService = Depends(get_product_service)):
    return products.create_product(data)


@app.put("/admin/products/{product_id}", response_model=ActionResult)
def admin_update_product(
    product_id: str,
    data: ProductInput,
    products: ProductService = Depends(get_product_service)
):
    return products.update_product(product_id, data)


@app.delete("/admin/products/{product_id}", response_model=ActionResult)
def admin_delete_product(product_id: str, products: ProductService = Depends(get_product_service)):
    return products.delete_product(product_id)


# Error handlers
@app.exception_handler(RedirectRequired)
async def redirect_handler(request, exc: RedirectRequired):
    return RedirectResponse(url=exc.location, status_code=303)


@app.exception_handler(StorefrontError)
async def storefront_error_handler(request, exc: StorefrontError):
    if isinstance(exc, (OrderNotFound, ProductNotFound)):
        status_code = 404
    elif isinstance(exc, Unauthenticated):
        status_code = 401
    elif isinstance(exc, ValidationError):
        status_code = 422
    elif isinstance(exc, StorageError):
        status_code = 503
    else:
        status_code = 400
    return JSONResponse(
        status_code=status_code,
        content={"error": exc.code, "message": exc.message}
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request, exc):
    logger.error(f"Unhandled exception: {type(exc).__name__}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "message": str(exc),
            "type": type(exc).__name__
        }
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=Config.APP_PORT)
