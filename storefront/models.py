"""
Pydantic models for the catalog, carts, users, orders, requests and responses.
"""
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from storefront.money import Money, ZERO
from storefront.pricing import calc_price


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class RequestContext:
    """Identity and clock for one request, passed explicitly into core operations."""
    user_id: Optional[str] = None
    session_cart_id: Optional[str] = None
    now: datetime = field(default_factory=utcnow)

    @property
    def owner_key(self) -> Optional[str]:
        return self.user_id or self.session_cart_id


class Product(BaseModel):
    """Catalog product; authoritative source of price and stock"""
    id: str = Field(default_factory=new_id)
    name: str = Field(..., min_length=3)
    slug: str = Field(..., min_length=3)
    category: str = Field("", description="Product category")
    brand: str = Field("", description="Product brand")
    description: str = Field("", description="Product description")
    images: List[str] = Field(default_factory=list)
    price: Money
    stock: int = Field(0, ge=0)
    rating: Decimal = Field(Decimal("0"), ge=0, le=5)
    num_reviews: int = Field(0, ge=0)
    is_featured: bool = False
    banner: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)

    @property
    def image(self) -> str:
        return self.images[0] if self.images else ""


class CartItem(BaseModel):
    """Cart line item"""
    product_id: str = Field(..., min_length=1, description="Product identifier")
    name: str = Field(..., min_length=1)
    slug: str = Field(..., min_length=1)
    image: str = Field("", description="Product image")
    price: Money = Field(..., description="Unit price at time of add")
    qty: int = Field(..., ge=1, description="Item quantity")

    @classmethod
    def from_product(cls, product: Product) -> "CartItem":
        return cls(
            product_id=product.id,
            name=product.name,
            slug=product.slug,
            image=product.image,
            price=product.price,
            qty=1,
        )


class Cart(BaseModel):
    """
    Cart aggregate owned by exactly one of a user or an anonymous session.

    The four price fields must equal ``calc_price(items)``; build carts through
    ``Cart.priced`` or ``Cart.with_items`` rather than setting prices by hand.
    """
    id: str = Field(default_factory=new_id)
    user_id: Optional[str] = None
    session_cart_id: Optional[str] = None
    items: List[CartItem] = Field(default_factory=list)
    items_price: Money = ZERO
    shipping_price: Money = ZERO
    tax_price: Money = ZERO
    total_price: Money = ZERO
    created_at: datetime = Field(default_factory=utcnow)

    @model_validator(mode="after")
    def _check_invariants(self) -> "Cart":
        if bool(self.user_id) == bool(self.session_cart_id):
            raise ValueError("Cart must be owned by exactly one of user_id or session_cart_id")

        product_ids = [i.product_id for i in self.items]
        if len(product_ids) != len(set(product_ids)):
            raise ValueError("Cart cannot hold two line items for the same product")

        expected = calc_price(self.items)
        actual = (self.items_price, self.shipping_price, self.tax_price, self.total_price)
        if actual != (expected.items_price, expected.shipping_price, expected.tax_price, expected.total_price):
            raise ValueError("Cart prices do not match its items")
        return self

    @classmethod
    def priced(cls, items: List[CartItem], **fields) -> "Cart":
        """Create a cart whose prices are computed from ``items``"""
        return cls(items=items, **calc_price(items).as_dict(), **fields)

    def with_items(self, items: List[CartItem]) -> "Cart":
        """Return a copy of this cart holding ``items``, repriced"""
        data = self.model_dump(exclude={"items", "items_price", "shipping_price", "tax_price", "total_price"})
        return Cart.priced(items=items, **data)

    def find_item(self, product_id: str) -> Optional[CartItem]:
        return next((i for i in self.items if i.product_id == product_id), None)


class ShippingAddress(BaseModel):
    full_name: str = Field(..., min_length=3)
    street_address: str = Field(..., min_length=3)
    city: str = Field(..., min_length=3)
    postal_code: str = Field(..., min_length=3)
    country: str = Field(..., min_length=3)
    lat: Optional[float] = None
    lng: Optional[float] = None


class PaymentResult(BaseModel):
    """Payment confirmation details recorded at settlement"""
    id: str
    status: str
    email_address: str
    price_paid: str


class User(BaseModel):
    id: str = Field(default_factory=new_id)
    name: str = Field("NO_NAME", min_length=1)
    email: str = Field(..., min_length=3)
    role: str = "user"
    address: Optional[ShippingAddress] = None
    payment_method: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)


class OrderItem(BaseModel):
    """Order line item; ``price`` is a snapshot taken when the order was placed"""
    order_id: str
    product_id: str
    name: str
    slug: str
    image: str = ""
    price: Money
    qty: int = Field(..., ge=1)


class Order(BaseModel):
    id: str = Field(default_factory=new_id)
    user_id: str = Field(..., min_length=1)
    shipping_address: ShippingAddress
    payment_method: str = Field(..., min_length=1)
    payment_result: Optional[PaymentResult] = None
    items_price: Money
    shipping_price: Money
    tax_price: Money
    total_price: Money
    is_paid: bool = False
    paid_at: Optional[datetime] = None
    is_delivered: bool = False
    delivered_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utcnow)
    order_items: List[OrderItem] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_lifecycle(self) -> "Order":
        if self.is_paid != (self.paid_at is not None):
            raise ValueError("paid_at must be set exactly when the order is paid")
        if self.is_delivered != (self.delivered_at is not None):
            raise ValueError("delivered_at must be set exactly when the order is delivered")
        if self.is_delivered and not self.is_paid:
            raise ValueError("An order cannot be delivered before it is paid")
        return self


class Review(BaseModel):
    """Product review; a user holds at most one per product"""
    id: str = Field(default_factory=new_id)
    user_id: str = Field(..., min_length=1)
    user_name: str = ""
    product_id: str = Field(..., min_length=1)
    rating: int = Field(..., ge=1, le=5)
    title: str = Field(..., min_length=3)
    description: str = Field(..., min_length=3)
    created_at: datetime = Field(default_factory=utcnow)


class ReviewInput(BaseModel):
    product_id: str = Field(..., min_length=1, description="Product identifier")
    rating: int = Field(..., ge=1, le=5)
    title: str = Field(..., min_length=3)
    description: str = Field(..., min_length=3)


class AddToCartRequest(BaseModel):
    product_id: str = Field(..., min_length=1, description="Product identifier")


class PaymentMethodRequest(BaseModel):
    payment_method: str = Field(..., min_length=1)


class ProductInput(BaseModel):
    """Admin request body for creating or updating a product"""
    name: str = Field(..., min_length=3)
    slug: str = Field(..., min_length=3)
    category: str = Field(..., min_length=3)
    brand: str = Field(..., min_length=3)
    description: str = Field(..., min_length=3)
    images: List[str] = Field(..., min_length=1)
    price: Money
    stock: int = Field(..., ge=0)
    is_featured: bool = False
    banner: Optional[str] = None

    @field_validator("slug")
    @classmethod
    def validate_slug(cls, v: str) -> str:
        if v != v.strip().lower() or " " in v:
            raise ValueError("Slug must be lowercase without spaces")
        return v


class ActionResult(BaseModel):
    """Outcome of a cart or order mutation; branch on ``redirect_to`` first"""
    success: bool
    message: str
    redirect_to: Optional[str] = None
    order_id: Optional[str] = None


class OrderPage(BaseModel):
    data: List[Order]
    total_pages: int


class ProductPage(BaseModel):
    data: List[Product]
    total_pages: int


class MonthlySales(BaseModel):
    month: str
    total_sales: Money


class OrderSummary(BaseModel):
    orders_count: int
    products_count: int
    users_count: int
    total_sales: Money
    sales_data: List[MonthlySales]
    latest_sales: List[Order]
