import fakeredis
import pytest

from storefront.models import Product, RequestContext, ShippingAddress, User
from storefront.redis_client import RedisClient
from storefront.repositories import ProductRepository
from storefront.unit_of_work import run_in_transaction
from storefront.user_service import UserService


@pytest.fixture()
def redis():
    """RedisClient wrapper around an isolated in-memory Redis server"""
    server = fakeredis.FakeServer()
    return RedisClient(client=fakeredis.FakeRedis(server=server, decode_responses=True))


@pytest.fixture()
def make_product(redis):
    counter = {"n": 0}

    def _make(**overrides) -> Product:
        counter["n"] += 1
        fields = dict(
            name=f"Polo Shirt {counter['n']}",
            slug=f"polo-shirt-{counter['n']}",
            category="Men's Dress Shirts",
            brand="Polo",
            description="Classic fit cotton polo",
            images=[f"/images/sample-products/p{counter['n']}-1.jpg"],
            price="50.00",
            stock=5,
        )
        fields.update(overrides)
        product = Product(**fields)
        run_in_transaction(redis, lambda uow: ProductRepository(redis).save(uow, product))
        return product

    return _make


@pytest.fixture()
def address():
    return ShippingAddress(
        full_name="Jane Doe",
        street_address="123 Main St",
        city="Springfield",
        postal_code="12345",
        country="USA",
    )


@pytest.fixture()
def make_user(redis):
    def _make(**overrides) -> User:
        fields = dict(name="Jane Doe", email="jane@example.com")
        fields.update(overrides)
        return UserService(redis).save_user(User(**fields))

    return _make


@pytest.fixture()
def guest():
    return RequestContext(session_cart_id="sess-guest-001")


@pytest.fixture()
def shopper(make_user, address):
    """Signed-in user with address and payment method on file"""
    return make_user(address=address, payment_method="PayPal")


@pytest.fixture()
def shopper_context(shopper):
    return RequestContext(user_id=shopper.id, session_cart_id="sess-shopper-001")
