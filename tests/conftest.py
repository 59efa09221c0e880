"""Shared fixtures: throwaway SQLite database, fake gateway and HTTP client."""

import os
import tempfile

_tmpdir = tempfile.mkdtemp(prefix="storefront-tests-")

# Settings are read once at import time, so the environment must be ready
# before anything from storefront is imported.
os.environ.update(
    {
        "DATABASE_URL": f"sqlite:///{_tmpdir}/storefront.db",
        "SECRET_KEY": "test-secret-key",
        "RAZORPAY_KEY_ID": "rzp_test_key",
        "RAZORPAY_KEY_SECRET": "test_key_secret",
        "RAZORPAY_WEBHOOK_SECRET": "test_webhook_secret",
        "ALLOWED_HOSTS": '["*"]',
        "RATE_LIMIT_ENABLED": "false",
        "ENVIRONMENT": "test",
    }
)

from decimal import Decimal  # noqa: E402

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from storefront.api.v1.payments.razorpay_client import (  # noqa: E402
    RazorpayClient,
    get_payment_gateway,
)
from storefront.core.database import AsyncSessionLocal, engine  # noqa: E402
from storefront.core.exceptions import UpstreamFailureException  # noqa: E402
from storefront.core.security import SecurityUtils  # noqa: E402
from storefront.main import app  # noqa: E402
from storefront.models import Base, Product  # noqa: E402


class FakeRazorpayClient(RazorpayClient):
    """Gateway double that records calls instead of hitting Razorpay."""

    def __init__(self):
        super().__init__()
        self.created_orders = []
        self.fetched_payments = []
        self.fail_create = False
        self.fail_fetch = False

    def create_order(self, amount, currency="INR", receipt=None, notes=None):
        if self.fail_create:
            raise UpstreamFailureException("Failed to create payment order")
        order = {
            "id": f"order_test_{len(self.created_orders) + 1}",
            "entity": "order",
            "amount": amount,
            "currency": currency,
            "receipt": receipt,
            "status": "created",
        }
        self.created_orders.append(order)
        return order

    def fetch_payment(self, payment_id):
        self.fetched_payments.append(payment_id)
        if self.fail_fetch:
            raise UpstreamFailureException("Failed to fetch payment")
        return {"id": payment_id, "entity": "payment", "method": "upi", "status": "captured"}


@pytest.fixture(autouse=True)
async def database():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield


@pytest.fixture
async def db():
    async with AsyncSessionLocal() as session:
        yield session


@pytest.fixture
def gateway():
    return FakeRazorpayClient()


@pytest.fixture
async def client(gateway):
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def make_product(db):
    async def _make(name="Cotton Tee", price="500.00", is_active=True):
        product = Product(name=name, price=Decimal(price), is_active=is_active)
        db.add(product)
        await db.commit()
        return product

    return _make


@pytest.fixture
def user_headers():
    def _headers(user_id="user-1", email="buyer@example.com", role="customer"):
        token = SecurityUtils.create_access_token({"sub": user_id, "email": email, "role": role})
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def guest_headers():
    def _headers(guest_id="guest-1"):
        return {"X-Guest-Id": guest_id}

    return _headers


@pytest.fixture
def add_to_cart(client):
    async def _add(headers, product, quantity=1, size=None, color=None):
        body = {"productId": str(product.id), "quantity": quantity}
        if size:
            body["size"] = size
        if color:
            body["color"] = color
        response = await client.post("/api/v1/cart/items", json=body, headers=headers)
        assert response.status_code == 201, response.text
        return response.json()

    return _add


@pytest.fixture
def create_address(client):
    async def _create(headers, **overrides):
        body = {
            "fullName": "Asha Rao",
            "phone": "9876543210",
            "email": "asha@example.com",
            "addressLine1": "12 MG Road",
            "city": "Bengaluru",
            "state": "Karnataka",
            "postalCode": "560001",
        }
        body.update(overrides)
        response = await client.post("/api/v1/addresses", json=body, headers=headers)
        assert response.status_code == 201, response.text
        return response.json()

    return _create
