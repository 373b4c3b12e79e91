import json

import httpx
import pytest
from sqlalchemy import func, select

from main import create_app
from shared.config.database import Database
from shared.config.settings import Settings
from shared.security import create_access_token

from services.cart_service.models import CartItem
from services.order_service.models import Order
from services.payment_service.gateway import TossPaymentsGateway
from services.payment_service.models import Payment
from services.product_service.models import Product

JWT_SECRET = "test-jwt-secret"
GATEWAY_URL = "https://gateway.test/v1/payments"


@pytest.fixture
async def db(tmp_path):
    """Fresh file-backed SQLite database per test (BEGIN IMMEDIATE serializes writers)."""
    database = Database(f"sqlite+aiosqlite:///{tmp_path / 'checkout.db'}")
    await database.create_all()
    yield database
    await database.dispose()


class GatewayStub:
    """httpx.MockTransport handler standing in for the Toss confirm endpoint."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.status_code = 200
        self.body: dict | None = None
        self.error: Exception | None = None

    def reject(self, status_code: int, code: str, message: str):
        self.status_code = status_code
        self.body = {"code": code, "message": message}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        body = self.body
        if body is None:
            sent = json.loads(request.content)
            body = {
                "paymentKey": sent["paymentKey"],
                "orderId": sent["orderId"],
                "totalAmount": sent["amount"],
                "method": "card",
                "status": "DONE",
                "approvedAt": "2024-02-13T12:18:14+09:00",
            }
        return httpx.Response(self.status_code, json=body)


@pytest.fixture
def gateway_stub():
    return GatewayStub()


@pytest.fixture
async def gateway(gateway_stub):
    client = TossPaymentsGateway("test_sk_secret", GATEWAY_URL, transport=httpx.MockTransport(gateway_stub))
    yield client
    await client.aclose()


@pytest.fixture
async def client(db, gateway):
    settings = Settings(
        database_url="sqlite+aiosqlite://",
        create_tables=False,
        jwt_secret_key=JWT_SECRET,
        toss_secret_key="test_sk_secret",
        metrics_enabled=False,
    )
    app = create_app(settings, gateway=gateway, database=db)
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as http:
        yield http


@pytest.fixture
def auth_headers():
    def _headers(user_id: int, role: str = "user") -> dict:
        token = create_access_token({"sub": str(user_id), "role": role}, JWT_SECRET)
        return {"Authorization": f"Bearer {token}"}

    return _headers


# --- DATA HELPERS ---

@pytest.fixture
def make_product(db):
    async def _make(name="Griff Tee", price=10000, stock=10, sale_price=None, is_active=True) -> Product:
        async with db.transaction() as session:
            product = Product(name=name, price=price, sale_price=sale_price, stock=stock, is_active=is_active)
            session.add(product)
        return product

    return _make


@pytest.fixture
def put_in_cart(db):
    async def _put(user_id: int, product: Product, quantity: int) -> CartItem:
        async with db.transaction() as session:
            item = CartItem(user_id=user_id, product_id=product.id, quantity=quantity)
            session.add(item)
        return item

    return _put


@pytest.fixture
def read_product(db):
    async def _read(product_id: int) -> Product:
        async with db.session() as session:
            return await session.get(Product, product_id)

    return _read


@pytest.fixture
def read_order(db):
    async def _read(order_id: int) -> Order:
        async with db.session() as session:
            return await session.get(Order, order_id)

    return _read


@pytest.fixture
def read_cart(db):
    async def _read(user_id: int) -> dict[int, int]:
        async with db.session() as session:
            result = await session.execute(select(CartItem).where(CartItem.user_id == user_id))
            return {item.product_id: item.quantity for item in result.scalars()}

    return _read


@pytest.fixture
def count_rows(db):
    async def _count(model) -> int:
        async with db.session() as session:
            result = await session.execute(select(func.count()).select_from(model))
            return result.scalar_one()

    return _count


@pytest.fixture
def count_payments(count_rows):
    async def _count() -> int:
        return await count_rows(Payment)

    return _count
