"""Pytest fixtures for storefront tests."""

from decimal import Decimal
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import func, select

from storefront.core.config import settings
from storefront.core.database import Base, create_engine, create_session_factory, get_session_factory
from storefront.main import app
from storefront.models import shop  # noqa: F401
from storefront.models.shop import Product
from storefront.modules.shop.payment import PaymentService, get_payment_service

USER_ID = "user_alice"
OTHER_USER_ID = "user_bob"
ADMIN_ID = "user_admin"

ADDRESS = {
    "line_1": "12 Harbour Road",
    "line_2": "Flat 3",
    "city": "Colombo",
    "state": "Western",
    "zip_code": "00300",
    "phone": "+94 11 234 5678",
}


class FakePaymentService(PaymentService):
    """Records checkout sessions instead of calling Stripe."""

    def __init__(self) -> None:
        super().__init__()
        self.sessions: list[dict[str, Any]] = []
        self.failures: list[Exception] = []

    async def create_checkout_session(
        self,
        order_id: str,
        items: list[dict[str, Any]],
        success_url: str,
        cancel_url: str,
    ) -> dict[str, Any]:
        if self.failures:
            raise self.failures.pop(0)

        session_id = f"cs_test_{len(self.sessions) + 1}"
        self.sessions.append(
            {
                "session_id": session_id,
                "order_id": order_id,
                "items": items,
                "success_url": success_url,
                "cancel_url": cancel_url,
            }
        )
        return {"session_id": session_id, "url": f"https://checkout.stripe.test/{session_id}"}


@pytest.fixture
async def engine(tmp_path):
    """File-backed SQLite engine so concurrent sessions use separate connections."""
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'storefront.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def payment():
    return FakePaymentService()


@pytest.fixture
def make_product(session_factory):
    """Create a product directly in the database."""

    async def _make(
        name: str = "Wireless Headphones",
        stock: int = 10,
        price: str = "129.99",
        image: str = "/images/headphones.png",
        description: str | None = "Over-ear, noise cancelling",
    ) -> Product:
        async with session_factory() as db:
            async with db.begin():
                product = Product(
                    name=name,
                    slug=name.lower().replace(" ", "-"),
                    price=Decimal(price),
                    image=image,
                    description=description,
                    stock=stock,
                )
                db.add(product)
        return product

    return _make


@pytest.fixture
def count_rows(session_factory):
    """Count rows of a model."""

    async def _count(model) -> int:
        async with session_factory() as db:
            result = await db.execute(select(func.count()).select_from(model))
            return result.scalar_one()

    return _count


@pytest.fixture
def stock_of(session_factory):
    """Read the current stock of a product."""

    async def _stock(product_id: int) -> int:
        async with session_factory() as db:
            result = await db.execute(select(Product.stock).where(Product.id == product_id))
            return result.scalar_one()

    return _stock


def cart_item(product: Product, quantity: int) -> dict[str, Any]:
    """Cart line as the checkout service receives it."""
    return {
        "product": {
            "id": product.id,
            "name": product.name,
            "price": product.price,
            "image": product.image,
            "description": product.description,
        },
        "quantity": quantity,
    }


def cart_item_json(product: Product, quantity: int) -> dict[str, Any]:
    """Cart line as a client posts it."""
    item = cart_item(product, quantity)
    item["product"]["price"] = str(product.price)
    return item


@pytest.fixture
def admin(monkeypatch):
    monkeypatch.setattr(settings, "admin_user_ids", [ADMIN_ID])
    return ADMIN_ID


@pytest.fixture
async def client(session_factory, payment, monkeypatch):
    """HTTP client against the app with test database and fake Stripe."""
    monkeypatch.setattr(settings, "checkout_retry_backoff_seconds", 0.0)
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_payment_service] = lambda: payment

    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


def auth(user_id: str = USER_ID) -> dict[str, str]:
    return {settings.identity_header: user_id}
