"""Tests for the Stripe payment service."""

import hashlib
import hmac
import time
from decimal import Decimal
from types import SimpleNamespace

import pytest
import stripe

from storefront.core.config import settings
from storefront.core.errors import UnauthorizedError, UpstreamError, ValidationError
from storefront.modules.shop.payment import PaymentService

ITEMS = [
    {
        "product": {
            "id": 1,
            "name": "Headphones",
            "price": Decimal("129.99"),
            "image": "/images/headphones.png",
            "description": None,
        },
        "quantity": 2,
    }
]


@pytest.fixture
def captured(monkeypatch):
    calls = []

    def fake_create(**params):
        calls.append(params)
        return SimpleNamespace(id="cs_test_abc", url="https://checkout.stripe.com/c/cs_test_abc")

    monkeypatch.setattr(stripe.checkout.Session, "create", fake_create)
    return calls


def test_line_items_use_cents_and_absolute_images(monkeypatch):
    monkeypatch.setattr(settings, "asset_base_url", "https://shop.example.com/")
    [line] = PaymentService().build_line_items(ITEMS)

    assert line["quantity"] == 2
    price_data = line["price_data"]
    assert price_data["currency"] == "usd"
    assert price_data["unit_amount"] == 12999
    assert price_data["product_data"]["images"] == ["https://shop.example.com/images/headphones.png"]
    assert price_data["product_data"]["description"] == "No description available"


async def test_checkout_session_carries_order_id(captured):
    session = await PaymentService().create_checkout_session(
        order_id="abc123",
        items=ITEMS,
        success_url="https://shop.example.com/complete?order_id=abc123",
        cancel_url="https://shop.example.com/cancel",
    )

    assert session == {
        "session_id": "cs_test_abc",
        "url": "https://checkout.stripe.com/c/cs_test_abc",
    }
    [params] = captured
    assert params["metadata"] == {"orderId": "abc123"}
    assert params["mode"] == "payment"


async def test_stripe_errors_become_upstream_errors(monkeypatch):
    def failing_create(**params):
        raise stripe.StripeError("network down")

    monkeypatch.setattr(stripe.checkout.Session, "create", failing_create)

    with pytest.raises(UpstreamError):
        await PaymentService().create_checkout_session("abc123", ITEMS, "s", "c")


def test_parse_webhook_without_secret():
    event = PaymentService().parse_webhook(
        b'{"type": "checkout.session.completed", "data": {"object": {"metadata": {"orderId": "a"}}}}',
        None,
    )
    assert event == {
        "type": "checkout.session.completed",
        "data": {"metadata": {"orderId": "a"}},
    }


def test_parse_webhook_tolerates_missing_object():
    event = PaymentService().parse_webhook(b'{"type": "checkout.session.completed"}', None)
    assert event["data"] == {}


@pytest.mark.parametrize("body", [b"nope", b"[]", b'{"data": {}}'])
def test_parse_webhook_rejects_malformed_bodies(body):
    with pytest.raises(ValidationError):
        PaymentService().parse_webhook(body, None)


def test_parse_webhook_requires_signature_when_secret_set(monkeypatch):
    monkeypatch.setattr(settings, "stripe_webhook_secret", "whsec_test")
    with pytest.raises(UnauthorizedError):
        PaymentService().parse_webhook(b'{"type": "x"}', None)


def stripe_signature(payload: bytes, secret: str = "whsec_test") -> str:
    timestamp = int(time.time())
    digest = hmac.new(
        secret.encode(), f"{timestamp}.".encode() + payload, hashlib.sha256
    ).hexdigest()
    return f"t={timestamp},v1={digest}"


def test_parse_webhook_builds_verified_event(monkeypatch):
    monkeypatch.setattr(settings, "stripe_webhook_secret", "whsec_test")
    payload = (
        b'{"id": "evt_1", "object": "event", "type": "checkout.session.completed",'
        b' "data": {"object": {"id": "cs_1", "metadata": {"orderId": "a"}}}}'
    )

    event = PaymentService().parse_webhook(payload, stripe_signature(payload))

    assert event["type"] == "checkout.session.completed"
    assert event["data"]["metadata"] == {"orderId": "a"}


def test_parse_webhook_rejects_wrong_secret(monkeypatch):
    monkeypatch.setattr(settings, "stripe_webhook_secret", "whsec_test")
    payload = b'{"type": "checkout.session.completed"}'

    with pytest.raises(UnauthorizedError):
        PaymentService().parse_webhook(payload, stripe_signature(payload, "whsec_other"))


def test_parse_webhook_signed_body_that_is_not_json(monkeypatch):
    monkeypatch.setattr(settings, "stripe_webhook_secret", "whsec_test")
    payload = b"not json"

    with pytest.raises(ValidationError):
        PaymentService().parse_webhook(payload, stripe_signature(payload))
