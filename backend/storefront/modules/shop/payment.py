"""
Payment Service - Stripe integration.

Handles:
- Checkout sessions
- Webhook signature verification and parsing
"""

import asyncio
import json
from decimal import Decimal
from typing import Any

import stripe
from loguru import logger

from storefront.core.config import settings
from storefront.core.errors import UnauthorizedError, UpstreamError, ValidationError


class PaymentService:
    """
    Stripe payment service.

    Line items are priced from the product snapshot submitted with the
    cart, not from the catalog row, so the amount charged is whatever the
    client sent. Webhook bodies are only authenticated when
    STRIPE_WEBHOOK_SECRET is set.

    Usage:
        payment = PaymentService()
        session = await payment.create_checkout_session(order_id, items, ...)
    """

    def __init__(self) -> None:
        """Initialize Stripe with API key."""
        stripe.api_key = settings.stripe_secret_key

    @staticmethod
    def _image_url(image: str) -> str:
        """Make relative image paths absolute for the hosted checkout page."""
        if not image or image.startswith(("http://", "https://")):
            return image
        return settings.asset_base_url.rstrip("/") + "/" + image.lstrip("/")

    def build_line_items(self, items: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Convert cart items to Stripe line items (amounts in cents)."""
        line_items = []
        for item in items:
            product = item["product"]
            product_data: dict[str, Any] = {
                "name": product["name"],
                "description": product.get("description") or "No description available",
            }
            image = self._image_url(product.get("image", ""))
            if image:
                product_data["images"] = [image]

            line_items.append(
                {
                    "price_data": {
                        "currency": settings.shop_currency.lower(),
                        "product_data": product_data,
                        "unit_amount": int(
                            (Decimal(str(product["price"])) * 100).to_integral_value()
                        ),
                    },
                    "quantity": item["quantity"],
                }
            )
        return line_items

    async def create_checkout_session(
        self,
        order_id: str,
        items: list[dict[str, Any]],
        success_url: str,
        cancel_url: str,
    ) -> dict[str, Any]:
        """
        Create Stripe Checkout session.

        Args:
            order_id: Order identifier, echoed back in webhook metadata
            items: Cart items [{product: {name, price, image, description}, quantity}]
            success_url: Redirect URL on success
            cancel_url: Redirect URL on cancel

        Returns:
            Checkout session with redirect URL
        """
        session_params = {
            "payment_method_types": ["card"],
            "line_items": self.build_line_items(items),
            "mode": "payment",
            "success_url": success_url,
            "cancel_url": cancel_url,
            "metadata": {"orderId": order_id},
        }

        try:
            session = await asyncio.to_thread(
                stripe.checkout.Session.create, **session_params
            )
        except stripe.StripeError as e:
            logger.error(f"Stripe error creating checkout session: {e}")
            raise UpstreamError(f"Stripe error creating checkout session: {e}") from e

        return {
            "session_id": session.id,
            "url": session.url,
        }

    def parse_webhook(self, payload: bytes, signature: str | None) -> dict[str, Any]:
        """
        Parse a Stripe webhook body into {type, data}.

        With a webhook secret configured the event is built by
        stripe.Webhook.construct_event, which checks the signature first.
        Without one the gateway in front of this service is trusted to have
        done it and the body is parsed as plain JSON.

        Raises:
            UnauthorizedError: Signature missing or invalid
            ValidationError: Body is not a JSON event
        """
        if not settings.stripe_webhook_secret:
            try:
                event = json.loads(payload)
            except (json.JSONDecodeError, UnicodeDecodeError) as e:
                raise ValidationError("Webhook body is not valid JSON") from e
            return self._event_fields(event)

        if not signature:
            raise UnauthorizedError("Missing signature")

        try:
            event = stripe.Webhook.construct_event(
                payload,
                signature,
                settings.stripe_webhook_secret,
            )
        except stripe.SignatureVerificationError as e:
            logger.warning("Invalid Stripe webhook signature")
            raise UnauthorizedError("Invalid signature") from e
        except ValueError as e:
            raise ValidationError("Webhook body is not valid JSON") from e

        return self._event_fields(event.to_dict())

    @staticmethod
    def _event_fields(event: Any) -> dict[str, Any]:
        if not isinstance(event, dict) or not isinstance(event.get("type"), str):
            raise ValidationError("Webhook body has no event type")

        data = event.get("data")
        obj = data.get("object") if isinstance(data, dict) else None
        return {
            "type": event["type"],
            "data": obj if isinstance(obj, dict) else {},
        }


def get_payment_service() -> PaymentService:
    """FastAPI dependency for the payment service."""
    return PaymentService()
