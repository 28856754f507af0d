"""
Webhook Endpoints.

Handles incoming webhooks from Stripe (payment confirmations).
"""

from fastapi import APIRouter, Depends, Request, Response
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from storefront.core.config import settings
from storefront.core.database import get_session_factory
from storefront.core.errors import NotFoundError
from storefront.modules.shop.payment import PaymentService, get_payment_service
from storefront.modules.shop.reconciliation import (
    PaymentReconciler,
    ReconciliationOutcome,
)

router = APIRouter()


@router.post("/stripe", status_code=200)
async def stripe_webhook(
    request: Request,
    payment: PaymentService = Depends(get_payment_service),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> Response:
    """
    Stripe Webhook Endpoint.

    Marks orders paid on checkout.session.completed.

    Responses:
    - 200 when the event was applied or deliberately ignored
    - 400 when the event is malformed (no order id)
    - 401 when signature verification is enabled and fails
    - 500 when the order is unknown or the update failed, so Stripe retries
    """
    body = await request.body()
    event = payment.parse_webhook(body, request.headers.get("Stripe-Signature"))

    event_type = event["type"]
    logger.info(f"Received Stripe webhook: {event_type}")

    reconciler = PaymentReconciler(session_factory)
    try:
        outcome = await reconciler.on_payment_notification(event_type, event["data"])
    except NotFoundError as e:
        logger.error(f"Error updating order status: {e}")
        return Response(status_code=500)

    if outcome is ReconciliationOutcome.MALFORMED:
        return Response(status_code=400)

    return Response(status_code=200)


@router.get("/health")
async def webhook_health() -> dict:
    """Health check for webhook endpoints."""
    return {
        "status": "healthy",
        "stripe_signature_verification": bool(settings.stripe_webhook_secret),
    }
