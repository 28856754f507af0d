"""
Payment reconciliation - applies provider notifications to orders.
"""

from enum import Enum
from typing import Any

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from storefront.models.shop import PaymentStatus
from storefront.modules.shop.orders import OrderStore

PAYMENT_COMPLETED = "checkout.session.completed"


class ReconciliationOutcome(str, Enum):
    """What a notification did to local state."""

    PAID = "paid"
    ALREADY_PAID = "already_paid"
    IGNORED = "ignored"
    MALFORMED = "malformed"


class PaymentReconciler:
    """
    Marks orders paid when the provider reports a completed checkout.

    Unknown orders raise NotFoundError so the webhook answers with an
    error and the provider redelivers later. Replays of a completed
    notification are no-ops.

    Usage:
        reconciler = PaymentReconciler(session_factory)
        outcome = await reconciler.on_payment_notification(event["type"], event["data"])
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    async def on_payment_notification(
        self,
        event_type: str,
        payload: dict[str, Any],
    ) -> ReconciliationOutcome:
        """
        Handle one provider notification.

        Args:
            event_type: Provider event type
            payload: Event object, expected to carry metadata.orderId

        Returns:
            Outcome of the notification
        """
        if event_type != PAYMENT_COMPLETED:
            logger.info(f"Ignoring payment notification {event_type}")
            return ReconciliationOutcome.IGNORED

        metadata = payload.get("metadata") or {}
        order_id = metadata.get("orderId") if isinstance(metadata, dict) else None
        if not order_id or not isinstance(order_id, str):
            logger.error(f"No order ID found in {event_type} metadata")
            return ReconciliationOutcome.MALFORMED

        async with self.session_factory() as db:
            async with db.begin():
                changed = await OrderStore(db).set_payment_status(order_id, PaymentStatus.PAID)

        if not changed:
            logger.info(f"Order {order_id} already PAID, notification replay ignored")
            return ReconciliationOutcome.ALREADY_PAID

        logger.info(f"Order {order_id} marked as PAID")
        return ReconciliationOutcome.PAID
