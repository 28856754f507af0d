"""
Checkout Service - order placement with inventory reservation and payment.

One checkout attempt is a single database transaction that validates
the cart, stores the address and order, reserves stock and opens a
Stripe checkout session. Any failure rolls all of it back. Attempts that
lose a write race are retried by a RetryPolicy.
"""

from collections import defaultdict
from dataclasses import dataclass
from typing import Any

from loguru import logger
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from storefront.core.config import settings
from storefront.core.errors import (
    TransientConflictError,
    ValidationError,
    is_transient_db_error,
)
from storefront.core.retry import RetryPolicy
from storefront.models.shop import Order, Product
from storefront.modules.shop.inventory import InventoryLedger
from storefront.modules.shop.orders import OrderStore
from storefront.modules.shop.payment import PaymentService


@dataclass
class CheckoutResult:
    """Committed order and the payment page the customer goes to next."""

    order: Order
    session_id: str
    url: str


class CheckoutService:
    """
    Places orders.

    Usage:
        checkout = CheckoutService(session_factory, PaymentService())
        result = await checkout.place_order(user_id, items, shipping_address)
        # redirect to result.url
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        payment: PaymentService,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.payment = payment
        self.retry_policy = retry_policy or RetryPolicy(
            max_attempts=settings.checkout_max_attempts,
            backoff_seconds=settings.checkout_retry_backoff_seconds,
        )

    async def place_order(
        self,
        user_id: str,
        items: list[dict[str, Any]],
        shipping_address: dict[str, Any],
    ) -> CheckoutResult:
        """
        Place an order, retrying on transient storage conflicts.

        Args:
            user_id: Authenticated customer
            items: List of {product: {id, name, price, image, description}, quantity}
            shipping_address: {line_1, line_2, city, state, zip_code, phone}

        Returns:
            Committed order with payment session

        Raises:
            ValidationError: Empty cart, bad quantity, unknown product or
                insufficient stock
            UpstreamError: Payment session could not be created
            RetryExhaustedError: Every attempt hit a storage conflict
        """
        return await self.retry_policy.run(
            lambda: self.attempt(user_id, items, shipping_address),
            label="checkout",
        )

    async def attempt(
        self,
        user_id: str,
        items: list[dict[str, Any]],
        shipping_address: dict[str, Any],
    ) -> CheckoutResult:
        """Run one checkout in a fresh session and transaction."""
        self.validate_cart(items)

        async with self.session_factory() as db:
            try:
                async with db.begin():
                    order, session = await self._reserve_and_pay(
                        db, user_id, items, shipping_address
                    )
            except DBAPIError as e:
                if is_transient_db_error(e):
                    raise TransientConflictError(str(e.orig)) from e
                raise

            # Committed; errors from here on must not trigger a retry
            order = await OrderStore(db).get(order.id)

        logger.info(f"Order {order.id} placed by {user_id} with {len(order.items)} item(s)")
        return CheckoutResult(order=order, session_id=session["session_id"], url=session["url"])

    @staticmethod
    def validate_cart(items: list[dict[str, Any]]) -> None:
        """Reject empty carts and non-positive quantities."""
        if not items:
            raise ValidationError("Cart is empty")

        for item in items:
            quantity = item.get("quantity")
            if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity <= 0:
                name = item.get("product", {}).get("name", "unknown product")
                raise ValidationError(f"Invalid quantity {quantity!r} for product {name}")

    async def _reserve_and_pay(
        self,
        db: AsyncSession,
        user_id: str,
        items: list[dict[str, Any]],
        shipping_address: dict[str, Any],
    ) -> tuple[Order, dict[str, Any]]:
        """Body of the transaction; raising anywhere rolls everything back."""
        products = await self._check_stock(db, items)

        order = await OrderStore(db).create(user_id, items, shipping_address)

        ledger = InventoryLedger(db)
        for item in items:
            product_id = item["product"]["id"]
            if not await ledger.conditional_decrement(product_id, item["quantity"]):
                raise ValidationError(f"Product {products[product_id].name} is now out of stock")

        session = await self.payment.create_checkout_session(
            order_id=order.id,
            items=items,
            success_url=f"{settings.frontend_url}/complete?order_id={order.id}",
            cancel_url=f"{settings.frontend_url}/cancel",
        )
        order.payment_session_id = session["session_id"]
        await db.flush()

        return order, session

    async def _check_stock(
        self,
        db: AsyncSession,
        items: list[dict[str, Any]],
    ) -> dict[int, Product]:
        """Load every product in the cart and check it has enough stock."""
        requested: dict[int, int] = defaultdict(int)
        for item in items:
            requested[item["product"]["id"]] += item["quantity"]

        products: dict[int, Product] = {}
        for product_id, quantity in requested.items():
            product = await db.get(Product, product_id)
            if product is None:
                raise ValidationError(f"Product {product_id} not found")

            if product.stock < quantity:
                raise ValidationError(
                    f"Insufficient stock for product {product.name}. "
                    f"Available: {product.stock}, Requested: {quantity}"
                )
            products[product_id] = product

        return products
