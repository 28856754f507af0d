"""
Order Store - persistence of orders, item snapshots and addresses.
"""

from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from storefront.core.errors import NotFoundError
from storefront.models.shop import Order, OrderItem, PaymentStatus, ShippingAddress

ADDRESS_FIELDS = ("line_1", "line_2", "city", "state", "zip_code", "phone")


class OrderStore:
    """
    Orders with their shipping address and item snapshots.

    Usage:
        orders = OrderStore(db_session)
        order = await orders.get(order_id)
    """

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def create(
        self,
        user_id: str,
        items: list[dict[str, Any]],
        shipping_address: dict[str, Any],
    ) -> Order:
        """
        Persist a new PENDING order, its address and item snapshots.

        Args:
            user_id: Owner of the order
            items: List of {product: {id, name, price, image, description}, quantity}
            shipping_address: Address fields

        Returns:
            Created order (flushed, not committed)
        """
        address = ShippingAddress(**{field: shipping_address[field] for field in ADDRESS_FIELDS})
        self.db.add(address)
        await self.db.flush()

        order = Order(
            user_id=user_id,
            address_id=address.id,
            payment_status=PaymentStatus.PENDING,
        )
        self.db.add(order)
        await self.db.flush()

        for position, item in enumerate(items):
            product = item["product"]
            self.db.add(
                OrderItem(
                    order_id=order.id,
                    position=position,
                    product_id=product["id"],
                    product_name=product["name"],
                    unit_price=product["price"],
                    image=product["image"],
                    description=product.get("description"),
                    quantity=item["quantity"],
                )
            )

        await self.db.flush()
        return order

    async def get(self, order_id: str) -> Order:
        """Get order with address and items, or raise NotFoundError."""
        query = (
            select(Order)
            .options(selectinload(Order.items), selectinload(Order.address))
            .where(Order.id == order_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(query)
        order = result.scalar_one_or_none()
        if order is None:
            raise NotFoundError("Order not found")
        return order

    async def list_by_user(
        self,
        user_id: str,
        payment_status: PaymentStatus | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[Order]:
        """Orders of a user, newest first."""
        query = (
            select(Order)
            .options(selectinload(Order.items), selectinload(Order.address))
            .where(Order.user_id == user_id)
        )
        if payment_status:
            query = query.where(Order.payment_status == payment_status)

        query = query.order_by(Order.created_at.desc()).offset(offset)
        if limit is not None:
            query = query.limit(limit)

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def set_payment_status(self, order_id: str, status: PaymentStatus) -> bool:
        """
        Set the payment status of an order.

        Returns:
            True if the status changed, False if it already had that value
        """
        order = await self.db.get(Order, order_id)
        if order is None:
            raise NotFoundError(f"Order {order_id} not found")

        if order.payment_status == status:
            return False

        order.payment_status = status
        await self.db.flush()
        return True
