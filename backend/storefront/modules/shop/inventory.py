"""
Inventory Ledger - per-product stock counters.
"""

from loguru import logger
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.errors import NotFoundError, ValidationError
from storefront.models.shop import Product


class InventoryLedger:
    """
    Stock counters stored on the product rows.

    Works on the caller's session, so every write joins whatever
    transaction the caller has open.

    Usage:
        ledger = InventoryLedger(db_session)
        if not await ledger.conditional_decrement(product_id, 2):
            ...
    """

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def get_stock(self, product_id: int) -> int:
        """Current stock of a product."""
        result = await self.db.execute(
            select(Product.stock).where(Product.id == product_id)
        )
        stock = result.scalar_one_or_none()
        if stock is None:
            raise NotFoundError(f"Product {product_id} not found")
        return stock

    async def conditional_decrement(self, product_id: int, quantity: int) -> bool:
        """
        Take `quantity` units if at least that many remain.

        The stock condition is part of the UPDATE itself, so it is checked
        against the row as the database sees it when the write happens,
        not against an earlier read.

        Returns:
            True if the stock was decremented, False if it was insufficient
        """
        if quantity <= 0:
            raise ValidationError(f"Invalid quantity {quantity}")

        result = await self.db.execute(
            update(Product)
            .where(Product.id == product_id, Product.stock >= quantity)
            .values(stock=Product.stock - quantity)
            .returning(Product.stock)
            .execution_options(synchronize_session=False)
        )
        if result.scalar_one_or_none() is None:
            logger.info(f"Conditional decrement of {quantity} failed for product {product_id}")
            return False
        return True

    async def set_stock(self, product_id: int, stock: int) -> int:
        """Overwrite stock after a restock or count correction."""
        if stock < 0:
            raise ValidationError("Stock cannot be negative")

        result = await self.db.execute(
            update(Product)
            .where(Product.id == product_id)
            .values(stock=stock)
            .returning(Product.id)
            .execution_options(synchronize_session=False)
        )
        if result.scalar_one_or_none() is None:
            raise NotFoundError(f"Product {product_id} not found")

        logger.info(f"Stock of product {product_id} set to {stock}")
        return stock
