"""
Shop Service - Product and category catalog.
"""

from decimal import Decimal
from typing import Any

from slugify import slugify
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from storefront.core.errors import NotFoundError, ValidationError
from storefront.models.shop import Category, Product

PRODUCT_UPDATABLE_FIELDS = ("name", "price", "image", "description", "category_id")
PRODUCT_REQUIRED_FIELDS = ("name", "price", "image")


class ShopService:
    """
    Service for managing products and categories.

    Usage:
        shop = ShopService(db_session)
        products = await shop.get_products(category_slug="audio")
    """

    def __init__(self, db: AsyncSession) -> None:
        """Initialize shop service with database session."""
        self.db = db

    async def _unique_slug(self, model: type[Category] | type[Product], name: str) -> str:
        """Slugify a name, suffixing a counter until it is unused."""
        base_slug = slugify(name)[:90] or "item"
        slug = base_slug

        counter = 1
        while True:
            existing = await self.db.execute(select(model.id).where(model.slug == slug))
            if existing.scalar_one_or_none() is None:
                return slug
            slug = f"{base_slug}-{counter}"
            counter += 1

    # ==================== Categories ====================

    async def get_categories(self) -> list[Category]:
        """Get all categories."""
        result = await self.db.execute(select(Category).order_by(Category.name))
        return list(result.scalars().all())

    async def get_category(self, slug: str) -> Category | None:
        """Get category by slug."""
        result = await self.db.execute(select(Category).where(Category.slug == slug))
        return result.scalar_one_or_none()

    async def create_category(self, name: str, description: str | None = None) -> Category:
        """Create new category; names are unique."""
        existing = await self.db.execute(select(Category.id).where(Category.name == name))
        if existing.scalar_one_or_none() is not None:
            raise ValidationError(f"Category {name} already exists")

        category = Category(
            name=name,
            slug=await self._unique_slug(Category, name),
            description=description,
        )
        self.db.add(category)
        await self.db.flush()
        return category

    # ==================== Products ====================

    async def get_products(
        self,
        category_slug: str | None = None,
        search: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> list[Product]:
        """
        Get products with filters.

        Args:
            category_slug: Filter by category
            search: Search in name/description
            limit: Max results
            offset: Pagination offset

        Returns:
            List of products
        """
        query = select(Product).options(selectinload(Product.category))

        if category_slug:
            query = query.join(Category).where(Category.slug == category_slug)

        if search:
            search_pattern = f"%{search}%"
            query = query.where(
                Product.name.ilike(search_pattern)
                | Product.description.ilike(search_pattern)
            )

        query = query.order_by(Product.created_at.desc()).limit(limit).offset(offset)

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_product(self, product_id: int) -> Product:
        """Get product by ID, or raise NotFoundError."""
        query = (
            select(Product)
            .options(selectinload(Product.category))
            .where(Product.id == product_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(query)
        product = result.scalar_one_or_none()
        if product is None:
            raise NotFoundError("Product not found")
        return product

    async def create_product(
        self,
        name: str,
        price: Decimal,
        image: str = "",
        description: str | None = None,
        category_id: int | None = None,
        stock: int = 0,
    ) -> Product:
        """Create new product."""
        if stock < 0:
            raise ValidationError("Stock cannot be negative")
        if category_id is not None and await self.db.get(Category, category_id) is None:
            raise ValidationError(f"Category {category_id} not found")

        product = Product(
            name=name,
            slug=await self._unique_slug(Product, name),
            price=price,
            image=image,
            description=description,
            category_id=category_id,
            stock=stock,
        )
        self.db.add(product)
        await self.db.flush()
        return await self.get_product(product.id)

    async def update_product(self, product_id: int, changes: dict[str, Any]) -> Product:
        """
        Update catalog fields of a product.

        Stock is not updatable here; it changes through the inventory ledger.
        Existing order snapshots are not affected.
        """
        product = await self.get_product(product_id)

        for field in PRODUCT_REQUIRED_FIELDS:
            if field in changes and changes[field] is None:
                raise ValidationError(f"Product {field} cannot be null")

        if changes.get("category_id") is not None:
            if await self.db.get(Category, changes["category_id"]) is None:
                raise ValidationError(f"Category {changes['category_id']} not found")

        for field in PRODUCT_UPDATABLE_FIELDS:
            if field in changes:
                setattr(product, field, changes[field])

        await self.db.flush()
        return await self.get_product(product_id)

    async def delete_product(self, product_id: int) -> None:
        """Delete product. Orders keep their snapshots."""
        product = await self.get_product(product_id)
        await self.db.delete(product)
        await self.db.flush()
