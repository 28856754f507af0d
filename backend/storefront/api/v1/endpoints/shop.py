"""
Shop API Endpoints.

Catalog, checkout and order history.
"""

from decimal import Decimal
from typing import Any

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from storefront.core.database import get_db, get_session_factory
from storefront.core.errors import NotFoundError
from storefront.core.security import get_current_user_id, require_admin
from storefront.models.shop import Category, Order, PaymentStatus, Product
from storefront.modules.shop.checkout import CheckoutService
from storefront.modules.shop.inventory import InventoryLedger
from storefront.modules.shop.orders import OrderStore
from storefront.modules.shop.payment import PaymentService, get_payment_service
from storefront.modules.shop.service import ShopService

router = APIRouter()


# ==================== Schemas ====================


class CreateCategoryRequest(BaseModel):
    """Create new category."""

    name: str
    description: str | None = None


class CreateProductRequest(BaseModel):
    """Create new product."""

    name: str
    price: Decimal
    image: str = ""
    description: str | None = None
    category_id: int | None = None
    stock: int = 0


class UpdateProductRequest(BaseModel):
    """Update product catalog fields."""

    name: str | None = None
    price: Decimal | None = None
    image: str | None = None
    description: str | None = None
    category_id: int | None = None


class UpdateStockRequest(BaseModel):
    """Set product stock."""

    stock: int


class CartProduct(BaseModel):
    """Product snapshot as shown to the customer."""

    id: int
    name: str
    price: Decimal
    image: str
    description: str | None = None


class CartItem(BaseModel):
    product: CartProduct
    quantity: int


class ShippingAddressRequest(BaseModel):
    line_1: str
    line_2: str
    city: str
    state: str
    zip_code: str
    phone: str


class CheckoutRequest(BaseModel):
    """Cart and shipping address submitted at checkout."""

    model_config = ConfigDict(populate_by_name=True)

    items: list[CartItem]
    shipping_address: ShippingAddressRequest = Field(alias="shippingAddress")


# ==================== Serializers ====================


def category_to_dict(category: Category) -> dict[str, Any]:
    return {
        "id": category.id,
        "name": category.name,
        "slug": category.slug,
        "description": category.description,
    }


def product_to_dict(product: Product) -> dict[str, Any]:
    return {
        "id": product.id,
        "name": product.name,
        "slug": product.slug,
        "price": str(product.price),
        "image": product.image,
        "description": product.description,
        "stock": product.stock,
        "in_stock": product.is_in_stock,
        "category": category_to_dict(product.category) if product.category else None,
    }


def order_to_dict(order: Order) -> dict[str, Any]:
    address = order.address
    return {
        "id": order.id,
        "user_id": order.user_id,
        "payment_status": order.payment_status.value,
        "created_at": order.created_at.isoformat(),
        "items": [
            {
                "product": {
                    "id": item.product_id,
                    "name": item.product_name,
                    "price": str(item.unit_price),
                    "image": item.image,
                    "description": item.description,
                },
                "quantity": item.quantity,
            }
            for item in order.items
        ],
        "shipping_address": {
            "line_1": address.line_1,
            "line_2": address.line_2,
            "city": address.city,
            "state": address.state,
            "zip_code": address.zip_code,
            "phone": address.phone,
        },
    }


# ==================== Categories ====================


@router.get("/categories")
async def get_categories(
    db: AsyncSession = Depends(get_db),
) -> list[dict[str, Any]]:
    """Get all product categories."""
    shop = ShopService(db)
    categories = await shop.get_categories()
    return [category_to_dict(cat) for cat in categories]


@router.get("/categories/{slug}")
async def get_category(
    slug: str,
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Get category by slug."""
    shop = ShopService(db)
    category = await shop.get_category(slug)

    if not category:
        raise NotFoundError("Category not found")

    return category_to_dict(category)


@router.post("/categories", status_code=status.HTTP_201_CREATED)
async def create_category(
    request: CreateCategoryRequest,
    _admin: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Create category (admin)."""
    shop = ShopService(db)
    category = await shop.create_category(request.name, request.description)
    return category_to_dict(category)


# ==================== Products ====================


@router.get("/products")
async def get_products(
    category: str | None = Query(None, description="Filter by category slug"),
    search: str | None = Query(None, description="Search query"),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Get products with filtering and pagination."""
    shop = ShopService(db)
    products = await shop.get_products(
        category_slug=category,
        search=search,
        limit=limit,
        offset=offset,
    )

    return {
        "items": [product_to_dict(p) for p in products],
        "limit": limit,
        "offset": offset,
    }


@router.get("/products/{product_id}")
async def get_product(
    product_id: int,
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Get product details."""
    shop = ShopService(db)
    return product_to_dict(await shop.get_product(product_id))


@router.post("/products", status_code=status.HTTP_201_CREATED)
async def create_product(
    request: CreateProductRequest,
    _admin: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Create product (admin)."""
    shop = ShopService(db)
    product = await shop.create_product(**request.model_dump())
    return product_to_dict(product)


@router.patch("/products/{product_id}")
async def update_product(
    product_id: int,
    request: UpdateProductRequest,
    _admin: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Update product catalog fields (admin)."""
    shop = ShopService(db)
    product = await shop.update_product(product_id, request.model_dump(exclude_unset=True))
    return product_to_dict(product)


@router.delete("/products/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_product(
    product_id: int,
    _admin: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> None:
    """Delete product (admin)."""
    shop = ShopService(db)
    await shop.delete_product(product_id)


@router.get("/products/{product_id}/stock")
async def get_product_stock(
    product_id: int,
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Get current stock of a product."""
    ledger = InventoryLedger(db)
    stock = await ledger.get_stock(product_id)
    return {"product_id": product_id, "stock": stock, "in_stock": stock > 0}


@router.patch("/products/{product_id}/stock")
async def update_product_stock(
    product_id: int,
    request: UpdateStockRequest,
    _admin: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Set stock of a product (admin)."""
    ledger = InventoryLedger(db)
    stock = await ledger.set_stock(product_id, request.stock)
    return {"product_id": product_id, "stock": stock, "in_stock": stock > 0}


# ==================== Checkout ====================


def get_checkout_service(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    payment: PaymentService = Depends(get_payment_service),
) -> CheckoutService:
    return CheckoutService(session_factory, payment)


@router.post("/checkout", status_code=status.HTTP_201_CREATED)
async def create_checkout(
    request: CheckoutRequest,
    user_id: str = Depends(get_current_user_id),
    checkout: CheckoutService = Depends(get_checkout_service),
) -> dict[str, Any]:
    """
    Place order and create Stripe checkout session.

    Returns the created order and the URL to redirect the customer to.
    """
    data = request.model_dump()
    result = await checkout.place_order(
        user_id=user_id,
        items=data["items"],
        shipping_address=data["shipping_address"],
    )

    return {
        "order": order_to_dict(result.order),
        "session_id": result.session_id,
        "url": result.url,
    }


# ==================== Orders ====================


@router.get("/orders/my-orders")
async def get_my_orders(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Get the caller's paid orders, newest first."""
    orders = await OrderStore(db).list_by_user(
        user_id,
        payment_status=PaymentStatus.PAID,
        limit=limit,
        offset=offset,
    )
    return {"items": [order_to_dict(o) for o in orders]}


@router.get("/orders/{order_id}")
async def get_order(
    order_id: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Get one of the caller's orders."""
    order = await OrderStore(db).get(order_id)

    if order.user_id != user_id:
        raise NotFoundError("Order not found")

    return order_to_dict(order)
