"""
Shop models for the storefront.

Includes:
- Categories
- Products (with stock counters)
- Shipping addresses
- Orders and their item snapshots
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum as PyEnum
from uuid import uuid4

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from storefront.core.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_order_id() -> str:
    return uuid4().hex


class PaymentStatus(str, PyEnum):
    """Order payment status."""

    PENDING = "PENDING"
    PAID = "PAID"


class Category(Base):
    """Product category."""

    __tablename__ = "shop_categories"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), unique=True)
    slug: Mapped[str] = mapped_column(String(100), unique=True, index=True)
    description: Mapped[str | None] = mapped_column(Text)

    products: Mapped[list["Product"]] = relationship(back_populates="category")

    def __repr__(self) -> str:
        return f"<Category {self.name}>"


class Product(Base):
    """Product for sale."""

    __tablename__ = "shop_products"
    __table_args__ = (CheckConstraint("stock >= 0", name="ck_shop_products_stock"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255))
    slug: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    description: Mapped[str | None] = mapped_column(Text)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    image: Mapped[str] = mapped_column(String(500), default="")

    # Inventory
    stock: Mapped[int] = mapped_column(Integer, default=0)

    category_id: Mapped[int | None] = mapped_column(ForeignKey("shop_categories.id"))

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    category: Mapped["Category | None"] = relationship(back_populates="products")

    @property
    def is_in_stock(self) -> bool:
        return self.stock > 0

    def __repr__(self) -> str:
        return f"<Product {self.id}: {self.name}>"


class ShippingAddress(Base):
    """Shipping address, created with and owned by exactly one order."""

    __tablename__ = "shop_addresses"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    line_1: Mapped[str] = mapped_column(String(255))
    line_2: Mapped[str] = mapped_column(String(255))
    city: Mapped[str] = mapped_column(String(100))
    state: Mapped[str] = mapped_column(String(100))
    zip_code: Mapped[str] = mapped_column(String(20))
    phone: Mapped[str] = mapped_column(String(50))

    order: Mapped["Order"] = relationship(back_populates="address")


class Order(Base):
    """Customer order."""

    __tablename__ = "shop_orders"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_order_id)
    user_id: Mapped[str] = mapped_column(String(255), index=True)
    address_id: Mapped[int] = mapped_column(ForeignKey("shop_addresses.id"), unique=True)

    payment_status: Mapped[PaymentStatus] = mapped_column(
        Enum(PaymentStatus), default=PaymentStatus.PENDING
    )
    payment_session_id: Mapped[str | None] = mapped_column(String(255))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, index=True
    )

    address: Mapped["ShippingAddress"] = relationship(back_populates="order")
    items: Mapped[list["OrderItem"]] = relationship(
        back_populates="order", order_by="OrderItem.position"
    )

    def __repr__(self) -> str:
        return f"<Order {self.id} {self.payment_status.value}>"


class OrderItem(Base):
    """
    Line item in an order.

    Snapshot of the product as submitted at order time. No foreign key to
    the live product: later edits or deletes never reach this row.
    """

    __tablename__ = "shop_order_items"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    order_id: Mapped[str] = mapped_column(ForeignKey("shop_orders.id"), index=True)
    position: Mapped[int] = mapped_column(Integer, default=0)

    # Snapshot at time of order
    product_id: Mapped[int] = mapped_column(Integer)
    product_name: Mapped[str] = mapped_column(String(255))
    unit_price: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    image: Mapped[str] = mapped_column(String(500))
    description: Mapped[str | None] = mapped_column(Text)
    quantity: Mapped[int] = mapped_column(Integer)

    order: Mapped["Order"] = relationship(back_populates="items")
