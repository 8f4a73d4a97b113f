"""
Domain models for the Query Strategy Lab.

Mirrors the five tables created by `querylab.infrastructure.schema`. Models are
built from snake_case database rows and serialize with camelCase aliases
(`createdAt`, `totalAmount`, ...). Relation fields (`Order.items`,
`Product.category`, ...) stay unset unless a strategy eager-loads them, and
unset fields are left out of the serialized output.
"""
from __future__ import annotations

from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

CENT = Decimal("0.01")


def to_money(value: Any) -> Decimal:
    """Quantize to the currency's minor unit (2 decimal places)."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


class OrderStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class Entity(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    def to_json_dict(self) -> Dict[str, Any]:
        """JSON-ready dict with camelCase keys, omitting relations never loaded."""
        return self.model_dump(mode="json", by_alias=True, exclude_unset=True)

    def comparable(self) -> Dict[str, Any]:
        """Python-typed dict used to check two strategy outputs for equivalence."""
        return self.model_dump(by_alias=True, exclude_unset=True)


class User(Entity):
    """Representation of a row in the `users` table."""

    id: int
    email: str
    name: str
    created_at: datetime
    updated_at: datetime
    orders: Optional[List[Order]] = None


class Category(Entity):
    id: int
    name: str
    description: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class CategorySummary(Category):
    """Category with the number of products filed under it."""

    product_count: int


class Product(Entity):
    """Representation of a row in the `products` table."""

    id: int
    name: str
    description: Optional[str] = None
    price: Decimal = Field(..., gt=0)
    stock: int = Field(..., ge=0)
    category_id: int
    created_at: datetime
    updated_at: datetime
    category: Optional[Category] = None
    order_items: Optional[List[OrderItem]] = None


class Order(Entity):
    """
    Representation of a row in the `orders` table.

    `total_amount` is written once, at creation, as the sum of its items'
    `quantity * price`.
    """

    id: int
    user_id: int
    status: OrderStatus
    total_amount: Decimal
    created_at: datetime
    updated_at: datetime
    user: Optional[User] = None
    items: Optional[List[OrderItem]] = None


class OrderItem(Entity):
    """
    Representation of a row in the `order_items` table.

    `price` is the product price captured when the order was placed.
    """

    id: int
    order_id: int
    product_id: int
    quantity: int = Field(..., gt=0)
    price: Decimal
    created_at: datetime
    updated_at: datetime
    product: Optional[Product] = None
    order: Optional[Order] = None


class ProductReportRow(Entity):
    id: int
    name: str
    category: Optional[str] = None
    stock: int
    total_sold: int
    total_revenue: Decimal
    order_count: int

    @field_validator("total_revenue", mode="before")
    @classmethod
    def _quantize_revenue(cls, value: Any) -> Decimal:
        return to_money(value)


class DailyReportRow(Entity):
    day: date = Field(..., alias="date")
    order_count: int
    total_revenue: Decimal
    average_order_value: Decimal

    @field_validator("total_revenue", "average_order_value", mode="before")
    @classmethod
    def _quantize_money(cls, value: Any) -> Decimal:
        return to_money(value)


User.model_rebuild()
Product.model_rebuild()
Order.model_rebuild()
OrderItem.model_rebuild()


__all__ = [
    "CENT",
    "Category",
    "CategorySummary",
    "DailyReportRow",
    "Entity",
    "Order",
    "OrderItem",
    "OrderStatus",
    "Product",
    "ProductReportRow",
    "User",
    "to_money",
]
