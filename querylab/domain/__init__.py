"""
Domain package for the Query Strategy Lab.

Exports the entity models, request models and result envelopes shared by the
strategies, the seeder and the orchestrator. Keep this package focused on data
definitions and validation concerns.
"""

from querylab.domain.models import (
    Category,
    CategorySummary,
    DailyReportRow,
    Order,
    OrderItem,
    OrderStatus,
    Product,
    ProductReportRow,
    User,
    to_money,
)
from querylab.domain.requests import CreateOrderRequest, OrderLine
from querylab.domain.results import EntityResult, Page, PaginatedResult, PlainResult, Result

__all__ = [
    "Category",
    "CategorySummary",
    "CreateOrderRequest",
    "DailyReportRow",
    "EntityResult",
    "Order",
    "OrderItem",
    "OrderLine",
    "OrderStatus",
    "Page",
    "PaginatedResult",
    "PlainResult",
    "Product",
    "ProductReportRow",
    "Result",
    "User",
    "to_money",
]
