"""
Strategies package for the Query Strategy Lab.

This module re-exports the abstract interfaces and the concrete strategy classes
so downstream code can import from `querylab.strategies` directly.
"""

from querylab.strategies.abstract import AbstractQueryStrategy, QueryStrategy, Variant
from querylab.strategies.order_writes import create_order, validate_order_request
from querylab.strategies.orders import (
    DailyOrderReportStrategy,
    OrderDetailStrategy,
    OrderFullDetailStrategy,
    OrderLookupStrategy,
    OrderSearchStrategy,
    OrdersPageStrategy,
)
from querylab.strategies.products import (
    CategorySummaryStrategy,
    ProductLookupStrategy,
    ProductReportAggregatedStrategy,
    ProductReportInMemoryStrategy,
    ProductSearchStrategy,
    ProductsPageStrategy,
)
from querylab.strategies.users import (
    AllUsersStrategy,
    PaginatedUsersStrategy,
    UserExportStrategy,
    UserLookupStrategy,
    UserOrdersEagerStrategy,
    UserOrdersNPlusOneStrategy,
    UsersByDateStrategy,
)

__all__ = [
    # Abstracts
    "AbstractQueryStrategy",
    "QueryStrategy",
    "Variant",
    # Write path
    "create_order",
    "validate_order_request",
    # Users
    "AllUsersStrategy",
    "PaginatedUsersStrategy",
    "UserExportStrategy",
    "UserLookupStrategy",
    "UserOrdersEagerStrategy",
    "UserOrdersNPlusOneStrategy",
    "UsersByDateStrategy",
    # Orders
    "DailyOrderReportStrategy",
    "OrderDetailStrategy",
    "OrderFullDetailStrategy",
    "OrderLookupStrategy",
    "OrderSearchStrategy",
    "OrdersPageStrategy",
    # Products
    "CategorySummaryStrategy",
    "ProductLookupStrategy",
    "ProductReportAggregatedStrategy",
    "ProductReportInMemoryStrategy",
    "ProductSearchStrategy",
    "ProductsPageStrategy",
]
