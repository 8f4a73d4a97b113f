"""
Order read strategies.

Pair:
- ``orders.detail``: OrderFullDetailStrategy (4+ levels deep) vs OrderDetailStrategy (shallow)

Single variants:
- ``orders.search``:       date/status/amount filter with deep eager-load, unindexed ``created_at``
- ``orders.list``:         paginated orders with their user
- ``orders.get``:          one order with its user and items
- ``orders.daily_report``: per-day totals over the last N days
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, List

from querylab.domain.models import DailyReportRow, Order
from querylab.domain.requests import DailyReportRequest, IdRequest, OrderSearchRequest, PageRequest
from querylab.domain.results import EntityResult, PaginatedResult, PlainResult
from querylab.errors import NotFoundError
from querylab.infrastructure.aggregate import Aggregate, AtLeast, Avg, Col, CountAll, DateBucket, Sum, Table
from querylab.infrastructure.fetch_plan import (
    ITEM_PRODUCT,
    ORDER_ITEMS,
    ORDER_USER,
    PRODUCT_CATEGORY,
    PRODUCT_ORDER_ITEMS,
    USER_ORDERS,
    FetchPlan,
    Include,
)
from querylab.infrastructure.session import Session
from querylab.strategies.abstract import AbstractQueryStrategy, resolve_page

# order -> user -> user's orders (10) -> items -> product -> category
# order -> items -> product -> category
#                           -> product's order items (5)
FULL_DETAIL_PLAN = FetchPlan(
    "orders",
    (
        Include(
            ORDER_USER,
            includes=(
                Include(
                    USER_ORDERS,
                    limit=10,
                    includes=(
                        Include(
                            ORDER_ITEMS,
                            includes=(Include(ITEM_PRODUCT, includes=(Include(PRODUCT_CATEGORY),)),),
                        ),
                    ),
                ),
            ),
        ),
        Include(
            ORDER_ITEMS,
            includes=(
                Include(
                    ITEM_PRODUCT,
                    includes=(Include(PRODUCT_CATEGORY), Include(PRODUCT_ORDER_ITEMS, limit=5)),
                ),
            ),
        ),
    ),
)

DETAIL_PLAN = FetchPlan("orders", (Include(ORDER_USER), Include(ORDER_ITEMS)))

SEARCH_PLAN = FetchPlan(
    "orders",
    (Include(ORDER_USER), Include(ORDER_ITEMS, includes=(Include(ITEM_PRODUCT),))),
)

LIST_PLAN = FetchPlan("orders", (Include(ORDER_USER),))


def _load_order(session: Session, order_id: int, plan: FetchPlan) -> Order:
    rows = session.fetch_all("SELECT * FROM orders WHERE id = %s", (order_id,), label="orders.by_id")
    if not rows:
        raise NotFoundError("Order", order_id)
    plan.execute(session, rows)
    return Order.model_validate(rows[0])


class OrderFullDetailStrategy(AbstractQueryStrategy):
    """
    Deep eager-load of one order, following `FULL_DETAIL_PLAN`.

    The small per-level limits keep the graph bounded, but the request still
    touches the user's other orders and every product's other sales.
    """

    name = "order_full_detail"
    use_case = "orders.detail"
    variant = "naive"
    description = "Eager-load 5 levels deep (user's other orders, product's other items)."
    request_model = IdRequest
    warning = "This query has deeply nested includes which can be slow"

    def run(self, session: Session, request: IdRequest) -> EntityResult[Order]:
        return EntityResult(data=_load_order(session, request.id, FULL_DETAIL_PLAN), warning=self.warning)


class OrderDetailStrategy(AbstractQueryStrategy):
    name = "order_detail"
    use_case = "orders.detail"
    variant = "optimized"
    description = "Order with its direct user and items only."
    request_model = IdRequest

    def run(self, session: Session, request: IdRequest) -> EntityResult[Order]:
        return EntityResult(data=_load_order(session, request.id, DETAIL_PLAN))


class OrderLookupStrategy(OrderDetailStrategy):
    name = "order_by_id"
    use_case = "orders.get"
    description = "Primary-key lookup with user and items."


class OrderSearchStrategy(AbstractQueryStrategy):
    """
    Filter by date window, status and minimum amount, then eager-load user and
    items with products. ``orders.created_at`` has no index, so the window
    filter scans. No optimized counterpart is offered.
    """

    name = "orders_search"
    use_case = "orders.search"
    variant = "naive"
    description = "Date/status/amount filter on unindexed created_at plus deep eager-load."
    request_model = OrderSearchRequest
    warning = "This query may be slow due to missing indexes"

    def run(self, session: Session, request: OrderSearchRequest) -> PlainResult[Order]:
        start, end = request.window()
        clauses = ["created_at BETWEEN %s AND %s"]
        params: List[Any] = [start, end]
        if request.status is not None:
            clauses.append("status = %s")
            params.append(request.status.value)
        if request.amount_floor is not None:
            clauses.append("total_amount >= %s")
            params.append(request.amount_floor)

        rows = session.fetch_all(
            f"SELECT * FROM orders WHERE {' AND '.join(clauses)} ORDER BY created_at DESC, id DESC",
            params,
            label="orders.search",
        )
        SEARCH_PLAN.execute(session, rows)
        orders = [Order.model_validate(row) for row in rows]
        return PlainResult(data=orders, total=len(orders), warning=self.warning)


class OrdersPageStrategy(AbstractQueryStrategy):
    name = "orders_list_paginated"
    use_case = "orders.list"
    variant = "optimized"
    description = "Paginated orders with their user, newest first."
    request_model = PageRequest

    def run(self, session: Session, request: PageRequest) -> PaginatedResult[Order]:
        page = resolve_page(request.page, request.page_size)
        total = int(session.fetch_value("SELECT COUNT(*) FROM orders", label="orders.count"))
        rows = session.fetch_all(
            "SELECT * FROM orders ORDER BY created_at DESC, id DESC LIMIT %s OFFSET %s",
            (page.size, page.offset),
            label="orders.page",
        )
        LIST_PLAN.execute(session, rows)
        return page.result([Order.model_validate(row) for row in rows], total)


class DailyOrderReportStrategy(AbstractQueryStrategy):
    """
    Orders per calendar day with revenue and average order value, newest day
    first. Filters and groups on the unindexed ``created_at``.
    """

    name = "orders_daily_report"
    use_case = "orders.daily_report"
    variant = "naive"
    description = "GROUP BY DATE(created_at) over an unindexed timestamp."
    request_model = DailyReportRequest
    warning = "This aggregation query may be slow without proper indexes"

    def run(self, session: Session, request: DailyReportRequest) -> PlainResult[DailyReportRow]:
        since = datetime.now(timezone.utc) - timedelta(days=request.days)
        created_at = Col("o", "created_at")
        report = Aggregate(
            source=Table("orders", "o"),
            dimensions=(DateBucket(created_at, "date"),),
            measures=(
                CountAll("order_count"),
                Sum(Col("o", "total_amount"), "total_revenue"),
                Avg(Col("o", "total_amount"), "average_order_value"),
            ),
            where=(AtLeast(created_at, since),),
            order_by=(("date", "DESC"),),
            label="orders.daily_report",
        )
        rows = [DailyReportRow.model_validate(row) for row in report.fetch(session)]
        return PlainResult(data=rows, total=len(rows), warning=self.warning)


__all__ = [
    "DETAIL_PLAN",
    "DailyOrderReportStrategy",
    "FULL_DETAIL_PLAN",
    "OrderDetailStrategy",
    "OrderFullDetailStrategy",
    "OrderLookupStrategy",
    "OrderSearchStrategy",
    "OrdersPageStrategy",
    "SEARCH_PLAN",
]
