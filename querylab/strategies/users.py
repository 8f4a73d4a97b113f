"""
User-facing strategies.

Pairs:
- ``users.list``:   AllUsersStrategy (unbounded) vs PaginatedUsersStrategy
- ``users.orders``: UserOrdersNPlusOneStrategy vs UserOrdersEagerStrategy

Single variants:
- ``users.by_date``: range filter on the unindexed ``created_at`` (no fast path exists)
- ``users.get``:     primary-key lookup
- ``users.export``:  every user with orders -> items -> product
"""

from __future__ import annotations

from typing import Any, Dict, List

from psycopg import sql

from querylab.domain.models import Order, User
from querylab.domain.requests import DateWindowRequest, IdRequest, NoParams, PageRequest, UserOrdersRequest
from querylab.domain.results import EntityResult, PaginatedResult, PlainResult
from querylab.errors import NotFoundError
from querylab.infrastructure.fetch_plan import (
    ITEM_PRODUCT,
    ORDER_ITEMS,
    USER_ORDERS,
    FetchPlan,
    Include,
)
from querylab.infrastructure.schema import prefixed_columns, unprefix
from querylab.infrastructure.session import Row, Session
from querylab.strategies.abstract import AbstractQueryStrategy, resolve_page

USER_ORDER = "ORDER BY created_at DESC, id DESC"

USER_EXPORT_PLAN = FetchPlan(
    "users",
    (Include(USER_ORDERS, includes=(Include(ORDER_ITEMS, includes=(Include(ITEM_PRODUCT),)),)),),
)


class AllUsersStrategy(AbstractQueryStrategy):
    """
    Fetch the whole users table in one unbounded query.

    WARNING: memory and transfer grow with the table; on the large tier this is
    100k rows per request.
    """

    name = "users_list_all"
    use_case = "users.list"
    variant = "naive"
    description = "Unbounded SELECT of every user, newest first."
    request_model = PageRequest
    warning = "This endpoint has no pagination and may be slow with large datasets"

    def run(self, session: Session, request: PageRequest) -> PlainResult[User]:
        rows = session.fetch_all(f"SELECT * FROM users {USER_ORDER}", label="users.all")
        users = [User.model_validate(row) for row in rows]
        return PlainResult(data=users, total=len(users), warning=self.warning)


class PaginatedUsersStrategy(AbstractQueryStrategy):
    name = "users_list_paginated"
    use_case = "users.list"
    variant = "optimized"
    description = "LIMIT/OFFSET page plus COUNT(*), page size capped at 100."
    request_model = PageRequest

    def run(self, session: Session, request: PageRequest) -> PaginatedResult[User]:
        page = resolve_page(request.page, request.page_size)
        total = int(session.fetch_value("SELECT COUNT(*) FROM users", label="users.count"))
        rows = session.fetch_all(
            f"SELECT * FROM users {USER_ORDER} LIMIT %s OFFSET %s",
            (page.size, page.offset),
            label="users.page",
        )
        return page.result([User.model_validate(row) for row in rows], total)


class UserOrdersNPlusOneStrategy(AbstractQueryStrategy):
    """
    Orders first, then one query per order for its items, then one query per
    item for its product and one per product for its category.

    Round trips: 1 + orders + 2 * items.
    """

    name = "user_orders_n_plus_one"
    use_case = "users.orders"
    variant = "naive"
    description = "N+1: per-order item fetch, per-item product and category fetch."
    request_model = UserOrdersRequest
    warning = "This endpoint demonstrates N+1 query problem"

    def run(self, session: Session, request: UserOrdersRequest) -> PlainResult[Order]:
        orders = session.fetch_all(
            f"SELECT * FROM orders WHERE user_id = %s {USER_ORDER}",
            (request.user_id,),
            label="orders.by_user",
        )
        for order in orders:
            items = session.fetch_all(
                "SELECT * FROM order_items WHERE order_id = %s ORDER BY id",
                (order["id"],),
                label="order_items.by_order",
            )
            for item in items:
                product = session.fetch_one(
                    "SELECT * FROM products WHERE id = %s", (item["product_id"],), label="products.by_id"
                )
                if product is not None:
                    product["category"] = session.fetch_one(
                        "SELECT * FROM categories WHERE id = %s",
                        (product["category_id"],),
                        label="categories.by_id",
                    )
                item["product"] = product
            order["items"] = items

        data = [Order.model_validate(order) for order in orders]
        return PlainResult(data=data, total=len(data), warning=self.warning)


class UserOrdersEagerStrategy(AbstractQueryStrategy):
    """
    One joined query covering orders -> items -> products -> category, folded
    back into nested orders in a single pass.
    """

    name = "user_orders_eager"
    use_case = "users.orders"
    variant = "optimized"
    description = "Single LEFT JOIN query, nested in memory."
    request_model = UserOrdersRequest

    def run(self, session: Session, request: UserOrdersRequest) -> PlainResult[Order]:
        query = sql.SQL(
            "SELECT {o}, {oi}, {p}, {c} FROM orders o "
            "LEFT JOIN order_items oi ON oi.order_id = o.id "
            "LEFT JOIN products p ON p.id = oi.product_id "
            "LEFT JOIN categories c ON c.id = p.category_id "
            "WHERE o.user_id = %s "
            "ORDER BY o.created_at DESC, o.id DESC, oi.id ASC"
        ).format(
            o=prefixed_columns("orders", "o"),
            oi=prefixed_columns("order_items", "oi"),
            p=prefixed_columns("products", "p"),
            c=prefixed_columns("categories", "c"),
        )
        rows = session.fetch_all(query, (request.user_id,), label="orders.by_user.eager")

        orders: Dict[int, Dict[str, Any]] = {}
        for row in rows:
            order = unprefix(row, "orders", "o")
            current = orders.setdefault(order["id"], {**order, "items": []})
            item = unprefix(row, "order_items", "oi")
            if item is None:
                continue
            product = unprefix(row, "products", "p")
            if product is not None:
                product["category"] = unprefix(row, "categories", "c")
            item["product"] = product
            current["items"].append(item)

        data = [Order.model_validate(order) for order in orders.values()]
        return PlainResult(data=data, total=len(data))


class UsersByDateStrategy(AbstractQueryStrategy):
    """
    Range filter on ``users.created_at``, which carries no index, so PostgreSQL
    scans the whole table. There is no optimized counterpart.
    """

    name = "users_by_date"
    use_case = "users.by_date"
    variant = "naive"
    description = "BETWEEN on unindexed created_at (sequential scan)."
    request_model = DateWindowRequest
    warning = "This query performs a full table scan (created_at not indexed)"

    def run(self, session: Session, request: DateWindowRequest) -> PlainResult[User]:
        start, end = request.window()
        rows = session.fetch_all(
            f"SELECT * FROM users WHERE created_at BETWEEN %s AND %s {USER_ORDER}",
            (start, end),
            label="users.by_date",
        )
        users = [User.model_validate(row) for row in rows]
        return PlainResult(data=users, total=len(users), warning=self.warning)


class UserLookupStrategy(AbstractQueryStrategy):
    name = "user_by_id"
    use_case = "users.get"
    variant = "optimized"
    description = "Primary-key lookup."
    request_model = IdRequest

    def run(self, session: Session, request: IdRequest) -> EntityResult[User]:
        row = session.fetch_one("SELECT * FROM users WHERE id = %s", (request.id,), label="users.by_id")
        if row is None:
            raise NotFoundError("User", request.id)
        return EntityResult(data=User.model_validate(row))


class UserExportStrategy(AbstractQueryStrategy):
    """
    Load every user with every order, item and product into memory at once.
    """

    name = "users_export_all"
    use_case = "users.export"
    variant = "naive"
    description = "Whole user graph eager-loaded into memory."
    request_model = NoParams
    warning = "This endpoint loads all data into memory"

    def run(self, session: Session, request: NoParams) -> PlainResult[User]:
        rows: List[Row] = session.fetch_all("SELECT * FROM users ORDER BY id", label="users.all")
        USER_EXPORT_PLAN.execute(session, rows)
        users = [User.model_validate(row) for row in rows]
        return PlainResult(data=users, total=len(users), warning=self.warning)


__all__ = [
    "AllUsersStrategy",
    "PaginatedUsersStrategy",
    "USER_EXPORT_PLAN",
    "UserExportStrategy",
    "UserLookupStrategy",
    "UserOrdersEagerStrategy",
    "UserOrdersNPlusOneStrategy",
    "UsersByDateStrategy",
]
