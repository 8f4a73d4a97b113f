"""
Product strategies and the product report pair.

Pair:
- ``products.report``: ProductReportInMemoryStrategy vs ProductReportAggregatedStrategy

Single variants:
- ``products.search``:     ILIKE '%term%' on the unindexed name (no fast path)
- ``products.list``:       paginated by name
- ``products.get``:        primary-key lookup with category
- ``products.categories``: categories with product counts

Both report paths return one `ProductReportRow` per product, ordered by revenue
(highest first, ties by product id), and must agree exactly on ``totalSold``,
``totalRevenue`` and ``orderCount``.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Iterable, List

from querylab.domain.models import CategorySummary, Product, ProductReportRow
from querylab.domain.requests import IdRequest, NoParams, PageRequest, ProductSearchRequest
from querylab.domain.results import EntityResult, PaginatedResult, PlainResult
from querylab.errors import NotFoundError
from querylab.infrastructure.aggregate import (
    Aggregate,
    Col,
    CountDistinct,
    Join,
    Sum,
    SumProduct,
    Table,
    dimensions,
)
from querylab.infrastructure.fetch_plan import (
    ITEM_ORDER,
    ORDER_USER,
    PRODUCT_CATEGORY,
    PRODUCT_ORDER_ITEMS,
    FetchPlan,
    Include,
)
from querylab.infrastructure.session import Session
from querylab.strategies.abstract import AbstractQueryStrategy, resolve_page

WITH_CATEGORY_PLAN = FetchPlan("products", (Include(PRODUCT_CATEGORY),))

# product -> category; product -> every order item -> its order -> that order's user
REPORT_GRAPH_PLAN = FetchPlan(
    "products",
    (
        Include(PRODUCT_CATEGORY),
        Include(PRODUCT_ORDER_ITEMS, includes=(Include(ITEM_ORDER, includes=(Include(ORDER_USER),)),)),
    ),
)

PRODUCT_REPORT = Aggregate(
    source=Table("products", "p"),
    joins=(
        Join(Table("categories", "c"), Col("p", "category_id"), Col("c", "id")),
        Join(Table("order_items", "oi"), Col("p", "id"), Col("oi", "product_id")),
    ),
    dimensions=dimensions(
        (Col("p", "id"), "id"),
        (Col("p", "name"), "name"),
        (Col("c", "name"), "category"),
        (Col("p", "stock"), "stock"),
    ),
    measures=(
        Sum(Col("oi", "quantity"), "total_sold"),
        SumProduct(Col("oi", "quantity"), Col("oi", "price"), "total_revenue"),
        CountDistinct(Col("oi", "id"), "order_count"),
    ),
    order_by=(("total_revenue", "DESC"), ("id", "ASC")),
    label="products.report.aggregate",
)

CATEGORY_SUMMARY = Aggregate(
    source=Table("categories", "c"),
    joins=(Join(Table("products", "p"), Col("c", "id"), Col("p", "category_id")),),
    dimensions=dimensions(
        (Col("c", "id"), "id"),
        (Col("c", "name"), "name"),
        (Col("c", "description"), "description"),
        (Col("c", "created_at"), "created_at"),
        (Col("c", "updated_at"), "updated_at"),
    ),
    measures=(CountDistinct(Col("p", "id"), "product_count"),),
    order_by=(("name", "ASC"),),
    label="categories.summary",
)


def fold_product_report(products: Iterable[Product]) -> List[ProductReportRow]:
    """
    Reduce fully loaded products (with ``category`` and ``order_items``) to
    report rows in application memory.
    """
    rows: List[ProductReportRow] = []
    for product in products:
        items = product.order_items or []
        total_sold = sum(item.quantity for item in items)
        total_revenue = sum((item.quantity * item.price for item in items), Decimal("0"))
        rows.append(
            ProductReportRow(
                id=product.id,
                name=product.name,
                category=product.category.name if product.category else None,
                stock=product.stock,
                total_sold=total_sold,
                total_revenue=total_revenue,
                order_count=len(items),
            )
        )
    rows.sort(key=lambda row: (-row.total_revenue, row.id))
    return rows


class ProductReportInMemoryStrategy(AbstractQueryStrategy):
    """
    Pull every product with its category and every order item, each item's
    order and that order's user, then sum in Python.

    The user and order rows are never needed for the totals; they are loaded
    anyway, which is what makes this the most expensive path in the lab.
    """

    name = "product_report_in_memory"
    use_case = "products.report"
    variant = "naive"
    description = "Cartesian-like object graph folded in application memory."
    request_model = NoParams
    warning = "This report uses inefficient joins and in-memory calculations"

    def run(self, session: Session, request: NoParams) -> PlainResult[ProductReportRow]:
        rows = session.fetch_all("SELECT * FROM products", label="products.all")
        REPORT_GRAPH_PLAN.execute(session, rows)
        report = fold_product_report(Product.model_validate(row) for row in rows)
        return PlainResult(data=report, total=len(report), warning=self.warning)


class ProductReportAggregatedStrategy(AbstractQueryStrategy):
    name = "product_report_aggregated"
    use_case = "products.report"
    variant = "optimized"
    description = "Single GROUP BY with SUM/COUNT computed by PostgreSQL."
    request_model = NoParams

    def run(self, session: Session, request: NoParams) -> PlainResult[ProductReportRow]:
        report = [ProductReportRow.model_validate(row) for row in PRODUCT_REPORT.fetch(session)]
        return PlainResult(data=report, total=len(report))


class ProductSearchStrategy(AbstractQueryStrategy):
    """
    Case-insensitive substring match. The leading wildcard rules out any
    b-tree index on ``products.name``, and there is none anyway.
    """

    name = "products_search"
    use_case = "products.search"
    variant = "naive"
    description = "ILIKE '%term%' on unindexed name."
    request_model = ProductSearchRequest
    warning = "LIKE query with leading wildcard is slow"

    def run(self, session: Session, request: ProductSearchRequest) -> PlainResult[Product]:
        clauses: List[str] = []
        params: List[Any] = []
        if request.query:
            clauses.append("name ILIKE %s")
            params.append(f"%{request.query}%")
        if request.category_id is not None:
            clauses.append("category_id = %s")
            params.append(request.category_id)
        where = f"WHERE {' AND '.join(clauses)} " if clauses else ""

        rows = session.fetch_all(
            f"SELECT * FROM products {where}ORDER BY name ASC, id ASC",
            params,
            label="products.search",
        )
        WITH_CATEGORY_PLAN.execute(session, rows)
        products = [Product.model_validate(row) for row in rows]
        return PlainResult(data=products, total=len(products), warning=self.warning)


class ProductsPageStrategy(AbstractQueryStrategy):
    name = "products_list_paginated"
    use_case = "products.list"
    variant = "optimized"
    description = "Paginated products with category, ordered by name."
    request_model = PageRequest

    def run(self, session: Session, request: PageRequest) -> PaginatedResult[Product]:
        page = resolve_page(request.page, request.page_size)
        total = int(session.fetch_value("SELECT COUNT(*) FROM products", label="products.count"))
        rows = session.fetch_all(
            "SELECT * FROM products ORDER BY name ASC, id ASC LIMIT %s OFFSET %s",
            (page.size, page.offset),
            label="products.page",
        )
        WITH_CATEGORY_PLAN.execute(session, rows)
        return page.result([Product.model_validate(row) for row in rows], total)


class ProductLookupStrategy(AbstractQueryStrategy):
    name = "product_by_id"
    use_case = "products.get"
    variant = "optimized"
    description = "Primary-key lookup with category."
    request_model = IdRequest

    def run(self, session: Session, request: IdRequest) -> EntityResult[Product]:
        rows = session.fetch_all("SELECT * FROM products WHERE id = %s", (request.id,), label="products.by_id")
        if not rows:
            raise NotFoundError("Product", request.id)
        WITH_CATEGORY_PLAN.execute(session, rows)
        return EntityResult(data=Product.model_validate(rows[0]))


class CategorySummaryStrategy(AbstractQueryStrategy):
    name = "categories_with_counts"
    use_case = "products.categories"
    variant = "optimized"
    description = "Categories with product counts via GROUP BY."
    request_model = NoParams

    def run(self, session: Session, request: NoParams) -> PlainResult[CategorySummary]:
        categories = [CategorySummary.model_validate(row) for row in CATEGORY_SUMMARY.fetch(session)]
        return PlainResult(data=categories, total=len(categories))


__all__ = [
    "CATEGORY_SUMMARY",
    "CategorySummaryStrategy",
    "PRODUCT_REPORT",
    "REPORT_GRAPH_PLAN",
    "ProductLookupStrategy",
    "ProductReportAggregatedStrategy",
    "ProductReportInMemoryStrategy",
    "ProductSearchStrategy",
    "ProductsPageStrategy",
    "fold_product_report",
]
