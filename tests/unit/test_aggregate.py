from __future__ import annotations

from datetime import datetime, timezone

import pytest
from psycopg import sql

from querylab.infrastructure.aggregate import Aggregate, AtLeast, Col, CountAll, DateBucket, Sum, Table
from querylab.strategies.products import CATEGORY_SUMMARY, PRODUCT_REPORT

SINCE = datetime(2024, 1, 1, tzinfo=timezone.utc)


class _RecordingSession:
    def __init__(self) -> None:
        self.calls = []

    def fetch_all(self, query, params=None, label=""):
        self.calls.append((query, params, label))
        return [{"date": SINCE.date(), "order_count": 2}]


def _daily(order_by=(("date", "DESC"),)) -> Aggregate:
    created_at = Col("o", "created_at")
    return Aggregate(
        source=Table("orders", "o"),
        dimensions=(DateBucket(created_at, "date"),),
        measures=(CountAll("order_count"), Sum(Col("o", "total_amount"), "total_revenue")),
        where=(AtLeast(created_at, SINCE),),
        order_by=order_by,
        label="orders.daily",
    )


def test_product_report_output_columns():
    assert PRODUCT_REPORT.output_columns == [
        "id",
        "name",
        "category",
        "stock",
        "total_sold",
        "total_revenue",
        "order_count",
    ]
    assert PRODUCT_REPORT.order_by == (("total_revenue", "DESC"), ("id", "ASC"))


def test_category_summary_counts_products():
    assert CATEGORY_SUMMARY.output_columns[-1] == "product_count"


def test_compile_binds_filter_values():
    query, params = _daily().compile()
    assert isinstance(query, sql.Composed)
    assert params == [SINCE]


def test_compile_rejects_order_by_unknown_column():
    with pytest.raises(ValueError, match="non-output"):
        _daily(order_by=(("created_at", "DESC"),)).compile()


def test_compile_requires_a_dimension():
    report = Aggregate(source=Table("orders", "o"), dimensions=(), measures=(CountAll("n"),))
    with pytest.raises(ValueError, match="dimension"):
        report.compile()


def test_fetch_is_a_single_round_trip():
    session = _RecordingSession()
    rows = _daily().fetch(session)
    assert rows == [{"date": SINCE.date(), "order_count": 2}]
    assert len(session.calls) == 1
    _, params, label = session.calls[0]
    assert params == [SINCE]
    assert label == "orders.daily"
