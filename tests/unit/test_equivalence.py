from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

from querylab.domain.models import Order, ProductReportRow, User
from querylab.domain.results import EntityResult, Page, PlainResult
from querylab.equivalence import outputs_equivalent

NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)


def _user_row(user_id: int) -> dict:
    return {"id": user_id, "email": f"u{user_id}@example.com", "name": "U", "created_at": NOW, "updated_at": NOW}


def _users(ids) -> list:
    return [User.model_validate(_user_row(user_id)) for user_id in ids]


def _order_row(**relations) -> dict:
    return {
        "id": 1,
        "user_id": 1,
        "status": "shipped",
        "total_amount": Decimal("20.00"),
        "created_at": NOW,
        "updated_at": NOW,
        **relations,
    }


def _item_row(item_id: int, **relations) -> dict:
    return {
        "id": item_id,
        "order_id": 1,
        "product_id": item_id,
        "quantity": 1,
        "price": Decimal("10.00"),
        "created_at": NOW,
        "updated_at": NOW,
        **relations,
    }


def test_users_list_page_matches_slice_of_full_list():
    everyone = PlainResult(data=_users(range(1, 46)), total=45, warning="slow")
    second_page = Page.resolve(2, 20).result(_users(range(21, 41)), total=45)

    assert outputs_equivalent("users.list", everyone, second_page, {"page": 2, "pageSize": 20})
    assert not outputs_equivalent("users.list", everyone, second_page, {"page": 1, "pageSize": 20})


def test_users_list_totals_must_agree():
    everyone = PlainResult(data=_users(range(1, 4)), total=3)
    page = Page.resolve(1, 20).result(_users(range(1, 4)), total=4)
    assert not outputs_equivalent("users.list", everyone, page, {})


def test_order_detail_compares_shallow_projection():
    deep_user = {**_user_row(1), "orders": [_order_row()]}
    product = {"id": 1, "name": "Chair", "price": Decimal("10.00"), "stock": 1, "category_id": 1,
               "created_at": NOW, "updated_at": NOW}
    deep = Order.model_validate(
        _order_row(user=deep_user, items=[_item_row(1, product=product), _item_row(2, product=None)])
    )
    shallow = Order.model_validate(_order_row(user=_user_row(1), items=[_item_row(1), _item_row(2)]))

    assert outputs_equivalent("orders.detail", EntityResult(data=deep, warning="deep"), EntityResult(data=shallow))


def test_order_detail_detects_differing_items():
    deep = Order.model_validate(_order_row(user=_user_row(1), items=[_item_row(1)]))
    shallow = Order.model_validate(_order_row(user=_user_row(1), items=[_item_row(1), _item_row(2)]))
    assert not outputs_equivalent("orders.detail", EntityResult(data=deep), EntityResult(data=shallow))


def test_report_rows_compare_exactly_and_in_order():
    def row(product_id: int, revenue: str) -> ProductReportRow:
        return ProductReportRow(
            id=product_id, name="P", category="C", stock=1, total_sold=1, total_revenue=revenue, order_count=1
        )

    naive = PlainResult(data=[row(2, "9.5"), row(1, "3")], total=2)
    optimized = PlainResult(data=[row(2, "9.50"), row(1, "3.00")], total=2)
    swapped = PlainResult(data=[row(1, "3.00"), row(2, "9.50")], total=2)

    assert outputs_equivalent("products.report", naive, optimized)
    assert not outputs_equivalent("products.report", naive, swapped)
