"""
Integration tests for the write paths: order creation and seed runs.

Run with: RUN_INTEGRATION_TESTS=1 pytest tests/integration/
"""

from __future__ import annotations

import os
from decimal import Decimal

import pytest

from querylab.errors import ReferencedEntityMissingError
from querylab.seeding import SeedRunner, SeedTier
from querylab.strategies.order_writes import create_order

pytestmark = pytest.mark.skipif(
    os.getenv("RUN_INTEGRATION_TESTS", "0") != "1",
    reason="Integration tests require RUN_INTEGRATION_TESTS=1 and reachable Postgres",
)

APPEND_TIER = SeedTier("append", categories=2, products=4, users=3, orders=5, items_per_order=(1, 2))


def _count(session, table: str) -> int:
    return int(session.fetch_value(f"SELECT COUNT(*) FROM {table}"))


@pytest.fixture
def priced_products(seeded_db, session):
    """Two fresh products priced 10.00 and 5.00 in a seeded category."""
    category_id = session.fetch_value("SELECT MIN(id) FROM categories")
    rows = session.insert_many(
        "INSERT INTO products (name, description, price, stock, category_id) VALUES (%s, %s, %s, %s, %s) RETURNING id",
        [
            ("Fixture Lamp", None, Decimal("10.00"), 5, category_id),
            ("Fixture Mug", None, Decimal("5.00"), 5, category_id),
        ],
    )
    return [row["id"] for row in rows]


class TestDatasetInvariants:
    def test_every_order_total_equals_sum_of_its_items(self, seeded_db, session):
        mismatched = session.fetch_value(
            "SELECT COUNT(*) FROM orders o "
            "JOIN (SELECT order_id, SUM(quantity * price) AS total FROM order_items GROUP BY order_id) i "
            "ON i.order_id = o.id WHERE i.total <> o.total_amount"
        )
        assert mismatched == 0

    def test_seeded_orders_have_items(self, seeded_db, session):
        empty = session.fetch_value(
            "SELECT COUNT(*) FROM orders o WHERE NOT EXISTS (SELECT 1 FROM order_items i WHERE i.order_id = o.id)"
        )
        assert empty == 0

    def test_no_dangling_references(self, seeded_db, session):
        checks = {
            "products.category_id": "SELECT COUNT(*) FROM products p LEFT JOIN categories c ON c.id = p.category_id WHERE c.id IS NULL",
            "orders.user_id": "SELECT COUNT(*) FROM orders o LEFT JOIN users u ON u.id = o.user_id WHERE u.id IS NULL",
            "order_items.order_id": "SELECT COUNT(*) FROM order_items i LEFT JOIN orders o ON o.id = i.order_id WHERE o.id IS NULL",
            "order_items.product_id": "SELECT COUNT(*) FROM order_items i LEFT JOIN products p ON p.id = i.product_id WHERE p.id IS NULL",
        }
        for column, query in checks.items():
            assert session.fetch_value(query) == 0, column

    def test_seed_summary_matches_tier(self, seeded_db):
        assert (seeded_db.categories, seeded_db.products, seeded_db.users, seeded_db.orders) == (3, 20, 8, 40)
        assert seeded_db.order_items >= seeded_db.orders


class TestAppendRuns:
    def test_two_appended_runs_with_distinct_ids_do_not_collide(self, seeded_db, session):
        users_before = _count(session, "users")
        categories_before = _count(session, "categories")

        for run_id in ("appenda", "appendb"):
            summary = SeedRunner(session, APPEND_TIER, reset=False, run_id=run_id, seed=11).run()
            assert summary.users == APPEND_TIER.users

        assert _count(session, "users") == users_before + 2 * APPEND_TIER.users
        assert _count(session, "categories") == categories_before + 2 * APPEND_TIER.categories
        assert session.fetch_value("SELECT COUNT(DISTINCT email) FROM users") == _count(session, "users")
        assert session.fetch_value("SELECT COUNT(DISTINCT name) FROM categories") == _count(session, "categories")

    def test_reused_run_id_continues_its_key_sequences(self, seeded_db, session):
        users_before = _count(session, "users")

        for seed in (1, 2):
            SeedRunner(session, APPEND_TIER, reset=False, run_id="again", seed=seed).run()

        assert _count(session, "users") == users_before + 2 * APPEND_TIER.users
        assert session.fetch_value("SELECT COUNT(DISTINCT email) FROM users") == _count(session, "users")
        names = {row["name"] for row in session.fetch_all("SELECT name FROM categories WHERE name LIKE '% again-%'")}
        assert {name.rsplit("-", 1)[1] for name in names} == {"1", "2", "3", "4"}


class TestCreateOrder:
    def test_order_is_priced_from_current_product_prices(self, session, priced_products):
        lamp, mug = priced_products
        user_id = session.fetch_value("SELECT MIN(id) FROM users")

        order = create_order(
            session,
            {"userId": user_id, "items": [{"productId": lamp, "quantity": 2}, {"productId": mug, "quantity": 1}]},
        ).data

        assert order.total_amount == Decimal("25.00")
        assert order.status.value == "pending"
        stored = session.fetch_all(
            "SELECT product_id, quantity, price FROM order_items WHERE order_id = %s ORDER BY id", (order.id,)
        )
        assert [(row["product_id"], row["quantity"], row["price"]) for row in stored] == [
            (lamp, 2, Decimal("10.00")),
            (mug, 1, Decimal("5.00")),
        ]

    def test_item_prices_are_snapshots(self, session, priced_products):
        lamp, _ = priced_products
        user_id = session.fetch_value("SELECT MIN(id) FROM users")
        order = create_order(session, {"userId": user_id, "items": [{"productId": lamp, "quantity": 1}]}).data

        session.execute("UPDATE products SET price = 99.99 WHERE id = %s", (lamp,))

        price = session.fetch_value("SELECT price FROM order_items WHERE order_id = %s", (order.id,))
        assert price == Decimal("10.00")

    def test_missing_product_leaves_no_order_behind(self, session, priced_products):
        lamp, _ = priced_products
        user_id = session.fetch_value("SELECT MIN(id) FROM users")
        orders_before = _count(session, "orders")
        items_before = _count(session, "order_items")

        with pytest.raises(ReferencedEntityMissingError, match="Product 987654321 not found"):
            create_order(
                session,
                {"userId": user_id, "items": [{"productId": lamp, "quantity": 1}, {"productId": 987_654_321, "quantity": 1}]},
            )

        assert _count(session, "orders") == orders_before
        assert _count(session, "order_items") == items_before

    def test_missing_user_is_reported_and_rolled_back(self, session, priced_products):
        lamp, _ = priced_products
        orders_before = _count(session, "orders")

        with pytest.raises(ReferencedEntityMissingError, match="User 987654321 not found"):
            create_order(session, {"userId": 987_654_321, "items": [{"productId": lamp, "quantity": 1}]})

        assert _count(session, "orders") == orders_before
