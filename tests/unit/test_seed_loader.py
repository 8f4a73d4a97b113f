from __future__ import annotations

import contextlib
import re
from collections import defaultdict
from decimal import Decimal
from typing import Any, Dict, List

import pytest

from querylab.config import Settings
from querylab.errors import StorageError
from querylab.seeding import SeedRunner, SeedTier

TINY = SeedTier("tiny", categories=3, products=10, users=5, orders=12, items_per_order=(1, 3))


class _InMemorySession:
    """Keeps inserted rows per table; ids are assigned sequentially like SERIAL."""

    def __init__(self, fail_on_table: str = "") -> None:
        self.fail_on_table = fail_on_table
        self.tables: Dict[str, List[Dict[str, Any]]] = defaultdict(list)
        self.transactions: List[str] = []
        self.statements: List[str] = []

    @contextlib.contextmanager
    def transaction(self, label=""):
        self.transactions.append(label)
        yield self

    def execute(self, query, params=None, label=""):
        self.statements.append(label)
        return 0

    def insert_many(self, query, params_seq, label=""):
        table = query.split()[2]
        if table == self.fail_on_table:
            raise StorageError(f"duplicate key value violates unique constraint on {table}")
        rows = []
        for params in params_seq:
            row = {"id": len(self.tables[table]) + 1, "params": params}
            self.tables[table].append(row)
            rows.append({"id": row["id"]})
        return rows

    def fetch_all(self, query, params=None, label=""):
        if label == "seed.products.prices":
            return [{"id": row["id"], "price": row["params"][2]} for row in self.tables["products"]]
        table = label.split(".")[1]
        return [{"id": row["id"]} for row in self.tables[table]]

    def fetch_value(self, query, params=None, label=""):
        # the highest sequence matched by the pattern, as the loader's SQL computes it
        table = label.split(".")[1]
        seqs = [re.search(params[0], row["params"][0]) for row in self.tables[table]]
        return max((int(match.group(1)) for match in seqs if match), default=0)


def test_run_creates_every_entity_in_batches():
    session = _InMemorySession()
    summary = SeedRunner(session, TINY, reset=True, run_id="unit", batch_size=4, seed=1).run()

    assert (summary.categories, summary.products, summary.users, summary.orders) == (3, 10, 5, 12)
    assert summary.order_items == len(session.tables["order_items"])
    assert summary.run_id == "unit"
    assert session.statements[0] == "schema.drop"
    # categories 1 batch, products 3, users 2, orders 3 (items share the order batch)
    assert session.transactions.count("seed.orders") == 3
    assert session.transactions.count("seed.products") == 3
    assert session.transactions.count("seed.users") == 2


def test_run_wires_foreign_keys_from_returned_ids():
    session = _InMemorySession()
    SeedRunner(session, TINY, run_id="unit", batch_size=5, seed=2).run()

    category_ids = {row["id"] for row in session.tables["categories"]}
    user_ids = {row["id"] for row in session.tables["users"]}
    prices = {row["id"]: row["params"][2] for row in session.tables["products"]}
    order_totals = {row["id"]: row["params"][2] for row in session.tables["orders"]}

    assert all(row["params"][4] in category_ids for row in session.tables["products"])
    assert all(row["params"][0] in user_ids for row in session.tables["orders"])

    computed: Dict[int, Decimal] = defaultdict(Decimal)
    for row in session.tables["order_items"]:
        order_id, product_id, quantity, price = row["params"][:4]
        assert price == prices[product_id]
        computed[order_id] += price * quantity
    assert computed == order_totals


def test_without_reset_schema_is_only_ensured():
    session = _InMemorySession()
    SeedRunner(session, TINY, reset=False, run_id="append", seed=3).run()
    assert "schema.drop" not in session.statements
    assert "schema.create" in session.statements


def test_failing_batch_aborts_run():
    session = _InMemorySession(fail_on_table="users")
    with pytest.raises(StorageError):
        SeedRunner(session, TINY, run_id="boom", seed=4).run()
    assert len(session.tables["products"]) == TINY.products
    assert session.tables["orders"] == []


def test_batch_size_must_be_positive():
    with pytest.raises(ValueError):
        SeedRunner(_InMemorySession(), TINY, batch_size=0)


def test_reused_run_id_continues_key_sequences():
    session = _InMemorySession()
    SeedRunner(session, TINY, reset=True, run_id="unit", seed=5).run()
    SeedRunner(session, TINY, reset=False, run_id="unit", seed=5).run()

    names = [row["params"][0] for row in session.tables["categories"]]
    emails = [row["params"][0] for row in session.tables["users"]]
    assert len(set(names)) == len(names) == 2 * TINY.categories
    assert len(set(emails)) == len(emails) == 2 * TINY.users
    assert [name.rsplit(" ", 1)[1] for name in names[TINY.categories:]] == ["unit-4", "unit-5", "unit-6"]
    assert emails[-1].endswith(".unit.10@example.com")


def test_appending_under_a_new_run_id_starts_at_one():
    session = _InMemorySession()
    SeedRunner(session, TINY, reset=True, run_id="unit", seed=5).run()
    SeedRunner(session, TINY, reset=False, run_id="unit2", seed=5).run()

    names = [row["params"][0] for row in session.tables["categories"]]
    assert names[TINY.categories].endswith(" unit2-1")


def test_malformed_run_id_is_rejected_before_any_write():
    session = _InMemorySession()
    with pytest.raises(ValueError):
        SeedRunner(session, TINY, run_id="run-1")
    assert session.statements == []


def test_from_settings_fills_unset_options():
    settings = Settings(_env_file=None, SEED_SIZE="small", SEED_RESET=False, SEED_RUN_ID="cfg", SEED_BATCH_SIZE=7)
    runner = SeedRunner.from_settings(_InMemorySession(), settings)

    assert runner.tier.name == "small"
    assert runner.reset is False
    assert runner.run_id == "cfg"
    assert runner.batch_size == 7


def test_from_settings_explicit_options_win():
    settings = Settings(_env_file=None, SEED_SIZE="small", SEED_RESET=False, SEED_RUN_ID="cfg", SEED_BATCH_SIZE=7)
    runner = SeedRunner.from_settings(
        _InMemorySession(), settings, size="medium", reset=True, run_id="cli", batch_size=50, seed=9
    )

    assert (runner.tier.name, runner.reset, runner.run_id, runner.batch_size) == ("medium", True, "cli", 50)
