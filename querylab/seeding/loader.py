"""
Seed runner: writes a generated dataset tier into PostgreSQL.

Entities are inserted in foreign-key order (categories -> products -> users ->
orders with their items), in batches. Each batch runs in its own transaction,
so a failing batch leaves nothing behind while earlier batches stay committed.
Ids are taken from ``INSERT ... RETURNING id`` so that later entities can
reference them without re-reading the tables.

When ``reset`` is off the runner appends: products and orders then reference
every existing category, user and product, not only the ones created in this
run.
"""

from __future__ import annotations

import time
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence, Tuple

from querylab.config import Settings, get_settings
from querylab.errors import StorageError
from querylab.infrastructure.schema import create_schema, reset_schema
from querylab.infrastructure.session import Session
from querylab.seeding.generator import (
    DatasetGenerator,
    PricedProduct,
    category_seq_pattern,
    default_run_id,
    email_seq_pattern,
)
from querylab.seeding.tiers import SeedTier, resolve_tier
from querylab.utils.logging import bind_context, get_logger

log = get_logger(__name__)

_INSERT_CATEGORY = "INSERT INTO categories (name, description) VALUES (%s, %s) RETURNING id"
_INSERT_PRODUCT = (
    "INSERT INTO products (name, description, price, stock, category_id) VALUES (%s, %s, %s, %s, %s) RETURNING id"
)
_INSERT_USER = "INSERT INTO users (email, name, created_at, updated_at) VALUES (%s, %s, %s, %s) RETURNING id"
_INSERT_ORDER = (
    "INSERT INTO orders (user_id, status, total_amount, created_at, updated_at) "
    "VALUES (%s, %s, %s, %s, %s) RETURNING id"
)
_INSERT_ITEM = (
    "INSERT INTO order_items (order_id, product_id, quantity, price, created_at, updated_at) "
    "VALUES (%s, %s, %s, %s, %s, %s) RETURNING id"
)

# Highest sequence number already used by a run id; 0 when it never ran.
_LAST_CATEGORY_SEQ = "SELECT COALESCE(MAX(substring(name FROM %s)::bigint), 0) AS last_seq FROM categories"
_LAST_USER_SEQ = "SELECT COALESCE(MAX(substring(email FROM %s)::bigint), 0) AS last_seq FROM users"


@dataclass
class SeedSummary:
    """Rows created by one run, per entity."""

    run_id: str
    tier: str
    reset: bool
    categories: int = 0
    products: int = 0
    users: int = 0
    orders: int = 0
    order_items: int = 0
    duration_seconds: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class SeedRunner:
    def __init__(
        self,
        session: Session,
        tier: SeedTier,
        reset: bool = True,
        run_id: Optional[str] = None,
        batch_size: int = 1_000,
        seed: Optional[int] = None,
        generator: Optional[DatasetGenerator] = None,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be positive")
        self.session = session
        self.tier = tier
        self.reset = reset
        self.batch_size = batch_size
        self.generator = generator or DatasetGenerator(run_id or default_run_id(), seed=seed)
        self.run_id = self.generator.run_id
        self.log = bind_context(log, run_id=self.run_id, tier=tier.name)

    @classmethod
    def from_settings(
        cls,
        session: Session,
        settings: Optional[Settings] = None,
        size: Optional[str] = None,
        reset: Optional[bool] = None,
        run_id: Optional[str] = None,
        batch_size: Optional[int] = None,
        seed: Optional[int] = None,
    ) -> "SeedRunner":
        """
        Build a runner from explicit options, falling back to ``SEED_SIZE``,
        ``SEED_RESET``, ``SEED_RUN_ID`` and ``SEED_BATCH_SIZE`` for unset ones.

        Raises
        ------
        ValueError
            Unknown size, malformed run id or non-positive batch size.
        """
        settings = settings or get_settings()
        return cls(
            session,
            resolve_tier(size or settings.seed_size),
            reset=settings.seed_reset if reset is None else reset,
            run_id=run_id or settings.seed_run_id,
            batch_size=batch_size or settings.seed_batch_size,
            seed=seed,
        )

    def _insert_batch(self, entity: str, query: str, rows: Sequence[Tuple[Any, ...]]) -> List[int]:
        with self.session.transaction(label=f"seed.{entity}"):
            returned = self.session.insert_many(query, rows, label=f"seed.{entity}.insert")
        return [row["id"] for row in returned]

    def _progress(self, entity: str, done: int, total: int) -> None:
        self.log.info(f"[SEED] {entity}: {done}/{total}", extra={"entity": entity, "done": done, "total": total})

    def _last_seq(self, entity: str, query: str, pattern: str) -> int:
        if self.reset:
            return 0
        return int(self.session.fetch_value(query, (pattern,), label=f"seed.{entity}.last_seq") or 0)

    def _existing_ids(self, table: str) -> List[int]:
        rows = self.session.fetch_all(f"SELECT id FROM {table} ORDER BY id", label=f"seed.{table}.ids")
        return [row["id"] for row in rows]

    def _seed_categories(self, summary: SeedSummary) -> List[int]:
        total = self.tier.categories
        first = self._last_seq("categories", _LAST_CATEGORY_SEQ, category_seq_pattern(self.run_id)) + 1
        for start in range(0, total, self.batch_size):
            count = min(self.batch_size, total - start)
            ids = self._insert_batch("categories", _INSERT_CATEGORY, self.generator.category_rows(count, first + start))
            summary.categories += len(ids)
        self._progress("categories", summary.categories, total)
        return self._existing_ids("categories")

    def _seed_products(self, summary: SeedSummary, category_ids: Sequence[int]) -> List[PricedProduct]:
        total = self.tier.products
        for start in range(0, total, self.batch_size):
            count = min(self.batch_size, total - start)
            ids = self._insert_batch("products", _INSERT_PRODUCT, self.generator.product_rows(count, category_ids))
            summary.products += len(ids)
            self._progress("products", summary.products, total)
        rows = self.session.fetch_all("SELECT id, price FROM products ORDER BY id", label="seed.products.prices")
        return [(row["id"], Decimal(row["price"])) for row in rows]

    def _seed_users(self, summary: SeedSummary, now: datetime) -> List[int]:
        total = self.tier.users
        first = self._last_seq("users", _LAST_USER_SEQ, email_seq_pattern(self.run_id)) + 1
        for start in range(0, total, self.batch_size):
            count = min(self.batch_size, total - start)
            ids = self._insert_batch("users", _INSERT_USER, self.generator.user_rows(count, first + start, now=now))
            summary.users += len(ids)
            self._progress("users", summary.users, total)
        return self._existing_ids("users")

    def _seed_orders(
        self,
        summary: SeedSummary,
        user_ids: Sequence[int],
        products: Sequence[PricedProduct],
        now: datetime,
    ) -> None:
        total = self.tier.orders
        for start in range(0, total, self.batch_size):
            count = min(self.batch_size, total - start)
            orders = self.generator.order_batch(count, user_ids, products, self.tier.items_per_order, now=now)
            with self.session.transaction(label="seed.orders"):
                order_rows = self.session.insert_many(
                    _INSERT_ORDER,
                    [(o.user_id, o.status, o.total_amount, o.created_at, o.created_at) for o in orders],
                    label="seed.orders.insert",
                )
                item_params = [
                    (row["id"], item.product_id, item.quantity, item.price, order.created_at, order.created_at)
                    for order, row in zip(orders, order_rows)
                    for item in order.items
                ]
                item_rows = self.session.insert_many(_INSERT_ITEM, item_params, label="seed.order_items.insert")
            summary.orders += len(order_rows)
            summary.order_items += len(item_rows)
            self._progress("orders", summary.orders, total)

    def run(self) -> SeedSummary:
        """
        Execute the run and report what was created.

        Raises
        ------
        StorageError
            A batch violated a constraint or the connection failed. Batches
            committed before the failure stay in place.
        """
        started = time.perf_counter()
        now = datetime.now(timezone.utc)
        summary = SeedSummary(run_id=self.run_id, tier=self.tier.name, reset=self.reset)
        self.log.info("[SEED START]", extra={"reset": self.reset, **self.tier.describe()})

        try:
            if self.reset:
                reset_schema(self.session)
            else:
                create_schema(self.session)

            category_ids = self._seed_categories(summary)
            products = self._seed_products(summary, category_ids)
            user_ids = self._seed_users(summary, now)
            if self.tier.orders:
                self._seed_orders(summary, user_ids, products, now)
        except StorageError:
            self.log.exception("[SEED FAILED] run aborted", extra=summary.to_dict())
            raise

        summary.duration_seconds = round(time.perf_counter() - started, 2)
        self.log.info("[SEED COMPLETE]", extra=summary.to_dict())
        return summary


__all__ = ["SeedRunner", "SeedSummary"]
