"""
Deterministic pseudo-random row factories for the five entities.

The generator never touches the database: it turns counts, existing ids and a
seeded RNG into insert-ready tuples. Unique keys (user emails, category names)
are derived from the run identifier and a per-row sequence number instead of
from randomness, so runs with distinct identifiers can append to an existing
dataset without colliding.

Order totals are computed here, from the same prices that are written to the
item rows, so an order is inserted complete and never needs a later UPDATE.
"""

from __future__ import annotations

import random
import re
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import List, Optional, Sequence, Tuple

from faker import Faker

from querylab.domain.models import to_money
from querylab.infrastructure.schema import ORDER_STATUSES

LOOKBACK = timedelta(days=730)
QUANTITY_RANGE = (1, 5)
PRICE_RANGE = (Decimal("1.00"), Decimal("1000.00"))
STOCK_RANGE = (0, 500)

DEPARTMENTS = (
    "Automotive", "Baby", "Beauty", "Books", "Clothing", "Computers", "Electronics",
    "Games", "Garden", "Grocery", "Health", "Home", "Industrial", "Jewelery", "Kids",
    "Movies", "Music", "Outdoors", "Shoes", "Sports", "Tools", "Toys",
)
_ADJECTIVES = (
    "Awesome", "Ergonomic", "Fantastic", "Generic", "Gorgeous", "Handcrafted", "Handmade",
    "Incredible", "Intelligent", "Licensed", "Practical", "Refined", "Rustic", "Sleek",
    "Small", "Tasty", "Unbranded",
)
_MATERIALS = (
    "Bamboo", "Bronze", "Concrete", "Cotton", "Fresh", "Frozen", "Granite", "Metal",
    "Plastic", "Rubber", "Soft", "Steel", "Wooden",
)
_NOUNS = (
    "Bacon", "Ball", "Bike", "Car", "Chair", "Cheese", "Chips", "Computer", "Fish",
    "Gloves", "Hat", "Keyboard", "Mouse", "Pants", "Pizza", "Salad", "Sausages",
    "Shirt", "Shoes", "Soap", "Table", "Towels",
)

CategoryRow = Tuple[str, Optional[str]]
ProductRow = Tuple[str, Optional[str], Decimal, int, int]
UserRow = Tuple[str, str, datetime, datetime]
PricedProduct = Tuple[int, Decimal]


_RUN_ID = re.compile(r"[a-z0-9]+")


def validate_run_id(run_id: str) -> str:
    """
    Accept only ``[a-z0-9]+`` run ids, unchanged.

    The id is embedded verbatim in emails and category names, so it must be
    safe there, and distinct ids must yield distinct keys. Rewriting ``Run-1``
    to ``run1`` would merge it with ``run_1``; such ids are rejected instead.
    """
    if not isinstance(run_id, str) or not _RUN_ID.fullmatch(run_id):
        raise ValueError(f"run id {run_id!r} must match [a-z0-9]+ (lowercase letters and digits only)")
    return run_id


def category_name(department: str, run_id: str, seq: int) -> str:
    return f"{department} {run_id}-{seq}"


def user_email(local: str, run_id: str, seq: int) -> str:
    return f"{local}.{run_id}.{seq}@example.com"


# POSIX regexes (valid in PostgreSQL and Python) whose first group is the
# sequence number of a key written by `category_name` / `user_email`.
def category_seq_pattern(run_id: str) -> str:
    return rf" {validate_run_id(run_id)}-([0-9]+)$"


def email_seq_pattern(run_id: str) -> str:
    return rf"\.{validate_run_id(run_id)}\.([0-9]+)@example\.com$"


def default_run_id() -> str:
    """A fresh identifier for runs that did not get one: UTC timestamp plus entropy."""
    return datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S") + secrets.token_hex(2)


@dataclass(frozen=True)
class GeneratedItem:
    product_id: int
    quantity: int
    price: Decimal

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity


@dataclass
class GeneratedOrder:
    user_id: int
    status: str
    created_at: datetime
    items: List[GeneratedItem] = field(default_factory=list)

    @property
    def total_amount(self) -> Decimal:
        return to_money(sum((item.line_total for item in self.items), Decimal("0")))


class DatasetGenerator:
    """
    Row factories bound to one run identifier and one RNG stream.

    ``seed`` makes the non-unique content (names, prices, timestamps, item
    picks) reproducible; uniqueness never depends on it.
    """

    def __init__(
        self,
        run_id: str,
        seed: Optional[int] = None,
        faker: Optional[Faker] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.run_id = validate_run_id(run_id)
        self.rng = rng or random.Random(seed)
        self.faker = faker or Faker()
        if seed is not None:
            self.faker.seed_instance(seed)

    def _timestamp(self, now: datetime) -> datetime:
        return now - timedelta(seconds=self.rng.uniform(0, LOOKBACK.total_seconds()))

    def category_rows(self, count: int, start_seq: int = 1) -> List[CategoryRow]:
        rows: List[CategoryRow] = []
        for seq in range(start_seq, start_seq + count):
            department = self.rng.choice(DEPARTMENTS)
            rows.append((category_name(department, self.run_id, seq), self.faker.sentence(nb_words=10)))
        return rows

    def product_rows(self, count: int, category_ids: Sequence[int]) -> List[ProductRow]:
        if not category_ids:
            raise ValueError("products need at least one existing category")
        low, high = (int(bound * 100) for bound in PRICE_RANGE)
        rows: List[ProductRow] = []
        for _ in range(count):
            name = f"{self.rng.choice(_ADJECTIVES)} {self.rng.choice(_MATERIALS)} {self.rng.choice(_NOUNS)}"
            price = Decimal(self.rng.randint(low, high)) / 100
            rows.append(
                (
                    name,
                    self.faker.sentence(nb_words=12),
                    to_money(price),
                    self.rng.randint(*STOCK_RANGE),
                    self.rng.choice(category_ids),
                )
            )
        return rows

    def user_rows(self, count: int, start_seq: int = 1, now: Optional[datetime] = None) -> List[UserRow]:
        now = now or datetime.now(timezone.utc)
        rows: List[UserRow] = []
        for seq in range(start_seq, start_seq + count):
            local = re.sub(r"[^a-z0-9]", "", self.faker.user_name().lower()) or "user"
            created_at = self._timestamp(now)
            rows.append((user_email(local, self.run_id, seq), self.faker.name(), created_at, created_at))
        return rows

    def order_batch(
        self,
        count: int,
        user_ids: Sequence[int],
        products: Sequence[PricedProduct],
        items_range: Tuple[int, int],
        now: Optional[datetime] = None,
    ) -> List[GeneratedOrder]:
        """
        Build ``count`` orders, each with a distinct set of products.

        The item count is uniform in ``items_range``, capped by the number of
        available products.
        """
        if not user_ids or not products:
            raise ValueError("orders need at least one existing user and product")
        now = now or datetime.now(timezone.utc)
        low, high = items_range
        orders: List[GeneratedOrder] = []
        for _ in range(count):
            size = min(self.rng.randint(low, high), len(products))
            order = GeneratedOrder(
                user_id=self.rng.choice(user_ids),
                status=self.rng.choice(ORDER_STATUSES),
                created_at=self._timestamp(now),
            )
            for product_id, price in self.rng.sample(products, size):
                order.items.append(GeneratedItem(product_id, self.rng.randint(*QUANTITY_RANGE), price))
            orders.append(order)
        return orders


__all__ = [
    "DEPARTMENTS",
    "DatasetGenerator",
    "GeneratedItem",
    "GeneratedOrder",
    "LOOKBACK",
    "category_name",
    "category_seq_pattern",
    "default_run_id",
    "email_seq_pattern",
    "user_email",
    "validate_run_id",
]
