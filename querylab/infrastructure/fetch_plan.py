"""
Explicit eager-load plans.

A `FetchPlan` names a root table and an ordered tree of `Include` nodes, each
traversing one `Relation` with an optional per-parent row limit. Plans are plain
data: their depth, limits and traversal paths can be inspected (and asserted on
in tests) without touching a database.

`FetchPlan.execute` loads a plan level by level. Every include node costs exactly
one batched query (``WHERE key = ANY(%s)``), whatever the number of parents, and
per-parent limits are applied in SQL with ``ROW_NUMBER() OVER (PARTITION BY ...)``.
Rows stay plain dicts; loaded relations are attached under the relation name so
the result can be validated straight into the domain models.

Usage:
    plan = FetchPlan("orders", (Include(ORDER_USER), Include(ORDER_ITEMS)))
    rows = session.fetch_all("SELECT * FROM orders WHERE id = %s", (order_id,))
    plan.execute(session, rows)
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Literal, Optional, Sequence, Tuple

from psycopg import sql

from querylab.infrastructure.session import Row, Session

Cardinality = Literal["one", "many"]
OrderBy = Tuple[Tuple[str, str], ...]


@dataclass(frozen=True)
class Relation:
    """
    A foreign-key hop from `source` to `target`.

    For ``one`` relations the source row holds the key (``source.source_key ->
    target.id``); for ``many`` relations the target rows hold it
    (``source.id <- target.target_key``).
    """

    name: str
    source: str
    target: str
    cardinality: Cardinality
    source_key: str
    target_key: str
    order_by: OrderBy = (("id", "ASC"),)

    @property
    def is_many(self) -> bool:
        return self.cardinality == "many"


@dataclass(frozen=True)
class Include:
    relation: Relation
    limit: Optional[int] = None
    includes: Tuple["Include", ...] = ()

    def __post_init__(self) -> None:
        if self.limit is not None and not self.relation.is_many:
            raise ValueError(f"limit is only valid on to-many relations, got {self.relation.name!r}")
        if self.limit is not None and self.limit < 1:
            raise ValueError("limit must be a positive integer")
        for child in self.includes:
            if child.relation.source != self.relation.target:
                raise ValueError(
                    f"{child.relation.name!r} starts at {child.relation.source!r}, "
                    f"not at {self.relation.target!r}"
                )

    @property
    def depth(self) -> int:
        return 1 + max((child.depth for child in self.includes), default=0)


@dataclass(frozen=True)
class FetchPlan:
    root: str
    includes: Tuple[Include, ...] = ()

    def __post_init__(self) -> None:
        for include in self.includes:
            if include.relation.source != self.root:
                raise ValueError(f"{include.relation.name!r} does not start at {self.root!r}")

    @property
    def depth(self) -> int:
        return max((include.depth for include in self.includes), default=0)

    @property
    def query_count(self) -> int:
        """Round trips `execute` issues when every level has rows."""
        return sum(1 for _ in self.paths())

    def paths(self) -> List[Tuple[str, Optional[int]]]:
        """Flattened, depth-first ``(dotted.path, limit)`` pairs."""
        flattened: List[Tuple[str, Optional[int]]] = []

        def walk(nodes: Sequence[Include], prefix: str) -> None:
            for node in nodes:
                path = f"{prefix}.{node.relation.name}" if prefix else node.relation.name
                flattened.append((path, node.limit))
                walk(node.includes, path)

        walk(self.includes, "")
        return flattened

    def execute(self, session: Session, rows: List[Row]) -> List[Row]:
        """Attach every planned relation to ``rows`` in place and return them."""
        _load_level(session, rows, self.includes)
        return rows


def _order_clause(order_by: OrderBy) -> sql.Composable:
    return sql.SQL(", ").join(
        sql.SQL("{} {}").format(sql.Identifier(column), sql.SQL("DESC" if direction.upper() == "DESC" else "ASC"))
        for column, direction in order_by
    )


def _distinct(values: Iterable[Any]) -> List[Any]:
    seen: Dict[Any, None] = {}
    for value in values:
        if value is not None:
            seen.setdefault(value, None)
    return list(seen)


def _fetch_many(session: Session, include: Include, keys: List[Any]) -> List[Row]:
    relation = include.relation
    order = _order_clause(relation.order_by)
    if include.limit is None:
        query = sql.SQL("SELECT * FROM {table} WHERE {key} = ANY(%s) ORDER BY {key}, {order}").format(
            table=sql.Identifier(relation.target),
            key=sql.Identifier(relation.target_key),
            order=order,
        )
        params: Tuple[Any, ...] = (keys,)
    else:
        query = sql.SQL(
            "SELECT * FROM ("
            "SELECT t.*, ROW_NUMBER() OVER (PARTITION BY t.{key} ORDER BY {order}) AS _rank "
            "FROM {table} t WHERE t.{key} = ANY(%s)"
            ") ranked WHERE _rank <= %s ORDER BY {key}, {order}"
        ).format(
            table=sql.Identifier(relation.target),
            key=sql.Identifier(relation.target_key),
            order=order,
        )
        params = (keys, include.limit)
    rows = session.fetch_all(query, params, label=f"{relation.source}.{relation.name}")
    for row in rows:
        row.pop("_rank", None)
    return rows


def _fetch_one(session: Session, include: Include, keys: List[Any]) -> List[Row]:
    relation = include.relation
    query = sql.SQL("SELECT * FROM {table} WHERE {key} = ANY(%s)").format(
        table=sql.Identifier(relation.target),
        key=sql.Identifier(relation.target_key),
    )
    return session.fetch_all(query, (keys,), label=f"{relation.source}.{relation.name}")


def _load_level(session: Session, parents: List[Row], includes: Sequence[Include]) -> None:
    for include in includes:
        relation = include.relation
        keys = _distinct(parent.get(relation.source_key) for parent in parents)
        if not keys:
            for parent in parents:
                parent[relation.name] = [] if relation.is_many else None
            continue

        if relation.is_many:
            children = _fetch_many(session, include, keys)
            grouped: Dict[Any, List[Row]] = defaultdict(list)
            for child in children:
                grouped[child[relation.target_key]].append(child)
            for parent in parents:
                parent[relation.name] = grouped.get(parent.get(relation.source_key), [])
        else:
            children = _fetch_one(session, include, keys)
            by_key = {child[relation.target_key]: child for child in children}
            for parent in parents:
                parent[relation.name] = by_key.get(parent.get(relation.source_key))

        if include.includes and children:
            _load_level(session, children, include.includes)


# Relations of the e-commerce schema.
USER_ORDERS = Relation(
    "orders", "users", "orders", "many", "id", "user_id", (("created_at", "DESC"), ("id", "DESC"))
)
ORDER_USER = Relation("user", "orders", "users", "one", "user_id", "id")
ORDER_ITEMS = Relation("items", "orders", "order_items", "many", "id", "order_id")
ITEM_ORDER = Relation("order", "order_items", "orders", "one", "order_id", "id")
ITEM_PRODUCT = Relation("product", "order_items", "products", "one", "product_id", "id")
PRODUCT_CATEGORY = Relation("category", "products", "categories", "one", "category_id", "id")
PRODUCT_ORDER_ITEMS = Relation("order_items", "products", "order_items", "many", "id", "product_id")


__all__ = [
    "FetchPlan",
    "Include",
    "ITEM_ORDER",
    "ITEM_PRODUCT",
    "ORDER_ITEMS",
    "ORDER_USER",
    "PRODUCT_CATEGORY",
    "PRODUCT_ORDER_ITEMS",
    "Relation",
    "USER_ORDERS",
]
