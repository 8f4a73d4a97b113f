"""
Relational schema for the five e-commerce tables.

Index choices are part of the demonstration: lookups by foreign key, status and
email are indexed, while `users.created_at`, `orders.created_at` and
`products.name` are intentionally left without an index so that date-range
and substring searches have to scan.
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Tuple

from psycopg import sql

from querylab.infrastructure.session import Session

TABLES = ("users", "categories", "products", "orders", "order_items")

ORDER_STATUSES = ("pending", "processing", "shipped", "delivered", "cancelled")

COLUMNS: Dict[str, Tuple[str, ...]] = {
    "users": ("id", "email", "name", "created_at", "updated_at"),
    "categories": ("id", "name", "description", "created_at", "updated_at"),
    "products": ("id", "name", "description", "price", "stock", "category_id", "created_at", "updated_at"),
    "orders": ("id", "user_id", "status", "total_amount", "created_at", "updated_at"),
    "order_items": ("id", "order_id", "product_id", "quantity", "price", "created_at", "updated_at"),
}


def prefixed_columns(table: str, alias: str) -> sql.Composable:
    """``alias.col AS "alias__col"`` for every column of ``table``, for flat joins."""
    return sql.SQL(", ").join(
        sql.SQL("{} AS {}").format(sql.Identifier(alias, column), sql.Identifier(f"{alias}__{column}"))
        for column in COLUMNS[table]
    )


def unprefix(row: Dict[str, Any], table: str, alias: str) -> Optional[Dict[str, Any]]:
    """Cut one table's columns back out of a flat joined row; None when the join missed."""
    if row.get(f"{alias}__id") is None:
        return None
    return {column: row[f"{alias}__{column}"] for column in COLUMNS[table]}


_CREATE_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS users (
        id          SERIAL PRIMARY KEY,
        email       VARCHAR(255) NOT NULL,
        name        VARCHAR(255) NOT NULL,
        created_at  TIMESTAMPTZ NOT NULL DEFAULT now(),
        updated_at  TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
    "CREATE UNIQUE INDEX IF NOT EXISTS users_email_key ON users (email)",
    """
    CREATE TABLE IF NOT EXISTS categories (
        id          SERIAL PRIMARY KEY,
        name        VARCHAR(255) NOT NULL UNIQUE,
        description TEXT,
        created_at  TIMESTAMPTZ NOT NULL DEFAULT now(),
        updated_at  TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS products (
        id          SERIAL PRIMARY KEY,
        name        VARCHAR(255) NOT NULL,
        description TEXT,
        price       NUMERIC(10, 2) NOT NULL CHECK (price > 0),
        stock       INTEGER NOT NULL DEFAULT 0 CHECK (stock >= 0),
        category_id INTEGER NOT NULL REFERENCES categories (id),
        created_at  TIMESTAMPTZ NOT NULL DEFAULT now(),
        updated_at  TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
    "CREATE INDEX IF NOT EXISTS products_category_id_idx ON products (category_id)",
    """
    CREATE TABLE IF NOT EXISTS orders (
        id           SERIAL PRIMARY KEY,
        user_id      INTEGER NOT NULL REFERENCES users (id),
        status       VARCHAR(16) NOT NULL DEFAULT 'pending'
                     CHECK (status IN ('pending', 'processing', 'shipped', 'delivered', 'cancelled')),
        total_amount NUMERIC(12, 2) NOT NULL DEFAULT 0,
        created_at   TIMESTAMPTZ NOT NULL DEFAULT now(),
        updated_at   TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
    "CREATE INDEX IF NOT EXISTS orders_user_id_idx ON orders (user_id)",
    "CREATE INDEX IF NOT EXISTS orders_status_idx ON orders (status)",
    """
    CREATE TABLE IF NOT EXISTS order_items (
        id          SERIAL PRIMARY KEY,
        order_id    INTEGER NOT NULL REFERENCES orders (id),
        product_id  INTEGER NOT NULL REFERENCES products (id),
        quantity    INTEGER NOT NULL DEFAULT 1 CHECK (quantity > 0),
        price       NUMERIC(10, 2) NOT NULL,
        created_at  TIMESTAMPTZ NOT NULL DEFAULT now(),
        updated_at  TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
    "CREATE INDEX IF NOT EXISTS order_items_order_id_idx ON order_items (order_id)",
    "CREATE INDEX IF NOT EXISTS order_items_product_id_idx ON order_items (product_id)",
)

# Drop order is the reverse of the foreign-key dependency order.
_DROP_STATEMENT = "DROP TABLE IF EXISTS order_items, orders, products, categories, users CASCADE"


def create_schema(session: Session) -> None:
    with session.transaction(label="schema.create"):
        for statement in _CREATE_STATEMENTS:
            session.execute(statement, label="schema.create")


def drop_schema(session: Session) -> None:
    with session.transaction(label="schema.drop"):
        session.execute(_DROP_STATEMENT, label="schema.drop")


def reset_schema(session: Session) -> None:
    """Discard every row in the five tables and recreate them empty."""
    drop_schema(session)
    create_schema(session)


def table_counts(session: Session) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for table in TABLES:
        counts[table] = int(session.fetch_value(f"SELECT COUNT(*) FROM {table}", label=f"{table}.count"))
    return counts


__all__ = [
    "COLUMNS",
    "ORDER_STATUSES",
    "TABLES",
    "create_schema",
    "drop_schema",
    "prefixed_columns",
    "reset_schema",
    "table_counts",
    "unprefix",
]
