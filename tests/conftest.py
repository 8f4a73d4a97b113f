"""
Pytest configuration for the Query Strategy Lab.

Provides fixtures for:
- Settings override for integration tests
- Database connection management (skipped when PostgreSQL is unreachable)
- A tiny seeded dataset shared by the integration tests
"""

from __future__ import annotations

import os
from typing import Generator

import psycopg
import pytest
from psycopg.rows import dict_row

from querylab.config import Settings, build_dsn, get_settings
from querylab.infrastructure.session import Session
from querylab.seeding import SeedRunner, SeedSummary, SeedTier

# Small enough to seed in well under a second, large enough that every
# relation has rows on both sides.
TEST_TIER = SeedTier("test", categories=3, products=20, users=8, orders=40, items_per_order=(1, 4))
TEST_RUN_ID = "itest"
TEST_SEED = 7


@pytest.fixture(autouse=True)
def _clear_settings_cache() -> Generator[None, None, None]:
    """`get_settings` is cached per process; tests that patch env need a fresh read."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """Connection settings for the integration database, read from DB_* or DATABASE_URL."""
    return Settings(
        database_url=os.getenv("DATABASE_URL"),
        db_host=os.getenv("DB_HOST", "localhost"),
        db_port=int(os.getenv("DB_PORT", "5432")),
        db_user=os.getenv("DB_USER", "postgres"),
        db_password=os.getenv("DB_PASSWORD", "postgres"),
        db_name=os.getenv("DB_NAME", "querylab"),
        log_level="DEBUG",
    )


@pytest.fixture(scope="session")
def test_dsn(test_settings: Settings) -> str:
    return build_dsn(test_settings)


@pytest.fixture(scope="session")
def db_connection_available(test_dsn: str) -> bool:
    """True when a throwaway connection can run ``SELECT 1``."""
    try:
        with psycopg.connect(test_dsn, connect_timeout=5) as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1;")
                cur.fetchone()
        return True
    except psycopg.Error:
        return False


@pytest.fixture(scope="session")
def db_connection(
    test_dsn: str, db_connection_available: bool
) -> Generator[psycopg.Connection, None, None]:
    """
    One autocommit, ``dict_row`` connection shared by every integration test,
    the same shape `db_factory` hands to sessions. Skips when unreachable.
    """
    if not db_connection_available:
        pytest.skip("Database not available for integration tests")

    conn = psycopg.connect(test_dsn, row_factory=dict_row, autocommit=True)
    try:
        yield conn
    finally:
        conn.close()


@pytest.fixture
def session(db_connection: psycopg.Connection) -> Session:
    return Session(db_connection)


@pytest.fixture(scope="session")
def seeded_db(db_connection: psycopg.Connection) -> SeedSummary:
    """
    Reset the schema and seed `TEST_TIER` once for the whole test session.

    Tests that write (order creation, appended seed runs) only add rows, so
    counts in other tests are taken from the database, not from this summary.
    """
    return SeedRunner(
        Session(db_connection),
        TEST_TIER,
        reset=True,
        run_id=TEST_RUN_ID,
        batch_size=7,
        seed=TEST_SEED,
    ).run()
