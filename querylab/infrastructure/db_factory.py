"""
Database connection factory utilities for the Query Strategy Lab.

Provides centralized management of the PostgreSQL connection pool with proper
lifecycle management. The PoolManager singleton ensures the pool is closed on
application exit. Connections hand out rows as dicts (``dict_row``) so the
strategies can build domain models from column names.

Includes retry logic for transient failures while *opening* a connection,
using tenacity. Queries themselves are never retried here; retry policy for
failed requests belongs to the caller.
"""

from __future__ import annotations

import atexit
import threading
from typing import Any, Optional

import psycopg
from psycopg import Connection
from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from querylab.config import build_dsn, get_settings


class PoolManager:
    """
    Thread-safe singleton for managing the database connection pool.

    Handles lifecycle management with automatic cleanup via atexit hook.
    """

    _instance: Optional["PoolManager"] = None
    _lock = threading.Lock()

    def __new__(cls) -> "PoolManager":
        """Create or return the singleton instance."""
        with cls._lock:
            if cls._instance is None:
                cls._instance = super().__new__(cls)
                cls._instance._pool: Optional[ConnectionPool] = None
                cls._instance._dsn: Optional[str] = None
                atexit.register(cls._instance.close_all)
            return cls._instance

    def get_pool(
        self,
        dsn: Optional[str] = None,
        min_size: Optional[int] = None,
        max_size: Optional[int] = None,
    ) -> ConnectionPool:
        """
        Get or create the connection pool.

        Parameters
        ----------
        dsn : str, optional
            Connection string; defaults to the configured DSN. Asking for a
            different DSN than the open pool uses replaces the pool.
        min_size : int, optional
            Minimum number of idle connections to keep.
        max_size : int, optional
            Maximum total connections in the pool.
        """
        settings = get_settings()
        conninfo = dsn or build_dsn(settings)
        with self._lock:
            if self._pool is not None and self._dsn != conninfo:
                self._pool.close()
                self._pool = None
            if self._pool is None:
                self._pool = ConnectionPool(
                    conninfo=conninfo,
                    min_size=min_size or settings.db_pool_min_size,
                    max_size=max_size or settings.db_pool_max_size,
                    kwargs={"row_factory": dict_row, "autocommit": True},
                    open=True,
                )
                self._dsn = conninfo
            return self._pool

    def close_all(self) -> None:
        """
        Close the managed pool and release resources.

        This is called automatically on exit via atexit hook.
        """
        with self._lock:
            if self._pool is not None:
                try:
                    self._pool.close()
                except Exception:
                    pass  # Best-effort cleanup
                finally:
                    self._pool = None
                    self._dsn = None


def apply_statement_timeout(cursor: Any, timeout_ms: int) -> None:
    """
    Set a per-session statement timeout; 0 or a negative value leaves the default.
    """
    if timeout_ms and timeout_ms > 0:
        cursor.execute(f"SET statement_timeout = {int(timeout_ms)}")


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type((psycopg.OperationalError, psycopg.InterfaceError)),
    reraise=True,
)
def get_sync_connection(dsn: Optional[str] = None) -> Connection:
    """
    Open a dedicated connection with automatic retry.

    Retries up to 3 times with exponential backoff for transient connection
    errors. Used by the seeding runner and the CLI; request handling should
    borrow from the pool instead.

    Raises
    ------
    psycopg.OperationalError
        If connection fails after all retry attempts.
    """
    return psycopg.connect(dsn or build_dsn(), row_factory=dict_row, autocommit=True)


def get_sync_pool(
    dsn: Optional[str] = None,
    min_size: Optional[int] = None,
    max_size: Optional[int] = None,
) -> ConnectionPool:
    """
    Get or create the connection pool via PoolManager.
    """
    return PoolManager().get_pool(dsn=dsn, min_size=min_size, max_size=max_size)


__all__ = [
    "PoolManager",
    "apply_statement_timeout",
    "get_sync_connection",
    "get_sync_pool",
]
