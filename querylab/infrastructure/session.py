"""
Thin session wrapper around a psycopg connection.

Every strategy talks to PostgreSQL exclusively through a `Session`, which:
- reports each round trip to the injected diagnostics `Recorder`,
- converts `psycopg.Error` into `StorageError`,
- exposes `transaction()` for the multi-statement write path.

Connections are expected in autocommit mode with ``dict_row`` rows, which is how
`db_factory` hands them out: each read is its own implicit transaction and
`transaction()` opens a real BEGIN/COMMIT block.
"""

from __future__ import annotations

import contextlib
from typing import Any, Dict, Generator, Iterable, List, Optional, Sequence, Union

import psycopg
from psycopg import sql

from querylab.config import get_settings
from querylab.diagnostics import NullRecorder, Recorder
from querylab.errors import StorageError
from querylab.infrastructure.db_factory import apply_statement_timeout, get_sync_pool

Query = Union[str, sql.Composable]
Row = Dict[str, Any]


class Session:
    def __init__(
        self,
        conn: psycopg.Connection,
        recorder: Optional[Recorder] = None,
        statement_timeout_ms: int = 0,
    ) -> None:
        self._conn = conn
        self.recorder: Recorder = recorder or NullRecorder()
        if statement_timeout_ms:
            with self._conn.cursor() as cur:
                apply_statement_timeout(cur, statement_timeout_ms)

    def _record(self, label: str, **attributes: Any) -> None:
        self.recorder.record("db.query", {"label": label, **attributes})

    def fetch_all(self, query: Query, params: Optional[Sequence[Any]] = None, label: str = "") -> List[Row]:
        self._record(label)
        try:
            with self._conn.cursor() as cur:
                cur.execute(query, params)
                return list(cur.fetchall())
        except psycopg.Error as exc:
            raise StorageError(str(exc)) from exc

    def fetch_one(self, query: Query, params: Optional[Sequence[Any]] = None, label: str = "") -> Optional[Row]:
        self._record(label)
        try:
            with self._conn.cursor() as cur:
                cur.execute(query, params)
                return cur.fetchone()
        except psycopg.Error as exc:
            raise StorageError(str(exc)) from exc

    def fetch_value(self, query: Query, params: Optional[Sequence[Any]] = None, label: str = "") -> Any:
        """Return the first column of the first row, or None."""
        row = self.fetch_one(query, params, label=label)
        if row is None:
            return None
        return next(iter(row.values()))

    def execute(self, query: Query, params: Optional[Sequence[Any]] = None, label: str = "") -> int:
        self._record(label)
        try:
            with self._conn.cursor() as cur:
                cur.execute(query, params)
                return cur.rowcount
        except psycopg.Error as exc:
            raise StorageError(str(exc)) from exc

    def insert_many(self, query: Query, params_seq: Iterable[Sequence[Any]], label: str = "") -> List[Row]:
        """
        Run an ``INSERT ... RETURNING`` statement for every parameter tuple.

        psycopg pipelines ``executemany`` into a single network exchange; the
        returned rows keep the order of ``params_seq``.
        """
        params_list = list(params_seq)
        self._record(label, batch=len(params_list))
        if not params_list:
            return []
        returned: List[Row] = []
        try:
            with self._conn.cursor() as cur:
                cur.executemany(query, params_list, returning=True)
                while True:
                    returned.extend(cur.fetchall())
                    if not cur.nextset():
                        break
        except psycopg.Error as exc:
            raise StorageError(str(exc)) from exc
        return returned

    @contextlib.contextmanager
    def transaction(self, label: str = "") -> Generator["Session", None, None]:
        """
        All-or-nothing block: commits on success, rolls back on any exception.
        """
        self.recorder.record("db.transaction", {"label": label})
        try:
            with self._conn.transaction():
                yield self
        except psycopg.Error as exc:
            raise StorageError(str(exc)) from exc


@contextlib.contextmanager
def open_session(
    recorder: Optional[Recorder] = None,
    dsn: Optional[str] = None,
) -> Generator[Session, None, None]:
    """
    Borrow a pooled connection for the duration of one request.
    """
    settings = get_settings()
    pool = get_sync_pool(dsn=dsn)
    with pool.connection() as conn:
        yield Session(conn, recorder=recorder, statement_timeout_ms=settings.db_statement_timeout_ms)


__all__ = ["Query", "Row", "Session", "open_session"]
