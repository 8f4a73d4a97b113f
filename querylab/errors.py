"""
Typed failure signals raised by the query layer.

Callers (CLI, orchestrator, an HTTP wrapper) translate these into their own
presentation: `to_envelope()` yields the `{error, message}` shape used for
not-found and bad-request responses.
"""

from __future__ import annotations

from typing import Any, Dict


class QueryLabError(Exception):
    """Base class for every error raised by querylab."""

    error_label: str = "Internal Server Error"

    def to_envelope(self) -> Dict[str, Any]:
        return {"error": self.error_label, "message": str(self)}


class NotFoundError(QueryLabError):
    """A single-entity lookup matched no row."""

    error_label = "Not Found"

    def __init__(self, entity: str, key: Any) -> None:
        self.entity = entity
        self.key = key
        super().__init__(f"{entity} not found")


class BadInputError(QueryLabError):
    """A request was rejected before reaching the storage engine."""

    error_label = "Bad Request"


class ReferencedEntityMissingError(QueryLabError):
    """A write referenced a row that does not exist; the transaction was aborted."""

    error_label = "Bad Request"

    def __init__(self, entity: str, key: Any) -> None:
        self.entity = entity
        self.key = key
        super().__init__(f"{entity} {key} not found")


class StorageError(QueryLabError):
    """
    The storage engine failed (connection loss, constraint violation, timeout).

    The originating psycopg exception is preserved as ``__cause__``.
    """


class UnknownStrategyError(ValueError):
    """The orchestrator was asked for a use case or variant it does not know."""


__all__ = [
    "BadInputError",
    "NotFoundError",
    "QueryLabError",
    "ReferencedEntityMissingError",
    "StorageError",
    "UnknownStrategyError",
]
