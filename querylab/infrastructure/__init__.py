"""
Infrastructure package for the Query Strategy Lab.

Centralizes database concerns: the pooled connection factory, the `Session`
wrapper every strategy talks through, the schema DDL, and the two query
builders (`FetchPlan` for batched eager-loading, `Aggregate` for GROUP BY
reports). Keep this layer focused on I/O and SQL, decoupled from strategy and
orchestrator logic.
"""

from querylab.infrastructure.db_factory import get_sync_connection, get_sync_pool
from querylab.infrastructure.session import Session, open_session

__all__ = [
    "Session",
    "get_sync_connection",
    "get_sync_pool",
    "open_session",
]
