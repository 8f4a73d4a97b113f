"""
Utilities package for the Query Strategy Lab.

Exports shared helpers for logging and profiling. Keep this package lightweight
and free of domain-specific logic.
"""

from querylab.utils.logging import bind_context, configure_logging, get_logger
from querylab.utils.profiler import ProfileStats, profile_block

__all__ = [
    "bind_context",
    "configure_logging",
    "get_logger",
    "ProfileStats",
    "profile_block",
]
