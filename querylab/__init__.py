"""
Query Strategy Lab - naive vs. optimized query strategies over an e-commerce schema.

This package seeds a relational e-commerce dataset (users, categories, products,
orders, order items) and serves each read use case through one or two
strategies so their cost can be compared side by side:

- Unbounded listing vs. LIMIT/OFFSET pagination
- N+1 lazy loading vs. a single joined query
- Deep eager-loading vs. a shallow fetch
- Object graphs folded in application memory vs. GROUP BY aggregation

It also provides the single transactional write path (order creation), a
profiling orchestrator and a rich/Typer CLI.
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from querylab.config import Settings, get_settings
from querylab.utils.logging import configure_logging, get_logger
from querylab.utils.profiler import ProfileStats, profile_block
from querylab.orchestrator import available_use_cases, compare_use_case, run_comparisons

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "Settings",
    "get_settings",
    # Orchestration
    "available_use_cases",
    "compare_use_case",
    "run_comparisons",
    # Logging
    "configure_logging",
    "get_logger",
    # Profiling
    "ProfileStats",
    "profile_block",
]
