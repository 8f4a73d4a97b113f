"""
Dataset generation: size tiers, row factories and the batch loader.
"""

from querylab.seeding.generator import DatasetGenerator, default_run_id, validate_run_id
from querylab.seeding.loader import SeedRunner, SeedSummary
from querylab.seeding.tiers import SEED_TIERS, SeedTier, resolve_tier

__all__ = [
    "DatasetGenerator",
    "SEED_TIERS",
    "SeedRunner",
    "SeedSummary",
    "SeedTier",
    "default_run_id",
    "resolve_tier",
    "validate_run_id",
]
