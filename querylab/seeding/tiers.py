"""
Dataset size tiers.

Each tier fixes how many rows of every entity a seed run creates. Orders get a
random number of items drawn from the tier's ``items_per_order`` range.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Tuple


@dataclass(frozen=True)
class SeedTier:
    name: str
    categories: int
    products: int
    users: int
    orders: int
    items_per_order: Tuple[int, int]

    def __post_init__(self) -> None:
        low, high = self.items_per_order
        if low < 1 or high < low:
            raise ValueError(f"items_per_order must satisfy 1 <= min <= max, got {self.items_per_order}")
        if min(self.categories, self.products, self.users) < 1 and self.orders > 0:
            raise ValueError("orders need at least one category, product and user")

    def describe(self) -> Dict[str, object]:
        return {
            "categories": self.categories,
            "products": self.products,
            "users": self.users,
            "orders": self.orders,
            "itemsPerOrder": f"{self.items_per_order[0]}-{self.items_per_order[1]}",
        }


SEED_TIERS: Dict[str, SeedTier] = {
    "small": SeedTier("small", categories=10, products=500, users=100, orders=1_000, items_per_order=(1, 5)),
    "medium": SeedTier("medium", categories=25, products=2_000, users=1_000, orders=10_000, items_per_order=(1, 8)),
    "large": SeedTier("large", categories=50, products=10_000, users=100_000, orders=500_000, items_per_order=(1, 10)),
}


def resolve_tier(name: str) -> SeedTier:
    """Look up a tier by name (case-insensitive)."""
    key = name.strip().lower()
    if key not in SEED_TIERS:
        raise ValueError(f"Unknown seed size '{name}'. Available: {', '.join(SEED_TIERS)}")
    return SEED_TIERS[key]


__all__ = ["SEED_TIERS", "SeedTier", "resolve_tier"]
