"""Candidate count arithmetic."""

from collections.abc import Mapping

from school_sync.domain.categories import DIFFERENCE_CATEGORIES
from school_sync.domain.schools import CategoryCounts


def apply_delta(counts: CategoryCounts, category: str, delta: int) -> dict[str, int]:
    """Return the next counts with ``delta`` applied to one category.

    Counts never go below zero; the input mapping is left untouched.
    """
    updated = dict(counts)
    updated[category] = max(0, counts.get(category, 0) + delta)
    return updated


def total_count(counts: CategoryCounts) -> int:
    """Return the number of enrollees across all categories."""
    return sum(counts.values())


def total_fee(counts: CategoryCounts, fee_table: Mapping[str, float]) -> float:
    """Return the summed fee for the given counts."""
    total = 0.0
    for category, count in counts.items():
        if category not in fee_table:
            raise ValueError(f"No fee configured for category {category!r}")
        total += count * fee_table[category]
    return total


def difference_count(counts: CategoryCounts) -> int:
    """Return the number of enrollees in difference classes."""
    return sum(counts.get(category, 0) for category in DIFFERENCE_CATEGORIES)
