"""Domain models for schools."""

from collections.abc import Mapping
from dataclasses import dataclass, field

CategoryCounts = Mapping[str, int]


@dataclass(frozen=True)
class School:
    """A school record with per-category enrollee counts."""

    id: str
    name: str
    candidates: CategoryCounts = field(default_factory=dict)
