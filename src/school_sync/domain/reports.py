"""Domain models for cross-school reports."""

from dataclasses import dataclass


@dataclass(frozen=True)
class SchoolReportRow:
    """Report line for a single school."""

    school_id: str
    school_name: str
    base_counts: dict[str, int]
    difference_count: int
    total_count: int
    total_fee: float


@dataclass(frozen=True)
class DetailedReport:
    """Report table across all schools with footer totals."""

    rows: list[SchoolReportRow]
    category_totals: dict[str, int]
    difference_total: int
    total_count: int
    total_fee: float
