"""Cross-school report aggregation."""

from collections.abc import Mapping, Sequence

from school_sync.domain.categories import BASE_CATEGORIES, CATEGORY_KEYS
from school_sync.domain.reports import DetailedReport, SchoolReportRow
from school_sync.domain.schools import School
from school_sync.services.ledger import difference_count, total_count, total_fee


def total_across_schools(snapshot: Sequence[School]) -> int:
    """Return the number of enrollees across every school."""
    return sum(total_count(school.candidates) for school in snapshot)


def total_fee_across_schools(
    snapshot: Sequence[School], fee_table: Mapping[str, float]
) -> float:
    """Return the summed fee across every school."""
    return sum(total_fee(school.candidates, fee_table) for school in snapshot)


def per_category_totals(snapshot: Sequence[School]) -> dict[str, int]:
    """Return per-category sums, with every known category present."""
    totals = {category: 0 for category in CATEGORY_KEYS}
    for school in snapshot:
        for category, count in school.candidates.items():
            totals[category] = totals.get(category, 0) + count
    return totals


def difference_total_across_schools(snapshot: Sequence[School]) -> int:
    """Return the number of difference-class enrollees across every school."""
    return sum(difference_count(school.candidates) for school in snapshot)


def build_report(
    snapshot: Sequence[School], fee_table: Mapping[str, float]
) -> DetailedReport:
    """Build the detailed report table for a snapshot."""
    rows = [_report_row(school, fee_table) for school in snapshot]
    return DetailedReport(
        rows=rows,
        category_totals=per_category_totals(snapshot),
        difference_total=difference_total_across_schools(snapshot),
        total_count=total_across_schools(snapshot),
        total_fee=total_fee_across_schools(snapshot, fee_table),
    )


def _report_row(school: School, fee_table: Mapping[str, float]) -> SchoolReportRow:
    return SchoolReportRow(
        school_id=school.id,
        school_name=school.name,
        base_counts={
            category: school.candidates.get(category, 0)
            for category in BASE_CATEGORIES
        },
        difference_count=difference_count(school.candidates),
        total_count=total_count(school.candidates),
        total_fee=total_fee(school.candidates, fee_table),
    )
