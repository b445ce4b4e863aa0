"""
Executive summary roll-up.

FAIL, ERROR and CRITICAL rows count as critical, WARN rows as warnings,
PASS rows as passed; INFO rows are reported but never counted.
Recommendations are kept as emitted, duplicates included.
"""
from typing import Iterable, List, Sequence

from .models import ExecutiveSummary, OverallHealth, Recommendation, Status, SummaryRow

CRITICAL_STATUSES = (Status.FAIL, Status.ERROR, Status.CRITICAL)


def overall_health(critical: int, warn: int) -> OverallHealth:
    if critical > 0:
        return OverallHealth.CRITICAL
    if warn > 0:
        return OverallHealth.WARNING
    return OverallHealth.HEALTHY


def compute_summary(rows: Iterable[SummaryRow],
                    recommendations: Sequence[Recommendation]) -> ExecutiveSummary:
    critical = warn = passed = 0
    for row in rows:
        if row.status in CRITICAL_STATUSES:
            critical += 1
        elif row.status is Status.WARN:
            warn += 1
        elif row.status is Status.PASS:
            passed += 1
    return ExecutiveSummary(
        overall_health=overall_health(critical, warn),
        critical_count=critical,
        warn_count=warn,
        pass_count=passed,
        recommendation_count=len(recommendations),
    )


def issue_rows(rows: Iterable[SummaryRow]) -> List[SummaryRow]:
    """Rows that need attention, worst first; ties keep run order."""
    flagged = [row for row in rows if row.status.rank >= Status.WARN.rank]
    return sorted(flagged, key=lambda row: -row.status.rank)
