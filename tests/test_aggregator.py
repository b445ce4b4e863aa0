"""Tests for dodiag/diagnostics/aggregator.py — executive summary roll-up."""
import pytest

from dodiag.diagnostics.aggregator import compute_summary, issue_rows, overall_health
from dodiag.diagnostics.models import (
    OverallHealth,
    RecommendationSeverity,
    Status,
    make_recommendation,
    make_summary_row,
)


def _rows(*statuses):
    return [make_summary_row("t%d" % i, "r", s) for i, s in enumerate(statuses)]


class TestOverallHealth:
    @pytest.mark.parametrize("critical,warn,expected", [
        (0, 0, OverallHealth.HEALTHY),
        (0, 3, OverallHealth.WARNING),
        (1, 0, OverallHealth.CRITICAL),
        (2, 5, OverallHealth.CRITICAL),
    ])
    def test_roll_up(self, critical, warn, expected):
        assert overall_health(critical, warn) is expected


class TestComputeSummary:
    def test_counts(self):
        rows = _rows(Status.FAIL, Status.ERROR, Status.CRITICAL,
                     Status.WARN, Status.WARN, Status.PASS, Status.INFO)
        recs = [make_recommendation("a", "t", RecommendationSeverity.IMPORTANT)] * 2
        summary = compute_summary(rows, recs)
        assert summary.critical_count == 3
        assert summary.warn_count == 2
        assert summary.pass_count == 1
        assert summary.recommendation_count == 2
        assert summary.overall_health is OverallHealth.CRITICAL

    def test_info_rows_not_counted(self):
        summary = compute_summary(_rows(Status.INFO, Status.INFO), [])
        assert (summary.critical_count, summary.warn_count, summary.pass_count) == (0, 0, 0)
        assert summary.overall_health is OverallHealth.HEALTHY

    def test_warnings_only(self):
        summary = compute_summary(_rows(Status.PASS, Status.WARN), [])
        assert summary.overall_health is OverallHealth.WARNING

    def test_all_errored_run_is_critical(self):
        summary = compute_summary(_rows(Status.ERROR, Status.ERROR, Status.ERROR), [])
        assert summary.overall_health is OverallHealth.CRITICAL

    def test_duplicate_recommendations_kept(self):
        rec = make_recommendation("Peering", "Open port 7680", RecommendationSeverity.IMPORTANT)
        assert compute_summary([], [rec, rec]).recommendation_count == 2


class TestIssueRows:
    def test_worst_first(self):
        rows = _rows(Status.WARN, Status.PASS, Status.CRITICAL, Status.INFO, Status.FAIL)
        issues = issue_rows(rows)
        assert [r.status for r in issues] == [Status.CRITICAL, Status.FAIL, Status.WARN]
