"""Tests for dodiag/diagnostics/probes/log_analysis.py — transfer history."""
import pytest

from dodiag.diagnostics.errors import CollaboratorTimeout
from dodiag.diagnostics.models import ConnectionRecord, RecommendationSeverity, Severity, Status
from dodiag.diagnostics.probes.log_analysis import (
    FAILED,
    INTERNET_PEER,
    LOCAL_PEER,
    MICROSOFT_SERVER,
    LogAnalysisProbe,
    classify_connection,
    classify_success_rate,
)


def _rec(source, result="Success"):
    return ConnectionRecord(time="t", source=source, destination="", result=result, bytes=10)


class TestClassifyConnection:
    @pytest.mark.parametrize("source,result,expected", [
        ("192.168.1.20", "Success", LOCAL_PEER),
        ("10.1.2.3", "0", LOCAL_PEER),
        ("172.16.5.5", "ok", LOCAL_PEER),
        ("172.32.0.1", "Success", INTERNET_PEER),
        ("8.8.8.8", "Success", INTERNET_PEER),
        ("dl.delivery.mp.microsoft.com", "Success", MICROSOFT_SERVER),
        ("download.windowsupdate.com", "Success", MICROSOFT_SERVER),
        ("192.168.1.20", "Failed", FAILED),
        ("dl.delivery.mp.microsoft.com", "0x80D02002", FAILED),
    ])
    def test_labels(self, source, result, expected):
        assert classify_connection(_rec(source, result)) == expected

    def test_lookalike_domain_is_not_microsoft(self):
        assert classify_connection(_rec("evilmicrosoft.com")) == INTERNET_PEER


class TestClassifySuccessRate:
    @pytest.mark.parametrize("rate,expected", [
        (0, Status.FAIL), (24.9, Status.FAIL),
        (25, Status.WARN), (75, Status.WARN),
        (75.1, Status.PASS), (100, Status.PASS),
    ])
    def test_boundaries(self, rate, expected):
        assert classify_success_rate(rate) is expected


class TestLogAnalysisProbe:
    def test_no_records_is_info(self, context):
        outcome = LogAnalysisProbe(history=lambda timeout=60: []).run(context)
        assert outcome.summary_rows[0].status is Status.INFO
        assert context.connections == []

    def test_history_timeout_warns(self, context):
        def history(timeout=60):
            raise CollaboratorTimeout("Get-DeliveryOptimizationLog timed out after 60s")

        outcome = LogAnalysisProbe(history=history).run(context)
        assert [r.status for r in outcome.summary_rows] == [Status.WARN]
        assert [f.severity for f in outcome.findings] == [Severity.WARN]
        assert [r.severity for r in outcome.recommendations] == [RecommendationSeverity.INFORMATIONAL]

    def test_mostly_failed_is_fail(self, context):
        records = [_rec("10.0.0.2", "Failed")] * 4 + [_rec("10.0.0.3")]
        outcome = LogAnalysisProbe(history=lambda timeout=60: records).run(context)
        assert outcome.summary_rows[0].status is Status.FAIL
        assert outcome.recommendations[0].severity is RecommendationSeverity.IMPORTANT

    def test_healthy_history_passes_and_records_connections(self, context):
        records = [_rec("10.0.0.2"), _rec("8.8.4.4"), _rec("geo.prod.do.dsp.mp.microsoft.com"),
                   _rec("10.0.0.9")]
        outcome = LogAnalysisProbe(history=lambda timeout=60: records).run(context)
        assert outcome.summary_rows[0].status is Status.PASS
        labels = [c.classification for c in context.connections]
        assert labels == [LOCAL_PEER, INTERNET_PEER, MICROSOFT_SERVER, LOCAL_PEER]

    def test_half_failed_warns(self, context):
        records = [_rec("10.0.0.2"), _rec("10.0.0.2", "Failed")]
        outcome = LogAnalysisProbe(history=lambda timeout=60: records).run(context)
        assert outcome.summary_rows[0].status is Status.WARN
        assert outcome.recommendations == []

    def test_thresholds_from_config(self, context):
        context.config.log_pass_above = 40.0
        records = [_rec("10.0.0.2"), _rec("10.0.0.2", "Failed")]
        outcome = LogAnalysisProbe(history=lambda timeout=60: records).run(context)
        assert outcome.summary_rows[0].status is Status.PASS
