"""
Historical transfer analysis.

Each connection record is classified by where the content came from;
the share of successful transfers decides the verdict.
"""
from collections import Counter
from typing import Callable, List, Optional

from dodiag.utils.common import is_private_ipv4
from dodiag.utils.service_check import query_connection_history
from ..context import DiagnosticContext, ProbeOutcome
from ..models import (
    Category,
    ConnectionRecord,
    RecommendationSeverity,
    Severity,
    Status,
    make_finding,
    make_recommendation,
    make_summary_row,
)
from .base import Probe

LOCAL_PEER = "Local Peer"
INTERNET_PEER = "Internet Peer"
MICROSOFT_SERVER = "Microsoft Server"
FAILED = "Failed"

MICROSOFT_DOMAINS = (
    "microsoft.com",
    "windowsupdate.com",
    "windows.com",
    "msedge.net",
    "azureedge.net",
)

_SUCCESS_RESULTS = {"success", "succeeded", "ok", "0", "0x0", "completed"}

TROUBLESHOOT_URL = "https://learn.microsoft.com/windows/deployment/do/delivery-optimization-troubleshoot"


def is_failed_result(result: str) -> bool:
    return (result or "").strip().lower() not in _SUCCESS_RESULTS


def is_microsoft_host(host: str) -> bool:
    host = (host or "").strip().lower().rstrip(".")
    return any(host == d or host.endswith("." + d) for d in MICROSOFT_DOMAINS)


def classify_connection(record: ConnectionRecord) -> str:
    """Failed, Microsoft Server, Local Peer or Internet Peer."""
    if is_failed_result(record.result):
        return FAILED
    if is_microsoft_host(record.source):
        return MICROSOFT_SERVER
    if is_private_ipv4(record.source):
        return LOCAL_PEER
    return INTERNET_PEER


def classify_success_rate(rate: float, fail_below: float = 25.0, pass_above: float = 75.0) -> Status:
    if rate < fail_below:
        return Status.FAIL
    if rate > pass_above:
        return Status.PASS
    return Status.WARN


class LogAnalysisProbe(Probe):
    name = "Transfer History"
    category = Category.LOGS

    def __init__(self, history: Optional[Callable[..., List[ConnectionRecord]]] = None):
        super().__init__()
        self._history = history or query_connection_history

    def collect(self, context: DiagnosticContext) -> ProbeOutcome:
        records = self._history(timeout=context.config.command_timeout)
        if not records:
            return ProbeOutcome(
                summary_rows=[make_summary_row(self.name, "no connection history recorded", Status.INFO)],
                findings=[make_finding(self.category, "No historical connection records found", Severity.INFO)],
            )

        counts: Counter = Counter()
        for record in records:
            label = classify_connection(record)
            counts[label] += 1
            context.add_connection(ConnectionRecord(
                time=record.time,
                source=record.source,
                destination=record.destination,
                result=record.result,
                bytes=record.bytes,
                classification=label,
            ))

        total = len(records)
        rate = (total - counts[FAILED]) / total * 100
        cfg = context.config
        verdict = classify_success_rate(rate, cfg.log_fail_below, cfg.log_pass_above)
        breakdown = ", ".join("%s: %d" % (label, counts[label])
                              for label in (LOCAL_PEER, INTERNET_PEER, MICROSOFT_SERVER, FAILED))
        result = "%.0f%% of %d transfers succeeded (%s)" % (rate, total, breakdown)
        self.log.info("%s", result)

        severity = {Status.PASS: Severity.PASS, Status.WARN: Severity.WARN, Status.FAIL: Severity.FAIL}[verdict]
        outcome = ProbeOutcome(
            summary_rows=[make_summary_row(
                self.name, result, verdict,
                "Transfers healthy" if verdict is Status.PASS else "Frequent transfer failures",
            )],
            findings=[make_finding(self.category, result, severity)],
        )
        if counts[LOCAL_PEER] == 0 and counts[INTERNET_PEER] == 0:
            outcome.findings.append(make_finding(
                self.category, "No successful peer transfers in history", Severity.INFO,
            ))
        if verdict is Status.FAIL:
            outcome.recommendations.append(make_recommendation(
                "Transfer History",
                "Most recorded transfers failed. Review the Connections sheet for the failing "
                "sources and check firewall and proxy rules for peer and CDN traffic.",
                RecommendationSeverity.IMPORTANT,
                TROUBLESHOOT_URL,
            ))
        return outcome
