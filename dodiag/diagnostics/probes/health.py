"""
Service health: download mode, peer count and cache utilisation.
"""
from typing import Callable, Optional, Tuple

from dodiag.utils.service_check import ServiceStatus, query_service_status
from ..context import DiagnosticContext, ProbeOutcome
from ..errors import PartialData
from ..models import (
    Category,
    RecommendationSeverity,
    Severity,
    Status,
    make_finding,
    make_recommendation,
    make_summary_row,
)
from .base import Probe

DO_REFERENCE_URL = "https://learn.microsoft.com/windows/deployment/do/waas-delivery-optimization-reference"

MODE_TABLE = {
    0: (Status.WARN, "HTTP only, peering disabled"),
    1: (Status.PASS, "LAN peering"),
    2: (Status.PASS, "Group peering"),
    3: (Status.PASS, "Internet peering"),
    99: (Status.CRITICAL, "Simple mode, fallback without peering or cloud services"),
}

_FINDING_SEVERITY = {
    Status.PASS: Severity.PASS,
    Status.WARN: Severity.WARN,
    Status.CRITICAL: Severity.FAIL,
}


def classify_download_mode(mode: int) -> Tuple[Status, str]:
    """Status and description for a download-mode code."""
    return MODE_TABLE.get(mode, (Status.WARN, "unknown download mode"))


def cache_utilization(current: int, maximum: int) -> float:
    """Percent of the cache budget in use; 0 when no budget is known."""
    if not maximum:
        return 0.0
    return current / maximum * 100


class HealthProbe(Probe):
    name = "Delivery Optimization Health"
    category = Category.HEALTH
    foundational = True
    failure_advice = ("Verify the Delivery Optimization service (DoSvc) is installed, "
                      "not disabled, and running.")

    def __init__(self, query: Optional[Callable[..., ServiceStatus]] = None):
        super().__init__()
        self._query = query or query_service_status

    def collect(self, context: DiagnosticContext) -> ProbeOutcome:
        try:
            status = self._query(timeout=context.config.command_timeout)
        except PartialData as exc:
            self.log.info("Service status incomplete: %s", exc)
            return ProbeOutcome(
                summary_rows=[make_summary_row("Download Mode", "not reported (%s)" % exc,
                                               Status.WARN, "Peering state unknown")],
                findings=[make_finding(self.category, "Download mode not reported: %s" % exc,
                                       Severity.WARN)],
                recommendations=[make_recommendation(
                    "Download Mode",
                    "Run Get-DeliveryOptimizationPerfSnap manually to confirm the download mode.",
                    RecommendationSeverity.INFORMATIONAL,
                )],
            )
        return self.evaluate(status)

    def evaluate(self, status: ServiceStatus) -> ProbeOutcome:
        outcome = ProbeOutcome()
        verdict, description = classify_download_mode(status.mode)
        self.log.info("Download mode %d: %s (%s)", status.mode, description, verdict.value)

        impact = {
            Status.PASS: "Peer caching available",
            Status.WARN: "Content is fetched from origin only",
            Status.CRITICAL: "No peering and no cloud services",
        }[verdict]
        outcome.summary_rows.append(make_summary_row(
            "Download Mode", "Mode %d - %s" % (status.mode, description), verdict, impact,
        ))
        outcome.findings.append(make_finding(
            self.category,
            "Download mode %d (%s)" % (status.mode, description),
            _FINDING_SEVERITY[verdict],
        ))

        if status.mode == 99:
            outcome.recommendations.append(make_recommendation(
                "Download Mode",
                "Download mode 99 means the service fell back to simple mode. Confirm the "
                "Delivery Optimization cloud endpoints are reachable and remove any policy "
                "that forces DODownloadMode=99.",
                RecommendationSeverity.CRITICAL,
                DO_REFERENCE_URL,
            ))
        elif status.mode == 0:
            outcome.recommendations.append(make_recommendation(
                "Download Mode",
                "Peering is disabled (HTTP only). Set DODownloadMode to 1 (LAN) or 2 (Group) "
                "to let devices share content.",
                RecommendationSeverity.IMPORTANT,
                DO_REFERENCE_URL,
            ))

        pct = cache_utilization(status.current_cache, status.max_cache)
        outcome.summary_rows.append(make_summary_row(
            "Cache Utilization",
            "%.1f%% (%d of %d bytes)" % (pct, status.current_cache, status.max_cache),
            Status.INFO,
        ))
        outcome.findings.append(make_finding(
            self.category, "Cache utilization %.1f%%" % pct, Severity.INFO,
        ))
        outcome.summary_rows.append(make_summary_row(
            "Connected Peers", str(status.peers), Status.INFO,
        ))
        if status.service_state:
            outcome.summary_rows.append(make_summary_row(
                "Service State", status.service_state, Status.INFO,
            ))
        return outcome
