"""
Host facts for the SystemInfo sheet.
"""
from typing import Any, Callable, Dict, Optional

from dodiag.utils.system import get_system_info
from version import __version__
from ..context import DiagnosticContext, ProbeOutcome
from ..models import (
    Category,
    RecommendationSeverity,
    Severity,
    Status,
    SystemInfoRow,
    make_finding,
    make_recommendation,
    make_summary_row,
)
from .base import Probe

_LABELS = (
    ("hostname", "Hostname"),
    ("os_name", "Operating System"),
    ("os_release", "OS Release"),
    ("os_version", "OS Build"),
    ("architecture", "Architecture"),
    ("python_version", "Python Version"),
)


class SystemInfoProbe(Probe):
    name = "System Information"
    category = Category.SYSTEM

    def __init__(self, info: Optional[Callable[[], Dict[str, Any]]] = None):
        super().__init__()
        self._info = info or get_system_info

    def collect(self, context: DiagnosticContext) -> ProbeOutcome:
        info = self._info()
        rows = [SystemInfoRow("Tool Version", __version__)]
        for key, label in _LABELS:
            rows.append(SystemInfoRow(label, str(info.get(key, ""))))
        addresses = info.get("ipv4_addresses") or []
        rows.append(SystemInfoRow("IPv4 Addresses", ", ".join(addresses)))
        is_admin = bool(info.get("is_admin"))
        rows.append(SystemInfoRow("Elevated", "Yes" if is_admin else "No"))
        context.add_system_info(*rows)

        host = "%s %s" % (info.get("os_name", ""), info.get("os_release", ""))
        if is_admin:
            return ProbeOutcome(
                summary_rows=[make_summary_row("Elevation", "running as administrator", Status.PASS)],
                findings=[make_finding(self.category, "Collected on %s" % host.strip(), Severity.INFO)],
            )

        self.log.info("Not elevated; policy and troubleshooter results may be incomplete")
        return ProbeOutcome(
            summary_rows=[make_summary_row(
                "Elevation", "not running as administrator", Status.WARN,
                "Some policy values and logs may be unreadable",
            )],
            findings=[make_finding(self.category, "Diagnostics running without elevation", Severity.WARN)],
            recommendations=[make_recommendation(
                "System",
                "Re-run the diagnostics from an elevated prompt to read every policy and log source.",
                RecommendationSeverity.INFORMATIONAL,
            )],
        )
