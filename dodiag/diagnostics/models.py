"""
Verdict model shared by every probe.

Findings, recommendations and summary rows are immutable records; the
constructor helpers stamp a timestamp and clamp unknown severities to
INFO (with a logged warning) instead of dropping the record.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

log = logging.getLogger("models")


def _now() -> datetime:
    return datetime.now(timezone.utc)


# ── Enums ────────────────────────────────────────────────────
class Category(Enum):
    """Buffer a finding belongs to."""
    SYSTEM = "System"
    HEALTH = "Health"
    CONNECTIVITY = "Connectivity"
    PEERING = "Peering"
    CONFIGURATION = "Configuration"
    LOGS = "Logs"
    TROUBLESHOOTER = "Troubleshooter"
    ARCHIVE = "Archive"


class Severity(Enum):
    """Severity of a single finding."""
    PASS = "Pass"
    WARN = "Warn"
    FAIL = "Fail"
    ERROR = "Error"
    INFO = "Info"


class Status(Enum):
    """Status of a summary row.

    Ordering used for roll-up: INFO < PASS < WARN < FAIL == ERROR < CRITICAL.
    """
    PASS = "PASS"
    WARN = "WARN"
    FAIL = "FAIL"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"
    INFO = "INFO"

    @property
    def rank(self) -> int:
        return _STATUS_RANK[self]


_STATUS_RANK = {
    Status.INFO: 0,
    Status.PASS: 1,
    Status.WARN: 2,
    Status.FAIL: 3,
    Status.ERROR: 3,
    Status.CRITICAL: 4,
}


class RecommendationSeverity(Enum):
    CRITICAL = "Critical"
    IMPORTANT = "Important"
    INFORMATIONAL = "Informational"


class FileCategory(Enum):
    ETL_LOG = "ETLLog"
    TEXT_LOG = "TextLog"
    CONFIGURATION = "Configuration"
    ARCHIVE = "Archive"
    LARGE_FILE = "LargeFile"
    UNKNOWN = "Unknown"


class OverallHealth(Enum):
    HEALTHY = "Healthy"
    WARNING = "Warning"
    CRITICAL = "Critical"


def _coerce(enum_cls, value, fallback):
    """Map *value* (member, value or name) onto *enum_cls*, else *fallback*."""
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        for member in enum_cls:
            if value.strip().lower() in (member.value.lower(), member.name.lower()):
                return member
    log.warning("Unknown %s %r, clamping to %s", enum_cls.__name__, value, fallback.value)
    return fallback


def coerce_severity(value) -> Severity:
    return _coerce(Severity, value, Severity.INFO)


def coerce_status(value) -> Status:
    return _coerce(Status, value, Status.INFO)


def coerce_recommendation_severity(value) -> RecommendationSeverity:
    return _coerce(RecommendationSeverity, value, RecommendationSeverity.INFORMATIONAL)


# ── Records ──────────────────────────────────────────────────
@dataclass(frozen=True)
class Finding:
    """One atomic observation with a severity."""
    category: Category
    message: str
    severity: Severity
    timestamp: datetime = field(default_factory=_now)

    def as_row(self) -> Dict[str, Any]:
        return {
            "Category": self.category.value,
            "Message": self.message,
            "Severity": self.severity.value,
            "Timestamp": self.timestamp.isoformat(timespec="seconds"),
        }


@dataclass(frozen=True)
class Recommendation:
    """Remediation advice emitted when a finding is WARN or worse."""
    area: str
    text: str
    severity: RecommendationSeverity
    reference: Optional[str] = None

    def as_row(self) -> Dict[str, Any]:
        return {
            "Area": self.area,
            "Recommendation": self.text,
            "Severity": self.severity.value,
            "Reference": self.reference or "",
        }


@dataclass(frozen=True)
class SummaryRow:
    """One row of the executive test-results table."""
    test: str
    result: str
    status: Status
    impact: str = ""
    timestamp: datetime = field(default_factory=_now)

    def as_row(self) -> Dict[str, Any]:
        return {
            "Test": self.test,
            "Result": self.result,
            "Status": self.status.value,
            "Impact": self.impact,
        }


@dataclass(frozen=True)
class PeerTestResult:
    target: str
    port: int
    tcp_succeeded: bool
    description: str = ""

    def as_row(self) -> Dict[str, Any]:
        return {
            "Target": self.target,
            "Port": self.port,
            "TcpSucceeded": self.tcp_succeeded,
            "Description": self.description,
        }


@dataclass(frozen=True)
class EndpointResult:
    url: str
    required: bool
    description: str
    reachable: bool
    status_code: Optional[int] = None
    error: Optional[str] = None
    elapsed_ms: float = 0.0

    def as_row(self) -> Dict[str, Any]:
        return {
            "URL": self.url,
            "Required": self.required,
            "Description": self.description,
            "Reachable": self.reachable,
            "StatusCode": "" if self.status_code is None else self.status_code,
            "Error": self.error or "",
            "ElapsedMs": round(self.elapsed_ms, 1),
        }


@dataclass(frozen=True)
class ConnectionRecord:
    time: str
    source: str
    destination: str
    result: str
    bytes: int
    classification: str = ""

    def as_row(self) -> Dict[str, Any]:
        return {
            "Time": self.time,
            "Source": self.source,
            "Destination": self.destination,
            "Result": self.result,
            "Bytes": self.bytes,
            "Classification": self.classification,
        }


@dataclass(frozen=True)
class DiagnosticFileRecord:
    file_name: str
    size_bytes: int
    category: FileCategory
    sample_content: Optional[str] = None

    def as_row(self) -> Dict[str, Any]:
        return {
            "FileName": self.file_name,
            "SizeBytes": self.size_bytes,
            "Category": self.category.value,
            "SampleContent": self.sample_content or "",
        }


@dataclass(frozen=True)
class SystemInfoRow:
    property: str
    value: str

    def as_row(self) -> Dict[str, Any]:
        return {"Property": self.property, "Value": self.value}


@dataclass(frozen=True)
class ExecutiveSummary:
    """Derived once per run from all summary rows."""
    overall_health: OverallHealth
    critical_count: int
    warn_count: int
    pass_count: int
    recommendation_count: int

    def as_rows(self) -> List[Dict[str, Any]]:
        return [
            {"Metric": "Overall Health", "Value": self.overall_health.value},
            {"Metric": "Critical Issues", "Value": self.critical_count},
            {"Metric": "Warnings", "Value": self.warn_count},
            {"Metric": "Passed", "Value": self.pass_count},
            {"Metric": "Recommendations", "Value": self.recommendation_count},
        ]


# ── Constructors ─────────────────────────────────────────────
def make_finding(category: Category, message: str, severity) -> Finding:
    return Finding(category=category, message=message, severity=coerce_severity(severity))


def make_recommendation(area: str, text: str, severity, reference: Optional[str] = None) -> Recommendation:
    return Recommendation(
        area=area,
        text=text,
        severity=coerce_recommendation_severity(severity),
        reference=reference,
    )


def make_summary_row(test: str, result: str, status, impact: str = "") -> SummaryRow:
    return SummaryRow(test=test, result=result, status=coerce_status(status), impact=impact)
