"""
Run context: settings plus the typed, append-only buffers every probe
writes into.  Appends are lock-guarded because the coordinator's worker
threads may write peer, endpoint and file records concurrently.
"""

import threading
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from dodiag.utils.config import DiagConfig
from .models import (
    ConnectionRecord,
    DiagnosticFileRecord,
    EndpointResult,
    Finding,
    PeerTestResult,
    Recommendation,
    SummaryRow,
    SystemInfoRow,
)


@dataclass
class ProbeOutcome:
    """What a probe hands back to the runner."""
    summary_rows: List[SummaryRow] = field(default_factory=list)
    findings: List[Finding] = field(default_factory=list)
    recommendations: List[Recommendation] = field(default_factory=list)

    def extend(self, other: "ProbeOutcome") -> None:
        self.summary_rows.extend(other.summary_rows)
        self.findings.extend(other.findings)
        self.recommendations.extend(other.recommendations)


@dataclass
class DiagnosticContext:
    config: DiagConfig = field(default_factory=DiagConfig)
    archive_path: Optional[str] = None

    summary: List[SummaryRow] = field(default_factory=list)
    findings: List[Finding] = field(default_factory=list)
    recommendations: List[Recommendation] = field(default_factory=list)
    system_info: List[SystemInfoRow] = field(default_factory=list)
    endpoint_results: List[EndpointResult] = field(default_factory=list)
    peer_results: List[PeerTestResult] = field(default_factory=list)
    connections: List[ConnectionRecord] = field(default_factory=list)
    file_records: List[DiagnosticFileRecord] = field(default_factory=list)

    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def _append(self, buffer: list, items: Iterable) -> None:
        with self._lock:
            buffer.extend(items)

    def add_outcome(self, outcome: ProbeOutcome) -> None:
        with self._lock:
            self.summary.extend(outcome.summary_rows)
            self.findings.extend(outcome.findings)
            self.recommendations.extend(outcome.recommendations)

    def add_system_info(self, *rows: SystemInfoRow) -> None:
        self._append(self.system_info, rows)

    def add_endpoint_result(self, *results: EndpointResult) -> None:
        self._append(self.endpoint_results, results)

    def add_peer_result(self, *results: PeerTestResult) -> None:
        self._append(self.peer_results, results)

    def add_connection(self, *records: ConnectionRecord) -> None:
        self._append(self.connections, records)

    def add_file_record(self, *records: DiagnosticFileRecord) -> None:
        self._append(self.file_records, records)
