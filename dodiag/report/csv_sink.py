"""
Report sink: one CSV file per buffer.

build_buffers() flattens the run context into an ordered mapping of
sheet name -> list of flat rows; write_report() writes each sheet as
``<Sheet>.csv`` into a timestamped report directory.
"""
import csv
import logging
import os
from collections import OrderedDict
from datetime import datetime
from typing import Any, Dict, List, Optional

from dodiag.diagnostics.context import DiagnosticContext
from dodiag.diagnostics.error_codes import error_code_rows
from dodiag.diagnostics.models import ExecutiveSummary

log = logging.getLogger("report")

Rows = List[Dict[str, Any]]

# Column order per sheet; empty sheets still get a header row.
COLUMNS = OrderedDict([
    ("Summary", ["Test", "Result", "Status", "Impact"]),
    ("ExecutiveSummary", ["Metric", "Value"]),
    ("Findings", ["Category", "Message", "Severity", "Timestamp"]),
    ("Recommendations", ["Area", "Recommendation", "Severity", "Reference"]),
    ("SystemInfo", ["Property", "Value"]),
    ("Endpoints", ["URL", "Required", "Description", "Reachable", "StatusCode", "Error", "ElapsedMs"]),
    ("PeerTests", ["Target", "Port", "TcpSucceeded", "Description"]),
    ("Connections", ["Time", "Source", "Destination", "Result", "Bytes", "Classification"]),
    ("DiagnosticFiles", ["FileName", "SizeBytes", "Category", "SampleContent"]),
    ("ErrorCodes", ["ErrorCode", "Description", "Recommendation"]),
])


class ReportWriteError(Exception):
    """The report directory or one of its files could not be written."""


def build_buffers(context: DiagnosticContext, summary: ExecutiveSummary) -> "OrderedDict[str, Rows]":
    """Flatten *context* into sheet name -> rows, in report order."""
    return OrderedDict([
        ("Summary", [r.as_row() for r in context.summary]),
        ("ExecutiveSummary", summary.as_rows()),
        ("Findings", [r.as_row() for r in context.findings]),
        ("Recommendations", [r.as_row() for r in context.recommendations]),
        ("SystemInfo", [r.as_row() for r in context.system_info]),
        ("Endpoints", [r.as_row() for r in context.endpoint_results]),
        ("PeerTests", [r.as_row() for r in context.peer_results]),
        ("Connections", [r.as_row() for r in context.connections]),
        ("DiagnosticFiles", [r.as_row() for r in context.file_records]),
        ("ErrorCodes", error_code_rows()),
    ])


def report_dir_name(now: Optional[datetime] = None) -> str:
    now = now or datetime.now()
    return "DOPeerDiagnostics_%s" % now.strftime("%Y%m%d_%H%M%S")


def ensure_output_dir(path: str) -> str:
    """Create *path* if needed; ReportWriteError when that is impossible."""
    try:
        os.makedirs(path, exist_ok=True)
    except OSError as exc:
        raise ReportWriteError("Cannot create output directory %s: %s" % (path, exc)) from exc
    return path


def write_report(buffers: "OrderedDict[str, Rows]", output_dir: str,
                 dir_name: Optional[str] = None) -> str:
    """Write every buffer to ``<output_dir>/<dir_name>/<Sheet>.csv``.

    Returns:
        The report directory path.
    """
    report_dir = ensure_output_dir(os.path.join(output_dir, dir_name or report_dir_name()))
    for sheet, rows in buffers.items():
        path = os.path.join(report_dir, "%s.csv" % sheet)
        columns = COLUMNS.get(sheet) or (list(rows[0].keys()) if rows else [])
        try:
            with open(path, "w", newline="", encoding="utf-8") as fh:
                writer = csv.DictWriter(fh, fieldnames=columns)
                writer.writeheader()
                writer.writerows(rows)
        except OSError as exc:
            raise ReportWriteError("Cannot write %s: %s" % (path, exc)) from exc
        log.debug("Wrote %d row(s) to %s", len(rows), path)
    log.info("Report written to %s", report_dir)
    return report_dir


def read_csv_buffer(path: str) -> Rows:
    """Read one sheet back as a list of dicts (all values are strings)."""
    with open(path, newline="", encoding="utf-8") as fh:
        return list(csv.DictReader(fh))


def read_report(report_dir: str) -> "OrderedDict[str, Rows]":
    """Load every known sheet present in *report_dir*."""
    buffers = OrderedDict()
    for sheet in COLUMNS:
        path = os.path.join(report_dir, "%s.csv" % sheet)
        if os.path.isfile(path):
            buffers[sheet] = read_csv_buffer(path)
    return buffers
