"""
Report sinks: CSV files per buffer and a local HTML viewer.
"""

from .csv_sink import ReportWriteError, build_buffers, write_report

__all__ = [
    "ReportWriteError",
    "build_buffers",
    "write_report",
]
