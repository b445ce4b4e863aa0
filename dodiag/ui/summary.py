"""
Terminal executive summary printed at the end of a run.
"""
from typing import List

from dodiag.diagnostics.aggregator import issue_rows
from dodiag.diagnostics.runner import DiagnosticReport
from .widgets import (
    C, box_bot, box_kv, box_row, box_section, box_status, box_top, colorize, colors_enabled, cols,
    strip_ansi,
)

MAX_ISSUES = 10


def render_summary(report: DiagnosticReport, report_dir: str = "", width: int = 0) -> List[str]:
    """Lines of the boxed summary; the caller prints them."""
    w = width or min(cols() - 4, 76)
    summary = report.summary
    ctx = report.context

    lines = [box_top(w)]
    lines.append(box_row(f"{C.BOLD}DELIVERY OPTIMIZATION DIAGNOSTICS{C.RST}", w))
    lines.append(box_section("EXECUTIVE SUMMARY", w))
    lines.append(box_kv("Overall Health", colorize(summary.overall_health.value), w, val_color=''))
    lines.append(box_kv("Critical Issues", summary.critical_count, w))
    lines.append(box_kv("Warnings", summary.warn_count, w))
    lines.append(box_kv("Passed", summary.pass_count, w))
    lines.append(box_kv("Recommendations", summary.recommendation_count, w))
    lines.append(box_kv("Duration", "%.1fs" % report.duration, w))

    issues = issue_rows(ctx.summary)
    if issues:
        lines.append(box_section("ISSUES", w))
        for row in issues[:MAX_ISSUES]:
            lines.append(box_status(row.status.value, "%s: %s" % (row.test, row.result), w))
        if len(issues) > MAX_ISSUES:
            lines.append(box_row(f"{C.DIM}... and {len(issues) - MAX_ISSUES} more{C.RST}", w))

    if report_dir:
        lines.append(box_section("REPORT", w))
        lines.append(box_row(report_dir, w))
    lines.append(box_bot(w))
    return lines


def print_summary(report: DiagnosticReport, report_dir: str = "") -> None:
    color = colors_enabled()
    print()
    for line in render_summary(report, report_dir):
        print(line if color else strip_ansi(line))
    print()
