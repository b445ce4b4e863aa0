"""
Delivery Optimization diagnostics: verdict model, probes, aggregation
and run orchestration.
"""

from .context import DiagnosticContext, ProbeOutcome
from .aggregator import compute_summary, overall_health
from .runner import DiagnosticReport, default_probes, run_diagnostics

__all__ = [
    "DiagnosticContext",
    "ProbeOutcome",
    "compute_summary",
    "overall_health",
    "DiagnosticReport",
    "default_probes",
    "run_diagnostics",
]
