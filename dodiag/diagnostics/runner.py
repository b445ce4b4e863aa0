"""
Run orchestration: build the probe list, run each probe in order and
fold the results into the context buffers and an executive summary.
"""
import logging
import time
from dataclasses import dataclass
from typing import List, Optional, Sequence

from .aggregator import compute_summary
from .context import DiagnosticContext
from .models import ExecutiveSummary
from .probes import (
    ArchiveProbe,
    EndpointProbe,
    HealthProbe,
    LogAnalysisProbe,
    PeerPortProbe,
    Probe,
    SystemInfoProbe,
    TroubleshooterProbe,
    cache_size_probe,
    dns_sd_probe,
    group_id_probe,
    validate_archive_path,
)

log = logging.getLogger("runner")


@dataclass
class DiagnosticReport:
    """Everything the report sink needs."""
    context: DiagnosticContext
    summary: ExecutiveSummary
    started: float
    duration: float


def default_probes(context: DiagnosticContext, skip_troubleshooter: bool = False) -> List[Probe]:
    """The full probe list, in report order.

    The archive probe is only added for a valid .zip/.cab path; anything
    else is logged and the run continues without it.
    """
    probes: List[Probe] = [
        SystemInfoProbe(),
        HealthProbe(),
        EndpointProbe(),
        PeerPortProbe(),
        cache_size_probe(),
        group_id_probe(),
        dns_sd_probe(),
        LogAnalysisProbe(),
    ]
    if skip_troubleshooter:
        log.info("Troubleshooter skipped")
    else:
        probes.append(TroubleshooterProbe())

    if context.archive_path:
        if validate_archive_path(context.archive_path):
            probes.append(ArchiveProbe())
        else:
            log.warning("Diagnostics archive %s must be an existing .zip or .cab file; "
                        "continuing without it", context.archive_path)
    return probes


def run_diagnostics(context: DiagnosticContext,
                    probes: Optional[Sequence[Probe]] = None) -> DiagnosticReport:
    """Run *probes* one after another and summarise.

    Never raises for probe failures; each probe converts its own.
    """
    if probes is None:
        probes = default_probes(context)

    started = time.time()
    for index, probe in enumerate(probes, 1):
        log.info("[%d/%d] %s", index, len(probes), probe.name)
        context.add_outcome(probe.run(context))

    summary = compute_summary(context.summary, context.recommendations)
    duration = time.time() - started
    log.info("Diagnostics finished in %.1fs: %s (%d critical, %d warning, %d passed)",
             duration, summary.overall_health.value,
             summary.critical_count, summary.warn_count, summary.pass_count)
    return DiagnosticReport(context=context, summary=summary, started=started, duration=duration)
