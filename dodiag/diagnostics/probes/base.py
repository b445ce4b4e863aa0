"""
Probe base class.

Every probe is a failure boundary: run() calls collect() and converts
any collaborator failure into a summary row, a finding and a
recommendation, so nothing propagates into the runner.  Timeouts are
FAIL for foundational probes and WARN otherwise; every other failure
is ERROR.
"""
import logging
from typing import Optional

from ..context import DiagnosticContext, ProbeOutcome
from ..errors import CollaboratorTimeout
from ..models import (
    Category,
    RecommendationSeverity,
    Severity,
    Status,
    make_finding,
    make_recommendation,
    make_summary_row,
)


class Probe:
    """A single diagnostic check against one collaborator.

    Subclasses set ``name``/``category`` and implement collect().
    ``foundational`` probes escalate their failure recommendation to
    CRITICAL; all others emit an INFORMATIONAL one.
    """

    name = "probe"
    category = Category.SYSTEM
    foundational = False
    failure_advice = "Re-run the diagnostics as administrator and review the log file."

    def __init__(self):
        self.log = logging.getLogger("probe.%s" % self.__class__.__name__.lower())

    def collect(self, context: DiagnosticContext) -> ProbeOutcome:
        raise NotImplementedError

    def run(self, context: DiagnosticContext) -> ProbeOutcome:
        """Run the probe; never raises."""
        self.log.debug("Running %s", self.name)
        try:
            outcome = self.collect(context)
        except Exception as exc:
            self.log.warning("%s failed: %s: %s", self.name, type(exc).__name__, exc)
            self.log.debug("%s traceback", self.name, exc_info=True)
            outcome = self.failure_outcome(exc)
        return outcome

    def failure_outcome(self, exc: Exception, test: Optional[str] = None) -> ProbeOutcome:
        """Normalise a collaborator failure into the shared verdict records."""
        if isinstance(exc, CollaboratorTimeout):
            kind = "timed out"
            impact = "Check did not finish in time"
            status = Status.FAIL if self.foundational else Status.WARN
            finding_severity = Severity.FAIL if self.foundational else Severity.WARN
        else:
            kind = "unavailable"
            impact = "Check could not be completed"
            status, finding_severity = Status.ERROR, Severity.ERROR
        message = "%s %s: %s" % (self.name, kind, exc)
        severity = (RecommendationSeverity.CRITICAL if self.foundational
                    else RecommendationSeverity.INFORMATIONAL)
        return ProbeOutcome(
            summary_rows=[make_summary_row(test or self.name, str(exc) or type(exc).__name__,
                                           status, impact)],
            findings=[make_finding(self.category, message, finding_severity)],
            recommendations=[make_recommendation(self.name, self.failure_advice, severity)],
        )
