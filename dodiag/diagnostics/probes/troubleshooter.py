"""
Wrapper around the external Delivery Optimization troubleshooter script.

The script runs out-of-process under a hard deadline; each output line
carrying a PASS/WARN/FAIL/ERROR token becomes a finding.
"""
import re
from collections import Counter
from typing import Callable, List, Optional, Tuple

from dodiag.utils.service_check import find_troubleshooter, run_troubleshooter
from dodiag.utils.system import ProcessOutcome
from ..context import DiagnosticContext, ProbeOutcome
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

TROUBLESHOOTER_URL = "https://learn.microsoft.com/windows/deployment/do/delivery-optimization-troubleshoot"

_TOKEN_RE = re.compile(r"\b(PASS(?:ED)?|WARN(?:ING)?|FAIL(?:ED)?|ERROR)\b")

_TOKEN_SEVERITY = {
    "PASS": Severity.PASS,
    "PASSED": Severity.PASS,
    "WARN": Severity.WARN,
    "WARNING": Severity.WARN,
    "FAIL": Severity.FAIL,
    "FAILED": Severity.FAIL,
    "ERROR": Severity.ERROR,
}


def parse_troubleshooter_output(text: str) -> List[Tuple[Severity, str]]:
    """(severity, line) for every line carrying a recognised token.

    The first token on a line wins; lines without one are ignored.
    """
    parsed = []
    for raw in (text or "").splitlines():
        line = raw.strip()
        if not line:
            continue
        match = _TOKEN_RE.search(line)
        if not match:
            continue
        parsed.append((_TOKEN_SEVERITY[match.group(1)], line))
    return parsed


class TroubleshooterProbe(Probe):
    name = "DO Troubleshooter"
    category = Category.TROUBLESHOOTER
    failure_advice = ("Download the Delivery Optimization troubleshooter and run it manually "
                      "from an elevated PowerShell prompt.")

    def __init__(self, runner: Optional[Callable[..., ProcessOutcome]] = None,
                 locate: Optional[Callable[[Optional[str]], Optional[str]]] = None):
        super().__init__()
        self._runner = runner or run_troubleshooter
        self._locate = locate or find_troubleshooter

    def collect(self, context: DiagnosticContext) -> ProbeOutcome:
        cfg = context.config
        path = self._locate(cfg.troubleshooter_path)
        self.log.info("Running troubleshooter %s (deadline %ss)", path, cfg.troubleshooter_timeout)
        result = self._runner(path, timeout=cfg.troubleshooter_timeout)

        outcome = ProbeOutcome()
        parsed = parse_troubleshooter_output(result.stdout)
        for severity, line in parsed:
            outcome.findings.append(make_finding(self.category, line, severity))

        if result.timed_out:
            outcome.summary_rows.append(make_summary_row(
                self.name,
                "timed out after %ss (%d partial result(s))" % (cfg.troubleshooter_timeout, len(parsed)),
                Status.WARN,
                "Troubleshooter results incomplete",
            ))
            outcome.recommendations.append(make_recommendation(
                self.name,
                "The troubleshooter did not finish in time. Run it manually from an "
                "elevated PowerShell prompt and review its output.",
                RecommendationSeverity.IMPORTANT,
                TROUBLESHOOTER_URL,
            ))
            return outcome

        counts = Counter(sev for sev, _ in parsed)
        if not parsed:
            verdict = Status.WARN if result.returncode != 0 else Status.INFO
            summary = "exit code %d, no recognised results" % result.returncode
        else:
            if counts[Severity.FAIL] or counts[Severity.ERROR]:
                verdict = Status.FAIL
            elif counts[Severity.WARN]:
                verdict = Status.WARN
            else:
                verdict = Status.PASS
            summary = "%d PASS, %d WARN, %d FAIL, %d ERROR" % (
                counts[Severity.PASS], counts[Severity.WARN], counts[Severity.FAIL], counts[Severity.ERROR],
            )
        self.log.info("Troubleshooter: %s", summary)
        outcome.summary_rows.append(make_summary_row(
            self.name, summary, verdict,
            "See Troubleshooter findings" if verdict in (Status.WARN, Status.FAIL) else "",
        ))
        return outcome
