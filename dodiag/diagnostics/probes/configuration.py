"""
Single-value policy checks: cache size, Group ID and DNS-SD discovery.

Missing and misconfigured values share the same remediation text; only
the reported result differs.
"""
import uuid
from typing import Callable, Optional

from dodiag.utils.config import DiagConfig
from dodiag.utils.service_check import read_policy_value
from ..context import DiagnosticContext, ProbeOutcome
from ..errors import PartialData
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

POLICY_REFERENCE_URL = "https://learn.microsoft.com/windows/deployment/do/waas-delivery-optimization-reference"

Reader = Callable[[str], Optional[str]]
Validator = Callable[[str, DiagConfig], bool]


class ConfigValueProbe(Probe):
    """Read one policy value and compare it with the expected setting."""

    category = Category.CONFIGURATION

    def __init__(self, name: str, value_name: str, validator: Validator,
                 expected: str, remediation: str, reader: Optional[Reader] = None):
        super().__init__()
        self.name = name
        self.value_name = value_name
        self.validator = validator
        self.expected = expected
        self.remediation = remediation
        self._reader = reader or read_policy_value

    def collect(self, context: DiagnosticContext) -> ProbeOutcome:
        try:
            value = self._reader(self.value_name)
        except PartialData as exc:
            self.log.debug("%s: partial data treated as not configured: %s", self.value_name, exc)
            value = None

        if value is None or not str(value).strip():
            return self._warn("%s not configured" % self.value_name,
                              "%s is not set (expected %s)" % (self.value_name, self.expected))

        value = str(value).strip()
        if self.validator(value, context.config):
            return ProbeOutcome(
                summary_rows=[make_summary_row(self.name, "%s = %s" % (self.value_name, value),
                                               Status.PASS, "Configured as expected")],
                findings=[make_finding(self.category, "%s = %s" % (self.value_name, value), Severity.PASS)],
            )
        return self._warn("%s = %s (expected %s)" % (self.value_name, value, self.expected),
                          "%s has unexpected value %s (expected %s)" % (self.value_name, value, self.expected))

    def _warn(self, result: str, message: str) -> ProbeOutcome:
        self.log.info("%s", message)
        return ProbeOutcome(
            summary_rows=[make_summary_row(self.name, result, Status.WARN, "Default behaviour applies")],
            findings=[make_finding(self.category, message, Severity.WARN)],
            recommendations=[make_recommendation(
                self.name, self.remediation, RecommendationSeverity.IMPORTANT, POLICY_REFERENCE_URL,
            )],
        )


# ── Validators ───────────────────────────────────────────────
def _int_or_none(value: str) -> Optional[int]:
    try:
        return int(value, 0) if value.lower().startswith("0x") else int(value)
    except ValueError:
        return None


def valid_cache_size(value: str, config: DiagConfig) -> bool:
    pct = _int_or_none(value)
    return pct is not None and 1 <= pct <= 100 and pct >= config.min_cache_percent


def valid_group_id(value: str, config: DiagConfig) -> bool:
    try:
        uuid.UUID(value.strip("{}"))
    except ValueError:
        return False
    return True


def valid_dns_sd(value: str, config: DiagConfig) -> bool:
    return _int_or_none(value) == 2


# ── Probe factories ──────────────────────────────────────────
def cache_size_probe(reader: Optional[Reader] = None) -> ConfigValueProbe:
    return ConfigValueProbe(
        "Cache Size Policy", "DOMaxCacheSize", valid_cache_size,
        "a percentage of at least the configured minimum",
        "Set the 'Max Cache Size (percentage)' policy (DOMaxCacheSize) so peers have "
        "enough cached content to share.",
        reader,
    )


def group_id_probe(reader: Optional[Reader] = None) -> ConfigValueProbe:
    return ConfigValueProbe(
        "Group ID Policy", "DOGroupId", valid_group_id,
        "a GUID",
        "Set the 'Group ID' policy (DOGroupId) to the same GUID on every device that "
        "should peer together.",
        reader,
    )


def dns_sd_probe(reader: Optional[Reader] = None) -> ConfigValueProbe:
    return ConfigValueProbe(
        "DNS-SD Peer Discovery", "DORestrictPeerSelectionBy", valid_dns_sd,
        "2 (local discovery)",
        "Set 'Select a method to restrict peer selection' (DORestrictPeerSelectionBy) "
        "to 2 to enable DNS-SD local peer discovery.",
        reader,
    )
