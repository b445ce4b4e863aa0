"""
Network reachability: Delivery Optimization cloud endpoints and the
peer-to-peer ports.  Both fan out through the shared coordinator.
"""
from dataclasses import dataclass
from functools import partial
from typing import Callable, List, Optional, Sequence, Tuple

from dodiag.utils.system import HttpCheck, check_http_endpoint, check_tcp_port, get_default_gateway
from dodiag.utils.threads import run_all
from ..context import DiagnosticContext, ProbeOutcome
from ..models import (
    Category,
    EndpointResult,
    PeerTestResult,
    RecommendationSeverity,
    Severity,
    Status,
    make_finding,
    make_recommendation,
    make_summary_row,
)
from .base import Probe

ENDPOINTS_URL = "https://learn.microsoft.com/windows/privacy/manage-windows-11-endpoints"
PORTS_URL = "https://learn.microsoft.com/windows/deployment/do/delivery-optimization-endpoints"


@dataclass(frozen=True)
class Endpoint:
    url: str
    required: bool
    description: str


DEFAULT_ENDPOINTS = (
    Endpoint("https://geo.prod.do.dsp.mp.microsoft.com", True, "Geo location service"),
    Endpoint("https://kv801.prod.do.dsp.mp.microsoft.com", True, "Key-value configuration service"),
    Endpoint("https://disc801.prod.do.dsp.mp.microsoft.com", True, "Peer discovery service"),
    Endpoint("https://array801.prod.do.dsp.mp.microsoft.com", True, "Peer array service"),
    Endpoint("https://dl.delivery.mp.microsoft.com", False, "Content delivery network"),
    Endpoint("http://download.windowsupdate.com", False, "Windows Update content"),
    Endpoint("https://tsfe.trafficshaping.dsp.mp.microsoft.com", False, "Traffic shaping service"),
)

DEFAULT_FALLBACK_ADDRESS = "192.168.1.1"
LOCALHOST = "127.0.0.1"


def is_reachable(check: HttpCheck) -> bool:
    """Any HTTP answer below 500 proves the endpoint is reachable."""
    return check.error is None and check.status_code is not None and check.status_code < 500


class EndpointProbe(Probe):
    name = "Endpoint Reachability"
    category = Category.CONNECTIVITY

    def __init__(self, endpoints: Optional[Sequence[Endpoint]] = None,
                 check: Optional[Callable[..., HttpCheck]] = None):
        super().__init__()
        self.endpoints = list(endpoints if endpoints is not None else DEFAULT_ENDPOINTS)
        self._check = check or check_http_endpoint

    def collect(self, context: DiagnosticContext) -> ProbeOutcome:
        timeout = context.config.http_timeout
        tasks = [
            (str(i), partial(self._check, ep.url, timeout=timeout))
            for i, ep in enumerate(self.endpoints)
        ]
        results = run_all(tasks, context.config.max_parallel)

        outcome = ProbeOutcome()
        required_failed: List[str] = []
        optional_failed: List[str] = []
        for r in results:
            ep = self.endpoints[int(r.name)]
            check = r.value if r.ok else HttpCheck(url=ep.url, error=str(r.error) or type(r.error).__name__)
            reachable = is_reachable(check)
            if check.error is None and not reachable:
                check.error = "HTTP %s" % check.status_code
            context.add_endpoint_result(EndpointResult(
                url=ep.url,
                required=ep.required,
                description=ep.description,
                reachable=reachable,
                status_code=check.status_code,
                error=check.error,
                elapsed_ms=check.elapsed_ms,
            ))

            if reachable:
                outcome.findings.append(make_finding(
                    self.category, "%s reachable (HTTP %s)" % (ep.url, check.status_code), Severity.PASS,
                ))
            elif ep.required:
                required_failed.append(ep.url)
                outcome.findings.append(make_finding(
                    self.category, "Required endpoint %s unreachable: %s" % (ep.url, check.error),
                    Severity.FAIL,
                ))
                outcome.recommendations.append(make_recommendation(
                    "Connectivity",
                    "Allow HTTPS traffic to %s (%s) through the proxy and firewall; "
                    "peering cannot work without it." % (ep.url, ep.description),
                    RecommendationSeverity.CRITICAL,
                    ENDPOINTS_URL,
                ))
            else:
                optional_failed.append(ep.url)
                outcome.findings.append(make_finding(
                    self.category, "Optional endpoint %s unreachable: %s" % (ep.url, check.error),
                    Severity.WARN,
                ))

        total = len(self.endpoints)
        reachable_count = total - len(required_failed) - len(optional_failed)
        result = "%d/%d endpoints reachable" % (reachable_count, total)
        if optional_failed:
            result += " (%d optional unreachable)" % len(optional_failed)
        if required_failed:
            outcome.summary_rows.append(make_summary_row(
                self.name, result, Status.FAIL, "Peer discovery and cloud configuration blocked",
            ))
        else:
            outcome.summary_rows.append(make_summary_row(
                self.name, result, Status.PASS, "Cloud services reachable",
            ))
        self.log.info("%s", result)
        return outcome


# ── Peer ports ───────────────────────────────────────────────
def classify_port_rate(rate: float, fail_below: float = 50.0) -> Status:
    """PASS at 100%, FAIL below *fail_below*, WARN in between."""
    if rate >= 100:
        return Status.PASS
    if rate < fail_below:
        return Status.FAIL
    return Status.WARN


def build_targets(gateway: Optional[str], fallback: str = DEFAULT_FALLBACK_ADDRESS) -> List[str]:
    """Gateway (when discovered), fallback private address, localhost; no duplicates."""
    targets: List[str] = []
    for host in (gateway, fallback, LOCALHOST):
        if host and host not in targets:
            targets.append(host)
    return targets


_PORT_SEVERITY = {
    Status.PASS: Severity.PASS,
    Status.WARN: Severity.WARN,
    Status.FAIL: Severity.FAIL,
}


class PeerPortProbe(Probe):
    name = "Peer Port Connectivity"
    category = Category.PEERING

    def __init__(self, tcp_check: Optional[Callable[..., Tuple[bool, str]]] = None,
                 gateway_lookup: Optional[Callable[[], Optional[str]]] = None):
        super().__init__()
        self._tcp_check = tcp_check or check_tcp_port
        self._gateway_lookup = gateway_lookup or get_default_gateway

    def collect(self, context: DiagnosticContext) -> ProbeOutcome:
        cfg = context.config
        gateway = self._gateway_lookup()
        if gateway is None:
            self.log.info("No default gateway discovered, testing fallback targets only")
        targets = build_targets(gateway, cfg.fallback_peer_address)
        ports = list(dict.fromkeys(cfg.peer_ports))

        pairs = [(t, p) for p in ports for t in targets]
        tasks = [
            (str(i), partial(self._tcp_check, port, host=target, timeout=cfg.tcp_timeout))
            for i, (target, port) in enumerate(pairs)
        ]
        results = run_all(tasks, cfg.max_parallel)

        successes = {port: 0 for port in ports}
        for r in results:
            target, port = pairs[int(r.name)]
            if r.ok:
                succeeded, description = r.value
            else:
                succeeded, description = False, "check failed: %s" % r.error
            if succeeded:
                successes[port] += 1
            context.add_peer_result(PeerTestResult(target, port, bool(succeeded), description))

        outcome = ProbeOutcome()
        for port in ports:
            rate = successes[port] / len(targets) * 100
            verdict = classify_port_rate(rate, cfg.port_fail_below)
            result = "%d/%d targets reachable (%.0f%%)" % (successes[port], len(targets), rate)
            self.log.info("Port %d: %s -> %s", port, result, verdict.value)
            outcome.summary_rows.append(make_summary_row(
                "Peer Port %d" % port, result, verdict,
                "Peers can connect" if verdict is Status.PASS else "Peer transfers may fail",
            ))
            outcome.findings.append(make_finding(
                self.category, "Port %d success rate %.0f%%" % (port, rate), _PORT_SEVERITY[verdict],
            ))
            if verdict is Status.FAIL:
                outcome.recommendations.append(make_recommendation(
                    "Peering",
                    "Port %d is unreachable on most targets. Allow inbound and outbound "
                    "traffic on port %d in the host and network firewalls." % (port, port),
                    RecommendationSeverity.IMPORTANT,
                    PORTS_URL,
                ))
        return outcome
