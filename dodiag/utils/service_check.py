"""
Delivery Optimization data sources.

Thin wrappers over PowerShell cmdlets, the registry and the external
troubleshooter script.  Each returns a plain record or raises one of the
collaborator errors; none of them decide verdicts.
"""
import json
import logging
import os
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from dodiag.diagnostics.errors import CollaboratorTimeout, CollaboratorUnavailable, PartialData
from dodiag.diagnostics.models import ConnectionRecord
from .common import BASE_DIR, DO_POLICY_KEYS
from .system import RC_TIMEOUT, ProcessOutcome, run_powershell, run_supervised

log = logging.getLogger("service_check")

TROUBLESHOOTER_SCRIPT = "DeliveryOptimizationTroubleshooter.ps1"

DOWNLOAD_MODE_NAMES = {
    "httponly": 0,
    "cdnonly": 0,
    "lan": 1,
    "group": 2,
    "internet": 3,
    "simple": 99,
    "bypass": 100,
}

_STATUS_SCRIPT = r"""
$ErrorActionPreference = 'Stop'
$svc  = Get-Service -Name DoSvc
$perf = Get-DeliveryOptimizationPerfSnap
$cfg  = Get-DOConfig
$maxBytes = 0
if ($perf.TotalDiskSizeBytes -and $cfg.MaxCacheSize) {
    $maxBytes = [int64]($perf.TotalDiskSizeBytes * $cfg.MaxCacheSize / 100)
}
[pscustomobject]@{
    ServiceState   = "$($svc.Status)"
    DownloadMode   = "$($perf.DownloadMode)"
    NumberOfPeers  = $perf.NumberOfPeers
    CacheSizeBytes = $perf.CacheSizeBytes
    MaxCacheBytes  = $maxBytes
} | ConvertTo-Json -Compress
"""

_HISTORY_SCRIPT = r"""
$ErrorActionPreference = 'Stop'
Get-DeliveryOptimizationLog |
    Where-Object { $_.Message -match 'peer|connect|download' } |
    Select-Object -Last {limit} TimeCreated, Message |
    ForEach-Object { [pscustomobject]@{ Time = $_.TimeCreated.ToString('o'); Message = $_.Message } } |
    ConvertTo-Json -Compress
"""


@dataclass
class ServiceStatus:
    """Snapshot of the DO service as reported by the cmdlets."""
    mode: int
    peers: int
    max_cache: int
    current_cache: int
    service_state: str = ""


def _parse_json(stdout: str, what: str) -> Any:
    text = stdout.strip()
    if not text:
        return None
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise CollaboratorUnavailable("%s returned unparseable output: %s" % (what, e))


def parse_download_mode(value) -> int:
    """Map a cmdlet download-mode value (number or enum name) to its code.

    Unrecognised values map to -1.
    """
    if isinstance(value, bool):
        return -1
    if isinstance(value, int):
        return value
    text = str(value).strip()
    if re.fullmatch(r"-?\d+", text):
        return int(text)
    return DOWNLOAD_MODE_NAMES.get(text.lower(), -1)


def _as_int(value, default=0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def service_status_from_record(record: Dict[str, Any]) -> ServiceStatus:
    """Build a ServiceStatus; raises PartialData when the mode is missing."""
    if not isinstance(record, dict):
        raise PartialData("status record is not an object", missing=("DownloadMode",))
    missing = [k for k in ("DownloadMode",) if record.get(k) in (None, "")]
    if missing:
        raise PartialData("status record lacks %s" % ", ".join(missing), missing=missing)
    return ServiceStatus(
        mode=parse_download_mode(record["DownloadMode"]),
        peers=_as_int(record.get("NumberOfPeers")),
        max_cache=_as_int(record.get("MaxCacheBytes")),
        current_cache=_as_int(record.get("CacheSizeBytes")),
        service_state=str(record.get("ServiceState") or ""),
    )


def query_service_status(timeout: int = 60) -> ServiceStatus:
    """Query DoSvc state, download mode, peer count and cache usage."""
    rc, stdout, stderr = run_powershell(_STATUS_SCRIPT, timeout=timeout)
    if rc == RC_TIMEOUT:
        raise CollaboratorTimeout("Delivery Optimization status query timed out after %ss" % timeout)
    if rc != 0:
        raise CollaboratorUnavailable(
            "Delivery Optimization status query failed: %s" % (stderr.strip() or "rc=%d" % rc)
        )
    record = _parse_json(stdout, "Get-DeliveryOptimizationPerfSnap")
    return service_status_from_record(record)


def read_policy_value(name: str) -> Optional[str]:
    """Read a DO policy value from the GPO or MDM policy key.

    Returns:
        The value as a string, or None when it is not set anywhere or
        the key cannot be read.
    """
    try:
        import winreg
    except ImportError:
        raise CollaboratorUnavailable("registry access requires Windows")

    for subkey in DO_POLICY_KEYS:
        try:
            with winreg.OpenKey(winreg.HKEY_LOCAL_MACHINE, subkey) as key:
                value, _kind = winreg.QueryValueEx(key, name)
                return str(value)
        except FileNotFoundError:
            continue
        except PermissionError:
            log.warning("Access denied reading %s\\%s", subkey, name)
            return None
    return None


# ── Connection history ──────────────────────────────────────
_KV_RE = re.compile(r"\b(?P<key>[A-Za-z]+)\s*[=:]\s*(?P<val>[^\s,;]+)")
_IPV4_RE = re.compile(r"\b(?:\d{1,3}\.){3}\d{1,3}\b")
_URL_HOST_RE = re.compile(r"https?://(?P<host>[A-Za-z0-9.-]+)")
_FAIL_RE = re.compile(r"fail|error|refused|timed? ?out|0x8", re.IGNORECASE)

_SOURCE_KEYS = {"source", "src", "peer", "ip", "host", "from"}
_DEST_KEYS = {"destination", "dest", "dst", "to", "url"}
_RESULT_KEYS = {"result", "status", "hr"}
_BYTES_KEYS = {"bytes", "bytesdownloaded", "size"}


def parse_connection_message(time: str, message: str) -> Optional[ConnectionRecord]:
    """Extract one connection record from a DO log line.

    Recognises ``key=value`` / ``key: value`` pairs and falls back to the
    first IPv4 address or URL host for the source.  Lines that name no
    source are not connection records and yield None.
    """
    if not message:
        return None
    fields: Dict[str, str] = {}
    for m in _KV_RE.finditer(message):
        key = m.group("key").lower()
        if key in _SOURCE_KEYS:
            fields.setdefault("source", m.group("val"))
        elif key in _DEST_KEYS:
            fields.setdefault("destination", m.group("val"))
        elif key in _RESULT_KEYS:
            fields.setdefault("result", m.group("val"))
        elif key in _BYTES_KEYS:
            fields.setdefault("bytes", m.group("val"))

    source = fields.get("source")
    if not source:
        ip = _IPV4_RE.search(message)
        url = _URL_HOST_RE.search(message)
        if ip:
            source = ip.group(0)
        elif url:
            source = url.group("host")
    if not source:
        return None
    url = _URL_HOST_RE.match(source)
    if url:
        source = url.group("host")

    result = fields.get("result")
    if result is None:
        result = "Failed" if _FAIL_RE.search(message) else "Success"

    return ConnectionRecord(
        time=time or "",
        source=source,
        destination=fields.get("destination", ""),
        result=result,
        bytes=_as_int(fields.get("bytes")),
    )


def query_connection_history(limit: int = 500, timeout: int = 120) -> List[ConnectionRecord]:
    """Pull recent peer/connection lines from the DO log and parse them."""
    rc, stdout, stderr = run_powershell(
        _HISTORY_SCRIPT.replace("{limit}", str(int(limit))), timeout=timeout,
    )
    if rc == RC_TIMEOUT:
        raise CollaboratorTimeout("Get-DeliveryOptimizationLog timed out after %ss" % timeout)
    if rc != 0:
        raise CollaboratorUnavailable(
            "Get-DeliveryOptimizationLog failed: %s" % (stderr.strip() or "rc=%d" % rc)
        )
    data = _parse_json(stdout, "Get-DeliveryOptimizationLog")
    if data is None:
        return []
    if isinstance(data, dict):
        data = [data]

    records = []
    for entry in data:
        if not isinstance(entry, dict):
            continue
        record = parse_connection_message(str(entry.get("Time") or ""), str(entry.get("Message") or ""))
        if record is not None:
            records.append(record)
    log.debug("Parsed %d connection record(s) from %d log line(s)", len(records), len(data))
    return records


# ── External troubleshooter ─────────────────────────────────
def find_troubleshooter(configured: Optional[str] = None) -> Optional[str]:
    """Locate the troubleshooter script: configured path first, then
    the working directory and the project's scripts folder."""
    candidates = []
    if configured:
        candidates.append(configured)
    candidates.append(os.path.join(os.getcwd(), TROUBLESHOOTER_SCRIPT))
    candidates.append(os.path.join(BASE_DIR, "scripts", TROUBLESHOOTER_SCRIPT))
    for path in candidates:
        if os.path.isfile(path):
            return path
    return None


def run_troubleshooter(path: Optional[str], timeout: float = 300) -> ProcessOutcome:
    """Run the troubleshooter script under a hard deadline."""
    if not path or not os.path.isfile(path):
        raise CollaboratorUnavailable("troubleshooter script not found: %s" % (path or TROUBLESHOOTER_SCRIPT))
    args = ["powershell", "-NoProfile", "-ExecutionPolicy", "Bypass", "-File", path]
    try:
        return run_supervised(args, timeout=timeout)
    except OSError as e:
        raise CollaboratorUnavailable("cannot start troubleshooter: %s" % e)
