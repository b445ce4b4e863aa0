"""
Fixed lookup table of Delivery Optimization error codes.

Rendered as its own sheet in the report and used to annotate error
codes found in diagnostics-archive text logs.
"""
import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

DO_DOCS_URL = "https://learn.microsoft.com/windows/deployment/do/delivery-optimization-troubleshoot"


@dataclass(frozen=True)
class ErrorCodeEntry:
    code: str
    description: str
    recommendation: str

    def as_row(self):
        return {
            "ErrorCode": self.code,
            "Description": self.description,
            "Recommendation": self.recommendation,
        }


ERROR_CODES: List[ErrorCodeEntry] = [
    ErrorCodeEntry(
        "0x80D01001",
        "Delivery Optimization was unable to provide the service.",
        "Verify the DoSvc service is running and not disabled by policy.",
    ),
    ErrorCodeEntry(
        "0x80D02002",
        "Download of a file saw no progress within the defined period.",
        "Check network connectivity to the CDN and the DO cloud endpoints.",
    ),
    ErrorCodeEntry(
        "0x80D02003",
        "The download job was not found.",
        "Retry the update; the job may have expired or been cancelled.",
    ),
    ErrorCodeEntry(
        "0x80D02004",
        "No downloads currently exist.",
        "Informational; start a download and collect diagnostics again.",
    ),
    ErrorCodeEntry(
        "0x80D0200B",
        "The download job has no source URI.",
        "Verify the content source is reachable and the update is still offered.",
    ),
    ErrorCodeEntry(
        "0x80D02011",
        "Remote file is unavailable or the request was rejected by the server.",
        "Check proxy and firewall rules for the DO content endpoints.",
    ),
    ErrorCodeEntry(
        "0x80D03001",
        "The download is blocked because no network is available.",
        "Confirm the device has working network connectivity.",
    ),
    ErrorCodeEntry(
        "0x80D03002",
        "The download is blocked by the cost (metered network) policy.",
        "Allow downloads on metered connections or switch to an unmetered network.",
    ),
    ErrorCodeEntry(
        "0x80D03803",
        "The HTTP request was blocked or could not be completed.",
        "Inspect proxy authentication and TLS interception for DO traffic.",
    ),
    ErrorCodeEntry(
        "0x80D05001",
        "HTTP server returned a response with data size not equal to what was requested.",
        "Check for proxies or caches that modify byte-range responses.",
    ),
    ErrorCodeEntry(
        "0x80D05010",
        "The byte range requested by the client is not supported by the server.",
        "Ensure proxies pass through HTTP range requests.",
    ),
    ErrorCodeEntry(
        "0x80D05011",
        "The peer-to-peer connection to the remote peer was refused.",
        "Open inbound TCP 7680 and UDP 3544 in the host firewall.",
    ),
]


def _normalize(code: str) -> str:
    code = code.strip()
    return "0x" + code[2:].upper()


_BY_CODE: Dict[str, ErrorCodeEntry] = {_normalize(e.code): e for e in ERROR_CODES}

_CODE_RE = re.compile(r"0x80D0[0-9A-F]{4}", re.IGNORECASE)


def lookup(code: str) -> Optional[ErrorCodeEntry]:
    """Return the table entry for *code* (case-insensitive), if any."""
    if not code:
        return None
    return _BY_CODE.get(_normalize(code))


def find_error_codes(lines: Iterable[str]) -> List[str]:
    """Known DO error codes mentioned in *lines*, in first-seen order."""
    seen: List[str] = []
    for line in lines:
        for match in _CODE_RE.findall(line):
            code = _normalize(match)
            if code in _BY_CODE and code not in seen:
                seen.append(code)
    return seen


def error_code_rows():
    return [entry.as_row() for entry in ERROR_CODES]
