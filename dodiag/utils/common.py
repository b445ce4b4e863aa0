"""
Paths, Delivery Optimization constants and input validation shared by
the probes, the config layer and the report viewer.
"""
import ipaddress
import logging
import os
import re

log = logging.getLogger("common")


def get_real_user_home():
    """Home directory of the person running the tool.

    On Windows this is ``USERPROFILE``.  Elsewhere (development hosts)
    ``SUDO_USER`` is honoured so an elevated run still writes its logs
    and reports under the invoking user.
    """
    if os.name == "nt":
        profile = os.environ.get("USERPROFILE")
        if profile:
            return profile
    sudo_user = os.environ.get("SUDO_USER")
    if sudo_user:
        try:
            import pwd
            return pwd.getpwnam(sudo_user).pw_dir
        except (KeyError, ImportError):
            pass
    return os.path.expanduser("~")


# ── Canonical Paths ──────────────────────────────────────────
BASE_DIR = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

_HOME = get_real_user_home()
CONFIG_DIR = os.path.join(_HOME, ".config", "dodiag")
CONFIG_PATH = os.path.join(CONFIG_DIR, "config.json")
DEFAULT_OUTPUT_DIR = os.path.join(_HOME, "DODiagnostics")

# Delivery Optimization policy locations (GPO first, then MDM).
DO_POLICY_KEYS = (
    r"SOFTWARE\Policies\Microsoft\Windows\DeliveryOptimization",
    r"SOFTWARE\Microsoft\PolicyManager\current\device\DeliveryOptimization",
)

_LABEL_RE = re.compile(r"^(?!-)[A-Za-z0-9-]{1,63}(?<!-)$")

_PRIVATE_NETWORKS = (
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("172.16.0.0/12"),
    ipaddress.ip_network("192.168.0.0/16"),
)


def validate_hostname(host):
    """Check a bind host or peer address from the config or CLI.

    IP literals (v4 or v6) are accepted as-is; anything else must be a
    DNS name made of 1-63 character labels that neither start nor end
    with '-'.  A leading '-' is rejected explicitly because the value
    may end up on a command line.

    Returns:
        (ok: bool, error_message: str)
    """
    if not isinstance(host, str) or not host.strip():
        return False, "host must be a non-empty string"
    if host.startswith('-'):
        return False, "host must not start with '-'"
    try:
        ipaddress.ip_address(host)
        return True, ""
    except ValueError:
        pass
    name = host[:-1] if host.endswith('.') else host
    if len(name) > 253:
        return False, "host name exceeds 253 characters"
    bad = [label for label in name.split('.') if not _LABEL_RE.match(label)]
    if bad:
        return False, f"invalid host name {host!r} (bad label {bad[0]!r})"
    return True, ""


def validate_port(port):
    """TCP port check for peer ports and the viewer port.

    Returns:
        (ok: bool, error_message: str)
    """
    if isinstance(port, bool) or not isinstance(port, int):
        return False, f"port must be an integer, got {type(port).__name__}"
    if not 1 <= port <= 65535:
        return False, f"port {port} is outside 1-65535"
    return True, ""


def is_private_ipv4(address):
    """True for addresses in 10/8, 172.16/12 or 192.168/16.

    Anything that does not parse as an IPv4 address (hostnames, IPv6,
    empty strings) is not private.
    """
    if not address or not isinstance(address, str):
        return False
    try:
        ip = ipaddress.IPv4Address(address.strip())
    except ValueError:
        return False
    return any(ip in net for net in _PRIVATE_NETWORKS)
