"""
System utilities for the Delivery Optimization diagnostics.

Provides OS detection, command execution (plain and PowerShell), TCP and
HTTP reachability primitives, and a supervised subprocess runner that
kills the whole process tree when its deadline passes.

Security Note: commands are executed without a shell; host arguments
are validated before they reach any command line.
"""

import ipaddress
import logging
import os
import platform
import re
import shlex
import socket
import subprocess
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple, Union

import httpx
import psutil

log = logging.getLogger("system")

HOSTNAME_PATTERN = re.compile(r'^[a-zA-Z0-9.-]+$')

_NO_WINDOW = getattr(subprocess, "CREATE_NO_WINDOW", 0)

# run_command return code when the deadline passed; other failures use -1
RC_TIMEOUT = -2

# How long output pipes are drained after a timed-out tree was killed
KILL_GRACE = 2.0


def _validate_host(host: str) -> bool:
    """Validate host address (IP or hostname)."""
    if host in ('localhost', '127.0.0.1', '::1'):
        return True
    try:
        ipaddress.ip_address(host)
        return True
    except ValueError:
        pass
    return bool(HOSTNAME_PATTERN.match(host)) and len(host) < 256


def is_windows() -> bool:
    return platform.system() == "Windows"


def check_admin() -> bool:
    """
    Check if running with administrator/root privileges.

    Returns:
        True if elevated, False otherwise
    """
    if is_windows():
        try:
            import ctypes
            return ctypes.windll.shell32.IsUserAnAdmin() != 0
        except (AttributeError, OSError):
            return False
    return os.geteuid() == 0


def get_local_ipv4_addresses() -> List[str]:
    """Return non-loopback IPv4 addresses bound to local interfaces."""
    addresses = []
    for _name, addrs in psutil.net_if_addrs().items():
        for addr in addrs:
            if addr.family == socket.AF_INET and not addr.address.startswith("127."):
                addresses.append(addr.address)
    return addresses


def get_system_info() -> Dict[str, Any]:
    """
    Gather host facts for the report.

    Returns:
        Dictionary containing OS, architecture, hostname and elevation info
    """
    return {
        "os_name": platform.system(),
        "os_version": platform.version(),
        "os_release": platform.release(),
        "architecture": platform.machine(),
        "hostname": platform.node(),
        "python_version": platform.python_version(),
        "is_admin": check_admin(),
        "ipv4_addresses": get_local_ipv4_addresses(),
    }


def run_command(
    command: Union[str, List[str]],
    timeout: int = 30,
    suppress_errors: bool = False
) -> Tuple[int, str, str]:
    """
    Execute a system command with timeout and error handling.

    Never raises: failures are reported through the return code, which
    is RC_TIMEOUT when the deadline passed and -1 for anything else.

    Args:
        command: Command as list of strings (preferred) or string
        timeout: Timeout in seconds
        suppress_errors: Don't log errors

    Returns:
        Tuple of (return_code, stdout, stderr)
    """
    try:
        if isinstance(command, str):
            try:
                command = shlex.split(command)
            except ValueError:
                if not suppress_errors:
                    log.warning("Invalid command format")
                return -1, "", "Invalid command format"

        result = subprocess.run(
            command,
            capture_output=True,
            text=True,
            timeout=timeout,
            creationflags=_NO_WINDOW,
        )
        return result.returncode, result.stdout or "", result.stderr or ""
    except subprocess.TimeoutExpired:
        if not suppress_errors:
            log.warning("Command timed out after %ss", timeout)
        return RC_TIMEOUT, "", f"Timeout after {timeout}s"
    except FileNotFoundError:
        if not suppress_errors:
            log.warning("Command not found: %s", command[0] if command else command)
        return -1, "", "Command not found"
    except OSError as e:
        if not suppress_errors:
            log.error("Command failed: %s", e)
        return -1, "", str(e)


def run_powershell(script: str, timeout: int = 60, suppress_errors: bool = False) -> Tuple[int, str, str]:
    """Run a PowerShell snippet without profile and return (rc, stdout, stderr)."""
    return run_command(
        ["powershell", "-NoProfile", "-NonInteractive", "-Command", script],
        timeout=timeout,
        suppress_errors=suppress_errors,
    )


def get_default_gateway() -> Optional[str]:
    """
    Discover the IPv4 default gateway.

    Returns:
        Gateway address, or None when no default route is found
    """
    if is_windows():
        rc, stdout, _ = run_powershell(
            "Get-NetRoute -DestinationPrefix '0.0.0.0/0' -ErrorAction SilentlyContinue | "
            "Sort-Object RouteMetric | Select-Object -First 1 -ExpandProperty NextHop",
            timeout=15,
            suppress_errors=True,
        )
        candidate = stdout.strip()
    else:
        rc, stdout, _ = run_command(["ip", "route", "show", "default"], suppress_errors=True)
        parts = stdout.split()
        candidate = parts[parts.index("via") + 1] if "via" in parts else ""

    if rc != 0 or not candidate:
        return None
    try:
        ipaddress.IPv4Address(candidate)
    except ValueError:
        log.debug("Ignoring non-IPv4 gateway %r", candidate)
        return None
    if candidate == "0.0.0.0":
        return None
    return candidate


# ── Reachability primitives ─────────────────────────────────
def check_tcp_port(port, host="127.0.0.1", timeout=3):
    """Check if a TCP port is accepting connections.

    Returns (succeeded: bool, detail: str).
    """
    if not _validate_host(host):
        return False, "invalid host: %r" % host
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            sock.settimeout(timeout)
            result = sock.connect_ex((host, port))
            if result == 0:
                return True, "TCP %s:%d connected" % (host, port)
            return False, "TCP %s:%d refused or filtered (%d)" % (host, port, result)
    except socket.timeout:
        return False, "TCP %s:%d timed out" % (host, port)
    except OSError as e:
        return False, "TCP %s:%d check failed: %s" % (host, port, e)


@dataclass
class HttpCheck:
    """Outcome of a single HEAD request."""
    url: str
    status_code: Optional[int] = None
    error: Optional[str] = None
    elapsed_ms: float = 0.0
    timed_out: bool = False


def check_http_endpoint(url: str, timeout: float = 10.0) -> HttpCheck:
    """Send a HEAD request and report the status code or the error.

    Never raises for transport problems; they are returned in ``error``.
    """
    start = time.time()
    try:
        response = httpx.head(url, timeout=timeout, follow_redirects=True)
        return HttpCheck(
            url=url,
            status_code=response.status_code,
            elapsed_ms=(time.time() - start) * 1000,
        )
    except httpx.TimeoutException:
        return HttpCheck(url=url, error="timeout after %.0fs" % timeout,
                         elapsed_ms=(time.time() - start) * 1000, timed_out=True)
    except httpx.HTTPError as e:
        return HttpCheck(url=url, error=str(e) or type(e).__name__,
                         elapsed_ms=(time.time() - start) * 1000)


# ── Supervised subprocess ────────────────────────────────────
@dataclass
class ProcessOutcome:
    """Result of a supervised child process."""
    returncode: int
    stdout: str = ""
    stderr: str = ""
    timed_out: bool = False


def kill_process_tree(pid: int, timeout: float = 5.0) -> int:
    """Kill *pid* and all of its descendants.

    Returns:
        Number of processes still alive after *timeout*.
    """
    try:
        parent = psutil.Process(pid)
    except psutil.NoSuchProcess:
        return 0
    procs = parent.children(recursive=True) + [parent]
    for proc in procs:
        try:
            proc.kill()
        except psutil.NoSuchProcess:
            continue
    _gone, alive = psutil.wait_procs(procs, timeout=timeout)
    for proc in alive:
        log.warning("Process %d survived kill", proc.pid)
    return len(alive)


def run_supervised(args: List[str], timeout: float, grace: float = KILL_GRACE) -> ProcessOutcome:
    """Run *args* with a hard deadline.

    On timeout the child and every process it spawned are killed, and
    whatever output had been produced is returned with ``timed_out``.
    A detached descendant that survives the kill and still holds the
    output pipes gets *grace* seconds; then the pipes are closed on it.
    Raises FileNotFoundError / OSError when the program cannot start.
    """
    proc = subprocess.Popen(
        args,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        stdin=subprocess.DEVNULL,
        text=True,
        creationflags=_NO_WINDOW,
    )
    try:
        stdout, stderr = proc.communicate(timeout=timeout)
        return ProcessOutcome(proc.returncode, stdout or "", stderr or "")
    except subprocess.TimeoutExpired:
        log.warning("Process %d exceeded %ss deadline, killing tree", proc.pid, timeout)
        kill_process_tree(proc.pid)
        try:
            stdout, stderr = proc.communicate(timeout=grace)
        except subprocess.TimeoutExpired as exc:
            log.warning("Output pipes of process %d still held after kill, abandoning them", proc.pid)
            stdout, stderr = _decode(exc.stdout), _decode(exc.stderr)
            for pipe in (proc.stdout, proc.stderr):
                if pipe is not None:
                    pipe.close()
            proc.poll()
        return ProcessOutcome(-1, stdout or "", stderr or "", timed_out=True)


def _decode(data: Union[bytes, str, None]) -> str:
    # Partial output on TimeoutExpired is raw bytes even for text-mode pipes
    if isinstance(data, bytes):
        return data.decode(errors="replace")
    return data or ""