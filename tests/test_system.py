"""Tests for dodiag/utils/system.py — commands, reachability and supervision."""
import socket
import subprocess
import sys
import time
from unittest.mock import MagicMock, patch

import httpx
import psutil
import pytest

from dodiag.utils import system
from dodiag.utils.system import (
    check_http_endpoint,
    check_tcp_port,
    get_default_gateway,
    get_system_info,
    kill_process_tree,
    run_command,
    run_supervised,
)


class TestRunCommand:
    def test_success(self):
        completed = subprocess.CompletedProcess(["x"], 0, stdout="out", stderr="")
        with patch("subprocess.run", return_value=completed):
            assert run_command(["x"]) == (0, "out", "")

    def test_string_command_split(self):
        completed = subprocess.CompletedProcess(["ip"], 0, stdout="", stderr="")
        with patch("subprocess.run", return_value=completed) as run:
            run_command("ip route show")
        assert run.call_args[0][0] == ["ip", "route", "show"]

    def test_timeout(self):
        with patch("subprocess.run", side_effect=subprocess.TimeoutExpired("x", 5)):
            rc, _, err = run_command(["x"], timeout=5)
        assert rc == system.RC_TIMEOUT
        assert "Timeout" in err

    def test_not_found(self):
        with patch("subprocess.run", side_effect=FileNotFoundError()):
            assert run_command(["nope"], suppress_errors=True) == (-1, "", "Command not found")

    def test_invalid_string(self):
        rc, _, err = run_command('unterminated "quote', suppress_errors=True)
        assert rc == -1


class TestDefaultGateway:
    def test_linux_route(self):
        with patch.object(system, "is_windows", return_value=False), \
             patch.object(system, "run_command",
                          return_value=(0, "default via 10.0.0.1 dev eth0 proto dhcp", "")):
            assert get_default_gateway() == "10.0.0.1"

    def test_windows_route(self):
        with patch.object(system, "is_windows", return_value=True), \
             patch.object(system, "run_powershell", return_value=(0, "192.168.0.1\r\n", "")):
            assert get_default_gateway() == "192.168.0.1"

    @pytest.mark.parametrize("output", ["", "0.0.0.0", "fe80::1", "garbage"])
    def test_unusable_answers(self, output):
        with patch.object(system, "is_windows", return_value=True), \
             patch.object(system, "run_powershell", return_value=(0, output, "")):
            assert get_default_gateway() is None

    def test_command_failure(self):
        with patch.object(system, "is_windows", return_value=False), \
             patch.object(system, "run_command", return_value=(-1, "", "Command not found")):
            assert get_default_gateway() is None


class TestCheckTcpPort:
    def test_open_port(self):
        server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        server.bind(("127.0.0.1", 0))
        server.listen(1)
        port = server.getsockname()[1]
        try:
            ok, detail = check_tcp_port(port, host="127.0.0.1", timeout=1)
        finally:
            server.close()
        assert ok is True
        assert "connected" in detail

    def test_invalid_host(self):
        ok, detail = check_tcp_port(7680, host="bad host;rm")
        assert ok is False
        assert "invalid host" in detail

    def test_connect_refused(self):
        sock = MagicMock()
        sock.__enter__.return_value = sock
        sock.connect_ex.return_value = 111
        with patch("socket.socket", return_value=sock):
            ok, detail = check_tcp_port(7680, host="192.168.1.1")
        assert ok is False
        assert "refused" in detail


class TestCheckHttpEndpoint:
    def test_status_code(self):
        with patch("httpx.head", return_value=MagicMock(status_code=404)):
            check = check_http_endpoint("https://geo.example.test")
        assert check.status_code == 404
        assert check.error is None

    def test_timeout(self):
        with patch("httpx.head", side_effect=httpx.ConnectTimeout("slow")):
            check = check_http_endpoint("https://geo.example.test", timeout=2)
        assert check.timed_out is True
        assert check.status_code is None
        assert "timeout" in check.error

    def test_transport_error(self):
        with patch("httpx.head", side_effect=httpx.ConnectError("refused")):
            check = check_http_endpoint("https://geo.example.test")
        assert check.error == "refused"
        assert check.timed_out is False


class TestSystemInfo:
    def test_keys(self):
        info = get_system_info()
        for key in ("os_name", "os_version", "hostname", "is_admin", "ipv4_addresses"):
            assert key in info
        assert all(not a.startswith("127.") for a in info["ipv4_addresses"])


class TestSupervisedProcess:
    def test_completes(self):
        outcome = run_supervised([sys.executable, "-c", "print('[PASS] ok')"], timeout=30)
        assert outcome.returncode == 0
        assert "[PASS] ok" in outcome.stdout
        assert outcome.timed_out is False

    @pytest.mark.slow
    def test_deadline_kills_child(self):
        script = "import time; print('[PASS] started', flush=True); time.sleep(30)"
        outcome = run_supervised([sys.executable, "-c", script], timeout=1)
        assert outcome.timed_out is True
        assert "[PASS] started" in outcome.stdout

    def test_missing_program_raises(self):
        with pytest.raises(OSError):
            run_supervised(["dodiag-no-such-program"], timeout=1)

    def test_kill_missing_pid(self):
        with patch("psutil.Process", side_effect=psutil.NoSuchProcess(999999)):
            assert kill_process_tree(999999) == 0

    def test_pipes_held_after_kill_are_abandoned(self):
        proc = MagicMock(pid=4242)
        proc.communicate.side_effect = [
            subprocess.TimeoutExpired(["ps1"], 1),
            subprocess.TimeoutExpired(["ps1"], 0.5, output=b"[WARN] partial\n", stderr=None),
        ]
        with patch("subprocess.Popen", return_value=proc), \
                patch.object(system, "kill_process_tree") as kill:
            outcome = run_supervised(["ps1"], timeout=1, grace=0.5)
        kill.assert_called_once_with(4242)
        assert proc.communicate.call_args_list[1].kwargs == {"timeout": 0.5}
        proc.stdout.close.assert_called_once()
        proc.stderr.close.assert_called_once()
        assert outcome.timed_out is True
        assert outcome.stdout == "[WARN] partial\n"
        assert outcome.stderr == ""

    @pytest.mark.slow
    @pytest.mark.skipif(sys.platform == "win32", reason="needs a POSIX shell to detach a grandchild")
    def test_detached_grandchild_does_not_block(self):
        started = time.monotonic()
        outcome = run_supervised(["sh", "-c", "echo started; (sleep 15 &) ; sleep 30"],
                                 timeout=1, grace=0.5)
        elapsed = time.monotonic() - started
        assert outcome.timed_out is True
        assert "started" in outcome.stdout
        assert elapsed < 8
