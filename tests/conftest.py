import json
import os
import sys
import zipfile

import pytest

# Ensure project root is on sys.path so dodiag.* and launcher import
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from dodiag.diagnostics.context import DiagnosticContext  # noqa: E402
from dodiag.utils.config import DiagConfig  # noqa: E402
from dodiag.utils.system import HttpCheck, ProcessOutcome  # noqa: E402

# Detect CI environment
CI = os.environ.get('CI', 'false').lower() == 'true'
WINDOWS = os.name == 'nt'


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "windows: mark test as requiring a Windows host"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "network: mark test as requiring network access"
    )


def pytest_collection_modifyitems(config, items):
    """Auto-skip Windows-only tests elsewhere and network tests in CI."""
    skip_windows = pytest.mark.skip(reason="Requires Windows")
    skip_network = pytest.mark.skip(reason="Network tests skipped in CI")

    for item in items:
        if "windows" in item.keywords and not WINDOWS:
            item.add_marker(skip_windows)
        if "network" in item.keywords and CI:
            item.add_marker(skip_network)


@pytest.fixture
def diag_config():
    return DiagConfig()


@pytest.fixture
def context(diag_config):
    """Empty run context with default settings."""
    return DiagnosticContext(config=diag_config)


@pytest.fixture
def tmp_config(tmp_path):
    """Create a temporary config.json and return its path."""
    config = {
        "http_timeout": 5,
        "max_parallel": 2,
        "peer_ports": [7680],
        "fallback_peer_address": "10.0.0.1",
        "viewer_port": 9000,
    }
    config_file = tmp_path / "config.json"
    config_file.write_text(json.dumps(config))
    return str(config_file)


@pytest.fixture
def bad_config(tmp_path):
    """Create an invalid JSON config file and return its path."""
    config_file = tmp_path / "config.json"
    config_file.write_text("{invalid json content")
    return str(config_file)


@pytest.fixture
def http_ok():
    """Fake HEAD check that always answers 200."""
    def check(url, timeout=10.0):
        return HttpCheck(url=url, status_code=200, elapsed_ms=12.0)
    return check


@pytest.fixture
def make_outcome():
    """Factory for troubleshooter ProcessOutcome values."""
    def factory(stdout="", returncode=0, timed_out=False):
        return ProcessOutcome(returncode=returncode, stdout=stdout, timed_out=timed_out)
    return factory


@pytest.fixture
def diag_zip(tmp_path):
    """A small diagnostics archive with one member per category."""
    path = tmp_path / "diagnostics.zip"
    with zipfile.ZipFile(path, "w") as zf:
        zf.writestr("logs/dosvc.log", "2024-01-01 start\nDownload failed hr=0x80D02002\nok\n")
        zf.writestr("logs/trace.etl", b"\x00\x01binary")
        zf.writestr("config/policy.xml", "<policy DOGroupId='x'/>")
        zf.writestr("nested/inner.zip", b"PK")
        zf.writestr("readme", "plain")
    return str(path)
