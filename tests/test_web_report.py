"""Tests for dodiag/report/web_report.py — Flask report viewer."""
from collections import OrderedDict
from unittest.mock import patch

import pytest

from dodiag.report.web_report import (
    DEFAULT_HOST,
    DEFAULT_PORT,
    create_app,
    resolve_bind,
    serve_report,
)

BUFFERS = OrderedDict([
    ("Summary", [
        {"Test": "Download Mode", "Result": "Mode 99", "Status": "CRITICAL", "Impact": "No peering"},
        {"Test": "Peer Port 7680", "Result": "3/3", "Status": "PASS", "Impact": ""},
    ]),
    ("ExecutiveSummary", [
        {"Metric": "Overall Health", "Value": "Critical"},
        {"Metric": "Critical Issues", "Value": 1},
    ]),
    ("PeerTests", []),
])


@pytest.fixture
def flask_client():
    """Create a Flask test client for the report viewer."""
    app = create_app(BUFFERS, "C:/reports/run1")
    app.config['TESTING'] = True
    with app.test_client() as client:
        yield client


class TestRoutes:
    def test_home_renders(self, flask_client):
        resp = flask_client.get('/')
        assert resp.status_code == 200
        body = resp.get_data(as_text=True)
        assert "Overall health: Critical" in body
        assert "Download Mode" in body
        assert 'class="critical"' in body
        assert "C:/reports/run1" in body
        assert "No records." in body

    def test_sheet_counts(self, flask_client):
        resp = flask_client.get('/api/sheets')
        assert resp.get_json() == {"Summary": 2, "ExecutiveSummary": 2, "PeerTests": 0}

    def test_sheet_rows(self, flask_client):
        rows = flask_client.get('/api/sheets/Summary').get_json()
        assert rows[0]["Status"] == "CRITICAL"

    def test_unknown_sheet(self, flask_client):
        assert flask_client.get('/api/sheets/Nope').status_code == 404

    def test_html_escaped(self):
        buffers = OrderedDict([("Findings", [{"Message": "<script>alert(1)</script>"}])])
        app = create_app(buffers)
        body = app.test_client().get('/').get_data(as_text=True)
        assert "<script>alert(1)</script>" not in body


class TestResolveBind:
    def test_valid(self):
        assert resolve_bind("127.0.0.1", 9000) == ("127.0.0.1", 9000)

    def test_invalid_falls_back(self):
        assert resolve_bind("-evil", 0) == (DEFAULT_HOST, DEFAULT_PORT)


class TestServeReport:
    def test_runs_app_without_browser(self):
        with patch("flask.Flask.run") as run, patch("webbrowser.open") as browser:
            serve_report(BUFFERS, host="127.0.0.1", port=9001, open_browser=False)
        run.assert_called_once_with(host="127.0.0.1", port=9001)
        browser.assert_not_called()
