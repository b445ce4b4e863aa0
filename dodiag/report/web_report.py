"""
Local HTML viewer for a finished report (``dodiag run --show``).

Serves the in-memory buffers on the loopback interface; nothing is
re-collected on page load.
"""
import logging
import os
import threading
import webbrowser
from collections import OrderedDict
from typing import Any, Dict, List

from flask import Flask, abort, jsonify, render_template

from version import __version__
from dodiag.utils.common import validate_hostname, validate_port

log = logging.getLogger("web_report")

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8765

STATUS_CLASSES = {
    "PASS": "pass",
    "WARN": "warn",
    "FAIL": "fail",
    "ERROR": "fail",
    "CRITICAL": "critical",
    "INFO": "info",
}


def create_app(buffers: "OrderedDict[str, List[Dict[str, Any]]]", report_dir: str = "") -> Flask:
    app = Flask(
        __name__,
        template_folder=os.path.join(os.path.dirname(__file__), 'templates'),
    )
    executive = {row["Metric"]: row["Value"] for row in buffers.get("ExecutiveSummary", [])}

    @app.route('/')
    def home():
        return render_template(
            'report.html',
            version=__version__,
            report_dir=report_dir,
            executive=executive,
            buffers=buffers,
            status_classes=STATUS_CLASSES,
        )

    @app.route('/api/sheets')
    def sheets():
        return jsonify({name: len(rows) for name, rows in buffers.items()})

    @app.route('/api/sheets/<name>')
    def sheet(name):
        if name not in buffers:
            abort(404)
        return jsonify(buffers[name])

    return app


def resolve_bind(host, port):
    """Validate host/port, falling back to the loopback defaults."""
    ok, err = validate_hostname(host)
    if not ok:
        log.error("Invalid viewer host: %s. Falling back to %s", err, DEFAULT_HOST)
        host = DEFAULT_HOST
    ok, err = validate_port(port)
    if not ok:
        log.error("Invalid viewer port: %s. Falling back to %s", err, DEFAULT_PORT)
        port = DEFAULT_PORT
    if host == '0.0.0.0':
        log.warning("Report viewer binding to all interfaces (0.0.0.0). "
                    "No authentication is enabled. Restrict to 127.0.0.1.")
    return host, int(port)


def serve_report(buffers, report_dir="", host=DEFAULT_HOST, port=DEFAULT_PORT, open_browser=True):
    """Serve the report until interrupted."""
    host, port = resolve_bind(host, port)
    app = create_app(buffers, report_dir)
    url = "http://%s:%d/" % (host, port)
    if open_browser:
        threading.Timer(1.0, webbrowser.open, args=(url,)).start()
    log.info("Serving report viewer on %s (Ctrl+C to stop)", url)
    app.run(host=host, port=port)
