"""
Logging for the Delivery Optimization diagnostics.

launcher.py calls setup_logging() once.  Modules log through
logging.getLogger("<area>"); probe loggers are named "probe.<class>".

Three handlers are installed: the console (usually WARNING and up), a
rotating file under ~/.config/dodiag/logs that spans runs, and a
RunLogHandler holding only the current run so its lines can be saved
into the report directory.
"""
import collections
import json
import logging
import logging.handlers
import os
import sys
import time
import traceback
from typing import List, Optional

TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
RUN_LOG_NAME = "dodiag-run.log"

_configured = False
_run_handler = None


class JsonFormatter(logging.Formatter):
    """One JSON object per record; the worker thread is kept because
    endpoint, port and archive checks log from the coordinator's pool::

        {"ts":"2025-01-15T12:00:00Z","level":"INFO","logger":"probe.peerportprobe",
         "thread":"dodiag-worker_1","msg":"..."}
    """

    def format(self, record):
        entry = {
            "ts": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(record.created)),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "msg": record.getMessage(),
        }
        if record.exc_info and record.exc_info[0]:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class RunLogHandler(logging.Handler):
    """Formatted lines of the current run, newest *capacity* kept."""

    def __init__(self, capacity: int = 20000, level=logging.NOTSET):
        super().__init__(level)
        self._lines = collections.deque(maxlen=capacity)

    def emit(self, record):
        try:
            self._lines.append(self.format(record))
        except Exception:
            self.handleError(record)

    def lines(self) -> List[str]:
        self.acquire()
        try:
            return list(self._lines)
        finally:
            self.release()

    def save(self, directory: str) -> str:
        """Write the buffered lines to ``<directory>/dodiag-run.log``."""
        path = os.path.join(directory, RUN_LOG_NAME)
        with open(path, "w", encoding="utf-8") as f:
            for line in self.lines():
                f.write(line + "\n")
        return path


def setup_logging(level=logging.INFO, log_file=None, console_level=None,
                  structured=False):
    """Configure logging for the process.  Later calls are ignored.

    Args:
        level: Root level; the file and run-log handlers record at it.
        log_file: Rotating log file shared by all runs (optional).
        console_level: Console threshold, defaults to *level*.
        structured: JSON lines instead of the text format.
    """
    global _configured, _run_handler
    if _configured:
        return
    _configured = True

    formatter = JsonFormatter() if structured else logging.Formatter(TEXT_FORMAT, datefmt=DATE_FORMAT)

    root = logging.getLogger()
    root.setLevel(level)

    console = logging.StreamHandler()
    console.setLevel(console_level or level)
    console.setFormatter(formatter)
    root.addHandler(console)

    _run_handler = RunLogHandler(level=level)
    _run_handler.setFormatter(formatter)
    root.addHandler(_run_handler)

    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_file, maxBytes=1_000_000, backupCount=3, encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)


def run_log_handler() -> Optional[RunLogHandler]:
    """The current run's handler, or None before setup_logging()."""
    return _run_handler


def default_log_dir():
    """``~/.config/dodiag/logs`` under the real user's home, created on demand."""
    from dodiag.utils.common import get_real_user_home
    log_dir = os.path.join(get_real_user_home(), ".config", "dodiag", "logs")
    os.makedirs(log_dir, exist_ok=True)
    return log_dir


def default_log_path():
    return os.path.join(default_log_dir(), "dodiag.log")


def install_crash_handler():
    """Route unhandled exceptions to crash.log, then to the default hook."""
    crash_log = os.path.join(default_log_dir(), "crash.log")

    def handler(exc_type, exc_value, exc_tb):
        try:
            with open(crash_log, "a", encoding="utf-8") as f:
                f.write("\n--- dodiag crash %s ---\n" % time.strftime(DATE_FORMAT))
                traceback.print_exception(exc_type, exc_value, exc_tb, file=f)
        except OSError:
            pass
        sys.__excepthook__(exc_type, exc_value, exc_tb)

    sys.excepthook = handler
