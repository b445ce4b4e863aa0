"""
Bounded fan-out for I/O-bound probe batches.

Every probe that needs to test many endpoints, ports or archive members
goes through run_all() instead of managing its own threads.  A failing
task becomes an error entry; it never aborts the batch.

Usage:
    from dodiag.utils.threads import run_all

    results = run_all([
        ("geo", lambda: check_http_endpoint(GEO_URL)),
        ("kv", lambda: check_http_endpoint(KV_URL)),
    ], max_parallel=4)

    for r in results:          # completion order, not input order
        if r.ok:
            use(r.value)
"""
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Sequence, Tuple

log = logging.getLogger("threads")

DEFAULT_MAX_PARALLEL = 4
DEFAULT_SAMPLE_LIMIT = 10 * 1024 * 1024
TOO_LARGE_TO_SAMPLE = "too large to sample"

Task = Tuple[str, Callable[[], Any]]


@dataclass
class TaskResult:
    """Outcome of one task in a batch."""
    name: str
    value: Any = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _invoke(name: str, fn: Callable[[], Any]) -> TaskResult:
    try:
        return TaskResult(name=name, value=fn())
    except Exception as exc:
        log.debug("Task %s failed: %s", name, exc)
        return TaskResult(name=name, error=exc)


def run_all(tasks: Sequence[Task], max_parallel: int = DEFAULT_MAX_PARALLEL) -> List[TaskResult]:
    """Run *tasks* concurrently with at most *max_parallel* workers.

    Args:
        tasks:        (name, zero-argument callable) pairs.
        max_parallel: Worker limit; values below 1 are treated as 1.

    Returns:
        One TaskResult per task, in completion order.  The pool is
        joined before returning.
    """
    if not tasks:
        return []

    workers = max(1, min(max_parallel, len(tasks)))
    results: List[TaskResult] = []
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="dodiag-worker") as pool:
        futures = [pool.submit(_invoke, name, fn) for name, fn in tasks]
        for future in as_completed(futures):
            results.append(future.result())

    failed = sum(1 for r in results if not r.ok)
    if failed:
        log.info("Batch finished: %d/%d task(s) failed", failed, len(results))
    return results


def guarded_sample(size: int, reader: Callable[[], str],
                   limit: int = DEFAULT_SAMPLE_LIMIT) -> str:
    """Return ``reader()`` unless *size* exceeds *limit*.

    Oversized payloads are never read; the fixed marker
    TOO_LARGE_TO_SAMPLE is returned instead.
    """
    if size > limit:
        return TOO_LARGE_TO_SAMPLE
    return reader()
