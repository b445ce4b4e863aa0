"""Tests for dodiag.utils.threads – bounded fan-out and the size guard."""
import threading
import time
from unittest.mock import MagicMock

from dodiag.utils.threads import (
    DEFAULT_SAMPLE_LIMIT,
    TOO_LARGE_TO_SAMPLE,
    guarded_sample,
    run_all,
)


def _boom():
    raise RuntimeError("boom")


class TestRunAll:
    def test_empty(self):
        assert run_all([]) == []

    def test_one_failure_isolated(self):
        tasks = [("t%d" % i, (lambda i=i: i * 2)) for i in range(7)]
        tasks.append(("bad", _boom))
        results = run_all(tasks, max_parallel=4)

        assert len(results) == 8
        errors = [r for r in results if not r.ok]
        assert len(errors) == 1
        assert errors[0].name == "bad"
        assert isinstance(errors[0].error, RuntimeError)
        assert sorted(r.value for r in results if r.ok) == [0, 2, 4, 6, 8, 10, 12]

    def test_respects_parallel_limit(self):
        lock = threading.Lock()
        state = {"active": 0, "peak": 0}

        def work():
            with lock:
                state["active"] += 1
                state["peak"] = max(state["peak"], state["active"])
            time.sleep(0.02)
            with lock:
                state["active"] -= 1
            return True

        results = run_all([("w%d" % i, work) for i in range(10)], max_parallel=3)
        assert len(results) == 10
        assert state["peak"] <= 3

    def test_completion_order(self):
        def slow():
            time.sleep(0.2)
            return "slow"

        results = run_all([("slow", slow), ("fast", lambda: "fast")], max_parallel=2)
        assert [r.name for r in results] == ["fast", "slow"]

    def test_parallel_below_one_treated_as_one(self):
        results = run_all([("a", lambda: 1), ("b", lambda: 2)], max_parallel=0)
        assert {r.value for r in results} == {1, 2}


class TestGuardedSample:
    def test_oversized_never_reads(self):
        reader = MagicMock(return_value="data")
        assert guarded_sample(DEFAULT_SAMPLE_LIMIT + 1, reader) == TOO_LARGE_TO_SAMPLE
        reader.assert_not_called()

    def test_at_limit_reads(self):
        reader = MagicMock(return_value="data")
        assert guarded_sample(DEFAULT_SAMPLE_LIMIT, reader) == "data"
        reader.assert_called_once()

    def test_custom_limit(self):
        reader = MagicMock(return_value="x")
        assert guarded_sample(11, reader, limit=10) == TOO_LARGE_TO_SAMPLE
        reader.assert_not_called()
