"""Tests for the throttle primitive."""

import threading
import time

from pylinksync.sync.throttle import Throttle


def wait_until(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


class TestThrottle:
    """Tests for Throttle."""

    def test_single_trigger_runs_once(self):
        calls = []
        throttle = Throttle(lambda *args: calls.append(args), interval=0.05)

        throttle.trigger("a")

        assert wait_until(lambda: calls == [("a",)])
        time.sleep(0.1)
        assert calls == [("a",)]

    def test_burst_is_coalesced_with_latest_arguments(self):
        """Test that a burst runs far fewer times and ends with the last call."""
        calls = []
        throttle = Throttle(lambda value: calls.append(value), interval=0.2)

        for i in range(20):
            throttle.trigger(i)

        assert wait_until(lambda: calls and calls[-1] == 19)
        assert wait_until(lambda: not throttle.pending)
        assert len(calls) <= 2

    def test_trailing_call_after_running_call(self):
        """Test that a trigger during a running call is not dropped."""
        started = threading.Event()
        release = threading.Event()
        calls = []

        def slow(value):
            calls.append(value)
            if value == "first":
                started.set()
                release.wait(2)

        throttle = Throttle(slow, interval=0.01)
        throttle.trigger("first")
        assert started.wait(2)
        throttle.trigger("second")
        throttle.trigger("third")
        release.set()

        assert wait_until(lambda: calls == ["first", "third"])

    def test_at_most_once_per_interval(self):
        times = []
        throttle = Throttle(lambda: times.append(time.monotonic()), interval=0.15)

        throttle.trigger()
        assert wait_until(lambda: len(times) == 1)
        throttle.trigger()
        assert wait_until(lambda: len(times) == 2)

        assert times[1] - times[0] >= 0.14

    def test_cancel_drops_pending_call(self):
        calls = []
        throttle = Throttle(lambda: calls.append(1), interval=0.2)
        throttle.trigger()
        assert wait_until(lambda: calls == [1])

        throttle.trigger()
        throttle.cancel()
        throttle.trigger()
        time.sleep(0.35)

        assert calls == [1]

    def test_flush_runs_pending_call_now(self):
        calls = []
        throttle = Throttle(lambda value: calls.append(value), interval=10)
        throttle.trigger("first")
        assert wait_until(lambda: calls == ["first"])

        throttle.trigger("second")
        throttle.flush()

        assert calls == ["first", "second"]
        assert not throttle.pending

    def test_exception_does_not_break_throttle(self):
        calls = []

        def failing(value):
            calls.append(value)
            if value == "boom":
                raise RuntimeError("boom")

        throttle = Throttle(failing, interval=0.01)
        throttle.trigger("boom")
        assert wait_until(lambda: calls == ["boom"])
        throttle.trigger("ok")

        assert wait_until(lambda: calls == ["boom", "ok"])
