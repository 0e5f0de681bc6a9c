"""Unit tests for trusttls.core.deadline."""

from __future__ import annotations

import threading

from trusttls.core.deadline import Deadline


class FakeClock:
    def __init__(self, start: float = 100.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now


class TestDeadline:
    def test_unbounded(self):
        deadline = Deadline()
        assert deadline.remaining() is None
        assert deadline.expired is False

    def test_remaining_and_expiry(self):
        clock = FakeClock()
        deadline = Deadline(10, clock=clock)
        assert deadline.remaining() == 10
        clock.now += 4
        assert deadline.remaining() == 6
        clock.now += 6
        assert deadline.remaining() == 0.0
        assert deadline.expired is True

    def test_cancel_expires(self):
        deadline = Deadline()
        deadline.cancel()
        assert deadline.cancelled is True
        assert deadline.expired is True

    def test_sleep_returns_false_when_cancelled(self):
        deadline = Deadline()
        deadline.cancel()
        assert deadline.sleep(5) is False

    def test_sleep_is_interrupted_by_cancel(self):
        deadline = Deadline()
        timer = threading.Timer(0.05, deadline.cancel)
        timer.start()
        try:
            assert deadline.sleep(30) is False
        finally:
            timer.cancel()

    def test_sleep_completes(self):
        assert Deadline(60).sleep(0) is True

    def test_sleep_after_expiry(self):
        clock = FakeClock()
        deadline = Deadline(1, clock=clock)
        clock.now += 5
        assert deadline.sleep(10) is False
