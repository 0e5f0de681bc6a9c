"""Caller-supplied deadline and cancellation for blocking provider calls.

A :class:`Deadline` is created at the top of an issuance or renewal run
and passed down to providers.  Polling loops sleep through
:meth:`Deadline.sleep` so that a cancelled run or an expired deadline
interrupts the wait instead of blocking for the full interval.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable


class Deadline:
    """Absolute monotonic expiry plus a cancel event.

    Parameters
    ----------
    timeout:
        Seconds from now until the deadline expires, or ``None`` for no
        time bound (cancellation still works).
    clock:
        Monotonic clock, injectable for tests.

    """

    def __init__(
        self,
        timeout: float | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._clock = clock
        self._expires_at = None if timeout is None else clock() + timeout
        self._cancelled = threading.Event()

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def remaining(self) -> float | None:
        """Seconds left, ``0.0`` when expired, ``None`` when unbounded."""
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - self._clock())

    @property
    def expired(self) -> bool:
        if self.cancelled:
            return True
        remaining = self.remaining()
        return remaining is not None and remaining <= 0

    def sleep(self, seconds: float) -> bool:
        """Wait up to *seconds*; return ``False`` if interrupted or expired.

        The wait is cut short by cancellation or by the deadline itself.
        """
        remaining = self.remaining()
        wait = seconds if remaining is None else min(seconds, remaining)
        interrupted = self._cancelled.wait(wait)
        return not interrupted and not self.expired
