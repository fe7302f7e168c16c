"""Minimum spacing between profile updates.

Telegram throttles accounts that change their profile too often.  The limiter
enforces a fixed minimum interval on our side and, when the server still asks
for a pause, layers that pause on top.
"""
from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional

logger = logging.getLogger(__name__)

MonotonicFn = Callable[[], float]
SleepFn = Callable[[float], None]


class RateLimiter:
    """Enforce ``min_interval`` seconds between successive operations.

    A single lock guards the last-call timestamp.  It is held only while
    reading or writing that field, never while sleeping.
    """

    def __init__(
        self,
        min_interval: float,
        *,
        monotonic_fn: MonotonicFn = time.monotonic,
        sleep_fn: SleepFn = time.sleep,
    ) -> None:
        if min_interval < 0:
            raise ValueError("min_interval must be non-negative")
        self._min_interval = float(min_interval)
        self._monotonic = monotonic_fn
        self._sleep = sleep_fn
        self._lock = threading.Lock()
        self._last_call: Optional[float] = None

    @property
    def min_interval(self) -> float:
        return self._min_interval

    def wait_and_acquire(self) -> float:
        """Block until the next operation is allowed and claim it.

        Returns how many seconds were spent waiting (``0.0`` if none).
        """

        waited = 0.0
        while True:
            with self._lock:
                remaining = self._remaining_locked()
                if remaining <= 0:
                    self._last_call = self._monotonic()
                    return waited
            logger.debug("Rate limiter: waiting %.2fs before next operation", remaining)
            self._sleep(remaining)
            waited += remaining

    def is_allowed(self) -> bool:
        with self._lock:
            return self._remaining_locked() <= 0

    def time_until_allowed(self) -> float:
        with self._lock:
            return max(0.0, self._remaining_locked())

    def mark_used(self) -> None:
        with self._lock:
            self._last_call = self._monotonic()

    def defer(self, seconds: float) -> None:
        """Push the next allowed slot to at least ``seconds`` from now.

        Unlike :meth:`handle_external_backoff` this never sleeps; the next
        :meth:`wait_and_acquire` absorbs the delay.
        """

        with self._lock:
            target = self._monotonic() + max(0.0, seconds) - self._min_interval
            if self._last_call is None or target > self._last_call:
                self._last_call = target
        logger.info("Rate limiter: next update deferred by %.0fs", seconds)

    def handle_external_backoff(self, seconds: float) -> None:
        """Sleep for a server-dictated pause, then count it as a fresh call."""

        logger.warning("Received flood wait from Telegram: %.0f seconds", seconds)
        if seconds > 0:
            self._sleep(seconds)
        self.mark_used()

    def reset(self) -> None:
        """Forget the last call so the next one may go out immediately."""

        with self._lock:
            self._last_call = None

    def _remaining_locked(self) -> float:
        if self._last_call is None:
            return 0.0
        elapsed = self._monotonic() - self._last_call
        return self._min_interval - elapsed
