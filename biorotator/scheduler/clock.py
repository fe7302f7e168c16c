"""Clock abstractions used for deadline arithmetic.

Deadlines are stored as wall-clock unix seconds so they survive a restart.
Every component that needs "now" receives a :class:`Clock` instead of calling
:func:`time.time` directly; tests drive time with :class:`ManualClock`.
"""
from __future__ import annotations

import time
from threading import Lock
from typing import Protocol, runtime_checkable


@runtime_checkable
class Clock(Protocol):
    """Protocol implemented by clock providers."""

    def now(self) -> float:
        """Return the current time in unix seconds."""


class SystemClock:
    """Clock backed by :func:`time.time`."""

    def now(self) -> float:
        return time.time()


class ManualClock:
    """Deterministic clock used for tests.

    Time advances only when :meth:`advance` or :meth:`set` is called.
    """

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self._current = start
        self._lock = Lock()

    def now(self) -> float:
        with self._lock:
            return self._current

    def advance(self, seconds: float) -> float:
        """Advance the clock by ``seconds`` (must be non-negative)."""
        if seconds < 0.0:
            raise ValueError("seconds must be non-negative")
        with self._lock:
            self._current += seconds
            return self._current

    def set(self, timestamp: float) -> None:
        with self._lock:
            self._current = timestamp
