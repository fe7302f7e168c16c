"""Scheduler state and its lock-protected holder."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from .clock import Clock, SystemClock
from biorotator.locks import ReadWriteLock
from .persistence import PersistentState, save_state

logger = logging.getLogger(__name__)


class SchedulerState:
    """Rotation position, pause flag, pending override and current deadline.

    All methods are pure in-memory operations.  A missing ``deadline`` means
    an update is owed right away: either this is the first run, or a command
    cleared the timing on purpose.
    """

    def __init__(
        self,
        clock: Optional[Clock] = None,
        *,
        current_index: int = 0,
        is_paused: bool = False,
        pending_override: Optional[str] = None,
        deadline: Optional[float] = None,
    ) -> None:
        self.clock: Clock = clock or SystemClock()
        self.current_index = current_index
        self.is_paused = is_paused
        self.pending_override = pending_override
        self.deadline = deadline

    # ------------------------------------------------------------------
    # Timing
    def is_expired(self) -> bool:
        """Return ``True`` when an update is due."""

        if self.deadline is None:
            return True
        return self.clock.now() >= self.deadline

    def has_deadline(self) -> bool:
        return self.deadline is not None

    def time_remaining(self) -> Optional[float]:
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - self.clock.now())

    def set_deadline(self, duration: float) -> None:
        self.deadline = self.clock.now() + duration

    def clear_deadline(self) -> None:
        self.deadline = None

    # ------------------------------------------------------------------
    # Position
    def advance(self, count: int) -> None:
        if count <= 0:
            return
        self.current_index = (self.current_index + 1) % count

    def set_index(self, index: int) -> None:
        """Jump to ``index``; a jump always clears timing."""

        self.current_index = index
        self.clear_deadline()

    def clamp_index(self, count: int) -> bool:
        """Reset the index to 0 if ``count`` no longer covers it.

        Returns ``True`` when the index changed.
        """

        if self.current_index >= count and self.current_index != 0:
            self.current_index = 0
            return True
        return False

    # ------------------------------------------------------------------
    # Override
    def set_override(self, text: str) -> None:
        self.pending_override = text

    def consume_override(self) -> Optional[str]:
        text, self.pending_override = self.pending_override, None
        return text

    # ------------------------------------------------------------------
    def snapshot(self) -> "SchedulerState":
        """Return a detached copy sharing the same clock."""

        return SchedulerState(
            self.clock,
            current_index=self.current_index,
            is_paused=self.is_paused,
            pending_override=self.pending_override,
            deadline=self.deadline,
        )

    def reset(self) -> None:
        self.current_index = 0
        self.is_paused = False
        self.pending_override = None
        self.deadline = None

    def to_persistent(self) -> PersistentState:
        return PersistentState(
            current_index=self.current_index,
            is_paused=self.is_paused,
            deadline_unix_seconds=round(self.deadline) if self.deadline is not None else None,
            pending_override=self.pending_override,
        )

    @classmethod
    def from_persistent(
        cls, persistent: PersistentState, clock: Optional[Clock] = None
    ) -> "SchedulerState":
        deadline = persistent.deadline_unix_seconds
        return cls(
            clock,
            current_index=persistent.current_index,
            is_paused=persistent.is_paused,
            pending_override=persistent.pending_override,
            deadline=float(deadline) if deadline is not None else None,
        )

    def __repr__(self) -> str:
        return (
            f"SchedulerState(current_index={self.current_index}, is_paused={self.is_paused}, "
            f"pending_override={self.pending_override!r}, deadline={self.deadline!r})"
        )


class SharedState:
    """The single :class:`SchedulerState` instance shared across threads.

    ``read()`` yields the live state under a shared lock and must not mutate
    it.  ``write()`` yields it under the exclusive lock; passing
    ``persist=True`` saves the result before the lock is released so
    command-layer writes and scheduler commits reach disk in order.
    """

    def __init__(self, state: SchedulerState, state_path: Optional[Path] = None) -> None:
        self._state = state
        self._lock = ReadWriteLock()
        self._state_path = Path(state_path) if state_path is not None else None

    @property
    def state_path(self) -> Optional[Path]:
        return self._state_path

    @contextmanager
    def read(self) -> Iterator[SchedulerState]:
        with self._lock.read():
            yield self._state

    @contextmanager
    def write(self, *, persist: bool = False) -> Iterator[SchedulerState]:
        with self._lock.write():
            yield self._state
            if persist:
                self._save_locked()

    def snapshot(self) -> SchedulerState:
        with self._lock.read():
            return self._state.snapshot()

    def persist(self) -> bool:
        with self._lock.write():
            return self._save_locked()

    def _save_locked(self) -> bool:
        if self._state_path is None:
            return True
        try:
            save_state(self._state_path, self._state.to_persistent())
        except OSError as exc:
            logger.warning("Failed to save scheduler state to %s: %s", self._state_path, exc)
            return False
        return True
