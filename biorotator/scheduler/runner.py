"""Description rotation control loop.

Each decision cycle runs in three phases:

1. *decide* from a detached snapshot of the shared state (pure, see
   :func:`decide`);
2. *apply* the chosen text through the update service with no lock held;
3. *commit* under a fresh write lock, only if the update succeeded.

A command that changes the state while phase 2 is in flight takes effect on
the next cycle.
"""
from __future__ import annotations

import enum
import logging
import queue
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from biorotator.telegram.errors import (
    DescriptionUpdater,
    ExternalBackoffError,
    RateLimitedError,
    UnauthorizedError,
    UpdateError,
)

from .state import SchedulerState, SharedState

if TYPE_CHECKING:
    from biorotator.descriptions import DescriptionList, DescriptionStore

logger = logging.getLogger(__name__)

DEFAULT_CHECK_INTERVAL = 1.0
DEFAULT_OVERRIDE_DURATION = 3600.0


class SchedulerMessage(enum.Enum):
    """Messages accepted by the scheduler inbox."""

    TRIGGER_UPDATE = "trigger_update"
    SHUTDOWN = "shutdown"


class CycleOutcome(enum.Enum):
    """What a single decision cycle ended up doing."""

    SKIPPED = "skipped"
    APPLIED = "applied"
    RATE_LIMITED = "rate_limited"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class Candidate:
    """The text a cycle intends to apply and how to commit it."""

    text: str
    duration: float
    advance: bool
    is_override: bool
    index: int
    fell_back: bool = False


def decide(
    snapshot: SchedulerState,
    descriptions: "DescriptionList",
    override_duration: float = DEFAULT_OVERRIDE_DURATION,
) -> Optional[Candidate]:
    """Return what to apply for ``snapshot``, or ``None`` if nothing is due."""

    if snapshot.is_paused or not snapshot.is_expired():
        return None

    count = len(descriptions)
    if count == 0:
        logger.warning("No descriptions configured, skipping update")
        return None

    if snapshot.pending_override is not None:
        return Candidate(
            text=snapshot.pending_override,
            duration=override_duration,
            advance=False,
            is_override=True,
            index=snapshot.current_index,
        )

    # A deadline that ran out means "move on"; no deadline means a jump or
    # first run already positioned the index.
    advance = snapshot.has_deadline()
    next_index = (snapshot.current_index + 1) % count if advance else snapshot.current_index
    fell_back = False
    description = descriptions.get(next_index)
    if description is None:
        logger.error(
            "Description index %d out of range for %d descriptions, falling back to 0",
            next_index,
            count,
        )
        next_index, fell_back, advance = 0, True, False
        description = descriptions.descriptions[0]

    return Candidate(
        text=description.text,
        duration=float(description.duration_secs),
        advance=advance,
        is_override=False,
        index=next_index,
        fell_back=fell_back,
    )


class DescriptionScheduler:
    """Drive the rotation forward on a timer and on demand."""

    def __init__(
        self,
        updater: DescriptionUpdater,
        descriptions: "DescriptionStore",
        state: SharedState,
        *,
        check_interval: float = DEFAULT_CHECK_INTERVAL,
        override_duration: float = DEFAULT_OVERRIDE_DURATION,
    ) -> None:
        if check_interval <= 0:
            raise ValueError("check_interval must be positive")
        self._updater = updater
        self._descriptions = descriptions
        self._state = state
        self._check_interval = check_interval
        self._override_duration = override_duration
        self._inbox: "queue.Queue[SchedulerMessage]" = queue.Queue()
        self._thread: Optional[threading.Thread] = None

    @property
    def state(self) -> SharedState:
        return self._state

    # ------------------------------------------------------------------
    # Inbox
    def trigger(self) -> None:
        """Ask for a decision cycle without waiting for the next tick."""

        self._inbox.put(SchedulerMessage.TRIGGER_UPDATE)

    def start(self) -> threading.Thread:
        if self._thread is not None and self._thread.is_alive():
            raise RuntimeError("scheduler already running")
        self._thread = threading.Thread(target=self.run, name="description-scheduler", daemon=True)
        self._thread.start()
        return self._thread

    def shutdown(self, timeout: Optional[float] = None) -> None:
        """Stop the loop; an update already in flight is allowed to finish."""

        self._inbox.put(SchedulerMessage.SHUTDOWN)
        if self._thread is not None:
            self._thread.join(timeout)

    def run(self) -> None:
        """Run until a :attr:`SchedulerMessage.SHUTDOWN` message arrives."""

        logger.info("Description scheduler started (check interval %.1fs)", self._check_interval)
        next_tick = time.monotonic()
        while True:
            timeout = max(0.0, next_tick - time.monotonic())
            try:
                message = self._inbox.get(timeout=timeout)
            except queue.Empty:
                self._safe_cycle()
                next_tick += self._check_interval
                now = time.monotonic()
                if next_tick < now:
                    # Fell behind (long update call); don't burst missed ticks.
                    next_tick = now + self._check_interval
                continue

            if message is SchedulerMessage.SHUTDOWN:
                logger.info("Scheduler shutting down")
                break
            logger.debug("Received trigger update message")
            self._safe_cycle()

    # ------------------------------------------------------------------
    # Decision cycle
    def run_cycle(self) -> CycleOutcome:
        """Execute one read/decide/apply/commit cycle."""

        snapshot = self._state.snapshot()
        candidate = decide(snapshot, self._descriptions.snapshot(), self._override_duration)
        if candidate is None:
            return CycleOutcome.SKIPPED

        if candidate.is_override:
            logger.info("Updating description to custom override")
        else:
            logger.info("Updating description (index: %d)", candidate.index)

        try:
            self._updater.update_description(candidate.text)
        except (RateLimitedError, ExternalBackoffError) as exc:
            logger.warning("Description update throttled: %s; will retry later", exc)
            return CycleOutcome.RATE_LIMITED
        except UnauthorizedError as exc:
            logger.error("Description update rejected, not authorized: %s", exc)
            return CycleOutcome.FAILED
        except UpdateError as exc:
            logger.error("Failed to update description: %s", exc)
            return CycleOutcome.FAILED

        self._commit(candidate, snapshot)
        return CycleOutcome.APPLIED

    def _commit(self, candidate: Candidate, snapshot: SchedulerState) -> None:
        count = self._descriptions.count()
        with self._state.write(persist=True) as state:
            # Commands issued during the call take precedence over this commit.
            interrupted = _position_changed(snapshot, state)
            if candidate.is_override and state.pending_override == candidate.text:
                state.consume_override()
            if interrupted:
                deadline = None
            else:
                if candidate.fell_back:
                    state.current_index = 0
                elif candidate.advance:
                    state.advance(count)
                state.set_deadline(candidate.duration)
                deadline = state.deadline
        if deadline is None:
            logger.info("Description updated; state changed meanwhile, next cycle applies it")
            return
        logger.info(
            "Description updated successfully, next update at %s (in %.0fs)",
            _format_timestamp(deadline),
            candidate.duration,
        )

    def _safe_cycle(self) -> None:
        try:
            self.run_cycle()
        except Exception:  # noqa: BLE001
            logger.exception("Unexpected error during description update cycle")


def _format_timestamp(timestamp: Optional[float]) -> str:
    if timestamp is None:
        return "n/a"
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat(timespec="seconds")


def _position_changed(snapshot: SchedulerState, live: SchedulerState) -> bool:
    return (
        live.current_index != snapshot.current_index
        or live.deadline != snapshot.deadline
        or live.pending_override != snapshot.pending_override
    )
