import tempfile
import threading
import unittest
from pathlib import Path
from typing import Callable, List, Optional

from biorotator.descriptions import Description, DescriptionList, DescriptionStore
from biorotator.scheduler.clock import ManualClock
from biorotator.scheduler.persistence import load_state
from biorotator.scheduler.runner import (
    CycleOutcome,
    DescriptionScheduler,
    decide,
)
from biorotator.scheduler.state import SchedulerState, SharedState
from biorotator.telegram.errors import (
    ExternalBackoffError,
    RateLimitedError,
    UnauthorizedError,
    UpdateFailedError,
)

OVERRIDE_DURATION = 3600.0


class FakeUpdater:
    def __init__(self) -> None:
        self.applied: List[str] = []
        self.errors: List[Exception] = []
        self.on_call: Optional[Callable[[str], None]] = None
        self.called = threading.Event()

    def update_description(self, text: str) -> None:
        self.applied.append(text)
        if self.on_call is not None:
            self.on_call(text)
        self.called.set()
        if self.errors:
            raise self.errors.pop(0)


def make_list(count: int = 3) -> DescriptionList:
    return DescriptionList(
        descriptions=[
            Description(id=f"d{i}", text=f"text {i}", duration_secs=60 * (i + 1))
            for i in range(count)
        ]
    )


class RunnerTestCase(unittest.TestCase):
    def setUp(self) -> None:
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.dir = Path(tmp.name)
        self.state_path = self.dir / "state.json"
        self.clock = ManualClock(start=1_700_000_000.0)
        self.store = DescriptionStore(self.dir / "descriptions.json", make_list(3))
        self.shared = SharedState(SchedulerState(self.clock), self.state_path)
        self.updater = FakeUpdater()
        self.scheduler = DescriptionScheduler(
            self.updater,
            self.store,
            self.shared,
            check_interval=0.02,
            override_duration=OVERRIDE_DURATION,
        )

    def state(self) -> SchedulerState:
        return self.shared.snapshot()


class DecideTests(unittest.TestCase):
    def setUp(self) -> None:
        self.clock = ManualClock(start=1_000.0)
        self.descriptions = make_list(3)

    def test_nothing_when_paused(self):
        state = SchedulerState(self.clock, is_paused=True)
        self.assertIsNone(decide(state, self.descriptions))

    def test_nothing_before_deadline(self):
        state = SchedulerState(self.clock, deadline=1_010.0)
        self.assertIsNone(decide(state, self.descriptions))

    def test_nothing_when_list_empty(self):
        state = SchedulerState(self.clock)
        with self.assertLogs("biorotator.scheduler.runner", level="WARNING"):
            self.assertIsNone(decide(state, DescriptionList()))

    def test_first_run_uses_current_index(self):
        candidate = decide(SchedulerState(self.clock), self.descriptions)
        self.assertEqual(candidate.index, 0)
        self.assertEqual(candidate.text, "text 0")
        self.assertEqual(candidate.duration, 60.0)
        self.assertFalse(candidate.advance)
        self.assertFalse(candidate.is_override)

    def test_natural_expiry_advances(self):
        state = SchedulerState(self.clock, current_index=2, deadline=999.0)
        candidate = decide(state, self.descriptions)
        self.assertEqual(candidate.index, 0)
        self.assertTrue(candidate.advance)

    def test_override_wins(self):
        state = SchedulerState(self.clock, current_index=1, pending_override="Back in 5", deadline=999.0)
        candidate = decide(state, self.descriptions, override_duration=120)
        self.assertEqual(candidate.text, "Back in 5")
        self.assertEqual(candidate.duration, 120)
        self.assertTrue(candidate.is_override)
        self.assertFalse(candidate.advance)

    def test_out_of_range_falls_back_to_first(self):
        state = SchedulerState(self.clock, current_index=7)
        with self.assertLogs("biorotator.scheduler.runner", level="ERROR"):
            candidate = decide(state, self.descriptions)
        self.assertEqual(candidate.index, 0)
        self.assertTrue(candidate.fell_back)
        self.assertFalse(candidate.advance)

    def test_decide_does_not_mutate_snapshot(self):
        state = SchedulerState(self.clock, current_index=1, pending_override="x", deadline=999.0)
        decide(state, self.descriptions)
        self.assertEqual(state.current_index, 1)
        self.assertEqual(state.pending_override, "x")
        self.assertEqual(state.deadline, 999.0)


class RunCycleTests(RunnerTestCase):
    def test_fresh_state_applies_first_description(self):
        outcome = self.scheduler.run_cycle()

        self.assertEqual(outcome, CycleOutcome.APPLIED)
        self.assertEqual(self.updater.applied, ["text 0"])
        state = self.state()
        self.assertEqual(state.current_index, 0)
        self.assertEqual(state.deadline, self.clock.now() + 60)

    def test_natural_expiry_moves_to_next(self):
        with self.shared.write() as state:
            state.current_index = 0
            state.deadline = self.clock.now() - 1

        self.assertEqual(self.scheduler.run_cycle(), CycleOutcome.APPLIED)

        self.assertEqual(self.updater.applied, ["text 1"])
        state = self.state()
        self.assertEqual(state.current_index, 1)
        self.assertEqual(state.deadline, self.clock.now() + 120)

    def test_override_applied_verbatim_and_cleared(self):
        with self.shared.write() as state:
            state.set_index(1)
            state.set_override("Back in 5")

        self.scheduler.run_cycle()

        self.assertEqual(self.updater.applied, ["Back in 5"])
        state = self.state()
        self.assertEqual(state.current_index, 1)
        self.assertIsNone(state.pending_override)
        self.assertEqual(state.deadline, self.clock.now() + OVERRIDE_DURATION)

        # After the override expires the rotation continues with the next entry.
        self.clock.advance(OVERRIDE_DURATION)
        self.scheduler.run_cycle()
        self.assertEqual(self.updater.applied[-1], "text 2")
        self.assertEqual(self.state().current_index, 2)

    def test_waits_for_deadline(self):
        self.scheduler.run_cycle()
        self.clock.advance(59)
        self.assertEqual(self.scheduler.run_cycle(), CycleOutcome.SKIPPED)
        self.clock.advance(1)
        self.assertEqual(self.scheduler.run_cycle(), CycleOutcome.APPLIED)
        self.assertEqual(self.updater.applied, ["text 0", "text 1"])

    def test_full_rotation_wraps(self):
        for _ in range(4):
            self.scheduler.run_cycle()
            self.clock.advance(1_000)
        self.assertEqual(self.updater.applied, ["text 0", "text 1", "text 2", "text 0"])

    def test_paused_does_nothing(self):
        with self.shared.write() as state:
            state.is_paused = True
        self.assertEqual(self.scheduler.run_cycle(), CycleOutcome.SKIPPED)
        self.assertEqual(self.updater.applied, [])

    def test_jump_uses_target_without_advancing(self):
        self.scheduler.run_cycle()
        with self.shared.write() as state:
            state.set_index(2)
        self.scheduler.run_cycle()
        self.assertEqual(self.updater.applied, ["text 0", "text 2"])
        self.assertEqual(self.state().current_index, 2)

    def test_rate_limited_leaves_state_untouched(self):
        with self.shared.write() as state:
            state.current_index = 1
            state.deadline = self.clock.now() - 5
            state.set_override("pending")
        before = self.state().to_persistent()
        before_deadline = self.state().deadline

        self.updater.errors.append(RateLimitedError(30))
        outcome = self.scheduler.run_cycle()

        self.assertEqual(outcome, CycleOutcome.RATE_LIMITED)
        self.assertEqual(self.state().to_persistent(), before)
        self.assertEqual(self.state().deadline, before_deadline)
        self.assertFalse(self.state_path.exists())

    def test_backoff_and_failures_leave_state_untouched(self):
        errors = [
            (ExternalBackoffError(10), CycleOutcome.RATE_LIMITED),
            (UnauthorizedError("no"), CycleOutcome.FAILED),
            (UpdateFailedError("boom"), CycleOutcome.FAILED),
        ]
        for error, expected in errors:
            self.updater.errors.append(error)
            self.assertEqual(self.scheduler.run_cycle(), expected)
            state = self.state()
            self.assertEqual(state.current_index, 0)
            self.assertFalse(state.has_deadline())

        # The next cycle retries from the same position.
        self.assertEqual(self.scheduler.run_cycle(), CycleOutcome.APPLIED)
        self.assertEqual(self.updater.applied, ["text 0"] * 4)

    def test_success_persists_state(self):
        self.scheduler.run_cycle()
        persisted = load_state(self.state_path)
        self.assertEqual(persisted.current_index, 0)
        self.assertEqual(persisted.deadline_unix_seconds, round(self.clock.now() + 60))

    def test_out_of_range_index_is_reclamped(self):
        with self.shared.write() as state:
            state.current_index = 5
        with self.assertLogs("biorotator.scheduler.runner", level="ERROR"):
            self.scheduler.run_cycle()
        self.assertEqual(self.updater.applied, ["text 0"])
        self.assertEqual(self.state().current_index, 0)

    def test_empty_list_is_noop(self):
        empty = DescriptionStore(self.dir / "empty.json", DescriptionList())
        scheduler = DescriptionScheduler(self.updater, empty, self.shared)
        with self.assertLogs("biorotator.scheduler.runner", level="WARNING"):
            self.assertEqual(scheduler.run_cycle(), CycleOutcome.SKIPPED)
        self.assertEqual(self.updater.applied, [])

    def test_command_during_update_applies_next_cycle(self):
        def pause_mid_call(text: str) -> None:
            with self.shared.write() as state:
                state.is_paused = True

        self.updater.on_call = pause_mid_call
        self.assertEqual(self.scheduler.run_cycle(), CycleOutcome.APPLIED)
        self.updater.on_call = None

        state = self.state()
        self.assertTrue(state.is_paused)
        self.assertTrue(state.has_deadline())

        self.clock.advance(1_000)
        self.assertEqual(self.scheduler.run_cycle(), CycleOutcome.SKIPPED)

    def test_override_replaced_mid_call_is_kept(self):
        with self.shared.write() as state:
            state.set_override("first")

        def replace_override(text: str) -> None:
            with self.shared.write() as state:
                state.set_override("second")

        self.updater.on_call = replace_override
        self.scheduler.run_cycle()
        self.updater.on_call = None

        state = self.state()
        self.assertEqual(state.pending_override, "second")
        self.assertFalse(state.has_deadline())

        self.assertEqual(self.scheduler.run_cycle(), CycleOutcome.APPLIED)
        self.assertEqual(self.updater.applied, ["first", "second"])
        state = self.state()
        self.assertIsNone(state.pending_override)
        self.assertEqual(state.deadline, self.clock.now() + OVERRIDE_DURATION)

    def test_jump_mid_call_is_applied_next_cycle(self):
        self.scheduler.run_cycle()
        self.clock.advance(60)

        def jump(text: str) -> None:
            with self.shared.write() as state:
                state.set_index(2)

        self.updater.on_call = jump
        self.assertEqual(self.scheduler.run_cycle(), CycleOutcome.APPLIED)
        self.updater.on_call = None

        state = self.state()
        self.assertEqual(state.current_index, 2)
        self.assertFalse(state.has_deadline())
        self.assertEqual(load_state(self.state_path).current_index, 2)

        self.scheduler.run_cycle()
        self.assertEqual(self.updater.applied, ["text 0", "text 1", "text 2"])
        state = self.state()
        self.assertEqual(state.current_index, 2)
        self.assertEqual(state.deadline, self.clock.now() + 180)

    def test_override_applied_mid_jump_is_consumed(self):
        with self.shared.write() as state:
            state.set_override("brb")

        def jump(text: str) -> None:
            with self.shared.write() as state:
                state.set_index(1)

        self.updater.on_call = jump
        self.scheduler.run_cycle()
        self.updater.on_call = None

        state = self.state()
        self.assertIsNone(state.pending_override)
        self.assertFalse(state.has_deadline())
        self.scheduler.run_cycle()
        self.assertEqual(self.updater.applied, ["brb", "text 1"])


class RunLoopTests(RunnerTestCase):
    def test_tick_applies_and_shutdown_stops(self):
        thread = self.scheduler.start()
        self.assertTrue(self.updater.called.wait(2))
        self.scheduler.shutdown(timeout=2)
        self.assertFalse(thread.is_alive())
        self.assertEqual(self.updater.applied[0], "text 0")

    def test_trigger_runs_cycle(self):
        with self.shared.write() as state:
            state.is_paused = True
        scheduler = DescriptionScheduler(
            self.updater, self.store, self.shared, check_interval=3600
        )
        thread = scheduler.start()
        self.addCleanup(scheduler.shutdown, 2)

        with self.shared.write() as state:
            state.is_paused = False
        scheduler.trigger()

        self.assertTrue(self.updater.called.wait(2))
        scheduler.shutdown(timeout=2)
        self.assertFalse(thread.is_alive())

    def test_unexpected_error_does_not_stop_loop(self):
        second_call = threading.Event()

        def fail_then_succeed(text: str) -> None:
            if len(self.updater.applied) == 1:
                raise ValueError("unexpected")
            second_call.set()

        self.updater.on_call = fail_then_succeed
        with self.assertLogs("biorotator.scheduler.runner", level="ERROR"):
            self.scheduler.start()
            self.assertTrue(second_call.wait(2))
        self.scheduler.shutdown(timeout=2)
        self.assertEqual(self.state().current_index, 0)
        self.assertTrue(self.state().has_deadline())

    def test_start_twice_is_rejected(self):
        self.scheduler.start()
        self.addCleanup(self.scheduler.shutdown, 2)
        with self.assertRaises(RuntimeError):
            self.scheduler.start()


if __name__ == "__main__":
    unittest.main()
