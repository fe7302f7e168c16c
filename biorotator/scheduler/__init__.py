"""Description rotation scheduler."""

from .clock import Clock, ManualClock, SystemClock
from .persistence import PersistentState, load_state, save_state
from .runner import (
    Candidate,
    CycleOutcome,
    DescriptionScheduler,
    SchedulerMessage,
    decide,
)
from .state import SchedulerState, SharedState

__all__ = [
    "Candidate",
    "Clock",
    "CycleOutcome",
    "DescriptionScheduler",
    "ManualClock",
    "PersistentState",
    "SchedulerMessage",
    "SchedulerState",
    "SharedState",
    "SystemClock",
    "decide",
    "load_state",
    "save_state",
]
