"""Durable projection of :class:`~biorotator.scheduler.state.SchedulerState`."""
from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Mapping, Optional

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class PersistentState:
    """What survives a restart.

    ``deadline_unix_seconds`` is ``None`` when an update is owed immediately,
    which is also what a fresh install starts with.
    """

    current_index: int = 0
    is_paused: bool = False
    deadline_unix_seconds: Optional[int] = None
    pending_override: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PersistentState":
        index = data.get("current_index", 0)
        deadline = data.get("deadline_unix_seconds")
        override = data.get("pending_override")
        if isinstance(index, bool) or not isinstance(index, int) or index < 0:
            raise ValueError(f"invalid current_index: {index!r}")
        if deadline is not None and (isinstance(deadline, bool) or not isinstance(deadline, (int, float))):
            raise ValueError(f"invalid deadline_unix_seconds: {deadline!r}")
        if override is not None and not isinstance(override, str):
            raise ValueError(f"invalid pending_override: {override!r}")
        paused = data.get("is_paused", False)
        if not isinstance(paused, bool):
            raise ValueError(f"invalid is_paused: {paused!r}")
        return cls(
            current_index=index,
            is_paused=paused,
            deadline_unix_seconds=int(deadline) if deadline is not None else None,
            pending_override=override or None,
        )


def load_state(path: Path) -> PersistentState:
    """Read ``path``; any I/O or parse problem yields the default state."""

    try:
        with Path(path).open("r", encoding="utf-8") as handle:
            data = json.load(handle)
    except FileNotFoundError:
        logger.debug("No scheduler state at %s, starting fresh", path)
        return PersistentState()
    except (OSError, ValueError) as exc:
        logger.warning("Ignoring unreadable scheduler state %s: %s", path, exc)
        return PersistentState()

    if not isinstance(data, Mapping):
        logger.warning("Ignoring scheduler state %s: root is not an object", path)
        return PersistentState()
    try:
        return PersistentState.from_dict(data)
    except ValueError as exc:
        logger.warning("Ignoring scheduler state %s: %s", path, exc)
        return PersistentState()


def save_state(path: Path, state: PersistentState) -> None:
    """Write ``state`` to ``path`` atomically.

    Raises :class:`OSError` when the file cannot be written; callers keep
    running on the in-memory state.
    """

    path = Path(path)
    temp_path = path.with_name(path.name + ".tmp")
    try:
        with temp_path.open("w", encoding="utf-8") as handle:
            json.dump(state.to_dict(), handle, indent=2, ensure_ascii=False)
            handle.flush()
            os.fsync(handle.fileno())
        temp_path.replace(path)
    except Exception:
        temp_path.unlink(missing_ok=True)
        raise
