"""Thread-safe holder of the live description list."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional, Tuple

from biorotator.locks import ReadWriteLock

from .models import (
    Description,
    DescriptionFileError,
    DescriptionList,
    DescriptionNotFoundError,
    load_descriptions,
    save_descriptions,
)
from .validation import DescriptionValidationError, validate_list, validate_text

logger = logging.getLogger(__name__)


class DescriptionStore:
    """Owns the description list and keeps its JSON file in sync.

    Every structural edit is written to disk before it is reported as done;
    if the write fails the in-memory list is rolled back and
    :class:`DescriptionFileError` is raised.
    """

    def __init__(self, path: Path, data: Optional[DescriptionList] = None) -> None:
        self._path = Path(path)
        self._data = data if data is not None else DescriptionList()
        self._lock = ReadWriteLock()

    @classmethod
    def load(cls, path: Path) -> "DescriptionStore":
        return cls(path, load_descriptions(path))

    @property
    def path(self) -> Path:
        return self._path

    # ------------------------------------------------------------------
    # Read access
    @contextmanager
    def read(self) -> Iterator[DescriptionList]:
        """Yield the live list under the shared lock; do not mutate it."""

        with self._lock.read():
            yield self._data

    def count(self) -> int:
        with self._lock.read():
            return len(self._data)

    def get(self, index: int) -> Optional[Description]:
        with self._lock.read():
            return self._data.get(index)

    def snapshot(self) -> DescriptionList:
        with self._lock.read():
            return self._data.copy()

    def max_length(self) -> int:
        with self._lock.read():
            return self._data.max_length()

    def resolve(self, target: str) -> int:
        """Map an ID, or a 1-based position, to a list index."""

        with self._lock.read():
            index = self._data.index_of(target)
            if index is not None:
                return index
            if target.isdigit():
                position = int(target)
                if 0 < position <= len(self._data):
                    return position - 1
        raise DescriptionNotFoundError(
            f"Description not found: '{target}'. Use 'list' to see available descriptions."
        )

    # ------------------------------------------------------------------
    # Structural edits
    def add(self, description: Description) -> None:
        if not description.id or any(ch.isspace() for ch in description.id):
            raise DescriptionValidationError("ID cannot be empty or contain spaces.")
        if description.duration_secs <= 0:
            raise DescriptionValidationError("Duration must be greater than 0 seconds.")
        with self._lock.write():
            if self._data.index_of(description.id) is not None:
                raise DescriptionValidationError(
                    f"Description with ID '{description.id}' already exists. Use 'edit' to modify it."
                )
            validate_text(description.text, self._data.max_length())
            self._data.descriptions.append(description)
            try:
                self._save_locked()
            except DescriptionFileError:
                self._data.descriptions.pop()
                raise

    def edit_text(self, description_id: str, text: str) -> str:
        """Replace the text of ``description_id``; return the previous text."""

        with self._lock.write():
            index = self._require_index(description_id)
            validate_text(text, self._data.max_length())
            entry = self._data.descriptions[index]
            old_text, entry.text = entry.text, text
            try:
                self._save_locked()
            except DescriptionFileError:
                entry.text = old_text
                raise
            return old_text

    def set_duration(self, description_id: str, duration_secs: int) -> int:
        """Change how long ``description_id`` stays up; return the old value."""

        if duration_secs <= 0:
            raise DescriptionValidationError("Duration must be greater than 0 seconds.")
        with self._lock.write():
            index = self._require_index(description_id)
            entry = self._data.descriptions[index]
            old_duration, entry.duration_secs = entry.duration_secs, duration_secs
            try:
                self._save_locked()
            except DescriptionFileError:
                entry.duration_secs = old_duration
                raise
            return old_duration

    def delete(self, description_id: str) -> Tuple[int, Description]:
        """Remove ``description_id``; return its former index and the entry."""

        with self._lock.write():
            index = self._require_index(description_id)
            removed = self._data.descriptions.pop(index)
            try:
                self._save_locked()
            except DescriptionFileError:
                self._data.descriptions.insert(index, removed)
                raise
            return index, removed

    def reload(self) -> Tuple[int, int]:
        """Re-read the file, validate it and swap it in.

        Returns the ``(old_count, new_count)`` pair.  The current list stays
        in place when the file is unreadable or invalid.
        """

        new_data = load_descriptions(self._path)
        with self._lock.write():
            validate_list(new_data)
            old_count = len(self._data)
            self._data = new_data
        logger.info("Reloaded %s: %d -> %d descriptions", self._path, old_count, len(new_data))
        return old_count, len(new_data)

    # ------------------------------------------------------------------
    def _require_index(self, description_id: str) -> int:
        index = self._data.index_of(description_id)
        if index is None:
            raise DescriptionNotFoundError(
                f"Description not found: '{description_id}'. Use 'list' to see available descriptions."
            )
        return index

    def _save_locked(self) -> None:
        try:
            save_descriptions(self._path, self._data)
        except OSError as exc:
            logger.warning("Failed to save descriptions to %s: %s", self._path, exc)
            raise DescriptionFileError(f"Failed to save: {exc}") from exc
