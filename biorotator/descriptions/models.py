"""Description list data model and JSON file format."""
from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

MAX_LENGTH_FREE = 70
MAX_LENGTH_PREMIUM = 140
# setMyShortDescription rejects anything longer, whatever the account type.
MAX_LENGTH_SHORT_DESCRIPTION = 120


class DescriptionError(ValueError):
    """Base error for description list problems."""


class DescriptionFileError(DescriptionError):
    """Raised when the description file cannot be read or parsed."""


class DescriptionNotFoundError(DescriptionError):
    """Raised when an ID or index does not match any description."""


@dataclass(slots=True)
class Description:
    """One entry of the rotation."""

    id: str
    text: str
    duration_secs: int

    def char_count(self) -> int:
        return len(self.text)

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "text": self.text, "duration_secs": self.duration_secs}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Description":
        try:
            duration = data["duration_secs"]
            if isinstance(duration, bool) or not isinstance(duration, int):
                raise TypeError("duration_secs must be an integer")
            return cls(id=str(data["id"]), text=str(data["text"]), duration_secs=duration)
        except (KeyError, TypeError) as exc:
            raise DescriptionFileError(f"malformed description entry {dict(data)!r}: {exc}") from exc


@dataclass(slots=True)
class DescriptionList:
    """The ordered rotation plus account-level text limits."""

    descriptions: List[Description] = field(default_factory=list)
    is_premium: bool = False

    def __len__(self) -> int:
        return len(self.descriptions)

    def get(self, index: int) -> Optional[Description]:
        if 0 <= index < len(self.descriptions):
            return self.descriptions[index]
        return None

    def index_of(self, description_id: str) -> Optional[int]:
        for index, description in enumerate(self.descriptions):
            if description.id == description_id:
                return index
        return None

    def max_length(self) -> int:
        limit = MAX_LENGTH_PREMIUM if self.is_premium else MAX_LENGTH_FREE
        return min(limit, MAX_LENGTH_SHORT_DESCRIPTION)

    def copy(self) -> "DescriptionList":
        return DescriptionList(
            descriptions=[
                Description(d.id, d.text, d.duration_secs) for d in self.descriptions
            ],
            is_premium=self.is_premium,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "descriptions": [d.to_dict() for d in self.descriptions],
            "is_premium": self.is_premium,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DescriptionList":
        entries = data.get("descriptions")
        if not isinstance(entries, list):
            raise DescriptionFileError("'descriptions' must be a list")
        return cls(
            descriptions=[Description.from_dict(entry) for entry in entries],
            is_premium=bool(data.get("is_premium", False)),
        )

    @classmethod
    def example(cls) -> "DescriptionList":
        return cls(
            descriptions=[
                Description("morning", "☀️ Good morning! Ready for a new day", 3600),
                Description("working", "💻 Currently working...", 7200),
                Description("evening", "🌙 Relaxing in the evening", 3600),
            ],
            is_premium=False,
        )


def load_descriptions(path: Path) -> DescriptionList:
    """Read a description list from ``path``."""

    try:
        with Path(path).open("r", encoding="utf-8") as handle:
            data = json.load(handle)
    except OSError as exc:
        raise DescriptionFileError(f"cannot read {path}: {exc}") from exc
    except ValueError as exc:
        raise DescriptionFileError(f"cannot parse {path}: {exc}") from exc
    if not isinstance(data, Mapping):
        raise DescriptionFileError(f"{path}: root must be an object")
    return DescriptionList.from_dict(data)


def save_descriptions(path: Path, data: DescriptionList) -> None:
    """Write ``data`` to ``path`` through a temp file and an atomic replace."""

    path = Path(path)
    temp_path = path.with_name(path.name + ".tmp")
    try:
        with temp_path.open("w", encoding="utf-8") as handle:
            json.dump(data.to_dict(), handle, indent=2, ensure_ascii=False)
            handle.write("\n")
            handle.flush()
            os.fsync(handle.fileno())
        temp_path.replace(path)
    except Exception:
        temp_path.unlink(missing_ok=True)
        raise
