"""Validation rules for description text and whole description lists."""
from __future__ import annotations

import unicodedata
from typing import List, Optional, Set

from .models import DescriptionError, DescriptionList

OBJECT_REPLACEMENT = "\ufffc"

# Invisible characters that could hide content inside a profile text.
ZERO_WIDTH_CHARS = ("\u200b", "\u200c", "\u200d", "\u2060", "\ufeff")


class DescriptionValidationError(DescriptionError):
    """Raised when a description or description list breaks a rule."""


def validate_text(text: str, max_length: int) -> None:
    """Check a single candidate text; raise :class:`DescriptionValidationError`."""

    if not text:
        raise DescriptionValidationError("Description text cannot be empty.")

    length = len(text)
    if length > max_length:
        raise DescriptionValidationError(f"Text too long: {length} chars (max: {max_length})")

    for char in text:
        if char in "\n\t":
            continue
        if unicodedata.category(char) == "Cc":
            raise DescriptionValidationError(
                f"Invalid character detected (code: U+{ord(char):04X}). Only text is allowed."
            )

    if OBJECT_REPLACEMENT in text:
        raise DescriptionValidationError(
            "Embedded objects (images, files) are not allowed. Only text is supported."
        )

    for char in ZERO_WIDTH_CHARS:
        if char in text:
            raise DescriptionValidationError(
                f"Invisible/zero-width characters detected (U+{ord(char):04X}). "
                "Please use only visible text."
            )


def validate_list(data: DescriptionList) -> None:
    """Raise on the first problem found in ``data``."""

    for problem in _iter_problems(data):
        if problem is not None:
            raise DescriptionValidationError(problem)


def validate_list_all(data: DescriptionList) -> List[Optional[str]]:
    """Return one entry per description: ``None`` if valid, else the problem.

    An empty list yields a single problem entry.
    """

    return list(_iter_problems(data))


def _iter_problems(data: DescriptionList):
    if not data.descriptions:
        yield "No descriptions configured"
        return

    max_length = data.max_length()
    seen: Set[str] = set()
    for index, description in enumerate(data.descriptions):
        if description.id in seen:
            yield f"Duplicate description ID found: {description.id}"
            continue
        seen.add(description.id)
        if not description.text:
            yield f"Description at index {index} (id: {description.id}) is empty"
            continue
        length = description.char_count()
        if length > max_length:
            yield (
                f"Description at index {index} (id: {description.id}) exceeds maximum "
                f"length: {length} > {max_length}"
            )
            continue
        if description.duration_secs <= 0:
            yield (
                f"Description at index {index} (id: {description.id}) has invalid duration: "
                f"{description.duration_secs} seconds (must be > 0)"
            )
            continue
        yield None
