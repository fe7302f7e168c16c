"""Small text helpers for command replies."""
from __future__ import annotations


def truncate(text: str, max_len: int) -> str:
    """Cut ``text`` to ``max_len`` characters, adding ``...`` if shortened."""

    if len(text) <= max_len:
        return text
    return text[:max_len] + "..."


def format_duration(secs: float) -> str:
    """Render seconds as ``45s``, ``5m``, ``2h`` or ``1h 30m``."""

    secs = int(secs)
    if secs < 60:
        return f"{secs}s"
    if secs < 3600:
        return f"{secs // 60}m"
    hours, mins = secs // 3600, (secs % 3600) // 60
    if mins == 0:
        return f"{hours}h"
    return f"{hours}h {mins}m"
