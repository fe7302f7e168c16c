"""Failures reported by a description update service."""
from __future__ import annotations

from typing import Optional, Protocol


class UpdateError(RuntimeError):
    """Generic failure while applying a profile description."""


class RateLimitedError(UpdateError):
    """The service answered "too many requests, retry after N seconds"."""

    def __init__(self, retry_after: float, message: Optional[str] = None) -> None:
        super().__init__(message or f"rate limited, retry after {retry_after:g}s")
        self.retry_after = retry_after


class ExternalBackoffError(UpdateError):
    """The service demanded a flood wait of N seconds before the next call."""

    def __init__(self, seconds: float, message: Optional[str] = None) -> None:
        super().__init__(message or f"flood wait required: {seconds:g}s")
        self.seconds = seconds


class UnauthorizedError(UpdateError):
    """Raised when the credentials are rejected by the API."""


class UpdateFailedError(UpdateError):
    """Any other failure (malformed request, network error, server error)."""


class DescriptionUpdater(Protocol):
    """Applies a text as the live profile description."""

    def update_description(self, text: str) -> None:
        """Return on success; raise :class:`UpdateError` otherwise."""
