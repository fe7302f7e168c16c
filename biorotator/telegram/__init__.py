"""Telegram Bot API integration."""

from .client import DryRunUpdater, TelegramProfileClient
from .errors import (
    DescriptionUpdater,
    ExternalBackoffError,
    RateLimitedError,
    UnauthorizedError,
    UpdateError,
    UpdateFailedError,
)
from .listener import CommandListener
from .rate_limiter import RateLimiter

__all__ = [
    "CommandListener",
    "DescriptionUpdater",
    "DryRunUpdater",
    "ExternalBackoffError",
    "RateLimitedError",
    "RateLimiter",
    "TelegramProfileClient",
    "UnauthorizedError",
    "UpdateError",
    "UpdateFailedError",
]
