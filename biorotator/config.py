"""Configuration schema for a biorotator deployment.

The dataclasses below describe how a single rotation process is wired: which
bot account updates its profile description, how often the scheduler checks
for expired descriptions and where the description list and scheduler state
live on disk.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Sequence

DEFAULT_API_BASE_URL = "https://api.telegram.org"
DEFAULT_COMMAND_PREFIX = "/description_bot"


@dataclass(slots=True)
class TelegramConfig:
    """Telegram Bot API integration."""

    bot_token: str
    chat_ids: Sequence[int] = field(default_factory=tuple)
    api_base_url: str = DEFAULT_API_BASE_URL
    request_timeout: float = 10.0
    command_prefix: str = DEFAULT_COMMAND_PREFIX
    dry_run: bool = False


@dataclass(slots=True)
class SchedulerConfig:
    """Timing knobs for the rotation scheduler."""

    check_interval: timedelta = timedelta(seconds=1)
    override_duration: timedelta = timedelta(hours=1)
    min_update_interval: timedelta = timedelta(seconds=60)


@dataclass(slots=True)
class RotatorConfig:
    """Top-level configuration bundle."""

    telegram: TelegramConfig
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    descriptions_path: Path = field(default_factory=lambda: Path("descriptions.json"))
    state_path: Path = field(default_factory=lambda: Path("state.json"))
