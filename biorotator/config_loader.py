"""Utilities to load :mod:`biorotator.config` structures from YAML files."""
from __future__ import annotations

import datetime as _dt
import os
import re
from pathlib import Path
from typing import Any, Mapping

import yaml

from .config import (
    DEFAULT_API_BASE_URL,
    DEFAULT_COMMAND_PREFIX,
    RotatorConfig,
    SchedulerConfig,
    TelegramConfig,
)

BOT_TOKEN_ENV = "BIOROTATOR_BOT_TOKEN"

_DURATION_UNITS = {
    "s": _dt.timedelta(seconds=1),
    "m": _dt.timedelta(minutes=1),
    "h": _dt.timedelta(hours=1),
    "d": _dt.timedelta(days=1),
}

_COMPOUND_DURATION = re.compile(r"(?P<amount>\d+(?:\.\d+)?)(?P<unit>[smhd])")


class ConfigError(ValueError):
    """Raised when the configuration file is missing fields or malformed."""


def load_config(path: Path) -> RotatorConfig:
    """Load a configuration file into :class:`RotatorConfig`.

    Durations may be written as ``"30s"``, ``"5m"`` or ``"1h30m"``.  Fields
    omitted in the YAML file fall back to the defaults declared in
    :mod:`biorotator.config`.  A missing ``telegram.bot_token`` is taken from
    the ``BIOROTATOR_BOT_TOKEN`` environment variable.
    """

    raw = _load_yaml(path)

    telegram_section = raw.get("telegram") or {}
    if not isinstance(telegram_section, Mapping):
        raise ConfigError("'telegram' section must be a mapping")
    bot_token = telegram_section.get("bot_token") or os.environ.get(BOT_TOKEN_ENV)
    if not bot_token:
        raise ConfigError(f"telegram.bot_token is required (or set {BOT_TOKEN_ENV})")

    try:
        telegram = TelegramConfig(
            bot_token=str(bot_token),
            chat_ids=tuple(int(cid) for cid in telegram_section.get("chat_ids", []) or []),
            api_base_url=str(telegram_section.get("api_base_url", DEFAULT_API_BASE_URL)),
            request_timeout=float(telegram_section.get("request_timeout", 10.0)),
            command_prefix=str(telegram_section.get("command_prefix", DEFAULT_COMMAND_PREFIX)),
            dry_run=bool(telegram_section.get("dry_run", False)),
        )
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"invalid telegram section: {exc}") from exc

    scheduler_section = raw.get("scheduler") or {}
    scheduler = SchedulerConfig(
        check_interval=parse_duration(scheduler_section.get("check_interval", "1s")),
        override_duration=parse_duration(scheduler_section.get("override_duration", "1h")),
        min_update_interval=parse_duration(scheduler_section.get("min_update_interval", "60s")),
    )
    if scheduler.check_interval.total_seconds() <= 0:
        raise ConfigError("scheduler.check_interval must be positive")

    base_dir = path.parent
    descriptions_path = _resolve(base_dir, raw.get("descriptions_path", "descriptions.json"))
    state_path = _resolve(base_dir, raw.get("state_path", "state.json"))

    return RotatorConfig(
        telegram=telegram,
        scheduler=scheduler,
        descriptions_path=descriptions_path,
        state_path=state_path,
    )


def parse_duration(value: Any) -> _dt.timedelta:
    """Convert ``"90s"``, ``"5m"``, ``"1h30m"`` or a number of seconds to a timedelta."""

    if isinstance(value, _dt.timedelta):
        return value
    if isinstance(value, bool):
        raise ConfigError(f"unsupported duration value: {value!r}")
    if isinstance(value, (int, float)):
        return _dt.timedelta(seconds=float(value))
    if not isinstance(value, str):
        raise ConfigError(f"unsupported duration value: {value!r}")
    value = value.strip().lower()
    if value.isdigit():
        return _dt.timedelta(seconds=int(value))
    total = _dt.timedelta()
    position = 0
    for match in _COMPOUND_DURATION.finditer(value):
        if match.start() != position:
            break
        base = _DURATION_UNITS[match.group("unit")]
        total += _dt.timedelta(seconds=base.total_seconds() * float(match.group("amount")))
        position = match.end()
    if position == 0 or position != len(value):
        raise ConfigError(f"unknown duration format: {value}")
    return total


def _load_yaml(path: Path) -> Mapping[str, Any]:
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle)
    except yaml.YAMLError as exc:
        raise ConfigError(f"cannot parse {path}: {exc}") from exc
    if not isinstance(data, Mapping):
        raise ConfigError("configuration root must be a mapping")
    return data


def _resolve(base_dir: Path, value: Any) -> Path:
    candidate = Path(str(value)).expanduser()
    if candidate.is_absolute():
        return candidate
    return base_dir / candidate
