"""Rotate a Telegram profile description on a schedule."""

from .cli import main as cli_main
from .config_loader import load_config

__all__ = [
    "cli_main",
    "load_config",
    "config",
    "commands",
    "descriptions",
    "scheduler",
    "telegram",
]
