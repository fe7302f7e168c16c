"""Bot command parsing and handling."""

from .formatting import format_duration, truncate
from .handler import CommandHandler, CommandResult
from .parser import BotCommand, CommandError, CommandKind, parse_command, parse_duration

__all__ = [
    "BotCommand",
    "CommandError",
    "CommandHandler",
    "CommandKind",
    "CommandResult",
    "format_duration",
    "parse_command",
    "parse_duration",
    "truncate",
]
