"""Turn chat messages into structured bot commands."""
from __future__ import annotations

import enum
import re
from dataclasses import dataclass
from typing import Optional

_DURATION_PART = re.compile(r"(?P<amount>\d+)(?P<unit>[smhd])")
_DURATION_UNITS = {"s": 1, "m": 60, "h": 3600, "d": 86400}


class CommandError(ValueError):
    """Raised when a command is recognised but its arguments are invalid."""


class CommandKind(enum.Enum):
    SKIP = "skip"
    STATUS = "status"
    LIST = "list"
    VIEW = "view"
    GOTO = "goto"
    PAUSE = "pause"
    RESUME = "resume"
    RELOAD = "reload"
    HELP = "help"
    SET = "set"
    ADD = "add"
    EDIT = "edit"
    DURATION = "duration"
    DELETE = "delete"
    INFO = "info"


@dataclass(frozen=True, slots=True)
class BotCommand:
    """A parsed command.

    ``target`` carries the ID/index argument, ``text`` the description text
    and ``duration_secs`` the parsed duration, depending on ``kind``.
    """

    kind: CommandKind
    target: Optional[str] = None
    text: Optional[str] = None
    duration_secs: Optional[int] = None


_ALIASES = {
    "skip": CommandKind.SKIP,
    "next": CommandKind.SKIP,
    "status": CommandKind.STATUS,
    "stat": CommandKind.STATUS,
    "s": CommandKind.STATUS,
    "list": CommandKind.LIST,
    "ls": CommandKind.LIST,
    "l": CommandKind.LIST,
    "view": CommandKind.VIEW,
    "show": CommandKind.VIEW,
    "goto": CommandKind.GOTO,
    "go": CommandKind.GOTO,
    "jump": CommandKind.GOTO,
    "pause": CommandKind.PAUSE,
    "stop": CommandKind.PAUSE,
    "resume": CommandKind.RESUME,
    "start": CommandKind.RESUME,
    "continue": CommandKind.RESUME,
    "reload": CommandKind.RELOAD,
    "refresh": CommandKind.RELOAD,
    "help": CommandKind.HELP,
    "h": CommandKind.HELP,
    "?": CommandKind.HELP,
    "set": CommandKind.SET,
    "add": CommandKind.ADD,
    "new": CommandKind.ADD,
    "edit": CommandKind.EDIT,
    "change": CommandKind.EDIT,
    "duration": CommandKind.DURATION,
    "time": CommandKind.DURATION,
    "delete": CommandKind.DELETE,
    "remove": CommandKind.DELETE,
    "rm": CommandKind.DELETE,
    "del": CommandKind.DELETE,
    "info": CommandKind.INFO,
}

# (usage, aliases, summary) rows for the help text.
COMMAND_HELP = (
    ("skip", "(next)", "End the current timer and update right away"),
    ("status", "(stat, s)", "Show current status"),
    ("list", "(ls, l)", "List all descriptions"),
    ("view <id>", "(show)", "View description details"),
    ("goto <id|#>", "(go, jump)", "Jump to a specific description"),
    ("pause", "(stop)", "Pause rotation"),
    ("resume", "(start, continue)", "Resume rotation"),
    ("reload", "(refresh)", "Reload descriptions from file"),
    ("set <text>", "", "Show a custom description once"),
    ("add <id> <duration> <text>", "(new)", "Add a description"),
    ("edit <id> <text>", "(change)", "Edit description text"),
    ("duration <id> <duration>", "(time)", "Change description duration"),
    ("delete <id>", "(remove, rm, del)", "Delete a description"),
    ("info", "", "Show bot information"),
    ("help", "(h, ?)", "Show this help"),
)


def parse_command(text: str, prefix: str) -> Optional[BotCommand]:
    """Parse ``text``; return ``None`` when it is not addressed to the bot.

    Raises :class:`CommandError` for a known command with bad arguments.
    """

    text = text.strip()
    if not text.startswith(prefix):
        return None
    rest = text[len(prefix):]
    if rest and not rest[0].isspace():
        # "/description_botx" is a different command.
        return None
    rest = rest.strip()
    if not rest:
        return BotCommand(CommandKind.HELP)

    parts = rest.split(None, 1)
    name = parts[0].lower()
    args = parts[1].strip() if len(parts) > 1 else ""
    kind = _ALIASES.get(name)
    if kind is None:
        raise CommandError(f"Unknown command: '{name}'. Use 'help' to see available commands.")

    if kind in (CommandKind.VIEW, CommandKind.GOTO, CommandKind.DELETE):
        if not args:
            raise CommandError(f"Usage: {kind.value} <id>")
        return BotCommand(kind, target=args)
    if kind is CommandKind.SET:
        if not args:
            raise CommandError("Usage: set <text>")
        return BotCommand(kind, text=args)
    if kind is CommandKind.ADD:
        fields = args.split(None, 2)
        if len(fields) < 3:
            raise CommandError("Usage: add <id> <duration> <text>")
        return BotCommand(
            kind, target=fields[0], duration_secs=parse_duration(fields[1]), text=fields[2]
        )
    if kind is CommandKind.EDIT:
        fields = args.split(None, 1)
        if len(fields) < 2:
            raise CommandError("Usage: edit <id> <text>")
        return BotCommand(kind, target=fields[0], text=fields[1])
    if kind is CommandKind.DURATION:
        fields = args.split()
        if len(fields) != 2:
            raise CommandError("Usage: duration <id> <duration>")
        return BotCommand(kind, target=fields[0], duration_secs=parse_duration(fields[1]))
    return BotCommand(kind)


def parse_duration(value: str) -> int:
    """Parse ``"90"``, ``"30s"``, ``"5m"``, ``"2h"``, ``"1d"`` or ``"1h30m"`` into seconds."""

    value = value.strip().lower()
    if value.isdigit():
        return int(value)
    total = 0
    position = 0
    for match in _DURATION_PART.finditer(value):
        if match.start() != position:
            break
        total += int(match.group("amount")) * _DURATION_UNITS[match.group("unit")]
        position = match.end()
    if position == 0 or position != len(value):
        raise CommandError(f"Invalid duration: '{value}'. Use e.g. 30s, 5m, 2h or 1h30m.")
    return total
