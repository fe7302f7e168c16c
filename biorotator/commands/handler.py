"""Execute bot commands against the scheduler state and description store."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from importlib import metadata
from typing import Callable, Optional

from biorotator.descriptions import (
    Description,
    DescriptionError,
    DescriptionNotFoundError,
    DescriptionStore,
    validate_text,
)
from biorotator.scheduler.state import SharedState

from .formatting import format_duration, truncate
from .parser import COMMAND_HELP, BotCommand, CommandError, CommandKind, parse_command

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CommandResult:
    """Reply for the user plus whether the scheduler should run right away."""

    success: bool
    message: str
    trigger_update: bool = False

    @classmethod
    def ok(cls, message: str, *, trigger_update: bool = False) -> "CommandResult":
        return cls(True, message, trigger_update)

    @classmethod
    def error(cls, message: str) -> "CommandResult":
        return cls(False, message, False)


class CommandHandler:
    """Apply commands directly to shared state.

    State mutations are persisted before the reply is produced, so they are
    visible to the very next scheduler cycle.  ``trigger`` is called for
    results that ask for an immediate update.
    """

    def __init__(
        self,
        prefix: str,
        state: SharedState,
        descriptions: DescriptionStore,
        trigger: Optional[Callable[[], None]] = None,
    ) -> None:
        self._prefix = prefix
        self._state = state
        self._descriptions = descriptions
        self._trigger = trigger

    def handle(self, message_text: str) -> Optional[CommandResult]:
        """Parse and execute ``message_text``; ``None`` if it is not a command."""

        try:
            command = parse_command(message_text, self._prefix)
        except CommandError as exc:
            return CommandResult.error(str(exc))
        if command is None:
            return None

        logger.debug("Handling command: %s", command)
        result = self.execute(command)
        logger.info(
            "Command %s: success=%s, trigger_update=%s",
            command.kind.value,
            result.success,
            result.trigger_update,
        )
        if result.trigger_update and self._trigger is not None:
            self._trigger()
        return result

    def execute(self, command: BotCommand) -> CommandResult:
        handler = getattr(self, f"_handle_{command.kind.value}")
        try:
            return handler(command)
        except DescriptionError as exc:
            return CommandResult.error(str(exc))

    # ------------------------------------------------------------------
    # Rotation control
    def _handle_skip(self, command: BotCommand) -> CommandResult:
        with self._state.write(persist=True) as state:
            if state.is_paused:
                return CommandResult.error("Cannot skip while paused. Use 'resume' first.")
            state.clear_deadline()
        return CommandResult.ok("✓ Skipping current description...", trigger_update=True)

    def _handle_goto(self, command: BotCommand) -> CommandResult:
        index = self._descriptions.resolve(command.target or "")
        description = self._descriptions.get(index)
        with self._state.write(persist=True) as state:
            state.set_index(index)
        label = f"[{description.id}]: \"{truncate(description.text, 30)}\"" if description else f"#{index + 1}"
        return CommandResult.ok(f"✓ Jumping to {label}", trigger_update=True)

    def _handle_pause(self, command: BotCommand) -> CommandResult:
        with self._state.write(persist=True) as state:
            if state.is_paused:
                return CommandResult.error("Already paused.")
            state.is_paused = True
        return CommandResult.ok("⏸ Description rotation paused.")

    def _handle_resume(self, command: BotCommand) -> CommandResult:
        with self._state.write(persist=True) as state:
            if not state.is_paused:
                return CommandResult.error("Already running.")
            state.is_paused = False
        return CommandResult.ok("▶ Description rotation resumed.", trigger_update=True)

    def _handle_set(self, command: BotCommand) -> CommandResult:
        text = command.text or ""
        validate_text(text, self._descriptions.max_length())
        with self._state.write(persist=True) as state:
            state.set_override(text)
            state.clear_deadline()
        return CommandResult.ok(
            f"✓ Setting custom description: \"{truncate(text, 30)}\"", trigger_update=True
        )

    # ------------------------------------------------------------------
    # Read-only views
    def _handle_status(self, command: BotCommand) -> CommandResult:
        with self._state.read() as state, self._descriptions.read() as data:
            current = data.get(state.current_index)
            current_desc = (
                f"[{current.id}] \"{truncate(current.text, 30)}\"" if current else "None"
            )
            remaining = state.time_remaining()
            time_info = f"{format_duration(remaining)} remaining" if remaining is not None else "N/A"
            lines = [
                f"Status: {'⏸ Paused' if state.is_paused else '▶ Running'}",
                f"Current: {current_desc}",
                f"Index: {state.current_index + 1}/{len(data)}",
                f"Time: {time_info}",
                f"Account: {'Premium' if data.is_premium else 'Free'}",
            ]
            if state.pending_override is not None:
                lines.append(f"Pending custom: \"{truncate(state.pending_override, 30)}\"")
        return CommandResult.ok("\n".join(lines))

    def _handle_list(self, command: BotCommand) -> CommandResult:
        with self._state.read() as state, self._descriptions.read() as data:
            if not data.descriptions:
                return CommandResult.error("No descriptions configured.")
            lines = ["Configured descriptions:"]
            for index, description in enumerate(data.descriptions):
                marker = "→ " if index == state.current_index else "  "
                lines.append(
                    f"{marker}[{description.id}] {truncate(description.text, 25)} "
                    f"({format_duration(description.duration_secs)})"
                )
        return CommandResult.ok("\n".join(lines))

    def _handle_view(self, command: BotCommand) -> CommandResult:
        index = self._descriptions.resolve(command.target or "")
        with self._descriptions.read() as data:
            description = data.get(index)
            max_length = data.max_length()
        if description is None:
            raise DescriptionNotFoundError(f"Description not found: '{command.target}'.")
        return CommandResult.ok(
            f"Description [{description.id}]:\n"
            f"Text: \"{description.text}\"\n"
            f"Duration: {format_duration(description.duration_secs)}\n"
            f"Length: {description.char_count()}/{max_length} chars"
        )

    def _handle_help(self, command: BotCommand) -> CommandResult:
        lines = [f"Description Bot Commands (prefix: {self._prefix})", ""]
        for usage, aliases, summary in COMMAND_HELP:
            alias_str = f" {aliases}" if aliases else ""
            lines.append(f"  {usage}{alias_str} - {summary}")
        return CommandResult.ok("\n".join(lines))

    def _handle_info(self, command: BotCommand) -> CommandResult:
        try:
            version = metadata.version("biorotator")
        except metadata.PackageNotFoundError:
            version = "unknown"
        return CommandResult.ok(
            f"Description Bot v{version}\n"
            "Rotates the profile description through a configured list."
        )

    # ------------------------------------------------------------------
    # Structural edits
    def _handle_reload(self, command: BotCommand) -> CommandResult:
        old_count, new_count = self._descriptions.reload()
        with self._state.write(persist=True) as state:
            state.clamp_index(new_count)
        return CommandResult.ok(f"✓ Reloaded configuration. {old_count} → {new_count} descriptions.")

    def _handle_add(self, command: BotCommand) -> CommandResult:
        description = Description(
            id=command.target or "",
            text=command.text or "",
            duration_secs=command.duration_secs or 0,
        )
        self._descriptions.add(description)
        return CommandResult.ok(
            f"✓ Added description [{description.id}]: \"{truncate(description.text, 25)}\" "
            f"({format_duration(description.duration_secs)})"
        )

    def _handle_edit(self, command: BotCommand) -> CommandResult:
        text = command.text or ""
        self._descriptions.edit_text(command.target or "", text)
        return CommandResult.ok(f"✓ Updated [{command.target}]: \"{truncate(text, 30)}\"")

    def _handle_duration(self, command: BotCommand) -> CommandResult:
        new_duration = command.duration_secs or 0
        old_duration = self._descriptions.set_duration(command.target or "", new_duration)
        return CommandResult.ok(
            f"✓ Updated [{command.target}] duration: "
            f"{format_duration(old_duration)} → {format_duration(new_duration)}"
        )

    def _handle_delete(self, command: BotCommand) -> CommandResult:
        removed_index, removed = self._descriptions.delete(command.target or "")
        count = self._descriptions.count()
        with self._state.write(persist=True) as state:
            if removed_index < state.current_index:
                state.current_index -= 1
            state.clamp_index(count)
        return CommandResult.ok(f"✓ Deleted [{removed.id}]: \"{truncate(removed.text, 30)}\"")
