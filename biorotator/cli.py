"""Command line entry point for the description rotator."""
from __future__ import annotations

import argparse
import json
import logging
import signal
import sys
import threading
from pathlib import Path
from typing import Optional, Sequence

from .commands import CommandHandler
from .config_loader import ConfigError, load_config
from .descriptions import (
    DescriptionError,
    DescriptionList,
    DescriptionStore,
    load_descriptions,
    save_descriptions,
    validate_list,
    validate_list_all,
)
from .scheduler import DescriptionScheduler, SchedulerState, SharedState, load_state
from .telegram import (
    CommandListener,
    DryRunUpdater,
    RateLimiter,
    TelegramProfileClient,
    UpdateError,
)

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"

EXAMPLE_CONFIG = """\
telegram:
  bot_token: "123456:replace-me"
  chat_ids: []
  command_prefix: /description_bot
  dry_run: false
scheduler:
  check_interval: 1s
  override_duration: 1h
  min_update_interval: 60s
descriptions_path: descriptions.json
state_path: state.json
"""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Rotate a Telegram profile description")
    parser.add_argument(
        "--log-level",
        default="info",
        choices=["debug", "info", "warning", "error"],
        help="Logging verbosity (default: info)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Start the rotation and the command listener")
    run.add_argument(
        "--config",
        type=Path,
        required=True,
        help="Path to the YAML configuration file",
    )

    generate = sub.add_parser(
        "generate-config",
        help="Write example configuration and description files",
    )
    generate.add_argument(
        "--output-dir",
        type=Path,
        default=Path("."),
        help="Directory for config.example.yaml and descriptions.example.json",
    )

    validate = sub.add_parser("validate", help="Check a descriptions file")
    validate.add_argument(
        "--descriptions",
        type=Path,
        required=True,
        help="Path to the descriptions JSON file",
    )

    status = sub.add_parser("status", help="Print the persisted scheduler state")
    status.add_argument(
        "--config",
        type=Path,
        required=True,
        help="Path to the YAML configuration file",
    )

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level)

    if args.command == "run":
        return _command_run(args)
    if args.command == "generate-config":
        return _command_generate_config(args)
    if args.command == "validate":
        return _command_validate(args)
    if args.command == "status":
        return _command_status(args)

    parser.error("unknown command")
    return 1


def configure_logging(level: str) -> None:
    logging.basicConfig(level=getattr(logging, level.upper()), format=LOG_FORMAT)
    # httpx logs every request at INFO, which would include the bot token.
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _command_run(args: argparse.Namespace) -> int:
    try:
        config = load_config(args.config)
        store = DescriptionStore.load(config.descriptions_path)
        validate_list(store.snapshot())
    except (ConfigError, DescriptionError, OSError) as exc:
        logger.error("Cannot start: %s", exc)
        return 1
    logger.info("Loaded %d descriptions from %s", store.count(), config.descriptions_path)

    limiter = RateLimiter(config.scheduler.min_update_interval.total_seconds())
    client = TelegramProfileClient(config.telegram, limiter)
    try:
        if config.telegram.dry_run:
            updater = DryRunUpdater()
            logger.info("Dry run: profile updates will only be logged")
        else:
            if not client.is_authorized():
                logger.error("Telegram rejected the bot token")
                return 1
            updater = client

        state = SchedulerState.from_persistent(load_state(config.state_path))
        if state.clamp_index(store.count()):
            logger.warning("Stored index out of range, restarting rotation from the first description")
        if state.current_index > 0 or state.is_paused:
            logger.info("Resuming from index %d (paused: %s)", state.current_index, state.is_paused)
        shared = SharedState(state, config.state_path)

        scheduler = DescriptionScheduler(
            updater,
            store,
            shared,
            check_interval=config.scheduler.check_interval.total_seconds(),
            override_duration=config.scheduler.override_duration.total_seconds(),
        )
        handler = CommandHandler(
            config.telegram.command_prefix, shared, store, trigger=scheduler.trigger
        )
        listener: Optional[CommandListener] = None
        if config.telegram.chat_ids:
            listener = CommandListener(client, handler, config.telegram.chat_ids)
        else:
            logger.info("No chat_ids configured, command listener disabled")

        stop_event = threading.Event()
        _install_signal_handlers(stop_event)

        scheduler.start()
        if listener is not None:
            listener.start()
        logger.info("Description bot is running. Press Ctrl+C to stop.")
        try:
            while not stop_event.wait(1.0):
                pass
        except KeyboardInterrupt:  # pragma: no cover - interactive use
            pass
        finally:
            logger.info("Shutting down...")
            if listener is not None:
                listener.stop(timeout=2)
            scheduler.shutdown(timeout=30)
    except UpdateError as exc:
        logger.error("Telegram is unreachable: %s", exc)
        return 1
    finally:
        client.close()
    return 0


def _command_generate_config(args: argparse.Namespace) -> int:
    output_dir: Path = args.output_dir
    output_dir.mkdir(parents=True, exist_ok=True)
    config_path = output_dir / "config.example.yaml"
    descriptions_path = output_dir / "descriptions.example.json"
    config_path.write_text(EXAMPLE_CONFIG, encoding="utf-8")
    save_descriptions(descriptions_path, DescriptionList.example())

    print(f"✓ Example configuration written to: {config_path}")
    print(f"✓ Example descriptions written to: {descriptions_path}")
    print("\nTo use the bot:")
    print("1. Copy them to config.yaml and descriptions.json")
    print("2. Put your bot token and chat ids into config.yaml")
    print("3. Run: biorotator run --config config.yaml")
    return 0


def _command_validate(args: argparse.Namespace) -> int:
    try:
        data = load_descriptions(args.descriptions)
    except DescriptionError as exc:
        print(f"✗ {exc}", file=sys.stderr)
        return 1

    problems = validate_list_all(data)
    failed = 0
    for index, problem in enumerate(problems):
        if problem is None:
            entry = data.descriptions[index]
            print(f"✓ [{entry.id}] {entry.char_count()}/{data.max_length()} chars")
        else:
            failed += 1
            print(f"✗ {problem}")
    print(f"\n{len(problems) - failed} valid, {failed} invalid")
    return 1 if failed else 0


def _command_status(args: argparse.Namespace) -> int:
    try:
        config = load_config(args.config)
    except (ConfigError, OSError) as exc:
        print(f"✗ {exc}", file=sys.stderr)
        return 1

    persistent = load_state(config.state_path)
    output = persistent.to_dict()
    try:
        data = load_descriptions(config.descriptions_path)
    except DescriptionError as exc:
        output["descriptions_error"] = str(exc)
    else:
        current = data.get(persistent.current_index)
        output["description_count"] = len(data)
        output["current_description"] = current.to_dict() if current else None

    print(json.dumps(output, indent=2, ensure_ascii=False))
    return 0


def _install_signal_handlers(stop_event: threading.Event) -> None:
    def _stop(signum, frame) -> None:  # pragma: no cover - signal delivery
        logger.info("Received signal %s", signum)
        stop_event.set()

    signal.signal(signal.SIGINT, _stop)
    if hasattr(signal, "SIGTERM"):
        signal.signal(signal.SIGTERM, _stop)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
