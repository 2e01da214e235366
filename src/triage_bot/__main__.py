"""Command-line entry point for ``triage-bot`` and ``python -m triage_bot``.

Modes:
- default: serve Slack events and the OAuth install pages until signalled
- ``--dry-run``: load and validate the configuration, then exit
- ``--trigger-reminders``: send every configured reminder once, then exit
"""

import argparse
import asyncio
import sys
from pathlib import Path

import structlog

from triage_bot._version import __version__
from triage_bot.config.loader import load_config
from triage_bot.config.schema import BotConfig
from triage_bot.utils.logging import LogFormat, configure_logging

log = structlog.get_logger()

DEFAULT_CONFIG_PATH = Path("config/config.yaml")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="triage-bot",
        description="Slack triage stats, CSV exports and scheduled reminders",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=DEFAULT_CONFIG_PATH,
        help=f"Path to the YAML configuration (default: {DEFAULT_CONFIG_PATH})",
    )
    parser.add_argument("-d", "--debug", action="store_true", help="Log at DEBUG level")
    parser.add_argument(
        "--format",
        choices=[f.value for f in LogFormat],
        default=LogFormat.CONSOLE.value,
        help="Log format until the configuration is loaded (default: console)",
    )

    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--dry-run",
        action="store_true",
        help="Validate the configuration and exit",
    )
    mode.add_argument(
        "--trigger-reminders",
        action="store_true",
        help="Send every configured reminder once and exit",
    )
    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    return build_parser().parse_args(argv)


def apply_logging_config(config: BotConfig, debug: bool = False) -> None:
    """Switch logging over to the settings in the loaded configuration."""
    file_config = config.logging.file
    configure_logging(
        level="DEBUG" if debug else config.logging.level,
        log_format=config.logging.format,
        file_path=file_config.path if file_config.enabled else None,
    )


async def run(args: argparse.Namespace) -> int:
    """Load configuration and run the selected mode.

    Returns:
        Process exit code.
    """
    try:
        config = load_config(args.config)
    except FileNotFoundError as e:
        log.error("configuration_file_not_found", path=str(args.config), error=str(e))
        return 1
    except ValueError as e:
        log.error("configuration_invalid", path=str(args.config), error=str(e))
        return 1

    apply_logging_config(config, debug=args.debug)
    log.info(
        "configuration_loaded",
        path=str(args.config),
        version=__version__,
        reminders=len(config.reminders),
    )

    if args.dry_run:
        log.info("dry_run_config_valid")
        return 0

    from triage_bot.core.bot import create_bot

    try:
        bot = create_bot(config)
        if args.trigger_reminders:
            sent = await bot.run_reminders_once()
            log.info("reminders_triggered", posts=sent)
        else:
            await bot.start()
    except Exception as e:
        log.exception("fatal_error", error=str(e))
        return 1
    return 0


def main(argv: list[str] | None = None) -> int:
    """Console script entry point."""
    args = parse_args(argv)
    configure_logging(level="DEBUG" if args.debug else "INFO", log_format=args.format)

    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        log.info("interrupted")
        return 0


if __name__ == "__main__":
    sys.exit(main())
