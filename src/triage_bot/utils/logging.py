"""structlog setup for the bot.

Events go through stdlib logging so slack-bolt's and aiohttp's own loggers
share the same handlers. Every event dict is scrubbed by ``redact_event``
after exception formatting, so tracebacks are covered too.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator, Mapping, MutableMapping
from contextlib import contextmanager
from enum import StrEnum
from pathlib import Path
from typing import Any

import structlog

from triage_bot._version import __version__
from triage_bot.utils.security import SecretRedactor

SERVICE_NAME = "triage-bot"

_redactor = SecretRedactor()


class LogFormat(StrEnum):
    """Log output format options."""

    JSON = "json"
    CONSOLE = "console"


def redact_value(value: Any) -> Any:
    """Redact secrets in strings, recursing into mappings and sequences."""
    if isinstance(value, str):
        return _redactor.redact(value)
    if isinstance(value, Mapping):
        return {k: redact_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return type(value)(redact_value(v) for v in value)
    return value


def redact_event(
    logger: Any,
    method_name: str,
    event_dict: MutableMapping[str, Any],
) -> MutableMapping[str, Any]:
    """structlog processor applying :func:`redact_value` to every field."""
    for key, value in event_dict.items():
        event_dict[key] = redact_value(value)
    return event_dict


def add_service_info(
    logger: Any,
    method_name: str,
    event_dict: MutableMapping[str, Any],
) -> MutableMapping[str, Any]:
    event_dict.setdefault("service", SERVICE_NAME)
    event_dict.setdefault("version", __version__)
    return event_dict


def _level_number(level: str) -> int:
    number = logging.getLevelName(level.upper())
    if not isinstance(number, int):
        raise ValueError(f"Unknown log level: {level}")
    return number


def configure_logging(
    level: str = "INFO",
    log_format: LogFormat | str = LogFormat.JSON,
    file_path: Path | str | None = None,
) -> None:
    """Configure structlog and the stdlib root logger.

    Args:
        level: Level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: ``json`` for aggregation, ``console`` for humans
        file_path: Also write to this file when given

    Raises:
        ValueError: If the level or format is unknown.
    """
    numeric_level = _level_number(level)
    renderer: Any
    if LogFormat(log_format) is LogFormat.JSON:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(
            colors=sys.stderr.isatty(),
            exception_formatter=structlog.dev.plain_traceback,
        )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            add_service_info,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            redact_event,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    file_error: OSError | None = None
    if file_path is not None:
        path = Path(file_path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            handlers.append(logging.FileHandler(path))
        except OSError as e:
            file_error = e

    logging.basicConfig(format="%(message)s", level=numeric_level, handlers=handlers, force=True)

    if file_error is not None:
        structlog.get_logger().warning(
            "log_file_unavailable", path=str(file_path), error=str(file_error)
        )


@contextmanager
def request_context(**values: Any) -> Iterator[None]:
    """Attach ``values`` to every event logged inside the block.

    Example:
        with request_context(tenant_id="T123", channel_id="C123"):
            log.info("triage_requested")  # carries tenant_id and channel_id
    """
    with structlog.contextvars.bound_contextvars(**values):
        yield


class LogEventNames:
    """Event names shared by modules that log the same milestones."""

    # Bot lifecycle
    BOT_STARTING = "bot_starting"
    BOT_STARTED = "bot_started"
    BOT_STOPPING = "bot_stopping"
    BOT_STOPPED = "bot_stopped"

    # Triage requests
    TRIAGE_REQUESTED = "triage_requested"
    TRIAGE_COMPLETED = "triage_completed"
    TRIAGE_FAILED = "triage_failed"
    CHANNEL_ACCESS_DENIED = "channel_access_denied"

    # History retrieval
    HISTORY_PAGE_FETCHED = "history_page_fetched"
    HISTORY_TRUNCATED = "history_truncated"

    # Export
    EXPORT_UPLOADED = "export_uploaded"
    EXPORT_FAILED = "export_failed"

    # Credentials
    INSTALLATION_SAVED = "installation_saved"
    AUTHORIZATION_MISSING = "authorization_missing"
    AUTHORIZATION_STORE_UNAVAILABLE = "authorization_store_unavailable"

    # Cache operations
    CACHE_HIT = "cache_hit"
    CACHE_MISS = "cache_miss"

    # Reminders
    REMINDER_JOB_SCHEDULED = "reminder_job_scheduled"
    REMINDER_SENT = "reminder_sent"
    REMINDER_TENANT_FAILED = "reminder_tenant_failed"
