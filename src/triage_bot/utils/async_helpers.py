"""Error types shared by the triage pipeline, plus a timeout helper.

Nothing here retries. Each external call is attempted once and its failure
propagates to the error boundary that owns it.
"""

from __future__ import annotations

import asyncio
import builtins
from collections.abc import Awaitable
from typing import TypeVar

import structlog

log = structlog.get_logger()

T = TypeVar("T")


class TriageBotError(Exception):
    """Base exception for all triage bot errors."""


class AuthorizationError(TriageBotError):
    """No usable bot credential exists for a tenant."""


class AuthorizationUnavailableError(AuthorizationError):
    """The credential store could not be consulted.

    Raised instead of a plain AuthorizationError so callers can tell
    "not installed" apart from "store unavailable".
    """


class ChannelAccessError(TriageBotError):
    """The bot cannot read the requested channel.

    Attributes:
        channel_id: Channel that was requested.
        reason: Slack error code, when one was returned.
    """

    def __init__(self, message: str, channel_id: str, reason: str | None = None) -> None:
        super().__init__(message)
        self.channel_id = channel_id
        self.reason = reason


class ExportError(TriageBotError):
    """Serializing or uploading the tabular export failed."""


class StoreError(TriageBotError):
    """Reading or writing the credential store failed."""


class TimeoutError(TriageBotError):
    """Operation timed out."""


async def with_timeout(
    aw: Awaitable[T],
    seconds: float,
    error_message: str | None = None,
) -> T:
    """Await ``aw`` for at most ``seconds``.

    Raises:
        TimeoutError: This package's TimeoutError, so callers can catch it
            alongside the other TriageBotError types.
    """
    try:
        return await asyncio.wait_for(aw, timeout=seconds)
    except builtins.TimeoutError as e:
        log.warning("operation_timeout", timeout=seconds)
        raise TimeoutError(error_message or f"Operation timed out after {seconds}s") from e
