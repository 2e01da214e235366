"""Retrieve a channel's message history for a time window.

Pagination stops as soon as a page reaches back past the window start, so at
most one page beyond the boundary is read. A page cap and a wall-clock budget
bound the work for very large windows; hitting either marks the result as
truncated instead of failing the request.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import structlog

from triage_bot.config.schema import TriageConfig
from triage_bot.models.message import ChatMessage, format_slack_ts
from triage_bot.models.triage import HistoryResult, TimeWindow
from triage_bot.utils.async_helpers import TimeoutError, with_timeout
from triage_bot.utils.logging import LogEventNames

if TYPE_CHECKING:
    from triage_bot.interfaces.chat import ChatProvider

log = structlog.get_logger()


def utcnow() -> datetime:
    return datetime.now(UTC)


class HistoryFetcher:
    """Reads every message posted in a channel during the last N hours.

    Example:
        fetcher = HistoryFetcher(chat, config.triage)
        info = await fetcher.ensure_access("C123")
        result = await fetcher.fetch_window("C123", hours_back=7, join=False)
    """

    def __init__(
        self,
        chat: ChatProvider,
        config: TriageConfig | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        """Initialize the fetcher.

        Args:
            chat: Chat provider acting with the tenant's bot credential
            config: Page size and safety limits
            clock: Returns the current aware UTC time (injectable for tests)
        """
        self._chat = chat
        self._config = config or TriageConfig()
        self._clock = clock

    async def ensure_access(self, channel_id: str) -> dict[str, Any]:
        """Check the channel is visible and join it.

        Returns:
            Channel metadata from the platform.

        Raises:
            ChannelAccessError: If the channel is missing or cannot be joined.
        """
        info = await self._chat.get_channel_info(channel_id)
        await self._chat.join_channel(channel_id)
        return info

    async def fetch_window(
        self,
        channel_id: str,
        hours_back: int,
        *,
        join: bool = True,
    ) -> HistoryResult:
        """Fetch all messages with ``now - hours_back <= ts <= now``.

        Args:
            channel_id: Channel to read
            hours_back: Window size in hours
            join: Join the channel first (skip when ensure_access already ran)

        Returns:
            HistoryResult with messages sorted by timestamp ascending.

        Raises:
            ChannelAccessError: If the channel cannot be read.
        """
        if join:
            await self._chat.join_channel(channel_id)

        window = TimeWindow.past_hours(hours_back, self._clock())
        oldest = format_slack_ts(window.start)
        latest = format_slack_ts(window.end)

        collected: dict[str, ChatMessage] = {}
        cursor: str | None = None
        pages = 0
        truncated = False
        deadline = time.monotonic() + self._config.fetch_timeout

        while True:
            if pages >= self._config.max_pages:
                truncated = True
                log.warning(
                    LogEventNames.HISTORY_TRUNCATED,
                    channel_id=channel_id,
                    reason="max_pages",
                    pages=pages,
                )
                break

            remaining = deadline - time.monotonic()
            try:
                if remaining <= 0:
                    raise TimeoutError("history fetch budget exhausted")
                page = await with_timeout(
                    self._chat.fetch_history_page(
                        channel_id,
                        oldest=oldest,
                        latest=latest,
                        cursor=cursor,
                        limit=self._config.page_size,
                    ),
                    remaining,
                    error_message="history fetch budget exhausted",
                )
            except TimeoutError:
                truncated = True
                log.warning(
                    LogEventNames.HISTORY_TRUNCATED,
                    channel_id=channel_id,
                    reason="timeout",
                    pages=pages,
                )
                break

            pages += 1
            for message in page.messages:
                if window.contains(message.timestamp):
                    collected[message.message_id] = message

            log.debug(
                LogEventNames.HISTORY_PAGE_FETCHED,
                channel_id=channel_id,
                page=pages,
                count=len(page.messages),
            )

            if not page.next_cursor or not page.messages:
                break
            if min(m.timestamp for m in page.messages) < window.start:
                break
            cursor = page.next_cursor

        messages = sorted(collected.values(), key=lambda m: m.timestamp)
        log.info(
            "history_window_fetched",
            channel_id=channel_id,
            hours_back=hours_back,
            messages=len(messages),
            pages=pages,
            truncated=truncated,
        )
        return HistoryResult(
            window=window,
            messages=messages,
            pages_fetched=pages,
            truncated=truncated,
        )
