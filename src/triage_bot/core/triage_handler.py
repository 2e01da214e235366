"""Triage request pipeline orchestrator.

This module implements the TriageHandler class that runs one triage request
end to end:
1. Check the bot can see and join the channel
2. Tell the requester the work has started
3. Fetch the channel history for the window
4. Classify messages and post the per-level summary
5. Export every message as CSV into the same thread

Steps 1-4 share one error boundary that turns failures into an apology plus
threaded debug details. Step 5 has its own boundary so a failed upload never
takes back a summary that was already posted.
"""

from __future__ import annotations

import json
import time
from collections.abc import Callable
from datetime import datetime
from typing import TYPE_CHECKING, Any

import structlog

from triage_bot.config.schema import BotConfig
from triage_bot.core.aggregator import format_summary_blocks, format_summary_text, summarize
from triage_bot.core.classifier import MessageClassifier
from triage_bot.core.exporter import export_filename, export_title, to_delimited_text
from triage_bot.core.history import HistoryFetcher, utcnow
from triage_bot.models.triage import TriageOutcome, TriageRequest
from triage_bot.utils.async_helpers import ChannelAccessError
from triage_bot.utils.logging import LogEventNames
from triage_bot.utils.security import SecretRedactor

if TYPE_CHECKING:
    from triage_bot.interfaces.chat import ChatProvider
    from triage_bot.models.installation import BotCredential
    from triage_bot.models.message import EnrichedMessage

log = structlog.get_logger()

APOLOGY_TEXT = ":warning: Sorry but something went wrong."


def _working_notice(request: TriageRequest) -> str:
    return (
        f"*You asked for triage stats for <#{request.channel_id}>*.\n"
        f"I'll work on the stats for the past {request.hours_back} hours right away!"
    )


def _debug_info(request: TriageRequest) -> str:
    return (
        "Debug info:\n"
        f"• selectedChannelId={request.channel_id}\n"
        f"• submittedByUserId={request.requesting_user_id}\n"
        f"• nHoursToGoBack={request.hours_back}"
    )


class TriageHandler:
    """Runs the triage pipeline for one request at a time.

    The handler holds no per-request state, so one instance serves every
    tenant concurrently; the chat provider and credential come with the call.

    Example:
        handler = TriageHandler(config)
        outcome = await handler.handle(request, SlackAdapter(client), credential)
    """

    def __init__(
        self,
        config: BotConfig,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        """Initialize the TriageHandler.

        Args:
            config: Bot configuration (taxonomy and triage settings)
            clock: Current-time source handed to the history fetcher
        """
        self._config = config
        self._clock = clock
        self._classifier = MessageClassifier(config.taxonomy)
        self._redactor = SecretRedactor()

    async def handle(
        self,
        request: TriageRequest,
        chat: ChatProvider,
        credential: BotCredential,
    ) -> TriageOutcome:
        """Process a triage request through the full pipeline.

        Args:
            request: Channel, window and requester
            chat: Chat provider acting with the tenant's bot credential
            credential: The tenant's bot identity, used to skip its own messages

        Returns:
            TriageOutcome indicating how far the request got
        """
        start_time = time.time()
        log.info(
            LogEventNames.TRIAGE_REQUESTED,
            tenant_id=request.tenant_id,
            channel_id=request.channel_id,
            hours_back=request.hours_back,
            user_id=request.requesting_user_id,
        )

        fetcher = HistoryFetcher(chat, self._config.triage, clock=self._clock)

        try:
            # Step 1: Nothing is posted until the channel is known readable
            info = await fetcher.ensure_access(request.channel_id)
        except ChannelAccessError as e:
            log.warning(
                LogEventNames.CHANNEL_ACCESS_DENIED,
                channel_id=request.channel_id,
                reason=e.reason,
            )
            await self._report_failure(
                chat,
                request,
                e,
                f":warning: Sorry but I can't read <#{request.channel_id}>. "
                "Please check the channel exists and that I'm allowed to join it.",
            )
            return TriageOutcome.CHANNEL_ACCESS_DENIED
        except Exception as e:
            log.exception(LogEventNames.TRIAGE_FAILED, error=str(e))
            await self._report_failure(chat, request, e, APOLOGY_TEXT)
            return TriageOutcome.ERROR

        try:
            # Step 2: Feedback before the expensive part
            dm_channel, thread_id = await chat.post_message(
                request.requesting_user_id,
                _working_notice(request),
            )
            members = info.get("num_members")
            if members is not None:
                await chat.post_message(
                    dm_channel,
                    "A number for you while you wait.. the channel has "
                    f"{members} members (including apps) currently",
                    thread_id=thread_id,
                )

            # Step 3: Fetch the window
            history = await fetcher.fetch_window(
                request.channel_id,
                request.hours_back,
                join=False,
            )
            if history.truncated:
                await chat.post_message(
                    dm_channel,
                    f"Heads up: <#{request.channel_id}> has more history than I could read "
                    f"in one go, so these stats cover the most recent {len(history.messages)} "
                    "messages only.",
                    thread_id=thread_id,
                )

            # Step 4: Classify and summarize
            enriched = self._classifier.enrich(
                history.messages,
                request.channel_id,
                excluded_author_id=credential.bot_user_id or credential.bot_id,
            )
            working = self._classifier.working_set(enriched)
            summary = summarize(working, self._config.taxonomy)
            await chat.post_message(
                dm_channel,
                format_summary_text(summary),
                thread_id=thread_id,
                blocks=format_summary_blocks(summary),
            )
        except Exception as e:
            log.exception(
                LogEventNames.TRIAGE_FAILED,
                channel_id=request.channel_id,
                error=str(e),
            )
            await self._report_failure(chat, request, e, APOLOGY_TEXT)
            return TriageOutcome.ERROR

        # Step 5: Export; failures here leave the summary standing
        export_set = enriched if self._config.triage.export_untagged else working
        exported = await self._export(chat, request, export_set, dm_channel, thread_id)

        outcome = TriageOutcome.COMPLETED if exported else TriageOutcome.COMPLETED_WITHOUT_EXPORT
        log.info(
            LogEventNames.TRIAGE_COMPLETED,
            channel_id=request.channel_id,
            outcome=outcome.value,
            messages=len(enriched),
            working_set=len(working),
            truncated=history.truncated,
            duration_seconds=round(time.time() - start_time, 2),
        )
        return outcome

    async def _export(
        self,
        chat: ChatProvider,
        request: TriageRequest,
        messages: list[EnrichedMessage],
        dm_channel: str,
        thread_id: str,
    ) -> bool:
        """Upload the CSV export. Returns False if it could not be delivered."""
        try:
            content = to_delimited_text(messages, self._config.taxonomy)
            await chat.upload_file(
                dm_channel,
                content,
                filename=export_filename(request.hours_back),
                title=export_title(request.hours_back),
                thread_id=thread_id,
            )
        except Exception as e:
            log.error(
                LogEventNames.EXPORT_FAILED,
                channel_id=request.channel_id,
                error=str(e),
            )
            return False

        log.info(
            LogEventNames.EXPORT_UPLOADED,
            channel_id=request.channel_id,
            rows=len(messages),
        )
        return True

    def error_detail(self, error: Exception) -> str:
        """Render an exception as redacted JSON for the debug thread."""
        detail: dict[str, Any] = {"type": type(error).__name__, "message": str(error)}
        if isinstance(error, ChannelAccessError):
            detail["channel_id"] = error.channel_id
            detail["reason"] = error.reason
        return self._redactor.redact(json.dumps(detail, indent=2))

    async def _report_failure(
        self,
        chat: ChatProvider,
        request: TriageRequest,
        error: Exception,
        text: str,
    ) -> None:
        """DM an apology with the request parameters and error threaded below it."""
        try:
            dm_channel, thread_id = await chat.post_message(request.requesting_user_id, text)
            await chat.post_message(dm_channel, _debug_info(request), thread_id=thread_id)
            await chat.post_message(
                dm_channel,
                f"```{self.error_detail(error)}```",
                thread_id=thread_id,
            )
        except Exception as e:
            log.error("send_error_reply_failed", user_id=request.requesting_user_id, error=str(e))
