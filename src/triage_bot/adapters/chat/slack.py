"""Slack chat adapter using slack-sdk's async Web API client.

This module implements the ChatProvider protocol for one workspace. slack-bolt
hands every request a client already authorized for the requesting team; the
reminder scheduler builds one from a resolved credential instead.

Features:
- Channel access checks mapped to ChannelAccessError
- Paginated history reads between two timestamps
- Thread support for replies and file uploads
"""

from __future__ import annotations

from typing import Any

import structlog
from slack_sdk.errors import SlackApiError
from slack_sdk.web.async_client import AsyncWebClient

from ...interfaces.chat import HistoryPage
from ...models.installation import BotCredential
from ...models.message import ChatMessage, parse_slack_ts
from ...utils.async_helpers import ChannelAccessError

log = structlog.get_logger()

# Slack error codes meaning "this bot cannot see or read that channel"
CHANNEL_ACCESS_ERRORS = frozenset(
    {
        "channel_not_found",
        "not_in_channel",
        "is_archived",
        "missing_scope",
        "method_not_supported_for_channel_type",
        "restricted_action",
        "not_allowed_token_type",
        "access_denied",
    }
)


class SlackAdapterError(Exception):
    """Base exception for Slack adapter errors."""


class SendError(SlackAdapterError):
    """Raised when posting a message, view or file fails."""


def _error_code(error: SlackApiError) -> str | None:
    response = error.response
    code = response.get("error") if response is not None else None
    return str(code) if code else None


def message_from_payload(channel_id: str, payload: dict[str, Any]) -> ChatMessage:
    """Convert a ``conversations.history`` message into a ChatMessage."""
    ts = str(payload.get("ts", ""))
    reactions = tuple(
        str(reaction.get("name", "")) for reaction in payload.get("reactions", []) or []
    )
    return ChatMessage(
        channel_id=channel_id,
        message_id=ts,
        thread_id=payload.get("thread_ts"),
        user_id=payload.get("user", ""),
        text=payload.get("text", "") or "",
        timestamp=parse_slack_ts(ts),
        bot_id=payload.get("bot_id"),
        subtype=payload.get("subtype"),
        reactions=reactions,
        reply_count=int(payload.get("reply_count", 0) or 0),
        raw_event=payload,
    )


class SlackAdapter:
    """Slack implementation of the ChatProvider protocol.

    Example:
        adapter = SlackAdapter(context.client)  # inside a bolt listener
        channel, ts = await adapter.post_message("U123", "Working on it!")
        await adapter.post_message(channel, "More soon", thread_id=ts)
    """

    def __init__(self, client: AsyncWebClient) -> None:
        """Initialize the Slack adapter.

        Args:
            client: Web API client authorized for a single workspace.
        """
        self._client = client

    @classmethod
    def for_credential(cls, credential: BotCredential) -> SlackAdapter:
        """Build an adapter acting with a resolved bot credential."""
        return cls(AsyncWebClient(token=credential.bot_token))

    def _channel_error(self, action: str, channel_id: str, error: SlackApiError) -> Exception:
        code = _error_code(error)
        if code in CHANNEL_ACCESS_ERRORS:
            log.warning("channel_access_error", action=action, channel_id=channel_id, error=code)
            return ChannelAccessError(
                f"Cannot {action} channel {channel_id}: {code}",
                channel_id=channel_id,
                reason=code,
            )
        log.error("slack_api_error", action=action, channel_id=channel_id, error=str(error))
        return SlackAdapterError(f"Failed to {action} channel {channel_id}: {error}")

    async def post_message(
        self,
        channel_id: str,
        text: str,
        thread_id: str | None = None,
        blocks: list[dict[str, Any]] | None = None,
    ) -> tuple[str, str]:
        """Post a message to a channel or user, optionally in a thread.

        Args:
            channel_id: Target channel, or a user ID for a DM.
            text: Plain text message (fallback for rich formatting).
            thread_id: Parent message ts for threading (optional).
            blocks: Optional Block Kit blocks.

        Returns:
            (resolved channel ID, ts) of the sent message.

        Raises:
            SendError: If message delivery fails.
        """
        try:
            kwargs: dict[str, Any] = {
                "channel": channel_id,
                "text": text,
            }

            if thread_id:
                kwargs["thread_ts"] = thread_id

            if blocks:
                kwargs["blocks"] = blocks

            result = await self._client.chat_postMessage(**kwargs)
            message_ts = result.get("ts", "")
            resolved_channel = result.get("channel", channel_id)

            log.debug(
                "message_sent",
                channel_id=resolved_channel,
                message_ts=message_ts,
                thread_id=thread_id,
            )

            return resolved_channel, message_ts

        except SlackApiError as e:
            log.error(
                "send_message_failed",
                channel_id=channel_id,
                error=str(e),
            )
            raise SendError(f"Failed to send message: {e}") from e

    async def join_channel(self, channel_id: str) -> None:
        """Join a channel so its history can be read.

        Raises:
            ChannelAccessError: If Slack refuses the join.
        """
        try:
            await self._client.conversations_join(channel=channel_id)
            log.debug("channel_joined", channel_id=channel_id)
        except SlackApiError as e:
            raise self._channel_error("join", channel_id, e) from e

    async def get_channel_info(self, channel_id: str) -> dict[str, Any]:
        """Return channel metadata including the member count.

        Raises:
            ChannelAccessError: If the channel is missing or hidden from the bot.
        """
        try:
            result = await self._client.conversations_info(
                channel=channel_id,
                include_num_members=True,
            )
        except SlackApiError as e:
            raise self._channel_error("inspect", channel_id, e) from e
        channel: dict[str, Any] = result.get("channel", {}) or {}
        return channel

    async def fetch_history_page(
        self,
        channel_id: str,
        oldest: str,
        latest: str,
        cursor: str | None = None,
        limit: int = 200,
    ) -> HistoryPage:
        """Fetch one page of ``conversations.history`` (newest first).

        Raises:
            ChannelAccessError: If history cannot be read.
        """
        kwargs: dict[str, Any] = {
            "channel": channel_id,
            "oldest": oldest,
            "latest": latest,
            "inclusive": True,
            "limit": limit,
        }
        if cursor:
            kwargs["cursor"] = cursor

        try:
            result = await self._client.conversations_history(**kwargs)
        except SlackApiError as e:
            raise self._channel_error("read", channel_id, e) from e

        messages = [
            message_from_payload(channel_id, payload)
            for payload in result.get("messages", []) or []
            if payload.get("ts")
        ]
        metadata = result.get("response_metadata") or {}
        next_cursor = metadata.get("next_cursor") or None
        if not result.get("has_more", False):
            next_cursor = None

        return HistoryPage(messages=messages, next_cursor=next_cursor)

    async def upload_file(
        self,
        channel_id: str,
        content: str,
        filename: str,
        title: str,
        thread_id: str | None = None,
    ) -> None:
        """Upload text content as a file, optionally into a thread.

        Raises:
            SendError: If the upload fails.
        """
        kwargs: dict[str, Any] = {
            "channel": channel_id,
            "content": content,
            "filename": filename,
            "title": title,
        }
        if thread_id:
            kwargs["thread_ts"] = thread_id

        try:
            await self._client.files_upload_v2(**kwargs)
            log.debug("file_uploaded", channel_id=channel_id, filename=filename)
        except SlackApiError as e:
            log.error("file_upload_failed", channel_id=channel_id, error=str(e))
            raise SendError(f"Failed to upload {filename}: {e}") from e

    async def publish_home(self, user_id: str, view: dict[str, Any]) -> None:
        """Publish the App Home tab for a user.

        Raises:
            SendError: If Slack rejects the view.
        """
        try:
            await self._client.views_publish(user_id=user_id, view=view)
        except SlackApiError as e:
            raise SendError(f"Failed to publish home view: {e}") from e

    async def open_view(self, trigger_id: str, view: dict[str, Any]) -> None:
        """Open a modal for an interaction.

        Raises:
            SendError: If Slack rejects the view.
        """
        try:
            await self._client.views_open(trigger_id=trigger_id, view=view)
        except SlackApiError as e:
            raise SendError(f"Failed to open view: {e}") from e
