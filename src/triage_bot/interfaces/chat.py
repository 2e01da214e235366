"""Abstract interface for the outbound chat platform capability."""

from dataclasses import dataclass
from typing import Any, Protocol

from ..models.message import ChatMessage


@dataclass(frozen=True)
class HistoryPage:
    """One page of channel history in platform order (newest first for Slack)."""

    messages: list[ChatMessage]
    next_cursor: str | None = None


class ChatProvider(Protocol):
    """Side-effecting chat platform calls used by the triage pipeline.

    One provider instance acts with one workspace's bot credential.
    """

    async def post_message(
        self,
        channel_id: str,
        text: str,
        thread_id: str | None = None,
        blocks: list[dict[str, Any]] | None = None,
    ) -> tuple[str, str]:
        """
        Post a message, optionally in a thread.

        Returns:
            (channel_id, message ts) of the posted message. The channel is
            the resolved conversation, which differs from the input when
            posting to a user ID opens a DM.

        Raises:
            SendError: If message delivery fails
        """
        ...

    async def join_channel(self, channel_id: str) -> None:
        """
        Join a channel so its history becomes readable.

        Raises:
            ChannelAccessError: If the bot cannot join
        """
        ...

    async def get_channel_info(self, channel_id: str) -> dict[str, Any]:
        """
        Return channel metadata, including ``num_members``.

        Raises:
            ChannelAccessError: If the channel is missing or not visible
        """
        ...

    async def fetch_history_page(
        self,
        channel_id: str,
        oldest: str,
        latest: str,
        cursor: str | None = None,
        limit: int = 200,
    ) -> HistoryPage:
        """
        Fetch one page of history between two Slack timestamps (inclusive).

        Raises:
            ChannelAccessError: If history cannot be read
        """
        ...

    async def upload_file(
        self,
        channel_id: str,
        content: str,
        filename: str,
        title: str,
        thread_id: str | None = None,
    ) -> None:
        """
        Upload text content as a file.

        Raises:
            SendError: If the upload fails
        """
        ...

    async def publish_home(self, user_id: str, view: dict[str, Any]) -> None:
        """Publish the App Home tab for a user."""
        ...

    async def open_view(self, trigger_id: str, view: dict[str, Any]) -> None:
        """Open a modal in response to an interaction."""
        ...
