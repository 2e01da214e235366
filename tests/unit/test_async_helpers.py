"""Tests for the error hierarchy and timeout helper."""

import asyncio

import pytest

from triage_bot.utils.async_helpers import (
    AuthorizationError,
    AuthorizationUnavailableError,
    ChannelAccessError,
    ExportError,
    StoreError,
    TimeoutError,
    TriageBotError,
    with_timeout,
)


class TestErrors:
    """Test the exception hierarchy."""

    @pytest.mark.parametrize(
        "error_cls",
        [AuthorizationError, ChannelAccessError, ExportError, StoreError, TimeoutError],
    )
    def test_all_derive_from_base(self, error_cls: type[Exception]):
        """Test every error can be caught as TriageBotError."""
        assert issubclass(error_cls, TriageBotError)

    def test_unavailable_is_authorization_error(self):
        """Test store outages are still authorization failures."""
        error = AuthorizationUnavailableError("store down")

        assert isinstance(error, AuthorizationError)

    def test_channel_access_attributes(self):
        """Test channel and reason travel with the error."""
        error = ChannelAccessError("cannot join", "C123", reason="is_archived")

        assert str(error) == "cannot join"
        assert error.channel_id == "C123"
        assert error.reason == "is_archived"


class TestWithTimeout:
    """Test the timeout wrapper."""

    async def test_returns_result(self):
        """Test a fast awaitable's result is returned."""

        async def fast() -> str:
            return "done"

        assert await with_timeout(fast(), 1.0) == "done"

    async def test_times_out(self):
        """Test slow awaitables raise our TimeoutError."""
        with pytest.raises(TimeoutError, match="history budget"):
            await with_timeout(asyncio.sleep(1), 0.01, error_message="history budget")

    async def test_default_message(self):
        """Test the default message names the timeout."""
        with pytest.raises(TimeoutError, match="timed out after 0.01s"):
            await with_timeout(asyncio.sleep(1), 0.01)
