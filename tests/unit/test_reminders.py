"""Tests for scheduled reminders."""

from collections.abc import Callable
from datetime import datetime
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from triage_bot.config.schema import ReminderConfig, TaxonomyConfig
from triage_bot.core.classifier import MessageClassifier
from triage_bot.core.reminders import (
    MAX_LINKED_MESSAGES,
    ReminderScheduler,
    format_reminder,
    message_link,
)
from triage_bot.interfaces.chat import HistoryPage
from triage_bot.models.installation import BotCredential
from triage_bot.models.message import ChatMessage
from triage_bot.utils.async_helpers import StoreError

MakeMessage = Callable[..., ChatMessage]


@pytest.fixture
def reminder() -> ReminderConfig:
    """Hourly reminder for unresolved high messages in C777."""
    return ReminderConfig(
        name="unresolved-high",
        cron="0 * * * *",
        channel_id="C777",
        hours_back=12,
        levels=["high"],
        missing_statuses=["resolved"],
    )


@pytest.fixture
def store() -> AsyncMock:
    """Installation store with two tenants."""
    store = AsyncMock()
    store.list_tenant_ids.return_value = ["T1", "T2"]
    return store


@pytest.fixture
def resolver(credential: BotCredential) -> AsyncMock:
    """Resolver returning the test credential."""
    resolver = AsyncMock()
    resolver.resolve.return_value = credential
    return resolver


@pytest.fixture
def scheduler(
    store: AsyncMock,
    resolver: AsyncMock,
    reminder: ReminderConfig,
    taxonomy: TaxonomyConfig,
    mock_chat: AsyncMock,
    now: datetime,
) -> ReminderScheduler:
    """Scheduler whose tenants all talk to ``mock_chat``."""
    return ReminderScheduler(
        store,
        resolver,
        [reminder],
        taxonomy,
        chat_factory=lambda credential: mock_chat,
        clock=lambda: now,
    )


class TestFormatting:
    """Test reminder rendering."""

    def test_message_link(self):
        """Test archive links drop the dot from the timestamp."""
        assert (
            message_link("C777", "1705320000.000100")
            == "https://slack.com/archives/C777/p1705320000000100"
        )

    def test_format_reminder(
        self, reminder: ReminderConfig, taxonomy: TaxonomyConfig, make_message: MakeMessage
    ):
        """Test header, missing statuses and one linked line per message."""
        enriched = MessageClassifier(taxonomy).enrich(
            [make_message(":red_circle: db down", user_id="U5", channel_id="C777")], "C777", None
        )

        text = format_reminder(reminder, enriched, taxonomy)

        lines = text.split("\n")
        assert lines[0] == (
            ":bell: *1 message(s)* from the past 12 hours still need attention "
            "(no :white_check_mark: resolved yet):"
        )
        assert lines[1].startswith("• :red_circle: <https://slack.com/archives/C777/p")
        assert lines[1].endswith("|message from <@U5>>")

    def test_format_reminder_caps_links(
        self, reminder: ReminderConfig, taxonomy: TaxonomyConfig, make_message: MakeMessage
    ):
        """Test long lists are cut off with a count of the rest."""
        messages = [make_message(":red_circle:", minutes_ago=i) for i in range(1, 13)]
        enriched = MessageClassifier(taxonomy).enrich(messages, "C777", None)

        lines = format_reminder(reminder, enriched, taxonomy).split("\n")

        assert "*12 message(s)*" in lines[0]
        assert len(lines) == 1 + MAX_LINKED_MESSAGES + 1
        assert lines[-1] == "…and 2 more"


class TestSendReminders:
    """Test checking tenants for pending messages."""

    async def test_posts_pending_messages(
        self,
        scheduler: ReminderScheduler,
        reminder: ReminderConfig,
        mock_chat: AsyncMock,
        make_message: MakeMessage,
    ):
        """Test only unresolved high messages are listed, in the reminder channel."""
        mock_chat.fetch_history_page.return_value = HistoryPage(
            messages=[
                make_message(":red_circle: pending", minutes_ago=30, channel_id="C777"),
                make_message(
                    ":red_circle: done :white_check_mark:", minutes_ago=20, channel_id="C777"
                ),
                make_message(":white_circle: minor", minutes_ago=10, channel_id="C777"),
            ]
        )

        sent = await scheduler.send_reminders(reminder)

        assert sent == 2
        mock_chat.join_channel.assert_awaited_with("C777")
        channel, text = mock_chat.post_message.call_args.args
        assert channel == "C777"
        assert "*1 message(s)*" in text

    async def test_nothing_pending(
        self, scheduler: ReminderScheduler, reminder: ReminderConfig, mock_chat: AsyncMock
    ):
        """Test nothing is posted when every message is handled."""
        assert await scheduler.send_reminders(reminder) == 0
        mock_chat.post_message.assert_not_called()

    async def test_tenant_failure_isolated(
        self,
        scheduler: ReminderScheduler,
        reminder: ReminderConfig,
        resolver: AsyncMock,
        credential: BotCredential,
        mock_chat: AsyncMock,
        make_message: MakeMessage,
    ):
        """Test one broken tenant does not stop the others."""
        resolver.resolve.side_effect = [StoreError("db locked"), credential]
        mock_chat.fetch_history_page.return_value = HistoryPage(
            messages=[make_message(":red_circle: pending", channel_id="C777")]
        )

        assert await scheduler.send_reminders(reminder) == 1
        assert mock_chat.post_message.await_count == 1


class TestScheduling:
    """Test the scheduler lifecycle."""

    def test_start_adds_one_job_per_reminder(
        self, scheduler: ReminderScheduler, reminder: ReminderConfig
    ):
        """Test jobs are registered with stable ids and started."""
        with patch("triage_bot.core.reminders.AsyncIOScheduler") as scheduler_cls:
            scheduler.start()

        backend = scheduler_cls.return_value
        backend.add_job.assert_called_once()
        kwargs = backend.add_job.call_args.kwargs
        assert kwargs["id"] == "reminder:unresolved-high"
        assert kwargs["args"] == [reminder]
        assert kwargs["replace_existing"] is True
        backend.start.assert_called_once()
        assert scheduler.is_running

    def test_start_twice_is_noop(self, scheduler: ReminderScheduler):
        """Test a second start does not create another scheduler."""
        with patch("triage_bot.core.reminders.AsyncIOScheduler") as scheduler_cls:
            scheduler.start()
            scheduler.start()

        scheduler_cls.assert_called_once()

    def test_stop(self, scheduler: ReminderScheduler):
        """Test stop shuts the backend down and is safe to repeat."""
        backend = MagicMock()
        with patch("triage_bot.core.reminders.AsyncIOScheduler", return_value=backend):
            scheduler.start()

        scheduler.stop()
        scheduler.stop()

        backend.shutdown.assert_called_once_with(wait=False)
        assert not scheduler.is_running

    async def test_trigger_now_sums_posts(
        self,
        store: AsyncMock,
        resolver: AsyncMock,
        reminder: ReminderConfig,
        taxonomy: TaxonomyConfig,
    ):
        """Test a manual trigger runs every reminder once."""
        other = reminder.model_copy(update={"name": "other"})
        scheduler = ReminderScheduler(store, resolver, [reminder, other], taxonomy)

        with patch.object(scheduler, "send_reminders", AsyncMock(side_effect=[1, 2])) as send:
            assert await scheduler.trigger_now() == 3

        assert [c.args[0].name for c in send.call_args_list] == ["unresolved-high", "other"]
