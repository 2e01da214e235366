"""Periodic reminders about triage messages still missing a status.

Each configured reminder is an APScheduler cron job. When it fires, every
installed tenant is checked: the reminder's channel is read for its window,
and messages at the watched levels that carry none of the required statuses
are listed in one post back to that channel.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from datetime import datetime
from typing import TYPE_CHECKING

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from triage_bot.adapters.chat.slack import SlackAdapter
from triage_bot.config.schema import ReminderConfig, TaxonomyConfig, TriageConfig
from triage_bot.core.classifier import MessageClassifier
from triage_bot.core.history import HistoryFetcher, utcnow
from triage_bot.utils.logging import LogEventNames, request_context

if TYPE_CHECKING:
    from triage_bot.core.authorizer import AuthorizationResolver
    from triage_bot.interfaces.chat import ChatProvider
    from triage_bot.interfaces.store import InstallationStore
    from triage_bot.models.installation import BotCredential
    from triage_bot.models.message import EnrichedMessage

log = structlog.get_logger()

# Listed links per reminder post; the count always covers all matches
MAX_LINKED_MESSAGES = 10


def message_link(channel_id: str, message_id: str) -> str:
    """Permalink in Slack's archive format, without an API round trip."""
    return f"https://slack.com/archives/{channel_id}/p{message_id.replace('.', '')}"


def format_reminder(
    reminder: ReminderConfig,
    messages: Sequence[EnrichedMessage],
    taxonomy: TaxonomyConfig,
) -> str:
    """Render the reminder post for the matching messages."""
    missing = " or ".join(
        f"{s.emoji} {s.display_label}"
        for s in taxonomy.statuses
        if s.name in reminder.missing_statuses
    )
    header = (
        f":bell: *{len(messages)} message(s)* from the past {reminder.hours_back} hours "
        "still need attention"
    )
    if missing:
        header += f" (no {missing} yet)"

    lines = [header + ":"]
    for enriched in messages[:MAX_LINKED_MESSAGES]:
        emojis = "".join(
            level.emoji for level in taxonomy.levels if enriched.has_level(level.name)
        )
        link = message_link(enriched.message.channel_id, enriched.message.message_id)
        lines.append(f"• {emojis} <{link}|message from <@{enriched.message.user_id}>>")
    if len(messages) > MAX_LINKED_MESSAGES:
        lines.append(f"…and {len(messages) - MAX_LINKED_MESSAGES} more")
    return "\n".join(lines)


class ReminderScheduler:
    """Runs configured reminders on their cron schedules.

    Example:
        scheduler = ReminderScheduler(store, resolver, config.reminders,
                                      config.taxonomy, config.triage)
        scheduler.start()
        ...
        await scheduler.trigger_now()  # operator debugging
        scheduler.stop()
    """

    def __init__(
        self,
        store: InstallationStore,
        resolver: AuthorizationResolver,
        reminders: Sequence[ReminderConfig],
        taxonomy: TaxonomyConfig,
        triage_config: TriageConfig | None = None,
        chat_factory: Callable[[BotCredential], ChatProvider] = SlackAdapter.for_credential,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        """Initialize the scheduler.

        Args:
            store: Source of installed tenants
            resolver: Tenant to bot credential lookup
            reminders: Reminder definitions to schedule
            taxonomy: Levels and statuses to classify with
            triage_config: Page size and fetch limits for history reads
            chat_factory: Builds a chat provider for a tenant credential
            clock: Current-time source handed to the history fetcher
        """
        self._store = store
        self._resolver = resolver
        self._reminders = list(reminders)
        self._taxonomy = taxonomy
        self._triage_config = triage_config or TriageConfig()
        self._chat_factory = chat_factory
        self._clock = clock
        self._classifier = MessageClassifier(taxonomy)
        self._scheduler: AsyncIOScheduler | None = None
        self._manual_lock = asyncio.Lock()

    @property
    def is_running(self) -> bool:
        return self._scheduler is not None

    def start(self) -> None:
        """Register one cron job per reminder and start the scheduler.

        Must be called from within a running event loop.
        """
        if self._scheduler is not None:
            log.warning("reminder_scheduler_already_running")
            return

        scheduler = AsyncIOScheduler(timezone="UTC")
        for reminder in self._reminders:
            scheduler.add_job(
                self.send_reminders,
                trigger=CronTrigger.from_crontab(reminder.cron, timezone="UTC"),
                args=[reminder],
                id=f"reminder:{reminder.name}",
                max_instances=1,
                coalesce=True,
                replace_existing=True,
            )
            log.info(
                LogEventNames.REMINDER_JOB_SCHEDULED,
                reminder=reminder.name,
                cron=reminder.cron,
                channel_id=reminder.channel_id,
            )
        scheduler.start()
        self._scheduler = scheduler

    def stop(self) -> None:
        """Shut the scheduler down. Safe to call when not started."""
        if self._scheduler is None:
            return
        self._scheduler.shutdown(wait=False)
        self._scheduler = None
        log.info("reminder_scheduler_stopped")

    async def trigger_now(self) -> int:
        """Run every reminder immediately, outside the schedule.

        Concurrent calls queue up behind each other. Scheduled jobs are not
        touched.

        Returns:
            Number of reminder posts sent.
        """
        async with self._manual_lock:
            log.info("reminders_triggered_manually", reminders=len(self._reminders))
            sent = 0
            for reminder in self._reminders:
                sent += await self.send_reminders(reminder)
            return sent

    async def send_reminders(self, reminder: ReminderConfig) -> int:
        """Check one reminder for every installed tenant.

        A failure for one tenant is logged and the remaining tenants are
        still processed.

        Returns:
            Number of tenants that received a reminder post.
        """
        tenant_ids = await self._store.list_tenant_ids()
        sent = 0
        for tenant_id in tenant_ids:
            try:
                with request_context(tenant_id=tenant_id, reminder=reminder.name):
                    if await self._remind_tenant(tenant_id, reminder):
                        sent += 1
            except Exception as e:
                log.error(
                    LogEventNames.REMINDER_TENANT_FAILED,
                    reminder=reminder.name,
                    tenant_id=tenant_id,
                    error=str(e),
                )
        return sent

    async def _remind_tenant(self, tenant_id: str, reminder: ReminderConfig) -> bool:
        credential = await self._resolver.resolve(tenant_id)
        chat = self._chat_factory(credential)
        fetcher = HistoryFetcher(chat, self._triage_config, clock=self._clock)

        history = await fetcher.fetch_window(reminder.channel_id, reminder.hours_back)
        enriched = self._classifier.enrich(
            history.messages,
            reminder.channel_id,
            excluded_author_id=credential.bot_user_id or credential.bot_id,
        )
        pending = self._classifier.needs_attention(
            enriched,
            reminder.levels,
            reminder.missing_statuses,
        )
        if not pending:
            log.debug("reminder_nothing_pending", reminder=reminder.name, tenant_id=tenant_id)
            return False

        await chat.post_message(
            reminder.channel_id,
            format_reminder(reminder, pending, self._taxonomy),
        )
        log.info(
            LogEventNames.REMINDER_SENT,
            reminder=reminder.name,
            tenant_id=tenant_id,
            pending=len(pending),
        )
        return True
