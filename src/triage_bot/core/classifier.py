"""Classify messages into triage levels and statuses.

A level matches when the message text contains the level's emoji code
(``:red_circle:``) or one of its configured tags (``#urgent``). A status
matches on the same text rule or when someone reacted to the message with
the status emoji. Facets are independent: a message can match several
levels and several statuses, or none.

Everything here is pure: same messages and taxonomy, same output.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence

import structlog

from triage_bot.config.schema import TaxonomyConfig, TaxonomyEntry
from triage_bot.models.message import ChatMessage, EnrichedMessage

log = structlog.get_logger()

# Membership and housekeeping events, not conversation
IGNORED_SUBTYPES = frozenset(
    {
        "channel_join",
        "channel_leave",
        "channel_topic",
        "channel_purpose",
        "channel_name",
        "channel_archive",
        "channel_unarchive",
        "group_join",
        "group_leave",
        "bot_add",
        "bot_remove",
    }
)


def _compile_tag(tag: str) -> re.Pattern[str]:
    # Tags are literal text; only require they are not glued to other words.
    return re.compile(rf"(?<![\w#]){re.escape(tag)}(?![\w])", re.IGNORECASE)


class MessageClassifier:
    """Tags messages with ``_level_<L>`` / ``_status_<S>`` facets.

    Example:
        classifier = MessageClassifier(config.taxonomy)
        enriched = classifier.enrich(messages, "C123", excluded_author_id="B456")
        working = classifier.working_set(enriched)
    """

    def __init__(self, taxonomy: TaxonomyConfig) -> None:
        self._taxonomy = taxonomy
        self._level_tags = {
            level.name: [_compile_tag(tag) for tag in level.tags] for level in taxonomy.levels
        }
        self._status_tags = {
            status.name: [_compile_tag(tag) for tag in status.tags] for status in taxonomy.statuses
        }

    @property
    def taxonomy(self) -> TaxonomyConfig:
        return self._taxonomy

    def enrich(
        self,
        messages: Iterable[ChatMessage],
        channel_id: str,
        excluded_author_id: str | None,
    ) -> list[EnrichedMessage]:
        """Tag every message with all facets, dropping the bot's own messages.

        Args:
            messages: Messages in the order they should be reported
            channel_id: Channel the messages were read from
            excluded_author_id: Bot user or bot ID whose messages are skipped

        Returns:
            One EnrichedMessage per kept message, every facet present.
        """
        enriched: list[EnrichedMessage] = []
        skipped = 0

        for message in messages:
            if self._is_excluded(message, excluded_author_id):
                skipped += 1
                continue
            enriched.append(
                EnrichedMessage(
                    message=message,
                    levels={
                        level.name: self._matches_level(level, message)
                        for level in self._taxonomy.levels
                    },
                    statuses={
                        status.name: self._matches_status(status, message)
                        for status in self._taxonomy.statuses
                    },
                )
            )

        log.debug(
            "messages_enriched",
            channel_id=channel_id,
            kept=len(enriched),
            skipped=skipped,
        )
        return enriched

    @staticmethod
    def working_set(enriched: Iterable[EnrichedMessage]) -> list[EnrichedMessage]:
        """Messages matching at least one facet; these feed the summary."""
        return [m for m in enriched if m.has_facet]

    @staticmethod
    def needs_attention(
        enriched: Iterable[EnrichedMessage],
        levels: Sequence[str],
        missing_statuses: Sequence[str],
    ) -> list[EnrichedMessage]:
        """Messages with one of ``levels`` and none of ``missing_statuses``.

        An empty ``levels`` means any level.
        """
        selected = []
        for message in enriched:
            if levels:
                level_hit = any(message.has_level(name) for name in levels)
            else:
                level_hit = any(message.levels.values())
            if not level_hit:
                continue
            if any(message.has_status(name) for name in missing_statuses):
                continue
            selected.append(message)
        return selected

    def _is_excluded(self, message: ChatMessage, excluded_author_id: str | None) -> bool:
        if message.subtype in IGNORED_SUBTYPES:
            return True
        if excluded_author_id is None:
            return False
        return excluded_author_id in (message.user_id, message.bot_id)

    @staticmethod
    def _matches_text(entry: TaxonomyEntry, tags: list[re.Pattern[str]], text: str) -> bool:
        if not text:
            return False
        if entry.emoji in text:
            return True
        return any(p.search(text) for p in tags)

    def _matches_level(self, entry: TaxonomyEntry, message: ChatMessage) -> bool:
        return self._matches_text(entry, self._level_tags[entry.name], message.text)

    def _matches_status(self, entry: TaxonomyEntry, message: ChatMessage) -> bool:
        if entry.reaction_name in message.reactions:
            return True
        return self._matches_text(entry, self._status_tags[entry.name], message.text)
