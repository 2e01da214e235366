"""Count enriched messages per level and status and format the summary."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from triage_bot.config.schema import TaxonomyConfig
from triage_bot.models.message import EnrichedMessage
from triage_bot.models.triage import LevelSummary, TriageSummary

SUMMARY_HEADER = "Here's a summary of the messages needing attention by urgency level and status:"


def summarize(enriched: Sequence[EnrichedMessage], taxonomy: TaxonomyConfig) -> TriageSummary:
    """Count messages per level, and per status within each level.

    Levels and statuses follow taxonomy order. Entries with no matching
    messages are kept with a count of zero.
    """
    levels = []
    for level in taxonomy.levels:
        in_level = [m for m in enriched if m.has_level(level.name)]
        status_counts = tuple(
            (status, sum(1 for m in in_level if m.has_status(status.name)))
            for status in taxonomy.statuses
        )
        levels.append(LevelSummary(level=level, total=len(in_level), status_counts=status_counts))

    return TriageSummary(levels=tuple(levels), message_count=len(enriched))


def format_level_text(summary: LevelSummary) -> str:
    """Render one level as Slack mrkdwn."""
    lines = [f"{summary.level.emoji} *{summary.level.display_label}* ({summary.total} total)"]
    lines.extend(
        f"\tMessages {status.display_label} {status.emoji}: {count}"
        for status, count in summary.status_counts
    )
    return "\n".join(lines)


def format_summary_text(summary: TriageSummary) -> str:
    """Plain-text fallback for notifications and clients without blocks."""
    return "\n".join([SUMMARY_HEADER, *(format_level_text(level) for level in summary.levels)])


def format_summary_blocks(summary: TriageSummary) -> list[dict[str, Any]]:
    """Block Kit blocks: a header section followed by one section per level."""
    blocks: list[dict[str, Any]] = [
        {"type": "section", "text": {"type": "mrkdwn", "text": SUMMARY_HEADER}},
    ]
    blocks.extend(
        {"type": "section", "text": {"type": "mrkdwn", "text": format_level_text(level)}}
        for level in summary.levels
    )
    return blocks
