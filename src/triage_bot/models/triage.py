"""Data models for a single triage request and its results."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any

from triage_bot.config.schema import TaxonomyEntry
from triage_bot.models.message import ChatMessage

DEFAULT_HOURS_BACK = 7
MAX_HOURS_BACK = 24 * 365


def parse_hours_back(
    value: Any,
    default: int = DEFAULT_HOURS_BACK,
    maximum: int = MAX_HOURS_BACK,
) -> int:
    """Interpret a submitted window size.

    Absent, non-numeric and non-positive values all fall back to ``default``.
    Larger values than ``maximum`` are clamped to it.
    """
    if value is None or isinstance(value, bool):
        return default
    try:
        hours = int(str(value).strip())
    except ValueError:
        return default
    if hours <= 0:
        return default
    return min(hours, maximum)


@dataclass(frozen=True)
class TriageRequest:
    """One user's request for triage stats. Lives for a single pipeline run."""

    tenant_id: str
    channel_id: str
    hours_back: int
    requesting_user_id: str


@dataclass(frozen=True)
class TimeWindow:
    """A closed time range ``[start, end]``."""

    start: datetime
    end: datetime

    @classmethod
    def past_hours(cls, hours: int, now: datetime) -> TimeWindow:
        return cls(start=now - timedelta(hours=hours), end=now)

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment <= self.end


@dataclass(frozen=True)
class HistoryResult:
    """Messages retrieved for a window, ascending by timestamp."""

    window: TimeWindow
    messages: list[ChatMessage]
    pages_fetched: int
    truncated: bool = False


@dataclass(frozen=True)
class LevelSummary:
    """Counts for one level, broken down by status in taxonomy order."""

    level: TaxonomyEntry
    total: int
    status_counts: tuple[tuple[TaxonomyEntry, int], ...]

    def count_for(self, status_name: str) -> int:
        for status, count in self.status_counts:
            if status.name == status_name:
                return count
        raise KeyError(status_name)


@dataclass(frozen=True)
class TriageSummary:
    """Per-level summaries in taxonomy order."""

    levels: tuple[LevelSummary, ...]
    message_count: int

    def for_level(self, level_name: str) -> LevelSummary:
        for summary in self.levels:
            if summary.level.name == level_name:
                return summary
        raise KeyError(level_name)


class TriageOutcome(Enum):
    """Outcome of a triage request."""

    COMPLETED = "completed"
    COMPLETED_WITHOUT_EXPORT = "completed_without_export"
    CHANNEL_ACCESS_DENIED = "channel_access_denied"
    ERROR = "error"
