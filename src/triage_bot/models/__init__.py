"""Data models and transfer objects."""

from .installation import BotCredential, InstallationRecord
from .message import ChatMessage, EnrichedMessage, format_slack_ts, parse_slack_ts
from .triage import (
    HistoryResult,
    LevelSummary,
    TimeWindow,
    TriageOutcome,
    TriageRequest,
    TriageSummary,
    parse_hours_back,
)

__all__ = [
    # Installation models
    "InstallationRecord",
    "BotCredential",
    # Message models
    "ChatMessage",
    "EnrichedMessage",
    "parse_slack_ts",
    "format_slack_ts",
    # Triage models
    "TriageRequest",
    "TimeWindow",
    "HistoryResult",
    "LevelSummary",
    "TriageSummary",
    "TriageOutcome",
    "parse_hours_back",
]
