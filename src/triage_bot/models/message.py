"""Data models for chat messages."""

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

LEVEL_PREFIX = "_level_"
STATUS_PREFIX = "_status_"


def parse_slack_ts(ts: str) -> datetime:
    """Convert a Slack ``ts`` ("1700000000.000100") to an aware UTC datetime.

    Parsed from the string parts so window edges compare exactly.

    Raises:
        ValueError: If ``ts`` is not a Slack timestamp.
    """
    seconds, _, fraction = ts.partition(".")
    if not seconds.isdigit() or (fraction and not fraction.isdigit()):
        raise ValueError(f"Invalid Slack timestamp: {ts!r}")
    micros = int(fraction.ljust(6, "0")[:6]) if fraction else 0
    return datetime.fromtimestamp(int(seconds), tz=UTC) + timedelta(microseconds=micros)


def format_slack_ts(moment: datetime) -> str:
    """Format a datetime as a Slack ``ts`` string with microsecond precision."""
    delta = moment.astimezone(UTC) - datetime(1970, 1, 1, tzinfo=UTC)
    seconds = delta.days * 86400 + delta.seconds
    return f"{seconds}.{delta.microseconds:06d}"


@dataclass(frozen=True)
class ChatMessage:
    """A message read from channel history."""

    channel_id: str
    message_id: str  # Slack ts
    thread_id: str | None  # None if not in a thread
    user_id: str
    text: str
    timestamp: datetime
    bot_id: str | None = None
    subtype: str | None = None
    reactions: tuple[str, ...] = ()
    reply_count: int = 0

    # Platform-specific metadata
    raw_event: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)


@dataclass(frozen=True)
class EnrichedMessage:
    """A message tagged with one boolean per configured level and status."""

    message: ChatMessage
    levels: dict[str, bool]
    statuses: dict[str, bool]

    @property
    def has_facet(self) -> bool:
        """True when at least one level or status matched."""
        return any(self.levels.values()) or any(self.statuses.values())

    def has_level(self, name: str) -> bool:
        return self.levels.get(name, False)

    def has_status(self, name: str) -> bool:
        return self.statuses.get(name, False)

    def facets(self) -> dict[str, bool]:
        """Facets keyed by column name (``_level_<L>``, ``_status_<S>``)."""
        columns = {f"{LEVEL_PREFIX}{name}": value for name, value in self.levels.items()}
        columns.update({f"{STATUS_PREFIX}{name}": value for name, value in self.statuses.items()})
        return columns
