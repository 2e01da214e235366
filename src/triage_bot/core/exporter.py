"""Serialize enriched messages to CSV for download."""

from __future__ import annotations

import csv
import io
from collections.abc import Sequence

from triage_bot.config.schema import TaxonomyConfig
from triage_bot.models.message import LEVEL_PREFIX, STATUS_PREFIX, EnrichedMessage
from triage_bot.utils.async_helpers import ExportError

BASE_COLUMNS = (
    "message_id",
    "channel_id",
    "user_id",
    "thread_id",
    "timestamp",
    "reply_count",
    "text",
)


def export_columns(taxonomy: TaxonomyConfig) -> list[str]:
    """Header row: base columns, then level facets, then status facets."""
    return [
        *BASE_COLUMNS,
        *(f"{LEVEL_PREFIX}{name}" for name in taxonomy.level_names),
        *(f"{STATUS_PREFIX}{name}" for name in taxonomy.status_names),
    ]


def export_filename(hours_back: int) -> str:
    return f"messages_past_{hours_back}h.csv"


def export_title(hours_back: int) -> str:
    return f"All messages from the past {hours_back} hours"


def to_delimited_text(
    enriched: Sequence[EnrichedMessage],
    taxonomy: TaxonomyConfig,
    delimiter: str = ",",
) -> str:
    """Write one row per message under a fixed header.

    Fields containing the delimiter, quotes or line breaks are quoted per
    RFC 4180, so message text survives a round trip through any CSV reader.

    Raises:
        ExportError: If a row cannot be serialized.
    """
    columns = export_columns(taxonomy)
    facet_columns = columns[len(BASE_COLUMNS) :]
    output = io.StringIO()

    try:
        writer = csv.writer(output, delimiter=delimiter, lineterminator="\r\n")
        writer.writerow(columns)
        for item in enriched:
            message = item.message
            facets = item.facets()
            writer.writerow(
                [
                    message.message_id,
                    message.channel_id,
                    message.user_id,
                    message.thread_id or "",
                    message.timestamp.isoformat(),
                    message.reply_count,
                    message.text,
                    *("true" if facets.get(col, False) else "false" for col in facet_columns),
                ]
            )
    except (csv.Error, TypeError, ValueError) as e:
        raise ExportError(f"Failed to serialize messages: {e}") from e

    return output.getvalue()
