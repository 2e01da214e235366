"""Tests for the CSV export."""

import csv
import io
from collections.abc import Callable
from unittest.mock import patch

import pytest

from triage_bot.config.schema import TaxonomyConfig
from triage_bot.core.classifier import MessageClassifier
from triage_bot.core.exporter import (
    export_columns,
    export_filename,
    export_title,
    to_delimited_text,
)
from triage_bot.models.message import ChatMessage
from triage_bot.utils.async_helpers import ExportError

MakeMessage = Callable[..., ChatMessage]


def read_rows(text: str) -> list[dict[str, str]]:
    return list(csv.DictReader(io.StringIO(text, newline="")))


class TestExportColumns:
    """Test the header layout."""

    def test_column_order(self, taxonomy: TaxonomyConfig):
        """Test base columns come first, then levels, then statuses."""
        assert export_columns(taxonomy) == [
            "message_id",
            "channel_id",
            "user_id",
            "thread_id",
            "timestamp",
            "reply_count",
            "text",
            "_level_high",
            "_level_low",
            "_status_open",
            "_status_resolved",
        ]

    def test_filename_and_title(self):
        """Test the upload naming."""
        assert export_filename(7) == "messages_past_7h.csv"
        assert export_title(24) == "All messages from the past 24 hours"


class TestToDelimitedText:
    """Test CSV serialization."""

    def test_header_only_for_no_messages(self, taxonomy: TaxonomyConfig):
        """Test an empty export still has its header."""
        text = to_delimited_text([], taxonomy)

        assert text == ",".join(export_columns(taxonomy)) + "\r\n"

    def test_special_characters_survive(
        self, taxonomy: TaxonomyConfig, make_message: MakeMessage
    ):
        """Test commas, quotes and line breaks round trip through a CSV reader."""
        tricky = 'deploy failed, "again"\nsee thread :red_circle:'
        enriched = MessageClassifier(taxonomy).enrich([make_message(tricky)], "C123", None)

        rows = read_rows(to_delimited_text(enriched, taxonomy))

        assert len(rows) == 1
        assert rows[0]["text"] == tricky
        assert rows[0]["_level_high"] == "true"
        assert rows[0]["_status_open"] == "false"

    def test_one_row_per_message(self, taxonomy: TaxonomyConfig, make_message: MakeMessage):
        """Test untagged messages are exported too."""
        messages = [make_message(":red_circle: a", 2), make_message("plain", 1, reply_count=3)]
        enriched = MessageClassifier(taxonomy).enrich(messages, "C123", None)

        rows = read_rows(to_delimited_text(enriched, taxonomy))

        assert [r["text"] for r in rows] == [":red_circle: a", "plain"]
        assert rows[1]["reply_count"] == "3"
        assert rows[1]["thread_id"] == ""
        assert rows[1]["timestamp"] == messages[1].timestamp.isoformat()
        assert rows[0]["message_id"] == messages[0].message_id

    def test_custom_delimiter(self, taxonomy: TaxonomyConfig, make_message: MakeMessage):
        """Test tab-separated output."""
        enriched = MessageClassifier(taxonomy).enrich([make_message("a\tb")], "C123", None)

        text = to_delimited_text(enriched, taxonomy, delimiter="\t")

        rows = list(csv.reader(io.StringIO(text, newline=""), delimiter="\t"))
        assert rows[1][6] == "a\tb"

    def test_writer_failure_raises_export_error(
        self, taxonomy: TaxonomyConfig, make_message: MakeMessage
    ):
        """Test serialization errors are wrapped."""
        enriched = MessageClassifier(taxonomy).enrich([make_message("x")], "C123", None)

        with patch("triage_bot.core.exporter.csv.writer", side_effect=csv.Error("boom")):
            with pytest.raises(ExportError, match="boom"):
                to_delimited_text(enriched, taxonomy)
