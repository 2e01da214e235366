"""Tests for Block Kit views."""

from typing import Any

import pytest

from triage_bot.adapters.chat.views import (
    CHANNEL_SELECTED_CALLBACK_ID,
    app_home_view,
    parse_channel_selection,
    select_triage_channel_modal,
)
from triage_bot.config.schema import TaxonomyConfig, TriageConfig


def submitted_view(channel: str | None, hours: str | None) -> dict[str, Any]:
    values: dict[str, Any] = {}
    if channel is not None:
        values["channel"] = {
            "channel": {"type": "conversations_select", "selected_conversation": channel}
        }
    values["n_hours"] = {
        "n_hours": {
            "type": "static_select",
            "selected_option": None if hours is None else {"value": hours},
        }
    }
    return {"callback_id": CHANNEL_SELECTED_CALLBACK_ID, "state": {"values": values}}


class TestSelectionModal:
    """Test the channel-selection modal."""

    def test_modal_structure(self):
        """Test callback id, blocks and the default option."""
        modal = select_triage_channel_modal(TriageConfig())

        assert modal["callback_id"] == CHANNEL_SELECTED_CALLBACK_ID
        assert [b["block_id"] for b in modal["blocks"]] == ["channel", "n_hours"]
        hours = modal["blocks"][1]["element"]
        assert hours["initial_option"]["value"] == "7"
        assert [o["value"] for o in hours["options"]][:3] == ["1", "2", "4"]


class TestParseChannelSelection:
    """Test reading modal submissions."""

    def test_valid_submission(self):
        """Test channel and hours are read."""
        assert parse_channel_selection(submitted_view("C123", "24"), 7) == ("C123", 24)

    @pytest.mark.parametrize("hours", ["abc", None, "0"])
    def test_bad_hours_default(self, hours: str | None):
        """Test unusable window values fall back to the default."""
        assert parse_channel_selection(submitted_view("C123", hours), 7) == ("C123", 7)

    def test_missing_channel(self):
        """Test a submission without a channel is rejected."""
        with pytest.raises(KeyError):
            parse_channel_selection(submitted_view(None, "7"), 7)

    def test_hours_clamped(self):
        """Test a tampered window larger than any option is clamped."""
        view = submitted_view("C123", "999999999999")
        assert parse_channel_selection(view, 7, max_hours=168) == ("C123", 168)


class TestAppHome:
    """Test the App Home panel."""

    def test_lists_taxonomy(self, taxonomy: TaxonomyConfig):
        """Test levels and statuses are explained."""
        view = app_home_view("U1", taxonomy)

        text = str(view["blocks"])
        assert view["type"] == "home"
        assert "<@U1>" in text
        assert ":red_circle: *High*" in text
        assert ":white_check_mark: *resolved*" in text
