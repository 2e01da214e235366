"""Block Kit views: the channel-selection modal and the App Home panel."""

from __future__ import annotations

from typing import Any

from ...config.schema import TaxonomyConfig, TriageConfig
from ...models.triage import MAX_HOURS_BACK, parse_hours_back

TRIAGE_SHORTCUT_ID = "triage_stats"
DEBUG_REMINDERS_SHORTCUT_ID = "debug_manually_trigger_scheduled_jobs"
CHANNEL_SELECTED_CALLBACK_ID = "channel_selected"

CHANNEL_BLOCK_ID = "channel"
CHANNEL_ACTION_ID = "channel"
HOURS_BLOCK_ID = "n_hours"
HOURS_ACTION_ID = "n_hours"


def _plain(text: str) -> dict[str, Any]:
    return {"type": "plain_text", "text": text, "emoji": True}


def _hours_option(hours: int) -> dict[str, Any]:
    return {"text": _plain(f"{hours} hours"), "value": str(hours)}


def select_triage_channel_modal(config: TriageConfig) -> dict[str, Any]:
    """Modal asking for a channel and a look-back window."""
    return {
        "type": "modal",
        "callback_id": CHANNEL_SELECTED_CALLBACK_ID,
        "title": _plain("Triage stats"),
        "submit": _plain("Submit"),
        "close": _plain("Cancel"),
        "blocks": [
            {
                "type": "input",
                "block_id": CHANNEL_BLOCK_ID,
                "label": _plain("Select a channel to calculate stats for"),
                "element": {
                    "type": "conversations_select",
                    "action_id": CHANNEL_ACTION_ID,
                    "default_to_current_conversation": True,
                    "filter": {
                        "include": ["public", "private"],
                        "exclude_bot_users": True,
                    },
                },
            },
            {
                "type": "input",
                "block_id": HOURS_BLOCK_ID,
                "label": _plain("How far back should we look?"),
                "element": {
                    "type": "static_select",
                    "action_id": HOURS_ACTION_ID,
                    "initial_option": _hours_option(config.default_hours_back),
                    "options": [_hours_option(h) for h in config.hours_options],
                },
            },
        ],
    }


def parse_channel_selection(
    view: dict[str, Any],
    default_hours: int,
    max_hours: int = MAX_HOURS_BACK,
) -> tuple[str, int]:
    """Read ``(channel_id, hours_back)`` from a submitted selection modal.

    The window is clamped to ``max_hours``.

    Raises:
        KeyError: If the channel was not part of the submission.
    """
    values = view.get("state", {}).get("values", {})
    channel_id = values[CHANNEL_BLOCK_ID][CHANNEL_ACTION_ID]["selected_conversation"]
    hours_state = values.get(HOURS_BLOCK_ID, {}).get(HOURS_ACTION_ID, {})
    selected = hours_state.get("selected_option") or {}
    return channel_id, parse_hours_back(
        selected.get("value"),
        default=default_hours,
        maximum=max_hours,
    )


def app_home_view(user_id: str, taxonomy: TaxonomyConfig) -> dict[str, Any]:
    """Static App Home panel explaining the tag conventions."""
    level_lines = "\n".join(
        f"{level.emoji} *{level.display_label}*" for level in taxonomy.levels
    )
    status_lines = "\n".join(
        f"{status.emoji} *{status.display_label}*" for status in taxonomy.statuses
    )
    return {
        "type": "home",
        "blocks": [
            {
                "type": "section",
                "text": {
                    "type": "mrkdwn",
                    "text": f"Hi <@{user_id}> :wave: I summarize triage channels on demand.",
                },
            },
            {"type": "divider"},
            {
                "type": "section",
                "text": {
                    "type": "mrkdwn",
                    "text": (
                        "*Urgency levels* are read from emoji in the message text:\n"
                        f"{level_lines}"
                    ),
                },
            },
            {
                "type": "section",
                "text": {
                    "type": "mrkdwn",
                    "text": (
                        "*Statuses* are read from emoji in the text or reactions:\n"
                        f"{status_lines}"
                    ),
                },
            },
            {
                "type": "context",
                "elements": [
                    {
                        "type": "mrkdwn",
                        "text": "Use the *Triage stats* shortcut to get a summary and a CSV export.",
                    }
                ],
            },
        ],
    }
