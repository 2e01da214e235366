"""Core business logic components.

This module exports the main business logic classes:
- TriageBot: Wires the Slack app, storage and scheduling together
- TriageHandler: Orchestrates the triage request pipeline
- AuthorizationResolver: Maps a tenant to its bot credential
- HistoryFetcher: Reads a channel's messages for a time window
- MessageClassifier: Tags messages with level and status facets
- ReminderScheduler: Sends periodic reminders about unhandled messages
"""

from triage_bot.core.aggregator import format_summary_blocks, format_summary_text, summarize
from triage_bot.core.authorizer import AuthorizationResolver, CredentialCache
from triage_bot.core.bot import TriageBot, create_bot
from triage_bot.core.classifier import MessageClassifier
from triage_bot.core.exporter import export_filename, export_title, to_delimited_text
from triage_bot.core.history import HistoryFetcher
from triage_bot.core.reminders import ReminderScheduler
from triage_bot.core.triage_handler import TriageHandler

__all__ = [
    "AuthorizationResolver",
    "CredentialCache",
    "HistoryFetcher",
    "MessageClassifier",
    "ReminderScheduler",
    "TriageBot",
    "TriageHandler",
    "create_bot",
    "export_filename",
    "export_title",
    "format_summary_blocks",
    "format_summary_text",
    "summarize",
    "to_delimited_text",
]
