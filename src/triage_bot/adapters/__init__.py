"""Concrete implementations of provider interfaces."""

from .chat.oauth import TriageInstallationStore
from .chat.slack import SlackAdapter
from .store.sqlite import SQLiteInstallationStore

__all__ = [
    "SQLiteInstallationStore",
    "SlackAdapter",
    "TriageInstallationStore",
]
