"""Protocol definitions for pluggable adapters."""

from .chat import ChatProvider, HistoryPage
from .store import InstallationStore

__all__ = ["ChatProvider", "HistoryPage", "InstallationStore"]
