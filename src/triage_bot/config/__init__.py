"""Configuration loading and validation."""

from .loader import load_config
from .schema import (
    BotConfig,
    CacheConfig,
    LoggingConfig,
    ReminderConfig,
    ServerConfig,
    SlackConfig,
    StoreConfig,
    TaxonomyConfig,
    TaxonomyEntry,
    TriageConfig,
)

__all__ = [
    # Loader
    "load_config",
    # Root config
    "BotConfig",
    # Sections
    "SlackConfig",
    "ServerConfig",
    "StoreConfig",
    "CacheConfig",
    "TaxonomyConfig",
    "TaxonomyEntry",
    "TriageConfig",
    "ReminderConfig",
    "LoggingConfig",
]
