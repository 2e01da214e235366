"""Pydantic models for configuration schema."""

import re
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

EMOJI_PATTERN = re.compile(r"^:[a-z0-9_+\-']+:$")
FACET_NAME_PATTERN = re.compile(r"^[a-z0-9_\-]+$")


class SlackConfig(BaseModel):
    """Slack app credentials and OAuth routes."""

    signing_secret: str
    client_id: str
    client_secret: str
    scopes: list[str] = [
        "channels:history",
        "channels:join",
        "channels:read",
        "chat:write",
        "commands",
        "files:write",
        "groups:history",
        "groups:read",
    ]
    events_path: str = "/slack/events"
    install_path: str = "/slack/install"
    redirect_uri_path: str = "/slack/oauth_redirect"
    state_expiration_seconds: int = Field(600, ge=60)

    @field_validator("signing_secret", "client_id", "client_secret")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        """Reject empty credentials (usually an unset environment variable)."""
        if not v.strip():
            raise ValueError("Slack credentials must not be blank")
        return v


class ServerConfig(BaseModel):
    """HTTP listener configuration."""

    host: str = "0.0.0.0"  # noqa: S104
    port: int = Field(3000, ge=1, le=65535)


class StoreConfig(BaseModel):
    """Installation store configuration."""

    path: Path = Path("data/installations.db")


class CacheConfig(BaseModel):
    """Credential cache configuration."""

    ttl: int = Field(300, ge=0, description="Seconds a resolved credential stays cached")
    max_entries: int = Field(256, ge=1)


class TaxonomyEntry(BaseModel):
    """One level or status of the triage taxonomy."""

    model_config = ConfigDict(frozen=True)

    name: str
    emoji: str
    label: str = ""
    tags: tuple[str, ...] = ()

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Names become CSV column suffixes, so keep them simple."""
        if not FACET_NAME_PATTERN.match(v):
            raise ValueError(f"Invalid taxonomy name: {v}. Use lowercase letters, digits, - or _")
        return v

    @field_validator("emoji")
    @classmethod
    def validate_emoji(cls, v: str) -> str:
        """Validate Slack emoji code format."""
        if not EMOJI_PATTERN.match(v):
            raise ValueError(f"Emoji must look like :name:, got {v}")
        return v

    @property
    def display_label(self) -> str:
        """Label shown to users, defaulting to the name."""
        return self.label or self.name

    @property
    def reaction_name(self) -> str:
        """Emoji name as Slack reports it in reactions (no colons)."""
        return self.emoji.strip(":")


def _default_levels() -> tuple[TaxonomyEntry, ...]:
    return (
        TaxonomyEntry(name="urgent", emoji=":red_circle:"),
        TaxonomyEntry(name="medium", emoji=":large_blue_circle:"),
        TaxonomyEntry(name="low", emoji=":white_circle:"),
    )


def _default_statuses() -> tuple[TaxonomyEntry, ...]:
    return (
        TaxonomyEntry(name="acknowledged", emoji=":eyes:"),
        TaxonomyEntry(name="done", emoji=":white_check_mark:"),
    )


class TaxonomyConfig(BaseModel):
    """Ordered levels and statuses used to classify messages."""

    model_config = ConfigDict(frozen=True)

    levels: tuple[TaxonomyEntry, ...] = Field(default_factory=_default_levels)
    statuses: tuple[TaxonomyEntry, ...] = Field(default_factory=_default_statuses)

    @model_validator(mode="after")
    def check_unique_names(self) -> "TaxonomyConfig":
        """Ensure names are unique and both lists are non-empty."""
        for kind, entries in (("levels", self.levels), ("statuses", self.statuses)):
            if not entries:
                raise ValueError(f"Taxonomy {kind} must not be empty")
            names = [e.name for e in entries]
            if len(names) != len(set(names)):
                raise ValueError(f"Duplicate taxonomy {kind}: {names}")
        return self

    @property
    def level_names(self) -> list[str]:
        return [e.name for e in self.levels]

    @property
    def status_names(self) -> list[str]:
        return [e.name for e in self.statuses]


class TriageConfig(BaseModel):
    """Triage request and history retrieval configuration."""

    default_hours_back: int = Field(7, ge=1)
    hours_options: list[int] = [1, 2, 4, 7, 12, 24, 48, 72, 168]
    page_size: int = Field(200, ge=1, le=1000)
    max_pages: int = Field(50, ge=1, le=1000, description="Safety cap on history pages")
    fetch_timeout: float = Field(120.0, gt=0, le=900, description="History fetch budget (s)")
    export_untagged: bool = True

    @field_validator("hours_options")
    @classmethod
    def validate_hours_options(cls, v: list[int]) -> list[int]:
        """Modal options must be positive and non-empty."""
        if not v or any(h < 1 for h in v):
            raise ValueError("hours_options must be a non-empty list of positive integers")
        return v


class ReminderConfig(BaseModel):
    """A periodic reminder about messages still missing a status."""

    name: str
    cron: str = "0 * * * *"
    channel_id: str
    hours_back: int = Field(12, ge=1)
    levels: list[str] = []
    missing_statuses: list[str] = []

    @field_validator("cron")
    @classmethod
    def validate_cron(cls, v: str) -> str:
        """Validate the crontab expression with APScheduler's parser."""
        from apscheduler.triggers.cron import CronTrigger

        try:
            CronTrigger.from_crontab(v)
        except ValueError as e:
            raise ValueError(f"Invalid cron expression '{v}': {e}") from e
        return v


class FileLoggingConfig(BaseModel):
    """File logging configuration."""

    enabled: bool = False
    path: Path = Path("/var/log/triage-bot/bot.log")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: Literal["json", "console"] = "json"
    file: FileLoggingConfig = FileLoggingConfig()


class BotConfig(BaseSettings):
    """Root configuration for Triage Bot."""

    slack: SlackConfig
    server: ServerConfig = ServerConfig()
    store: StoreConfig = StoreConfig()
    cache: CacheConfig = CacheConfig()
    taxonomy: TaxonomyConfig = TaxonomyConfig()
    triage: TriageConfig = TriageConfig()
    reminders: list[ReminderConfig] = []
    logging: LoggingConfig = LoggingConfig()

    model_config = SettingsConfigDict(
        env_file=".env",
        env_nested_delimiter="__",
    )
