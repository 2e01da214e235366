"""Data models for workspace installations and bot credentials."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any

from slack_bolt.authorization import AuthorizeResult

# Installer tokens are never persisted; see InstallationRecord.from_payload.
STRIPPED_PAYLOAD_KEYS = frozenset({"user_token", "user_refresh_token", "user_token_expires_at"})


def _scopes(value: Any) -> tuple[str, ...]:
    if not value:
        return ()
    if isinstance(value, str):
        return tuple(s.strip() for s in value.split(",") if s.strip())
    return tuple(str(s) for s in value)


def _epoch(value: Any) -> float:
    if value is None:
        return 0.0
    if isinstance(value, datetime):
        return value.timestamp()
    return float(value)


@dataclass(frozen=True)
class InstallationRecord:
    """The single stored installation of the bot in one workspace."""

    tenant_id: str
    team_name: str | None
    bot_token: str
    bot_id: str | None
    bot_user_id: str | None
    bot_scopes: tuple[str, ...]
    installer_user_id: str | None
    enterprise_id: str | None = None
    app_id: str | None = None
    installed_at: float = 0.0

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> InstallationRecord:
        """Build a record from a flat install payload.

        Accepts the keys of ``slack_sdk.oauth.installation_store.Installation``
        (``team_id``, ``bot_token``, ``bot_scopes``, ``user_id`` ...). The
        installer's personal token fields are dropped here.

        Raises:
            ValueError: If the payload has no team id or bot token.
        """
        data = {k: v for k, v in payload.items() if k not in STRIPPED_PAYLOAD_KEYS}
        tenant_id = data.get("team_id") or data.get("tenant_id")
        bot_token = data.get("bot_token")
        if not tenant_id:
            raise ValueError("Install payload is missing team_id")
        if not bot_token:
            raise ValueError(f"Install payload for {tenant_id} is missing bot_token")

        return cls(
            tenant_id=str(tenant_id),
            team_name=data.get("team_name"),
            bot_token=str(bot_token),
            bot_id=data.get("bot_id"),
            bot_user_id=data.get("bot_user_id"),
            bot_scopes=_scopes(data.get("bot_scopes")),
            installer_user_id=data.get("user_id") or data.get("installer_user_id"),
            enterprise_id=data.get("enterprise_id"),
            app_id=data.get("app_id"),
            installed_at=_epoch(data.get("installed_at")),
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> InstallationRecord:
        """Rebuild a record from :meth:`to_dict` output."""
        values = dict(data)
        values["bot_scopes"] = tuple(values.get("bot_scopes") or ())
        return cls(**values)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["bot_scopes"] = list(self.bot_scopes)
        return data

    def credential(self) -> BotCredential:
        return BotCredential(
            tenant_id=self.tenant_id,
            bot_token=self.bot_token,
            bot_id=self.bot_id,
            bot_user_id=self.bot_user_id,
            enterprise_id=self.enterprise_id,
            scopes=self.bot_scopes,
        )


@dataclass(frozen=True)
class BotCredential:
    """What a request needs to act as the bot in one workspace."""

    tenant_id: str
    bot_token: str
    bot_id: str | None
    bot_user_id: str | None
    enterprise_id: str | None = None
    scopes: tuple[str, ...] = ()

    def to_authorize_result(self) -> AuthorizeResult:
        """Convert to the object slack-bolt expects from ``authorize``."""
        return AuthorizeResult(
            enterprise_id=self.enterprise_id,
            team_id=self.tenant_id,
            bot_token=self.bot_token,
            bot_id=self.bot_id,
            bot_user_id=self.bot_user_id,
            bot_scopes=list(self.scopes),
        )
