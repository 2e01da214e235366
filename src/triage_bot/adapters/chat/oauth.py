"""Bridge slack-bolt's OAuth install flow to the installation store.

slack-bolt runs the OAuth dance and hands the finished installation to an
``AsyncInstallationStore``. This implementation upserts it as the tenant's
single record and drops any cached credential so the next request sees the
reinstall.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import structlog
from slack_sdk.oauth.installation_store import Bot, Installation
from slack_sdk.oauth.installation_store.async_installation_store import (
    AsyncInstallationStore,
)

if TYPE_CHECKING:
    from ...core.authorizer import AuthorizationResolver
    from ...interfaces.store import InstallationStore
    from ...models.installation import InstallationRecord

log = structlog.get_logger()


def installation_payload(installation: Installation) -> dict[str, object]:
    """Flatten a slack-sdk Installation into a store payload.

    The installer's user token is included as Slack returned it; the store
    strips it before writing.
    """
    return {
        "team_id": installation.team_id,
        "team_name": installation.team_name,
        "enterprise_id": installation.enterprise_id,
        "app_id": installation.app_id,
        "bot_token": installation.bot_token,
        "bot_id": installation.bot_id,
        "bot_user_id": installation.bot_user_id,
        "bot_scopes": list(installation.bot_scopes or []),
        "user_id": installation.user_id,
        "user_token": installation.user_token,
        "installed_at": installation.installed_at,
    }


class TriageInstallationStore(AsyncInstallationStore):
    """slack-sdk installation store backed by our per-tenant records."""

    def __init__(self, store: InstallationStore, resolver: AuthorizationResolver) -> None:
        self._store = store
        self._resolver = resolver
        self._logger = logging.getLogger(__name__)

    @property
    def logger(self) -> logging.Logger:
        return self._logger

    async def async_save(self, installation: Installation) -> None:
        tenant_id = installation.team_id
        if not tenant_id:
            # Org-wide (enterprise) installs carry no team; not supported.
            log.warning("enterprise_install_ignored", enterprise_id=installation.enterprise_id)
            return
        await self._store.upsert(tenant_id, installation_payload(installation))
        self._resolver.invalidate(tenant_id)

    async def async_find_bot(
        self,
        *,
        enterprise_id: str | None,
        team_id: str | None,
        is_enterprise_install: bool | None = False,
    ) -> Bot | None:
        record = await self._find(team_id)
        if record is None:
            return None
        return Bot(
            app_id=record.app_id,
            enterprise_id=record.enterprise_id,
            team_id=record.tenant_id,
            team_name=record.team_name,
            bot_token=record.bot_token,
            bot_id=record.bot_id,
            bot_user_id=record.bot_user_id,
            bot_scopes=list(record.bot_scopes),
            installed_at=record.installed_at,
        )

    async def async_find_installation(
        self,
        *,
        enterprise_id: str | None,
        team_id: str | None,
        user_id: str | None = None,
        is_enterprise_install: bool | None = False,
    ) -> Installation | None:
        record = await self._find(team_id)
        if record is None:
            return None
        return Installation(
            app_id=record.app_id,
            enterprise_id=record.enterprise_id,
            team_id=record.tenant_id,
            team_name=record.team_name,
            bot_token=record.bot_token,
            bot_id=record.bot_id,
            bot_user_id=record.bot_user_id,
            bot_scopes=list(record.bot_scopes),
            user_id=record.installer_user_id or "",
            installed_at=record.installed_at,
        )

    async def _find(self, team_id: str | None) -> InstallationRecord | None:
        if not team_id:
            return None
        return await self._store.lookup(team_id)
