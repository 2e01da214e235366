"""Resolve per-workspace bot credentials for incoming requests.

The resolver sits between slack-bolt's ``authorize`` hook and the
installation store. It keeps a small TTL cache so that every shortcut and
view submission does not hit the database, and drops a tenant's entry
whenever that tenant reinstalls.
"""

from __future__ import annotations

import time
from collections import OrderedDict
from typing import TYPE_CHECKING

import structlog
from slack_bolt.authorization import AuthorizeResult

from triage_bot.config.schema import CacheConfig
from triage_bot.models.installation import BotCredential
from triage_bot.utils.async_helpers import (
    AuthorizationError,
    AuthorizationUnavailableError,
    StoreError,
)
from triage_bot.utils.logging import LogEventNames

if TYPE_CHECKING:
    from triage_bot.interfaces.store import InstallationStore

log = structlog.get_logger()


class CredentialCache:
    """Bounded TTL cache of resolved credentials, keyed by tenant.

    When full, the entry stored earliest is evicted.
    """

    def __init__(self, ttl: int = 300, max_entries: int = 256) -> None:
        """Initialize the cache.

        Args:
            ttl: Time-to-live in seconds; 0 disables caching
            max_entries: Upper bound on cached tenants
        """
        self._ttl = ttl
        self._max_entries = max_entries
        self._cache: OrderedDict[str, tuple[BotCredential, float]] = OrderedDict()

    def __len__(self) -> int:
        return len(self._cache)

    def get(self, tenant_id: str) -> BotCredential | None:
        """Return the cached credential, or None if missing or expired."""
        entry = self._cache.get(tenant_id)
        if entry is None:
            return None

        credential, stored_at = entry
        if time.monotonic() - stored_at > self._ttl:
            del self._cache[tenant_id]
            return None

        return credential

    def set(self, tenant_id: str, credential: BotCredential) -> None:
        if self._ttl <= 0:
            return
        self._cache.pop(tenant_id, None)
        self._cache[tenant_id] = (credential, time.monotonic())
        while len(self._cache) > self._max_entries:
            self._cache.popitem(last=False)

    def invalidate(self, tenant_id: str) -> None:
        self._cache.pop(tenant_id, None)


class AuthorizationResolver:
    """Turns a tenant ID into a usable bot credential.

    Example:
        resolver = AuthorizationResolver(store, CacheConfig())
        credential = await resolver.resolve("T123")

        result = await resolver.authorize(team_id="T123")
    """

    def __init__(self, store: InstallationStore, cache_config: CacheConfig | None = None) -> None:
        cache_config = cache_config or CacheConfig()
        self._store = store
        self._cache = CredentialCache(ttl=cache_config.ttl, max_entries=cache_config.max_entries)
        # Bumped by invalidate; a lookup that raced a reinstall is not cached.
        self._generations: dict[str, int] = {}

    async def resolve(self, tenant_id: str) -> BotCredential:
        """Return the bot credential for a tenant.

        Raises:
            AuthorizationError: If the tenant has no installation.
            AuthorizationUnavailableError: If the store could not be read.
        """
        cached = self._cache.get(tenant_id)
        if cached is not None:
            log.debug(LogEventNames.CACHE_HIT, tenant_id=tenant_id)
            return cached

        log.debug(LogEventNames.CACHE_MISS, tenant_id=tenant_id)
        generation = self._generations.get(tenant_id, 0)
        try:
            record = await self._store.lookup(tenant_id)
        except StoreError as e:
            log.error(
                LogEventNames.AUTHORIZATION_STORE_UNAVAILABLE,
                tenant_id=tenant_id,
                error=str(e),
            )
            raise AuthorizationUnavailableError(
                f"installation store unavailable for tenant {tenant_id}"
            ) from e

        if record is None:
            log.warning(LogEventNames.AUTHORIZATION_MISSING, tenant_id=tenant_id)
            raise AuthorizationError("no matching authorization for tenant")

        credential = record.credential()
        if self._generations.get(tenant_id, 0) == generation:
            self._cache.set(tenant_id, credential)
        return credential

    def invalidate(self, tenant_id: str) -> None:
        """Forget a cached credential (called when a tenant reinstalls)."""
        self._generations[tenant_id] = self._generations.get(tenant_id, 0) + 1
        self._cache.invalidate(tenant_id)

    async def authorize(self, team_id: str | None) -> AuthorizeResult:
        """Build the result slack-bolt expects from its ``authorize`` hook.

        Raises:
            AuthorizationError: If the request carries no team or the team
                has no installation.
        """
        if not team_id:
            raise AuthorizationError("request carries no team id")
        credential = await self.resolve(team_id)
        return credential.to_authorize_result()
