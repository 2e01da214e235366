"""Abstract interface for installation persistence."""

from collections.abc import Mapping
from typing import Any, Protocol

from ..models.installation import InstallationRecord


class InstallationStore(Protocol):
    """Stores exactly one installation record per tenant."""

    async def upsert(self, tenant_id: str, payload: Mapping[str, Any]) -> bool:
        """
        Replace the tenant's record with one built from ``payload``.

        The installer's personal token is stripped before anything is written.

        Raises:
            StoreError: If the write fails
        """
        ...

    async def lookup(self, tenant_id: str) -> InstallationRecord | None:
        """
        Return the tenant's record, or None when the bot is not installed.

        Raises:
            StoreError: If the read fails
        """
        ...

    async def list_tenant_ids(self) -> list[str]:
        """Return all tenants with a stored installation."""
        ...
