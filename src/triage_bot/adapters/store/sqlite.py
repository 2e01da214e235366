"""SQLite installation store using aiosqlite.

Keeps one row per tenant. The table's primary key plus an upsert statement
enforce the single-record invariant; an asyncio.Lock serializes writes so
rapid reinstalls of the same workspace land one after the other.
"""

from __future__ import annotations

import asyncio
import json
import time
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import aiosqlite
import structlog

from ...models.installation import InstallationRecord
from ...utils.async_helpers import StoreError
from ...utils.logging import LogEventNames

log = structlog.get_logger()

_SCHEMA = """
CREATE TABLE IF NOT EXISTS installations (
    tenant_id TEXT PRIMARY KEY,
    data TEXT NOT NULL,
    updated_at REAL NOT NULL
);
"""

_UPSERT = """
INSERT INTO installations (tenant_id, data, updated_at)
VALUES (?, ?, ?)
ON CONFLICT(tenant_id) DO UPDATE SET
    data = excluded.data,
    updated_at = excluded.updated_at
"""


class SQLiteInstallationStore:
    """Durable per-tenant installation records.

    Example:
        store = SQLiteInstallationStore(Path("data/installations.db"))
        await store.connect()
        await store.upsert("T123", installation_payload)
        record = await store.lookup("T123")
        await store.close()
    """

    def __init__(self, path: Path | str) -> None:
        self._path = str(path)
        self._db: aiosqlite.Connection | None = None
        self._lock = asyncio.Lock()

    @property
    def is_connected(self) -> bool:
        return self._db is not None

    async def connect(self) -> None:
        """Open the database and create the table.

        Raises:
            StoreError: If the database cannot be opened.
        """
        async with self._lock:
            await self._connect_unlocked()

    async def _connect_unlocked(self) -> aiosqlite.Connection:
        if self._db is None:
            try:
                if self._path != ":memory:":
                    Path(self._path).parent.mkdir(parents=True, exist_ok=True)
                self._db = await aiosqlite.connect(self._path)
                await self._db.executescript(_SCHEMA)
                await self._db.commit()
            except (aiosqlite.Error, OSError) as e:
                self._db = None
                log.error("installation_store_connect_failed", path=self._path, error=str(e))
                raise StoreError(f"Failed to open installation store: {e}") from e
            log.info("installation_store_connected", path=self._path)
        return self._db

    async def close(self) -> None:
        """Close the database connection."""
        async with self._lock:
            if self._db is not None:
                await self._db.close()
                self._db = None

    async def upsert(self, tenant_id: str, payload: Mapping[str, Any]) -> bool:
        """Replace the tenant's record with one built from ``payload``.

        Args:
            tenant_id: Workspace (team) ID the payload belongs to.
            payload: Flat install payload; installer tokens are stripped.

        Returns:
            True once the record is durable.

        Raises:
            ValueError: If the payload is for a different tenant.
            StoreError: If the write fails.
        """
        record = InstallationRecord.from_payload({"team_id": tenant_id, **payload})
        if record.tenant_id != tenant_id:
            raise ValueError(
                f"Install payload is for tenant {record.tenant_id}, not {tenant_id}"
            )
        data = json.dumps(record.to_dict(), sort_keys=True)

        async with self._lock:
            db = await self._connect_unlocked()
            try:
                await db.execute(_UPSERT, (tenant_id, data, time.time()))
                await db.commit()
            except aiosqlite.Error as e:
                log.error("installation_upsert_failed", tenant_id=tenant_id, error=str(e))
                raise StoreError(f"Failed to save installation for {tenant_id}: {e}") from e

        log.info(
            LogEventNames.INSTALLATION_SAVED,
            tenant_id=tenant_id,
            team_name=record.team_name,
            scopes=len(record.bot_scopes),
        )
        return True

    async def lookup(self, tenant_id: str) -> InstallationRecord | None:
        """Return the tenant's record, or None when not installed.

        Raises:
            StoreError: If the read fails.
        """
        row = await self._fetchone(
            "SELECT data FROM installations WHERE tenant_id = ?",
            (tenant_id,),
        )
        if row is None:
            return None
        return InstallationRecord.from_dict(json.loads(row[0]))

    async def list_tenant_ids(self) -> list[str]:
        """Return all tenants with a stored installation, sorted."""
        async with self._lock:
            db = await self._connect_unlocked()
            try:
                cursor = await db.execute("SELECT tenant_id FROM installations ORDER BY tenant_id")
                rows = await cursor.fetchall()
            except aiosqlite.Error as e:
                raise StoreError(f"Failed to list installations: {e}") from e
        return [row[0] for row in rows]

    async def count(self, tenant_id: str | None = None) -> int:
        """Count stored records, optionally for one tenant."""
        if tenant_id is None:
            row = await self._fetchone("SELECT COUNT(*) FROM installations", ())
        else:
            row = await self._fetchone(
                "SELECT COUNT(*) FROM installations WHERE tenant_id = ?",
                (tenant_id,),
            )
        return int(row[0]) if row else 0

    async def _fetchone(self, sql: str, params: tuple[Any, ...]) -> Any:
        async with self._lock:
            db = await self._connect_unlocked()
            try:
                cursor = await db.execute(sql, params)
                return await cursor.fetchone()
            except aiosqlite.Error as e:
                log.error("installation_store_read_failed", error=str(e))
                raise StoreError(f"Installation store read failed: {e}") from e
