"""Override persistence: one row per tenant, atomic compare-and-set upserts.

Each stored override carries a version. Writers pass the version they read
(0 when no row existed); a write only lands if the stored version still
matches, otherwise ConcurrentModificationError is raised with the committed
state so the caller can reload and retry.

A row whose valid_until is at or before the write time (the new override's
updated_at) is expired and counts as absent: any expected version wins
against it, the same as an insert.
"""

from __future__ import annotations

import asyncio
import dataclasses
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Protocol

import structlog
from sqlalchemy import delete, or_, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from entitlement_exchange.core.exceptions import ConcurrentModificationError, StorageUnavailableError
from entitlement_exchange.db.base import get_session_factory
from entitlement_exchange.db.models.resource_override import ResourceOverrideRow
from entitlement_exchange.domain.limits import ResourceOverride

logger = structlog.get_logger(__name__)

__all__ = [
    "InMemoryOverrideStore",
    "OverrideStore",
    "ResourceOverride",
    "SqlOverrideStore",
]


class OverrideStore(Protocol):
    async def get(self, tenant_id: str) -> ResourceOverride | None:
        """Return the stored override, expired or not."""
        ...

    async def upsert(self, override: ResourceOverride, expected_version: int) -> ResourceOverride:
        """Insert or replace the tenant's override if the version still matches.

        An expired stored row never blocks the write.
        """
        ...

    async def delete(self, tenant_id: str) -> bool:
        """Delete the tenant's override. Returns False when none existed."""
        ...

    async def purge_expired(self, now: datetime) -> int:
        """Delete overrides whose validity ended. Returns the number removed."""
        ...


def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes; everything stored is UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _to_record(row) -> ResourceOverride:
    return ResourceOverride(
        tenant_id=row.tenant_id,
        seats_delta=row.seats_delta,
        projects_delta=row.projects_delta,
        storage_delta_gb=row.storage_delta_gb,
        points_earned=float(row.points_earned),
        points_spent=float(row.points_spent),
        valid_until=_as_utc(row.valid_until),
        updated_at=_as_utc(row.updated_at),
        created_at=_as_utc(row.created_at),
        version=row.version,
    )


class SqlOverrideStore:
    """SQLAlchemy-backed store using INSERT ... ON CONFLICT DO UPDATE.

    Works on PostgreSQL (production) and SQLite (tests); both support a
    conditional conflict update with RETURNING.
    """

    _INSERTS = {
        "postgresql": postgresql.insert,
        "sqlite": sqlite.insert,
    }

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None):
        self._session_factory = session_factory

    def _factory(self) -> async_sessionmaker[AsyncSession]:
        return self._session_factory or get_session_factory()

    @asynccontextmanager
    async def _session(self, operation: str) -> AsyncIterator[AsyncSession]:
        try:
            async with self._factory()() as session:
                yield session
        except (SQLAlchemyError, OSError) as exc:
            logger.error(
                "override_store_unavailable",
                operation=operation,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            raise StorageUnavailableError(f"Override store unavailable during {operation}") from exc

    async def get(self, tenant_id: str) -> ResourceOverride | None:
        async with self._session("get") as session:
            result = await session.execute(
                select(ResourceOverrideRow).where(ResourceOverrideRow.tenant_id == tenant_id)
            )
            row = result.scalar_one_or_none()
            return _to_record(row) if row is not None else None

    async def upsert(self, override: ResourceOverride, expected_version: int) -> ResourceOverride:
        table = ResourceOverrideRow.__table__

        async with self._session("upsert") as session:
            dialect = session.get_bind().dialect.name
            insert = self._INSERTS.get(dialect)
            if insert is None:
                raise StorageUnavailableError(f"Unsupported database dialect: {dialect}")

            stmt = insert(table).values(
                tenant_id=override.tenant_id,
                seats_delta=override.seats_delta,
                projects_delta=override.projects_delta,
                storage_delta_gb=override.storage_delta_gb,
                points_earned=override.points_earned,
                points_spent=override.points_spent,
                valid_until=override.valid_until,
                version=1,
                created_at=override.updated_at,
                updated_at=override.updated_at,
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=["tenant_id"],
                set_={
                    "seats_delta": stmt.excluded.seats_delta,
                    "projects_delta": stmt.excluded.projects_delta,
                    "storage_delta_gb": stmt.excluded.storage_delta_gb,
                    "points_earned": stmt.excluded.points_earned,
                    "points_spent": stmt.excluded.points_spent,
                    "valid_until": stmt.excluded.valid_until,
                    "updated_at": stmt.excluded.updated_at,
                    "version": table.c.version + 1,
                },
                where=or_(
                    table.c.version == expected_version,
                    table.c.valid_until <= override.updated_at,
                ),
            ).returning(*table.c)

            result = await session.execute(stmt)
            row = result.first()
            await session.commit()

        if row is None:
            committed = await self.get(override.tenant_id)
            logger.warning(
                "override_version_conflict",
                tenant_id=override.tenant_id,
                expected_version=expected_version,
                committed_version=committed.version if committed else None,
            )
            raise ConcurrentModificationError(override.tenant_id, committed)

        return _to_record(row)

    async def delete(self, tenant_id: str) -> bool:
        async with self._session("delete") as session:
            result = await session.execute(
                delete(ResourceOverrideRow).where(ResourceOverrideRow.tenant_id == tenant_id)
            )
            await session.commit()
            return result.rowcount > 0

    async def purge_expired(self, now: datetime) -> int:
        async with self._session("purge_expired") as session:
            result = await session.execute(
                delete(ResourceOverrideRow).where(ResourceOverrideRow.valid_until <= now)
            )
            await session.commit()
            return result.rowcount


class InMemoryOverrideStore:
    """Process-local store with the same compare-and-set semantics."""

    def __init__(self) -> None:
        self._rows: dict[str, ResourceOverride] = {}
        self._lock = asyncio.Lock()

    async def get(self, tenant_id: str) -> ResourceOverride | None:
        return self._rows.get(tenant_id)

    async def upsert(self, override: ResourceOverride, expected_version: int) -> ResourceOverride:
        async with self._lock:
            current = self._rows.get(override.tenant_id)

            if current is None:
                stored = dataclasses.replace(override, version=1, created_at=override.updated_at)
            elif current.is_active(override.updated_at) and current.version != expected_version:
                raise ConcurrentModificationError(override.tenant_id, current)
            else:
                stored = dataclasses.replace(
                    override,
                    version=current.version + 1,
                    created_at=current.created_at,
                )

            self._rows[override.tenant_id] = stored
            return stored

    async def delete(self, tenant_id: str) -> bool:
        async with self._lock:
            return self._rows.pop(tenant_id, None) is not None

    async def purge_expired(self, now: datetime) -> int:
        async with self._lock:
            expired = [tid for tid, row in self._rows.items() if not row.is_active(now)]
            for tid in expired:
                del self._rows[tid]
            return len(expired)
