"""Live usage counts for seats, projects and storage."""

from typing import Protocol

import structlog
from redis.asyncio import Redis
from redis.exceptions import RedisError

from entitlement_exchange.core.exceptions import StorageUnavailableError
from entitlement_exchange.domain.limits import UsageSnapshot

logger = structlog.get_logger(__name__)


class UsageReader(Protocol):
    async def get_usage(self, tenant_id: str) -> UsageSnapshot:
        ...


class RedisUsageReader:
    """Read usage counters maintained by the systems that own each resource.

    Keys:
        exchange:usage:{tenant_id}:seats
        exchange:usage:{tenant_id}:projects
        exchange:usage:{tenant_id}:storage_mb
    """

    KEY_PREFIX = "exchange:usage:"

    def __init__(self, redis: Redis):
        self.redis = redis

    def _key(self, tenant_id: str, counter: str) -> str:
        return f"{self.KEY_PREFIX}{tenant_id}:{counter}"

    def _unavailable(self, operation: str, tenant_id: str, exc: Exception) -> StorageUnavailableError:
        logger.error(
            "usage_store_unavailable",
            operation=operation,
            tenant_id=tenant_id,
            error=str(exc),
            error_type=type(exc).__name__,
        )
        return StorageUnavailableError(f"Usage counters unavailable during {operation}")

    async def get_usage(self, tenant_id: str) -> UsageSnapshot:
        """Build a usage snapshot. Missing counters read as 0, negatives clamp to 0.

        Args:
            tenant_id: Tenant identifier

        Returns:
            UsageSnapshot with storage still in MB

        Raises:
            StorageUnavailableError: Redis is unreachable
        """
        try:
            seats, projects, storage_mb = await self.redis.mget(
                self._key(tenant_id, "seats"),
                self._key(tenant_id, "projects"),
                self._key(tenant_id, "storage_mb"),
            )
        except (RedisError, OSError) as exc:
            raise self._unavailable("get_usage", tenant_id, exc) from exc

        return UsageSnapshot(
            seats_used=max(0, int(seats)) if seats else 0,
            projects_used=max(0, int(projects)) if projects else 0,
            storage_used_mb=max(0.0, float(storage_mb)) if storage_mb else 0.0,
        )

    async def set_usage(self, tenant_id: str, usage: UsageSnapshot) -> None:
        """Overwrite all three counters atomically."""
        try:
            await self.redis.mset({
                self._key(tenant_id, "seats"): usage.seats_used,
                self._key(tenant_id, "projects"): usage.projects_used,
                self._key(tenant_id, "storage_mb"): usage.storage_used_mb,
            })
        except (RedisError, OSError) as exc:
            raise self._unavailable("set_usage", tenant_id, exc) from exc
