"""Redis client for live usage counters.

One client per process. The counters are written by the services that own
seats, projects and storage; this engine only reads them.
"""

import redis.asyncio as redis
import structlog

from entitlement_exchange.core.config import get_settings

logger = structlog.get_logger(__name__)

_redis: redis.Redis | None = None


async def init_redis(url: str | None = None) -> None:
    """Connect to Redis and fail fast if it is unreachable."""
    global _redis

    if _redis is not None:
        return

    settings = get_settings()
    _redis = redis.from_url(
        url or settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
        socket_timeout=settings.redis_socket_timeout,
    )
    await _redis.ping()
    logger.info("usage_redis_connected")


async def close_redis() -> None:
    global _redis

    if _redis is not None:
        await _redis.aclose()
        _redis = None


def get_redis() -> redis.Redis:
    """Return the shared client.

    Raises:
        RuntimeError: init_redis() has not run in this process
    """
    if _redis is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return _redis
