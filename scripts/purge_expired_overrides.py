"""Delete exchange overrides whose valid_until has passed.

Expired overrides are already ignored at read time; this only reclaims rows.
Startup runs the same purge, so this is for long-lived deployments.

Run from repo root:
    python -m scripts.purge_expired_overrides
"""

import asyncio
from datetime import UTC, datetime

import structlog

from entitlement_exchange.core.config import get_settings
from entitlement_exchange.core.logging import configure_structlog
from entitlement_exchange.db import close_db, init_db
from entitlement_exchange.services.override_store import SqlOverrideStore

logger = structlog.get_logger(__name__)


async def main() -> None:
    settings = get_settings()
    configure_structlog(log_level=settings.log_level, json_logs=not settings.debug)

    await init_db(create_tables=False)
    try:
        purged = await SqlOverrideStore().purge_expired(datetime.now(UTC))
        logger.info("expired_overrides_purged", count=purged)
    finally:
        await close_db()


if __name__ == "__main__":
    asyncio.run(main())
