"""Declarative base, async engine and session factory for override storage."""

import structlog
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from entitlement_exchange.core.config import get_settings

logger = structlog.get_logger(__name__)


class Base(DeclarativeBase):
    pass


_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def _engine_options(url: str) -> dict:
    settings = get_settings()
    options = {"echo": settings.debug, "pool_pre_ping": True}
    # SQLite uses a file lock instead of a connection pool worth sizing
    if make_url(url).get_backend_name() != "sqlite":
        options["pool_size"] = settings.db_pool_size
        options["max_overflow"] = settings.db_max_overflow
    return options


async def init_db(url: str | None = None, create_tables: bool | None = None) -> None:
    """Create the engine and session factory once per process.

    Args:
        url: Database URL; defaults to settings.database_url
        create_tables: Run metadata.create_all. Defaults to
            settings.db_create_tables; disable when alembic owns the schema.
    """
    global _engine, _session_factory

    if _engine is not None:
        return

    settings = get_settings()
    db_url = url or settings.database_url

    _engine = create_async_engine(db_url, **_engine_options(db_url))
    _session_factory = async_sessionmaker(
        _engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    logger.info("db_engine_created", dialect=_engine.dialect.name)

    if create_tables is None:
        create_tables = settings.db_create_tables
    if create_tables:
        # Models must be imported for metadata to know every table
        import entitlement_exchange.db.models  # noqa: F401

        async with _engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    global _engine, _session_factory

    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_factory = None


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Return the session factory created by init_db().

    Raises:
        RuntimeError: init_db() has not run in this process
    """
    if _session_factory is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")
    return _session_factory
