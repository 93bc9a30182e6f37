"""Service-level fixtures backed by a throwaway SQLite database."""

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from entitlement_exchange.db.base import Base


@pytest.fixture
async def engine(tmp_path) -> AsyncEngine:
    """File-backed SQLite engine with all tables created.

    Also installs the global session factory so code that calls
    get_session_factory() (seeding) sees the same database.
    """
    import entitlement_exchange.db.base as db_mod
    import entitlement_exchange.db.models  # noqa: F401

    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path}/exchange.db", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    db_mod._engine = engine
    db_mod._session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    yield engine

    db_mod._engine = None
    db_mod._session_factory = None
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def broken_session_factory(tmp_path) -> async_sessionmaker[AsyncSession]:
    """Session factory pointing at a database file that can never be opened."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path}/missing/dir/exchange.db", echo=False)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()
