"""
Shared pytest fixtures for the record concern tests.

Provides:
  - async SQLite in-memory database (per-test isolation)
  - a session bound to it, rolled back after each test
  - a settings override with a fixed hashid salt
"""
from __future__ import annotations

from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

import tests.models  # noqa: F401  (registers the tables on Base.metadata)
from recordconcerns.config.settings import Settings, get_settings
from recordconcerns.db.base import Base
from recordconcerns.db.session import build_engine, build_session_factory


TEST_SETTINGS = Settings(
    app_name="recordconcerns-tests",
    environment="testing",
    database_url="sqlite+aiosqlite:///:memory:",
    log_json=False,
)


@pytest.fixture(autouse=True)
def _clear_settings_cache():
    """Each test reads settings fresh so env overrides do not leak."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


# ─── Database ─────────────────────────────────────────────────────────────────

@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """Create an async in-memory SQLite engine per test function."""
    engine = build_engine(TEST_SETTINGS)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    return build_session_factory(db_engine)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Provide an async session that rolls back after each test."""
    async with session_factory() as session:
        yield session
        await session.rollback()
