"""
Engines and sessions that support the concern write path.

Concern operations wrap each write in a SAVEPOINT (see
``recordconcerns.concerns.lifecycle``). The sqlite3 driver manages
transactions itself and breaks SAVEPOINT semantics, so SQLite engines built
here hand transaction control back to SQLAlchemy. In-memory SQLite gets a
single shared connection so every session sees the same tables.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

import structlog
from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from recordconcerns.config.settings import Settings, get_settings

_log = structlog.get_logger(__name__)


def engine_options(settings: Settings) -> dict[str, Any]:
    """Keyword arguments for ``create_async_engine`` given the database URL."""
    url = make_url(settings.database_url)
    options: dict[str, Any] = {"echo": settings.db_echo}

    if url.get_backend_name() == "sqlite":
        options["connect_args"] = {"check_same_thread": False}
        if url.database in (None, "", ":memory:"):
            options["poolclass"] = StaticPool
    else:
        options["pool_size"] = settings.db_pool_size
        options["max_overflow"] = settings.db_max_overflow
        options["pool_pre_ping"] = True
    return options


def enable_sqlite_savepoints(engine: AsyncEngine) -> None:
    """Let SQLAlchemy emit BEGIN itself so nested SAVEPOINTs behave."""

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_transactions(dbapi_connection: Any, connection_record: Any) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _emit_begin(conn: Any) -> None:
        conn.exec_driver_sql("BEGIN")


def build_engine(settings: Settings | None = None) -> AsyncEngine:
    """Create an async engine ready for concern operations."""
    cfg = settings or get_settings()
    engine = create_async_engine(cfg.database_url, **engine_options(cfg))
    if engine.dialect.name == "sqlite":
        enable_sqlite_savepoints(engine)
    _log.debug("engine_created", dialect=engine.dialect.name, echo=cfg.db_echo)
    return engine


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """
    Sessions that keep attribute values after commit and never autoflush.

    Concern operations flush explicitly, so autoflush stays off.
    """
    return async_sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)


@asynccontextmanager
async def session_scope(
    factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Yield a session, commit on success and roll back on any exception."""
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
