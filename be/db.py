"""SQLAlchemy 2.x async database setup.

Engines and session factories are built from ``DatabaseSettings`` by the
wiring code; nothing here connects at import time.
"""

from __future__ import annotations

from typing import AsyncIterator

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from .config import DatabaseSettings


def enable_sqlite_savepoints(engine: AsyncEngine) -> None:
    """Let SAVEPOINT work on aiosqlite.

    The driver otherwise issues its own BEGIN lazily and breaks nested
    transactions; we disable that and emit BEGIN ourselves.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _do_begin(conn):
        conn.exec_driver_sql("BEGIN")


def create_engine_from_settings(config: DatabaseSettings) -> AsyncEngine:
    """Build the async engine for ``config.url``."""
    if config.url.startswith("sqlite"):
        engine = create_async_engine(config.url, echo=config.echo)
        enable_sqlite_savepoints(engine)
        return engine

    return create_async_engine(
        config.url,
        echo=config.echo,
        pool_size=config.pool_size,
        max_overflow=config.max_overflow,
        pool_pre_ping=True,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=engine, expire_on_commit=False, class_=AsyncSession)


async def iter_sessions(session_factory: async_sessionmaker[AsyncSession]) -> AsyncIterator[AsyncSession]:
    """Yield one session and close it afterwards (FastAPI dependency helper)."""

    async with session_factory() as session:
        yield session
