"""Shared fixtures: in-memory SQLite store and sessions."""
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from be.db import create_session_factory, enable_sqlite_savepoints
from be.models import Base


@pytest_asyncio.fixture
async def engine():
    """Fresh in-memory database per test; one shared connection.

    Tests that drive the ingestor must not keep a transaction of their own
    open at the same time, read back through short-lived sessions instead.
    """
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    enable_sqlite_savepoints(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session
