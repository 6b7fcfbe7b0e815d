"""Shared test fixtures: an in-memory SQLite database per test.

Every test function gets its own ``sqlite+aiosqlite://`` engine with the
schema created from the ORM metadata.  ``StaticPool`` keeps the single
in-memory connection alive so all sessions of a test see the same data.

Settings are read from the environment on first use and cached; the
autouse fixture below pins the test environment and clears every cache.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Iterator

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from op3.client.settings import get_client_settings
from op3.server.db.engine import create_engine, create_session_factory
from op3.server.db.tables import Base
from op3.server.security import _get_fernet
from op3.server.settings import get_settings


def _clear_caches() -> None:
    get_settings.cache_clear()
    _get_fernet.cache_clear()
    get_client_settings.cache_clear()


@pytest.fixture(autouse=True)
def _test_env(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Fixed secret, no configured database, default client URL."""
    monkeypatch.setenv("OP3_AUTH_SECRET", "test-secret")
    monkeypatch.setenv("OP3_ENVIRONMENT", "test")
    monkeypatch.delenv("OP3_DATABASE_URL", raising=False)
    monkeypatch.delenv("OP3_API_URL", raising=False)
    _clear_caches()
    yield
    _clear_caches()


# ---------------------------------------------------------------------------
# Function-scoped: engine, session factory, session
# ---------------------------------------------------------------------------


@pytest.fixture
async def async_engine() -> AsyncIterator[AsyncEngine]:
    engine = create_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(async_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return create_session_factory(async_engine)


@pytest.fixture
async def db_session(session_factory: async_sessionmaker[AsyncSession]) -> AsyncIterator[AsyncSession]:
    """A session for direct manager tests."""
    async with session_factory() as session:
        yield session
