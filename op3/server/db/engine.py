"""Engine and session construction for the OP3 database.

Two backends are supported: PostgreSQL through psycopg3
(``postgresql+psycopg://``) and SQLite through aiosqlite
(``sqlite+aiosqlite:///op3.db``), the latter for local installs and tests.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

# Only meaningful for a QueuePool; aiosqlite engines reject them.
SERVER_POOL_OPTIONS: dict[str, Any] = {
    "pool_size": 5,
    "max_overflow": 10,
    "pool_pre_ping": True,
    "pool_recycle": 3600,
}


def is_sqlite(database_url: str) -> bool:
    return make_url(database_url).get_backend_name() == "sqlite"


def create_engine(database_url: str, **overrides: Any) -> AsyncEngine:
    """Build the async engine for *database_url*.

    Server databases get a bounded, pre-pinged pool; explicit *overrides*
    (``poolclass``, ``connect_args``, ``echo`` ...) always win.
    """
    options: dict[str, Any] = {} if is_sqlite(database_url) else dict(SERVER_POOL_OPTIONS)
    options.update(overrides)
    return create_async_engine(database_url, **options)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # Rows returned from managers are serialised after commit, so they must
    # not expire (an expired attribute would trigger IO outside the loop).
    return async_sessionmaker(engine, expire_on_commit=False)
