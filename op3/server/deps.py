"""Request-scoped dependencies shared by every router.

Handlers declare ``db: DbSession`` / ``http: HttpClient`` in their
signature; the objects come from ``app.state`` populated by the lifespan.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Annotated

import httpx
from fastapi import Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from op3.server.errors import AppError

DATABASE_UNAVAILABLE = "Database not configured (OP3_DATABASE_URL is unset)."


async def get_db(request: Request) -> AsyncIterator[AsyncSession]:
    """One session per request.

    Managers commit their own unit of work; anything left uncommitted when
    the handler raises is rolled back as the session closes.
    """
    factory = getattr(request.app.state, "db_session_factory", None)
    if factory is None:
        raise AppError(DATABASE_UNAVAILABLE, status.HTTP_503_SERVICE_UNAVAILABLE)
    async with factory() as session:
        yield session


async def get_http_client(request: Request) -> httpx.AsyncClient:
    return request.app.state.http_client


DbSession = Annotated[AsyncSession, Depends(get_db)]
HttpClient = Annotated[httpx.AsyncClient, Depends(get_http_client)]
