"""Fixtures for client tests.

``backend`` is a scripted stand-in for the API served through
``httpx.MockTransport``; ``live_api`` talks to the real app over
``ASGITransport`` with the per-test SQLite database.
"""

from __future__ import annotations

import json
from collections.abc import AsyncIterator
from typing import Any

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from op3.client.http import ApiClient
from op3.client.query import QueryClient
from op3.server.app import app
from op3.server.deps import get_db

BASE_URL = "http://test/api/v1"


class FakeBackend:
    """Answers each ``(method, path)`` with a scripted response.

    Unscripted calls succeed with an empty envelope.  Every request is
    recorded with its decoded JSON body.
    """

    def __init__(self) -> None:
        self.responses: dict[tuple[str, str], list[tuple[int, bytes]]] = {}
        self.calls: list[tuple[str, str, Any]] = []

    def reply(self, method: str, path: str, data: Any = None, *, status_code: int = 200, **body: Any) -> None:
        """Queue a response.  Queued responses are used in order, the last one repeats."""
        if status_code < 400:
            payload = {"success": True, "message": "ok", "data": data, **body}
        else:
            payload = {"success": False, **body}
        self.reply_raw(method, path, status_code, json.dumps(payload).encode())

    def reply_raw(self, method: str, path: str, status_code: int, content: bytes) -> None:
        self.responses.setdefault((method, "/api/v1" + path), []).append((status_code, content))

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content) if request.content else None
        self.calls.append((request.method, request.url.path, body))
        queued = self.responses.get((request.method, request.url.path))
        if not queued:
            return httpx.Response(200, json={"success": True, "message": "ok"})
        status_code, content = queued.pop(0) if len(queued) > 1 else queued[0]
        return httpx.Response(status_code, content=content)

    def paths(self, method: str | None = None) -> list[str]:
        return [path for m, path, _ in self.calls if method is None or m == method]


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
async def api(backend: FakeBackend) -> AsyncIterator[ApiClient]:
    async with ApiClient(BASE_URL, transport=httpx.MockTransport(backend.handler)) as client:
        yield client


@pytest.fixture
def cache() -> QueryClient:
    return QueryClient(stale_time=60.0, retry_delay=lambda _n: 0.0)


@pytest.fixture
async def live_api(session_factory: async_sessionmaker[AsyncSession]) -> AsyncIterator[ApiClient]:
    """An ``ApiClient`` wired to the real app and the test database."""

    async def _override_get_db() -> AsyncIterator[AsyncSession]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _override_get_db
    transport = httpx.ASGITransport(app=app, raise_app_exceptions=False)
    async with ApiClient(BASE_URL, transport=transport) as client:
        yield client
    app.dependency_overrides.clear()
