"""Fixtures for backend API tests.

The app lifespan does NOT run under ``ASGITransport``, so ``get_db`` and
``get_http_client`` are overridden: each request gets a fresh session from
the per-test SQLite factory, and outbound provider connection tests hit an
``httpx.MockTransport`` instead of the network.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any

import httpx
import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from op3.server.app import app
from op3.server.deps import get_db, get_http_client

API = "/api/v1"
USER_ID = "user-1"


class FakeProviderAPI:
    """Stands in for remote AI provider endpoints.  Records every request."""

    def __init__(self) -> None:
        self.status_code = 200
        self.body: dict[str, Any] = {"data": []}
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, json=self.body)


@pytest.fixture
def provider_api() -> FakeProviderAPI:
    return FakeProviderAPI()


@pytest.fixture
async def client(
    session_factory: async_sessionmaker[AsyncSession], provider_api: FakeProviderAPI
) -> AsyncIterator[AsyncClient]:
    """Async HTTP client wired to the app with the test database."""

    async def _override_get_db() -> AsyncIterator[AsyncSession]:
        async with session_factory() as session:
            yield session

    outbound = httpx.AsyncClient(transport=httpx.MockTransport(provider_api.handler))

    async def _override_get_http_client() -> httpx.AsyncClient:
        return outbound

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_http_client] = _override_get_http_client

    # Pre-set state fields (lifespan does not run under ASGITransport).
    app.state.db_engine = None
    app.state.db_session_factory = None
    app.state.http_client = outbound

    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
    await outbound.aclose()


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


@pytest.fixture
def create_workspace(client: AsyncClient) -> Callable[..., Awaitable[dict[str, Any]]]:
    async def _create(name: str = "Workspace", user_id: str = USER_ID, **extra: Any) -> dict[str, Any]:
        payload = {"userId": user_id, "name": name, "templateType": "standard-chat", "workspaceRules": "", **extra}
        resp = await client.post(f"{API}/workspace/create", json=payload)
        assert resp.status_code == 200, resp.text
        return resp.json()["data"]

    return _create


@pytest.fixture
def create_group(client: AsyncClient) -> Callable[..., Awaitable[dict[str, Any]]]:
    async def _create(name: str = "Group", user_id: str = USER_ID, **extra: Any) -> dict[str, Any]:
        resp = await client.post(f"{API}/workspace-groups/create", json={"userId": user_id, "name": name, **extra})
        assert resp.status_code == 200, resp.text
        return resp.json()["data"]

    return _create


@pytest.fixture
def move_workspace(client: AsyncClient) -> Callable[..., Awaitable[dict[str, Any]]]:
    async def _move(
        workspace_id: str, group_id: str | None, sort_order: int | None = None, user_id: str = USER_ID
    ) -> dict[str, Any]:
        payload = {"userId": user_id, "workspaceId": workspace_id, "groupId": group_id, "sortOrder": sort_order}
        resp = await client.put(f"{API}/workspace-groups/move-workspace", json=payload)
        assert resp.status_code == 200, resp.text
        return resp.json()["data"]

    return _move


@pytest.fixture
def fetch_workspaces(client: AsyncClient) -> Callable[..., Awaitable[list[dict[str, Any]]]]:
    async def _fetch(user_id: str = USER_ID) -> list[dict[str, Any]]:
        resp = await client.get(f"{API}/workspace/list/{user_id}")
        assert resp.status_code == 200, resp.text
        return resp.json()["data"]

    return _fetch
