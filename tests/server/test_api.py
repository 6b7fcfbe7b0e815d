"""Health, API info and error envelope mapping."""

from __future__ import annotations

import pytest
from httpx import ASGITransport, AsyncClient

from op3.server.app import app

pytestmark = pytest.mark.integration

API = "/api/v1"


async def test_health(client: AsyncClient) -> None:
    resp = await client.get("/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "OK"
    assert body["service"] == "OP3 Backend API"
    assert body["timestamp"]


async def test_api_info_lists_endpoints(client: AsyncClient) -> None:
    resp = await client.get(API)
    assert resp.status_code == 200
    endpoints = resp.json()["endpoints"]
    assert endpoints["workspaceGroups"] == f"{API}/workspace-groups"
    assert endpoints["statistics"] == f"{API}/statistics"
    assert endpoints["health"] == "/health"


async def test_unknown_route_is_enveloped(client: AsyncClient) -> None:
    resp = await client.get(f"{API}/no-such-thing")
    assert resp.status_code == 404
    assert resp.json() == {"success": False, "message": "Route not found"}


async def test_validation_errors_are_joined(client: AsyncClient) -> None:
    resp = await client.post(f"{API}/workspace/create", json={"name": "W"})
    assert resp.status_code == 400
    body = resp.json()
    assert body["success"] is False
    assert "userId: Field required" in body["message"]
    assert "templateType: Field required" in body["message"]
    assert ", " in body["message"]
    assert "data" not in body


async def test_missing_row_maps_to_404(client: AsyncClient) -> None:
    resp = await client.get(f"{API}/workspace/missing-id/user-1")
    assert resp.status_code == 404
    assert resp.json() == {"success": False, "message": "Workspace not found"}


async def test_database_not_configured_returns_503() -> None:
    """Without the test override, ``get_db`` refuses when no database is set up."""
    app.state.db_session_factory = None
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        resp = await ac.get(f"{API}/workspace/list/user-1")
    assert resp.status_code == 503
    assert resp.json()["success"] is False
    assert "OP3_DATABASE_URL" in resp.json()["message"]


async def test_cors_allows_frontend_origin(client: AsyncClient) -> None:
    resp = await client.options(
        f"{API}/workspace/list/user-1",
        headers={"Origin": "http://localhost:3000", "Access-Control-Request-Method": "GET"},
    )
    assert resp.status_code == 200
    assert resp.headers["access-control-allow-origin"] == "http://localhost:3000"
