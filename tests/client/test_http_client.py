"""Tests for the async API wrapper."""

from __future__ import annotations

import httpx
import pytest

from op3.client.http import ApiClient, ApiError
from op3.client.settings import get_client_settings

USER_ID = "user-1"


async def test_returns_envelope_data(api: ApiClient, backend) -> None:
    backend.reply("GET", f"/workspace/list/{USER_ID}", [{"id": "w1"}])
    assert await api.get_user_workspaces(USER_ID) == [{"id": "w1"}]
    assert backend.paths() == [f"/api/v1/workspace/list/{USER_ID}"]


async def test_error_uses_envelope_message(api: ApiClient, backend) -> None:
    backend.reply("GET", "/workspace/w1/user-1", status_code=404, message="Workspace not found")
    with pytest.raises(ApiError) as info:
        await api.get_workspace("w1", USER_ID)
    assert info.value.message == "Workspace not found"
    assert info.value.status == 404


async def test_error_without_envelope(api: ApiClient, backend) -> None:
    backend.reply_raw("GET", "/setup/status", 502, b"<html>Bad Gateway</html>")
    with pytest.raises(ApiError) as info:
        await api.get_setup_status()
    assert info.value.message == "HTTP error! status: 502"
    assert info.value.status == 502


async def test_success_without_json_body(api: ApiClient, backend) -> None:
    backend.reply_raw("GET", "/setup/status", 200, b"<html>maintenance</html>")
    with pytest.raises(ApiError) as info:
        await api.get_setup_status()
    assert info.value.message == "Invalid JSON response"
    assert info.value.status == 200


async def test_transport_error_has_no_status() -> None:
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("Connection refused", request=request)

    async with ApiClient("http://test/api/v1", transport=httpx.MockTransport(refuse)) as api:
        with pytest.raises(ApiError) as info:
            await api.get_setup_status()
    assert info.value.status is None
    assert "Connection refused" in info.value.message


async def test_delete_sends_body(api: ApiClient, backend) -> None:
    await api.delete_workspace("w1", USER_ID)
    await api.delete_workspace_group(USER_ID, "g1", delete_workspaces=True)
    assert backend.calls == [
        ("DELETE", "/api/v1/workspace/w1", {"userId": USER_ID}),
        ("DELETE", "/api/v1/workspace-groups/g1", {"userId": USER_ID, "deleteWorkspaces": True}),
    ]


async def test_reorder_methods_differ_per_favorite_kind(api: ApiClient, backend) -> None:
    await api.reorder_ai_favorites("w1", ["a", "b"])
    await api.reorder_personality_favorites("w1", ["b", "a"])
    assert [(m, p) for m, p, _ in backend.calls] == [
        ("POST", "/api/v1/workspace-ai-favorites/w1/reorder"),
        ("PUT", "/api/v1/workspace-personality-favorites/w1/reorder"),
    ]


async def test_connection_tests_return_whole_envelope(api: ApiClient, backend) -> None:
    backend.reply("POST", "/setup/ai-providers/test", {"error": "API_ERROR"}, message="Bad key")
    result = await api.test_ai_provider_connection({"type": "openai", "apiKey": "x", "model": "m"})
    assert result["message"] == "Bad key"
    assert result["data"] == {"error": "API_ERROR"}


async def test_health_check_is_outside_api_prefix() -> None:
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(str(request.url))
        return httpx.Response(200, json={"status": "OK"})

    async with ApiClient("http://test/api/v1", transport=httpx.MockTransport(handler)) as api:
        assert (await api.health_check())["status"] == "OK"
    assert seen == ["http://test/health"]


async def test_base_url_from_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OP3_API_URL", "http://backend:9000/api/v1/")
    get_client_settings.cache_clear()
    async with ApiClient() as api:
        assert api.base_url == "http://backend:9000/api/v1"


# ---------------------------------------------------------------------------
# Against the real app
# ---------------------------------------------------------------------------


async def test_live_round_trip(live_api: ApiClient) -> None:
    created = await live_api.create_workspace(USER_ID, "Live", "standard-chat")
    listed = await live_api.get_user_workspaces(USER_ID)
    assert [w["id"] for w in listed] == [created["id"]]

    status = await live_api.get_workspace_status(USER_ID)
    assert status["hasWorkspace"] is True

    with pytest.raises(ApiError) as info:
        await live_api.get_workspace("missing", USER_ID)
    assert (info.value.status, info.value.message) == (404, "Workspace not found")


async def test_live_validation_error(live_api: ApiClient) -> None:
    with pytest.raises(ApiError) as info:
        await live_api.create_workspace(USER_ID, "", "standard-chat")
    assert info.value.status == 400
    assert info.value.message == "Workspace name is required"


async def test_live_admin_and_statistics(live_api: ApiClient) -> None:
    password = "Str0ng!Pass"
    admin = await live_api.save_admin_config(
        {"email": "root@example.com", "password": password, "confirmPassword": password}
    )
    user = {"email": "u@example.com", "password": password, "role": "user"}
    created = await live_api.create_user(admin["adminId"], user)
    await live_api.bulk_update_users(admin["adminId"], [created["id"]], {"isActive": False})
    stats = await live_api.get_user_stats(admin["adminId"])
    assert (stats["total"], stats["inactive"]) == (2, 1)

    with pytest.raises(ApiError) as info:
        await live_api.get_users(created["id"])
    assert info.value.status == 403

    workspace = await live_api.create_workspace(USER_ID, "Live", "standard-chat")
    statistics = await live_api.get_workspace_statistics(
        workspace["id"], USER_ID, "custom", start_date="2026-01-01", end_date="2026-02-01"
    )
    assert statistics["totalMessages"] == 0
