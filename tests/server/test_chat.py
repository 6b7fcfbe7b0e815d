"""Integration tests for chat sessions, messages and sharing."""

from __future__ import annotations

from typing import Any

import pytest
from httpx import AsyncClient
from sqlalchemy import update

from op3.server.db.tables import SharedChat

pytestmark = pytest.mark.integration

API = "/api/v1/chat"
USER_ID = "user-1"


@pytest.fixture
async def workspace(create_workspace) -> dict[str, Any]:
    return await create_workspace()


@pytest.fixture
def new_session(client: AsyncClient, workspace: dict[str, Any]):
    async def _create(**extra: Any) -> dict[str, Any]:
        body = {"userId": USER_ID, "workspaceId": workspace["id"], **extra}
        resp = await client.post(f"{API}/sessions", json=body)
        assert resp.status_code == 200, resp.text
        return resp.json()["data"]

    return _create


async def post_message(client: AsyncClient, session_id: str, content: str, role: str | None = None) -> dict[str, Any]:
    if role is None:
        resp = await client.post(f"{API}/sessions/{session_id}/messages", json={"content": content})
    else:
        body = {"role": role, "content": content}
        resp = await client.post(f"{API}/sessions/{session_id}/save-message", json=body)
    assert resp.status_code == 200, resp.text
    return resp.json()["data"]


async def list_messages(client: AsyncClient, session_id: str) -> list[dict[str, Any]]:
    resp = await client.get(f"{API}/sessions/{session_id}/messages")
    assert resp.status_code == 200
    return resp.json()["data"]


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------


async def test_create_session_defaults(new_session) -> None:
    session = await new_session()
    assert session["title"] == "New Chat"
    assert session["isPinned"] is False
    assert session["isShared"] is False
    assert session["parentSessionId"] is None


async def test_create_session_in_foreign_workspace(client: AsyncClient, workspace) -> None:
    resp = await client.post(f"{API}/sessions", json={"userId": "user-2", "workspaceId": workspace["id"]})
    assert resp.status_code == 404
    assert resp.json()["message"] == "Workspace not found"


async def test_list_sessions_pinned_first(client: AsyncClient, workspace, new_session) -> None:
    first = await new_session(title="First")
    second = await new_session(title="Second")

    resp = await client.patch(f"{API}/sessions/{first['id']}", json={"isPinned": True})
    assert resp.json()["data"]["isPinned"] is True

    listed = (await client.get(f"{API}/sessions/{USER_ID}/{workspace['id']}")).json()["data"]
    assert [s["id"] for s in listed] == [first["id"], second["id"]]


async def test_rename_session(client: AsyncClient, new_session) -> None:
    session = await new_session()
    resp = await client.patch(f"{API}/sessions/{session['id']}", json={"title": " Trip plan "})
    assert resp.json()["data"]["title"] == "Trip plan"

    resp = await client.patch(f"{API}/sessions/{session['id']}", json={"title": ""})
    assert resp.status_code == 400
    assert resp.json()["message"] == "Title cannot be empty"


async def test_update_session_settings(client: AsyncClient, new_session) -> None:
    session = await new_session()
    body = {"lastUsedPersonalityId": "personality-1", "lastUsedAIProviderId": "provider-1"}
    resp = await client.patch(f"{API}/sessions/{session['id']}/settings", json=body)
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["lastUsedPersonalityId"] == "personality-1"
    assert data["lastUsedAIProviderId"] == "provider-1"


async def test_delete_session(client: AsyncClient, new_session) -> None:
    session = await new_session()
    await post_message(client, session["id"], "Hello")

    resp = await client.delete(f"{API}/sessions/{session['id']}")
    assert resp.status_code == 200

    resp = await client.get(f"{API}/sessions/{session['id']}/messages")
    assert resp.status_code == 404
    assert resp.json()["message"] == "Chat session not found"


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------


async def test_messages_keep_insertion_order(client: AsyncClient, new_session) -> None:
    session = await new_session()
    user = await post_message(client, session["id"], " Hello ")
    assert user["role"] == "user"
    assert user["content"] == "Hello"
    await post_message(client, session["id"], "Hi there", role="assistant")
    await post_message(client, session["id"], "And again")

    messages = await list_messages(client, session["id"])
    assert [m["content"] for m in messages] == ["Hello", "Hi there", "And again"]
    assert [m["role"] for m in messages] == ["user", "assistant", "user"]


async def test_empty_message_is_rejected(client: AsyncClient, new_session) -> None:
    session = await new_session()
    resp = await client.post(f"{API}/sessions/{session['id']}/messages", json={"content": "   "})
    assert resp.status_code == 400
    assert resp.json()["message"] == "Message content is required"


async def test_message_to_unknown_session(client: AsyncClient) -> None:
    resp = await client.post(f"{API}/sessions/missing/messages", json={"content": "Hello"})
    assert resp.status_code == 404


async def test_branch_copies_messages_up_to_branch_point(client: AsyncClient, new_session) -> None:
    parent = await new_session()
    await client.patch(f"{API}/sessions/{parent['id']}/settings", json={"lastUsedPersonalityId": "personality-1"})
    await post_message(client, parent["id"], "Q1")
    answer = await post_message(client, parent["id"], "A1", role="assistant")
    await post_message(client, parent["id"], "Q2")

    branch = await new_session(parentSessionId=parent["id"], branchFromMessageId=answer["id"])
    assert branch["parentSessionId"] == parent["id"]
    assert branch["lastUsedPersonalityId"] == "personality-1"

    copied = await list_messages(client, branch["id"])
    assert [m["content"] for m in copied] == ["Q1", "A1"]
    assert answer["id"] not in {m["id"] for m in copied}

    await post_message(client, branch["id"], "Q2 again")
    assert len(await list_messages(client, parent["id"])) == 3


async def test_branch_from_unknown_message(client: AsyncClient, new_session) -> None:
    parent = await new_session()
    resp = await client.post(
        f"{API}/sessions",
        json={
            "userId": USER_ID,
            "workspaceId": parent["workspaceId"],
            "parentSessionId": parent["id"],
            "branchFromMessageId": "missing",
        },
    )
    assert resp.status_code == 400
    assert resp.json()["message"] == "Branch message not found in parent session"


# ---------------------------------------------------------------------------
# Sharing
# ---------------------------------------------------------------------------


async def test_share_snapshot_excludes_system_messages(client: AsyncClient, new_session) -> None:
    session = await new_session(title="Shared")
    await post_message(client, session["id"], "You are terse.", role="system")
    await post_message(client, session["id"], "Hello")
    await post_message(client, session["id"], "Hi", role="assistant")

    resp = await client.post(f"{API}/sessions/{session['id']}/share")
    assert resp.status_code == 200
    shared = resp.json()["data"]
    assert shared["title"] == "Shared"
    assert shared["messageCount"] == 2
    assert [m["role"] for m in shared["messages"]] == ["user", "assistant"]
    assert shared["shareUrl"] == f"/share/{shared['id']}"

    public = await client.get(f"/api/v1/share/{shared['id']}")
    assert public.status_code == 200
    assert public.json()["data"]["originalChatId"] == session["id"]

    # Later messages do not leak into the snapshot.
    await post_message(client, session["id"], "Secret")
    public = (await client.get(f"/api/v1/share/{shared['id']}")).json()["data"]
    assert [m["content"] for m in public["messages"]] == ["Hello", "Hi"]


async def test_share_first_messages_only(client: AsyncClient, new_session) -> None:
    session = await new_session()
    await post_message(client, session["id"], "One")
    await post_message(client, session["id"], "Two", role="assistant")

    resp = await client.post(f"{API}/sessions/{session['id']}/share", json={"messageCount": 1})
    assert [m["content"] for m in resp.json()["data"]["messages"]] == ["One"]


async def test_share_status_and_unshare(client: AsyncClient, new_session) -> None:
    session = await new_session()
    status = (await client.get(f"{API}/sessions/{session['id']}/share")).json()["data"]
    assert status == {"isShared": False}

    shared = (await client.post(f"{API}/sessions/{session['id']}/share")).json()["data"]
    status = (await client.get(f"{API}/sessions/{session['id']}/share")).json()["data"]
    assert status == {"isShared": True, "shareId": shared["id"], "shareUrl": f"/share/{shared['id']}"}

    listed = (await client.get(f"{API}/sessions/{USER_ID}/{session['workspaceId']}")).json()["data"]
    assert listed[0]["isShared"] is True

    assert (await client.delete(f"{API}/sessions/{session['id']}/share")).status_code == 200
    resp = await client.get(f"/api/v1/share/{shared['id']}")
    assert resp.status_code == 404
    assert resp.json()["message"] == "Shared chat not found"

    listed = (await client.get(f"{API}/sessions/{USER_ID}/{session['workspaceId']}")).json()["data"]
    assert listed[0]["isShared"] is False


async def test_inactive_share_is_gone(client: AsyncClient, new_session, session_factory) -> None:
    session = await new_session()
    shared = (await client.post(f"{API}/sessions/{session['id']}/share")).json()["data"]

    async with session_factory() as db:
        await db.execute(update(SharedChat).where(SharedChat.id == shared["id"]).values(is_active=False))
        await db.commit()

    resp = await client.get(f"/api/v1/share/{shared['id']}")
    assert resp.status_code == 410
    assert resp.json()["message"] == "This shared chat is no longer available"
