"""Chat session, message and sharing endpoints.

``/sessions/{id}/messages`` and ``/sessions/{id}/share`` are declared before
``/sessions/{user_id}/{workspace_id}`` so the literal segments win.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter

from op3.server.deps import DbSession
from op3.server.managers import chats as manager
from op3.server.models.api import (
    ChatMessageResponse,
    ChatSessionCreate,
    ChatSessionResponse,
    ChatSessionSettingsUpdate,
    ChatSessionUpdate,
    SaveMessageRequest,
    SendMessageRequest,
    ShareCreate,
    SharedChatResponse,
)
from op3.server.responses import success

router = APIRouter(prefix="/chat", tags=["chat"])
share_router = APIRouter(prefix="/share", tags=["share"])


def _share_out(shared: Any) -> SharedChatResponse:
    out = SharedChatResponse.model_validate(shared)
    out.share_url = manager.share_url(shared.id)
    return out


# ---------------------------------------------------------------------------
# Sessions and messages
# ---------------------------------------------------------------------------


@router.post("/sessions")
async def create_session(body: ChatSessionCreate, db: DbSession) -> dict[str, Any]:
    """Create a session, optionally branched from a message of another session."""
    session = await manager.create_session(db, body)
    return success("Chat session created successfully", ChatSessionResponse.model_validate(session))


@router.get("/sessions/{session_id}/messages")
async def list_messages(session_id: str, db: DbSession) -> dict[str, Any]:
    await manager.get_session(db, session_id)
    messages = await manager.list_messages(db, session_id)
    data = [ChatMessageResponse.model_validate(m) for m in messages]
    return success("Chat messages retrieved successfully", data)


@router.get("/sessions/{session_id}/share")
async def share_status(session_id: str, db: DbSession) -> dict[str, Any]:
    shared = await manager.get_share_for_session(db, session_id)
    data: dict[str, Any] = {"isShared": shared is not None}
    if shared is not None:
        data.update(shareId=shared.id, shareUrl=manager.share_url(shared.id))
    return success("Share status retrieved successfully", data)


@router.get("/sessions/{user_id}/{workspace_id}")
async def list_sessions(user_id: str, workspace_id: str, db: DbSession) -> dict[str, Any]:
    sessions = await manager.list_sessions(db, user_id, workspace_id)
    data = [ChatSessionResponse.model_validate(s) for s in sessions]
    return success("Chat sessions retrieved successfully", data)


@router.post("/sessions/{session_id}/messages")
async def send_message(session_id: str, body: SendMessageRequest, db: DbSession) -> dict[str, Any]:
    """Store a user message."""
    message = await manager.send_message(db, session_id, body)
    return success("User message sent successfully", ChatMessageResponse.model_validate(message))


@router.post("/sessions/{session_id}/save-message")
async def save_message(session_id: str, body: SaveMessageRequest, db: DbSession) -> dict[str, Any]:
    """Store a message of any role (e.g. a finished or partial assistant reply)."""
    message = await manager.save_message(db, session_id, body)
    return success("Message saved successfully", ChatMessageResponse.model_validate(message))


@router.patch("/sessions/{session_id}")
async def update_session(session_id: str, body: ChatSessionUpdate, db: DbSession) -> dict[str, Any]:
    session = await manager.update_session(db, session_id, body)
    return success("Chat session updated successfully", ChatSessionResponse.model_validate(session))


@router.patch("/sessions/{session_id}/settings")
async def update_session_settings(session_id: str, body: ChatSessionSettingsUpdate, db: DbSession) -> dict[str, Any]:
    session = await manager.update_session_settings(db, session_id, body)
    return success("Chat session settings updated successfully", ChatSessionResponse.model_validate(session))


@router.delete("/sessions/{session_id}")
async def delete_session(session_id: str, db: DbSession) -> dict[str, Any]:
    await manager.delete_session(db, session_id)
    return success("Chat session deleted successfully")


# ---------------------------------------------------------------------------
# Sharing
# ---------------------------------------------------------------------------


@router.post("/sessions/{session_id}/share")
async def create_share(session_id: str, db: DbSession, body: ShareCreate | None = None) -> dict[str, Any]:
    """Snapshot the session into a public share."""
    shared = await manager.create_share(db, session_id, body.message_count if body else None)
    return success("Chat shared successfully", _share_out(shared))


@router.delete("/sessions/{session_id}/share")
async def remove_share(session_id: str, db: DbSession) -> dict[str, Any]:
    await manager.remove_shares(db, session_id)
    return success("Share removed successfully")


@share_router.get("/{share_id}")
async def get_shared_chat(share_id: str, db: DbSession) -> dict[str, Any]:
    """Public read of a share snapshot.  No user id required."""
    shared = await manager.get_shared_chat(db, share_id)
    return success("Shared chat retrieved successfully", _share_out(shared))
