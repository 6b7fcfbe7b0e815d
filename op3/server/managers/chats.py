"""Chat sessions, their messages, and public share snapshots.

Messages are stored, not generated: the client posts user messages and saves
assistant replies it produced elsewhere.  Within a session, messages are
ordered by ``position`` (timestamps can tie).
"""

from __future__ import annotations

import uuid

from fastapi import status
from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from op3.server.db.tables import ChatMessage, ChatSession, SharedChat
from op3.server.errors import AppError, NotFoundError
from op3.server.managers.workspaces import get_workspace
from op3.server.models.api import (
    ChatSessionCreate,
    ChatSessionSettingsUpdate,
    ChatSessionUpdate,
    SaveMessageRequest,
    SendMessageRequest,
)
from op3.server.models.enums import MessageRole

DEFAULT_TITLE = "New Chat"


class ChatSessionNotFoundError(NotFoundError):
    def __init__(self, session_id: str) -> None:
        super().__init__("Chat session not found")
        self.session_id = session_id


class SharedChatNotFoundError(NotFoundError):
    def __init__(self, share_id: str) -> None:
        super().__init__("Shared chat not found")
        self.share_id = share_id


def share_url(share_id: str) -> str:
    return f"/share/{share_id}"


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------


async def get_session(db: AsyncSession, session_id: str) -> ChatSession:
    session = await db.get(ChatSession, session_id)
    if session is None:
        raise ChatSessionNotFoundError(session_id)
    return session


async def create_session(db: AsyncSession, body: ChatSessionCreate) -> ChatSession:
    """Create a chat session.

    When branching (``parent_session_id`` and ``branch_from_message_id``), the
    new session inherits the parent's last-used personality / provider and a
    copy of its messages up to and including the branch message.
    """
    await get_workspace(db, body.workspace_id, body.user_id)

    session = ChatSession(
        id=str(uuid.uuid4()),
        user_id=body.user_id,
        workspace_id=body.workspace_id,
        title=(body.title or "").strip() or DEFAULT_TITLE,
        parent_session_id=body.parent_session_id,
        is_pinned=False,
        is_shared=False,
    )

    to_copy: list[ChatMessage] = []
    if body.parent_session_id and body.branch_from_message_id:
        parent = await get_session(db, body.parent_session_id)
        session.last_used_personality_id = parent.last_used_personality_id
        session.last_used_ai_provider_id = parent.last_used_ai_provider_id

        parent_messages = await list_messages(db, parent.id)
        index = next((i for i, m in enumerate(parent_messages) if m.id == body.branch_from_message_id), None)
        if index is None:
            raise AppError("Branch message not found in parent session", status.HTTP_400_BAD_REQUEST)
        to_copy = parent_messages[: index + 1]

    db.add(session)
    for message in to_copy:
        db.add(
            ChatMessage(
                id=str(uuid.uuid4()),
                session_id=session.id,
                position=message.position,
                role=message.role,
                content=message.content,
                personality_id=message.personality_id,
                ai_provider_id=message.ai_provider_id,
                api_metadata=message.api_metadata,
            )
        )
    await db.commit()
    await db.refresh(session)
    return session


async def list_sessions(db: AsyncSession, user_id: str, workspace_id: str | None = None) -> list[ChatSession]:
    """List sessions, pinned first, then most recently updated."""
    stmt = select(ChatSession).where(ChatSession.user_id == user_id)
    if workspace_id is not None:
        stmt = stmt.where(ChatSession.workspace_id == workspace_id)
    stmt = stmt.order_by(ChatSession.is_pinned.desc(), ChatSession.updated_at.desc(), ChatSession.created_at.desc())
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def update_session(db: AsyncSession, session_id: str, body: ChatSessionUpdate) -> ChatSession:
    session = await get_session(db, session_id)
    changes = body.model_dump(exclude_unset=True)
    if "title" in changes:
        title = (changes["title"] or "").strip()
        if not title:
            raise AppError("Title cannot be empty", status.HTTP_400_BAD_REQUEST)
        changes["title"] = title
    if changes.get("is_pinned", False) is None:
        changes.pop("is_pinned")

    for key, value in changes.items():
        setattr(session, key, value)

    await db.commit()
    await db.refresh(session)
    return session


async def update_session_settings(db: AsyncSession, session_id: str, body: ChatSessionSettingsUpdate) -> ChatSession:
    """Remember the personality / provider last used in this session."""
    session = await get_session(db, session_id)
    for key, value in body.model_dump(exclude_unset=True).items():
        setattr(session, key, value)
    await db.commit()
    await db.refresh(session)
    return session


async def delete_session(db: AsyncSession, session_id: str) -> None:
    """Delete a session with its messages and share snapshots."""
    session = await get_session(db, session_id)
    await db.execute(delete(ChatMessage).where(ChatMessage.session_id == session_id))
    await db.execute(delete(SharedChat).where(SharedChat.original_chat_id == session_id))
    await db.delete(session)
    await db.commit()


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------


async def list_messages(db: AsyncSession, session_id: str) -> list[ChatMessage]:
    stmt = select(ChatMessage).where(ChatMessage.session_id == session_id).order_by(ChatMessage.position)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def _append_message(
    db: AsyncSession,
    session: ChatSession,
    *,
    role: MessageRole,
    content: str,
    personality_id: str | None,
    ai_provider_id: str | None,
    api_metadata: dict | None = None,
) -> ChatMessage:
    content = content.strip()
    if not content:
        raise AppError("Message content is required", status.HTTP_400_BAD_REQUEST)

    stmt = select(func.coalesce(func.max(ChatMessage.position), -1)).where(ChatMessage.session_id == session.id)
    position = (await db.execute(stmt)).scalar_one() + 1

    message = ChatMessage(
        id=str(uuid.uuid4()),
        session_id=session.id,
        position=position,
        role=role.value,
        content=content,
        personality_id=personality_id,
        ai_provider_id=ai_provider_id,
        api_metadata=api_metadata,
    )
    db.add(message)
    # Touch the session so it sorts as most recently used.
    session.updated_at = func.now()
    await db.commit()
    await db.refresh(message)
    return message


async def send_message(db: AsyncSession, session_id: str, body: SendMessageRequest) -> ChatMessage:
    """Store a user message."""
    session = await get_session(db, session_id)
    return await _append_message(
        db,
        session,
        role=MessageRole.USER,
        content=body.content,
        personality_id=body.personality_id,
        ai_provider_id=body.ai_provider_id,
    )


async def save_message(db: AsyncSession, session_id: str, body: SaveMessageRequest) -> ChatMessage:
    """Store a message of any role, e.g. an assistant reply produced client-side."""
    session = await get_session(db, session_id)
    return await _append_message(
        db,
        session,
        role=body.role,
        content=body.content,
        personality_id=body.personality_id,
        ai_provider_id=body.ai_provider_id,
        api_metadata=body.api_metadata,
    )


# ---------------------------------------------------------------------------
# Sharing
# ---------------------------------------------------------------------------


async def create_share(db: AsyncSession, session_id: str, message_count: int | None = None) -> SharedChat:
    """Snapshot the session's messages into a public share and mark it shared."""
    session = await get_session(db, session_id)
    messages = await list_messages(db, session_id)
    if message_count is not None:
        messages = messages[:message_count]

    snapshot = [
        {
            "id": m.id,
            "role": m.role,
            "content": m.content,
            "createdAt": m.created_at.isoformat(),
        }
        for m in messages
        if m.role in (MessageRole.USER, MessageRole.ASSISTANT)
    ]
    shared = SharedChat(
        id=str(uuid.uuid4()),
        original_chat_id=session_id,
        title=session.title,
        messages=snapshot,
        message_count=len(snapshot),
        is_active=True,
    )
    db.add(shared)
    session.is_shared = True
    await db.commit()
    await db.refresh(shared)
    return shared


async def get_share_for_session(db: AsyncSession, session_id: str) -> SharedChat | None:
    """Return the newest active share of a session, if any."""
    await get_session(db, session_id)
    stmt = (
        select(SharedChat)
        .where(SharedChat.original_chat_id == session_id, SharedChat.is_active.is_(True))
        .order_by(SharedChat.created_at.desc())
        .limit(1)
    )
    result = await db.execute(stmt)
    return result.scalars().first()


async def remove_shares(db: AsyncSession, session_id: str) -> None:
    """Delete every share of a session and clear its ``is_shared`` flag."""
    await get_session(db, session_id)
    await db.execute(delete(SharedChat).where(SharedChat.original_chat_id == session_id))
    await db.execute(update(ChatSession).where(ChatSession.id == session_id).values(is_shared=False))
    await db.commit()


async def get_shared_chat(db: AsyncSession, share_id: str) -> SharedChat:
    """Public lookup.  Deactivated shares are reported as gone."""
    shared = await db.get(SharedChat, share_id)
    if shared is None:
        raise SharedChatNotFoundError(share_id)
    if not shared.is_active:
        raise AppError("This shared chat is no longer available", status.HTTP_410_GONE)
    return shared
