"""Personality (system-prompt preset) CRUD operations."""

from __future__ import annotations

import uuid

from fastapi import status
from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from op3.server.db.tables import ChatSession, Personality, WorkspacePersonalityFavorite
from op3.server.errors import AppError, NotFoundError
from op3.server.managers.favorites import list_personality_favorites
from op3.server.managers.ordering import renumber
from op3.server.models.api import PersonalityCreate, PersonalityUpdate


class PersonalityNotFoundError(NotFoundError):
    def __init__(self, personality_id: str) -> None:
        super().__init__("Personality not found")
        self.personality_id = personality_id


def _required(value: str | None, message: str) -> str:
    value = (value or "").strip()
    if not value:
        raise AppError(message, status.HTTP_400_BAD_REQUEST)
    return value


async def create_personality(db: AsyncSession, body: PersonalityCreate) -> Personality:
    personality = Personality(
        id=str(uuid.uuid4()),
        user_id=body.user_id,
        title=_required(body.title, "Title is required"),
        prompt=_required(body.prompt, "Prompt is required"),
    )
    db.add(personality)
    await db.commit()
    await db.refresh(personality)
    return personality


async def list_personalities(db: AsyncSession, user_id: str) -> list[Personality]:
    """List a user's personalities, newest first."""
    stmt = select(Personality).where(Personality.user_id == user_id).order_by(Personality.created_at.desc())
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def get_personality(db: AsyncSession, personality_id: str, user_id: str | None = None) -> Personality:
    personality = await db.get(Personality, personality_id)
    if personality is None or (user_id is not None and personality.user_id != user_id):
        raise PersonalityNotFoundError(personality_id)
    return personality


async def update_personality(db: AsyncSession, personality_id: str, body: PersonalityUpdate) -> Personality:
    if not body.title and not body.prompt:
        raise AppError(
            "At least one field (title or prompt) must be provided for update", status.HTTP_400_BAD_REQUEST
        )
    personality = await get_personality(db, personality_id, body.user_id)

    if body.title is not None:
        personality.title = _required(body.title, "Title cannot be empty")
    if body.prompt is not None:
        personality.prompt = _required(body.prompt, "Prompt cannot be empty")

    await db.commit()
    await db.refresh(personality)
    return personality


async def delete_personality(db: AsyncSession, personality_id: str, user_id: str) -> None:
    """Delete a personality, its favorites, and clear it from chat sessions."""
    personality = await get_personality(db, personality_id, user_id)
    stmt = select(WorkspacePersonalityFavorite.workspace_id).where(
        WorkspacePersonalityFavorite.personality_id == personality_id
    )
    workspace_ids = list((await db.execute(stmt)).scalars().all())
    await db.execute(
        delete(WorkspacePersonalityFavorite).where(WorkspacePersonalityFavorite.personality_id == personality_id)
    )
    for workspace_id in workspace_ids:
        renumber(await list_personality_favorites(db, workspace_id))
    await db.execute(
        update(ChatSession)
        .where(ChatSession.last_used_personality_id == personality_id)
        .values(last_used_personality_id=None)
    )
    await db.delete(personality)
    await db.commit()
