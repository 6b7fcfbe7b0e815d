"""Workspace favorites: AI provider / model configs and personalities.

Both kinds are flat join rows ordered per workspace.  The shared helpers
take the ORM class and the name of its entity column, so the two public
APIs below stay thin.
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence
from typing import TypeVar

from fastapi import status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from op3.server.db.tables import Personality, WorkspaceAIFavorite, WorkspacePersonalityFavorite
from op3.server.errors import AppError, NotFoundError
from op3.server.managers.ordering import apply_id_order, move_to, renumber
from op3.server.managers.workspaces import get_workspace
from op3.server.models.api import AIFavoriteCreate, FavoriteUpdate, PersonalityFavoriteCreate

Favorite = TypeVar("Favorite", WorkspaceAIFavorite, WorkspacePersonalityFavorite)


class FavoriteNotFoundError(NotFoundError):
    def __init__(self, favorite_id: str) -> None:
        super().__init__("Favorite not found")
        self.favorite_id = favorite_id


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------


async def _list(db: AsyncSession, model: type[Favorite], workspace_id: str) -> list[Favorite]:
    stmt = select(model).where(model.workspace_id == workspace_id).order_by(model.sort_order, model.created_at)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def _get(db: AsyncSession, model: type[Favorite], favorite_id: str) -> Favorite:
    favorite = await db.get(model, favorite_id)
    if favorite is None:
        raise FavoriteNotFoundError(favorite_id)
    return favorite


async def _find(db: AsyncSession, model: type[Favorite], workspace_id: str, column: str, entity_id: str):
    stmt = select(model).where(model.workspace_id == workspace_id, getattr(model, column) == entity_id)
    result = await db.execute(stmt)
    return result.scalars().first()


async def _update(db: AsyncSession, model: type[Favorite], favorite_id: str, body: FavoriteUpdate) -> Favorite:
    if body.display_name is None and body.sort_order is None:
        raise AppError(
            "At least one field (displayName or sortOrder) must be provided", status.HTTP_400_BAD_REQUEST
        )
    favorite = await _get(db, model, favorite_id)

    if body.display_name is not None:
        display_name = body.display_name.strip()
        if not display_name:
            raise AppError("Display name cannot be empty", status.HTTP_400_BAD_REQUEST)
        favorite.display_name = display_name

    if body.sort_order is not None and body.sort_order != favorite.sort_order:
        move_to(await _list(db, model, favorite.workspace_id), favorite, body.sort_order)

    await db.commit()
    await db.refresh(favorite)
    return favorite


async def _remove(db: AsyncSession, model: type[Favorite], favorite_id: str) -> None:
    favorite = await _get(db, model, favorite_id)
    workspace_id = favorite.workspace_id
    await db.delete(favorite)
    await db.flush()
    renumber(await _list(db, model, workspace_id))
    await db.commit()


async def _reorder(
    db: AsyncSession, model: type[Favorite], workspace_id: str, favorite_ids: Sequence[str]
) -> list[Favorite]:
    if not favorite_ids:
        raise AppError("favoriteIds array cannot be empty", status.HTTP_400_BAD_REQUEST)
    if not all(isinstance(i, str) and i.strip() for i in favorite_ids):
        raise AppError("All favorite IDs must be non-empty strings", status.HTTP_400_BAD_REQUEST)
    if len(set(favorite_ids)) != len(favorite_ids):
        raise AppError("Duplicate favorite IDs", status.HTTP_400_BAD_REQUEST)

    favorites = await _list(db, model, workspace_id)
    known = {f.id for f in favorites}
    for favorite_id in favorite_ids:
        if favorite_id not in known:
            raise FavoriteNotFoundError(favorite_id)

    ordered = apply_id_order(favorites, favorite_ids)
    await db.commit()
    return ordered


# ---------------------------------------------------------------------------
# AI favorites
# ---------------------------------------------------------------------------


async def list_ai_favorites(db: AsyncSession, workspace_id: str) -> list[WorkspaceAIFavorite]:
    return await _list(db, WorkspaceAIFavorite, workspace_id)


async def add_ai_favorite(db: AsyncSession, body: AIFavoriteCreate) -> WorkspaceAIFavorite:
    """Append an AI provider or model config to the workspace favorites."""
    display_name = body.display_name.strip()
    if not display_name:
        raise AppError("Display name is required", status.HTTP_400_BAD_REQUEST)
    await get_workspace(db, body.workspace_id)

    if await _find(db, WorkspaceAIFavorite, body.workspace_id, "ai_provider_id", body.ai_provider_id):
        raise AppError("AI provider is already in favorites", status.HTTP_400_BAD_REQUEST)

    favorites = await _list(db, WorkspaceAIFavorite, body.workspace_id)
    favorite = WorkspaceAIFavorite(
        id=str(uuid.uuid4()),
        workspace_id=body.workspace_id,
        ai_provider_id=body.ai_provider_id,
        is_model_config=body.is_model_config,
        display_name=display_name,
        sort_order=len(favorites),
    )
    db.add(favorite)
    await db.commit()
    await db.refresh(favorite)
    return favorite


async def update_ai_favorite(db: AsyncSession, favorite_id: str, body: FavoriteUpdate) -> WorkspaceAIFavorite:
    return await _update(db, WorkspaceAIFavorite, favorite_id, body)


async def remove_ai_favorite(db: AsyncSession, favorite_id: str) -> None:
    await _remove(db, WorkspaceAIFavorite, favorite_id)


async def reorder_ai_favorites(
    db: AsyncSession, workspace_id: str, favorite_ids: Sequence[str]
) -> list[WorkspaceAIFavorite]:
    return await _reorder(db, WorkspaceAIFavorite, workspace_id, favorite_ids)


async def find_ai_favorite(db: AsyncSession, workspace_id: str, ai_provider_id: str) -> WorkspaceAIFavorite | None:
    return await _find(db, WorkspaceAIFavorite, workspace_id, "ai_provider_id", ai_provider_id)


# ---------------------------------------------------------------------------
# Personality favorites
# ---------------------------------------------------------------------------


async def list_personality_favorites(db: AsyncSession, workspace_id: str) -> list[WorkspacePersonalityFavorite]:
    return await _list(db, WorkspacePersonalityFavorite, workspace_id)


async def add_personality_favorite(db: AsyncSession, body: PersonalityFavoriteCreate) -> WorkspacePersonalityFavorite:
    """Append a personality to the workspace favorites.

    ``display_name`` defaults to the personality's title.
    """
    await get_workspace(db, body.workspace_id)
    personality = await db.get(Personality, body.personality_id)
    if personality is None:
        raise NotFoundError("Personality not found")

    if await _find(db, WorkspacePersonalityFavorite, body.workspace_id, "personality_id", body.personality_id):
        raise AppError("Personality is already in favorites", status.HTTP_400_BAD_REQUEST)

    display_name = (body.display_name or "").strip() or personality.title
    favorites = await _list(db, WorkspacePersonalityFavorite, body.workspace_id)
    favorite = WorkspacePersonalityFavorite(
        id=str(uuid.uuid4()),
        workspace_id=body.workspace_id,
        personality_id=body.personality_id,
        display_name=display_name,
        sort_order=len(favorites),
    )
    db.add(favorite)
    await db.commit()
    await db.refresh(favorite)
    return favorite


async def update_personality_favorite(
    db: AsyncSession, favorite_id: str, body: FavoriteUpdate
) -> WorkspacePersonalityFavorite:
    return await _update(db, WorkspacePersonalityFavorite, favorite_id, body)


async def remove_personality_favorite(db: AsyncSession, favorite_id: str) -> None:
    await _remove(db, WorkspacePersonalityFavorite, favorite_id)


async def reorder_personality_favorites(
    db: AsyncSession, workspace_id: str, favorite_ids: Sequence[str]
) -> list[WorkspacePersonalityFavorite]:
    return await _reorder(db, WorkspacePersonalityFavorite, workspace_id, favorite_ids)


async def find_personality_favorite(
    db: AsyncSession, workspace_id: str, personality_id: str
) -> WorkspacePersonalityFavorite | None:
    return await _find(db, WorkspacePersonalityFavorite, workspace_id, "personality_id", personality_id)
