"""Workspace favorites endpoints: AI providers / model configs and personalities.

Two routers share this module.  AI favorites reorder with ``POST`` and
personality favorites with ``PUT``, matching the deployed web client.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter

from op3.server.deps import DbSession
from op3.server.managers import favorites as manager
from op3.server.models.api import (
    AIFavoriteCreate,
    AIFavoriteResponse,
    FavoriteCheckResponse,
    FavoriteReorder,
    FavoriteUpdate,
    PersonalityFavoriteCreate,
    PersonalityFavoriteResponse,
)
from op3.server.responses import success

ai_router = APIRouter(prefix="/workspace-ai-favorites", tags=["favorites"])
personality_router = APIRouter(prefix="/workspace-personality-favorites", tags=["favorites"])


# ---------------------------------------------------------------------------
# AI favorites
# ---------------------------------------------------------------------------


@ai_router.get("/{workspace_id}")
async def list_ai_favorites(workspace_id: str, db: DbSession) -> dict[str, Any]:
    favorites = await manager.list_ai_favorites(db, workspace_id)
    data = [AIFavoriteResponse.model_validate(f) for f in favorites]
    return success("AI favorites retrieved successfully", data)


@ai_router.post("")
async def add_ai_favorite(body: AIFavoriteCreate, db: DbSession) -> dict[str, Any]:
    favorite = await manager.add_ai_favorite(db, body)
    return success("AI provider added to favorites successfully", AIFavoriteResponse.model_validate(favorite))


@ai_router.put("/{favorite_id}")
async def update_ai_favorite(favorite_id: str, body: FavoriteUpdate, db: DbSession) -> dict[str, Any]:
    favorite = await manager.update_ai_favorite(db, favorite_id, body)
    return success("AI favorite updated successfully", AIFavoriteResponse.model_validate(favorite))


@ai_router.delete("/{favorite_id}")
async def remove_ai_favorite(favorite_id: str, db: DbSession) -> dict[str, Any]:
    await manager.remove_ai_favorite(db, favorite_id)
    return success("AI provider removed from favorites successfully")


@ai_router.post("/{workspace_id}/reorder")
async def reorder_ai_favorites(workspace_id: str, body: FavoriteReorder, db: DbSession) -> dict[str, Any]:
    favorites = await manager.reorder_ai_favorites(db, workspace_id, body.favorite_ids)
    data = [AIFavoriteResponse.model_validate(f) for f in favorites]
    return success("AI favorites reordered successfully", data)


@ai_router.get("/{workspace_id}/check/{ai_provider_id}")
async def check_ai_favorite(workspace_id: str, ai_provider_id: str, db: DbSession) -> dict[str, Any]:
    favorite = await manager.find_ai_favorite(db, workspace_id, ai_provider_id)
    data = FavoriteCheckResponse(
        is_favorited=favorite is not None,
        favorite=AIFavoriteResponse.model_validate(favorite) if favorite is not None else None,
    )
    return success("Favorite status retrieved successfully", data)


# ---------------------------------------------------------------------------
# Personality favorites
# ---------------------------------------------------------------------------


@personality_router.get("/{workspace_id}")
async def list_personality_favorites(workspace_id: str, db: DbSession) -> dict[str, Any]:
    favorites = await manager.list_personality_favorites(db, workspace_id)
    data = [PersonalityFavoriteResponse.model_validate(f) for f in favorites]
    return success("Personality favorites retrieved successfully", data)


@personality_router.post("")
async def add_personality_favorite(body: PersonalityFavoriteCreate, db: DbSession) -> dict[str, Any]:
    favorite = await manager.add_personality_favorite(db, body)
    return success("Personality added to favorites successfully", PersonalityFavoriteResponse.model_validate(favorite))


@personality_router.put("/{favorite_id}")
async def update_personality_favorite(favorite_id: str, body: FavoriteUpdate, db: DbSession) -> dict[str, Any]:
    favorite = await manager.update_personality_favorite(db, favorite_id, body)
    return success("Personality favorite updated successfully", PersonalityFavoriteResponse.model_validate(favorite))


@personality_router.delete("/{favorite_id}")
async def remove_personality_favorite(favorite_id: str, db: DbSession) -> dict[str, Any]:
    await manager.remove_personality_favorite(db, favorite_id)
    return success("Personality removed from favorites successfully")


@personality_router.put("/{workspace_id}/reorder")
async def reorder_personality_favorites(workspace_id: str, body: FavoriteReorder, db: DbSession) -> dict[str, Any]:
    favorites = await manager.reorder_personality_favorites(db, workspace_id, body.favorite_ids)
    data = [PersonalityFavoriteResponse.model_validate(f) for f in favorites]
    return success("Personality favorites reordered successfully", data)


@personality_router.get("/{workspace_id}/check/{personality_id}")
async def check_personality_favorite(workspace_id: str, personality_id: str, db: DbSession) -> dict[str, Any]:
    favorite = await manager.find_personality_favorite(db, workspace_id, personality_id)
    data = FavoriteCheckResponse(
        is_favorited=favorite is not None,
        favorite=PersonalityFavoriteResponse.model_validate(favorite) if favorite is not None else None,
    )
    return success("Favorite status retrieved successfully", data)
