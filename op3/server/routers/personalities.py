"""Personality (system-prompt preset) endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, status

from op3.server.deps import DbSession
from op3.server.managers import personalities as manager
from op3.server.models.api import PersonalityCreate, PersonalityResponse, PersonalityUpdate, UserRef
from op3.server.responses import success

router = APIRouter(prefix="/personalities", tags=["personalities"])


@router.get("/{user_id}")
async def list_personalities(user_id: str, db: DbSession) -> dict[str, Any]:
    personalities = await manager.list_personalities(db, user_id)
    data = [PersonalityResponse.model_validate(p) for p in personalities]
    return success("Personalities retrieved successfully", data)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_personality(body: PersonalityCreate, db: DbSession) -> dict[str, Any]:
    personality = await manager.create_personality(db, body)
    return success("Personality created successfully", PersonalityResponse.model_validate(personality))


@router.put("/{personality_id}")
async def update_personality(personality_id: str, body: PersonalityUpdate, db: DbSession) -> dict[str, Any]:
    personality = await manager.update_personality(db, personality_id, body)
    return success("Personality updated successfully", PersonalityResponse.model_validate(personality))


@router.delete("/{personality_id}")
async def delete_personality(personality_id: str, body: UserRef, db: DbSession) -> dict[str, Any]:
    """Delete a personality.  Favorites pointing at it are removed too."""
    await manager.delete_personality(db, personality_id, body.user_id)
    return success("Personality deleted successfully")
