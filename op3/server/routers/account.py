"""Account settings endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter

from op3.server.deps import DbSession
from op3.server.managers import users as manager
from op3.server.models.api import AccountResponse, PasswordChange, ProfileUpdate
from op3.server.responses import success

router = APIRouter(prefix="/account", tags=["account"])


@router.get("/{user_id}")
async def get_account(user_id: str, db: DbSession) -> dict[str, Any]:
    user = await manager.get_user(db, user_id)
    return success("Account retrieved successfully", AccountResponse.model_validate(user))


@router.patch("/{user_id}")
async def update_account(user_id: str, body: ProfileUpdate, db: DbSession) -> dict[str, Any]:
    user = await manager.update_profile(db, user_id, body)
    return success("Account updated successfully", AccountResponse.model_validate(user))


@router.patch("/{user_id}/password")
async def change_password(user_id: str, body: PasswordChange, db: DbSession) -> dict[str, Any]:
    await manager.change_password(db, user_id, body)
    return success("Password changed successfully")
