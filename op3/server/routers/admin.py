"""Admin panel endpoints: user management and system settings.

Every route requires ``adminId`` (query) naming an active admin; anything
else is answered with 403.  ``/users/stats`` and ``/users/bulk-update`` are
declared before ``/users/{user_id}``.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal

from fastapi import APIRouter, Depends, Query, status

from op3.server.db.tables import User
from op3.server.deps import DbSession
from op3.server.managers import admin as manager
from op3.server.managers.users import get_user
from op3.server.models.api import (
    AdminUserCreate,
    AdminUserResponse,
    AdminUserUpdate,
    BulkUserUpdate,
    PasswordReset,
    SystemSettingsUpdate,
    UserPage,
)
from op3.server.models.enums import UserRole
from op3.server.responses import success


async def acting_admin(db: DbSession, admin_id: str | None = Query(None, alias="adminId")) -> User:
    return await manager.require_admin(db, admin_id)


AdminUser = Annotated[User, Depends(acting_admin)]

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(acting_admin)])


# -- System settings ---------------------------------------------------------


@router.get("/system-settings")
async def get_system_settings(db: DbSession) -> dict[str, Any]:
    settings = await manager.get_system_settings(db)
    return success("System settings retrieved successfully", settings)


@router.put("/system-settings")
async def update_system_settings(body: SystemSettingsUpdate, admin: AdminUser, db: DbSession) -> dict[str, Any]:
    settings = await manager.update_system_settings(db, body, admin.id)
    return success("System settings updated successfully", settings)


# -- Users -------------------------------------------------------------------


@router.get("/users")
async def list_users(
    db: DbSession,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: str = "",
    role: UserRole | None = None,
    is_active: bool | None = Query(None, alias="isActive"),
    sort_by: str = Query("createdAt", alias="sortBy"),
    sort_order: Literal["asc", "desc"] = Query("desc", alias="sortOrder"),
) -> dict[str, Any]:
    users, total, total_pages = await manager.list_users(
        db,
        page=page,
        limit=limit,
        search=search,
        role=role,
        is_active=is_active,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    data = UserPage(
        users=[AdminUserResponse.model_validate(u) for u in users],
        total=total,
        page=page,
        limit=limit,
        total_pages=total_pages,
    )
    return success("Users retrieved successfully", data)


@router.get("/users/stats")
async def user_stats(db: DbSession) -> dict[str, Any]:
    return success("User statistics retrieved successfully", await manager.user_stats(db))


@router.post("/users/bulk-update")
async def bulk_update_users(body: BulkUserUpdate, db: DbSession) -> dict[str, Any]:
    """Same change for many users.  Unknown ids are listed under ``errors``."""
    updated, errors = await manager.bulk_update_users(db, body)
    data = {"results": [{"userId": user_id, "success": True} for user_id in updated], "errors": errors}
    return success(f"Updated {len(updated)} users successfully", data)


@router.post("/users", status_code=status.HTTP_201_CREATED)
async def create_user(body: AdminUserCreate, db: DbSession) -> dict[str, Any]:
    user = await manager.create_user(db, body)
    return success("User created successfully", AdminUserResponse.model_validate(user))


@router.get("/users/{user_id}")
async def get_user_by_id(user_id: str, db: DbSession) -> dict[str, Any]:
    user = await get_user(db, user_id)
    return success("User retrieved successfully", AdminUserResponse.model_validate(user))


@router.put("/users/{user_id}")
async def update_user(user_id: str, body: AdminUserUpdate, db: DbSession) -> dict[str, Any]:
    user = await manager.update_user(db, user_id, body)
    return success("User updated successfully", AdminUserResponse.model_validate(user))


@router.delete("/users/{user_id}")
async def delete_user(user_id: str, db: DbSession) -> dict[str, Any]:
    await manager.delete_user(db, user_id)
    return success("User deleted successfully")


@router.put("/users/{user_id}/password")
async def reset_password(user_id: str, body: PasswordReset, db: DbSession) -> dict[str, Any]:
    await manager.reset_password(db, user_id, body)
    return success("Password updated successfully")
