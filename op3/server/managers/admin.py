"""Administration: user management and instance-wide system settings.

Every operation here is reached through the admin router, which first
resolves the acting user with ``require_admin``.  System settings live in
``system_settings`` under the ``system`` key; until an admin saves them the
defaults of ``SystemSettings`` apply.
"""

from __future__ import annotations

import math
import uuid
from datetime import UTC, datetime
from typing import Any

from fastapi import status
from loguru import logger
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from op3.server.db.tables import SystemSetting, User
from op3.server.errors import AppError
from op3.server.managers.users import (
    MIN_PASSWORD_LENGTH,
    UserNotFoundError,
    get_user,
    validate_email,
    validate_password,
)
from op3.server.models.api import (
    AdminUserCreate,
    AdminUserUpdate,
    BulkUserUpdate,
    PasswordReset,
    SystemSettings,
    SystemSettingsUpdate,
    UserStats,
)
from op3.server.models.enums import UserRole
from op3.server.security import hash_password

SYSTEM_SETTINGS_KEY = "system"

USER_SORT_COLUMNS = {
    "email": User.email,
    "displayName": User.display_name,
    "createdAt": User.created_at,
    "updatedAt": User.updated_at,
}


async def require_admin(db: AsyncSession, admin_id: str | None) -> User:
    """Return the acting admin, or raise 403 if *admin_id* is not an active admin."""
    user = await db.get(User, admin_id) if admin_id else None
    if user is None or user.role != UserRole.ADMIN or not user.is_active:
        raise AppError("Admin access required", status.HTTP_403_FORBIDDEN)
    return user


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


async def _count_users(db: AsyncSession, *conditions: Any) -> int:
    stmt = select(func.count()).select_from(User).where(*conditions)
    return (await db.execute(stmt)).scalar_one()


async def list_users(
    db: AsyncSession,
    *,
    page: int = 1,
    limit: int = 20,
    search: str = "",
    role: UserRole | None = None,
    is_active: bool | None = None,
    sort_by: str = "createdAt",
    sort_order: str = "desc",
) -> tuple[list[User], int, int]:
    """One page of users matching the filters.

    *search* matches email or display name, case-insensitively.  Returns
    ``(users, total, total_pages)``.
    """
    column = USER_SORT_COLUMNS.get(sort_by)
    if column is None:
        raise AppError("Invalid sort field", status.HTTP_400_BAD_REQUEST)

    conditions = []
    if search.strip():
        pattern = f"%{search.strip().lower()}%"
        conditions.append(or_(func.lower(User.email).like(pattern), func.lower(User.display_name).like(pattern)))
    if role is not None:
        conditions.append(User.role == role.value)
    if is_active is not None:
        conditions.append(User.is_active == is_active)

    total = await _count_users(db, *conditions)
    order = column.asc() if sort_order == "asc" else column.desc()
    stmt = select(User).where(*conditions).order_by(order, User.id).offset((page - 1) * limit).limit(limit)
    users = list((await db.execute(stmt)).scalars().all())
    return users, total, math.ceil(total / limit)


async def user_stats(db: AsyncSession) -> UserStats:
    total = await _count_users(db)
    admins = await _count_users(db, User.role == UserRole.ADMIN.value)
    active = await _count_users(db, User.is_active.is_(True))
    return UserStats(total=total, admins=admins, active=active, inactive=total - active, regular=total - admins)


async def _ensure_email_free(db: AsyncSession, email: str, user_id: str | None = None) -> None:
    stmt = select(User.id).where(User.email == email)
    if user_id is not None:
        stmt = stmt.where(User.id != user_id)
    if (await db.execute(stmt)).first() is not None:
        raise AppError("User with this email already exists", status.HTTP_400_BAD_REQUEST)


async def create_user(db: AsyncSession, body: AdminUserCreate) -> User:
    if not body.email or not body.password or not body.role:
        raise AppError("Email, password, and role are required", status.HTTP_400_BAD_REQUEST)
    if body.role not in set(UserRole):
        raise AppError("Invalid role", status.HTTP_400_BAD_REQUEST)
    errors = validate_email(body.email) + validate_password(body.password)
    if errors:
        raise AppError(errors[0], status.HTTP_400_BAD_REQUEST)

    email = body.email.strip().lower()
    await _ensure_email_free(db, email)
    user = User(
        id=str(uuid.uuid4()),
        email=email,
        display_name=(body.display_name or "").strip() or None,
        password_hash=hash_password(body.password),
        role=body.role,
        is_active=True,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    logger.info("Created {} user {}", user.role, user.id)
    return user


async def _apply_user_changes(db: AsyncSession, user: User, changes: dict[str, Any]) -> None:
    """Validate and set *changes* on *user* without committing."""
    if "email" in changes:
        errors = validate_email(changes["email"])
        if errors:
            raise AppError(errors[0], status.HTTP_400_BAD_REQUEST)
        changes["email"] = changes["email"].strip().lower()
        await _ensure_email_free(db, changes["email"], user.id)
    if "display_name" in changes and changes["display_name"] is not None:
        changes["display_name"] = changes["display_name"].strip() or None

    for key, value in changes.items():
        if value is None and key != "display_name":
            continue
        setattr(user, key, value.value if isinstance(value, UserRole) else value)


async def update_user(db: AsyncSession, user_id: str, body: AdminUserUpdate) -> User:
    user = await get_user(db, user_id)
    await _apply_user_changes(db, user, body.model_dump(exclude_unset=True))
    await db.commit()
    await db.refresh(user)
    return user


async def bulk_update_users(db: AsyncSession, body: BulkUserUpdate) -> tuple[list[str], list[dict[str, str]]]:
    """Apply the same role / status change to many users in one transaction.

    Unknown ids are reported back instead of failing the batch.  Returns
    ``(updated_ids, errors)``.
    """
    if not body.user_ids:
        raise AppError("User IDs array is required", status.HTTP_400_BAD_REQUEST)
    changes = body.updates.model_dump(exclude_none=True) if body.updates is not None else {}
    if not changes:
        raise AppError("Updates object is required", status.HTTP_400_BAD_REQUEST)

    updated: list[str] = []
    errors: list[dict[str, str]] = []
    for user_id in dict.fromkeys(body.user_ids):
        try:
            user = await get_user(db, user_id)
        except UserNotFoundError as exc:
            errors.append({"userId": user_id, "error": str(exc)})
            continue
        await _apply_user_changes(db, user, dict(changes))
        updated.append(user_id)

    await db.commit()
    logger.info("Bulk-updated {} users ({} errors)", len(updated), len(errors))
    return updated, errors


async def delete_user(db: AsyncSession, user_id: str) -> None:
    user = await get_user(db, user_id)
    await db.delete(user)
    await db.commit()
    logger.info("Deleted user {}", user_id)


async def reset_password(db: AsyncSession, user_id: str, body: PasswordReset) -> None:
    """Set a new password without knowing the old one."""
    if not body.new_password:
        raise AppError("New password is required", status.HTTP_400_BAD_REQUEST)
    if len(body.new_password) < MIN_PASSWORD_LENGTH:
        raise AppError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters long", status.HTTP_400_BAD_REQUEST
        )

    user = await get_user(db, user_id)
    user.password_hash = hash_password(body.new_password)
    await db.commit()
    logger.info("Password reset for user {}", user_id)


# ---------------------------------------------------------------------------
# System settings
# ---------------------------------------------------------------------------


async def get_system_settings(db: AsyncSession) -> SystemSettings:
    setting = await db.get(SystemSetting, SYSTEM_SETTINGS_KEY)
    if setting is None:
        return SystemSettings()
    return SystemSettings.model_validate(setting.value)


async def update_system_settings(db: AsyncSession, body: SystemSettingsUpdate, updated_by: str) -> SystemSettings:
    """Merge *body* into the stored settings.  Password requirements merge field by field."""
    current = (await get_system_settings(db)).model_dump()
    changes = body.model_dump(exclude_unset=True)

    requirements = changes.pop("password_requirements", None) or {}
    merged = {k: v for k, v in changes.items() if v is not None or k == "max_users_allowed"}
    current.update(merged)
    current["password_requirements"].update({k: v for k, v in requirements.items() if v is not None})
    current["updated_at"] = datetime.now(UTC)
    current["updated_by"] = updated_by

    settings = SystemSettings.model_validate(current)
    value = settings.model_dump(mode="json")
    setting = await db.get(SystemSetting, SYSTEM_SETTINGS_KEY)
    if setting is None:
        db.add(SystemSetting(key=SYSTEM_SETTINGS_KEY, value=value))
    else:
        setting.value = value
    await db.commit()
    logger.info("System settings updated by {}", updated_by)
    return settings
