"""User accounts: admin bootstrap, profile and password changes."""

from __future__ import annotations

import re
import uuid

from fastapi import status
from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from op3.server.db.tables import User
from op3.server.errors import AppError, NotFoundError
from op3.server.models.api import AdminConfig, PasswordChange, ProfileUpdate
from op3.server.models.enums import UserRole
from op3.server.security import hash_password, verify_password

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MIN_PASSWORD_LENGTH = 8


class UserNotFoundError(NotFoundError):
    def __init__(self, user_id: str) -> None:
        super().__init__("User not found")
        self.user_id = user_id


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def validate_email(email: str | None) -> list[str]:
    if not email:
        return ["Email is required"]
    if not EMAIL_RE.match(email):
        return ["Please enter a valid email address"]
    return []


def validate_password(password: str) -> list[str]:
    """Return every rule *password* breaks, in display order."""
    errors = []
    if len(password) < MIN_PASSWORD_LENGTH:
        errors.append(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
    if not re.search(r"[A-Z]", password):
        errors.append("Password must contain at least one uppercase letter")
    if not re.search(r"[a-z]", password):
        errors.append("Password must contain at least one lowercase letter")
    if not re.search(r"\d", password):
        errors.append("Password must contain at least one number")
    if not re.search(r"[^A-Za-z0-9]", password):
        errors.append("Password must contain at least one special character")
    return errors


def validate_admin_config(config: AdminConfig) -> list[str]:
    errors = validate_email(config.email) + validate_password(config.password)
    if config.password != config.confirm_password:
        errors.append("Passwords do not match")
    if config.username and len(config.username) < 3:
        errors.append("Username must be at least 3 characters long")
    return errors


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------


async def create_admin(db: AsyncSession, config: AdminConfig) -> User:
    """Create the admin account.  Raises ``AppError`` with the first validation failure."""
    errors = validate_admin_config(config)
    if errors:
        raise AppError(errors[0], status.HTTP_400_BAD_REQUEST)

    email = config.email.strip().lower()
    existing = await db.execute(select(User).where(User.email == email))
    if existing.scalars().first() is not None:
        raise AppError("User with this email already exists", status.HTTP_400_BAD_REQUEST)

    user = User(
        id=str(uuid.uuid4()),
        email=email,
        display_name=config.username,
        password_hash=hash_password(config.password),
        role=UserRole.ADMIN.value,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    logger.info("Created admin user {}", user.id)
    return user


async def admin_exists(db: AsyncSession) -> bool:
    stmt = select(func.count()).select_from(User).where(User.role == UserRole.ADMIN.value)
    return (await db.execute(stmt)).scalar_one() > 0


async def get_user(db: AsyncSession, user_id: str) -> User:
    user = await db.get(User, user_id)
    if user is None:
        raise UserNotFoundError(user_id)
    return user


async def update_profile(db: AsyncSession, user_id: str, body: ProfileUpdate) -> User:
    user = await get_user(db, user_id)
    changes = body.model_dump(exclude_unset=True)

    if "email" in changes:
        errors = validate_email(changes["email"])
        if errors:
            raise AppError(errors[0], status.HTTP_400_BAD_REQUEST)
        changes["email"] = changes["email"].strip().lower()
    if "display_name" in changes and changes["display_name"] is not None:
        changes["display_name"] = changes["display_name"].strip() or None

    for key, value in changes.items():
        setattr(user, key, value)

    await db.commit()
    await db.refresh(user)
    return user


async def change_password(db: AsyncSession, user_id: str, body: PasswordChange) -> None:
    user = await get_user(db, user_id)
    if not verify_password(body.current_password, user.password_hash):
        raise AppError("Current password is incorrect", status.HTTP_400_BAD_REQUEST)
    errors = validate_password(body.new_password)
    if errors:
        raise AppError(errors[0], status.HTTP_400_BAD_REQUEST)

    user.password_hash = hash_password(body.new_password)
    await db.commit()
    logger.info("Password changed for user {}", user_id)
