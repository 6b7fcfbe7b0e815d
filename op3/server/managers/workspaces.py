"""Workspaces: create, list, update, activate, delete.

Exactly one workspace per user is active at a time; deleting a workspace
also removes its chats and favorites.
"""

from __future__ import annotations

import uuid

from fastapi import status
from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from op3.server.db.tables import (
    ChatMessage,
    ChatSession,
    Workspace,
    WorkspaceAIFavorite,
    WorkspacePersonalityFavorite,
)
from op3.server.errors import AppError, NotFoundError
from op3.server.managers.ordering import renumber
from op3.server.models.api import WorkspaceCreate, WorkspaceUpdate


class WorkspaceNotFoundError(NotFoundError):
    """Raised when a workspace is missing or owned by another user."""

    def __init__(self, workspace_id: str) -> None:
        super().__init__("Workspace not found")
        self.workspace_id = workspace_id


async def list_scope(db: AsyncSession, user_id: str, group_id: str | None) -> list[Workspace]:
    """Workspaces of one ``(user, group)`` scope in display order."""
    group_clause = Workspace.group_id.is_(None) if group_id is None else Workspace.group_id == group_id
    stmt = (
        select(Workspace)
        .where(Workspace.user_id == user_id, group_clause)
        .order_by(Workspace.sort_order, Workspace.created_at)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def _deactivate_all(db: AsyncSession, user_id: str) -> None:
    await db.execute(update(Workspace).where(Workspace.user_id == user_id).values(is_active=False))


async def create_workspace(db: AsyncSession, body: WorkspaceCreate) -> Workspace:
    """Create a workspace, append it to the ungrouped scope and make it active."""
    name = body.name.strip()
    if not name:
        raise AppError("Workspace name is required", status.HTTP_400_BAD_REQUEST)

    scope = await list_scope(db, body.user_id, None)
    await _deactivate_all(db, body.user_id)

    workspace = Workspace(
        id=str(uuid.uuid4()),
        user_id=body.user_id,
        name=name,
        template_type=body.template_type.value,
        workspace_rules=body.workspace_rules,
        is_active=True,
        group_id=None,
        sort_order=len(scope),
    )
    db.add(workspace)
    await db.commit()
    await db.refresh(workspace)
    return workspace


async def get_active_workspace(db: AsyncSession, user_id: str) -> Workspace | None:
    """Return the user's active workspace, or ``None`` if the user has none."""
    stmt = select(Workspace).where(Workspace.user_id == user_id, Workspace.is_active.is_(True)).limit(1)
    result = await db.execute(stmt)
    return result.scalars().first()


async def list_workspaces(db: AsyncSession, user_id: str) -> list[Workspace]:
    stmt = (
        select(Workspace)
        .where(Workspace.user_id == user_id)
        .order_by(Workspace.sort_order, Workspace.created_at)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def get_workspace(db: AsyncSession, workspace_id: str, user_id: str | None = None) -> Workspace:
    """Get a workspace by ID.  Raises ``WorkspaceNotFoundError`` if missing.

    When *user_id* is given, a workspace owned by someone else is treated as
    missing.
    """
    workspace = await db.get(Workspace, workspace_id)
    if workspace is None or (user_id is not None and workspace.user_id != user_id):
        raise WorkspaceNotFoundError(workspace_id)
    return workspace


async def update_workspace(db: AsyncSession, workspace_id: str, body: WorkspaceUpdate) -> Workspace:
    """Partially update name / rules.  Raises ``WorkspaceNotFoundError`` if missing."""
    workspace = await get_workspace(db, workspace_id, body.user_id)

    changes = body.model_dump(exclude_unset=True, exclude={"user_id"})
    if "name" in changes:
        name = (changes["name"] or "").strip()
        if not name:
            raise AppError("Workspace name cannot be empty", status.HTTP_400_BAD_REQUEST)
        changes["name"] = name
    if not changes:
        return workspace

    for key, value in changes.items():
        setattr(workspace, key, value)

    await db.commit()
    await db.refresh(workspace)
    return workspace


async def activate_workspace(db: AsyncSession, workspace_id: str, user_id: str) -> Workspace:
    """Make *workspace_id* the only active workspace of the user."""
    workspace = await get_workspace(db, workspace_id, user_id)
    await _deactivate_all(db, user_id)
    workspace.is_active = True
    await db.commit()
    await db.refresh(workspace)
    return workspace


async def delete_workspace(db: AsyncSession, workspace_id: str, user_id: str) -> None:
    """Delete a workspace with its chats and favorites.

    The remaining workspaces of the scope are renumbered.  If the deleted
    workspace was active, the first remaining workspace becomes active.
    """
    workspace = await get_workspace(db, workspace_id, user_id)
    was_active = workspace.is_active
    group_id = workspace.group_id

    session_ids = select(ChatSession.id).where(ChatSession.workspace_id == workspace_id)
    await db.execute(delete(ChatMessage).where(ChatMessage.session_id.in_(session_ids)))
    await db.execute(delete(ChatSession).where(ChatSession.workspace_id == workspace_id))
    await db.execute(delete(WorkspaceAIFavorite).where(WorkspaceAIFavorite.workspace_id == workspace_id))
    await db.execute(
        delete(WorkspacePersonalityFavorite).where(WorkspacePersonalityFavorite.workspace_id == workspace_id)
    )
    await db.delete(workspace)
    await db.flush()

    renumber(await list_scope(db, user_id, group_id))

    if was_active:
        remaining = await list_workspaces(db, user_id)
        if remaining:
            remaining[0].is_active = True

    await db.commit()
