"""Workspace group operations and workspace reordering.

Groups form one ordered scope per user.  Workspaces are ordered inside their
``(user, group)`` scope, ungrouped workspaces sharing the ``NULL`` scope.
Every write here leaves the touched scopes densely numbered.
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence
from dataclasses import dataclass

from fastapi import status
from loguru import logger
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from op3.server.db.tables import (
    ChatMessage,
    ChatSession,
    Workspace,
    WorkspaceAIFavorite,
    WorkspaceGroup,
    WorkspacePersonalityFavorite,
)
from op3.server.errors import AppError, NotFoundError
from op3.server.managers.ordering import move_to, renumber
from op3.server.managers.workspaces import WorkspaceNotFoundError, get_workspace, list_scope
from op3.server.models.api import GroupCreate, GroupOrder, GroupUpdate, WorkspaceOrder

DEFAULT_GROUP_COLOR = "#3B82F6"


class GroupNotFoundError(NotFoundError):
    """Raised when a group is missing or owned by another user."""

    def __init__(self, group_id: str) -> None:
        super().__init__("Workspace group not found or access denied")
        self.group_id = group_id


@dataclass
class GroupWithCount:
    group: WorkspaceGroup
    workspace_count: int


async def _list_groups(db: AsyncSession, user_id: str) -> list[WorkspaceGroup]:
    stmt = (
        select(WorkspaceGroup)
        .where(WorkspaceGroup.user_id == user_id)
        .order_by(WorkspaceGroup.sort_order, WorkspaceGroup.created_at)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def get_group(db: AsyncSession, group_id: str, user_id: str) -> WorkspaceGroup:
    group = await db.get(WorkspaceGroup, group_id)
    if group is None or group.user_id != user_id:
        raise GroupNotFoundError(group_id)
    return group


async def create_group(db: AsyncSession, body: GroupCreate) -> WorkspaceGroup:
    """Create a group.  Appended to the user's groups unless ``sort_order`` is given."""
    name = body.name.strip()
    if not name:
        raise AppError("Group name is required", status.HTTP_400_BAD_REQUEST)

    groups = await _list_groups(db, body.user_id)
    group = WorkspaceGroup(
        id=str(uuid.uuid4()),
        user_id=body.user_id,
        name=name,
        color=body.color or DEFAULT_GROUP_COLOR,
        sort_order=len(groups),
        is_pinned=False,
    )
    db.add(group)
    move_to(groups, group, body.sort_order)
    await db.commit()
    await db.refresh(group)
    return group


async def workspace_counts(db: AsyncSession, user_id: str) -> dict[str, int]:
    """Number of workspaces per group id; empty groups are absent."""
    stmt = (
        select(Workspace.group_id, func.count(Workspace.id))
        .where(Workspace.user_id == user_id, Workspace.group_id.is_not(None))
        .group_by(Workspace.group_id)
    )
    return dict((await db.execute(stmt)).tuples().all())


async def list_groups(db: AsyncSession, user_id: str) -> list[GroupWithCount]:
    """List a user's groups in order, each with the number of workspaces it holds."""
    groups = await _list_groups(db, user_id)
    counts = await workspace_counts(db, user_id)
    return [GroupWithCount(group=g, workspace_count=counts.get(g.id, 0)) for g in groups]


async def update_group(db: AsyncSession, group_id: str, body: GroupUpdate) -> WorkspaceGroup:
    """Partially update a group.  A new ``sort_order`` moves it within the user's groups."""
    group = await get_group(db, group_id, body.user_id)
    changes = body.model_dump(exclude_unset=True, exclude={"user_id", "sort_order"})

    if "name" in changes:
        name = (changes["name"] or "").strip()
        if not name:
            raise AppError("Group name cannot be empty", status.HTTP_400_BAD_REQUEST)
        changes["name"] = name
    if "color" in changes and not changes["color"]:
        changes["color"] = DEFAULT_GROUP_COLOR
    if "is_pinned" in changes and changes["is_pinned"] is None:
        changes.pop("is_pinned")

    for key, value in changes.items():
        setattr(group, key, value)

    if body.sort_order is not None and body.sort_order != group.sort_order:
        move_to(await _list_groups(db, body.user_id), group, body.sort_order)

    await db.commit()
    await db.refresh(group)
    return group


async def delete_group(db: AsyncSession, group_id: str, user_id: str, *, delete_workspaces: bool = False) -> int:
    """Delete a group.

    With ``delete_workspaces`` false, its workspaces are appended to the
    ungrouped scope; otherwise they are deleted along with their chats and
    favorites.  Returns the number of workspaces affected.
    """
    group = await get_group(db, group_id, user_id)
    members = await list_scope(db, user_id, group_id)

    if delete_workspaces:
        member_ids = [w.id for w in members]
        if member_ids:
            session_ids = select(ChatSession.id).where(ChatSession.workspace_id.in_(member_ids))
            await db.execute(delete(ChatMessage).where(ChatMessage.session_id.in_(session_ids)))
            await db.execute(delete(ChatSession).where(ChatSession.workspace_id.in_(member_ids)))
            await db.execute(delete(WorkspaceAIFavorite).where(WorkspaceAIFavorite.workspace_id.in_(member_ids)))
            await db.execute(
                delete(WorkspacePersonalityFavorite).where(WorkspacePersonalityFavorite.workspace_id.in_(member_ids))
            )
            for workspace in members:
                await db.delete(workspace)
    else:
        ungrouped = await list_scope(db, user_id, None)
        for workspace in members:
            workspace.group_id = None
        renumber(ungrouped + members)

    await db.flush()
    await db.delete(group)
    await db.flush()
    renumber(await _list_groups(db, user_id))
    await db.commit()
    logger.info("Deleted group {} ({} workspaces, deleted={})", group_id, len(members), delete_workspaces)
    return len(members)


async def reorder_groups(db: AsyncSession, user_id: str, group_orders: Sequence[GroupOrder]) -> list[WorkspaceGroup]:
    """Apply client-computed group orders, then renumber densely.

    Raises ``GroupNotFoundError`` (rejecting the whole request) if any id is
    unknown or belongs to another user.
    """
    groups = await _list_groups(db, user_id)
    by_id = {g.id: g for g in groups}
    for item in group_orders:
        if item.group_id not in by_id:
            raise GroupNotFoundError(item.group_id)

    for item in group_orders:
        by_id[item.group_id].sort_order = item.sort_order
    ordered = sorted(groups, key=lambda g: g.sort_order)
    renumber(ordered)
    await db.commit()
    return ordered


async def move_workspace(
    db: AsyncSession,
    user_id: str,
    workspace_id: str,
    group_id: str | None,
    sort_order: int | None = None,
) -> Workspace:
    """Move one workspace into *group_id* (``None`` = ungrouped) at *sort_order*.

    Both the source and the target scopes are renumbered.
    """
    workspace = await get_workspace(db, workspace_id, user_id)
    if group_id is not None:
        await get_group(db, group_id, user_id)

    source_group = workspace.group_id
    target = await list_scope(db, user_id, group_id)
    if source_group != group_id:
        source = [w for w in await list_scope(db, user_id, source_group) if w.id != workspace.id]
        renumber(source)
        workspace.group_id = group_id

    move_to(target, workspace, sort_order)
    await db.commit()
    await db.refresh(workspace)
    return workspace


async def batch_update_workspaces(db: AsyncSession, user_id: str, updates: Sequence[WorkspaceOrder]) -> list[Workspace]:
    """Apply ``(workspace, group, sort_order)`` triples in one transaction.

    Any unknown or foreign workspace id rejects the whole batch.  Every scope
    touched by the batch is renumbered afterwards, so gaps or duplicates in the
    submitted orders collapse to a dense sequence.
    """
    if not updates:
        raise AppError("Updates array is required", status.HTTP_400_BAD_REQUEST)

    workspaces: list[Workspace] = []
    for item in updates:
        workspace = await db.get(Workspace, item.workspace_id)
        if workspace is None or workspace.user_id != user_id:
            raise WorkspaceNotFoundError(item.workspace_id)
        workspaces.append(workspace)

    target_groups = {item.group_id for item in updates if item.group_id is not None}
    for group_id in target_groups:
        await get_group(db, group_id, user_id)

    touched: set[str | None] = set()
    for workspace, item in zip(workspaces, updates, strict=True):
        touched.add(workspace.group_id)
        touched.add(item.group_id)
        workspace.group_id = item.group_id
        workspace.sort_order = item.sort_order
    await db.flush()

    for group_id in touched:
        scope = await list_scope(db, user_id, group_id)
        renumber(sorted(scope, key=lambda w: w.sort_order))

    await db.commit()
    return workspaces
