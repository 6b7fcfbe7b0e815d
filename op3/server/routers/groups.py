"""Workspace group endpoints, including workspace moves and batch reorders.

The fixed ``reorder`` / ``move-workspace`` / ``batch-update`` paths are
declared before ``/{group_id}``.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter

from op3.server.deps import DbSession
from op3.server.managers import groups as manager
from op3.server.models.api import (
    BatchUpdateWorkspacesRequest,
    GroupCreate,
    GroupDelete,
    GroupResponse,
    GroupUpdate,
    MoveWorkspaceRequest,
    ReorderGroupsRequest,
    WorkspaceResponse,
)
from op3.server.responses import success

router = APIRouter(prefix="/workspace-groups", tags=["workspace-groups"])


def _group_out(group: Any, workspace_count: int = 0) -> GroupResponse:
    out = GroupResponse.model_validate(group)
    out.workspace_count = workspace_count
    return out


@router.post("/create")
async def create_group(body: GroupCreate, db: DbSession) -> dict[str, Any]:
    group = await manager.create_group(db, body)
    return success("Workspace group created successfully", _group_out(group))


@router.get("/user/{user_id}")
async def list_groups(user_id: str, db: DbSession) -> dict[str, Any]:
    """List the user's groups in order, with workspace counts."""
    groups = await manager.list_groups(db, user_id)
    data = [_group_out(item.group, item.workspace_count) for item in groups]
    return success("Workspace groups retrieved successfully", data)


@router.put("/reorder")
async def reorder_groups(body: ReorderGroupsRequest, db: DbSession) -> dict[str, Any]:
    groups = await manager.reorder_groups(db, body.user_id, body.group_orders)
    counts = await manager.workspace_counts(db, body.user_id)
    data = [_group_out(g, counts.get(g.id, 0)) for g in groups]
    return success("Workspace groups reordered successfully", data)


@router.put("/move-workspace")
async def move_workspace(body: MoveWorkspaceRequest, db: DbSession) -> dict[str, Any]:
    """Move one workspace into a group (or out of all groups) at an index."""
    workspace = await manager.move_workspace(db, body.user_id, body.workspace_id, body.group_id, body.sort_order)
    return success("Workspace moved successfully", WorkspaceResponse.model_validate(workspace))


@router.put("/batch-update")
async def batch_update_workspaces(body: BatchUpdateWorkspacesRequest, db: DbSession) -> dict[str, Any]:
    """Apply a drag-and-drop reorder atomically."""
    workspaces = await manager.batch_update_workspaces(db, body.user_id, body.updates)
    data = [WorkspaceResponse.model_validate(w) for w in workspaces]
    return success("Workspaces updated successfully", data)


@router.put("/{group_id}")
async def update_group(group_id: str, body: GroupUpdate, db: DbSession) -> dict[str, Any]:
    group = await manager.update_group(db, group_id, body)
    counts = await manager.workspace_counts(db, body.user_id)
    return success("Workspace group updated successfully", _group_out(group, counts.get(group.id, 0)))


@router.delete("/{group_id}")
async def delete_group(group_id: str, body: GroupDelete, db: DbSession) -> dict[str, Any]:
    """Delete a group.  ``deleteWorkspaces=false`` keeps its workspaces as ungrouped."""
    affected = await manager.delete_group(db, group_id, body.user_id, delete_workspaces=body.delete_workspaces)
    return success("Workspace group deleted successfully", {"affectedWorkspaces": affected})
