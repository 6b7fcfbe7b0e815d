"""Workspace endpoints.

Every response uses the ``{success, message, data}`` envelope.  Routes with
fixed first segments (``create``, ``status``, ``list``) are declared before
the ``/{workspace_id}/{user_id}`` catch-all.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter

from op3.server.deps import DbSession
from op3.server.errors import NotFoundError
from op3.server.managers import workspaces as manager
from op3.server.models.api import UserRef, WorkspaceCreate, WorkspaceResponse, WorkspaceStatusResponse, WorkspaceUpdate
from op3.server.responses import success

router = APIRouter(prefix="/workspace", tags=["workspace"])


def _out(workspace: Any) -> WorkspaceResponse:
    return WorkspaceResponse.model_validate(workspace)


@router.post("/create")
async def create_workspace(body: WorkspaceCreate, db: DbSession) -> dict[str, Any]:
    """Create a workspace.  It becomes the user's active workspace."""
    workspace = await manager.create_workspace(db, body)
    return success("Workspace created successfully", _out(workspace))


@router.get("/status/{user_id}")
async def workspace_status(user_id: str, db: DbSession) -> dict[str, Any]:
    """Whether the user has an active workspace, and which."""
    workspace = await manager.get_active_workspace(db, user_id)
    data = WorkspaceStatusResponse(
        has_workspace=workspace is not None,
        workspace=_out(workspace) if workspace is not None else None,
    )
    return success("Workspace status retrieved successfully", data)


@router.get("/list/{user_id}")
async def list_workspaces(user_id: str, db: DbSession) -> dict[str, Any]:
    workspaces = await manager.list_workspaces(db, user_id)
    return success("Workspaces retrieved successfully", [_out(w) for w in workspaces])


@router.get("/{user_id}")
async def get_active_workspace(user_id: str, db: DbSession) -> dict[str, Any]:
    workspace = await manager.get_active_workspace(db, user_id)
    if workspace is None:
        raise NotFoundError("No workspace found for user")
    return success("Workspace retrieved successfully", _out(workspace))


@router.get("/{workspace_id}/{user_id}")
async def get_workspace(workspace_id: str, user_id: str, db: DbSession) -> dict[str, Any]:
    workspace = await manager.get_workspace(db, workspace_id, user_id)
    return success("Workspace retrieved successfully", _out(workspace))


@router.patch("/{workspace_id}")
async def update_workspace(workspace_id: str, body: WorkspaceUpdate, db: DbSession) -> dict[str, Any]:
    """Update name and/or rules."""
    workspace = await manager.update_workspace(db, workspace_id, body)
    return success("Workspace updated successfully", _out(workspace))


@router.post("/{workspace_id}/activate")
async def activate_workspace(workspace_id: str, body: UserRef, db: DbSession) -> dict[str, Any]:
    workspace = await manager.activate_workspace(db, workspace_id, body.user_id)
    return success("Workspace activated successfully", _out(workspace))


@router.delete("/{workspace_id}")
async def delete_workspace(workspace_id: str, body: UserRef, db: DbSession) -> dict[str, Any]:
    """Delete a workspace with its chats and favorites."""
    await manager.delete_workspace(db, workspace_id, body.user_id)
    return success("Workspace deleted successfully")
