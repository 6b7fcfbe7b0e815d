"""Workspace usage statistics.

All four routes take ``userId`` plus an optional ``dateRange`` (default
``this-week``); ``custom`` also needs ``startDate`` and ``endDate``.  The
sub-routes return slices of the full statistics.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query, status

from op3.server.deps import DbSession
from op3.server.errors import AppError
from op3.server.managers import statistics as manager
from op3.server.models.api import WorkspaceStatistics
from op3.server.responses import success

router = APIRouter(prefix="/statistics", tags=["statistics"])


def _window(
    date_range: str | None = Query(None, alias="dateRange"),
    start_date: str | None = Query(None, alias="startDate"),
    end_date: str | None = Query(None, alias="endDate"),
) -> tuple[datetime, datetime]:
    return manager.resolve_window(date_range, start_date, end_date)


async def _statistics(
    workspace_id: str,
    db: DbSession,
    window: Annotated[tuple[datetime, datetime], Depends(_window)],
    user_id: str | None = Query(None, alias="userId"),
) -> WorkspaceStatistics:
    if not user_id:
        raise AppError("User ID is required", status.HTTP_400_BAD_REQUEST)
    start, end = window
    return await manager.workspace_statistics(db, workspace_id, user_id, start, end)


Statistics = Annotated[WorkspaceStatistics, Depends(_statistics)]


def _slice(statistics: WorkspaceStatistics, *fields: str) -> dict[str, Any]:
    return statistics.model_dump(mode="json", by_alias=True, include=set(fields))


@router.get("/workspace/{workspace_id}")
async def get_workspace_statistics(statistics: Statistics) -> dict[str, Any]:
    return success("Statistics retrieved successfully", statistics)


@router.get("/workspace/{workspace_id}/providers")
async def get_provider_statistics(statistics: Statistics) -> dict[str, Any]:
    data = _slice(statistics, "messages_by_provider", "tokens_by_provider", "cost_by_provider")
    return success("Provider statistics retrieved successfully", data)


@router.get("/workspace/{workspace_id}/trends")
async def get_usage_trends(statistics: Statistics) -> dict[str, Any]:
    return success("Usage trends retrieved successfully", _slice(statistics, "daily_usage"))


@router.get("/workspace/{workspace_id}/summary")
async def get_summary_statistics(statistics: Statistics) -> dict[str, Any]:
    data = _slice(statistics, "total_messages", "total_tokens", "total_cost", "average_response_time")
    return success("Summary statistics retrieved successfully", data)
