"""Tests for workspace usage statistics: date windows and the statistics endpoints."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

import pytest
from httpx import AsyncClient
from sqlalchemy import update

from op3.server.db.tables import ChatMessage
from op3.server.errors import AppError
from op3.server.managers.statistics import date_window, resolve_window
from op3.server.models.enums import DateRange

API = "/api/v1/statistics/workspace"
USER_ID = "user-1"

# A Wednesday.
NOW = datetime(2026, 10, 14, 15, 30, tzinfo=UTC)


def day(month: int, day_: int, hour: int = 0) -> datetime:
    return datetime(2026, month, day_, hour, tzinfo=UTC)


# ---------------------------------------------------------------------------
# Date windows
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("date_range", "expected"),
    [
        (DateRange.TODAY, (day(10, 14), day(10, 15))),
        (DateRange.YESTERDAY, (day(10, 13), day(10, 14))),
        (DateRange.THIS_WEEK, (day(10, 11), day(10, 15, 15).replace(minute=30))),
        (DateRange.LAST_WEEK, (day(10, 4), day(10, 11))),
        (DateRange.THIS_MONTH, (day(10, 1), day(10, 15, 15).replace(minute=30))),
        (DateRange.LAST_MONTH, (day(9, 1), day(10, 1))),
    ],
)
def test_date_window(date_range: DateRange, expected: tuple[datetime, datetime]) -> None:
    assert date_window(date_range, NOW) == expected


def test_week_starts_on_sunday() -> None:
    sunday = datetime(2026, 10, 11, 9, tzinfo=UTC)
    assert date_window(DateRange.THIS_WEEK, sunday)[0] == day(10, 11)


def test_last_month_crosses_the_year() -> None:
    assert date_window(DateRange.LAST_MONTH, datetime(2026, 1, 20, tzinfo=UTC)) == (
        datetime(2025, 12, 1, tzinfo=UTC),
        day(1, 1),
    )


def test_custom_window_normalises_to_utc() -> None:
    start, end = resolve_window("custom", "2026-10-01", "2026-10-02T02:00:00+02:00")
    assert start == day(10, 1)
    assert end == day(10, 2)


@pytest.mark.parametrize(
    ("args", "message"),
    [
        (("weekly",), "Invalid date range"),
        (("custom", "2026-10-01", None), "Start date and end date are required for custom range"),
        (("custom", "yesterday", "2026-10-02"), "Invalid date format"),
        (("custom", "2026-10-05", "2026-10-02"), "Start date must be before end date"),
    ],
)
def test_resolve_window_validation(args: tuple, message: str) -> None:
    with pytest.raises(AppError) as info:
        resolve_window(*args)
    assert info.value.message == message
    assert info.value.status_code == 400


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@pytest.fixture
async def workspace(create_workspace) -> dict[str, Any]:
    return await create_workspace()


@pytest.fixture
def add_reply(client: AsyncClient, session_factory, workspace: dict[str, Any]):
    """Store an assistant message in a fresh session of the workspace, dated *at*."""

    async def _add(at: datetime, metadata: dict[str, Any] | None = None, role: str = "assistant") -> None:
        body = {"userId": USER_ID, "workspaceId": workspace["id"]}
        chat = (await client.post("/api/v1/chat/sessions", json=body)).json()["data"]
        message = {"role": role, "content": "Hello", "apiMetadata": metadata}
        resp = await client.post(f"/api/v1/chat/sessions/{chat['id']}/save-message", json=message)
        assert resp.status_code == 200, resp.text
        async with session_factory() as session:
            await session.execute(
                update(ChatMessage).where(ChatMessage.id == resp.json()["data"]["id"]).values(created_at=at)
            )
            await session.commit()

    return _add


def custom(**extra: Any) -> dict[str, Any]:
    return {"userId": USER_ID, "dateRange": "custom", "startDate": "2026-10-01", "endDate": "2026-10-08", **extra}


@pytest.mark.integration
async def test_workspace_statistics(client: AsyncClient, workspace, add_reply) -> None:
    await add_reply(day(10, 2, 9), {"provider": "openai", "totalTokens": 100, "cost": 0.25, "responseTimeMs": 400})
    await add_reply(day(10, 2, 11), {"provider": "openai", "totalTokens": 50, "cost": 0.5, "responseTimeMs": 800})
    await add_reply(day(10, 5, 8), {"provider": "anthropic", "totalTokens": 30})
    await add_reply(day(10, 5, 9))
    await add_reply(day(10, 5, 10), {"provider": "openai", "totalTokens": 999}, role="user")
    await add_reply(day(9, 20), {"provider": "openai", "totalTokens": 999})

    resp = await client.get(f"{API}/{workspace['id']}", params=custom())
    assert resp.status_code == 200
    body = resp.json()
    assert body["message"] == "Statistics retrieved successfully"
    stats = body["data"]
    assert stats["totalMessages"] == 4
    assert stats["totalTokens"] == 180
    assert stats["totalCost"] == 0.75
    assert stats["averageResponseTime"] == 600
    assert stats["messagesByProvider"] == {"openai": 2, "anthropic": 1, "Unknown": 1}
    assert stats["tokensByProvider"] == {"openai": 150, "anthropic": 30}
    assert stats["costByProvider"] == {"openai": 0.75}
    assert stats["dailyUsage"] == [
        {"date": "2026-10-02", "messages": 2, "tokens": 150, "cost": 0.75},
        {"date": "2026-10-05", "messages": 2, "tokens": 30, "cost": 0.0},
    ]


@pytest.mark.integration
async def test_statistics_slices(client: AsyncClient, workspace, add_reply) -> None:
    await add_reply(day(10, 3), {"provider": "google", "totalTokens": 10, "cost": 0.5})

    providers = (await client.get(f"{API}/{workspace['id']}/providers", params=custom())).json()
    assert providers["message"] == "Provider statistics retrieved successfully"
    assert providers["data"] == {
        "messagesByProvider": {"google": 1},
        "tokensByProvider": {"google": 10},
        "costByProvider": {"google": 0.5},
    }

    trends = (await client.get(f"{API}/{workspace['id']}/trends", params=custom())).json()
    assert trends["data"] == {"dailyUsage": [{"date": "2026-10-03", "messages": 1, "tokens": 10, "cost": 0.5}]}

    summary = (await client.get(f"{API}/{workspace['id']}/summary", params=custom())).json()
    assert summary["data"] == {"totalMessages": 1, "totalTokens": 10, "totalCost": 0.5, "averageResponseTime": 0}


@pytest.mark.integration
async def test_empty_workspace_defaults_to_this_week(client: AsyncClient, workspace) -> None:
    resp = await client.get(f"{API}/{workspace['id']}/summary", params={"userId": USER_ID})
    assert resp.status_code == 200
    assert resp.json()["data"]["totalMessages"] == 0


@pytest.mark.integration
async def test_statistics_validation(client: AsyncClient, workspace) -> None:
    resp = await client.get(f"{API}/{workspace['id']}")
    assert resp.status_code == 400
    assert resp.json()["message"] == "User ID is required"

    resp = await client.get(f"{API}/{workspace['id']}", params={"userId": USER_ID, "dateRange": "forever"})
    assert resp.status_code == 400
    assert resp.json()["message"] == "Invalid date range"

    resp = await client.get(f"{API}/{workspace['id']}/trends", params=custom(endDate="2026-09-01"))
    assert resp.json()["message"] == "Start date must be before end date"


@pytest.mark.integration
async def test_statistics_of_foreign_workspace(client: AsyncClient, workspace) -> None:
    resp = await client.get(f"{API}/{workspace['id']}", params={"userId": "user-2"})
    assert resp.status_code == 404
    assert resp.json()["message"] == "Workspace not found"
