"""Workspace usage statistics computed from assistant messages.

Token counts, cost, provider and response time come from each message's
``api_metadata`` (``totalTokens``, ``cost``, ``provider``,
``responseTimeMs``).  Date windows are computed in UTC; weeks start on
Sunday.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from datetime import UTC, datetime, timedelta

from fastapi import status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from op3.server.db.tables import ChatMessage, ChatSession
from op3.server.errors import AppError
from op3.server.managers.workspaces import get_workspace
from op3.server.models.api import DailyUsage, WorkspaceStatistics
from op3.server.models.enums import DateRange, MessageRole

UNKNOWN_PROVIDER = "Unknown"


def date_window(date_range: DateRange, now: datetime | None = None) -> tuple[datetime, datetime]:
    """``(start, end)`` of a named range.  Open-ended ranges end a day after *now*."""
    now = now or datetime.now(UTC)
    today = now.replace(hour=0, minute=0, second=0, microsecond=0)
    week_start = today - timedelta(days=(today.weekday() + 1) % 7)
    month_start = today.replace(day=1)
    open_end = now + timedelta(days=1)

    if date_range == DateRange.TODAY:
        return today, today + timedelta(days=1)
    if date_range == DateRange.YESTERDAY:
        return today - timedelta(days=1), today
    if date_range == DateRange.LAST_WEEK:
        return week_start - timedelta(days=7), week_start
    if date_range == DateRange.THIS_MONTH:
        return month_start, open_end
    if date_range == DateRange.LAST_MONTH:
        return (month_start - timedelta(days=1)).replace(day=1), month_start
    return week_start, open_end


def parse_date(value: str) -> datetime:
    """ISO date or datetime, normalised to UTC; naive values are taken as UTC."""
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        raise AppError("Invalid date format", status.HTTP_400_BAD_REQUEST) from None
    return parsed.astimezone(UTC) if parsed.tzinfo is not None else parsed.replace(tzinfo=UTC)


def resolve_window(
    date_range: str | None, start_date: str | None = None, end_date: str | None = None
) -> tuple[datetime, datetime]:
    """Validate the query parameters of a statistics request and return its window."""
    try:
        named = DateRange(date_range) if date_range else DateRange.THIS_WEEK
    except ValueError:
        raise AppError("Invalid date range", status.HTTP_400_BAD_REQUEST) from None

    if named != DateRange.CUSTOM:
        return date_window(named)
    if not start_date or not end_date:
        raise AppError("Start date and end date are required for custom range", status.HTTP_400_BAD_REQUEST)
    start, end = parse_date(start_date), parse_date(end_date)
    if start > end:
        raise AppError("Start date must be before end date", status.HTTP_400_BAD_REQUEST)
    return start, end


def summarize(messages: Iterable[ChatMessage]) -> WorkspaceStatistics:
    total_messages = total_tokens = 0
    total_cost = 0.0
    response_times: list[float] = []
    messages_by_provider: dict[str, int] = defaultdict(int)
    tokens_by_provider: dict[str, int] = defaultdict(int)
    cost_by_provider: dict[str, float] = defaultdict(float)
    daily: dict[str, DailyUsage] = {}

    for message in messages:
        metadata = message.api_metadata or {}
        provider = metadata.get("provider") or UNKNOWN_PROVIDER
        tokens = metadata.get("totalTokens") or 0
        cost = metadata.get("cost") or 0

        total_messages += 1
        messages_by_provider[provider] += 1
        if tokens:
            total_tokens += tokens
            tokens_by_provider[provider] += tokens
        if cost:
            total_cost += cost
            cost_by_provider[provider] += cost
        if metadata.get("responseTimeMs"):
            response_times.append(metadata["responseTimeMs"])

        day = message.created_at.date().isoformat()
        usage = daily.setdefault(day, DailyUsage(date=day))
        usage.messages += 1
        usage.tokens += tokens
        usage.cost += cost

    return WorkspaceStatistics(
        total_messages=total_messages,
        total_tokens=total_tokens,
        total_cost=total_cost,
        average_response_time=round(sum(response_times) / len(response_times)) if response_times else 0,
        messages_by_provider=dict(messages_by_provider),
        tokens_by_provider=dict(tokens_by_provider),
        cost_by_provider=dict(cost_by_provider),
        daily_usage=[daily[day] for day in sorted(daily)],
    )


async def workspace_statistics(
    db: AsyncSession, workspace_id: str, user_id: str, start: datetime, end: datetime
) -> WorkspaceStatistics:
    """Statistics of the assistant messages in the user's sessions of a workspace, ``start <= t <= end``."""
    await get_workspace(db, workspace_id, user_id)
    stmt = (
        select(ChatMessage)
        .join(ChatSession, ChatMessage.session_id == ChatSession.id)
        .where(
            ChatSession.workspace_id == workspace_id,
            ChatSession.user_id == user_id,
            ChatMessage.role == MessageRole.ASSISTANT.value,
            ChatMessage.created_at >= start,
            ChatMessage.created_at <= end,
        )
        .order_by(ChatMessage.created_at, ChatMessage.position)
    )
    messages = (await db.execute(stmt)).scalars().all()
    return summarize(messages)
