"""Read-only AI provider endpoints.  Keys are always masked."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Query

from op3.server.deps import DbSession
from op3.server.managers import providers as manager
from op3.server.responses import success

router = APIRouter(prefix="/ai-providers", tags=["ai-providers"])


@router.get("")
async def list_providers(
    db: DbSession,
    active_only: bool = Query(False, alias="activeOnly", description="Only return active providers."),
) -> dict[str, Any]:
    providers = await manager.list_providers(db, active_only=active_only)
    return success("AI providers retrieved successfully", [manager.to_response(p) for p in providers])


@router.get("/{provider_id}")
async def get_provider(provider_id: str, db: DbSession) -> dict[str, Any]:
    provider = await manager.get_provider(db, provider_id)
    return success("AI provider retrieved successfully", manager.to_response(provider))
