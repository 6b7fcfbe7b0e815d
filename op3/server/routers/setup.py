"""First-run setup wizard endpoints.

Connection tests report their outcome in the envelope's ``success`` flag
with HTTP 200; missing or invalid input is a 400.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, status

from op3.server.deps import DbSession, HttpClient
from op3.server.errors import AppError
from op3.server.managers import providers, setup, users
from op3.server.models.api import (
    AdminConfigRequest,
    AIProviderSaveRequest,
    AIProviderTestRequest,
    DatabaseConfig,
    DatabaseConfigRequest,
)
from op3.server.responses import envelope, success

router = APIRouter(prefix="/setup", tags=["setup"])


def _require_database(body: DatabaseConfigRequest) -> DatabaseConfig:
    if body.database is None:
        raise AppError("Database configuration is required", status.HTTP_400_BAD_REQUEST)
    problem = setup.validate_database_config(body.database)
    if problem:
        raise AppError(problem, status.HTTP_400_BAD_REQUEST)
    return body.database


@router.post("/test-connection")
async def test_connection(body: DatabaseConfigRequest) -> dict[str, Any]:
    config = _require_database(body)
    result = await setup.check_database_connection(config)
    return envelope(result.success, result.message, result)


@router.post("/database")
async def save_database(body: DatabaseConfigRequest, db: DbSession) -> dict[str, Any]:
    """Validate, test and persist the database config (step 1)."""
    config = _require_database(body)
    result = await setup.check_database_connection(config)
    if not result.success:
        raise AppError(f"Database connection failed: {result.message}", status.HTTP_400_BAD_REQUEST)
    await setup.save_database_config(db, config)
    data = {"step": "database", "type": config.type, "database": config.database, "host": config.host}
    return success("Database configuration saved successfully", data)


@router.post("/admin")
async def create_admin(body: AdminConfigRequest, db: DbSession) -> dict[str, Any]:
    """Create the admin account (step 2)."""
    if body.admin is None:
        raise AppError("Admin configuration is required", status.HTTP_400_BAD_REQUEST)
    user = await users.create_admin(db, body.admin)
    data = {"step": "admin", "adminId": user.id, "email": user.email, "role": user.role}
    return success("Admin user created successfully", data)


@router.post("/ai-providers/test")
async def test_ai_provider(body: AIProviderTestRequest, http: HttpClient) -> dict[str, Any]:
    result = await providers.check_provider_connection(http, body)
    return envelope(result.success, result.message, result)


@router.post("/ai-providers")
async def save_ai_providers(body: AIProviderSaveRequest, db: DbSession) -> dict[str, Any]:
    """Store provider configs (step 3).  Keys are encrypted at rest."""
    saved = await providers.save_providers(db, body.providers)
    data = {
        "step": "ai-providers",
        "providersCount": len(saved),
        "providers": [providers.to_response(p) for p in saved],
    }
    return success(f"Saved {len(saved)} AI provider(s) successfully", data)


@router.post("/complete")
async def complete_setup(db: DbSession) -> dict[str, Any]:
    completed_at = await setup.complete_setup(db)
    return success("Setup completed successfully", {"completedAt": completed_at.isoformat()})


@router.get("/status")
async def setup_status(db: DbSession) -> dict[str, Any]:
    return success("Setup status retrieved successfully", await setup.setup_status(db))
