from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

import httpx
from fastapi import FastAPI
from fastapi.routing import APIRouter
from loguru import logger

from op3.server.db.engine import create_engine, create_session_factory
from op3.server.errors import register_exception_handlers
from op3.server.log import setup_logging
from op3.server.middlewares import register_middlewares
from op3.server.settings import get_settings

SERVICE_NAME = "OP3 Backend API"
API_VERSION = "1.0.0"
API_PREFIX = "/api/v1"

# Applies to provider connection tests.
HTTP_CLIENT_TIMEOUT = httpx.Timeout(15.0, connect=5.0)


@asynccontextmanager
async def lifespan(app_: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    setup_logging(settings.log_level, serialize=settings.is_production)

    if settings.auth_secret is None:
        logger.warning("OP3_AUTH_SECRET is unset; stored API keys will be unreadable after a restart")
    logger.info(
        "{} starting on {}:{} ({})",
        SERVICE_NAME,
        settings.host,
        settings.port,
        settings.environment,
    )

    # Routes read these unconditionally; None means "not configured".
    engine = create_engine(settings.database_url) if settings.database_url else None
    app_.state.db_engine = engine
    app_.state.db_session_factory = create_session_factory(engine) if engine is not None else None
    if engine is None:
        logger.warning("OP3_DATABASE_URL is unset; every data route will answer 503")
    else:
        logger.info("Database backend: {}", engine.url.get_backend_name())

    app_.state.http_client = httpx.AsyncClient(timeout=HTTP_CLIENT_TIMEOUT)
    try:
        yield
    finally:
        logger.info("{} stopping", SERVICE_NAME)
        await app_.state.http_client.aclose()
        if engine is not None:
            await engine.dispose()


app = FastAPI(title=SERVICE_NAME, version=API_VERSION, lifespan=lifespan)

register_middlewares(app, frontend_url=get_settings().frontend_url)
register_exception_handlers(app)


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "OK", "timestamp": datetime.now(UTC).isoformat(), "service": SERVICE_NAME}


# ---------------------------------------------------------------------------
# /api/v1
# ---------------------------------------------------------------------------
api = APIRouter(prefix=API_PREFIX)


@api.get("")
async def api_info() -> dict[str, Any]:
    return {
        "name": SERVICE_NAME,
        "version": API_VERSION,
        "description": "Backend API for OP3 application setup and management",
        "endpoints": {
            "setup": f"{API_PREFIX}/setup",
            "workspace": f"{API_PREFIX}/workspace",
            "workspaceGroups": f"{API_PREFIX}/workspace-groups",
            "workspaceAIFavorites": f"{API_PREFIX}/workspace-ai-favorites",
            "workspacePersonalityFavorites": f"{API_PREFIX}/workspace-personality-favorites",
            "personalities": f"{API_PREFIX}/personalities",
            "aiProviders": f"{API_PREFIX}/ai-providers",
            "chat": f"{API_PREFIX}/chat",
            "share": f"{API_PREFIX}/share",
            "account": f"{API_PREFIX}/account",
            "admin": f"{API_PREFIX}/admin",
            "statistics": f"{API_PREFIX}/statistics",
            "health": "/health",
        },
    }


# -- Routers -----------------------------------------------------------------
from op3.server.routers.account import router as account_router  # noqa: E402
from op3.server.routers.admin import router as admin_router  # noqa: E402
from op3.server.routers.chat import router as chat_router  # noqa: E402
from op3.server.routers.chat import share_router  # noqa: E402
from op3.server.routers.favorites import ai_router as ai_favorites_router  # noqa: E402
from op3.server.routers.favorites import personality_router as personality_favorites_router  # noqa: E402
from op3.server.routers.groups import router as groups_router  # noqa: E402
from op3.server.routers.personalities import router as personalities_router  # noqa: E402
from op3.server.routers.providers import router as providers_router  # noqa: E402
from op3.server.routers.setup import router as setup_router  # noqa: E402
from op3.server.routers.statistics import router as statistics_router  # noqa: E402
from op3.server.routers.workspaces import router as workspaces_router  # noqa: E402

api.include_router(setup_router)
api.include_router(workspaces_router)
api.include_router(groups_router)
api.include_router(ai_favorites_router)
api.include_router(personality_favorites_router)
api.include_router(personalities_router)
api.include_router(providers_router)
api.include_router(chat_router)
api.include_router(share_router)
api.include_router(account_router)
api.include_router(admin_router)
api.include_router(statistics_router)

app.include_router(api)
