"""First-run setup wizard: database config, admin user, AI providers.

Progress is persisted in ``system_settings``: the tested database config
under ``database`` and the completion timestamp under ``setup``.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from fastapi import status
from loguru import logger
from sqlalchemy import URL, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine

from op3.server.db.tables import SystemSetting
from op3.server.errors import AppError
from op3.server.managers.providers import count_providers
from op3.server.managers.users import admin_exists
from op3.server.models.api import ConnectionTestResult, DatabaseConfig
from op3.server.models.enums import DatabaseType
from op3.server.security import encrypt_secret

DATABASE_KEY = "database"
SETUP_KEY = "setup"

_REQUIRED_FIELDS: dict[DatabaseType, list[tuple[str, str]]] = {
    DatabaseType.MONGODB: [("connection_string", "Connection string is required for MongoDB")],
    DatabaseType.SUPABASE: [("url", "URL is required for Supabase"), ("api_key", "API Key is required for Supabase")],
    DatabaseType.CONVEX: [("url", "URL is required for Convex"), ("auth_token", "Auth Token is required for Convex")],
    DatabaseType.FIREBASE: [
        ("project_id", "Project ID is required for Firebase"),
        ("api_key", "API Key is required for Firebase"),
    ],
    DatabaseType.PLANETSCALE: [
        ("host", "Host is required for PlanetScale"),
        ("username", "Username is required for PlanetScale"),
        ("password", "Password is required for PlanetScale"),
    ],
    DatabaseType.NEON: [("connection_string", "Connection string is required for Neon")],
    DatabaseType.TURSO: [("url", "URL is required for Turso"), ("auth_token", "Auth Token is required for Turso")],
}


def validate_database_config(config: DatabaseConfig) -> str | None:
    """Return the first problem with *config*, or ``None`` if it is complete."""
    if not config.type:
        return "Database type is required"
    if config.type not in {t.value for t in DatabaseType}:
        return "Invalid database type"
    if not config.database:
        return "Database name is required"

    db_type = DatabaseType(config.type)
    if db_type in (DatabaseType.MYSQL, DatabaseType.POSTGRESQL):
        for field in ("host", "port", "username", "password"):
            if not getattr(config, field):
                return f"{field.capitalize()} is required for {db_type}"
    elif db_type is DatabaseType.LOCALDB:
        if not config.database.endswith((".db", ".sqlite")):
            return "LocalDB database should be a .db or .sqlite file"
    else:
        for field, message in _REQUIRED_FIELDS.get(db_type, []):
            if not getattr(config, field):
                return message
    return None


def _connection_url(config: DatabaseConfig) -> URL | str | None:
    match config.type:
        case DatabaseType.POSTGRESQL:
            return URL.create(
                "postgresql+psycopg",
                username=config.username,
                password=config.password,
                host=config.host,
                port=config.port,
                database=config.database,
                query={"sslmode": "require"} if config.ssl else {},
            )
        case DatabaseType.NEON:
            url = config.connection_string or ""
            for prefix in ("postgresql://", "postgres://"):
                if url.startswith(prefix):
                    return "postgresql+psycopg://" + url[len(prefix) :]
            return url
        case DatabaseType.LOCALDB:
            return f"sqlite+aiosqlite:///{config.database}"
        case _:
            return None


async def check_database_connection(config: DatabaseConfig) -> ConnectionTestResult:
    """Open a connection and run ``SELECT 1``.  Failures are reported, not raised.

    Only SQL backends with an installed driver can be tested; other types
    report that testing is unsupported.
    """
    url = _connection_url(config)
    if url is None:
        return ConnectionTestResult(
            success=False,
            message=f"Connection testing for {config.type} is not supported",
            type=config.type,
        )

    engine = None
    try:
        # Malformed URLs and missing drivers fail here, not on connect.
        engine = create_async_engine(url)
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except (SQLAlchemyError, ImportError, OSError) as exc:
        logger.warning("Database connection test failed for {}: {}", config.type, exc)
        return ConnectionTestResult(success=False, message=str(exc), type=config.type)
    finally:
        if engine is not None:
            await engine.dispose()

    return ConnectionTestResult(
        success=True,
        message=f"Successfully connected to {config.type} database",
        type=config.type,
        database=config.database,
        host=config.host,
    )


# ---------------------------------------------------------------------------
# Persisted progress
# ---------------------------------------------------------------------------


async def _put(db: AsyncSession, key: str, value: dict[str, Any]) -> None:
    setting = await db.get(SystemSetting, key)
    if setting is None:
        db.add(SystemSetting(key=key, value=value))
    else:
        setting.value = value
    await db.commit()


async def save_database_config(db: AsyncSession, config: DatabaseConfig) -> None:
    """Persist a tested config.  Credentials are stored encrypted."""
    value = config.model_dump(mode="json", exclude_none=True)
    for secret in ("password", "connection_string", "api_key", "auth_token"):
        if secret in value:
            value[secret] = encrypt_secret(value[secret])
    await _put(db, DATABASE_KEY, value)
    logger.info("Saved {} database configuration", config.type)


async def get_database_config(db: AsyncSession) -> dict[str, Any] | None:
    setting = await db.get(SystemSetting, DATABASE_KEY)
    return setting.value if setting is not None else None


async def complete_setup(db: AsyncSession) -> datetime:
    """Mark setup complete.  Every step must be done first."""
    if await get_database_config(db) is None:
        raise AppError("Database configuration is required", status.HTTP_400_BAD_REQUEST)
    if not await admin_exists(db):
        raise AppError("Admin user must be created", status.HTTP_400_BAD_REQUEST)
    if await count_providers(db) == 0:
        raise AppError("At least one AI provider must be configured", status.HTTP_400_BAD_REQUEST)

    completed_at = datetime.now(UTC)
    await _put(db, SETUP_KEY, {"completed": True, "completedAt": completed_at.isoformat()})
    logger.info("Setup completed")
    return completed_at


async def setup_status(db: AsyncSession) -> dict[str, Any]:
    database = await get_database_config(db)
    has_admin = await admin_exists(db)
    providers = await count_providers(db)
    setup = await db.get(SystemSetting, SETUP_KEY)
    return {
        "database": {"configured": database is not None, "type": database.get("type") if database else None},
        "admin": {"configured": has_admin},
        "aiProviders": {"configured": providers > 0, "count": providers},
        "completed": bool(setup is not None and setup.value.get("completed")),
        "allStepsCompleted": database is not None and has_admin and providers > 0,
    }
