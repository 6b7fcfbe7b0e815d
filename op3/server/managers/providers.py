"""AI provider configuration: key validation, connection tests, storage.

Keys are stored Fernet-encrypted and only ever leave the server masked.
Connection tests hit each provider's cheapest authenticated endpoint
(usually the model listing) through the shared ``httpx.AsyncClient``.
"""

from __future__ import annotations

import re
import time
import uuid
from collections.abc import Sequence

import httpx
from fastapi import status
from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from op3.server.db.tables import AIProvider
from op3.server.errors import AppError, NotFoundError
from op3.server.models.api import AIProviderConfig, AIProviderResponse, AIProviderTestRequest, AIProviderTestResult
from op3.server.models.enums import AIProviderType
from op3.server.security import decrypt_secret, encrypt_secret, mask_secret

DEFAULT_ENDPOINTS: dict[AIProviderType, str | None] = {
    AIProviderType.OPENAI: "https://api.openai.com/v1",
    AIProviderType.ANTHROPIC: "https://api.anthropic.com",
    AIProviderType.GOOGLE: "https://generativelanguage.googleapis.com",
    AIProviderType.REPLICATE: "https://api.replicate.com",
    AIProviderType.OPENROUTER: "https://openrouter.ai/api/v1",
    AIProviderType.CUSTOM: None,
}

API_KEY_PATTERNS: dict[AIProviderType, re.Pattern[str] | None] = {
    AIProviderType.OPENAI: re.compile(r"^sk-[a-zA-Z0-9_-]{20,}$"),
    AIProviderType.ANTHROPIC: re.compile(r"^sk-ant-[a-zA-Z0-9_-]{95,}$"),
    AIProviderType.GOOGLE: re.compile(r"^[a-zA-Z0-9_-]{20,}$"),
    AIProviderType.REPLICATE: re.compile(r"^r8_[a-zA-Z0-9]{40}$"),
    AIProviderType.OPENROUTER: re.compile(r"^sk-or-v1-[a-zA-Z0-9_-]{64}$"),
    AIProviderType.CUSTOM: None,
}

API_KEY_FORMATS: dict[AIProviderType, str] = {
    AIProviderType.OPENAI: 'OpenAI API keys should start with "sk-" followed by at least 20 characters',
    AIProviderType.ANTHROPIC: 'Anthropic API keys should start with "sk-ant-" followed by at least 95 characters',
    AIProviderType.GOOGLE: "Google API keys should be at least 20 characters long",
    AIProviderType.REPLICATE: 'Replicate API keys should start with "r8_" followed by exactly 40 characters',
    AIProviderType.OPENROUTER: 'OpenRouter API keys should start with "sk-or-v1-" followed by 64 characters',
    AIProviderType.CUSTOM: "Custom provider API keys can have any format",
}

ANTHROPIC_VERSION = "2023-06-01"


class AIProviderNotFoundError(NotFoundError):
    def __init__(self, provider_id: str) -> None:
        super().__init__("AI provider not found")
        self.provider_id = provider_id


def validate_api_key_format(provider_type: AIProviderType, api_key: str) -> bool:
    pattern = API_KEY_PATTERNS[provider_type]
    return pattern is None or bool(pattern.match(api_key))


# ---------------------------------------------------------------------------
# Connection tests
# ---------------------------------------------------------------------------


def _connection_request(provider_type: AIProviderType, api_key: str, endpoint: str) -> httpx.Request:
    base = endpoint.rstrip("/")
    match provider_type:
        case AIProviderType.ANTHROPIC:
            headers = {"x-api-key": api_key, "anthropic-version": ANTHROPIC_VERSION}
            return httpx.Request("GET", f"{base}/v1/models", headers=headers)
        case AIProviderType.GOOGLE:
            return httpx.Request("GET", f"{base}/v1beta/models", params={"key": api_key})
        case AIProviderType.REPLICATE:
            return httpx.Request("GET", f"{base}/v1/account", headers={"Authorization": f"Bearer {api_key}"})
        case _:
            # OpenAI-compatible: openai, openrouter, custom
            return httpx.Request("GET", f"{base}/models", headers={"Authorization": f"Bearer {api_key}"})


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return f"HTTP {response.status_code}"
    detail = body.get("error") if isinstance(body, dict) else None
    if isinstance(detail, dict) and detail.get("message"):
        return str(detail["message"])
    if isinstance(detail, str) and detail:
        return detail
    return f"HTTP {response.status_code}"


async def check_provider_connection(http: httpx.AsyncClient, body: AIProviderTestRequest) -> AIProviderTestResult:
    """Try a provider with the given key.  Failures are reported, not raised."""
    if not validate_api_key_format(body.type, body.api_key):
        return AIProviderTestResult(
            success=False,
            message=f"Invalid API key format for {body.type}. {API_KEY_FORMATS[body.type]}",
            error="INVALID_API_KEY_FORMAT",
        )

    endpoint = body.endpoint or DEFAULT_ENDPOINTS[body.type]
    if not endpoint:
        return AIProviderTestResult(
            success=False, message="Endpoint is required for custom providers", error="MISSING_ENDPOINT"
        )

    started = time.monotonic()
    try:
        response = await http.send(_connection_request(body.type, body.api_key, endpoint))
    except httpx.HTTPError as exc:
        logger.warning("Provider connection test {} {} failed: {}", body.type, endpoint, exc)
        return AIProviderTestResult(
            success=False, message=f"Connection test failed: {exc}", endpoint=endpoint, error="NETWORK_ERROR"
        )
    elapsed_ms = int((time.monotonic() - started) * 1000)

    if response.is_success:
        return AIProviderTestResult(
            success=True,
            message=f"Successfully connected to {body.type}",
            endpoint=endpoint,
            response_time_ms=elapsed_ms,
            model=body.model,
        )
    return AIProviderTestResult(
        success=False,
        message=_error_message(response),
        endpoint=endpoint,
        response_time_ms=elapsed_ms,
        error="API_ERROR",
    )


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------


def to_response(provider: AIProvider) -> AIProviderResponse:
    """Serialize a provider with its key masked."""
    return AIProviderResponse(
        id=provider.id,
        type=provider.type,
        name=provider.name,
        api_key=mask_secret(decrypt_secret(provider.api_key)),
        model=provider.model,
        endpoint=provider.endpoint,
        is_active=provider.is_active,
        created_at=provider.created_at,
    )


async def save_providers(db: AsyncSession, configs: Sequence[AIProviderConfig]) -> list[AIProvider]:
    """Validate and store provider configs.  The whole batch is rejected on the first bad entry."""
    if not configs:
        raise AppError("At least one AI provider configuration is required", status.HTTP_400_BAD_REQUEST)
    for config in configs:
        if not (config.name.strip() and config.api_key and config.model.strip()):
            raise AppError(
                "Provider type, name, API key, and model are required for each provider",
                status.HTTP_400_BAD_REQUEST,
            )
        if not validate_api_key_format(config.type, config.api_key):
            raise AppError(f"Invalid API key format for {config.type}", status.HTTP_400_BAD_REQUEST)

    providers = [
        AIProvider(
            id=str(uuid.uuid4()),
            type=config.type.value,
            name=config.name.strip(),
            api_key=encrypt_secret(config.api_key),
            model=config.model.strip(),
            endpoint=config.endpoint or DEFAULT_ENDPOINTS[config.type],
            is_active=config.is_active,
        )
        for config in configs
    ]
    db.add_all(providers)
    await db.commit()
    for provider in providers:
        await db.refresh(provider)
    logger.info("Saved {} AI provider(s)", len(providers))
    return providers


async def list_providers(db: AsyncSession, *, active_only: bool = False) -> list[AIProvider]:
    stmt = select(AIProvider).order_by(AIProvider.created_at, AIProvider.name)
    if active_only:
        stmt = stmt.where(AIProvider.is_active.is_(True))
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def get_provider(db: AsyncSession, provider_id: str) -> AIProvider:
    provider = await db.get(AIProvider, provider_id)
    if provider is None:
        raise AIProviderNotFoundError(provider_id)
    return provider


async def count_providers(db: AsyncSession) -> int:
    return (await db.execute(select(func.count()).select_from(AIProvider))).scalar_one()
