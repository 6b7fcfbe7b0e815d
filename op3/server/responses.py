"""Response envelope helpers.

Every JSON endpoint answers ``{"success": bool, "message": str, "data": ...}``.
Errors carry no ``data`` key.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel


def _dump(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True)
    if isinstance(value, list | tuple):
        return [_dump(v) for v in value]
    if isinstance(value, dict):
        return {k: _dump(v) for k, v in value.items()}
    return value


def success(message: str, data: Any = None) -> dict[str, Any]:
    """Build a success envelope.  Pydantic models are dumped by alias."""
    payload: dict[str, Any] = {"success": True, "message": message}
    if data is not None:
        payload["data"] = _dump(data)
    return payload


def error(message: str) -> dict[str, Any]:
    return {"success": False, "message": message}


def envelope(ok: bool, message: str, data: Any = None) -> dict[str, Any]:
    """Envelope for connection tests, whose outcome is reported, not raised."""
    payload = success(message, data)
    payload["success"] = ok
    return payload
