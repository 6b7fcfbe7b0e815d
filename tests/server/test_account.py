"""Integration tests for account settings."""

from __future__ import annotations

from typing import Any

import pytest
from httpx import AsyncClient

pytestmark = pytest.mark.integration

API = "/api/v1/account"
PASSWORD = "Str0ng!Pass"


@pytest.fixture
async def admin(client: AsyncClient) -> dict[str, Any]:
    body = {"email": "owner@example.com", "username": "owner", "password": PASSWORD, "confirmPassword": PASSWORD}
    resp = await client.post("/api/v1/setup/admin", json={"admin": body})
    assert resp.status_code == 200
    return resp.json()["data"]


async def test_get_account(client: AsyncClient, admin) -> None:
    resp = await client.get(f"{API}/{admin['adminId']}")
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["email"] == "owner@example.com"
    assert data["displayName"] == "owner"
    assert data["role"] == "admin"
    assert "passwordHash" not in data


async def test_unknown_account(client: AsyncClient) -> None:
    resp = await client.get(f"{API}/missing")
    assert resp.status_code == 404
    assert resp.json()["message"] == "User not found"


async def test_update_account(client: AsyncClient, admin) -> None:
    body = {"displayName": " Captain ", "email": "Captain@Example.com"}
    resp = await client.patch(f"{API}/{admin['adminId']}", json=body)
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["displayName"] == "Captain"
    assert data["email"] == "captain@example.com"


async def test_update_account_rejects_bad_email(client: AsyncClient, admin) -> None:
    resp = await client.patch(f"{API}/{admin['adminId']}", json={"email": "nope"})
    assert resp.status_code == 400
    assert resp.json()["message"] == "Please enter a valid email address"


async def test_change_password(client: AsyncClient, admin) -> None:
    url = f"{API}/{admin['adminId']}/password"
    resp = await client.patch(url, json={"currentPassword": "Wr0ng!Pass", "newPassword": "N3w!Password"})
    assert resp.status_code == 400
    assert resp.json()["message"] == "Current password is incorrect"

    resp = await client.patch(url, json={"currentPassword": PASSWORD, "newPassword": "short"})
    assert resp.status_code == 400
    assert resp.json()["message"] == "Password must be at least 8 characters long"

    resp = await client.patch(url, json={"currentPassword": PASSWORD, "newPassword": "N3w!Password"})
    assert resp.status_code == 200

    resp = await client.patch(url, json={"currentPassword": PASSWORD, "newPassword": "An0ther!Pass"})
    assert resp.json()["message"] == "Current password is incorrect"
