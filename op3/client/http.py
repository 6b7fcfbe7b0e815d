"""Async HTTP wrapper over the OP3 ``/api/v1`` endpoints.

Every call returns the decoded JSON envelope's ``data`` (or the whole
envelope where the caller needs ``success`` / ``message``).  Failures are
normalised into a single :class:`ApiError` carrying the HTTP status.
"""

from __future__ import annotations

from typing import Any

import httpx
from loguru import logger

from op3.client.settings import get_client_settings


class ApiError(Exception):
    """A failed API call.  ``status`` is ``None`` for transport errors."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status = status

    def __repr__(self) -> str:
        return f"ApiError({self.message!r}, status={self.status})"


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return f"HTTP error! status: {response.status_code}"


class ApiClient:
    """Thin async client.  Use as an async context manager or call :meth:`aclose`."""

    def __init__(
        self,
        base_url: str | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float | httpx.Timeout | None = None,
    ) -> None:
        self.base_url = (base_url or get_client_settings().api_url).rstrip("/")
        self._http = httpx.AsyncClient(
            base_url=self.base_url,
            transport=transport,
            headers={"Content-Type": "application/json"},
            timeout=timeout if timeout is not None else httpx.Timeout(30.0),
        )

    async def __aenter__(self) -> ApiClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    # -- Core ------------------------------------------------------------------

    async def request(
        self,
        method: str,
        endpoint: str,
        *,
        json: Any = None,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Send a request and return the decoded envelope.

        Raises:
            ApiError: On a non-2xx status (message taken from the envelope) or a
                transport failure.
        """
        try:
            response = await self._http.request(method, endpoint, json=json, params=params)
        except httpx.HTTPError as exc:
            logger.error("API request failed: {} {}: {}", method, endpoint, exc)
            raise ApiError(str(exc) or type(exc).__name__) from exc

        if response.is_error:
            message = _error_message(response)
            logger.error("API request failed: {} {} -> {} {}", method, endpoint, response.status_code, message)
            raise ApiError(message, response.status_code)
        try:
            return response.json()
        except ValueError as exc:
            logger.error("API request failed: {} {} -> non-JSON body", method, endpoint)
            raise ApiError("Invalid JSON response", response.status_code) from exc

    async def _data(self, method: str, endpoint: str, **kwargs: Any) -> Any:
        return (await self.request(method, endpoint, **kwargs)).get("data")

    async def get(self, endpoint: str, **kwargs: Any) -> Any:
        return await self._data("GET", endpoint, **kwargs)

    async def post(self, endpoint: str, json: Any = None, **kwargs: Any) -> Any:
        return await self._data("POST", endpoint, json=json, **kwargs)

    async def put(self, endpoint: str, json: Any = None, **kwargs: Any) -> Any:
        return await self._data("PUT", endpoint, json=json, **kwargs)

    async def patch(self, endpoint: str, json: Any = None, **kwargs: Any) -> Any:
        return await self._data("PATCH", endpoint, json=json, **kwargs)

    async def delete(self, endpoint: str, json: Any = None, **kwargs: Any) -> Any:
        return await self._data("DELETE", endpoint, json=json, **kwargs)

    # -- Setup -----------------------------------------------------------------

    async def health_check(self) -> dict[str, Any]:
        # /health lives outside the API prefix.
        root = self.base_url.removesuffix("/api/v1")
        return await self.request("GET", f"{root}/health")

    async def test_database_connection(self, config: dict[str, Any]) -> dict[str, Any]:
        """Returns the full envelope; ``success`` reports the connection outcome."""
        return await self.request("POST", "/setup/test-connection", json={"database": config})

    async def save_database_config(self, config: dict[str, Any]) -> Any:
        return await self.post("/setup/database", {"database": config})

    async def save_admin_config(self, admin: dict[str, Any]) -> Any:
        return await self.post("/setup/admin", {"admin": admin})

    async def test_ai_provider_connection(self, provider: dict[str, Any]) -> dict[str, Any]:
        return await self.request("POST", "/setup/ai-providers/test", json=provider)

    async def save_ai_providers(self, providers: list[dict[str, Any]]) -> Any:
        return await self.post("/setup/ai-providers", {"providers": providers})

    async def complete_setup(self) -> Any:
        return await self.post("/setup/complete")

    async def get_setup_status(self) -> Any:
        return await self.get("/setup/status")

    async def get_ai_providers(self, *, active_only: bool = False) -> Any:
        return await self.get("/ai-providers", params={"activeOnly": str(active_only).lower()})

    # -- Workspaces ------------------------------------------------------------

    async def create_workspace(self, user_id: str, name: str, template_type: str, workspace_rules: str = "") -> Any:
        body = {"userId": user_id, "name": name, "templateType": template_type, "workspaceRules": workspace_rules}
        return await self.post("/workspace/create", body)

    async def get_workspace_status(self, user_id: str) -> Any:
        return await self.get(f"/workspace/status/{user_id}")

    async def get_user_workspaces(self, user_id: str) -> Any:
        return await self.get(f"/workspace/list/{user_id}")

    async def get_workspace(self, workspace_id: str, user_id: str) -> Any:
        return await self.get(f"/workspace/{workspace_id}/{user_id}")

    async def update_workspace(self, workspace_id: str, user_id: str, updates: dict[str, Any]) -> Any:
        return await self.patch(f"/workspace/{workspace_id}", {"userId": user_id, **updates})

    async def set_active_workspace(self, workspace_id: str, user_id: str) -> Any:
        return await self.post(f"/workspace/{workspace_id}/activate", {"userId": user_id})

    async def delete_workspace(self, workspace_id: str, user_id: str) -> Any:
        return await self.delete(f"/workspace/{workspace_id}", {"userId": user_id})

    # -- Workspace groups ------------------------------------------------------

    async def get_workspace_groups(self, user_id: str) -> Any:
        return await self.get(f"/workspace-groups/user/{user_id}")

    async def create_workspace_group(self, user_id: str, name: str, color: str | None = None) -> Any:
        body: dict[str, Any] = {"userId": user_id, "name": name}
        if color is not None:
            body["color"] = color
        return await self.post("/workspace-groups/create", body)

    async def update_workspace_group(self, user_id: str, group_id: str, updates: dict[str, Any]) -> Any:
        return await self.put(f"/workspace-groups/{group_id}", {"userId": user_id, **updates})

    async def delete_workspace_group(self, user_id: str, group_id: str, *, delete_workspaces: bool = False) -> Any:
        body = {"userId": user_id, "deleteWorkspaces": delete_workspaces}
        return await self.delete(f"/workspace-groups/{group_id}", body)

    async def reorder_workspace_groups(self, user_id: str, group_orders: list[dict[str, Any]]) -> Any:
        return await self.put("/workspace-groups/reorder", {"userId": user_id, "groupOrders": group_orders})

    async def move_workspace_to_group(
        self, user_id: str, workspace_id: str, group_id: str | None, sort_order: int | None = None
    ) -> Any:
        body = {"userId": user_id, "workspaceId": workspace_id, "groupId": group_id, "sortOrder": sort_order}
        return await self.put("/workspace-groups/move-workspace", body)

    async def batch_update_workspaces(self, user_id: str, updates: list[dict[str, Any]]) -> Any:
        return await self.put("/workspace-groups/batch-update", {"userId": user_id, "updates": updates})

    # -- Favorites -------------------------------------------------------------

    async def get_workspace_ai_favorites(self, workspace_id: str) -> Any:
        return await self.get(f"/workspace-ai-favorites/{workspace_id}")

    async def add_ai_favorite(self, request: dict[str, Any]) -> Any:
        return await self.post("/workspace-ai-favorites", request)

    async def update_ai_favorite(self, favorite_id: str, request: dict[str, Any]) -> Any:
        return await self.put(f"/workspace-ai-favorites/{favorite_id}", request)

    async def remove_ai_favorite(self, favorite_id: str) -> Any:
        return await self.delete(f"/workspace-ai-favorites/{favorite_id}")

    async def reorder_ai_favorites(self, workspace_id: str, favorite_ids: list[str]) -> Any:
        return await self.post(f"/workspace-ai-favorites/{workspace_id}/reorder", {"favoriteIds": favorite_ids})

    async def check_ai_favorite_status(self, workspace_id: str, ai_provider_id: str) -> Any:
        return await self.get(f"/workspace-ai-favorites/{workspace_id}/check/{ai_provider_id}")

    async def get_workspace_personality_favorites(self, workspace_id: str) -> Any:
        return await self.get(f"/workspace-personality-favorites/{workspace_id}")

    async def add_personality_favorite(self, request: dict[str, Any]) -> Any:
        return await self.post("/workspace-personality-favorites", request)

    async def update_personality_favorite(self, favorite_id: str, request: dict[str, Any]) -> Any:
        return await self.put(f"/workspace-personality-favorites/{favorite_id}", request)

    async def remove_personality_favorite(self, favorite_id: str) -> Any:
        return await self.delete(f"/workspace-personality-favorites/{favorite_id}")

    async def reorder_personality_favorites(self, workspace_id: str, favorite_ids: list[str]) -> Any:
        body = {"favoriteIds": favorite_ids}
        return await self.put(f"/workspace-personality-favorites/{workspace_id}/reorder", body)

    async def check_personality_favorite_status(self, workspace_id: str, personality_id: str) -> Any:
        return await self.get(f"/workspace-personality-favorites/{workspace_id}/check/{personality_id}")

    # -- Personalities ---------------------------------------------------------

    async def get_personalities(self, user_id: str) -> Any:
        return await self.get(f"/personalities/{user_id}")

    async def create_personality(self, user_id: str, title: str, prompt: str) -> Any:
        return await self.post("/personalities", {"userId": user_id, "title": title, "prompt": prompt})

    async def update_personality(self, personality_id: str, user_id: str, updates: dict[str, Any]) -> Any:
        return await self.put(f"/personalities/{personality_id}", {"userId": user_id, **updates})

    async def delete_personality(self, personality_id: str, user_id: str) -> Any:
        return await self.delete(f"/personalities/{personality_id}", {"userId": user_id})

    # -- Chat ------------------------------------------------------------------

    async def create_chat_session(self, request: dict[str, Any]) -> Any:
        return await self.post("/chat/sessions", request)

    async def get_chat_sessions(self, user_id: str, workspace_id: str) -> Any:
        return await self.get(f"/chat/sessions/{user_id}/{workspace_id}")

    async def get_chat_messages(self, session_id: str) -> Any:
        return await self.get(f"/chat/sessions/{session_id}/messages")

    async def send_message(self, session_id: str, request: dict[str, Any]) -> Any:
        return await self.post(f"/chat/sessions/{session_id}/messages", request)

    async def save_message(self, session_id: str, request: dict[str, Any]) -> Any:
        return await self.post(f"/chat/sessions/{session_id}/save-message", request)

    async def update_chat_session(self, session_id: str, request: dict[str, Any]) -> Any:
        return await self.patch(f"/chat/sessions/{session_id}", request)

    async def update_chat_session_settings(self, session_id: str, request: dict[str, Any]) -> Any:
        return await self.patch(f"/chat/sessions/{session_id}/settings", request)

    async def delete_chat_session(self, session_id: str) -> Any:
        return await self.delete(f"/chat/sessions/{session_id}")

    async def share_chat(self, session_id: str, message_count: int | None = None) -> Any:
        body = {"messageCount": message_count} if message_count is not None else None
        return await self.post(f"/chat/sessions/{session_id}/share", body)

    async def get_share_status(self, session_id: str) -> Any:
        return await self.get(f"/chat/sessions/{session_id}/share")

    async def unshare_chat(self, session_id: str) -> Any:
        return await self.delete(f"/chat/sessions/{session_id}/share")

    async def get_shared_chat(self, share_id: str) -> Any:
        return await self.get(f"/share/{share_id}")

    # -- Account ---------------------------------------------------------------

    async def get_account(self, user_id: str) -> Any:
        return await self.get(f"/account/{user_id}")

    async def update_account(self, user_id: str, updates: dict[str, Any]) -> Any:
        return await self.patch(f"/account/{user_id}", updates)

    async def change_password(self, user_id: str, current_password: str, new_password: str) -> Any:
        body = {"currentPassword": current_password, "newPassword": new_password}
        return await self.patch(f"/account/{user_id}/password", body)

    # -- Admin -----------------------------------------------------------------

    async def get_users(self, admin_id: str, **filters: Any) -> Any:
        """One page of users; *filters* are passed as query parameters (``search``, ``role``, ``sortBy``...)."""
        return await self.get("/admin/users", params={"adminId": admin_id, **filters})

    async def get_user_stats(self, admin_id: str) -> Any:
        return await self.get("/admin/users/stats", params={"adminId": admin_id})

    async def create_user(self, admin_id: str, user: dict[str, Any]) -> Any:
        return await self.post("/admin/users", user, params={"adminId": admin_id})

    async def update_user(self, admin_id: str, user_id: str, updates: dict[str, Any]) -> Any:
        return await self.put(f"/admin/users/{user_id}", updates, params={"adminId": admin_id})

    async def delete_user(self, admin_id: str, user_id: str) -> Any:
        return await self.delete(f"/admin/users/{user_id}", params={"adminId": admin_id})

    async def reset_user_password(self, admin_id: str, user_id: str, new_password: str) -> Any:
        body = {"newPassword": new_password}
        return await self.put(f"/admin/users/{user_id}/password", body, params={"adminId": admin_id})

    async def bulk_update_users(self, admin_id: str, user_ids: list[str], updates: dict[str, Any]) -> Any:
        body = {"userIds": user_ids, "updates": updates}
        return await self.post("/admin/users/bulk-update", body, params={"adminId": admin_id})

    async def get_system_settings(self, admin_id: str) -> Any:
        return await self.get("/admin/system-settings", params={"adminId": admin_id})

    async def update_system_settings(self, admin_id: str, updates: dict[str, Any]) -> Any:
        return await self.put("/admin/system-settings", updates, params={"adminId": admin_id})

    # -- Statistics ------------------------------------------------------------

    async def get_workspace_statistics(
        self,
        workspace_id: str,
        user_id: str,
        date_range: str = "this-week",
        *,
        start_date: str | None = None,
        end_date: str | None = None,
    ) -> Any:
        params = {"userId": user_id, "dateRange": date_range}
        if date_range == "custom":
            params |= {"startDate": start_date, "endDate": end_date}
        return await self.get(f"/statistics/workspace/{workspace_id}", params=params)
