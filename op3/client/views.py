"""Event-driven view controllers.

Each controller owns no state of its own beyond UI flags: data lives in the
shared :class:`~op3.client.query.QueryClient` and writes go through
:class:`~op3.client.http.ApiClient`.  API failures are caught, logged and
exposed as ``last_error`` instead of propagating to the caller.
"""

from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from typing import Any

from loguru import logger

from op3.client.http import ApiClient, ApiError
from op3.client.query import Mutation, QueryClient, QueryKey, QueryKeys
from op3.client.reorder import (
    array_move,
    compute_group_drop,
    compute_workspace_drop,
    group_orders,
    move_to_group,
    reorder_by_ids,
    sort_scope,
)

LAST_WORKSPACE_MESSAGE = "Cannot delete the last workspace"


class _Controller:
    def __init__(self, api: ApiClient, cache: QueryClient) -> None:
        self.api = api
        self.cache = cache
        self.last_error: str | None = None

    def _fail(self, action: str, exc: ApiError) -> None:
        logger.error("Error {}: {}", action, exc.message)
        self.last_error = exc.message


# ---------------------------------------------------------------------------
# Workspaces
# ---------------------------------------------------------------------------


class WorkspaceBoard(_Controller):
    """Workspaces of one user, grouped and ordered for display."""

    def __init__(self, api: ApiClient, cache: QueryClient, user_id: str) -> None:
        super().__init__(api, cache)
        self.user_id = user_id

    @property
    def key(self) -> QueryKey:
        return QueryKeys.workspaces(self.user_id)

    @property
    def workspaces(self) -> list[dict[str, Any]]:
        return list(self.cache.get_query_data(self.key) or [])

    def scope(self, group_id: str | None) -> list[dict[str, Any]]:
        """Workspaces of one group (``None`` = ungrouped) in display order."""
        return sort_scope([w for w in self.workspaces if w.get("groupId") == group_id])

    async def load(self) -> list[dict[str, Any]]:
        return await self.cache.fetch_query(self.key, lambda: self.api.get_user_workspaces(self.user_id))

    async def drop(self, active_id: str, over_id: str) -> bool:
        """Handle a drop of workspace *active_id* onto *over_id*.

        Drops across groups are ignored.  A same-group drop sends one
        batch update for the whole group; the cache is left as is and picks
        up the new order on the next refetch.
        """
        updates = compute_workspace_drop(self.workspaces, active_id, over_id)
        if updates is None:
            return False
        try:
            await self.api.batch_update_workspaces(self.user_id, updates)
        except ApiError as exc:
            self._fail("reordering workspaces", exc)
            return False
        return True

    async def create_workspace(self, name: str, template_type: str, workspace_rules: str = "") -> Any:
        try:
            workspace = await self.api.create_workspace(self.user_id, name, template_type, workspace_rules)
        except ApiError as exc:
            self._fail("creating workspace", exc)
            return None
        self.cache.invalidate_queries(self.key)
        return workspace

    async def delete_workspace(self, workspace_id: str) -> bool:
        """Delete a workspace.  The last remaining workspace cannot be deleted."""
        if len(self.workspaces) <= 1:
            logger.warning("Refusing to delete workspace {}: it is the user's last one", workspace_id)
            self.last_error = LAST_WORKSPACE_MESSAGE
            return False
        try:
            await self.api.delete_workspace(workspace_id, self.user_id)
        except ApiError as exc:
            self._fail("deleting workspace", exc)
            return False
        self.cache.invalidate_queries(self.key)
        self.cache.invalidate_queries(QueryKeys.workspace_groups(self.user_id))
        return True

    async def move_workspace_to_group_optimistic(
        self, workspace_id: str, group_id: str | None, sort_order: int | None = None
    ) -> bool:
        """Move a workspace to another group, patching the cache first.

        The cached list is restored from a snapshot if the request fails.
        Both workspace and group caches are invalidated once settled.
        """
        key = self.key

        def on_mutate(_variables: Any) -> Any:
            snapshot = self.cache.get_query_data(key)
            self.cache.set_query_data(
                key,
                lambda old: move_to_group(old, workspace_id, group_id, sort_order) if old is not None else None,
            )
            return snapshot

        def on_error(_exc: BaseException, _variables: Any, snapshot: Any) -> None:
            if snapshot is not None:
                self.cache.set_query_data(key, snapshot)

        def on_settled(*_args: Any) -> None:
            self.cache.invalidate_queries(key)
            self.cache.invalidate_queries(QueryKeys.workspace_groups(self.user_id))

        mutation = Mutation(
            fn=lambda _v: self.api.move_workspace_to_group(self.user_id, workspace_id, group_id, sort_order),
            on_mutate=on_mutate,
            on_error=on_error,
            on_settled=on_settled,
        )
        try:
            await mutation.execute()
        except ApiError as exc:
            self._fail("moving workspace", exc)
            return False
        return True


# ---------------------------------------------------------------------------
# Groups
# ---------------------------------------------------------------------------


class GroupOrganizer(_Controller):
    """Group list with local drag reordering and an explicit save."""

    def __init__(self, api: ApiClient, cache: QueryClient, user_id: str) -> None:
        super().__init__(api, cache)
        self.user_id = user_id
        self.local_groups: list[dict[str, Any]] = []
        self.has_changes = False

    @property
    def key(self) -> QueryKey:
        return QueryKeys.workspace_groups(self.user_id)

    @property
    def pinned_groups(self) -> list[dict[str, Any]]:
        return [g for g in self.local_groups if g.get("isPinned")]

    async def load(self) -> list[dict[str, Any]]:
        groups = await self.cache.fetch_query(self.key, lambda: self.api.get_workspace_groups(self.user_id))
        self.cancel()
        return groups

    def cancel(self) -> None:
        """Drop unsaved local changes."""
        self.local_groups = sort_scope(self.cache.get_query_data(self.key) or [])
        self.has_changes = False

    def drop(self, active_id: str, over_id: str) -> bool:
        moved = compute_group_drop(self.local_groups, active_id, over_id)
        if moved is None:
            return False
        self.local_groups = moved
        self.has_changes = True
        return True

    async def save(self) -> bool:
        """Send the local order as one batch reorder."""
        if not self.has_changes:
            return True
        try:
            await self.api.reorder_workspace_groups(self.user_id, group_orders(self.local_groups))
        except ApiError as exc:
            self._fail("reordering groups", exc)
            return False
        self.has_changes = False
        self.cache.invalidate_queries(self.key)
        return True

    async def create_group(self, name: str, color: str | None = None) -> Any:
        try:
            group = await self.api.create_workspace_group(self.user_id, name, color)
        except ApiError as exc:
            self._fail("creating group", exc)
            return None
        self.cache.invalidate_queries(self.key)
        return group

    async def update_group(self, group_id: str, **updates: Any) -> Any:
        """Update a group.  Keyword names are the camelCase wire fields."""
        try:
            group = await self.api.update_workspace_group(self.user_id, group_id, updates)
        except ApiError as exc:
            self._fail("updating group", exc)
            return None
        self.cache.invalidate_queries(self.key)
        return group

    async def toggle_pin(self, group_id: str) -> Any:
        current = next((g for g in self.local_groups if g["id"] == group_id), None)
        pinned = not (current or {}).get("isPinned", False)
        return await self.update_group(group_id, isPinned=pinned)

    async def delete_group(self, group_id: str, *, delete_workspaces: bool = False) -> bool:
        try:
            await self.api.delete_workspace_group(self.user_id, group_id, delete_workspaces=delete_workspaces)
        except ApiError as exc:
            self._fail("deleting group", exc)
            return False
        self.cache.invalidate_queries(self.key)
        self.cache.invalidate_queries(QueryKeys.workspaces(self.user_id))
        return True


# ---------------------------------------------------------------------------
# Favorites
# ---------------------------------------------------------------------------


class FavoritesController(_Controller, ABC):
    """Favorites of one workspace.

    Subclasses bind the entity field and endpoints.  Adds and reorders patch
    the cache before the request resolves; removes and updates wait for the
    server.
    """

    entity_field: str = ""
    label: str = "favorite"

    def __init__(self, api: ApiClient, cache: QueryClient, workspace_id: str) -> None:
        super().__init__(api, cache)
        self.workspace_id = workspace_id

    # -- Bindings --------------------------------------------------------------

    @property
    @abstractmethod
    def key(self) -> QueryKey: ...

    @abstractmethod
    def check_key(self, entity_id: str) -> QueryKey: ...

    @abstractmethod
    async def _fetch(self) -> Any: ...

    @abstractmethod
    async def _add(self, request: dict[str, Any]) -> Any: ...

    @abstractmethod
    async def _update(self, favorite_id: str, request: dict[str, Any]) -> Any: ...

    @abstractmethod
    async def _remove(self, favorite_id: str) -> Any: ...

    @abstractmethod
    async def _reorder(self, favorite_ids: list[str]) -> Any: ...

    # -- Reads -----------------------------------------------------------------

    @property
    def favorites(self) -> list[dict[str, Any]]:
        return sort_scope(self.cache.get_query_data(self.key) or [])

    def find(self, entity_id: str) -> dict[str, Any] | None:
        return next((f for f in self.favorites if f.get(self.entity_field) == entity_id), None)

    def is_favorited(self, entity_id: str) -> bool:
        return self.find(entity_id) is not None

    async def load(self) -> list[dict[str, Any]]:
        return await self.cache.fetch_query(self.key, self._fetch)

    # -- Writes ----------------------------------------------------------------

    async def add(self, entity_id: str, display_name: str | None = None, **extra: Any) -> Any:
        """Add a favorite, appending a placeholder to the cached list first."""
        request: dict[str, Any] = {"workspaceId": self.workspace_id, self.entity_field: entity_id, **extra}
        if display_name is not None:
            request["displayName"] = display_name

        def on_mutate(_variables: Any) -> None:
            placeholder = {"id": f"pending-{uuid.uuid4().hex}", **request}
            self.cache.set_query_data(
                self.key,
                lambda old: [*old, {**placeholder, "sortOrder": len(old)}] if old is not None else None,
            )

        # No rollback: a failed add is corrected by the refetch.
        def on_settled(*_args: Any) -> None:
            self.cache.invalidate_queries(self.key)
            self.cache.invalidate_queries(self.check_key(entity_id))

        mutation = Mutation(fn=lambda _v: self._add(request), on_mutate=on_mutate, on_settled=on_settled)
        try:
            return await mutation.execute()
        except ApiError as exc:
            self._fail(f"adding {self.label}", exc)
            return None

    async def update(self, favorite_id: str, **updates: Any) -> Any:
        """Rename or reposition one favorite (``displayName`` / ``sortOrder``)."""
        try:
            favorite = await self._update(favorite_id, updates)
        except ApiError as exc:
            self._fail(f"updating {self.label}", exc)
            return None
        self.cache.invalidate_queries(self.key)
        return favorite

    async def remove(self, favorite_id: str) -> bool:
        existing = next((f for f in self.favorites if f["id"] == favorite_id), None)
        try:
            await self._remove(favorite_id)
        except ApiError as exc:
            self._fail(f"removing {self.label}", exc)
            return False
        self.cache.set_query_data(
            self.key, lambda old: [f for f in old if f["id"] != favorite_id] if old is not None else None
        )
        self.cache.invalidate_queries(self.key)
        if existing is not None:
            self.cache.invalidate_queries(self.check_key(existing[self.entity_field]))
        return True

    async def reorder(self, favorite_ids: list[str]) -> bool:
        """Persist a new order, re-sorting the cached list immediately."""

        def on_mutate(_variables: Any) -> None:
            self.cache.set_query_data(
                self.key, lambda old: reorder_by_ids(old, favorite_ids) if old is not None else None
            )

        def on_settled(*_args: Any) -> None:
            self.cache.invalidate_queries(self.key)

        mutation = Mutation(fn=lambda _v: self._reorder(favorite_ids), on_mutate=on_mutate, on_settled=on_settled)
        try:
            await mutation.execute()
        except ApiError as exc:
            self._fail(f"reordering {self.label}s", exc)
            return False
        return True

    async def drop(self, active_id: str, over_id: str) -> bool:
        if active_id == over_id:
            return False
        ids = [f["id"] for f in self.favorites]
        if active_id not in ids or over_id not in ids:
            return False
        return await self.reorder(array_move(ids, ids.index(active_id), ids.index(over_id)))


class AIFavoritesController(FavoritesController):
    entity_field = "aiProviderId"
    label = "AI favorite"

    @property
    def key(self) -> QueryKey:
        return QueryKeys.ai_favorites(self.workspace_id)

    def check_key(self, entity_id: str) -> QueryKey:
        return QueryKeys.ai_favorite_check(self.workspace_id, entity_id)

    async def add(self, entity_id: str, display_name: str | None = None, **extra: Any) -> Any:
        extra.setdefault("isModelConfig", False)
        return await super().add(entity_id, display_name, **extra)

    async def _fetch(self) -> Any:
        return await self.api.get_workspace_ai_favorites(self.workspace_id)

    async def _add(self, request: dict[str, Any]) -> Any:
        return await self.api.add_ai_favorite(request)

    async def _update(self, favorite_id: str, request: dict[str, Any]) -> Any:
        return await self.api.update_ai_favorite(favorite_id, request)

    async def _remove(self, favorite_id: str) -> Any:
        return await self.api.remove_ai_favorite(favorite_id)

    async def _reorder(self, favorite_ids: list[str]) -> Any:
        return await self.api.reorder_ai_favorites(self.workspace_id, favorite_ids)


class PersonalityFavoritesController(FavoritesController):
    entity_field = "personalityId"
    label = "personality favorite"

    @property
    def key(self) -> QueryKey:
        return QueryKeys.personality_favorites(self.workspace_id)

    def check_key(self, entity_id: str) -> QueryKey:
        return QueryKeys.personality_favorite_check(self.workspace_id, entity_id)

    async def _fetch(self) -> Any:
        return await self.api.get_workspace_personality_favorites(self.workspace_id)

    async def _add(self, request: dict[str, Any]) -> Any:
        return await self.api.add_personality_favorite(request)

    async def _update(self, favorite_id: str, request: dict[str, Any]) -> Any:
        return await self.api.update_personality_favorite(favorite_id, request)

    async def _remove(self, favorite_id: str) -> Any:
        return await self.api.remove_personality_favorite(favorite_id)

    async def _reorder(self, favorite_ids: list[str]) -> Any:
        return await self.api.reorder_personality_favorites(self.workspace_id, favorite_ids)
