"""In-memory server-state cache with optimistic mutations.

Queries are keyed by tuples (``("workspaces", "user", user_id)``).  A cached
entry is fresh for ``stale_time`` seconds; :meth:`QueryClient.invalidate_queries`
marks every entry under a key prefix stale so the next
:meth:`QueryClient.fetch_query` refetches.

The cache is only touched from the event loop and takes no locks.  Responses
are not generation-guarded: a slow response can overwrite newer data.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable, Iterator
from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from op3.client.http import ApiError
from op3.client.settings import get_client_settings

QueryKey = tuple[Any, ...]
QueryFn = Callable[[], Awaitable[Any]]

# Client errors that are worth retrying (timeout, rate limit).
RETRYABLE_CLIENT_STATUSES = frozenset({408, 429})


def default_retry_delay(failure_count: int) -> float:
    """Exponential backoff: 1s, 2s, 4s ... capped at 30s."""
    return min(2.0 ** (failure_count - 1), 30.0)


def should_retry(failure_count: int, error: BaseException, max_retries: int = 3) -> bool:
    """Retry policy for queries.

    4xx responses are final except 408 and 429; anything else is retried
    until ``max_retries`` failures.
    """
    if isinstance(error, ApiError) and error.status is not None:
        status = error.status
        if 400 <= status < 500 and status not in RETRYABLE_CLIENT_STATUSES:
            return False
    return failure_count < max_retries


class QueryKeys:
    """Key factory shared by the views, so invalidation prefixes line up."""

    @staticmethod
    def workspaces(user_id: str) -> QueryKey:
        return ("workspaces", "user", user_id)

    @staticmethod
    def workspace_groups(user_id: str) -> QueryKey:
        return ("workspace-groups", "user", user_id)

    @staticmethod
    def ai_favorites(workspace_id: str) -> QueryKey:
        return ("workspace-ai-favorites", "workspace", workspace_id)

    @staticmethod
    def ai_favorite_check(workspace_id: str, ai_provider_id: str) -> QueryKey:
        return ("workspace-ai-favorites", "check", workspace_id, ai_provider_id)

    @staticmethod
    def personality_favorites(workspace_id: str) -> QueryKey:
        return ("workspace-personality-favorites", "workspace", workspace_id)

    @staticmethod
    def personality_favorite_check(workspace_id: str, personality_id: str) -> QueryKey:
        return ("workspace-personality-favorites", "check", workspace_id, personality_id)

    @staticmethod
    def personalities(user_id: str) -> QueryKey:
        return ("personalities", "user", user_id)

    @staticmethod
    def chats(user_id: str, workspace_id: str) -> QueryKey:
        return ("chats", "workspace", user_id, workspace_id)

    @staticmethod
    def messages(session_id: str) -> QueryKey:
        return ("chats", "messages", session_id)


@dataclass
class QueryState:
    data: Any = None
    updated_at: float | None = None
    is_invalidated: bool = False
    error: BaseException | None = None
    failure_count: int = 0


def _matches(key: QueryKey, prefix: QueryKey) -> bool:
    return key[: len(prefix)] == prefix


class QueryClient:
    """Keyed cache of server state.

    Args:
        stale_time: Seconds a successful fetch stays fresh.
        max_retries: Failures tolerated before :meth:`fetch_query` gives up.
        retry_delay: Backoff in seconds given the failure count so far.
        clock: Monotonic time source (overridable in tests).
    """

    def __init__(
        self,
        *,
        stale_time: float | None = None,
        max_retries: int | None = None,
        retry_delay: Callable[[int], float] = default_retry_delay,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        settings = get_client_settings()
        self.stale_time = settings.stale_time if stale_time is None else stale_time
        self.max_retries = settings.max_retries if max_retries is None else max_retries
        self._retry_delay = retry_delay
        self._clock = clock
        self._queries: dict[QueryKey, QueryState] = {}

    # -- Reads -----------------------------------------------------------------

    def get_query_state(self, key: QueryKey) -> QueryState | None:
        return self._queries.get(tuple(key))

    def get_query_data(self, key: QueryKey) -> Any:
        state = self._queries.get(tuple(key))
        return state.data if state is not None else None

    def get_queries_data(self, prefix: QueryKey) -> list[tuple[QueryKey, Any]]:
        """All ``(key, data)`` pairs whose key starts with *prefix*."""
        return [(key, state.data) for key, state in self._iter(prefix)]

    def is_stale(self, key: QueryKey, stale_time: float | None = None) -> bool:
        state = self._queries.get(tuple(key))
        if state is None or state.updated_at is None or state.is_invalidated:
            return True
        window = self.stale_time if stale_time is None else stale_time
        return self._clock() - state.updated_at >= window

    # -- Writes ----------------------------------------------------------------

    def set_query_data(self, key: QueryKey, updater: Any) -> Any:
        """Replace the cached data.

        *updater* is either the new value or a callable receiving the old
        value.  A callable returning ``None`` leaves the entry unchanged.
        """
        key = tuple(key)
        state = self._queries.get(key)
        old = state.data if state is not None else None
        new = updater(old) if callable(updater) else updater
        if new is None and callable(updater):
            return old
        self._store(key, new)
        return new

    def invalidate_queries(self, prefix: QueryKey) -> int:
        """Mark every entry under *prefix* stale.  Returns how many matched."""
        count = 0
        for _key, state in self._iter(prefix):
            state.is_invalidated = True
            count += 1
        if count:
            logger.debug("Invalidated {} quer{} under {}", count, "y" if count == 1 else "ies", prefix)
        return count

    def remove_queries(self, prefix: QueryKey) -> None:
        for key in [k for k, _ in self._iter(prefix)]:
            del self._queries[key]

    def clear(self) -> None:
        self._queries.clear()

    # -- Fetching --------------------------------------------------------------

    async def fetch_query(self, key: QueryKey, fn: QueryFn, *, stale_time: float | None = None) -> Any:
        """Return cached data if fresh, else run *fn* with the retry policy.

        Raises:
            Exception: The last error from *fn* once retries are exhausted.
                Cached data is kept on failure.
        """
        key = tuple(key)
        if not self.is_stale(key, stale_time):
            return self._queries[key].data

        failure_count = 0
        while True:
            try:
                data = await fn()
            except Exception as exc:
                failure_count += 1
                state = self._queries.setdefault(key, QueryState())
                state.error = exc
                state.failure_count = failure_count
                if not should_retry(failure_count, exc, self.max_retries):
                    logger.warning("Query {} failed after {} attempt(s): {}", key, failure_count, exc)
                    raise
                delay = self._retry_delay(failure_count)
                logger.debug("Query {} failed ({}), retrying in {:.1f}s", key, exc, delay)
                await asyncio.sleep(delay)
                continue
            self._store(key, data)
            return data

    def _store(self, key: QueryKey, data: Any) -> None:
        state = self._queries.setdefault(key, QueryState())
        state.data = data
        state.updated_at = self._clock()
        state.is_invalidated = False
        state.error = None
        state.failure_count = 0

    def _iter(self, prefix: QueryKey) -> Iterator[tuple[QueryKey, QueryState]]:
        prefix = tuple(prefix)
        for key, state in list(self._queries.items()):
            if _matches(key, prefix):
                yield key, state


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------


@dataclass
class Mutation:
    """A write with optimistic-update hooks.

    Lifecycle per :meth:`execute`: ``on_mutate(variables)`` runs first and its
    return value is the *context* handed to the other hooks (typically a cache
    snapshot for rollback).  Then ``fn`` runs; ``on_success(result, variables,
    context)`` or ``on_error(error, variables, context)`` follows, and
    ``on_settled(result, error, variables, context)`` always runs last.
    Errors are re-raised after the hooks.  Mutations are not retried.
    """

    fn: Callable[[Any], Awaitable[Any]]
    on_mutate: Callable[[Any], Any] | None = None
    on_success: Callable[[Any, Any, Any], Any] | None = None
    on_error: Callable[[BaseException, Any, Any], Any] | None = None
    on_settled: Callable[[Any, BaseException | None, Any, Any], Any] | None = None
    is_pending: bool = field(default=False, init=False)

    async def execute(self, variables: Any = None) -> Any:
        context = self.on_mutate(variables) if self.on_mutate is not None else None
        self.is_pending = True
        try:
            result = await self.fn(variables)
        except Exception as exc:
            self.is_pending = False
            if self.on_error is not None:
                self.on_error(exc, variables, context)
            if self.on_settled is not None:
                self.on_settled(None, exc, variables, context)
            raise
        self.is_pending = False
        if self.on_success is not None:
            self.on_success(result, variables, context)
        if self.on_settled is not None:
            self.on_settled(result, None, variables, context)
        return result
