"""Tests for the query cache, retry policy and mutation lifecycle."""

from __future__ import annotations

from typing import Any

import pytest

from op3.client.http import ApiError
from op3.client.query import Mutation, QueryClient, QueryKeys, default_retry_delay, should_retry


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class Fetcher:
    """Async query function that fails with the queued errors, then succeeds."""

    def __init__(self, result: Any = "data", errors: list[Exception] | None = None) -> None:
        self.result = result
        self.errors = list(errors or [])
        self.calls = 0

    async def __call__(self) -> Any:
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.result


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def queries(clock: FakeClock) -> QueryClient:
    return QueryClient(stale_time=10.0, max_retries=3, retry_delay=lambda _n: 0.0, clock=clock)


# ---------------------------------------------------------------------------
# Retry policy
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("status", "retried"),
    [(400, False), (401, False), (404, False), (408, True), (429, True), (500, True), (503, True), (None, True)],
)
def test_should_retry_by_status(status: int | None, retried: bool) -> None:
    assert should_retry(1, ApiError("boom", status)) is retried


def test_should_retry_stops_at_max() -> None:
    error = ApiError("boom", 500)
    assert should_retry(2, error, max_retries=3)
    assert not should_retry(3, error, max_retries=3)


def test_default_retry_delay_backs_off() -> None:
    assert [default_retry_delay(n) for n in (1, 2, 3, 10)] == [1.0, 2.0, 4.0, 30.0]


# ---------------------------------------------------------------------------
# Cache
# ---------------------------------------------------------------------------


async def test_fresh_data_is_served_from_cache(queries: QueryClient, clock: FakeClock) -> None:
    fetch = Fetcher(["w1"])
    key = QueryKeys.workspaces("u1")
    assert await queries.fetch_query(key, fetch) == ["w1"]
    clock.now += 5
    assert await queries.fetch_query(key, fetch) == ["w1"]
    assert fetch.calls == 1

    clock.now += 5
    assert queries.is_stale(key)
    await queries.fetch_query(key, fetch)
    assert fetch.calls == 2


async def test_invalidate_by_prefix(queries: QueryClient) -> None:
    await queries.fetch_query(QueryKeys.ai_favorites("w1"), Fetcher([]))
    await queries.fetch_query(QueryKeys.ai_favorite_check("w1", "p1"), Fetcher({"isFavorited": False}))
    await queries.fetch_query(QueryKeys.personality_favorites("w1"), Fetcher([]))

    assert queries.invalidate_queries(("workspace-ai-favorites",)) == 2
    assert queries.is_stale(QueryKeys.ai_favorites("w1"))
    assert queries.is_stale(QueryKeys.ai_favorite_check("w1", "p1"))
    assert not queries.is_stale(QueryKeys.personality_favorites("w1"))
    # Invalidated data is still readable until the refetch.
    assert queries.get_query_data(QueryKeys.ai_favorites("w1")) == []


async def test_invalidate_exact_key_does_not_touch_siblings(queries: QueryClient) -> None:
    await queries.fetch_query(QueryKeys.workspaces("u1"), Fetcher([]))
    await queries.fetch_query(QueryKeys.workspaces("u2"), Fetcher([]))
    assert queries.invalidate_queries(QueryKeys.workspaces("u1")) == 1
    assert not queries.is_stale(QueryKeys.workspaces("u2"))


def test_set_query_data(queries: QueryClient) -> None:
    key = QueryKeys.personalities("u1")
    assert queries.set_query_data(key, lambda old: None) is None
    assert queries.get_query_state(key) is None

    queries.set_query_data(key, [{"id": "p1"}])
    queries.set_query_data(key, lambda old: [*old, {"id": "p2"}])
    assert [p["id"] for p in queries.get_query_data(key)] == ["p1", "p2"]
    assert not queries.is_stale(key)


def test_get_queries_data_and_remove(queries: QueryClient) -> None:
    queries.set_query_data(QueryKeys.chats("u1", "w1"), ["c1"])
    queries.set_query_data(QueryKeys.messages("c1"), ["m1"])
    queries.set_query_data(QueryKeys.workspaces("u1"), [])

    assert {k for k, _ in queries.get_queries_data(("chats",))} == {
        QueryKeys.chats("u1", "w1"),
        QueryKeys.messages("c1"),
    }
    queries.remove_queries(("chats",))
    assert queries.get_queries_data(("chats",)) == []
    assert queries.get_query_data(QueryKeys.workspaces("u1")) == []


async def test_retries_server_errors(queries: QueryClient) -> None:
    fetch = Fetcher("ok", errors=[ApiError("down", 503), ApiError("slow", 429)])
    assert await queries.fetch_query(("k",), fetch) == "ok"
    assert fetch.calls == 3
    state = queries.get_query_state(("k",))
    assert state.error is None
    assert state.failure_count == 0


async def test_client_error_is_not_retried(queries: QueryClient) -> None:
    fetch = Fetcher(errors=[ApiError("Workspace not found", 404)])
    with pytest.raises(ApiError):
        await queries.fetch_query(("k",), fetch)
    assert fetch.calls == 1
    assert queries.get_query_state(("k",)).failure_count == 1


async def test_gives_up_after_max_retries_and_keeps_data(queries: QueryClient) -> None:
    queries.set_query_data(("k",), "cached")
    queries.invalidate_queries(("k",))
    fetch = Fetcher(errors=[ApiError("down", 500)] * 5)
    with pytest.raises(ApiError):
        await queries.fetch_query(("k",), fetch)
    assert fetch.calls == 3
    assert queries.get_query_data(("k",)) == "cached"


async def test_none_result_is_cached(queries: QueryClient) -> None:
    fetch = Fetcher(result=None)
    assert await queries.fetch_query(("k",), fetch) is None
    assert await queries.fetch_query(("k",), fetch) is None
    assert fetch.calls == 1


def test_settings_defaults() -> None:
    queries = QueryClient()
    assert queries.stale_time == 300.0
    assert queries.max_retries == 3


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------


async def test_mutation_success_lifecycle() -> None:
    events: list[tuple] = []

    async def fn(variables: Any) -> str:
        events.append(("fn", variables))
        return "result"

    mutation = Mutation(
        fn=fn,
        on_mutate=lambda v: events.append(("mutate", v)) or "ctx",
        on_success=lambda r, v, c: events.append(("success", r, c)),
        on_error=lambda e, v, c: events.append(("error", e)),
        on_settled=lambda r, e, v, c: events.append(("settled", r, e, c)),
    )
    assert await mutation.execute("vars") == "result"
    assert events == [
        ("mutate", "vars"),
        ("fn", "vars"),
        ("success", "result", "ctx"),
        ("settled", "result", None, "ctx"),
    ]
    assert mutation.is_pending is False


async def test_mutation_error_lifecycle() -> None:
    events: list[tuple] = []
    failure = ApiError("nope", 500)

    async def fn(_variables: Any) -> None:
        raise failure

    mutation = Mutation(
        fn=fn,
        on_mutate=lambda v: "snapshot",
        on_success=lambda r, v, c: events.append(("success",)),
        on_error=lambda e, v, c: events.append(("error", e, c)),
        on_settled=lambda r, e, v, c: events.append(("settled", r, e, c)),
    )
    with pytest.raises(ApiError):
        await mutation.execute()
    assert events == [("error", failure, "snapshot"), ("settled", None, failure, "snapshot")]
    assert mutation.is_pending is False
