"""Pathname store over an in-memory history stack.

:class:`History` models the browser history API: ``push_state`` and
``replace_state`` change the location silently, ``back`` / ``forward`` fire
``popstate``.  :class:`PathnameStore` exposes the current ``pathname +
search`` as a synchronously readable value with change subscriptions, and
re-syncs itself after programmatic navigation.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass, field
from urllib.parse import urlsplit

from loguru import logger

Listener = Callable[[str], None]


def normalize_url(url: str) -> str:
    """Reduce *url* to ``path[?query]``.

    Scheme and host are dropped, a leading ``/`` is enforced, the fragment is
    discarded and an empty path becomes ``/``.
    """
    parts = urlsplit(url.strip())
    path = parts.path or "/"
    if not path.startswith("/"):
        path = "/" + path
    return f"{path}?{parts.query}" if parts.query else path


class History:
    """A linear history stack with a cursor."""

    def __init__(self, initial: str = "/") -> None:
        self._entries = [normalize_url(initial)]
        self._index = 0
        self._popstate_listeners: list[Listener] = []

    @property
    def location(self) -> str:
        return self._entries[self._index]

    @property
    def length(self) -> int:
        return len(self._entries)

    def push_state(self, url: str) -> None:
        # Pushing discards any forward entries.
        del self._entries[self._index + 1 :]
        self._entries.append(url)
        self._index += 1

    def replace_state(self, url: str) -> None:
        self._entries[self._index] = url

    def go(self, delta: int) -> None:
        target = self._index + delta
        if delta == 0 or not 0 <= target < len(self._entries):
            return
        self._index = target
        for listener in list(self._popstate_listeners):
            listener(self.location)

    def back(self) -> None:
        self.go(-1)

    def forward(self) -> None:
        self.go(1)

    def add_popstate_listener(self, listener: Listener) -> None:
        self._popstate_listeners.append(listener)

    def remove_popstate_listener(self, listener: Listener) -> None:
        if listener in self._popstate_listeners:
            self._popstate_listeners.remove(listener)


class PathnameStore:
    """Subscription store for the current pathname.

    Subscribers are called with the new value, and only when it actually
    changes.
    """

    def __init__(self, history: History | None = None) -> None:
        self.history = history if history is not None else History()
        self._snapshot = self.history.location
        self._subscribers: list[Listener] = []
        self.history.add_popstate_listener(self._on_popstate)

    def get_snapshot(self) -> str:
        return self._snapshot

    def subscribe(self, callback: Listener) -> Callable[[], None]:
        """Register *callback*; returns a function that unsubscribes it."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def push_state(self, url: str) -> None:
        self.history.push_state(normalize_url(url))
        self._sync()

    def replace_state(self, url: str) -> None:
        self.history.replace_state(normalize_url(url))
        self._sync()

    def back(self) -> None:
        self.history.back()

    def forward(self) -> None:
        self.history.forward()

    def close(self) -> None:
        self.history.remove_popstate_listener(self._on_popstate)
        self._subscribers.clear()

    def _on_popstate(self, _location: str) -> None:
        self._sync()

    def _sync(self) -> None:
        current = self.history.location
        if current == self._snapshot:
            return
        self._snapshot = current
        logger.debug("Pathname -> {}", current)
        for callback in list(self._subscribers):
            callback(current)


# ---------------------------------------------------------------------------
# Route parsing
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Route:
    view: str
    params: dict[str, str] = field(default_factory=dict)


_SEGMENT = r"([^/]+)"

_ROUTES: list[tuple[re.Pattern[str], str, tuple[str, ...]]] = [
    (re.compile(r"^/$"), "selection", ()),
    (re.compile(r"^/workspaces$"), "selection", ()),
    (re.compile(rf"^/ws/{_SEGMENT}$"), "workspace", ("workspaceId",)),
    (re.compile(rf"^/ws/{_SEGMENT}/chat/{_SEGMENT}$"), "chat", ("workspaceId", "chatId")),
    (re.compile(r"^/add/workspace$"), "create", ()),
    (re.compile(rf"^/add/chat/{_SEGMENT}$"), "create-chat", ("workspaceId",)),
    (re.compile(r"^/settings$"), "settings", ()),
    (re.compile(r"^/settings/workspaces$"), "settings-workspaces", ()),
    (re.compile(r"^/settings/ai-providers$"), "settings-ai-providers", ()),
    (re.compile(r"^/settings/openrouter$"), "settings-openrouter", ()),
    (re.compile(r"^/personalities$"), "personalities", ()),
    (re.compile(r"^/ai-providers$"), "ai-providers", ()),
    (re.compile(r"^/statistics$"), "statistics", ()),
    (re.compile(r"^/admin$"), "admin", ()),
    (re.compile(rf"^/share/{_SEGMENT}$"), "share", ("shareId",)),
]

NOT_FOUND = "not-found"


def parse_route(pathname: str) -> Route:
    """Map a pathname (query string allowed) to a view name and its params."""
    path = normalize_url(pathname).split("?", 1)[0]
    if len(path) > 1:
        path = path.rstrip("/") or "/"
    for pattern, view, names in _ROUTES:
        match = pattern.match(path)
        if match:
            return Route(view, dict(zip(names, match.groups(), strict=True)))
    return Route(NOT_FOUND)
