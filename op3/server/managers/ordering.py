"""Dense ``sort_order`` helpers shared by workspaces, groups and favorites.

A *scope* is the set of rows sharing one ordering (a user's groups, the
workspaces of one ``(user, group)`` pair, the favorites of a workspace).
Orders within a scope are always ``0..n-1``.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol, TypeVar


class _Ordered(Protocol):
    id: str
    sort_order: int


T = TypeVar("T", bound=_Ordered)


def renumber(rows: Sequence[T]) -> list[T]:
    """Assign ``sort_order = index`` to *rows* in their given order."""
    for index, row in enumerate(rows):
        if row.sort_order != index:
            row.sort_order = index
    return list(rows)


def move_to(rows: Sequence[T], row: T, index: int | None) -> list[T]:
    """Place *row* at *index* (clamped; appended when ``None``) and renumber."""
    others = [r for r in rows if r.id != row.id]
    position = len(others) if index is None else max(0, min(index, len(others)))
    others.insert(position, row)
    return renumber(others)


def apply_id_order(rows: Sequence[T], ordered_ids: Sequence[str]) -> list[T]:
    """Reorder *rows* to follow *ordered_ids*.

    Rows not mentioned keep their relative order after the listed ones.
    Raises ``KeyError`` for an id that is not in *rows* and ``ValueError``
    when an id is listed twice.
    """
    if len(set(ordered_ids)) != len(ordered_ids):
        raise ValueError("ordered_ids contains duplicates")
    by_id = {r.id: r for r in rows}
    listed = [by_id[i] for i in ordered_ids]
    seen = set(ordered_ids)
    rest = [r for r in rows if r.id not in seen]
    return renumber(listed + rest)
