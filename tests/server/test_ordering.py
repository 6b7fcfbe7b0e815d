"""Unit tests for dense sort-order helpers."""

from __future__ import annotations

from dataclasses import dataclass

import pytest

from op3.server.managers.ordering import apply_id_order, move_to, renumber


@dataclass
class Row:
    id: str
    sort_order: int


def rows(*orders: int) -> list[Row]:
    return [Row(id=chr(ord("a") + i), sort_order=o) for i, o in enumerate(orders)]


def ids(items: list[Row]) -> str:
    return "".join(r.id for r in items)


def test_renumber_closes_gaps() -> None:
    items = renumber(rows(3, 7, 7, 20))
    assert [r.sort_order for r in items] == [0, 1, 2, 3]
    assert ids(items) == "abcd"


@pytest.mark.parametrize(
    ("index", "expected"),
    [
        (0, "cab"),
        (1, "acb"),
        (None, "abc"),
        (99, "abc"),
        (-5, "cab"),
    ],
)
def test_move_to(index: int | None, expected: str) -> None:
    items = rows(0, 1, 2)
    result = move_to(items, items[2], index)
    assert ids(result) == expected
    assert [r.sort_order for r in result] == [0, 1, 2]


def test_move_new_row_into_scope() -> None:
    items = rows(0, 1)
    new = Row(id="z", sort_order=0)
    assert ids(move_to(items, new, 1)) == "azb"


def test_apply_id_order_keeps_unlisted_rows_after() -> None:
    items = rows(0, 1, 2, 3)
    result = apply_id_order(items, ["c", "a"])
    assert ids(result) == "cabd"
    assert [r.sort_order for r in result] == [0, 1, 2, 3]


def test_apply_id_order_unknown_id() -> None:
    with pytest.raises(KeyError):
        apply_id_order(rows(0, 1), ["a", "zz"])


def test_apply_id_order_rejects_duplicates() -> None:
    items = rows(0, 1)
    with pytest.raises(ValueError):
        apply_id_order(items, ["a", "a"])
    assert [r.sort_order for r in items] == [0, 1]
