"""Pure drag-and-drop ordering logic.

Rows are the camelCase dicts the API returns (``id``, ``groupId``,
``sortOrder``).  Every function returns new lists and never mutates its
input.  Orders are always recomputed for the whole scope as dense
zero-based indices.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, TypeVar

T = TypeVar("T")

Row = dict[str, Any]


def array_move(items: Sequence[T], old_index: int, new_index: int) -> list[T]:
    """Return a copy with the item at *old_index* moved to *new_index*.

    The item is removed first, then inserted, so moving ``0 -> 2`` in
    ``[a, b, c]`` gives ``[b, c, a]``.
    """
    result = list(items)
    result.insert(new_index, result.pop(old_index))
    return result


def sort_scope(rows: Sequence[Row]) -> list[Row]:
    """Rows in display order.  Ties keep their input order."""
    return sorted(rows, key=lambda row: row.get("sortOrder", 0))


def _index_of(rows: Sequence[Row], row_id: str) -> int:
    for index, row in enumerate(rows):
        if row["id"] == row_id:
            return index
    return -1


def compute_workspace_drop(workspaces: Sequence[Row], active_id: str, over_id: str) -> list[Row] | None:
    """Batch-update payload for dropping workspace *active_id* onto *over_id*.

    Returns ``None`` when nothing should happen: same workspace, unknown id,
    or the two workspaces sit in different groups.  Otherwise returns one
    ``{workspaceId, groupId, sortOrder}`` entry for every workspace of the
    shared group.
    """
    if active_id == over_id:
        return None
    by_id = {w["id"]: w for w in workspaces}
    active, over = by_id.get(active_id), by_id.get(over_id)
    if active is None or over is None:
        return None
    group_id = active.get("groupId")
    if group_id != over.get("groupId"):
        return None

    scope = sort_scope([w for w in workspaces if w.get("groupId") == group_id])
    moved = array_move(scope, _index_of(scope, active_id), _index_of(scope, over_id))
    return [{"workspaceId": w["id"], "groupId": group_id, "sortOrder": index} for index, w in enumerate(moved)]


def compute_group_drop(groups: Sequence[Row], active_id: str, over_id: str) -> list[Row] | None:
    """Groups in their new display order, or ``None`` if the drop is a no-op."""
    if active_id == over_id:
        return None
    ordered = list(groups)
    old_index, new_index = _index_of(ordered, active_id), _index_of(ordered, over_id)
    if old_index == -1 or new_index == -1:
        return None
    return array_move(ordered, old_index, new_index)


def group_orders(groups: Sequence[Row]) -> list[Row]:
    """``{groupId, sortOrder}`` for every group, by position."""
    return [{"groupId": g["id"], "sortOrder": index} for index, g in enumerate(groups)]


def apply_workspace_updates(workspaces: Sequence[Row], updates: Sequence[Row]) -> list[Row]:
    """Copy of *workspaces* with ``groupId`` / ``sortOrder`` patched from *updates*."""
    patches = {u["workspaceId"]: u for u in updates}
    result = []
    for workspace in workspaces:
        patch = patches.get(workspace["id"])
        if patch is None:
            result.append(workspace)
        else:
            result.append({**workspace, "groupId": patch["groupId"], "sortOrder": patch["sortOrder"]})
    return result


def move_to_group(
    workspaces: Sequence[Row], workspace_id: str, group_id: str | None, index: int | None = None
) -> list[Row]:
    """Move one workspace into *group_id* at *index* (appended when ``None``).

    Both the source and the target scope are renumbered densely.  Unknown
    ids return an unchanged copy.
    """
    moving = next((w for w in workspaces if w["id"] == workspace_id), None)
    if moving is None:
        return list(workspaces)
    rest = [w for w in workspaces if w["id"] != workspace_id]

    source = sort_scope([w for w in rest if w.get("groupId") == moving.get("groupId")])
    target = sort_scope([w for w in rest if w.get("groupId") == group_id])
    position = len(target) if index is None else max(0, min(index, len(target)))
    target.insert(position, moving)

    updates = [{"workspaceId": w["id"], "groupId": w.get("groupId"), "sortOrder": i} for i, w in enumerate(source)]
    updates += [{"workspaceId": w["id"], "groupId": group_id, "sortOrder": i} for i, w in enumerate(target)]
    return apply_workspace_updates(workspaces, updates)


def reorder_by_ids(rows: Sequence[Row], ids: Sequence[str]) -> list[Row]:
    """Rows re-sorted to follow *ids*, with ``sortOrder`` rewritten.

    Rows missing from *ids* keep their relative order after the listed ones.
    """
    position = {row_id: index for index, row_id in enumerate(ids)}
    ordered = sorted(rows, key=lambda row: position.get(row["id"], len(position)))
    return [{**row, "sortOrder": index} for index, row in enumerate(ordered)]
