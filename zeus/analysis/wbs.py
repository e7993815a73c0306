"""WBS code ordering and generation."""

from __future__ import annotations

from ..approval.mutations import Mutation, UpdateEntity
from ..models import Activity
from ..store.store import EntityStore


def wbs_sort_key(code: str) -> tuple:
    """Sort key that orders dotted codes numerically ("1.2" before "1.10").

    Non-numeric segments sort after numeric ones, alphabetically.
    """
    key = []
    for part in (code or "").split("."):
        if part.isdigit():
            key.append((0, int(part), ""))
        else:
            key.append((1, 0, part))
    return tuple(key)


def compare_wbs_codes(a: str, b: str) -> int:
    """Return -1, 0 or 1 comparing two WBS codes segment by segment."""
    ka, kb = wbs_sort_key(a), wbs_sort_key(b)
    return (ka > kb) - (ka < kb)


def activity_sort_key(activity: Activity) -> tuple:
    """Activities with a WBS path first (in code order), then the rest by id."""
    if activity.wbs_path:
        return (0, wbs_sort_key(activity.wbs_path), activity.id)
    return (1, (), activity.id)


def assign_wbs_codes(store: EntityStore) -> Mutation:
    """
    Build a mutation that numbers every open Activity by its position in the tree.

    Root activities (no Activity parent) are numbered 1, 2, ... in
    ``activity_sort_key`` order; children get ``<parent>.<n>``. Done activities
    cannot be modified, so they keep their code but still occupy a number.
    Activities caught in a parent cycle are left alone.
    """
    activities = store.activities
    children: dict[str | None, list[Activity]] = {}
    for activity in activities:
        parent = activity.parent_id if store.kind_of(activity.parent_id) == "activity" else None
        children.setdefault(parent, []).append(activity)

    codes: dict[str, str] = {}
    stack: list[tuple[str | None, str]] = [(None, "")]
    while stack:
        parent_id, prefix = stack.pop()
        ordered = sorted(children.get(parent_id, []), key=activity_sort_key)
        for index, activity in enumerate(ordered, start=1):
            if activity.id in codes:
                continue
            code = f"{prefix}{index}"
            codes[activity.id] = code
            stack.append((activity.id, f"{code}."))

    operations = tuple(
        UpdateEntity(activity.id, {"wbs_path": codes[activity.id]})
        for activity in activities
        if activity.id in codes and activity.wbs_path != codes[activity.id] and not activity.is_done
    )
    return Mutation(operations=operations, description=f"assign WBS codes to {len(operations)} activities")
