"""Tests for the auto-fixer."""

from datetime import datetime

import pytest

from zeus.approval.history import SnapshotHistory
from zeus.doctor.fixer import AutoFixer, fix
from zeus.doctor.validator import validate
from zeus.errors import CycleError
from zeus.models import Activity, Deliverable, Risk
from zeus.store.store import EntityStore


def _store_with_problems() -> EntityStore:
    return EntityStore([
        Risk(id="risk-1", mitigated_by="act-gone"),
        Activity(id="act-x", depends_on=["act-y", "act-ghost"], updated_at="2026-01-01T00:00:00Z"),
        Activity(id="act-y", depends_on=["act-x"], updated_at="2026-02-01T00:00:00Z"),
        Deliverable(id="del-1", objective_id="obj-gone"),
    ])


def test_plan_separates_fixable_from_manual() -> None:
    plan = AutoFixer(_store_with_problems()).plan()
    described = sorted(f.describe() for f in plan.fixes)
    assert described == [
        "clear risk-1.mitigated_by (was act-gone; dangling_reference)",
        "remove act-ghost from act-x.depends_on (dangling_reference)",
        "remove act-x from act-y.depends_on (cycle)",
    ]
    assert [f.kind for f in plan.manual] == ["dangling_reference"]
    assert plan.manual[0].entity_ids == ("del-1", "obj-gone")


def test_dry_run_leaves_store_untouched() -> None:
    store = _store_with_problems()
    before = store.to_dict()
    result = fix(store, dry_run=True)
    assert result.dry_run
    assert len(result.fixes) == 3
    assert result.store is store
    assert store.to_dict() == before


def test_apply_repairs_copy_and_records_snapshot(now: datetime) -> None:
    store = _store_with_problems()
    history = SnapshotHistory(clock=lambda: now)
    result = fix(store, history=history, now=now)

    repaired = result.store
    assert repaired is not store
    assert repaired.require("risk-1").mitigated_by is None
    assert repaired.require("act-x").depends_on == ["act-y"]
    # act-y was updated last, so its edge is the one dropped
    assert repaired.require("act-y").depends_on == []
    assert repaired.require("act-y").updated_at == "2026-06-01T00:00:00Z"

    # the original keeps its problems
    assert store.require("risk-1").mitigated_by == "act-gone"

    assert result.snapshot is not None
    assert result.snapshot.label == "fix"
    assert history.latest() is result.snapshot
    assert sorted(result.changes.changed) == ["act-x", "act-y", "risk-1"]

    remaining = validate(repaired)
    assert [(f.kind, f.entity_ids) for f in remaining] == [("dangling_reference", ("del-1", "obj-gone"))]


def test_fix_is_idempotent(now: datetime) -> None:
    history = SnapshotHistory(clock=lambda: now)
    first = fix(_store_with_problems(), history=history, now=now)
    second = fix(first.store, history=history, now=now)
    assert second.fixes == []
    assert second.snapshot is None
    assert second.store is first.store
    assert len(history) == 1


def test_clean_store_needs_no_fixes(sample_store: EntityStore) -> None:
    result = fix(sample_store)
    assert result.fixes == []
    assert result.manual == []
    assert result.store is sample_store


def test_unbreakable_cycle_blocks_every_fix(now: datetime) -> None:
    store = EntityStore([
        Activity(id="act-a", depends_on=["act-b", "act-ghost"]),
        Activity(id="act-b", depends_on=["act-c"]),
        Activity(id="act-c", depends_on=["act-a"]),
    ])
    before = store.to_dict()
    history = SnapshotHistory(clock=lambda: now)

    with pytest.raises(CycleError) as exc:
        fix(store, history=history, now=now)
    assert exc.value.path == ["act-a", "act-b", "act-c", "act-a"]
    assert store.to_dict() == before
    assert len(history) == 0

    preview = fix(store, dry_run=True)
    assert [f.describe() for f in preview.fixes] == ["remove act-ghost from act-a.depends_on (dangling_reference)"]
    assert [f.kind for f in preview.manual] == ["cycle"]
