"""Tests for snapshot history and the approval event log."""

from datetime import datetime

import pytest

from zeus.approval.events import ITEM_FAILED, ITEM_PROPOSED, ApprovalEvent, create_event
from zeus.approval.history import Snapshot, SnapshotHistory, compute_hash
from zeus.approval.mutations import Mutation, UpdateEntity, apply_mutation
from zeus.approval.state import fold_events, project_items
from zeus.errors import SnapshotNotFound
from zeus.store.store import EntityStore


def test_snapshot_then_restore_reproduces_content(sample_store: EntityStore, history: SnapshotHistory, now: datetime) -> None:
    first = history.snapshot(sample_store, "init")
    changed = apply_mutation(sample_store, Mutation((UpdateEntity("act-c", {"priority": "high"}),)), now=now)
    second = history.snapshot(changed, "edit")

    assert (first.version, second.version) == (1, 2)
    assert second.changes.changed == ["act-c"]

    restored = history.restore(1, reason="undo")
    assert restored.content_equals(sample_store)
    assert restored is not sample_store

    latest = history.latest()
    assert latest.version == 3
    assert latest.label == "restore:1"
    assert latest.reason == "undo"
    assert latest.content_id == first.content_id
    assert history.versions == [1, 2, 3]


def test_snapshots_are_immune_to_later_edits(sample_store: EntityStore, history: SnapshotHistory) -> None:
    snapshot = history.snapshot(sample_store)
    sample_store.require("act-c").title = "Edited in place"

    assert snapshot.to_store().require("act-c").title == "Test"
    data = snapshot.data
    data["activity"].clear()
    assert len(snapshot.data["activity"]) == 4


def test_unknown_version(history: SnapshotHistory) -> None:
    with pytest.raises(SnapshotNotFound) as exc:
        history.restore(7)
    assert isinstance(exc.value, KeyError)
    assert "version 7" in str(exc.value)


def test_history_is_newest_first(sample_store: EntityStore, history: SnapshotHistory) -> None:
    for label in ("a", "b", "c"):
        history.snapshot(sample_store, label)
    assert [s.label for s in history.history()] == ["c", "b", "a"]
    assert [s.label for s in history.history(limit=1)] == ["c"]
    assert [s.version for s in history.since(1)] == [2, 3]


def test_snapshot_json_round_trip(sample_store: EntityStore, history: SnapshotHistory) -> None:
    snapshot = history.snapshot(sample_store, "init", reason="first")
    loaded = Snapshot.from_json(snapshot.to_json())
    assert loaded == snapshot
    assert loaded.content_id == compute_hash(sample_store.to_json())
    assert snapshot.created_at == "2026-06-01T00:00:00Z"


def test_event_json_round_trip(now: datetime) -> None:
    event = create_event(ITEM_FAILED, "item-1", "user", timestamp=now, payload={"error": "boom"})
    assert ApprovalEvent.from_json(event.to_json()) == event


def test_invalid_event_type(now: datetime) -> None:
    with pytest.raises(ValueError):
        create_event("item.exploded", "item-1", "user", timestamp=now)


def test_fold_events_keeps_failed_item_pending(now: datetime) -> None:
    events = [
        create_event(
            ITEM_PROPOSED, "item-1", "user", timestamp=now,
            payload={"item_type": "mutation", "description": "d", "mutation": Mutation().to_dict()},
        ),
        create_event(ITEM_FAILED, "item-1", "system", timestamp=now, payload={"error": "first"}),
        create_event(ITEM_FAILED, "item-1", "system", timestamp=now, payload={"error": "second"}),
    ]
    state = fold_events(events)
    assert state.status == "pending"
    assert state.last_error == "second"
    assert state.attempts == 2
    assert fold_events([]) is None


def test_fold_events_requires_proposal_first(now: datetime) -> None:
    with pytest.raises(ValueError):
        fold_events([create_event(ITEM_FAILED, "item-1", "system", timestamp=now)])


def test_project_items_keeps_proposal_order(now: datetime) -> None:
    payload = {"item_type": "suggestion", "mutation": Mutation().to_dict()}
    events = [
        create_event(ITEM_PROPOSED, "item-b", "user", timestamp=now, payload=payload),
        create_event(ITEM_PROPOSED, "item-a", "user", timestamp=now, payload=payload),
    ]
    items = project_items(events)
    assert list(items) == ["item-b", "item-a"]
    assert items["item-a"].sequence == 1
