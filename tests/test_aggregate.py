"""Tests for the hierarchy aggregator."""

import pytest

from zeus.analysis.aggregate import aggregate, rollup_status, weighted_mean
from zeus.analysis.wbs import assign_wbs_codes
from zeus.doctor.validator import validate
from zeus.models import Activity, Deliverable, Objective
from zeus.store.store import EntityStore


def _deliverable_with(*activities: Activity) -> EntityStore:
    return EntityStore([
        Objective(id="obj-1"),
        Deliverable(id="del-1", objective_id="obj-1"),
        *activities,
    ])


def test_parent_progress_is_mean_of_children() -> None:
    store = _deliverable_with(
        Activity(id="act-1", parent_id="del-1", progress=40, status="active"),
        Activity(id="act-2", parent_id="del-1", progress=60, status="active"),
    )
    view = aggregate(store)
    assert view.progress("del-1") == pytest.approx(50.0)
    assert view.progress("obj-1") == pytest.approx(50.0)


def test_leaf_progress_is_preserved() -> None:
    store = _deliverable_with(Activity(id="act-1", parent_id="del-1", progress=40))
    view = aggregate(store)
    assert view.progress("act-1") == 40.0
    assert view.get("act-1").is_leaf


def test_done_activity_without_progress_counts_as_complete() -> None:
    store = _deliverable_with(
        Activity(id="act-1", parent_id="del-1", status="done"),
        Activity(id="act-2", parent_id="del-1"),
    )
    view = aggregate(store)
    assert view.progress("act-1") == 100.0
    assert view.progress("act-2") == 0.0
    assert view.progress("del-1") == pytest.approx(50.0)


def test_weights_are_applied() -> None:
    store = _deliverable_with(
        Activity(id="act-1", parent_id="del-1", progress=0, weight=1),
        Activity(id="act-2", parent_id="del-1", progress=100, weight=3),
    )
    assert aggregate(store).progress("del-1") == pytest.approx(75.0)


def test_all_zero_weights_fall_back_to_equal_weights() -> None:
    store = _deliverable_with(
        Activity(id="act-1", parent_id="del-1", progress=20, weight=0),
        Activity(id="act-2", parent_id="del-1", progress=80, weight=0),
    )
    assert aggregate(store).progress("del-1") == pytest.approx(50.0)
    assert weighted_mean([], []) == 0.0


def test_sample_rollup(sample_store: EntityStore) -> None:
    view = aggregate(sample_store)
    assert view.get("del-api").children == ("act-a", "act-b", "act-c")
    assert view.progress("del-api") == pytest.approx(140 / 3)
    assert view.status("del-api") == "active"
    assert view.get("obj-root").children == ("obj-sub", "del-api")
    assert view.progress("obj-root") == pytest.approx(70 / 3)
    assert view.status("obj-sub") == "draft"


@pytest.mark.parametrize(
    "statuses,expected",
    [
        (["done", "blocked", "active"], "blocked"),
        (["done", "active", "draft"], "active"),
        (["done", "done"], "done"),
        (["done", "draft"], "draft"),
        ([], "draft"),
    ],
)
def test_status_rollup(statuses: list[str], expected: str) -> None:
    assert rollup_status(statuses) == expected


def test_aggregate_is_deterministic(sample_store: EntityStore) -> None:
    assert aggregate(sample_store).to_dict() == aggregate(sample_store.copy()).to_dict()


def test_activity_parent_cycle_does_not_recurse_forever() -> None:
    store = _deliverable_with(
        Activity(id="act-1", parent_id="act-2", progress=10),
        Activity(id="act-2", parent_id="act-1", progress=30),
    )
    view = aggregate(store)
    assert "act-1" in view
    assert "act-2" in view


def test_deep_activity_nesting_rolls_up() -> None:
    depth = 1500
    activities = [
        Activity(id=f"act-{i:04d}", parent_id=f"act-{i - 1:04d}" if i else "del-1")
        for i in range(depth - 1)
    ]
    activities.append(
        Activity(id=f"act-{depth - 1:04d}", parent_id=f"act-{depth - 2:04d}", progress=50, status="active")
    )
    store = _deliverable_with(*activities)

    view = aggregate(store)
    assert view.progress("act-0000") == pytest.approx(50.0)
    assert view.progress("obj-1") == pytest.approx(50.0)
    assert view.status("obj-1") == "active"

    assert not [f for f in validate(store) if f.kind == "cycle"]
    codes = {op.entity_id: op.changes["wbs_path"] for op in assign_wbs_codes(store).operations}
    assert codes["act-1499"] == ".".join(["1"] * depth)
