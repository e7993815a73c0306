"""Tests for dependency scheduling and the critical path."""

import pytest

from zeus.analysis.critical_path import activity_duration, analyze_dependencies
from zeus.config import Settings
from zeus.doctor.validator import validate
from zeus.errors import CycleError
from zeus.models import Activity
from zeus.store.store import EntityStore


def test_sample_schedule(sample_store: EntityStore) -> None:
    schedule = analyze_dependencies(sample_store.activities)

    assert schedule.order == ["act-a", "act-b", "act-c", "act-d"]
    assert schedule.project_finish == 6.0
    assert schedule.critical_path == ["act-a", "act-b", "act-c"]
    assert schedule.critical_edges == [("act-a", "act-b"), ("act-b", "act-c")]

    d = schedule.get("act-d")
    assert (d.earliest_start, d.earliest_finish) == (2.0, 3.0)
    assert (d.latest_start, d.latest_finish) == (5.0, 6.0)
    assert d.slack == 3.0
    assert not d.on_critical_path


def test_slack_is_non_negative_and_zero_exactly_on_critical_path(sample_store: EntityStore) -> None:
    schedule = analyze_dependencies(sample_store.activities)
    for node in schedule.nodes.values():
        assert node.slack >= 0
        assert (node.slack == 0) == node.on_critical_path
        assert node.earliest_finish <= schedule.project_finish


def test_blocked_when_any_predecessor_is_unfinished(sample_store: EntityStore) -> None:
    schedule = analyze_dependencies(sample_store.activities)
    assert schedule.blocked == ["act-c"]
    assert not schedule.get("act-b").blocked  # act-a is done


def test_downstream_count(sample_store: EntityStore) -> None:
    schedule = analyze_dependencies(sample_store.activities)
    assert schedule.downstream_count("act-a") == 3
    assert schedule.downstream_count("act-c") == 0
    assert schedule.downstream_count("act-unknown") == 0


def test_cycle_raises_with_path_and_validator_agrees() -> None:
    activities = [
        Activity(id="act-a", depends_on=["act-b"]),
        Activity(id="act-b", depends_on=["act-c"]),
        Activity(id="act-c", depends_on=["act-a"]),
    ]
    with pytest.raises(CycleError) as exc:
        analyze_dependencies(activities)
    assert exc.value.path == ["act-a", "act-b", "act-c", "act-a"]
    assert "act-a -> act-b -> act-c -> act-a" in str(exc.value)

    findings = validate(EntityStore(activities))
    assert any(f.kind == "cycle" and f.severity == "error" for f in findings)


def test_dependencies_outside_the_set_are_ignored() -> None:
    schedule = analyze_dependencies([Activity(id="act-a", depends_on=["act-elsewhere"], duration=2)])
    assert schedule.project_finish == 2.0
    assert schedule.critical_path == ["act-a"]
    assert not schedule.get("act-a").blocked


def test_duration_fallbacks() -> None:
    assert activity_duration(Activity(id="act-1", duration=3)) == 3.0
    assert activity_duration(Activity(id="act-2", estimate_hours=16)) == 2.0
    assert activity_duration(Activity(id="act-3")) == 1.0
    assert activity_duration(Activity(id="act-4"), Settings(default_duration=0.5)) == 0.5
    assert activity_duration(Activity(id="act-5", estimate_hours=12), Settings(hours_per_day=6)) == 2.0


def test_empty_schedule() -> None:
    schedule = analyze_dependencies([])
    assert schedule.project_finish == 0.0
    assert schedule.critical_path == []
    assert schedule.to_dict()["nodes"] == {}


def test_to_dict_is_json_ready(sample_store: EntityStore) -> None:
    data = analyze_dependencies(sample_store.activities).to_dict()
    assert data["critical_edges"] == [["act-a", "act-b"], ["act-b", "act-c"]]
    assert set(data["nodes"]["act-b"]) >= {"earliest_start", "latest_finish", "slack", "blocked"}


def test_parallel_zero_slack_chains_are_all_critical() -> None:
    activities = [
        Activity(id="act-a1", duration=2),
        Activity(id="act-a2", duration=3, depends_on=["act-a1"]),
        Activity(id="act-b1", duration=1),
        Activity(id="act-b2", duration=4, depends_on=["act-b1"]),
        Activity(id="act-c1", duration=1),
    ]
    schedule = analyze_dependencies(activities)

    assert schedule.project_finish == 5.0
    assert set(schedule.critical_path) == {"act-a1", "act-a2", "act-b1", "act-b2"}
    assert set(schedule.critical_edges) == {("act-a1", "act-a2"), ("act-b1", "act-b2")}
    assert schedule.get("act-c1").slack == 4.0


def _chain(count: int) -> list[Activity]:
    return [
        Activity(id=f"act-{i:04d}", duration=1, depends_on=[f"act-{i + 1:04d}"] if i + 1 < count else [])
        for i in range(count)
    ]


def test_long_dependency_chain() -> None:
    activities = _chain(1500)
    schedule = analyze_dependencies(activities)

    assert schedule.order[0] == "act-1499"
    assert schedule.order[-1] == "act-0000"
    assert schedule.project_finish == 1500.0
    assert len(schedule.critical_path) == 1500
    assert schedule.downstream_count("act-1499") == 1499

    findings = validate(EntityStore(activities))
    assert not [f for f in findings if f.kind == "cycle"]


def test_long_dependency_cycle_is_reported() -> None:
    activities = _chain(1500)
    activities[-1].depends_on = ["act-0000"]

    with pytest.raises(CycleError) as exc:
        analyze_dependencies(activities)
    assert len(exc.value.path) == 1501
    assert exc.value.path[0] == exc.value.path[-1]

    findings = validate(EntityStore(activities))
    assert [f.kind for f in findings].count("cycle") == 1
