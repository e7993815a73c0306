"""Tests for the entity store, codec and relation helpers."""

import pytest

from zeus.analysis.aggregate import aggregate
from zeus.errors import EntityNotFound, ValidationError
from zeus.models import Activity, Objective
from zeus.store.codec import entity_from_dict
from zeus.store.relations import OwnerRef
from zeus.store.store import EntityStore


def test_typed_views_are_sorted_by_id(sample_store: EntityStore) -> None:
    assert [a.id for a in sample_store.activities] == ["act-a", "act-b", "act-c", "act-d"]
    assert sample_store.vision.id == "vision-1"
    assert len(sample_store.objectives) == 2


def test_require_missing_raises_key_error(sample_store: EntityStore) -> None:
    with pytest.raises(EntityNotFound) as exc:
        sample_store.require("act-missing")
    assert isinstance(exc.value, KeyError)
    assert "act-missing" in str(exc.value)


def test_put_rejects_mismatched_prefix() -> None:
    store = EntityStore()
    with pytest.raises(ValidationError):
        store.put(Activity(id="obj-1"))


def test_children_of_follows_hierarchy_links(sample_store: EntityStore) -> None:
    assert sample_store.children_of("obj-root") == ["del-api", "obj-sub"]
    assert sample_store.children_of("del-api") == ["act-a", "act-b", "act-c"]
    assert sample_store.children_of("act-a") == []


def test_references_to(sample_store: EntityStore) -> None:
    refs = sample_store.references_to("act-a")
    assert ("act-b", "depends_on") in refs
    assert ("act-d", "depends_on") in refs


def test_owner_of_returns_tagged_reference(sample_store: EntityStore) -> None:
    owner = sample_store.owner_of(sample_store.require("act-d"))
    assert owner == OwnerRef(kind="objective", id="obj-sub")
    assert sample_store.owner_of(Activity(id="act-z", parent_id="risk-1")) is None


def test_write_bumps_version_and_drops_cache(sample_store: EntityStore) -> None:
    first = aggregate(sample_store)
    assert aggregate(sample_store) is first

    version = sample_store.version
    sample_store.put(Objective(id="obj-new", title="Extra"))
    assert sample_store.version == version + 1
    assert aggregate(sample_store) is not first
    assert "obj-new" in aggregate(sample_store)


def test_copy_is_independent(sample_store: EntityStore) -> None:
    clone = sample_store.copy()
    clone.require("act-b").depends_on.append("act-c")
    assert sample_store.require("act-b").depends_on == ["act-a"]
    assert clone.version == sample_store.version


def test_dict_round_trip_preserves_content(sample_store: EntityStore) -> None:
    data = sample_store.to_dict()
    assert list(data)[:3] == ["vision", "objective", "deliverable"]
    assert EntityStore.from_dict(data).content_equals(sample_store)


def test_codec_rejects_unknown_fields() -> None:
    with pytest.raises(ValidationError, match="unknown field"):
        entity_from_dict("activity", {"id": "act-1", "colour": "red"})


def test_codec_requires_id() -> None:
    with pytest.raises(ValidationError, match="missing an id"):
        entity_from_dict("objective", {"title": "No id"})


def test_codec_builds_nested_records() -> None:
    usecase = entity_from_dict("usecase", {
        "id": "uc-1",
        "objective_id": "obj-1",
        "actors": [{"actor_id": "actor-1", "role": "secondary"}],
        "relations": [{"type": "include", "target_id": "uc-2"}],
    })
    assert usecase.actors[0].actor_id == "actor-1"
    assert usecase.relations[0].target_id == "uc-2"


@pytest.mark.parametrize(
    ("kind", "data", "message"),
    [
        ("activity", {"id": "act-1", "status": "bogus"}, "status must be one of"),
        ("activity", {"id": "act-1", "priority": "urgent"}, "priority must be one of"),
        ("activity", {"id": "act-1", "progress": 250}, "between 0 and 100"),
        ("activity", {"id": "act-1", "duration": -1}, "must not be negative"),
        ("activity", {"id": "act-1", "progress": True}, "progress must be a number"),
        ("activity", {"id": "act-1", "depends_on": "act-2"}, "depends_on must be a list"),
        ("activity", {"id": "act-1", "due_date": "next week"}, "ISO date"),
        ("objective", {"id": "obj-1", "deadline": 20260701}, "deadline must be a string"),
        ("problem", {"id": "prob-1", "severity": "minor"}, "severity must be one of"),
        ("risk", {"id": "risk-1", "probability": "certain"}, "probability must be one of"),
        ("risk", {"id": "risk-1", "impact": "huge"}, "impact must be one of"),
        ("actor", {"id": "actor-1", "type": "robot"}, "type must be one of"),
        ("usecase", {"id": "uc-1", "relations": [{"type": "uses", "target_id": "uc-2"}]}, "type must be one of"),
        ("usecase", {"id": "uc-1", "actors": [{"actor_id": "actor-1", "role": "owner"}]}, "role must be one of"),
        ("usecase", {"id": "uc-1", "actors": ["actor-1"]}, "uc-1"),
    ],
)
def test_codec_rejects_bad_field_values(kind: str, data: dict, message: str) -> None:
    with pytest.raises(ValidationError, match=message):
        entity_from_dict(kind, data)


def test_codec_accepts_valid_values() -> None:
    activity = entity_from_dict("activity", {
        "id": "act-1",
        "status": "blocked",
        "progress": 100,
        "duration": 0,
        "due_date": "2026-07-01",
        "depends_on": ["act-2"],
    })
    assert activity.progress == 100
    assert entity_from_dict("objective", {"id": "obj-1", "deadline": None}).deadline is None


def test_codec_rejects_metadata_that_cannot_be_stored() -> None:
    with pytest.raises(ValidationError, match="keys must be strings"):
        entity_from_dict("objective", {"id": "obj-1", "metadata": {"nested": [{1: "x"}]}})
    with pytest.raises(ValidationError, match="unsupported value"):
        entity_from_dict("objective", {"id": "obj-1", "metadata": {"tags": {"a", "b"}}})


def test_string_keyed_metadata_round_trips() -> None:
    store = EntityStore([Objective(id="obj-1", metadata={"owner": "ops", "links": [{"id": "x", "weight": 2}]})])
    assert EntityStore.from_dict(store.to_dict()).content_equals(store)
