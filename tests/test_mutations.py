"""Tests for store mutations and commit-time validation."""

from datetime import datetime

import pytest

from zeus.approval.mutations import (
    AddDependency,
    CreateEntity,
    DeleteEntity,
    Mutation,
    UpdateEntity,
    apply_mutation,
    preview_mutation,
)
from zeus.errors import CycleError, EntityNotFound, EntityReferenceError, ValidationError
from zeus.models import Consideration, Decision, Objective
from zeus.store.store import EntityStore


def _apply(store: EntityStore, *operations, now: datetime) -> EntityStore:
    return apply_mutation(store, Mutation(tuple(operations)), now=now)


def test_create_sets_timestamps(sample_store: EntityStore, now: datetime) -> None:
    after = _apply(
        sample_store,
        CreateEntity("activity", {"id": "act-new", "title": "Release", "parent_id": "del-api"}),
        now=now,
    )
    created = after.require("act-new")
    assert created.created_at == created.updated_at == "2026-06-01T00:00:00Z"
    assert "act-new" not in sample_store


def test_create_generates_prefixed_id(now: datetime) -> None:
    after = apply_mutation(EntityStore(), Mutation((CreateEntity("objective", {"title": "Grow"}),)), now=now)
    [objective] = after.objectives
    assert objective.id.startswith("obj-")


def test_create_rejects_existing_id_and_second_vision(sample_store: EntityStore, now: datetime) -> None:
    with pytest.raises(ValidationError, match="already exists"):
        _apply(sample_store, CreateEntity("objective", {"id": "obj-root"}), now=now)
    with pytest.raises(ValidationError, match="vision"):
        _apply(sample_store, CreateEntity("vision", {"id": "vision-2"}), now=now)


def test_update_recomputes_risk_score(sample_store: EntityStore, now: datetime) -> None:
    after = _apply(sample_store, UpdateEntity("risk-1", {"impact": "low"}), now=now)
    assert after.require("risk-1").score == 3
    assert sample_store.require("risk-1").score == 9


def test_update_rejects_unknown_and_protected_fields(sample_store: EntityStore, now: datetime) -> None:
    with pytest.raises(ValidationError, match="unknown field"):
        _apply(sample_store, UpdateEntity("act-b", {"colour": "red"}), now=now)
    with pytest.raises(ValidationError, match="cannot change id"):
        _apply(sample_store, UpdateEntity("act-b", {"id": "act-z"}), now=now)


def test_update_rejects_values_outside_the_allowed_set(sample_store: EntityStore, now: datetime) -> None:
    with pytest.raises(ValidationError, match="status must be one of"):
        _apply(sample_store, UpdateEntity("act-b", {"status": "bogus"}), now=now)
    with pytest.raises(ValidationError, match="between 0 and 100"):
        _apply(sample_store, UpdateEntity("act-b", {"progress": 140}), now=now)
    with pytest.raises(ValidationError, match="keys must be strings"):
        _apply(sample_store, CreateEntity("objective", {"id": "obj-meta", "metadata": {1: "x"}}), now=now)
    assert sample_store.require("act-b").status == "active"


def test_done_activity_cannot_be_modified_but_can_be_deleted(sample_store: EntityStore, now: datetime) -> None:
    with pytest.raises(ValidationError, match="done activities"):
        _apply(sample_store, UpdateEntity("act-a", {"title": "Redesign"}), now=now)

    after = _apply(
        sample_store,
        UpdateEntity("act-b", {"depends_on": []}),
        UpdateEntity("act-d", {"depends_on": []}),
        DeleteEntity("act-a"),
        now=now,
    )
    assert "act-a" not in after


def test_vision_success_criteria_may_only_grow(sample_store: EntityStore, now: datetime) -> None:
    after = _apply(sample_store, UpdateEntity("vision-1", {"success_criteria": ["usable", "fast"]}), now=now)
    assert after.vision.success_criteria == ["usable", "fast"]

    with pytest.raises(ValidationError, match="only grow"):
        _apply(sample_store, UpdateEntity("vision-1", {"success_criteria": ["fast"]}), now=now)
    with pytest.raises(ValidationError, match="only success_criteria"):
        _apply(sample_store, UpdateEntity("vision-1", {"statement": "Something else"}), now=now)


def test_decisions_are_immutable(now: datetime) -> None:
    store = EntityStore([
        Objective(id="obj-1"),
        Consideration(id="con-1", objective_id="obj-1"),
        Decision(id="dec-1", consideration_id="con-1", selected_option_id="a"),
    ])
    with pytest.raises(ValidationError, match="immutable"):
        _apply(store, UpdateEntity("dec-1", {"rationale": "changed my mind"}), now=now)
    with pytest.raises(ValidationError, match="immutable"):
        _apply(store, DeleteEntity("dec-1"), now=now)


def test_non_negotiable_constraint_is_only_superseded(sample_store: EntityStore, now: datetime) -> None:
    with pytest.raises(ValidationError, match="superseded"):
        _apply(sample_store, DeleteEntity("const-1"), now=now)
    with pytest.raises(ValidationError, match="superseded"):
        _apply(sample_store, UpdateEntity("const-1", {"non_negotiable": False}), now=now)

    after = _apply(
        sample_store,
        CreateEntity("constraint", {"id": "const-2", "title": "Python 3.11+", "non_negotiable": True}),
        UpdateEntity("const-1", {"superseded_by": "const-2"}),
        now=now,
    )
    assert after.require("const-1").superseded_by == "const-2"


def test_introducing_a_cycle_raises_cycle_error(sample_store: EntityStore, now: datetime) -> None:
    with pytest.raises(CycleError) as exc:
        _apply(sample_store, AddDependency("act-b", "act-c"), now=now)
    assert exc.value.path == ["act-b", "act-c", "act-b"]
    assert sample_store.require("act-b").depends_on == ["act-a"]


def test_breaking_a_required_reference_raises(sample_store: EntityStore, now: datetime) -> None:
    with pytest.raises(EntityReferenceError) as exc:
        _apply(sample_store, DeleteEntity("obj-root"), now=now)
    assert exc.value.source_id == "del-api"
    assert exc.value.field == "objective_id"
    assert "obj-root" in sample_store


def test_missing_entity_raises(sample_store: EntityStore, now: datetime) -> None:
    with pytest.raises(EntityNotFound):
        _apply(sample_store, UpdateEntity("act-missing", {"title": "x"}), now=now)


def test_existing_errors_do_not_block_unrelated_changes(now: datetime) -> None:
    store = EntityStore([Objective(id="obj-1", parent_id="obj-1")])
    after = _apply(store, UpdateEntity("obj-1", {"title": "Still cyclic"}), now=now)
    assert after.require("obj-1").title == "Still cyclic"


def test_add_dependency_is_idempotent(sample_store: EntityStore, now: datetime) -> None:
    after = _apply(sample_store, AddDependency("act-c", "act-a"), AddDependency("act-c", "act-a"), now=now)
    assert after.require("act-c").depends_on == ["act-b", "act-a"]


def test_preview_reports_changes_without_committing(sample_store: EntityStore, now: datetime) -> None:
    changes = preview_mutation(
        sample_store,
        Mutation((UpdateEntity("act-c", {"priority": "high"}), CreateEntity("objective", {"id": "obj-x"}))),
        now=now,
    )
    assert changes.added == ["obj-x"]
    assert changes.changed == ["act-c"]
    assert "obj-x" not in sample_store


def test_mutation_dict_round_trip() -> None:
    mutation = Mutation(
        (
            CreateEntity("activity", {"id": "act-1"}),
            UpdateEntity("act-1", {"status": "active"}),
            AddDependency("act-2", "act-1"),
            DeleteEntity("act-3"),
        ),
        "several changes",
    )
    assert Mutation.from_dict(mutation.to_dict()) == mutation
    assert Mutation.from_dict(None).is_empty
