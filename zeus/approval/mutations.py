"""
Store mutations and commit-time validation.

A Mutation is an ordered list of operations. ``apply_mutation`` runs them on
a deep copy of the store, then re-validates: any error finding that was not
already present before the mutation rejects the whole change. The caller's
store is never touched, so a failed mutation leaves nothing behind.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, ClassVar

from ..audit_log import ChangeSummary, diff_stores
from ..doctor.validator import Finding, validate
from ..errors import CycleError, EntityReferenceError, ValidationError
from ..models import ENTITY_TYPES, Activity, Entity
from ..store.codec import entity_from_dict, entity_to_dict
from ..store.store import EntityStore
from ..util import format_timestamp, new_id, utc_now

logger = logging.getLogger(__name__)

# Fields a caller may never set through an update
_PROTECTED_FIELDS = frozenset({"id", "created_at", "updated_at"})


def _guard_update(entity: Entity, changes: dict[str, Any]) -> None:
    """Enforce per-kind immutability rules before an update."""
    protected = sorted(_PROTECTED_FIELDS & set(changes))
    if protected:
        raise ValidationError(f"{entity.id}: cannot change {', '.join(protected)}")

    if entity.kind == "decision":
        raise ValidationError(f"{entity.id}: decisions are immutable once recorded")

    if isinstance(entity, Activity) and entity.is_done:
        raise ValidationError(f"{entity.id}: done activities can be deleted but not modified")

    if entity.kind == "vision":
        extra = sorted(set(changes) - {"success_criteria"})
        if extra:
            raise ValidationError(f"{entity.id}: only success_criteria may change on the vision")
        old = list(getattr(entity, "success_criteria"))
        new = list(changes.get("success_criteria") or [])
        if new[: len(old)] != old:
            raise ValidationError(f"{entity.id}: success_criteria may only grow")

    if entity.kind == "constraint" and getattr(entity, "non_negotiable"):
        if changes.get("non_negotiable", True) is False:
            raise ValidationError(f"{entity.id}: non-negotiable constraints can only be superseded")


class Operation:
    """Base class for a single store operation."""

    op: ClassVar[str] = ""

    def apply(self, store: EntityStore, timestamp: str) -> None:
        raise NotImplementedError

    def describe(self) -> str:
        raise NotImplementedError

    def to_dict(self) -> dict[str, Any]:
        raise NotImplementedError


@dataclass(frozen=True)
class CreateEntity(Operation):
    entity_kind: str
    fields: dict[str, Any] = field(default_factory=dict)

    op: ClassVar[str] = "create"

    def apply(self, store: EntityStore, timestamp: str) -> None:
        cls = ENTITY_TYPES.get(self.entity_kind)
        if cls is None:
            raise ValidationError(f"Unknown entity kind: {self.entity_kind}")
        data = copy.deepcopy(self.fields)
        entity_id = data.get("id") or new_id(cls.prefix)
        if entity_id in store:
            raise ValidationError(f"Entity {entity_id} already exists")
        if self.entity_kind == "vision" and store.vision is not None:
            raise ValidationError("A vision already exists; at most one is allowed")
        data["id"] = entity_id
        data["created_at"] = timestamp
        data["updated_at"] = timestamp
        store.put(entity_from_dict(self.entity_kind, data))

    def describe(self) -> str:
        title = self.fields.get("title") or self.fields.get("id") or ""
        return f"create {self.entity_kind} {title}".rstrip()

    def to_dict(self) -> dict[str, Any]:
        return {"op": self.op, "entity_kind": self.entity_kind, "fields": dict(self.fields)}


@dataclass(frozen=True)
class UpdateEntity(Operation):
    entity_id: str
    changes: dict[str, Any] = field(default_factory=dict)

    op: ClassVar[str] = "update"

    def apply(self, store: EntityStore, timestamp: str) -> None:
        entity = store.require(self.entity_id)
        _guard_update(entity, self.changes)
        data = entity_to_dict(entity)
        unknown = sorted(set(self.changes) - set(data))
        if unknown:
            raise ValidationError(f"{entity.id}: unknown field(s) {', '.join(unknown)}")
        data.update(copy.deepcopy(self.changes))
        data["updated_at"] = timestamp
        # Rebuilding the record recomputes derived fields such as Risk.score
        store.put(entity_from_dict(entity.kind, data))

    def describe(self) -> str:
        return f"update {self.entity_id} ({', '.join(sorted(self.changes))})"

    def to_dict(self) -> dict[str, Any]:
        return {"op": self.op, "entity_id": self.entity_id, "changes": dict(self.changes)}


@dataclass(frozen=True)
class DeleteEntity(Operation):
    entity_id: str

    op: ClassVar[str] = "delete"

    def apply(self, store: EntityStore, timestamp: str) -> None:
        entity = store.require(self.entity_id)
        if entity.kind == "constraint" and getattr(entity, "non_negotiable"):
            raise ValidationError(f"{entity.id}: non-negotiable constraints can only be superseded")
        if entity.kind == "decision":
            raise ValidationError(f"{entity.id}: decisions are immutable once recorded")
        if entity.kind == "vision":
            raise ValidationError(f"{entity.id}: the vision cannot be deleted")
        store.remove(entity.id)

    def describe(self) -> str:
        return f"delete {self.entity_id}"

    def to_dict(self) -> dict[str, Any]:
        return {"op": self.op, "entity_id": self.entity_id}


@dataclass(frozen=True)
class AddDependency(Operation):
    activity_id: str
    depends_on_id: str

    op: ClassVar[str] = "add_dependency"

    def apply(self, store: EntityStore, timestamp: str) -> None:
        activity = store.require(self.activity_id)
        if not isinstance(activity, Activity):
            raise ValidationError(f"{self.activity_id} is a {activity.kind}, not an activity")
        if self.depends_on_id in activity.depends_on:
            return
        UpdateEntity(
            self.activity_id, {"depends_on": [*activity.depends_on, self.depends_on_id]}
        ).apply(store, timestamp)

    def describe(self) -> str:
        return f"make {self.activity_id} depend on {self.depends_on_id}"

    def to_dict(self) -> dict[str, Any]:
        return {"op": self.op, "activity_id": self.activity_id, "depends_on_id": self.depends_on_id}


OPERATION_TYPES: dict[str, type[Operation]] = {
    cls.op: cls for cls in (CreateEntity, UpdateEntity, DeleteEntity, AddDependency)
}


def operation_from_dict(data: dict[str, Any]) -> Operation:
    payload = dict(data)
    cls = OPERATION_TYPES.get(payload.pop("op", ""))
    if cls is None:
        raise ValidationError(f"Unknown mutation operation: {data.get('op')!r}")
    return cls(**payload)  # type: ignore[call-arg]


@dataclass(frozen=True)
class Mutation:
    """An ordered group of operations applied atomically."""

    operations: tuple[Operation, ...] = ()
    description: str = ""

    @property
    def is_empty(self) -> bool:
        return not self.operations

    def describe(self) -> str:
        if self.description:
            return self.description
        if not self.operations:
            return "no-op"
        return "; ".join(op.describe() for op in self.operations)

    def to_dict(self) -> dict[str, Any]:
        return {
            "description": self.description,
            "operations": [op.to_dict() for op in self.operations],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "Mutation":
        data = data or {}
        return cls(
            operations=tuple(operation_from_dict(op) for op in data.get("operations", [])),
            description=str(data.get("description", "")),
        )


def _raise_for_new_errors(before: list[Finding], after: list[Finding]) -> None:
    known = {f.key for f in before}
    introduced = [f for f in after if f.severity == "error" and f.key not in known]
    if not introduced:
        return

    # Cycles first: they name the whole path, which is the most useful report
    for finding in introduced:
        if finding.kind == "cycle":
            raise CycleError(list(finding.path), finding.entity_kind or "activity")
    for finding in introduced:
        if finding.kind in ("dangling_reference", "orphan"):
            source = finding.entity_ids[0]
            target = finding.entity_ids[1] if len(finding.entity_ids) > 1 else ""
            raise EntityReferenceError(source, finding.field or "", target, required=True)
    raise ValidationError(introduced[0].message)


def apply_mutation(
    store: EntityStore,
    mutation: Mutation,
    *,
    now: datetime | None = None,
) -> EntityStore:
    """
    Apply ``mutation`` to a copy of ``store`` and return the copy.

    Raises:
        CycleError: the change would introduce a cycle
        EntityReferenceError: a required reference would no longer resolve
        ValidationError: an invariant would be violated
        EntityNotFound: an operation names a missing entity
    """
    timestamp = format_timestamp(now or utc_now())
    working = store.copy()
    for operation in mutation.operations:
        operation.apply(working, timestamp)
    _raise_for_new_errors(validate(store), validate(working))
    logger.debug("Mutation applied to working copy: %s", mutation.describe())
    return working


def preview_mutation(
    store: EntityStore,
    mutation: Mutation,
    *,
    now: datetime | None = None,
) -> ChangeSummary:
    """Compute what ``mutation`` would change without committing anything."""
    return diff_stores(store, apply_mutation(store, mutation, now=now))
