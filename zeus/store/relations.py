"""
Declarative relation table for cross-entity references.

Each RelationDescriptor names one reference field on one entity kind, the
kinds it may point at and whether it is required. The validator, the fixer
and the store's reverse index all loop over RELATIONS instead of hard-coding
per-kind checks.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator

from ..models import ENTITY_TYPES, Entity

ALL_KINDS = frozenset(ENTITY_TYPES)
OWNER_KINDS = frozenset({"activity", "deliverable", "objective"})
CONTEXT_KINDS = frozenset({"objective", "deliverable"})


@dataclass(frozen=True)
class RelationDescriptor:
    """One reference field on one entity kind."""

    kind: str
    field: str
    targets: frozenset[str]
    required: bool = False
    many: bool = False
    item_key: str | None = None  # key inside nested list items (e.g. actors[].actor_id)
    hierarchy: bool = False  # parent link that contributes children to the WBS tree
    severity_when_missing: str = "warning"

    @property
    def label(self) -> str:
        if self.item_key:
            return f"{self.field}[].{self.item_key}"
        return self.field


RELATIONS: tuple[RelationDescriptor, ...] = (
    RelationDescriptor("objective", "parent_id", frozenset({"objective"}), hierarchy=True),
    RelationDescriptor(
        "deliverable", "objective_id", frozenset({"objective"}),
        required=True, hierarchy=True, severity_when_missing="error",
    ),
    RelationDescriptor("activity", "parent_id", OWNER_KINDS, hierarchy=True),
    RelationDescriptor("activity", "depends_on", frozenset({"activity"}), many=True),
    RelationDescriptor("problem", "relates_to", CONTEXT_KINDS),
    RelationDescriptor("risk", "relates_to", CONTEXT_KINDS),
    RelationDescriptor("risk", "mitigated_by", frozenset({"activity"})),
    RelationDescriptor("assumption", "relates_to", CONTEXT_KINDS),
    RelationDescriptor("constraint", "applies_to", ALL_KINDS),
    RelationDescriptor(
        "quality", "objective_id", frozenset({"objective"}),
        required=True, severity_when_missing="error",
    ),
    RelationDescriptor("consideration", "objective_id", frozenset({"objective"})),
    RelationDescriptor("consideration", "decision_id", frozenset({"decision"})),
    RelationDescriptor(
        "decision", "consideration_id", frozenset({"consideration"}),
        required=True, severity_when_missing="error",
    ),
    RelationDescriptor(
        "usecase", "objective_id", frozenset({"objective"}),
        required=True, severity_when_missing="error",
    ),
    RelationDescriptor(
        "usecase", "actors", frozenset({"actor"}),
        required=True, many=True, item_key="actor_id", severity_when_missing="error",
    ),
    RelationDescriptor("usecase", "subsystem_id", frozenset({"subsystem"})),
    RelationDescriptor(
        "usecase", "relations", frozenset({"usecase"}),
        required=True, many=True, item_key="target_id", severity_when_missing="error",
    ),
)


def relations_for(kind: str) -> list[RelationDescriptor]:
    return [r for r in RELATIONS if r.kind == kind]


def hierarchy_relations() -> list[RelationDescriptor]:
    return [r for r in RELATIONS if r.hierarchy]


def iter_targets(entity: Entity, descriptor: RelationDescriptor) -> Iterator[str]:
    """Yield the referenced ids stored in one relation field (empty ids skipped)."""
    value = getattr(entity, descriptor.field, None)
    if value is None:
        return
    if descriptor.many:
        for item in value:
            target = getattr(item, descriptor.item_key) if descriptor.item_key else item
            if target:
                yield target
    elif value:
        yield value


def iter_references(entity: Entity) -> Iterator[tuple[RelationDescriptor, str]]:
    """Yield (descriptor, target_id) for every reference held by ``entity``."""
    for descriptor in relations_for(entity.kind):
        for target in iter_targets(entity, descriptor):
            yield descriptor, target


@dataclass(frozen=True)
class OwnerRef:
    """Tagged reference to the owner of an Activity."""

    kind: str
    id: str
