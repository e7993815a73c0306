"""Integrity checks over an entity store."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Literal

from ..models import Entity
from ..store.graph import DependencyGraph
from ..store.relations import RelationDescriptor, relations_for
from ..store.store import EntityStore

logger = logging.getLogger(__name__)

FindingKind = Literal["dangling_reference", "orphan", "cycle", "non_negotiable_violation"]

FindingSeverity = Literal["error", "warning"]

# Check name -> finding kind it produces, in run order
CHECKS = {
    "references": "dangling_reference",
    "orphans": "orphan",
    "cycles": "cycle",
    "non_negotiable": "non_negotiable_violation",
}


@dataclass
class Finding:
    """A single integrity finding."""

    kind: FindingKind
    severity: FindingSeverity
    message: str
    entity_ids: tuple[str, ...]
    field: str | None = None
    fixable: bool = False
    path: tuple[str, ...] = ()  # cycle path, first id repeated at the end
    entity_kind: str | None = None

    def __str__(self) -> str:
        ids = ", ".join(self.entity_ids)
        return f"{self.severity.upper()}: [{self.kind}] {ids} - {self.message}"

    @property
    def key(self) -> tuple:
        """Identity used to compare findings across two stores."""
        return (self.kind, self.severity, self.entity_ids, self.field)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "kind": self.kind,
            "severity": self.severity,
            "message": self.message,
            "entity_ids": list(self.entity_ids),
            "field": self.field,
            "fixable": self.fixable,
        }
        if self.path:
            data["path"] = list(self.path)
        return data


@dataclass
class DiagnosisResult:
    """Summary of a validation run."""

    findings: list[Finding] = field(default_factory=list)

    @property
    def errors(self) -> list[Finding]:
        return [f for f in self.findings if f.severity == "error"]

    @property
    def warnings(self) -> list[Finding]:
        return [f for f in self.findings if f.severity == "warning"]

    @property
    def fixable_count(self) -> int:
        return sum(1 for f in self.findings if f.fixable)

    @property
    def overall(self) -> str:
        if self.errors:
            return "unhealthy"
        if self.warnings:
            return "degraded"
        return "healthy"

    def check_status(self, check: str) -> str:
        """pass / warn / fail for one named check."""
        kind = CHECKS[check]
        relevant = [f for f in self.findings if f.kind == kind]
        if any(f.severity == "error" for f in relevant):
            return "fail"
        if relevant:
            return "warn"
        return "pass"

    def to_dict(self) -> dict[str, Any]:
        return {
            "overall": self.overall,
            "checks": {name: self.check_status(name) for name in CHECKS},
            "errors": len(self.errors),
            "warnings": len(self.warnings),
            "fixable": self.fixable_count,
            "findings": [f.to_dict() for f in self.findings],
        }


class IntegrityValidator:
    """Collection of integrity checks. Never mutates the store."""

    def __init__(self, store: EntityStore):
        self.store = store

    def run_all(self) -> list[Finding]:
        """Run all checks and return findings in a deterministic order."""
        results = []
        results.extend(self.check_references())
        results.extend(self.check_orphans())
        results.extend(self.check_cycles())
        results.extend(self.check_non_negotiable())
        logger.debug("Validation produced %d finding(s)", len(results))
        return results

    def check_references(self) -> list[Finding]:
        """Every reference must resolve to an entity of an allowed kind."""
        results = []
        for entity in self.store.all():
            for descriptor in relations_for(entity.kind):
                results.extend(self._check_relation(entity, descriptor))
        return results

    def _check_relation(self, entity: Entity, descriptor: RelationDescriptor) -> list[Finding]:
        results = []
        value = getattr(entity, descriptor.field, None)
        if descriptor.many:
            items = value or []
            targets = [
                getattr(item, descriptor.item_key) if descriptor.item_key else item
                for item in items
            ]
        else:
            targets = [value] if value else []

        for target in targets:
            if not target:
                continue
            if descriptor.kind == "usecase" and descriptor.field == "relations" and target == entity.id:
                # Self relations are reported by check_cycles
                continue
            target_kind = self.store.kind_of(target)
            if target_kind is None:
                severity = "error" if descriptor.required else "warning"
                results.append(
                    Finding(
                        kind="dangling_reference",
                        severity=severity,
                        message=f"{descriptor.label} references missing entity {target}",
                        entity_ids=(entity.id, target),
                        field=descriptor.field,
                        fixable=not descriptor.required,
                        entity_kind=entity.kind,
                    )
                )
            elif target_kind not in descriptor.targets:
                allowed = ", ".join(sorted(descriptor.targets))
                results.append(
                    Finding(
                        kind="dangling_reference",
                        severity="error",
                        message=f"{descriptor.label} references a {target_kind} ({target}); expected {allowed}",
                        entity_ids=(entity.id, target),
                        field=descriptor.field,
                        fixable=not descriptor.required,
                        entity_kind=entity.kind,
                    )
                )
        return results

    def check_orphans(self) -> list[Finding]:
        """Required single-valued relations must be set; isolated activities are flagged."""
        results = []
        for entity in self.store.all():
            for descriptor in relations_for(entity.kind):
                if not descriptor.required or descriptor.many:
                    continue
                if not getattr(entity, descriptor.field, None):
                    results.append(
                        Finding(
                            kind="orphan",
                            severity=descriptor.severity_when_missing,  # type: ignore[arg-type]
                            message=f"{entity.kind} has no {descriptor.field}",
                            entity_ids=(entity.id,),
                            field=descriptor.field,
                            entity_kind=entity.kind,
                        )
                    )

        dependents: set[str] = set()
        for activity in self.store.activities:
            dependents.update(activity.depends_on)
        for activity in self.store.activities:
            if activity.parent_id or activity.depends_on or activity.id in dependents:
                continue
            results.append(
                Finding(
                    kind="orphan",
                    severity="warning",
                    message="activity has no parent, no dependencies and no dependents",
                    entity_ids=(activity.id,),
                    entity_kind="activity",
                )
            )
        return results

    def check_cycles(self) -> list[Finding]:
        """Objective parents, Activity parents and Activity dependencies must be acyclic."""
        results = []

        objective_parents = DependencyGraph.from_edges({
            o.id: [o.parent_id] if self.store.kind_of(o.parent_id) == "objective" else []
            for o in self.store.objectives
        })
        results.extend(self._cycle_findings(objective_parents, "objective", "parent_id", "parent"))

        activity_parents = DependencyGraph.from_edges({
            a.id: [a.parent_id] if self.store.kind_of(a.parent_id) == "activity" else []
            for a in self.store.activities
        })
        results.extend(self._cycle_findings(activity_parents, "activity", "parent_id", "parent"))

        dependencies = DependencyGraph.from_activities(self.store.activities)
        results.extend(self._cycle_findings(dependencies, "activity", "depends_on", "dependency"))

        for usecase in self.store.usecases:
            if any(rel.target_id == usecase.id for rel in usecase.relations):
                results.append(
                    Finding(
                        kind="cycle",
                        severity="error",
                        message="use case relates to itself",
                        entity_ids=(usecase.id,),
                        field="relations",
                        path=(usecase.id, usecase.id),
                        entity_kind="usecase",
                    )
                )
        return results

    def _cycle_findings(
        self, graph: DependencyGraph, entity_kind: str, field_name: str, label: str
    ) -> list[Finding]:
        results = []
        for cycle in graph.find_cycles():
            results.append(
                Finding(
                    kind="cycle",
                    severity="error",
                    message=f"{entity_kind} {label} cycle: {' -> '.join(cycle)}",
                    entity_ids=tuple(cycle[:-1]),
                    field=field_name,
                    # self loops and two-node loops have an unambiguous edge to drop
                    fixable=len(cycle) <= 3,
                    path=tuple(cycle),
                    entity_kind=entity_kind,
                )
            )
        return results

    def check_non_negotiable(self) -> list[Finding]:
        """Single vision; non-negotiable constraints only change by supersession."""
        results = []
        visions = self.store.all("vision")
        if len(visions) > 1:
            results.append(
                Finding(
                    kind="non_negotiable_violation",
                    severity="error",
                    message=f"project has {len(visions)} visions; at most one is allowed",
                    entity_ids=tuple(v.id for v in visions),
                    entity_kind="vision",
                )
            )

        for constraint in self.store.constraints:
            if not constraint.non_negotiable or not constraint.superseded_by:
                continue
            if constraint.superseded_by == constraint.id or self.store.kind_of(constraint.superseded_by) != "constraint":
                results.append(
                    Finding(
                        kind="non_negotiable_violation",
                        severity="error",
                        message=f"non-negotiable constraint superseded by {constraint.superseded_by}, which is not another constraint",
                        entity_ids=(constraint.id, constraint.superseded_by),
                        field="superseded_by",
                        entity_kind="constraint",
                    )
                )
        return results


def validate(store: EntityStore) -> list[Finding]:
    """Run every integrity check on ``store``."""
    return IntegrityValidator(store).run_all()


def diagnose(store: EntityStore) -> DiagnosisResult:
    return DiagnosisResult(findings=validate(store))
