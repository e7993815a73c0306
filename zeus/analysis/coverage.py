"""Coverage of the plan: every objective delivered by something, every deliverable worked on."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Literal

from ..store.store import EntityStore

logger = logging.getLogger(__name__)

CoverageIssueType = Literal["no_deliverables", "no_activities", "unlinked_activity"]
CoverageSeverity = Literal["error", "warning"]


@dataclass(frozen=True)
class CoverageIssue:
    type: CoverageIssueType
    severity: CoverageSeverity
    entity_id: str
    entity_kind: str
    title: str
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "severity": self.severity,
            "entity_id": self.entity_id,
            "entity_kind": self.entity_kind,
            "title": self.title,
            "message": self.message,
        }


@dataclass
class CoverageAnalysis:
    issues: list[CoverageIssue] = field(default_factory=list)
    score: int = 100  # 0-100
    objectives_covered: int = 0
    objectives_total: int = 0
    deliverables_covered: int = 0
    deliverables_total: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "score": self.score,
            "objectives_covered": self.objectives_covered,
            "objectives_total": self.objectives_total,
            "deliverables_covered": self.deliverables_covered,
            "deliverables_total": self.deliverables_total,
            "issues": [i.to_dict() for i in self.issues],
        }


def analyze_coverage(store: EntityStore) -> CoverageAnalysis:
    """
    Find objectives without deliverables, deliverables without activities
    and activities attached to nothing.

    The score averages the covered share of objectives and of deliverables.
    Without either it is the share of activities that are linked.
    """
    objectives = store.objectives
    deliverables = store.deliverables
    activities = store.activities
    result = CoverageAnalysis(objectives_total=len(objectives), deliverables_total=len(deliverables))

    delivered = {d.objective_id for d in deliverables if d.objective_id}
    for objective in objectives:
        if objective.id in delivered:
            result.objectives_covered += 1
            continue
        result.issues.append(
            CoverageIssue(
                type="no_deliverables",
                severity="error",
                entity_id=objective.id,
                entity_kind="objective",
                title=objective.title,
                message="objective has no deliverable",
            )
        )

    worked_on = {a.parent_id for a in activities if a.parent_id}
    for deliverable in deliverables:
        if deliverable.id in worked_on:
            result.deliverables_covered += 1
            continue
        result.issues.append(
            CoverageIssue(
                type="no_activities",
                severity="warning",
                entity_id=deliverable.id,
                entity_kind="deliverable",
                title=deliverable.title,
                message="deliverable has no activity",
            )
        )

    unlinked = [a for a in activities if not a.parent_id]
    for activity in unlinked:
        result.issues.append(
            CoverageIssue(
                type="unlinked_activity",
                severity="warning",
                entity_id=activity.id,
                entity_kind="activity",
                title=activity.title,
                message="activity is not attached to an objective, deliverable or activity",
            )
        )

    if objectives:
        score = result.objectives_covered * 100 // len(objectives)
        if deliverables:
            score = (score + result.deliverables_covered * 100 // len(deliverables)) // 2
        result.score = score
    elif deliverables:
        result.score = result.deliverables_covered * 100 // len(deliverables)
    elif activities:
        result.score = 100 - len(unlinked) * 100 // len(activities)

    logger.debug("Coverage score %d with %d issue(s)", result.score, len(result.issues))
    return result
