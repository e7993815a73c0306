"""Detection of delivery bottlenecks: block chains, overdue and stagnant work, isolated entities, unmitigated risks."""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal

from ..config import Settings
from ..models import Activity
from ..store.store import EntityStore
from ..util import parse_timestamp, utc_now

logger = logging.getLogger(__name__)

BottleneckType = Literal["block_chain", "overdue", "long_stagnation", "isolated_entity", "high_risk"]

BottleneckSeverity = Literal["critical", "high", "medium", "warning"]
SEVERITY_ORDER = {"critical": 0, "high": 1, "medium": 2, "warning": 3}


@dataclass
class Bottleneck:
    type: BottleneckType
    severity: BottleneckSeverity
    entity_ids: tuple[str, ...]
    message: str
    impact: str = ""
    suggestion: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "severity": self.severity,
            "entity_ids": list(self.entity_ids),
            "message": self.message,
            "impact": self.impact,
            "suggestion": self.suggestion,
        }


@dataclass
class BottleneckAnalysis:
    bottlenecks: list[Bottleneck] = field(default_factory=list)

    @property
    def counts(self) -> dict[str, int]:
        counter = Counter(b.severity for b in self.bottlenecks)
        return {severity: counter.get(severity, 0) for severity in SEVERITY_ORDER}

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": len(self.bottlenecks),
            "counts": self.counts,
            "bottlenecks": [b.to_dict() for b in self.bottlenecks],
        }


class BottleneckAnalyzer:
    """Runs every bottleneck detector over one store state."""

    def __init__(self, store: EntityStore, settings: Settings | None = None, now: datetime | None = None):
        self.store = store
        self.settings = settings or Settings()
        now = now or utc_now()
        self.now = now if now.tzinfo else now.replace(tzinfo=timezone.utc)

    def analyze(self) -> BottleneckAnalysis:
        found = []
        found.extend(self.detect_block_chains())
        found.extend(self.detect_overdue())
        found.extend(self.detect_stagnation())
        found.extend(self.detect_isolated())
        found.extend(self.detect_high_risks())
        found.sort(key=lambda b: (SEVERITY_ORDER[b.severity], b.entity_ids))
        logger.debug("Found %d bottleneck(s)", len(found))
        return BottleneckAnalysis(bottlenecks=found)

    def _open_activities(self) -> list[Activity]:
        return [a for a in self.store.activities if not a.is_done]

    def detect_block_chains(self) -> list[Bottleneck]:
        """Two or more blocked activities linked by dependencies."""
        blocked = {a.id: a for a in self.store.activities if a.status == "blocked"}
        dependents: dict[str, list[str]] = {}
        for activity in self.store.activities:
            for dep in activity.depends_on:
                dependents.setdefault(dep, []).append(activity.id)

        # Chain heads first: blocked activities not waiting on another blocked one
        heads = sorted(blocked, key=lambda i: (any(d in blocked for d in blocked[i].depends_on), i))
        visited: set[str] = set()
        results = []
        for head in heads:
            if head in visited:
                continue
            chain: list[str] = []
            stack = [head]
            while stack:
                current = stack.pop()
                if current in visited:
                    continue
                visited.add(current)
                chain.append(current)
                stack.extend(sorted((d for d in dependents.get(current, []) if d in blocked), reverse=True))
            if len(chain) >= 2:
                title = blocked[head].title or head
                results.append(
                    Bottleneck(
                        type="block_chain",
                        severity="critical",
                        entity_ids=tuple(chain),
                        message=f"{len(chain)} activities blocked in a chain",
                        impact=f"completion of '{title}' and everything after it is delayed",
                        suggestion=f"resolve the blocker on {head} first",
                    )
                )
        return results

    def detect_overdue(self) -> list[Bottleneck]:
        results = []
        for activity in self._open_activities():
            due = parse_timestamp(activity.due_date)
            if due is None:
                continue
            days = (self.now - due).days
            if days <= 0:
                continue
            if days > 7:
                severity = "critical"
            elif days <= 1:
                severity = "medium"
            else:
                severity = "high"
            results.append(
                Bottleneck(
                    type="overdue",
                    severity=severity,
                    entity_ids=(activity.id,),
                    message=f"{days} day(s) past due",
                    impact="downstream work slips",
                    suggestion="prioritise it or revise the due date",
                )
            )
        return results

    def detect_stagnation(self) -> list[Bottleneck]:
        results = []
        for activity in self._open_activities():
            updated = parse_timestamp(activity.updated_at)
            if updated is None:
                continue
            days = (self.now - updated).days
            if days < self.settings.stagnation_days:
                continue
            results.append(
                Bottleneck(
                    type="long_stagnation",
                    severity="high" if days > 30 else "medium",
                    entity_ids=(activity.id,),
                    message=f"no change for {days} day(s)",
                    impact="progress may be stuck",
                    suggestion="check its status and clear any blockers",
                )
            )
        return results

    def detect_isolated(self) -> list[Bottleneck]:
        results = []
        for deliverable in self.store.deliverables:
            if not deliverable.objective_id:
                results.append(
                    Bottleneck(
                        type="isolated_entity",
                        severity="warning",
                        entity_ids=(deliverable.id,),
                        message="deliverable is not linked to an objective",
                        impact="its contribution to the project is unclear",
                        suggestion="link it to an objective or remove it",
                    )
                )

        dependents = {dep for a in self.store.activities for dep in a.depends_on}
        for activity in self.store.activities:
            if activity.parent_id or activity.depends_on or activity.id in dependents:
                continue
            results.append(
                Bottleneck(
                    type="isolated_entity",
                    severity="warning",
                    entity_ids=(activity.id,),
                    message="activity has no parent and no dependency links",
                    impact="its place in the plan is unclear",
                    suggestion="attach it to a deliverable or parent activity",
                )
            )
        return results

    def detect_high_risks(self) -> list[Bottleneck]:
        results = []
        for risk in self.store.risks:
            if risk.mitigated or risk.score < self.settings.risk_threshold:
                continue
            results.append(
                Bottleneck(
                    type="high_risk",
                    severity="critical" if risk.score >= 9 else "high",
                    entity_ids=(risk.id,),
                    message=f"unmitigated risk (score {risk.score})",
                    impact="may derail the objective it relates to",
                    suggestion="plan and carry out a mitigation",
                )
            )
        return results


def analyze_bottlenecks(
    store: EntityStore, settings: Settings | None = None, now: datetime | None = None
) -> BottleneckAnalysis:
    return BottleneckAnalyzer(store, settings, now).analyze()
