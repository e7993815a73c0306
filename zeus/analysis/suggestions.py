"""
Rule-based next-action suggestions.

Each rule inspects the store plus the derived views (aggregated progress and
the schedule) and emits template-worded suggestions. Every suggestion
carries the concrete mutation that approving it would apply. Ids are
derived from (type, targets) so an unchanged store yields the same ids.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal

from ..approval.mutations import CreateEntity, Mutation, UpdateEntity
from ..config import Settings
from ..errors import CycleError
from ..models import Activity, Problem, Risk
from ..store.store import EntityStore
from ..util import format_timestamp, parse_timestamp, stable_id, utc_now
from .aggregate import AggregatedView, aggregate
from .critical_path import Schedule, analyze_dependencies

logger = logging.getLogger(__name__)

SuggestionType = Literal["new_activity", "priority_change", "dependency", "risk_mitigation", "schedule"]

Impact = Literal["high", "medium", "low"]
IMPACT_ORDER = {"high": 0, "medium": 1, "low": 2}


@dataclass
class Suggestion:
    id: str
    type: SuggestionType
    description: str
    rationale: str
    impact: Impact
    target_ids: tuple[str, ...]
    affected_count: int = 0
    mutation: Mutation = field(default_factory=Mutation)
    status: str = "pending"
    created_at: str = ""

    @property
    def rank_key(self) -> tuple:
        return (IMPACT_ORDER[self.impact], -self.affected_count, self.type, self.target_ids)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "description": self.description,
            "rationale": self.rationale,
            "impact": self.impact,
            "status": self.status,
            "created_at": self.created_at,
            "target_ids": list(self.target_ids),
            "affected_count": self.affected_count,
            "mutation": self.mutation.to_dict(),
        }


def _downstream_impact(count: int) -> Impact:
    if count >= 3:
        return "high"
    if count >= 1:
        return "medium"
    return "low"


class SuggestionEngine:
    """Collection of suggestion rules over one store state."""

    def __init__(
        self,
        store: EntityStore,
        aggregated: AggregatedView,
        schedule: Schedule | None,
        settings: Settings,
        now: datetime,
    ):
        self.store = store
        self.aggregated = aggregated
        self.schedule = schedule
        self.settings = settings
        self.now = now
        self.created_at = format_timestamp(now)

    def _make(
        self,
        type_: SuggestionType,
        targets: tuple[str, ...],
        description: str,
        rationale: str,
        impact: Impact,
        affected_count: int,
        mutation: Mutation,
    ) -> Suggestion:
        return Suggestion(
            id=stable_id("sugg", type_, *targets),
            type=type_,
            description=description,
            rationale=rationale,
            impact=impact,
            target_ids=targets,
            affected_count=affected_count,
            mutation=mutation,
            created_at=self.created_at,
        )

    def _downstream(self, activity_id: str) -> int:
        return self.schedule.downstream_count(activity_id) if self.schedule else 0

    def run_all(self) -> list[Suggestion]:
        results = []
        results.extend(self.check_blocked_activities())
        results.extend(self.check_problems())
        results.extend(self.check_risks())
        results.extend(self.check_critical_path())
        results.extend(self.check_deadlines())
        results.extend(self.check_draft_backlog())
        return results

    def _is_blocked(self, activity: Activity) -> bool:
        if activity.is_done:
            return False
        if activity.status == "blocked":
            return True
        node = self.schedule.get(activity.id) if self.schedule else None
        return bool(node and node.blocked)

    def check_blocked_activities(self) -> list[Suggestion]:
        """Blocked activities with nothing active working towards unblocking them."""
        results = []
        for activity in self.store.activities:
            if not self._is_blocked(activity):
                continue
            unfinished = []
            for dep_id in activity.depends_on:
                dep = self.store.get(dep_id)
                if isinstance(dep, Activity) and not dep.is_done:
                    unfinished.append(dep)
            if any(dep.status == "active" for dep in unfinished):
                continue

            downstream = self._downstream(activity.id)
            impact = _downstream_impact(downstream)

            # A blocked predecessor cannot simply be started
            startable = [d for d in unfinished if d.status == "draft"]
            if startable:
                dep = startable[0]
                results.append(
                    self._make(
                        "dependency",
                        (activity.id, dep.id),
                        f"Start '{dep.title or dep.id}' to unblock '{activity.title or activity.id}'",
                        f"{activity.id} waits on {len(unfinished)} unfinished predecessor(s) and none is active; "
                        f"{downstream} activities depend on it.",
                        impact,
                        downstream,
                        Mutation(
                            (UpdateEntity(dep.id, {"status": "active"}),),
                            f"activate {dep.id}",
                        ),
                    )
                )
            else:
                if unfinished:
                    ids = ", ".join(d.id for d in unfinished)
                    waiting = f"{activity.id} waits only on blocked predecessor(s) {ids}"
                else:
                    waiting = f"{activity.id} is blocked with no unfinished predecessor to act on"
                new_id = stable_id("act", "unblock", activity.id)
                results.append(
                    self._make(
                        "new_activity",
                        (activity.id,),
                        f"Add an activity to resolve the blocker on '{activity.title or activity.id}'",
                        f"{waiting}; {downstream} activities depend on it.",
                        impact,
                        downstream,
                        Mutation(
                            (
                                CreateEntity("activity", {
                                    "id": new_id,
                                    "title": f"Unblock: {activity.title or activity.id}",
                                    "status": "active",
                                    "priority": "high",
                                    "parent_id": activity.parent_id,
                                    "metadata": {"source": activity.id},
                                }),
                                UpdateEntity(activity.id, {"depends_on": [*activity.depends_on, new_id]}),
                            ),
                            f"create {new_id} and make {activity.id} depend on it",
                        ),
                    )
                )
        return results

    def _has_open_followup(self, source_id: str) -> bool:
        return any(
            a.metadata.get("source") == source_id and not a.is_done for a in self.store.activities
        )

    def check_problems(self) -> list[Suggestion]:
        results = []
        for problem in self.store.problems:
            if problem.resolved or problem.severity not in ("high", "critical"):
                continue
            if self._has_open_followup(problem.id):
                continue
            results.append(
                self._make(
                    "risk_mitigation",
                    (problem.id,),
                    f"Address {problem.severity} problem '{problem.title or problem.id}'",
                    f"{problem.id} is unresolved with severity {problem.severity}.",
                    "high",
                    self._context_size(problem),
                    Mutation(
                        (CreateEntity("activity", self._followup_fields(problem, "Resolve problem")),),
                        f"create an activity to resolve {problem.id}",
                    ),
                )
            )
        return results

    def check_risks(self) -> list[Suggestion]:
        results = []
        for risk in self.store.risks:
            if risk.mitigated or risk.score < self.settings.risk_threshold:
                continue
            if self.store.kind_of(risk.mitigated_by) == "activity" or self._has_open_followup(risk.id):
                continue
            fields = self._followup_fields(risk, "Mitigate risk")
            results.append(
                self._make(
                    "risk_mitigation",
                    (risk.id,),
                    f"Mitigate risk '{risk.title or risk.id}' (score {risk.score})",
                    f"{risk.id} scores {risk.score} (probability {risk.probability}, impact {risk.impact}) "
                    f"and has no mitigation.",
                    "high" if risk.score >= 9 else "medium",
                    self._context_size(risk),
                    Mutation(
                        (
                            CreateEntity("activity", fields),
                            UpdateEntity(risk.id, {"mitigated_by": fields["id"]}),
                        ),
                        f"create {fields['id']} to mitigate {risk.id}",
                    ),
                )
            )
        return results

    def _followup_fields(self, source: Problem | Risk, verb: str) -> dict[str, Any]:
        parent = source.relates_to if self.store.kind_of(source.relates_to) in ("objective", "deliverable") else None
        return {
            "id": stable_id("act", verb, source.id),
            "title": f"{verb}: {source.title or source.id}",
            "status": "draft",
            "priority": "high",
            "parent_id": parent,
            "metadata": {"source": source.id},
        }

    def _context_size(self, source: Problem | Risk) -> int:
        """Entities under the objective/deliverable a problem or risk relates to."""
        if not source.relates_to or source.relates_to not in self.aggregated:
            return 0
        count = 0
        stack = [source.relates_to]
        seen: set[str] = set()
        while stack:
            node_id = stack.pop()
            if node_id in seen:
                continue
            seen.add(node_id)
            count += 1
            node = self.aggregated.get(node_id)
            if node:
                stack.extend(node.children)
        return count

    def check_critical_path(self) -> list[Suggestion]:
        results = []
        if self.schedule is None:
            return results
        for activity_id in self.schedule.critical_path:
            activity = self.store.get(activity_id)
            node = self.schedule.get(activity_id)
            if not isinstance(activity, Activity) or node is None:
                continue
            if activity.is_done or activity.priority == "high" or node.slack != 0:
                continue
            downstream = self._downstream(activity_id)
            results.append(
                self._make(
                    "priority_change",
                    (activity_id,),
                    f"Raise priority of '{activity.title or activity_id}' to high",
                    f"{activity_id} is on the critical path with zero slack; any delay moves the project finish.",
                    "high" if downstream >= 3 else "medium",
                    downstream,
                    Mutation((UpdateEntity(activity_id, {"priority": "high"}),), f"set {activity_id} priority to high"),
                )
            )
        return results

    def check_deadlines(self) -> list[Suggestion]:
        results = []
        for objective in self.store.objectives:
            deadline = parse_timestamp(objective.deadline)
            if deadline is None or deadline >= self.now:
                continue
            progress = self.aggregated.progress(objective.id)
            if progress >= 100:
                continue
            metadata = dict(objective.metadata)
            metadata["deadline_missed"] = objective.deadline
            results.append(
                self._make(
                    "schedule",
                    (objective.id,),
                    f"Re-plan '{objective.title or objective.id}': deadline {objective.deadline} has passed",
                    f"{objective.id} is {progress:.0f}% complete after its deadline.",
                    "high",
                    len(self.aggregated.get(objective.id).children) if objective.id in self.aggregated else 0,
                    Mutation(
                        (UpdateEntity(objective.id, {"metadata": metadata}),),
                        f"flag {objective.id} as past its deadline",
                    ),
                )
            )
        return results

    def check_draft_backlog(self) -> list[Suggestion]:
        drafts = tuple(a.id for a in self.store.activities if a.status == "draft")
        if len(drafts) <= self.settings.draft_activity_limit:
            return []
        return [
            self._make(
                "priority_change",
                drafts,
                f"Prioritise the draft backlog ({len(drafts)} draft activities)",
                f"More than {self.settings.draft_activity_limit} activities are still in draft; "
                f"review their priorities and activate the important ones.",
                "medium",
                len(drafts),
                Mutation(description="review draft activities"),
            )
        ]


def generate_suggestions(
    store: EntityStore,
    aggregated: AggregatedView | None = None,
    schedule: Schedule | None = None,
    settings: Settings | None = None,
    now: datetime | None = None,
) -> list[Suggestion]:
    """
    Run every suggestion rule and return ranked suggestions.

    Ranking: impact (high first), then affected_count descending, then
    (type, target ids). ``aggregated`` and ``schedule`` are computed when not
    given; a dependency cycle only disables the schedule-based rules.
    """
    settings = settings or Settings()
    now = now or utc_now()
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    if aggregated is None:
        aggregated = aggregate(store)
    if schedule is None:
        try:
            schedule = analyze_dependencies(store.activities, settings)
        except CycleError as e:
            logger.warning("Schedule-based suggestions skipped: %s", e)

    engine = SuggestionEngine(store, aggregated, schedule, settings, now)
    suggestions = sorted(engine.run_all(), key=lambda s: s.rank_key)
    logger.debug("Generated %d suggestion(s)", len(suggestions))
    return suggestions[: settings.suggestion_limit]
