"""
Dependency scheduling and critical path analysis.

Forward and backward passes over the ``depends_on`` graph (critical path
method). Durations are in days.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable

from ..config import Settings
from ..errors import CycleError
from ..models import Activity
from ..store.graph import DependencyGraph

logger = logging.getLogger(__name__)

# Float tolerance for "zero slack" and "EF(pred) == ES(succ)"
EPSILON = 1e-9


def activity_duration(activity: Activity, settings: Settings | None = None) -> float:
    """Explicit duration, else estimate_hours / hours_per_day, else the default."""
    settings = settings or Settings()
    if activity.duration is not None and activity.duration >= 0:
        return float(activity.duration)
    if activity.estimate_hours is not None and activity.estimate_hours >= 0:
        return float(activity.estimate_hours) / settings.hours_per_day
    return float(settings.default_duration)


@dataclass(frozen=True)
class NodeSchedule:
    id: str
    duration: float
    earliest_start: float
    earliest_finish: float
    latest_start: float
    latest_finish: float
    slack: float
    on_critical_path: bool
    blocked: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "duration": self.duration,
            "earliest_start": self.earliest_start,
            "earliest_finish": self.earliest_finish,
            "latest_start": self.latest_start,
            "latest_finish": self.latest_finish,
            "slack": self.slack,
            "on_critical_path": self.on_critical_path,
            "blocked": self.blocked,
        }


@dataclass
class Schedule:
    """Result of a critical path analysis."""

    nodes: dict[str, NodeSchedule] = field(default_factory=dict)
    order: list[str] = field(default_factory=list)  # topological, dependencies first
    project_finish: float = 0.0
    critical_path: list[str] = field(default_factory=list)
    critical_edges: list[tuple[str, str]] = field(default_factory=list)
    graph: DependencyGraph = field(default_factory=DependencyGraph)

    def __contains__(self, activity_id: object) -> bool:
        return activity_id in self.nodes

    def get(self, activity_id: str) -> NodeSchedule | None:
        return self.nodes.get(activity_id)

    @property
    def blocked(self) -> list[str]:
        return [node_id for node_id in self.order if self.nodes[node_id].blocked]

    def downstream_count(self, activity_id: str) -> int:
        """Number of activities that transitively depend on ``activity_id``."""
        if activity_id not in self.nodes:
            return 0
        return len(self.graph.transitive_dependents(activity_id))

    def to_dict(self) -> dict[str, Any]:
        return {
            "project_finish": self.project_finish,
            "order": list(self.order),
            "critical_path": list(self.critical_path),
            "critical_edges": [list(edge) for edge in self.critical_edges],
            "nodes": {node_id: self.nodes[node_id].to_dict() for node_id in self.order},
        }


def analyze_dependencies(
    activities: Iterable[Activity],
    settings: Settings | None = None,
) -> Schedule:
    """
    Schedule ``activities`` by their dependencies.

    Dependencies on ids outside the given set are ignored.

    Raises:
        CycleError: the dependency graph has a cycle (carries the path)
    """
    by_id = {a.id: a for a in activities}
    graph = DependencyGraph.from_activities(by_id.values())

    order = graph.topological_sort()
    if len(order) < len(graph.nodes):
        path = graph.find_cycle() or sorted(set(graph.nodes) - set(order))
        raise CycleError(path, "activity")

    durations = {node_id: activity_duration(by_id[node_id], settings) for node_id in order}

    # Forward pass
    earliest_start: dict[str, float] = {}
    earliest_finish: dict[str, float] = {}
    for node_id in order:
        preds = graph.get_dependencies(node_id)
        earliest_start[node_id] = max((earliest_finish[p] for p in preds), default=0.0)
        earliest_finish[node_id] = earliest_start[node_id] + durations[node_id]

    project_finish = max(earliest_finish.values(), default=0.0)

    # Backward pass
    latest_start: dict[str, float] = {}
    latest_finish: dict[str, float] = {}
    for node_id in reversed(order):
        succs = graph.get_dependents(node_id)
        latest_finish[node_id] = min((latest_start[s] for s in succs), default=project_finish)
        latest_start[node_id] = latest_finish[node_id] - durations[node_id]

    nodes: dict[str, NodeSchedule] = {}
    for node_id in order:
        slack = latest_start[node_id] - earliest_start[node_id]
        if abs(slack) < EPSILON:
            slack = 0.0
        blocked = any(not by_id[p].is_done for p in graph.get_dependencies(node_id))
        nodes[node_id] = NodeSchedule(
            id=node_id,
            duration=durations[node_id],
            earliest_start=earliest_start[node_id],
            earliest_finish=earliest_finish[node_id],
            latest_start=latest_start[node_id],
            latest_finish=latest_finish[node_id],
            slack=slack,
            on_critical_path=slack == 0.0,
            blocked=blocked,
        )

    critical_path = [node_id for node_id in order if nodes[node_id].on_critical_path]
    critical_edges = [
        (pred, node_id)
        for node_id in critical_path
        for pred in graph.get_dependencies(node_id)
        if nodes[pred].on_critical_path
        and abs(nodes[pred].earliest_finish - nodes[node_id].earliest_start) < EPSILON
    ]

    logger.debug(
        "Scheduled %d activities; project finish %.2f, %d critical",
        len(order), project_finish, len(critical_path),
    )
    return Schedule(
        nodes=nodes,
        order=order,
        project_finish=project_finish,
        critical_path=critical_path,
        critical_edges=critical_edges,
        graph=graph,
    )
