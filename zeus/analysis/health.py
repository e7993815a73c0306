"""Overall project health from activity completion."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import Any

from ..models import STATUSES
from ..store.store import EntityStore
from .aggregate import aggregate


@dataclass(frozen=True)
class ProjectHealth:
    total: int
    counts: dict[str, int]
    progress: float  # mean rolled-up progress of root objectives
    health: str  # good | fair | poor | unknown

    @property
    def completion_ratio(self) -> float:
        return self.counts.get("done", 0) / self.total if self.total else 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "counts": dict(self.counts),
            "completion_ratio": self.completion_ratio,
            "progress": self.progress,
            "health": self.health,
        }


def health_label(completion_ratio: float, total: int) -> str:
    if total == 0:
        return "unknown"
    if completion_ratio < 0.3:
        return "poor"
    if completion_ratio < 0.7:
        return "fair"
    return "good"


def project_health(store: EntityStore) -> ProjectHealth:
    activities = store.activities
    counter = Counter(a.status for a in activities)
    counts = {status: counter.get(status, 0) for status in STATUSES}

    view = aggregate(store)
    roots = [o.id for o in store.objectives if store.kind_of(o.parent_id) != "objective"]
    progress = sum(view.progress(r) for r in roots) / len(roots) if roots else 0.0

    total = len(activities)
    ratio = counts["done"] / total if total else 0.0
    return ProjectHealth(total=total, counts=counts, progress=progress, health=health_label(ratio, total))
