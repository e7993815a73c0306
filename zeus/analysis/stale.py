"""Stale entities: finished work to archive and long-blocked work to review."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal

from ..config import Settings
from ..models import Activity, Objective
from ..store.store import EntityStore
from ..util import parse_timestamp, utc_now

logger = logging.getLogger(__name__)

StaleType = Literal["completed_old", "blocked_long", "orphaned"]
Recommendation = Literal["archive", "review"]


@dataclass(frozen=True)
class StaleEntity:
    type: StaleType
    entity_id: str
    entity_kind: str
    title: str
    recommendation: Recommendation
    message: str
    days_stale: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "entity_id": self.entity_id,
            "entity_kind": self.entity_kind,
            "title": self.title,
            "recommendation": self.recommendation,
            "message": self.message,
            "days_stale": self.days_stale,
        }


@dataclass
class StaleAnalysis:
    entities: list[StaleEntity] = field(default_factory=list)

    def count(self, recommendation: str) -> int:
        return sum(1 for e in self.entities if e.recommendation == recommendation)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": len(self.entities),
            "archive": self.count("archive"),
            "review": self.count("review"),
            "entities": [e.to_dict() for e in self.entities],
        }


class StaleAnalyzer:
    """
    Flags Activities and Objectives that no longer need attention in the
    active plan, or that have needed it for too long.

    Days are counted from ``updated_at``; entities without one are skipped.
    """

    def __init__(self, store: EntityStore, settings: Settings | None = None, now: datetime | None = None):
        self.store = store
        self.settings = settings or Settings()
        now = now or utc_now()
        self.now = now if now.tzinfo else now.replace(tzinfo=timezone.utc)

    def _days_since_update(self, updated_at: str) -> int | None:
        updated = parse_timestamp(updated_at)
        if updated is None:
            return None
        return (self.now - updated).days

    def analyze(self) -> StaleAnalysis:
        referenced = set()
        for activity in self.store.activities:
            referenced.update(activity.depends_on)
            if activity.parent_id:
                referenced.add(activity.parent_id)

        result = StaleAnalysis()
        for activity in self.store.activities:
            stale = self.check_activity(activity, referenced)
            if stale is not None:
                result.entities.append(stale)
        for objective in self.store.objectives:
            stale = self.check_objective(objective)
            if stale is not None:
                result.entities.append(stale)

        logger.debug("Found %d stale entit(ies)", len(result.entities))
        return result

    def check_activity(self, activity: Activity, referenced: set[str]) -> StaleEntity | None:
        days = self._days_since_update(activity.updated_at)
        if activity.is_done and days is not None and days >= self.settings.archive_after_days:
            return StaleEntity(
                type="completed_old",
                entity_id=activity.id,
                entity_kind="activity",
                title=activity.title,
                recommendation="archive",
                message=f"done {days} day(s) ago",
                days_stale=days,
            )
        if activity.status == "blocked" and days is not None and days >= self.settings.blocked_review_days:
            return StaleEntity(
                type="blocked_long",
                entity_id=activity.id,
                entity_kind="activity",
                title=activity.title,
                recommendation="review",
                message=f"blocked for {days} day(s)",
                days_stale=days,
            )
        if (
            activity.is_done
            and activity.id not in referenced
            and not activity.parent_id
            and not activity.depends_on
        ):
            return StaleEntity(
                type="orphaned",
                entity_id=activity.id,
                entity_kind="activity",
                title=activity.title,
                recommendation="review",
                message="done and not referenced by anything",
            )
        return None

    def check_objective(self, objective: Objective) -> StaleEntity | None:
        """A finished objective untouched for ``archive_after_days`` can be archived."""
        if objective.status != "done":
            return None
        days = self._days_since_update(objective.updated_at)
        if days is None or days < self.settings.archive_after_days:
            return None
        return StaleEntity(
            type="completed_old",
            entity_id=objective.id,
            entity_kind="objective",
            title=objective.title,
            recommendation="archive",
            message=f"done {days} day(s) ago",
            days_stale=days,
        )


def analyze_stale(
    store: EntityStore, settings: Settings | None = None, now: datetime | None = None
) -> StaleAnalysis:
    return StaleAnalyzer(store, settings, now).analyze()
