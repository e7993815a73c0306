"""
Completion forecast, velocity and delivery risk from snapshot history.

Velocity is the number of activities completed per week, measured between
snapshots. Every recorded snapshot is a data point; with fewer than two
the forecast falls back to a default pace and says so.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, Literal

from ..approval.history import Snapshot
from ..store.store import EntityStore
from ..util import parse_timestamp, utc_now

logger = logging.getLogger(__name__)

DEFAULT_VELOCITY = 2.0  # activities per week when history is too short
MIN_VELOCITY = 0.5
WIP_LIMIT = 5

Trend = Literal["increasing", "stable", "decreasing", "unknown"]
RiskLevel = Literal["low", "medium", "high"]

PREDICTION_KINDS = ("completion", "velocity", "risk")


@dataclass(frozen=True)
class DataPoint:
    at: datetime
    completed: int


@dataclass
class CompletionForecast:
    remaining: int
    velocity: float
    estimated_date: str | None
    confidence: int  # percent
    margin_days: int
    sufficient_data: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "remaining": self.remaining,
            "velocity": round(self.velocity, 2),
            "estimated_date": self.estimated_date,
            "confidence": self.confidence,
            "margin_days": self.margin_days,
            "sufficient_data": self.sufficient_data,
        }


@dataclass
class VelocityReport:
    data_points: int
    last_7_days: int = 0
    last_14_days: int = 0
    last_30_days: int = 0
    weekly_average: float = 0.0
    trend: Trend = "unknown"

    def to_dict(self) -> dict[str, Any]:
        return {
            "data_points": self.data_points,
            "last_7_days": self.last_7_days,
            "last_14_days": self.last_14_days,
            "last_30_days": self.last_30_days,
            "weekly_average": round(self.weekly_average, 2),
            "trend": self.trend,
        }


@dataclass(frozen=True)
class RiskFactor:
    name: str
    description: str
    impact: int  # 1-10

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "description": self.description, "impact": self.impact}


@dataclass
class RiskForecast:
    level: RiskLevel
    score: int  # 0-100
    factors: list[RiskFactor] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"level": self.level, "score": self.score, "factors": [f.to_dict() for f in self.factors]}


@dataclass
class Prediction:
    completion: CompletionForecast | None = None
    velocity: VelocityReport | None = None
    risk: RiskForecast | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        for name in PREDICTION_KINDS:
            value = getattr(self, name)
            if value is not None:
                result[name] = value.to_dict()
        return result


def completed_count(data: dict[str, Any]) -> int:
    """Done activities in a plain-data store (as held by a snapshot)."""
    return sum(1 for record in data.get("activity", []) if record.get("status") == "done")


def data_points(snapshots: Iterable[Snapshot]) -> list[DataPoint]:
    """One point per snapshot with a readable timestamp, oldest first."""
    points = []
    for snapshot in sorted(snapshots, key=lambda s: s.version):
        at = parse_timestamp(snapshot.created_at)
        if at is None:
            logger.debug("Skipping snapshot v%d without a timestamp", snapshot.version)
            continue
        points.append(DataPoint(at=at, completed=completed_count(snapshot.data)))
    return points


def confidence_for(point_count: int) -> int:
    if point_count >= 10:
        return 85
    if point_count >= 5:
        return 70
    if point_count >= 2:
        return 50
    return 30


class Predictor:
    """Forecasts for one store state and the snapshots leading up to it."""

    def __init__(self, store: EntityStore, snapshots: Iterable[Snapshot] = (), now: datetime | None = None):
        self.store = store
        self.points = data_points(snapshots)
        now = now or utc_now()
        self.now = now if now.tzinfo else now.replace(tzinfo=timezone.utc)

    def weekly_velocity(self) -> float:
        """Activities completed per week between the oldest and newest data point."""
        if len(self.points) < 2:
            return DEFAULT_VELOCITY
        oldest, newest = self.points[0], self.points[-1]
        days = (newest.at - oldest.at).total_seconds() / 86400
        if days < 1:
            return DEFAULT_VELOCITY
        completed = newest.completed - oldest.completed
        if completed <= 0:
            return MIN_VELOCITY
        return completed / max(days / 7, 1.0)

    def completion(self) -> CompletionForecast:
        remaining = sum(1 for a in self.store.activities if not a.is_done)
        velocity = self.weekly_velocity()
        sufficient = len(self.points) >= 2
        if remaining == 0:
            return CompletionForecast(
                remaining=0,
                velocity=velocity,
                estimated_date=self.now.date().isoformat(),
                confidence=100,
                margin_days=0,
                sufficient_data=sufficient,
            )

        days = math.ceil(remaining / velocity * 7)
        confidence = confidence_for(len(self.points))
        # Lower confidence widens the margin
        margin = max(1, int(days * (100 - confidence) / 100 * 0.5))
        return CompletionForecast(
            remaining=remaining,
            velocity=velocity,
            estimated_date=(self.now + timedelta(days=days)).date().isoformat(),
            confidence=confidence,
            margin_days=margin,
            sufficient_data=sufficient,
        )

    def completed_since(self, days: int) -> int:
        """Activities completed within the last ``days`` days, by snapshot difference."""
        start = self.now - timedelta(days=days)
        at_start = [p for p in self.points if p.at <= start]
        at_end = [p for p in self.points if p.at <= self.now]
        if not at_start or not at_end:
            return 0
        return max(at_end[-1].completed - at_start[-1].completed, 0)

    def velocity(self) -> VelocityReport:
        report = VelocityReport(data_points=len(self.points))
        if len(self.points) < 2:
            return report
        report.last_7_days = self.completed_since(7)
        report.last_14_days = self.completed_since(14)
        report.last_30_days = self.completed_since(30)
        report.weekly_average = report.last_30_days / 4.0
        report.trend = velocity_trend(report)
        return report

    def risk_factors(self) -> list[RiskFactor]:
        activities = self.store.activities
        done = sum(1 for a in activities if a.is_done)
        open_count = len(activities) - done
        factors = []

        blocked = sum(1 for a in activities if a.status == "blocked")
        if blocked and open_count:
            percent = blocked / open_count * 100
            factors.append(
                RiskFactor(
                    "blocked activities",
                    f"{blocked} activities blocked ({percent:.0f}% of open work)",
                    min(max(int(percent / 10), 1), 10),
                )
            )

        if activities:
            rate = done / len(activities) * 100
            if rate < 30:
                factors.append(RiskFactor("low completion rate", f"only {rate:.0f}% of activities done", 7))

        active = sum(1 for a in activities if a.status == "active")
        if active > WIP_LIMIT:
            factors.append(
                RiskFactor(
                    "high work in progress",
                    f"{active} activities active (recommended: {WIP_LIMIT} or fewer)",
                    5,
                )
            )

        if len(self.points) >= 2 and self.points[-1].completed == self.points[-2].completed:
            factors.append(RiskFactor("stalled progress", "nothing completed since the previous snapshot", 6))
        return factors

    def risk(self) -> RiskForecast:
        factors = self.risk_factors()
        score = 0
        if factors:
            score = min(sum(f.impact for f in factors) * 100 // (len(factors) * 10), 100)
        if score >= 70:
            level = "high"
        elif score >= 40:
            level = "medium"
        else:
            level = "low"
        return RiskForecast(level=level, score=score, factors=factors)

    def predict(self, kinds: Iterable[str] = PREDICTION_KINDS) -> Prediction:
        kinds = set(kinds)
        unknown = kinds - set(PREDICTION_KINDS)
        if unknown:
            raise ValueError(f"Unknown prediction kind(s): {', '.join(sorted(unknown))}")
        prediction = Prediction(
            completion=self.completion() if "completion" in kinds else None,
            velocity=self.velocity() if "velocity" in kinds else None,
            risk=self.risk() if "risk" in kinds else None,
        )
        logger.debug("Predicted %s from %d data point(s)", ", ".join(sorted(kinds)), len(self.points))
        return prediction


def velocity_trend(report: VelocityReport) -> Trend:
    """Compare the last week with the week before it."""
    if not (report.last_7_days or report.last_14_days or report.last_30_days):
        return "unknown"
    week_before = report.last_14_days - report.last_7_days
    if report.last_7_days > week_before + 1:
        return "increasing"
    if report.last_7_days < week_before - 1:
        return "decreasing"
    return "stable"


def predict(
    store: EntityStore,
    snapshots: Iterable[Snapshot] = (),
    kinds: Iterable[str] = PREDICTION_KINDS,
    now: datetime | None = None,
) -> Prediction:
    return Predictor(store, snapshots, now).predict(kinds)
