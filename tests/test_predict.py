"""Tests for completion, velocity and risk forecasts."""

from datetime import datetime, timedelta

import pytest

from zeus.analysis.predict import VelocityReport, data_points, predict, velocity_trend
from zeus.approval.history import Snapshot, compute_hash
from zeus.models import Activity, Objective
from zeus.store.store import EntityStore
from zeus.util import format_timestamp


def _store(done: int, total: int = 6) -> EntityStore:
    return EntityStore([
        Objective(id="obj-1"),
        *(
            Activity(id=f"act-{i}", parent_id="obj-1", status="done" if i < done else "draft")
            for i in range(total)
        ),
    ])


def _snapshot(version: int, at: datetime, done: int) -> Snapshot:
    payload = _store(done).to_json()
    return Snapshot(
        version=version,
        created_at=format_timestamp(at),
        label="",
        payload=payload,
        content_id=compute_hash(payload),
    )


def test_forecast_without_history_assumes_default_pace(now: datetime) -> None:
    completion = predict(_store(done=0), now=now).completion
    assert completion.velocity == 2.0
    assert completion.remaining == 6
    assert completion.estimated_date == "2026-06-22"
    assert completion.confidence == 30
    assert completion.margin_days == 7
    assert not completion.sufficient_data


def test_forecast_from_history(now: datetime) -> None:
    snapshots = [
        _snapshot(1, now - timedelta(days=35), 0),
        _snapshot(2, now - timedelta(days=14), 2),
        _snapshot(3, now - timedelta(days=7), 3),
        _snapshot(4, now, 4),
    ]
    prediction = predict(_store(done=4), snapshots, now=now)

    completion = prediction.completion
    assert completion.velocity == pytest.approx(0.8)
    assert completion.remaining == 2
    assert completion.estimated_date == "2026-06-19"
    assert completion.confidence == 50
    assert completion.margin_days == 4
    assert completion.sufficient_data

    velocity = prediction.velocity
    assert (velocity.last_7_days, velocity.last_14_days, velocity.last_30_days) == (1, 2, 4)
    assert velocity.weekly_average == 1.0
    assert velocity.trend == "stable"
    assert velocity.data_points == 4


def test_finished_project_is_due_today(now: datetime) -> None:
    completion = predict(_store(done=6), now=now).completion
    assert completion.remaining == 0
    assert completion.estimated_date == "2026-06-01"
    assert completion.confidence == 100


def test_no_progress_between_snapshots_uses_minimum_pace(now: datetime) -> None:
    snapshots = [_snapshot(1, now - timedelta(days=14), 2), _snapshot(2, now, 2)]
    prediction = predict(_store(done=2), snapshots, now=now)
    assert prediction.completion.velocity == 0.5
    assert [f.name for f in prediction.risk.factors] == ["stalled progress"]


def test_velocity_trend() -> None:
    assert velocity_trend(VelocityReport(data_points=5, last_7_days=5, last_14_days=6, last_30_days=6)) == "increasing"
    assert velocity_trend(VelocityReport(data_points=5, last_7_days=0, last_14_days=4, last_30_days=4)) == "decreasing"
    assert velocity_trend(VelocityReport(data_points=5, last_7_days=2, last_14_days=4, last_30_days=4)) == "stable"
    assert velocity_trend(VelocityReport(data_points=5)) == "unknown"


def test_risk_factors(now: datetime) -> None:
    store = EntityStore([
        Objective(id="obj-1"),
        Activity(id="act-0", parent_id="obj-1", status="done"),
        *(Activity(id=f"act-b{i}", parent_id="obj-1", status="blocked") for i in range(2)),
        *(Activity(id=f"act-w{i}", parent_id="obj-1", status="active") for i in range(7)),
    ])
    risk = predict(store, kinds=["risk"], now=now).risk
    assert {f.name: f.impact for f in risk.factors} == {
        "blocked activities": 2,
        "low completion rate": 7,
        "high work in progress": 5,
    }
    assert risk.score == 46
    assert risk.level == "medium"


def test_selected_kinds_only(now: datetime) -> None:
    prediction = predict(_store(done=1), kinds=["velocity"], now=now)
    assert list(prediction.to_dict()) == ["velocity"]
    with pytest.raises(ValueError, match="weather"):
        predict(_store(done=1), kinds=["weather"], now=now)


def test_snapshots_without_timestamp_are_skipped(now: datetime) -> None:
    snapshots = [_snapshot(1, now, 3)]
    broken = Snapshot(version=2, created_at="", label="", payload="{}", content_id="x")
    points = data_points([broken, *snapshots])
    assert [(p.at, p.completed) for p in points] == [(now, 3)]
