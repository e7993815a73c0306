"""Pytest configuration and fixtures."""

from datetime import datetime, timezone

import pytest

from zeus.approval.history import SnapshotHistory
from zeus.approval.manager import ApprovalManager
from zeus.models import Activity, Constraint, Deliverable, Objective, Problem, Risk, Vision
from zeus.store.store import EntityStore

FIXED_NOW = datetime(2026, 6, 1, tzinfo=timezone.utc)
STAMP = "2026-01-01T00:00:00Z"


@pytest.fixture
def now() -> datetime:
    """Fixed clock used by analysis and approval tests."""
    return FIXED_NOW


@pytest.fixture
def sample_store() -> EntityStore:
    """
    A small, valid project.

        obj-root
        ├── obj-sub
        │   └── act-d (depends on act-a)
        └── del-api
            ├── act-a  done, 2 days
            ├── act-b  active, 40%, 3 days, depends on act-a
            └── act-c  draft, 1 day, depends on act-b
    """
    return EntityStore([
        Vision(id="vision-1", title="Ship zeus", statement="Plans that stay consistent",
               success_criteria=["usable"], created_at=STAMP, updated_at=STAMP),
        Objective(id="obj-root", title="Launch", status="active", created_at=STAMP, updated_at=STAMP),
        Objective(id="obj-sub", title="Docs", parent_id="obj-root", created_at=STAMP, updated_at=STAMP),
        Deliverable(id="del-api", title="API", objective_id="obj-root", status="active",
                    created_at=STAMP, updated_at=STAMP),
        Activity(id="act-a", title="Design", parent_id="del-api", status="done", duration=2,
                 created_at=STAMP, updated_at=STAMP),
        Activity(id="act-b", title="Build", parent_id="del-api", status="active", progress=40,
                 depends_on=["act-a"], duration=3, created_at=STAMP, updated_at=STAMP),
        Activity(id="act-c", title="Test", parent_id="del-api", depends_on=["act-b"], duration=1,
                 created_at=STAMP, updated_at=STAMP),
        Activity(id="act-d", title="Write guide", parent_id="obj-sub", depends_on=["act-a"], duration=1,
                 created_at=STAMP, updated_at=STAMP),
        Risk(id="risk-1", title="Key person leaves", probability="high", impact="high",
             relates_to="obj-root", created_at=STAMP, updated_at=STAMP),
        Problem(id="prob-1", title="Flaky CI", severity="critical", relates_to="del-api",
                created_at=STAMP, updated_at=STAMP),
        Constraint(id="const-1", title="Python only", non_negotiable=True, created_at=STAMP, updated_at=STAMP),
    ])


@pytest.fixture
def history(now: datetime) -> SnapshotHistory:
    return SnapshotHistory(clock=lambda: now)


@pytest.fixture
def manager(sample_store: EntityStore, history: SnapshotHistory, now: datetime) -> ApprovalManager:
    """Approval manager over the sample store with a fixed clock."""
    history.snapshot(sample_store, "init")
    return ApprovalManager(sample_store, history, clock=lambda: now)
