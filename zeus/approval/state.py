"""
Approval item state projected from the event stream.

Item state is computed by folding events, never stored as the source of
truth.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Sequence

from .events import (
    ITEM_APPLIED,
    ITEM_APPROVED,
    ITEM_FAILED,
    ITEM_PROPOSED,
    ITEM_REJECTED,
    ApprovalEvent,
)
from .mutations import Mutation

# Lifecycle states
STATUS_PENDING = "pending"
STATUS_APPROVED = "approved"
STATUS_APPLIED = "applied"
STATUS_REJECTED = "rejected"

IMPACT_ORDER = {"high": 0, "medium": 1, "low": 2}


@dataclass
class ItemState:
    """Computed state of one pending item."""

    item_id: str
    item_type: str
    description: str
    mutation: Mutation
    status: str = STATUS_PENDING
    level: str = "approve"

    # Ranking
    impact: str = "medium"
    affected_count: int = 0
    sequence: int = 0  # proposal order within the log

    suggestion: dict[str, Any] | None = None

    reason: str | None = None
    last_error: str | None = None
    attempts: int = 0
    snapshot_version: int | None = None
    changes: dict[str, Any] | None = None

    created_at: datetime | None = None
    approved_at: datetime | None = None
    applied_at: datetime | None = None
    rejected_at: datetime | None = None

    events: list[ApprovalEvent] = field(default_factory=list)

    def is_terminal(self) -> bool:
        return self.status in {STATUS_APPLIED, STATUS_REJECTED}

    @property
    def rank_key(self) -> tuple:
        return (IMPACT_ORDER.get(self.impact, 99), -self.affected_count, self.sequence)

    def to_dict(self) -> dict[str, Any]:
        return {
            "item_id": self.item_id,
            "item_type": self.item_type,
            "description": self.description,
            "status": self.status,
            "level": self.level,
            "impact": self.impact,
            "affected_count": self.affected_count,
            "reason": self.reason,
            "last_error": self.last_error,
            "snapshot_version": self.snapshot_version,
            "mutation": self.mutation.to_dict(),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


def fold_events(events: Sequence[ApprovalEvent], sequence: int = 0) -> ItemState | None:
    """
    Compute current item state by folding its event history.

    Events must share one item_id and be in append order. Returns None if
    no events are given.
    """
    if not events:
        return None

    item_id = events[0].item_id
    if not all(e.item_id == item_id for e in events):
        raise ValueError("All events must be for the same item_id")

    first = events[0]
    if first.event_type != ITEM_PROPOSED:
        raise ValueError(f"First event must be {ITEM_PROPOSED}, got {first.event_type}")

    payload = first.payload
    state = ItemState(
        item_id=item_id,
        item_type=payload.get("item_type", "suggestion"),
        description=payload.get("description", ""),
        mutation=Mutation.from_dict(payload.get("mutation")),
        level=payload.get("level", "approve"),
        impact=payload.get("impact", "medium"),
        affected_count=int(payload.get("affected_count", 0)),
        sequence=sequence,
        suggestion=payload.get("suggestion"),
        created_at=first.timestamp,
        events=list(events),
    )

    for event in events[1:]:
        _apply_event(state, event)

    return state


def _apply_event(state: ItemState, event: ApprovalEvent) -> None:
    """Apply a single event to update item state."""
    payload = event.payload

    if event.event_type == ITEM_APPROVED:
        state.status = STATUS_APPROVED
        state.approved_at = event.timestamp

    elif event.event_type == ITEM_APPLIED:
        state.status = STATUS_APPLIED
        state.applied_at = event.timestamp
        state.snapshot_version = payload.get("snapshot_version")
        state.changes = payload.get("changes")
        state.last_error = None

    elif event.event_type == ITEM_REJECTED:
        state.status = STATUS_REJECTED
        state.rejected_at = event.timestamp
        state.reason = payload.get("reason")

    elif event.event_type == ITEM_FAILED:
        # A failed apply leaves the item pending so it can be retried or rejected
        state.status = STATUS_PENDING
        state.last_error = payload.get("error")
        state.attempts += 1


def project_items(events: Sequence[ApprovalEvent]) -> dict[str, ItemState]:
    """Fold every item in an event stream, preserving first-proposal order."""
    grouped: dict[str, list[ApprovalEvent]] = {}
    for event in events:
        grouped.setdefault(event.item_id, []).append(event)
    items: dict[str, ItemState] = {}
    for sequence, (item_id, item_events) in enumerate(grouped.items()):
        state = fold_events(item_events, sequence)
        if state is not None:
            items[item_id] = state
    return items
