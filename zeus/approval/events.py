"""
Immutable events for the approval queue.

Events are append-only: each line in approvals.jsonl is one event. The
current state of an item is computed by folding its events, never by
mutating earlier entries.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

# Event type constants
ITEM_PROPOSED = "item.proposed"
ITEM_APPROVED = "item.approved"
ITEM_APPLIED = "item.applied"
ITEM_REJECTED = "item.rejected"
ITEM_FAILED = "item.failed"

EVENT_TYPES = frozenset({
    ITEM_PROPOSED,
    ITEM_APPROVED,
    ITEM_APPLIED,
    ITEM_REJECTED,
    ITEM_FAILED,
})

# Kinds of pending items
ITEM_TYPES = frozenset({"suggestion", "mutation", "fix"})


@dataclass(frozen=True)
class ApprovalEvent:
    """Immutable event in the approval log."""

    event_type: str  # One of EVENT_TYPES
    item_id: str
    timestamp: datetime
    actor: str  # "user", "system", "cli"
    payload: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.event_type not in EVENT_TYPES:
            raise ValueError(f"Invalid event_type: {self.event_type}")

    def to_dict(self) -> dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        result: dict[str, Any] = {
            "event_type": self.event_type,
            "item_id": self.item_id,
            "timestamp": self.timestamp.isoformat(),
            "actor": self.actor,
        }
        if self.payload:
            result["payload"] = self.payload
        return result

    def to_json(self) -> str:
        """Serialize to JSON string (single line)."""
        return json.dumps(self.to_dict(), separators=(",", ":"))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ApprovalEvent:
        return cls(
            event_type=data["event_type"],
            item_id=data["item_id"],
            timestamp=datetime.fromisoformat(data["timestamp"]),
            actor=data.get("actor", "system"),
            payload=data.get("payload", {}),
        )

    @classmethod
    def from_json(cls, line: str) -> ApprovalEvent:
        return cls.from_dict(json.loads(line))


def create_event(
    event_type: str,
    item_id: str,
    actor: str,
    *,
    payload: dict[str, Any] | None = None,
    timestamp: datetime | None = None,
) -> ApprovalEvent:
    """Factory function for creating events with a consistent timestamp."""
    return ApprovalEvent(
        event_type=event_type,
        item_id=item_id,
        timestamp=timestamp or datetime.now(timezone.utc),
        actor=actor,
        payload=payload or {},
    )
