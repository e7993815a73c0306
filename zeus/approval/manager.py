"""
Approval queue management.

Suggestions and direct mutations are proposed as pending items, then either
approved (applied to the store atomically, with a snapshot) or rejected.
Every transition is an append-only approval event; item state is folded
from those events.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Iterable

from ..audit_log import ChangeSummary, diff_stores
from ..config import Settings
from ..errors import InvalidStateTransition, ItemNotFound, ZeusError
from ..store.store import EntityStore
from ..util import stable_id, utc_now
from .events import (
    ITEM_APPLIED,
    ITEM_APPROVED,
    ITEM_FAILED,
    ITEM_PROPOSED,
    ITEM_REJECTED,
    ITEM_TYPES,
    ApprovalEvent,
    create_event,
)
from .history import SnapshotHistory
from .mutations import Mutation, apply_mutation, preview_mutation
from .state import STATUS_PENDING, ItemState, project_items

logger = logging.getLogger(__name__)

# approval_mode -> item_type -> level
APPROVAL_LEVELS: dict[str, dict[str, str]] = {
    "strict": {"suggestion": "approve", "mutation": "approve", "fix": "approve"},
    "default": {"suggestion": "approve", "mutation": "notify", "fix": "approve"},
    "loose": {"suggestion": "notify", "mutation": "auto", "fix": "auto"},
}


def approval_level(item_type: str, mode: str = "default") -> str:
    """
    Decide how much confirmation an item needs.

    ``auto`` items are applied as soon as they are proposed, ``notify`` items
    are applied too but reported to the user, ``approve`` items wait for an
    explicit approve/reject.
    """
    return APPROVAL_LEVELS.get(mode, APPROVAL_LEVELS["default"]).get(item_type, "approve")


@dataclass
class ApplyOutcome:
    """Result of one item in an apply_all batch."""

    item_id: str
    status: str  # applied | failed | skipped | would_apply
    error: str | None = None
    snapshot_version: int | None = None
    changes: ChangeSummary | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "item_id": self.item_id,
            "status": self.status,
            "error": self.error,
            "snapshot_version": self.snapshot_version,
            "changes": self.changes.to_dict() if self.changes else None,
        }


class ApprovalManager:
    """
    Owns the approval queue and the live store for one session.

    Readers use ``manager.store``. Writers hold ``history.lock``, apply the
    mutation to a copy, validate it and only then swap the reference, so a
    reader never sees a half-applied change.
    """

    def __init__(
        self,
        store: EntityStore,
        history: SnapshotHistory | None = None,
        *,
        settings: Settings | None = None,
        events: Iterable[ApprovalEvent] = (),
        clock: Callable[[], datetime] | None = None,
        actor: str = "user",
    ):
        self.store = store
        self.history = history if history is not None else SnapshotHistory()
        self.settings = settings or Settings()
        self.actor = actor
        self._clock = clock or utc_now
        self._events: list[ApprovalEvent] = list(events)
        self._items = project_items(self._events)

    # --- queries --------------------------------------------------------------

    @property
    def events(self) -> list[ApprovalEvent]:
        return list(self._events)

    def get(self, item_id: str) -> ItemState:
        state = self._items.get(item_id)
        if state is None:
            raise ItemNotFound(item_id)
        return state

    def items(self, status: str | None = None) -> list[ItemState]:
        """Items in ranked order, optionally filtered by status."""
        selected = [s for s in self._items.values() if status is None or s.status == status]
        return sorted(selected, key=lambda s: s.rank_key)

    def pending(self) -> list[ItemState]:
        return self.items(STATUS_PENDING)

    def _append(self, *events: ApprovalEvent) -> None:
        self._events.extend(events)
        self._items = project_items(self._events)

    # --- proposals ------------------------------------------------------------

    def propose(self, suggestions: Iterable[Any]) -> list[ItemState]:
        """Register suggestions as pending items. Already known ids are left as they are."""
        states = []
        for suggestion in suggestions:
            states.append(
                self.propose_item(
                    "suggestion",
                    suggestion.description,
                    suggestion.mutation,
                    item_id=suggestion.id,
                    impact=suggestion.impact,
                    affected_count=suggestion.affected_count,
                    suggestion=suggestion.to_dict(),
                )
            )
        return states

    def submit(self, mutation: Mutation, description: str = "", *, actor: str | None = None) -> ItemState:
        """Propose a direct edit of the store as a pending item."""
        return self.propose_item(
            "mutation",
            description or mutation.describe(),
            mutation,
            affected_count=len(mutation.operations),
            actor=actor,
        )

    def propose_item(
        self,
        item_type: str,
        description: str,
        mutation: Mutation,
        *,
        item_id: str | None = None,
        impact: str = "medium",
        affected_count: int = 0,
        suggestion: dict[str, Any] | None = None,
        actor: str | None = None,
    ) -> ItemState:
        """
        Append an ``item.proposed`` event.

        Items whose approval level is ``auto`` or ``notify`` are approved right
        away. If that apply fails the item stays pending with ``last_error``
        set; the error is not raised.
        """
        if item_type not in ITEM_TYPES:
            raise ValueError(f"Invalid item_type: {item_type}")

        now = self._clock()
        if item_id is None:
            item_id = stable_id("item", item_type, description, now.isoformat(), str(len(self._events)))
        if item_id in self._items:
            return self._items[item_id]

        level = approval_level(item_type, self.settings.approval_mode)
        self._append(
            create_event(
                ITEM_PROPOSED,
                item_id,
                actor or self.actor,
                timestamp=now,
                payload={
                    "item_type": item_type,
                    "description": description,
                    "mutation": mutation.to_dict(),
                    "impact": impact,
                    "affected_count": affected_count,
                    "level": level,
                    "suggestion": suggestion,
                },
            )
        )
        logger.debug("Proposed %s %s (level=%s)", item_type, item_id, level)

        if level in ("auto", "notify"):
            try:
                self.approve(item_id, actor="system")
            except ZeusError as e:
                logger.warning("Automatic apply of %s failed: %s", item_id, e)
            else:
                if level == "notify":
                    logger.info("Applied %s without approval: %s", item_id, description)
        return self.get(item_id)

    # --- transitions ----------------------------------------------------------

    def approve(self, item_id: str, *, actor: str | None = None) -> ItemState:
        """
        Approve a pending item and apply its mutation atomically.

        On failure the store is unchanged, the item stays pending with
        ``last_error`` recorded, and the error is re-raised.
        """
        with self.history.lock:
            state = self.get(item_id)
            if state.status != STATUS_PENDING:
                raise InvalidStateTransition(item_id, state.status, "approve")

            before = self.store
            now = self._clock()
            try:
                after = apply_mutation(before, state.mutation, now=now)
            except ZeusError as e:
                self._append(
                    create_event(
                        ITEM_FAILED,
                        item_id,
                        actor or self.actor,
                        timestamp=now,
                        payload={"error": str(e), "error_type": type(e).__name__},
                    )
                )
                logger.warning("Apply of %s failed: %s", item_id, e)
                raise

            changes = diff_stores(before, after)
            snapshot = self.history.snapshot(
                after, f"approve:{item_id}", reason=state.description, changes=changes
            )
            self.store = after
            self._append(
                create_event(ITEM_APPROVED, item_id, actor or self.actor, timestamp=now),
                create_event(
                    ITEM_APPLIED,
                    item_id,
                    actor or self.actor,
                    timestamp=now,
                    payload={"snapshot_version": snapshot.version, "changes": changes.to_dict()},
                ),
            )
        logger.info("Applied %s (%s) as snapshot v%d", item_id, changes.describe(), snapshot.version)
        return self.get(item_id)

    def reject(self, item_id: str, reason: str = "", *, actor: str | None = None) -> ItemState:
        """Reject a pending item. Terminal; the store is not touched."""
        with self.history.lock:
            state = self.get(item_id)
            if state.status != STATUS_PENDING:
                raise InvalidStateTransition(item_id, state.status, "reject")
            self._append(
                create_event(
                    ITEM_REJECTED,
                    item_id,
                    actor or self.actor,
                    timestamp=self._clock(),
                    payload={"reason": reason},
                )
            )
        logger.info("Rejected %s: %s", item_id, reason or "no reason given")
        return self.get(item_id)

    def dry_run(self, item_id: str) -> ChangeSummary:
        """What approving ``item_id`` would change, without committing."""
        state = self.get(item_id)
        return preview_mutation(self.store, state.mutation, now=self._clock())

    def apply_all(self, dry_run: bool = False) -> list[ApplyOutcome]:
        """
        Apply every pending item in ranked order.

        Processing stops at the first failure: that item is reported as
        ``failed`` and every later item as ``skipped``; both stay pending.
        With ``dry_run`` the items are applied cumulatively to a scratch copy
        and reported as ``would_apply``.
        """
        outcomes: list[ApplyOutcome] = []
        with self.history.lock:
            pending = self.pending()
            failed = False
            working = self.store
            for state in pending:
                if failed:
                    outcomes.append(ApplyOutcome(state.item_id, "skipped"))
                    continue

                if dry_run:
                    try:
                        after = apply_mutation(working, state.mutation, now=self._clock())
                    except ZeusError as e:
                        outcomes.append(ApplyOutcome(state.item_id, "failed", error=str(e)))
                        failed = True
                        continue
                    outcomes.append(
                        ApplyOutcome(state.item_id, "would_apply", changes=diff_stores(working, after))
                    )
                    working = after
                    continue

                try:
                    applied = self.approve(state.item_id)
                except ZeusError as e:
                    outcomes.append(ApplyOutcome(state.item_id, "failed", error=str(e)))
                    failed = True
                    continue
                outcomes.append(
                    ApplyOutcome(
                        state.item_id,
                        "applied",
                        snapshot_version=applied.snapshot_version,
                        changes=ChangeSummary.from_dict(applied.changes),
                    )
                )
        return outcomes
