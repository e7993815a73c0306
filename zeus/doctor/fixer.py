"""
Automatic repair of fixable integrity findings.

Planning (which edges to clear) is separated from applying them, so a
dry run reports exactly what an apply would do.
"""

from __future__ import annotations

import contextlib
import logging
from dataclasses import dataclass, field
from datetime import datetime

from ..audit_log import ChangeSummary, diff_stores
from ..errors import CycleError
from ..store.codec import entity_from_dict, entity_to_dict
from ..store.relations import relations_for
from ..store.store import EntityStore
from ..util import format_timestamp, utc_now
from .validator import Finding, validate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FixAction:
    """Remove one reference: ``entity_id.field`` no longer points at ``target_id``."""

    entity_id: str
    field: str
    target_id: str
    many: bool
    reason: str  # "dangling_reference" | "cycle"

    def describe(self) -> str:
        if self.many:
            return f"remove {self.target_id} from {self.entity_id}.{self.field} ({self.reason})"
        return f"clear {self.entity_id}.{self.field} (was {self.target_id}; {self.reason})"

    def to_dict(self) -> dict:
        return {
            "entity_id": self.entity_id,
            "field": self.field,
            "target_id": self.target_id,
            "reason": self.reason,
            "description": self.describe(),
        }


@dataclass
class FixPlan:
    """Diagnostic output: what would be fixed and what needs a human."""

    fixes: list[FixAction] = field(default_factory=list)
    manual: list[Finding] = field(default_factory=list)

    def summary(self) -> str:
        lines = [f"Fix plan: {len(self.fixes)} automatic fix(es), {len(self.manual)} manual finding(s)"]
        for fix in self.fixes:
            lines.append(f"  - {fix.describe()}")
        return "\n".join(lines)


@dataclass
class FixResult:
    """Action output of a fix run."""

    store: EntityStore
    fixes: list[FixAction] = field(default_factory=list)
    manual: list[Finding] = field(default_factory=list)
    dry_run: bool = False
    snapshot: object | None = None  # Snapshot when a history was given
    changes: ChangeSummary = field(default_factory=ChangeSummary)

    def to_dict(self) -> dict:
        return {
            "dry_run": self.dry_run,
            "fixes": [f.to_dict() for f in self.fixes],
            "manual": [f.to_dict() for f in self.manual],
            "snapshot_version": getattr(self.snapshot, "version", None),
            "changes": self.changes.to_dict(),
        }


def _is_many(kind: str, field_name: str) -> bool:
    for descriptor in relations_for(kind):
        if descriptor.field == field_name:
            return descriptor.many
    return False


class AutoFixer:
    """Plans and applies fixes for one store."""

    def __init__(self, store: EntityStore):
        self.store = store

    def plan(self) -> FixPlan:
        plan = FixPlan()
        seen: set[tuple[str, str, str]] = set()
        for finding in validate(self.store):
            action = self._action_for(finding) if finding.fixable else None
            if action is None:
                plan.manual.append(finding)
                continue
            key = (action.entity_id, action.field, action.target_id)
            if key in seen:
                continue
            seen.add(key)
            plan.fixes.append(action)
        return plan

    def _action_for(self, finding: Finding) -> FixAction | None:
        if finding.kind == "dangling_reference" and finding.field and len(finding.entity_ids) == 2:
            source, target = finding.entity_ids
            entity = self.store.get(source)
            if entity is None:
                return None
            return FixAction(source, finding.field, target, _is_many(entity.kind, finding.field), finding.kind)

        if finding.kind == "cycle" and finding.field and len(finding.path) >= 2:
            return self._drop_latest_edge(finding)

        return None

    def _drop_latest_edge(self, finding: Finding) -> FixAction | None:
        """Drop the cycle edge owned by the most recently updated entity (ties: greater id)."""
        edges = list(zip(finding.path, finding.path[1:]))
        owners = []
        for source, target in edges:
            entity = self.store.get(source)
            if entity is None:
                return None
            owners.append(((entity.updated_at or "", entity.id), source, target, entity.kind))
        _, source, target, kind = max(owners)
        return FixAction(source, finding.field or "", target, _is_many(kind, finding.field or ""), finding.kind)

    def apply(self, plan: FixPlan, *, now: datetime | None = None) -> EntityStore:
        """Apply planned fixes to a copy of the store and return the copy."""
        timestamp = format_timestamp(now or utc_now())
        working = self.store.copy()
        for fix in plan.fixes:
            entity = working.require(fix.entity_id)
            data = entity_to_dict(entity)
            if fix.many:
                # only plain id lists (depends_on) are optional, hence fixable
                data[fix.field] = [item for item in data[fix.field] if item != fix.target_id]
            else:
                data[fix.field] = None
            data["updated_at"] = timestamp
            working.put(entity_from_dict(entity.kind, data))
            logger.debug("Fixed: %s", fix.describe())
        return working


def fix(
    store: EntityStore,
    dry_run: bool = False,
    history=None,
    *,
    now: datetime | None = None,
) -> FixResult:
    """
    Repair every fixable finding in ``store``.

    The input store is never modified: the returned FixResult carries the
    repaired copy (or the original store on a dry run or when nothing needs
    fixing). When ``history`` is given, an applied fix records a snapshot.

    Raises:
        CycleError: a cycle that cannot be broken automatically remains;
            nothing is applied (a dry run lists it under ``manual`` instead)
    """
    lock = history.lock if history is not None else contextlib.nullcontext()
    with lock:
        fixer = AutoFixer(store)
        plan = fixer.plan()
        if not dry_run:
            for finding in plan.manual:
                if finding.kind == "cycle":
                    raise CycleError(finding.path or finding.entity_ids, finding.entity_kind or "activity")
        if dry_run or not plan.fixes:
            return FixResult(store=store, fixes=plan.fixes, manual=plan.manual, dry_run=dry_run)

        repaired = fixer.apply(plan, now=now)
        changes = diff_stores(store, repaired)
        snapshot = None
        if history is not None:
            snapshot = history.snapshot(
                repaired, "fix", reason=f"{len(plan.fixes)} automatic fix(es)", changes=changes
            )

    logger.info("Applied %d fix(es); %d finding(s) need manual attention", len(plan.fixes), len(plan.manual))
    return FixResult(
        store=repaired,
        fixes=plan.fixes,
        manual=plan.manual,
        dry_run=False,
        snapshot=snapshot,
        changes=changes,
    )
