"""
Change accounting and the audit trail.

Every committed mutation is summarised as a ChangeSummary (which entity ids
were added, removed or changed). Summaries travel with snapshots, and the
CLI appends one JSON line per committed operation to ``.zeus/audit.log``.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .store.store import EntityStore


@dataclass
class ChangeSummary:
    """Ids added, removed and changed between two store states."""

    added: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    changed: list[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.added or self.removed or self.changed)

    @property
    def total(self) -> int:
        return len(self.added) + len(self.removed) + len(self.changed)

    def merge(self, other: "ChangeSummary") -> "ChangeSummary":
        """Combine two consecutive summaries into one."""
        added = set(self.added)
        removed = set(self.removed)
        changed = set(self.changed)
        for entity_id in other.added:
            if entity_id in removed:
                removed.discard(entity_id)
                changed.add(entity_id)
            else:
                added.add(entity_id)
        for entity_id in other.removed:
            if entity_id in added:
                added.discard(entity_id)
            else:
                changed.discard(entity_id)
                removed.add(entity_id)
        for entity_id in other.changed:
            if entity_id not in added:
                changed.add(entity_id)
        return ChangeSummary(sorted(added), sorted(removed), sorted(changed))

    def to_dict(self) -> dict:
        return {"added": list(self.added), "removed": list(self.removed), "changed": list(self.changed)}

    @classmethod
    def from_dict(cls, data: dict | None) -> "ChangeSummary":
        data = data or {}
        return cls(
            added=list(data.get("added", [])),
            removed=list(data.get("removed", [])),
            changed=list(data.get("changed", [])),
        )

    def describe(self) -> str:
        parts = []
        if self.added:
            parts.append(f"{len(self.added)} added")
        if self.removed:
            parts.append(f"{len(self.removed)} removed")
        if self.changed:
            parts.append(f"{len(self.changed)} changed")
        return ", ".join(parts) if parts else "no changes"


def diff_stores(before: "EntityStore", after: "EntityStore") -> ChangeSummary:
    """Compute which entity ids differ between two stores."""
    from .store.codec import entity_to_dict

    before_ids = set(before.ids())
    after_ids = set(after.ids())
    changed = [
        entity_id
        for entity_id in sorted(before_ids & after_ids)
        if entity_to_dict(before.require(entity_id)) != entity_to_dict(after.require(entity_id))
    ]
    return ChangeSummary(
        added=sorted(after_ids - before_ids),
        removed=sorted(before_ids - after_ids),
        changed=changed,
    )


@dataclass
class AuditEntry:
    """A single audit log entry."""
    timestamp: str
    operation: str
    changes: ChangeSummary
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "timestamp": self.timestamp,
            "operation": self.operation,
            "changes": self.changes.to_dict(),
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AuditEntry":
        """Create from dictionary."""
        return cls(
            timestamp=data["timestamp"],
            operation=data["operation"],
            changes=ChangeSummary.from_dict(data.get("changes")),
            metadata=data.get("metadata", {}),
        )


def get_audit_log_path(zeus_dir: Path) -> Path:
    """Get the path to the audit log file."""
    return zeus_dir / "audit.log"


def log_operation(
    zeus_dir: Path,
    operation: str,
    changes: ChangeSummary | None = None,
    metadata: dict[str, Any] | None = None,
) -> AuditEntry:
    """
    Log an operation to the audit log.

    Args:
        zeus_dir: Path to the project's .zeus directory
        operation: Name of the operation (e.g., "approve", "fix", "restore")
        changes: Summary of what changed
        metadata: Additional context (e.g., item id, snapshot version)

    Returns:
        The created audit entry
    """
    entry = AuditEntry(
        timestamp=datetime.now(timezone.utc).isoformat(),
        operation=operation,
        changes=changes or ChangeSummary(),
        metadata=metadata or {},
    )

    log_path = get_audit_log_path(zeus_dir)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    # Append as JSON Lines format (one JSON object per line)
    with log_path.open("a", encoding="utf-8") as f:
        f.write(json.dumps(entry.to_dict()) + "\n")

    return entry


def read_audit_log(zeus_dir: Path, last_n: int | None = None) -> list[AuditEntry]:
    """
    Read entries from the audit log.

    Args:
        zeus_dir: Path to the project's .zeus directory
        last_n: If specified, return only the last N entries

    Returns:
        List of audit entries, oldest first
    """
    log_path = get_audit_log_path(zeus_dir)
    if not log_path.exists():
        return []

    entries = []
    with log_path.open("r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if line:
                try:
                    data = json.loads(line)
                    entries.append(AuditEntry.from_dict(data))
                except json.JSONDecodeError:
                    continue  # Skip malformed lines

    if last_n is not None:
        # entries[-0:] would be the whole log
        return entries[-last_n:] if last_n > 0 else []
    return entries


def format_audit_entry(entry: AuditEntry) -> str:
    """Format an audit entry for human-readable display."""
    lines = [
        f"[{entry.timestamp}] {entry.operation}",
    ]

    for label, ids in (
        ("Added", entry.changes.added),
        ("Removed", entry.changes.removed),
        ("Changed", entry.changes.changed),
    ):
        if ids:
            lines.append(f"  {label}: {', '.join(ids)}")

    if entry.metadata:
        for key, value in entry.metadata.items():
            lines.append(f"  {key}: {value}")

    return "\n".join(lines)
