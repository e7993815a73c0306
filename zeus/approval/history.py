"""
Snapshot history: an append-only arena of immutable store states.

Each snapshot holds the canonical JSON of the whole store, so it can never
be changed through a reference handed out to a caller. Restoring a version
returns a fresh store built from that JSON and records the restore itself as
a new snapshot; history is never rewritten.
"""

from __future__ import annotations

import hashlib
import json
import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Iterable

from ..audit_log import ChangeSummary, diff_stores
from ..errors import SnapshotNotFound
from ..store.store import EntityStore
from ..util import format_timestamp, utc_now

logger = logging.getLogger(__name__)


def compute_hash(payload: str) -> str:
    """sha256 of a canonical JSON payload."""
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class Snapshot:
    """Immutable copy of the store at one version."""

    version: int
    created_at: str
    label: str
    payload: str  # canonical JSON of store.to_dict()
    content_id: str
    reason: str = ""
    changes: ChangeSummary | None = None

    @property
    def data(self) -> dict[str, Any]:
        """A fresh plain-data copy of the stored state."""
        return json.loads(self.payload)

    def to_store(self) -> EntityStore:
        return EntityStore.from_dict(self.data)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "version": self.version,
            "created_at": self.created_at,
            "label": self.label,
            "content_id": self.content_id,
            "store": self.data,
        }
        if self.reason:
            result["reason"] = self.reason
        if self.changes is not None:
            result["changes"] = self.changes.to_dict()
        return result

    def to_json(self) -> str:
        """Serialize to JSON string (single line)."""
        return json.dumps(self.to_dict(), separators=(",", ":"))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Snapshot":
        payload = json.dumps(data.get("store", {}), sort_keys=True, separators=(",", ":"))
        changes = data.get("changes")
        return cls(
            version=int(data["version"]),
            created_at=data.get("created_at", ""),
            label=data.get("label", ""),
            payload=payload,
            content_id=data.get("content_id") or compute_hash(payload),
            reason=data.get("reason", ""),
            changes=ChangeSummary.from_dict(changes) if changes is not None else None,
        )

    @classmethod
    def from_json(cls, line: str) -> "Snapshot":
        return cls.from_dict(json.loads(line))


class SnapshotHistory:
    """
    Ordered arena of snapshots with strictly increasing versions.

    ``lock`` is the mutation lock: every writer (approvals, fixes, restores)
    holds it while it computes and swaps in a new store, so snapshots are
    recorded one at a time.
    """

    def __init__(self, snapshots: Iterable[Snapshot] = (), *, clock: Callable[[], datetime] | None = None):
        self._snapshots: list[Snapshot] = sorted(snapshots, key=lambda s: s.version)
        self._clock = clock or utc_now
        self.lock = threading.RLock()

    def __len__(self) -> int:
        return len(self._snapshots)

    @property
    def versions(self) -> list[int]:
        return [s.version for s in self._snapshots]

    def latest(self) -> Snapshot | None:
        return self._snapshots[-1] if self._snapshots else None

    def get(self, version: int) -> Snapshot:
        for snapshot in self._snapshots:
            if snapshot.version == version:
                return snapshot
        raise SnapshotNotFound(version)

    def history(self, limit: int | None = None) -> list[Snapshot]:
        """Snapshots newest first."""
        ordered = list(reversed(self._snapshots))
        return ordered[:limit] if limit is not None else ordered

    def snapshot(
        self,
        store: EntityStore,
        label: str = "",
        *,
        reason: str = "",
        changes: ChangeSummary | None = None,
    ) -> Snapshot:
        """Record the current content of ``store`` as a new version."""
        with self.lock:
            latest = self.latest()
            if changes is None and latest is not None:
                changes = diff_stores(latest.to_store(), store)
            payload = store.to_json()
            snapshot = Snapshot(
                version=(latest.version + 1) if latest else 1,
                created_at=format_timestamp(self._clock()),
                label=label,
                payload=payload,
                content_id=compute_hash(payload),
                reason=reason,
                changes=changes,
            )
            self._snapshots.append(snapshot)
        logger.info("Recorded snapshot v%d (%s)", snapshot.version, label or "unlabelled")
        return snapshot

    def restore(self, version: int, *, reason: str = "") -> EntityStore:
        """Return a fresh store at ``version`` and record the restore as a new snapshot."""
        with self.lock:
            target = self.get(version)
            store = target.to_store()
            self.snapshot(store, f"restore:{version}", reason=reason)
        return store

    def since(self, version: int) -> list[Snapshot]:
        """Snapshots newer than ``version``, oldest first."""
        return [s for s in self._snapshots if s.version > version]
