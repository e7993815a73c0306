"""
On-disk project files under ``.zeus/``.

    .zeus/zeus.toml        engine settings
    .zeus/store.yaml       working copy of the store (hand-editable)
    .zeus/history.jsonl    append-only snapshots, one per line
    .zeus/approvals.jsonl  append-only approval events, one per line
    .zeus/audit.log        JSON Lines audit trail

The engine itself never touches the filesystem; this module loads a session
(store, history, approval manager) and writes back what it appended.
"""

from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Any, Iterator, Sequence

from .approval.events import ApprovalEvent
from .approval.history import Snapshot, SnapshotHistory
from .approval.manager import ApprovalManager
from .audit_log import ChangeSummary, log_operation
from .config import DEFAULT_CONFIG_TOML, Settings, load_settings
from .errors import ValidationError
from .store.store import EntityStore

logger = logging.getLogger(__name__)

ZEUS_DIR_NAME = ".zeus"


def _stringify_dates(value: Any) -> Any:
    """YAML turns unquoted dates into date objects; the models keep ISO strings."""
    if isinstance(value, dict):
        return {k: _stringify_dates(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_stringify_dates(v) for v in value]
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value


def find_project_root(start: Path) -> Path | None:
    """Find the nearest directory containing ``.zeus`` by walking up from ``start``."""
    cur = start.resolve()
    for p in (cur, *cur.parents):
        if (p / ZEUS_DIR_NAME).is_dir():
            return p
    return None


class ProjectFiles:
    """Paths and raw reads/writes for one project's ``.zeus`` directory."""

    def __init__(self, root: Path):
        self.root = root
        self.zeus_dir = root / ZEUS_DIR_NAME
        self.config_path = self.zeus_dir / "zeus.toml"
        self.store_path = self.zeus_dir / "store.yaml"
        self.history_path = self.zeus_dir / "history.jsonl"
        self.approvals_path = self.zeus_dir / "approvals.jsonl"

    def exists(self) -> bool:
        return self.zeus_dir.is_dir()

    def init(self) -> bool:
        """Create the directory and a default config. Returns False if it already existed."""
        if self.exists():
            return False
        self.zeus_dir.mkdir(parents=True)
        self.config_path.write_text(DEFAULT_CONFIG_TOML, encoding="utf-8")
        return True

    def load_settings(self) -> Settings:
        return load_settings(self.config_path)

    # --- store.yaml -----------------------------------------------------------

    def load_store(self) -> EntityStore | None:
        if not self.store_path.exists():
            return None
        import yaml

        try:
            data = yaml.safe_load(self.store_path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as e:
            raise ValidationError(f"{self.store_path}: {e}") from e
        if not isinstance(data, dict):
            raise ValidationError(f"{self.store_path}: expected a mapping of kind -> records")
        return EntityStore.from_dict(_stringify_dates(data))

    def save_store(self, store: EntityStore) -> None:
        """Write store.yaml atomically (temp file + rename)."""
        import yaml

        self.zeus_dir.mkdir(parents=True, exist_ok=True)
        text = yaml.safe_dump(store.to_dict(), sort_keys=False, allow_unicode=True)
        fd, tmp = tempfile.mkstemp(dir=self.zeus_dir, prefix=".store-", suffix=".yaml")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(text)
            os.replace(tmp, self.store_path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    # --- JSONL logs -------------------------------------------------------------

    @staticmethod
    def _iter_lines(path: Path) -> Iterator[str]:
        if not path.exists():
            return
        with path.open("r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if line:
                    yield line

    @staticmethod
    def _append_lines(path: Path, lines: Sequence[str]) -> None:
        if not lines:
            return
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("a", encoding="utf-8") as f:
            for line in lines:
                f.write(line + "\n")

    def load_snapshots(self) -> list[Snapshot]:
        return [Snapshot.from_json(line) for line in self._iter_lines(self.history_path)]

    def append_snapshots(self, snapshots: Sequence[Snapshot]) -> None:
        self._append_lines(self.history_path, [s.to_json() for s in snapshots])

    def load_events(self) -> list[ApprovalEvent]:
        return [ApprovalEvent.from_json(line) for line in self._iter_lines(self.approvals_path)]

    def append_events(self, events: Sequence[ApprovalEvent]) -> None:
        self._append_lines(self.approvals_path, [e.to_json() for e in events])


@dataclass
class ProjectSession:
    """A loaded project: live store, snapshot history and approval queue."""

    files: ProjectFiles
    settings: Settings
    manager: ApprovalManager
    _saved_version: int = 0
    _saved_events: int = 0
    _saved_store: EntityStore | None = None
    operations: list[dict[str, Any]] = field(default_factory=list)

    @property
    def store(self) -> EntityStore:
        return self.manager.store

    @store.setter
    def store(self, value: EntityStore) -> None:
        self.manager.store = value

    @property
    def history(self) -> SnapshotHistory:
        return self.manager.history

    @classmethod
    def load(cls, root: Path) -> "ProjectSession":
        """
        Load a project.

        store.yaml is the working copy. If it differs from the latest
        snapshot (e.g. it was edited by hand) the difference is recorded as a
        ``sync`` snapshot; without store.yaml the latest snapshot is checked
        out.
        """
        files = ProjectFiles(root)
        settings = files.load_settings()
        history = SnapshotHistory(files.load_snapshots())
        latest = history.latest()
        saved_version = latest.version if latest else 0

        store = files.load_store()
        if store is None:
            store = latest.to_store() if latest else EntityStore()
        elif latest is None or not store.content_equals(latest.to_store()):
            history.snapshot(store, "sync", reason="store.yaml changed outside zeus")

        events = files.load_events()
        manager = ApprovalManager(store, history, settings=settings, events=events)
        return cls(
            files=files,
            settings=settings,
            manager=manager,
            _saved_version=saved_version,
            _saved_events=len(events),
            _saved_store=store,
        )

    def record(self, operation: str, changes: ChangeSummary | None = None, **metadata: Any) -> None:
        """Queue an audit entry, written on save()."""
        self.operations.append({"operation": operation, "changes": changes, "metadata": metadata})

    def save(self) -> None:
        """Append new snapshots/events, rewrite store.yaml and flush the audit trail."""
        new_snapshots = self.history.since(self._saved_version)
        self.files.append_snapshots(new_snapshots)
        if new_snapshots:
            self._saved_version = new_snapshots[-1].version

        events = self.manager.events
        self.files.append_events(events[self._saved_events:])
        self._saved_events = len(events)

        if self._saved_store is None or self._saved_store is not self.store or not self.files.store_path.exists():
            self.files.save_store(self.store)
            self._saved_store = self.store

        for op in self.operations:
            log_operation(self.files.zeus_dir, op["operation"], op["changes"], op["metadata"])
        self.operations.clear()
        logger.debug("Saved project at %s", self.files.root)

