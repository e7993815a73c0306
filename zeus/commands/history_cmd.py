"""history, restore and log commands."""

from __future__ import annotations

from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ..audit_log import format_audit_entry, read_audit_log
from ..errors import SnapshotNotFound
from .common import open_session, print_json


def run_history(project_path: Path, limit: int | None = None, output_json: bool = False) -> int:
    """List snapshots, newest first."""
    console = Console()
    err = Console(stderr=True)
    session = open_session(project_path, err)
    if session is None:
        return 1
    session.save()

    snapshots = session.history.history(limit)
    if output_json:
        print_json([
            {
                "version": s.version,
                "created_at": s.created_at,
                "label": s.label,
                "reason": s.reason,
                "content_id": s.content_id,
                "changes": s.changes.to_dict() if s.changes else None,
            }
            for s in snapshots
        ])
        return 0

    if not snapshots:
        console.print("No snapshots recorded.", style="dim")
        return 0

    table = Table(title="History")
    table.add_column("version", justify="right", style="cyan")
    table.add_column("created")
    table.add_column("label", style="magenta")
    table.add_column("changes")
    table.add_column("reason", style="dim")
    for s in snapshots:
        table.add_row(
            str(s.version),
            s.created_at,
            escape(s.label),
            escape(s.changes.describe() if s.changes else ""),
            escape(s.reason),
        )
    console.print(table)
    return 0


def run_restore(project_path: Path, version: int, reason: str = "") -> int:
    """Check out an earlier snapshot; the restore is recorded as a new one."""
    console = Console()
    err = Console(stderr=True)
    session = open_session(project_path, err)
    if session is None:
        return 1

    with session.history.lock:
        try:
            store = session.history.restore(version, reason=reason)
        except SnapshotNotFound as e:
            err.print(str(e), style="bold red", markup=False)
            return 1
        session.store = store
        latest = session.history.latest()
        session.record(
            "restore",
            latest.changes if latest else None,
            restored_version=version,
            snapshot_version=latest.version if latest else None,
        )
    session.save()
    console.print(f"Restored v{version} as snapshot v{latest.version}", style="green")
    return 0


def run_log(project_path: Path, last_n: int | None = None) -> int:
    """Print the audit trail."""
    console = Console()
    err = Console(stderr=True)
    session = open_session(project_path, err)
    if session is None:
        return 1

    entries = read_audit_log(session.files.zeus_dir, last_n)
    if not entries:
        console.print("Audit log is empty.", style="dim")
        return 0
    for entry in entries:
        console.print(format_audit_entry(entry), markup=False, highlight=False)
    return 0
