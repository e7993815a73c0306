"""Project setup and direct edits: init, add, set, wbs."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from rich.console import Console

from ..approval.mutations import CreateEntity, Mutation, UpdateEntity
from ..analysis.wbs import assign_wbs_codes
from ..errors import ZeusError
from ..models import ENTITY_TYPES
from ..persistence import ProjectFiles, ProjectSession
from ..util import new_id
from .common import open_session


def parse_assignments(assignments: tuple[str, ...] | list[str]) -> dict[str, Any]:
    """Parse ``key=value`` pairs; values are read as YAML scalars/lists."""
    import yaml

    result: dict[str, Any] = {}
    for item in assignments:
        key, sep, raw = item.partition("=")
        key = key.strip()
        if not sep or not key:
            raise ValueError(f"Expected key=value, got {item!r}")
        try:
            value = yaml.safe_load(raw) if raw.strip() else None
        except yaml.YAMLError:
            value = raw
        # Keep dates as ISO strings
        if value is not None and not isinstance(value, (str, int, float, bool, list, dict)):
            value = raw.strip()
        result[key] = value
    return result


def run_init(project_path: Path) -> int:
    """Create ``.zeus/`` with default settings, an empty store and the first snapshot."""
    console = Console()
    files = ProjectFiles(project_path)
    if not files.init():
        console.print(f"Project already initialised at {files.zeus_dir}", style="yellow", markup=False)
        return 0

    session = ProjectSession.load(project_path)
    snapshot = session.history.snapshot(session.store, "init")
    session.record("init", snapshot_version=snapshot.version)
    session.save()
    console.print(f"Initialised zeus project in {files.zeus_dir}", style="green", markup=False)
    return 0


def _report_item(console: Console, err: Console, state) -> int:
    if state.status == "applied":
        console.print(
            f"Applied {state.item_id} (snapshot v{state.snapshot_version}): {state.description}",
            style="green",
            markup=False,
        )
        return 0
    if state.last_error:
        err.print(f"{state.item_id} failed: {state.last_error}", style="bold red", markup=False)
        err.print("The change is queued as pending; fix the problem and `zeus approve` it, or reject it.", style="dim")
        return 1
    console.print(f"Queued {state.item_id} for approval: {state.description}", markup=False)
    return 0


def _submit(project_path: Path, mutation: Mutation, operation: str) -> int:
    console = Console()
    err = Console(stderr=True)
    session = open_session(project_path, err)
    if session is None:
        return 1

    state = session.manager.submit(mutation)
    session.record(operation, item_id=state.item_id, status=state.status, description=state.description)
    session.save()
    return _report_item(console, err, state)


def run_add(project_path: Path, kind: str, title: str, assignments: tuple[str, ...] = ()) -> int:
    """Submit the creation of a new entity."""
    err = Console(stderr=True)
    cls = ENTITY_TYPES.get(kind)
    if cls is None:
        err.print(f"Unknown entity kind: {kind}", style="bold red", markup=False)
        return 1
    try:
        fields = parse_assignments(assignments)
    except ValueError as e:
        err.print(str(e), style="bold red", markup=False)
        return 1

    fields.setdefault("id", new_id(cls.prefix))
    fields["title"] = title
    mutation = Mutation((CreateEntity(kind, fields),), f"create {kind} {fields['id']}: {title}")
    return _submit(project_path, mutation, "add")


def run_set(project_path: Path, entity_id: str, assignments: tuple[str, ...]) -> int:
    """Submit an update of existing entity fields."""
    err = Console(stderr=True)
    try:
        changes = parse_assignments(assignments)
    except ValueError as e:
        err.print(str(e), style="bold red", markup=False)
        return 1
    if not changes:
        err.print("Nothing to change (pass key=value pairs)", style="bold red")
        return 1
    mutation = Mutation((UpdateEntity(entity_id, changes),), f"update {entity_id}: {', '.join(sorted(changes))}")
    return _submit(project_path, mutation, "set")


def run_wbs(project_path: Path) -> int:
    """Submit WBS code assignment for every open activity."""
    console = Console()
    err = Console(stderr=True)
    session = open_session(project_path, err)
    if session is None:
        return 1
    try:
        mutation = assign_wbs_codes(session.store)
    except ZeusError as e:
        err.print(str(e), style="bold red", markup=False)
        return 1
    if mutation.is_empty:
        console.print("WBS codes are up to date")
        return 0
    return _submit(project_path, mutation, "wbs")
