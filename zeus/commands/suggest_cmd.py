"""suggest, pending, approve, reject and apply commands."""

from __future__ import annotations

from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ..analysis.suggestions import generate_suggestions
from ..approval.state import ItemState
from ..audit_log import ChangeSummary
from ..errors import ZeusError
from .common import IMPACT_STYLES, open_session, print_json, styled


def _items_table(title: str, items: list[ItemState]) -> Table:
    table = Table(title=title)
    table.add_column("#", justify="right", style="dim")
    table.add_column("id", style="cyan", no_wrap=True)
    table.add_column("type", style="magenta")
    table.add_column("impact")
    table.add_column("status")
    table.add_column("description")
    for rank, state in enumerate(items, 1):
        description = escape(state.description)
        if state.last_error:
            description += f"\n[red]last error: {escape(state.last_error)}[/]"
        table.add_row(
            str(rank),
            escape(state.item_id),
            state.item_type,
            styled(state.impact, IMPACT_STYLES),
            state.status,
            description,
        )
    return table


def run_suggest(project_path: Path, output_json: bool = False) -> int:
    """Generate suggestions and queue them for approval."""
    console = Console()
    err = Console(stderr=True)
    session = open_session(project_path, err)
    if session is None:
        return 1

    suggestions = generate_suggestions(session.store, settings=session.settings)
    states = session.manager.propose(suggestions)
    session.record("suggest", generated=len(suggestions), item_ids=[s.item_id for s in states])
    session.save()

    if output_json:
        print_json({
            "suggestions": [s.to_dict() for s in suggestions],
            "items": [s.to_dict() for s in states],
        })
        return 0

    if not suggestions:
        console.print("No suggestions.", style="green")
        return 0

    console.print(_items_table("Suggestions", states))
    pending = [s for s in states if s.status == "pending"]
    if pending:
        console.print(f"{len(pending)} item(s) pending. Use `zeus approve <id>` or `zeus apply --all`.", style="dim")
    return 0


def run_pending(project_path: Path, output_json: bool = False) -> int:
    """List pending items in ranked order."""
    console = Console()
    err = Console(stderr=True)
    session = open_session(project_path, err)
    if session is None:
        return 1

    pending = session.manager.pending()
    if output_json:
        print_json([s.to_dict() for s in pending])
        return 0

    if not pending:
        console.print("Nothing pending.", style="green")
        return 0
    console.print(_items_table("Pending", pending))
    return 0


def run_approve(project_path: Path, item_id: str) -> int:
    """Approve one pending item and apply it."""
    console = Console()
    err = Console(stderr=True)
    session = open_session(project_path, err)
    if session is None:
        return 1

    try:
        state = session.manager.approve(item_id)
    except ZeusError as e:
        session.record("approve_failed", item_id=item_id, error=str(e))
        session.save()
        err.print(f"Approve failed: {e}", style="bold red", markup=False)
        return 1

    session.record(
        "approve",
        ChangeSummary.from_dict(state.changes),
        item_id=item_id,
        snapshot_version=state.snapshot_version,
    )
    session.save()
    console.print(
        f"Applied {item_id} (snapshot v{state.snapshot_version}): {state.description}", style="green", markup=False
    )
    return 0


def run_reject(project_path: Path, item_id: str, reason: str = "") -> int:
    """Reject one pending item."""
    console = Console()
    err = Console(stderr=True)
    session = open_session(project_path, err)
    if session is None:
        return 1

    try:
        session.manager.reject(item_id, reason)
    except ZeusError as e:
        err.print(str(e), style="bold red", markup=False)
        return 1

    session.record("reject", item_id=item_id, reason=reason)
    session.save()
    console.print(f"Rejected {item_id}", style="yellow", markup=False)
    return 0


def run_apply(
    project_path: Path,
    item_id: str | None = None,
    apply_all: bool = False,
    dry_run: bool = False,
    output_json: bool = False,
) -> int:
    """
    Apply one pending item or all of them.

    With ``dry_run`` nothing is committed; the changes each item would make
    are printed instead.
    """
    console = Console()
    err = Console(stderr=True)
    if not apply_all and item_id is None:
        err.print("Pass an item id or --all", style="bold red")
        return 1

    if not apply_all and not dry_run:
        return run_approve(project_path, item_id)

    session = open_session(project_path, err)
    if session is None:
        return 1

    if not apply_all:
        try:
            changes = session.manager.dry_run(item_id)
        except ZeusError as e:
            err.print(f"{item_id} would fail: {e}", style="bold red", markup=False)
            return 1
        if output_json:
            print_json({"item_id": item_id, "changes": changes.to_dict()})
        else:
            console.print(f"{item_id} would change {changes.describe()}", markup=False)
        return 0

    outcomes = session.manager.apply_all(dry_run=dry_run)
    if not dry_run:
        total = ChangeSummary()
        for outcome in outcomes:
            if outcome.changes is not None:
                total = total.merge(outcome.changes)
        session.record(
            "apply_all",
            total,
            applied=[o.item_id for o in outcomes if o.status == "applied"],
            failed=[o.item_id for o in outcomes if o.status == "failed"],
        )
    session.save()

    failed = any(o.status == "failed" for o in outcomes)
    if output_json:
        print_json([o.to_dict() for o in outcomes])
        return 1 if failed else 0

    if not outcomes:
        console.print("Nothing pending.", style="green")
        return 0

    marks = {
        "applied": "[green]applied[/]",
        "would_apply": "[green]would apply[/]",
        "failed": "[bold red]failed[/]",
        "skipped": "[yellow]skipped[/]",
    }
    table = Table(title="Dry run" if dry_run else "Applied")
    table.add_column("id", style="cyan", no_wrap=True)
    table.add_column("result")
    table.add_column("details")
    for outcome in outcomes:
        if outcome.error:
            details = outcome.error
        elif outcome.changes is not None:
            details = outcome.changes.describe()
        else:
            details = ""
        table.add_row(escape(outcome.item_id), marks[outcome.status], escape(details))
    console.print(table)
    if failed:
        err.print("Stopped at the first failure; later items were left pending.", style="bold red")
    return 1 if failed else 0
