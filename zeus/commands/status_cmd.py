"""status, schedule and bottlenecks commands."""

from __future__ import annotations

from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ..analysis.aggregate import aggregate
from ..analysis.bottleneck import analyze_bottlenecks
from ..analysis.critical_path import analyze_dependencies
from ..analysis.health import project_health
from ..errors import CycleError
from .common import SEVERITY_STYLES, open_session, print_json, styled

HEALTH_STYLES = {"good": "bold green", "fair": "bold yellow", "poor": "bold red", "unknown": "dim"}


def run_status(project_path: Path, output_json: bool = False) -> int:
    """Show rolled-up progress per objective and overall project health."""
    console = Console()
    err = Console(stderr=True)
    session = open_session(project_path, err)
    if session is None:
        return 1

    session.save()  # persists a sync snapshot if store.yaml was edited

    store = session.store
    view = aggregate(store)
    health = project_health(store)

    if output_json:
        print_json({"health": health.to_dict(), "nodes": view.to_dict()})
        return 0

    vision = store.vision
    if vision is not None:
        console.print(f"[bold]{escape(vision.title or vision.id)}[/] {escape(vision.statement)}")

    table = Table(title="Progress")
    table.add_column("id", style="cyan", no_wrap=True)
    table.add_column("title")
    table.add_column("status")
    table.add_column("progress", justify="right")

    roots = [o.id for o in store.objectives if store.kind_of(o.parent_id) != "objective"]
    stack = [(root, 0) for root in reversed(roots)]
    while stack:
        entity_id, depth = stack.pop()
        node = view.get(entity_id)
        entity = store.get(entity_id)
        if node is None or entity is None:
            continue
        title = "  " * depth + escape(entity.title or "")
        table.add_row(escape(entity_id), title, node.status, f"{node.progress:.0f}%")
        stack.extend((child, depth + 1) for child in reversed(node.children))
    console.print(table)

    counts = ", ".join(f"{n} {status}" for status, n in health.counts.items())
    console.print(
        f"Health: {health.health} ({counts}; {health.completion_ratio:.0%} of {health.total} activities done)",
        style=HEALTH_STYLES[health.health],
    )
    return 0


def run_schedule(project_path: Path, output_json: bool = False) -> int:
    """Show the critical path schedule of all activities."""
    console = Console()
    err = Console(stderr=True)
    session = open_session(project_path, err)
    if session is None:
        return 1

    try:
        schedule = analyze_dependencies(session.store.activities, session.settings)
    except CycleError as e:
        err.print(str(e), style="bold red", markup=False)
        err.print("Run `zeus doctor` for details.", style="dim")
        return 1

    if output_json:
        print_json(schedule.to_dict())
        return 0

    table = Table(title=f"Schedule (project finish: day {schedule.project_finish:g})")
    table.add_column("id", style="cyan", no_wrap=True)
    table.add_column("ES", justify="right")
    table.add_column("EF", justify="right")
    table.add_column("LS", justify="right")
    table.add_column("LF", justify="right")
    table.add_column("slack", justify="right")
    table.add_column("")
    for node_id in schedule.order:
        node = schedule.nodes[node_id]
        flags = []
        if node.on_critical_path:
            flags.append("[bold red]critical[/]")
        if node.blocked:
            flags.append("[yellow]blocked[/]")
        table.add_row(
            escape(node_id),
            f"{node.earliest_start:g}",
            f"{node.earliest_finish:g}",
            f"{node.latest_start:g}",
            f"{node.latest_finish:g}",
            f"{node.slack:g}",
            " ".join(flags),
        )
    console.print(table)
    if schedule.critical_path:
        console.print("Critical path: " + " -> ".join(schedule.critical_path), style="bold", markup=False)
    return 0


def run_bottlenecks(project_path: Path, output_json: bool = False) -> int:
    """Report block chains, overdue and stagnant work, isolated entities and risks."""
    console = Console()
    err = Console(stderr=True)
    session = open_session(project_path, err)
    if session is None:
        return 1

    analysis = analyze_bottlenecks(session.store, session.settings)
    if output_json:
        print_json(analysis.to_dict())
        return 0

    if not analysis.bottlenecks:
        console.print("No bottlenecks found.", style="green")
        return 0

    table = Table(title="Bottlenecks")
    table.add_column("severity")
    table.add_column("type", style="magenta")
    table.add_column("entities", style="cyan")
    table.add_column("message")
    table.add_column("suggestion", style="dim")
    for b in analysis.bottlenecks:
        table.add_row(
            styled(b.severity, SEVERITY_STYLES),
            b.type,
            escape(", ".join(b.entity_ids)),
            escape(b.message),
            escape(b.suggestion),
        )
    console.print(table)
    return 0
