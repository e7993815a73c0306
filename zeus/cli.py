"""CLI entrypoint for zeus."""

import logging
import sys
from pathlib import Path

import click

from . import __version__


@click.group()
@click.version_option(__version__, prog_name="zeus")
@click.option(
    "--project",
    "-p",
    type=click.Path(exists=False, file_okay=False, dir_okay=True, path_type=Path),
    default=None,
    help="Project directory containing .zeus (defaults to the nearest one above the current directory)",
)
@click.option("--verbose", is_flag=True, help="Log engine activity to stderr")
@click.pass_context
def cli(ctx: click.Context, project: Path | None, verbose: bool) -> None:
    """zeus - Project graph and analysis engine.

    Keep a project's vision, objectives, deliverables and activities in one
    validated store, roll progress up the hierarchy, find the critical path
    and review suggested changes before they are applied.
    """
    from rich.console import Console
    from rich.logging import RichHandler

    from .persistence import find_project_root

    ctx.ensure_object(dict)

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )

    if project is None:
        project = find_project_root(Path.cwd()) or Path.cwd()
    elif project.exists() and not project.is_dir():
        raise click.BadParameter(f"'{project}' is not a directory.", param_hint="--project / -p")

    ctx.obj["project"] = project.resolve()


@cli.command()
@click.pass_context
def init(ctx: click.Context) -> None:
    """Create a .zeus project in the project directory."""
    from .commands.project_cmd import run_init

    sys.exit(run_init(ctx.obj["project"]))


@cli.command()
@click.argument("kind")
@click.argument("title")
@click.argument("assignments", nargs=-1)
@click.pass_context
def add(ctx: click.Context, kind: str, title: str, assignments: tuple[str, ...]) -> None:
    """Add an entity of KIND, e.g. `zeus add activity "Write docs" parent_id=del-1 duration=2`."""
    from .commands.project_cmd import run_add

    sys.exit(run_add(ctx.obj["project"], kind, title, assignments))


@cli.command("set")
@click.argument("entity_id")
@click.argument("assignments", nargs=-1, required=True)
@click.pass_context
def set_fields(ctx: click.Context, entity_id: str, assignments: tuple[str, ...]) -> None:
    """Change fields of an entity, e.g. `zeus set act-1 status=done`."""
    from .commands.project_cmd import run_set

    sys.exit(run_set(ctx.obj["project"], entity_id, assignments))


@cli.command()
@click.pass_context
def wbs(ctx: click.Context) -> None:
    """Assign work breakdown structure codes to open activities."""
    from .commands.project_cmd import run_wbs

    sys.exit(run_wbs(ctx.obj["project"]))


@cli.command()
@click.option("--json", "output_json", is_flag=True, help="Output results as JSON")
@click.pass_context
def doctor(ctx: click.Context, output_json: bool) -> None:
    """Check the store for broken references, orphans, cycles and rule violations.

    Exits with status 1 when any error is found.
    """
    from .commands.doctor_cmd import run_doctor

    sys.exit(run_doctor(ctx.obj["project"], output_json))


@cli.command()
@click.option("--dry-run", is_flag=True, help="Show the fixes without applying them")
@click.option("--json", "output_json", is_flag=True, help="Output results as JSON")
@click.pass_context
def fix(ctx: click.Context, dry_run: bool, output_json: bool) -> None:
    """Repair fixable findings (dangling optional references, short cycles)."""
    from .commands.doctor_cmd import run_fix

    sys.exit(run_fix(ctx.obj["project"], dry_run, output_json))


@cli.command()
@click.option("--json", "output_json", is_flag=True, help="Output results as JSON")
@click.pass_context
def status(ctx: click.Context, output_json: bool) -> None:
    """Show progress rolled up from activities to the vision."""
    from .commands.status_cmd import run_status

    sys.exit(run_status(ctx.obj["project"], output_json))


@cli.command()
@click.option("--json", "output_json", is_flag=True, help="Output results as JSON")
@click.pass_context
def schedule(ctx: click.Context, output_json: bool) -> None:
    """Compute earliest/latest times, slack and the critical path."""
    from .commands.status_cmd import run_schedule

    sys.exit(run_schedule(ctx.obj["project"], output_json))


@cli.command()
@click.option("--json", "output_json", is_flag=True, help="Output results as JSON")
@click.pass_context
def bottlenecks(ctx: click.Context, output_json: bool) -> None:
    """Find block chains, overdue or stagnant work and unmitigated risks."""
    from .commands.status_cmd import run_bottlenecks

    sys.exit(run_bottlenecks(ctx.obj["project"], output_json))


@cli.command()
@click.argument("kind", type=click.Choice(["all", "completion", "velocity", "risk"]), default="all")
@click.option("--json", "output_json", is_flag=True, help="Output results as JSON")
@click.pass_context
def predict(ctx: click.Context, kind: str, output_json: bool) -> None:
    """Forecast completion, velocity and delivery risk from snapshot history."""
    from .commands.analysis_cmd import run_predict

    sys.exit(run_predict(ctx.obj["project"], kind, output_json))


@cli.command()
@click.option("--json", "output_json", is_flag=True, help="Output results as JSON")
@click.pass_context
def coverage(ctx: click.Context, output_json: bool) -> None:
    """Find objectives without deliverables and work attached to nothing."""
    from .commands.analysis_cmd import run_coverage

    sys.exit(run_coverage(ctx.obj["project"], output_json))


@cli.command()
@click.option("--json", "output_json", is_flag=True, help="Output results as JSON")
@click.pass_context
def stale(ctx: click.Context, output_json: bool) -> None:
    """List finished work to archive and long-blocked work to review."""
    from .commands.analysis_cmd import run_stale

    sys.exit(run_stale(ctx.obj["project"], output_json))


@cli.command()
@click.option("--json", "output_json", is_flag=True, help="Output results as JSON")
@click.pass_context
def suggest(ctx: click.Context, output_json: bool) -> None:
    """Generate suggestions and queue them for approval."""
    from .commands.suggest_cmd import run_suggest

    sys.exit(run_suggest(ctx.obj["project"], output_json))


@cli.command()
@click.option("--json", "output_json", is_flag=True, help="Output results as JSON")
@click.pass_context
def pending(ctx: click.Context, output_json: bool) -> None:
    """List items waiting for approval, highest impact first."""
    from .commands.suggest_cmd import run_pending

    sys.exit(run_pending(ctx.obj["project"], output_json))


@cli.command()
@click.argument("item_id")
@click.pass_context
def approve(ctx: click.Context, item_id: str) -> None:
    """Approve and apply a pending item."""
    from .commands.suggest_cmd import run_approve

    sys.exit(run_approve(ctx.obj["project"], item_id))


@cli.command()
@click.argument("item_id")
@click.option("--reason", default="", help="Why the item is rejected")
@click.pass_context
def reject(ctx: click.Context, item_id: str, reason: str) -> None:
    """Reject a pending item."""
    from .commands.suggest_cmd import run_reject

    sys.exit(run_reject(ctx.obj["project"], item_id, reason))


@cli.command()
@click.argument("item_id", required=False)
@click.option("--all", "apply_all", is_flag=True, help="Apply every pending item in ranked order")
@click.option("--dry-run", is_flag=True, help="Show what would change without committing")
@click.option("--json", "output_json", is_flag=True, help="Output results as JSON")
@click.pass_context
def apply(ctx: click.Context, item_id: str | None, apply_all: bool, dry_run: bool, output_json: bool) -> None:
    """Apply one pending item, or all of them with --all.

    A batch stops at the first item that fails; later items stay pending.
    """
    from .commands.suggest_cmd import run_apply

    sys.exit(run_apply(ctx.obj["project"], item_id, apply_all, dry_run, output_json))


@cli.command()
@click.option("--limit", "-n", type=int, default=None, help="Show only the newest N snapshots")
@click.option("--json", "output_json", is_flag=True, help="Output results as JSON")
@click.pass_context
def history(ctx: click.Context, limit: int | None, output_json: bool) -> None:
    """List recorded snapshots, newest first."""
    from .commands.history_cmd import run_history

    sys.exit(run_history(ctx.obj["project"], limit, output_json))


@cli.command()
@click.argument("version", type=int)
@click.option("--reason", default="", help="Why the snapshot is restored")
@click.pass_context
def restore(ctx: click.Context, version: int, reason: str) -> None:
    """Restore the store to snapshot VERSION (recorded as a new snapshot)."""
    from .commands.history_cmd import run_restore

    sys.exit(run_restore(ctx.obj["project"], version, reason))


@cli.command()
@click.option("--last", "-n", "last_n", type=click.IntRange(min=0), default=None, help="Show only the last N entries")
@click.pass_context
def log(ctx: click.Context, last_n: int | None) -> None:
    """Show the audit trail of committed operations."""
    from .commands.history_cmd import run_log

    sys.exit(run_log(ctx.obj["project"], last_n))


def main() -> None:
    """Main entrypoint."""
    cli()


if __name__ == "__main__":
    main()
