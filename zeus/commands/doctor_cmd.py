"""doctor and fix commands."""

from __future__ import annotations

from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ..doctor.fixer import fix
from ..doctor.validator import CHECKS, DiagnosisResult, diagnose
from ..errors import CycleError
from .common import SEVERITY_STYLES, open_session, print_json, styled

STATUS_MARKS = {"pass": "[green]✓ pass[/]", "warn": "[yellow]! warn[/]", "fail": "[red]✗ fail[/]"}
OVERALL_STYLES = {"healthy": "bold green", "degraded": "bold yellow", "unhealthy": "bold red"}


def _print_diagnosis(console: Console, result: DiagnosisResult) -> None:
    checks = Table(title="Integrity checks")
    checks.add_column("check")
    checks.add_column("status")
    for name in CHECKS:
        checks.add_row(name, STATUS_MARKS[result.check_status(name)])
    console.print(checks)

    if result.findings:
        table = Table(title="Findings")
        table.add_column("severity")
        table.add_column("kind", style="magenta")
        table.add_column("entities", style="cyan")
        table.add_column("message")
        table.add_column("fixable")
        for finding in result.findings:
            table.add_row(
                styled(finding.severity, SEVERITY_STYLES),
                finding.kind,
                escape(", ".join(finding.entity_ids)),
                escape(finding.message),
                "yes" if finding.fixable else "",
            )
        console.print(table)

    console.print(
        f"Overall: {result.overall} "
        f"({len(result.errors)} error(s), {len(result.warnings)} warning(s), {result.fixable_count} fixable)",
        style=OVERALL_STYLES[result.overall],
    )
    if result.fixable_count:
        console.print("Run `zeus fix` to repair fixable findings.", style="dim")


def run_doctor(project_path: Path, output_json: bool = False) -> int:
    """Validate the project store. Exit code 1 when any error is found."""
    console = Console()
    err = Console(stderr=True)
    session = open_session(project_path, err)
    if session is None:
        return 1

    result = diagnose(session.store)
    session.save()  # persists a sync snapshot if store.yaml was edited

    if output_json:
        print_json(result.to_dict())
    else:
        _print_diagnosis(console, result)
    return 1 if result.errors else 0


def run_fix(project_path: Path, dry_run: bool = False, output_json: bool = False) -> int:
    """Repair fixable findings (or show what would be repaired)."""
    console = Console()
    err = Console(stderr=True)
    session = open_session(project_path, err)
    if session is None:
        return 1

    with session.history.lock:
        try:
            result = fix(session.store, dry_run=dry_run, history=session.history)
        except CycleError as e:
            err.print(f"Nothing applied: {e}", style="red", markup=False)
            err.print("Break the cycle by hand, then run fix again.", style="dim")
            return 1
        if not dry_run and result.fixes:
            session.store = result.store
            session.record(
                "fix",
                result.changes,
                fixes=len(result.fixes),
                snapshot_version=getattr(result.snapshot, "version", None),
            )
    session.save()

    if output_json:
        print_json(result.to_dict())
        return 0

    if not result.fixes:
        console.print("Nothing to fix.", style="green")
    else:
        verb = "Would apply" if dry_run else "Applied"
        console.print(f"{verb} {len(result.fixes)} fix(es):", style="bold")
        for action in result.fixes:
            console.print(f"  - {action.describe()}", markup=False)
        if result.snapshot is not None:
            console.print(f"Recorded snapshot v{result.snapshot.version}", style="dim")
    if result.manual:
        console.print(f"{len(result.manual)} finding(s) need manual attention:", style="yellow")
        for finding in result.manual:
            console.print(f"  - {finding}", markup=False)
    return 0
