"""predict, coverage and stale commands."""

from __future__ import annotations

from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ..analysis.coverage import analyze_coverage
from ..analysis.predict import PREDICTION_KINDS, predict
from ..analysis.stale import analyze_stale
from .common import SEVERITY_STYLES, open_session, print_json, styled

TREND_STYLES = {"increasing": "green", "decreasing": "red", "stable": "cyan"}
RISK_STYLES = {"high": "bold red", "medium": "yellow", "low": "green"}


def run_predict(project_path: Path, kind: str = "all", output_json: bool = False) -> int:
    """Forecast completion, velocity and delivery risk from snapshot history."""
    console = Console()
    err = Console(stderr=True)
    session = open_session(project_path, err)
    if session is None:
        return 1

    kinds = PREDICTION_KINDS if kind == "all" else (kind,)
    try:
        prediction = predict(session.store, session.history.history(), kinds)
    except ValueError as e:
        err.print(str(e), style="bold red", markup=False)
        return 1

    if output_json:
        print_json(prediction.to_dict())
        return 0

    completion = prediction.completion
    if completion is not None:
        console.print("Completion", style="bold cyan")
        console.print(f"  Estimated date: [green]{completion.estimated_date}[/]", highlight=False)
        if completion.margin_days:
            console.print(f"  Margin:         +/- {completion.margin_days} day(s)")
        console.print(f"  Velocity:       {completion.velocity:.1f} activities/week")
        console.print(f"  Remaining:      {completion.remaining}")
        console.print(f"  Confidence:     {completion.confidence}%")
        if not completion.sufficient_data:
            console.print("  Not enough history yet; the forecast assumes a default pace.", style="yellow")

    risk = prediction.risk
    if risk is not None:
        console.print("Risk", style="bold cyan")
        console.print(f"  Level: {styled(risk.level, RISK_STYLES)} (score {risk.score}/100)")
        for factor in risk.factors:
            console.print(f"  - {factor.name} (impact {factor.impact}/10): {factor.description}", markup=False)

    velocity = prediction.velocity
    if velocity is not None:
        console.print("Velocity", style="bold cyan")
        console.print(f"  Last 7 days:    {velocity.last_7_days} completed")
        console.print(f"  Last 14 days:   {velocity.last_14_days} completed")
        console.print(f"  Last 30 days:   {velocity.last_30_days} completed")
        console.print(f"  Weekly average: {velocity.weekly_average:.1f}")
        console.print(f"  Trend:          {styled(velocity.trend, TREND_STYLES)}")
        if velocity.data_points < 5:
            console.print(f"  Only {velocity.data_points} snapshot(s); the trend is a rough guide.", style="yellow")
    return 0


def run_coverage(project_path: Path, output_json: bool = False) -> int:
    """Report objectives without deliverables and work attached to nothing."""
    console = Console()
    err = Console(stderr=True)
    session = open_session(project_path, err)
    if session is None:
        return 1

    analysis = analyze_coverage(session.store)
    if output_json:
        print_json(analysis.to_dict())
        return 0

    console.print(
        f"Coverage score: [bold]{analysis.score}[/]/100 "
        f"({analysis.objectives_covered}/{analysis.objectives_total} objectives, "
        f"{analysis.deliverables_covered}/{analysis.deliverables_total} deliverables covered)"
    )
    if not analysis.issues:
        return 0

    table = Table(title="Coverage issues")
    table.add_column("severity")
    table.add_column("type", style="magenta")
    table.add_column("id", style="cyan", no_wrap=True)
    table.add_column("title")
    table.add_column("message")
    for issue in analysis.issues:
        table.add_row(
            styled(issue.severity, SEVERITY_STYLES),
            issue.type,
            escape(issue.entity_id),
            escape(issue.title),
            issue.message,
        )
    console.print(table)
    return 0


def run_stale(project_path: Path, output_json: bool = False) -> int:
    """List finished work to archive and long-blocked work to review."""
    console = Console()
    err = Console(stderr=True)
    session = open_session(project_path, err)
    if session is None:
        return 1

    analysis = analyze_stale(session.store, session.settings)
    if output_json:
        print_json(analysis.to_dict())
        return 0

    if not analysis.entities:
        console.print("Nothing stale.", style="green")
        return 0

    table = Table(title="Stale entities")
    table.add_column("recommendation", style="yellow")
    table.add_column("type", style="magenta")
    table.add_column("id", style="cyan", no_wrap=True)
    table.add_column("title")
    table.add_column("message")
    for entity in analysis.entities:
        table.add_row(
            entity.recommendation,
            entity.type,
            escape(entity.entity_id),
            escape(entity.title),
            entity.message,
        )
    console.print(table)
    console.print(f"{analysis.count('archive')} to archive, {analysis.count('review')} to review", style="dim")
    return 0
