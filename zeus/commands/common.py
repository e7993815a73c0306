"""Helpers shared by command implementations."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from rich.console import Console

from ..errors import ZeusError
from ..persistence import ProjectFiles, ProjectSession


def open_session(project_path: Path, err: Console) -> ProjectSession | None:
    """Load the project, printing an error and returning None if there is none."""
    files = ProjectFiles(project_path)
    if not files.exists():
        err.print(f"No zeus project at {project_path} (run `zeus init`)", style="bold red", markup=False)
        return None
    try:
        return ProjectSession.load(project_path)
    except ZeusError as e:
        err.print(f"Cannot load project: {e}", style="bold red", markup=False)
        return None


def print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, sort_keys=True))


IMPACT_STYLES = {"high": "bold red", "medium": "yellow", "low": "dim"}
SEVERITY_STYLES = {"error": "bold red", "critical": "bold red", "high": "red", "warning": "yellow", "medium": "yellow"}


def styled(value: str, styles: dict[str, str]) -> str:
    """Wrap ``value`` in rich markup for its style, if it has one."""
    style = styles.get(value)
    return f"[{style}]{value}[/]" if style else value
