"""sortie verify -- run a scenario's browser verification steps."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from sortie.cli.common import console, load_project, load_scenario_or_exit
from sortie.cli.output import render_verification
from sortie.verification.runner import verify_scenario


def verify(
    scenario_path: str = typer.Argument(..., help="Path to scenario YAML file"),
    endpoint: str = typer.Option("", "--endpoint", help="App URL (default: discover via azd env)"),
    work_dir: Optional[str] = typer.Option(
        None, "--work-dir", help="Project directory used for endpoint discovery (default: cwd)"
    ),
) -> None:
    """Run verification steps against a deployed endpoint. Exits 1 on failure."""
    load_project()
    scenario = load_scenario_or_exit(scenario_path)
    directory = Path(work_dir) if work_dir else Path.cwd()
    result = verify_scenario(scenario, work_dir=directory, endpoint=endpoint)
    render_verification(result, console)
    if not result.passed:
        raise typer.Exit(code=1)
