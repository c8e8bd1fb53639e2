"""sortie history -- list recorded runs, oldest first."""

from __future__ import annotations

import json
from typing import Optional

import typer

from sortie.cli.common import console, fail, load_project, open_store
from sortie.cli.output import render_history
from sortie.storage.sqlite_store import StoreError


def history(
    scenario: Optional[str] = typer.Argument(None, help="Scenario name (default: all scenarios)"),
    limit: int = typer.Option(20, "-n", "--limit", min=1, help="Show only the newest N runs"),
    details: bool = typer.Option(False, "--details", help="Include skills and regressions (JSON only)"),
    format_json: bool = typer.Option(False, "--json", help="Output JSON to stdout"),
) -> None:
    """Show recent run results for a scenario or for all scenarios."""
    root, config = load_project()
    store = open_store(root, config)
    try:
        if details:
            runs = store.list_runs_with_details(scenario or "", limit)
        else:
            runs = store.list_runs(scenario or "", limit)
    except StoreError as e:
        fail("history", e)

    if format_json:
        typer.echo(json.dumps([r.model_dump(mode="json") for r in runs], indent=2))
        return
    if not runs:
        typer.echo("No runs found.")
        return
    render_history(runs, console)
