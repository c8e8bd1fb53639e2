"""sortie extract -- generate a scenario file from a recorded session."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from sortie.cli.common import console, fail, load_project
from sortie.evaluation.analyze import ExtractionError, extract as extract_scenario
from sortie.loader.scenario_file import save_scenario
from sortie.transcript.reader import SessionNotFoundError


def extract(
    session_id: str = typer.Argument(..., help="Session id under the session-state directory"),
    output: Optional[str] = typer.Option(
        None, "-o", "--output", help="Output path (default: <scenarios_dir>/<name>.yaml)"
    ),
) -> None:
    """Extract a scenario definition from an existing assistant session."""
    root, config = load_project()
    try:
        scenario = extract_scenario(session_id, config.session_root())
    except (SessionNotFoundError, ExtractionError) as e:
        fail("extract", e)

    out_path = Path(output) if output else root / config.scenarios_dir / f"{scenario.name}.yaml"
    try:
        save_scenario(scenario, out_path)
    except OSError as e:
        fail("save", e)

    console.print(f"[green]Scenario saved:[/green] {out_path}")
    console.print(f"  Name: {scenario.name}")
    console.print(f"  Prompts: {len(scenario.prompts)}")
    console.print(f"  Max duration: {scenario.scoring.max_duration_minutes}m")
    typer.echo(str(out_path))
