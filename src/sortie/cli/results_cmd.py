"""sortie export / import -- move runs between the store and portable JSON."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from sortie.cli.common import console, fail, load_project, open_store
from sortie.storage.sqlite_store import StoreError


def export_results(
    output: Optional[str] = typer.Option(
        None, "-o", "--output", help="JSON file to write (default: results_json from sortie.yaml)"
    ),
) -> None:
    """Export every recorded run to a JSON file."""
    root, config = load_project()
    path = Path(output) if output else root / config.results_json
    try:
        count = open_store(root, config).export_json(path)
    except (StoreError, OSError) as e:
        fail("export", e)
    console.print(f"[green]Exported {count} run(s) to {path}[/green]")


def import_results(
    source: Optional[str] = typer.Argument(
        None, help="JSON file to read (default: results_json from sortie.yaml)"
    ),
) -> None:
    """Import runs from a JSON export, skipping runs already recorded."""
    root, config = load_project()
    path = Path(source) if source else root / config.results_json
    if not path.exists():
        fail("import", f"no results file found at {path}; nothing to import")
    try:
        count = open_store(root, config).import_json(path)
    except (StoreError, OSError) as e:
        fail("import", e)
    console.print(f"[green]Imported {count} new run(s) from {path}[/green]")
