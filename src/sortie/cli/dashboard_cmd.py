"""sortie dashboard -- regenerate the HTML dashboard from the store."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from sortie.cli.common import console, fail, load_project, open_store
from sortie.reporting.dashboard import generate_dashboard
from sortie.storage.sqlite_store import StoreError


def dashboard(
    output: Optional[str] = typer.Option(
        None, "-o", "--output", help="HTML file to write (default: dashboard_file from sortie.yaml)"
    ),
) -> None:
    """Write a self-contained HTML dashboard of every recorded run."""
    root, config = load_project()
    path = Path(output) if output else root / config.dashboard_file
    try:
        written = generate_dashboard(open_store(root, config), path)
    except (StoreError, OSError) as e:
        fail("dashboard", e)
    console.print(f"[green]Dashboard ready at:[/green] {written}")
