"""sortie analyze -- score a session against a scenario and record it."""

from __future__ import annotations

import typer

from sortie.cli.common import console, fail, load_project, load_scenario_or_exit, open_store
from sortie.cli.output import render_headline
from sortie.evaluation.analyze import analyze as analyze_session
from sortie.evaluation.formatting import format_report
from sortie.loop.controller import git_commit
from sortie.storage.sqlite_store import StoreError
from sortie.transcript.reader import SessionNotFoundError


def analyze(
    session_id: str = typer.Argument(..., help="Session id to score"),
    scenario_path: str = typer.Argument(..., help="Path to scenario YAML file"),
    save: bool = typer.Option(True, "--save/--no-save", help="Record the run in the results store"),
) -> None:
    """Score a session against a scenario and print the markdown report.

    Exits 0 if the run passed, 1 otherwise.
    """
    root, config = load_project()
    scenario = load_scenario_or_exit(scenario_path)

    try:
        run = analyze_session(session_id, scenario, git_commit(root), config.session_root())
    except SessionNotFoundError as e:
        fail("analyze", e)

    run_id = None
    if save:
        store = open_store(root, config)
        try:
            run_id = store.insert_run(run)
        except StoreError as e:
            fail("store", e)

    typer.echo(format_report(run, scenario))
    render_headline(run, console, run_id)
    if run_id is not None:
        console.print(f"Saved as run #{run_id} in {store.path}")
    if not run.passed:
        raise typer.Exit(code=1)
