"""sortie run -- replay a scenario against the assistant and score it.

Launches the assistant once for the scenario, delivers every prompt in
the same session, then (unless disabled) runs browser verification,
scores the transcript, records the run and prints the report.
"""

from __future__ import annotations

import asyncio

import typer

from sortie.cli.common import console, fail, load_project, load_scenario_or_exit, open_store
from sortie.cli.output import render_headline, render_verification
from sortie.evaluation.analyze import analyze
from sortie.evaluation.formatting import format_report
from sortie.execution.runner import RunnerError, ScenarioRunner
from sortie.loop.controller import git_commit
from sortie.storage.sqlite_store import StoreError
from sortie.transcript.reader import SessionNotFoundError
from sortie.verification.runner import attach_verification, run_verification


def run(
    scenario_path: str = typer.Argument(..., help="Path to scenario YAML file"),
    analyze_after: bool = typer.Option(
        True, "--analyze/--no-analyze", help="Score and record the session after the run"
    ),
    verify: bool = typer.Option(
        True, "--verify/--no-verify", help="Run browser verification steps if the scenario has any"
    ),
    show_output: bool = typer.Option(
        False, "--show-output", help="Echo the assistant's output while it runs"
    ),
) -> None:
    """Run a scenario against the assistant."""
    root, config = load_project()
    scenario = load_scenario_or_exit(scenario_path)

    console.print(f"[bold]Running scenario:[/bold] {scenario.name}")
    console.print(f"  Prompts: {len(scenario.prompts)}")
    console.print(f"  Timeout: {scenario.timeout or '30m'}")

    runner = ScenarioRunner(
        config.assistant_binary,
        config.session_root(),
        idle_timeout=config.loop.idle_timeout_seconds,
        echo=console.print if show_output else None,
    )
    try:
        result = asyncio.run(runner.run(scenario))
    except RunnerError as e:
        fail("run", e)

    console.print(f"Session ID: {result.session_id}")
    if not analyze_after:
        typer.echo(f"sortie analyze {result.session_id} {scenario_path}")
        return

    try:
        scored = analyze(result.session_id, scenario, git_commit(root), config.session_root())
    except SessionNotFoundError as e:
        fail("analyze", e)

    if verify and scenario.verification:
        verification = asyncio.run(run_verification(scenario, work_dir=result.work_dir))
        render_verification(verification, console)
        scored = attach_verification(scored, verification)

    try:
        run_id = open_store(root, config).insert_run(scored)
    except StoreError as e:
        fail("store", e)

    typer.echo(format_report(scored, scenario))
    render_headline(scored, console, run_id)
    if not scored.passed:
        raise typer.Exit(code=1)
