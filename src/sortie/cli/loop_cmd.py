"""sortie loop -- run -> analyze -> fix -> rebuild until pass or budget spent."""

from __future__ import annotations

from typing import Optional

import typer

from sortie.cli.common import console, fail, load_project, load_scenario_or_exit
from sortie.cli.output import render_headline, render_loop_summary
from sortie.loop.controller import LoopConfig, LoopError, LoopState, run_loop
from sortie.models.result import LoopResult


def loop(
    scenario_path: str = typer.Argument(..., help="Path to scenario YAML file"),
    iters: Optional[int] = typer.Option(
        None, "--iters", min=1, help="Maximum iterations (default: loop.max_iters)"
    ),
) -> None:
    """Run the improvement loop for a scenario.

    Exits 0 when a run passes, 1 when the iteration budget is spent
    without a pass, and 2 when a stage fails.
    """
    root, config = load_project()
    scenario = load_scenario_or_exit(scenario_path)
    loop_config = LoopConfig.from_project(scenario, root, config, max_iters=iters)

    def show(result: LoopResult) -> None:
        console.rule(f"Iteration {result.iteration}/{loop_config.max_iters} - {scenario.name}")
        typer.echo(result.report)
        render_headline(result.run, console)

    try:
        outcome = run_loop(loop_config, on_result=show)
    except LoopError as e:
        render_loop_summary(e.results, console)
        fail(e.stage, e, code=2)

    render_loop_summary(outcome.results, console)
    if outcome.state is LoopState.PASSED:
        console.print(f"[bold green]Passed on iteration {len(outcome.results)}[/bold green]")
        return
    console.print(f"[bold red]Max iterations reached.[/bold red] Best score: {outcome.best_score:.0%}")
    raise typer.Exit(code=1)
