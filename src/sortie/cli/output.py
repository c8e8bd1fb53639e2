"""Rich terminal output for runs, history, loops and verification."""

from __future__ import annotations

from rich import box
from rich.console import Console
from rich.table import Table

from sortie.models.result import LoopResult, Run
from sortie.verification.runner import VerificationResult

# Status styling: passed -> (symbol, Rich markup style)
_STATUS_STYLES: dict[bool, tuple[str, str]] = {
    True: ("✓ PASS", "bold green"),
    False: ("✗ FAIL", "bold red"),
}


def status_markup(passed: bool) -> str:
    symbol, style = _STATUS_STYLES[passed]
    return f"[{style}]{symbol}[/{style}]"


def format_duration(seconds: int) -> str:
    minutes, secs = divmod(seconds, 60)
    return f"{minutes}m {secs}s" if minutes else f"{secs}s"


def render_headline(run: Run, console: Console, run_id: int | None = None) -> None:
    """Render a compact key-value summary of one run."""
    table = Table(box=box.SIMPLE, show_header=False, padding=(0, 2))
    table.add_column("Key", style="bold")
    table.add_column("Value")

    table.add_row("Status", status_markup(run.passed))
    table.add_row("Score", f"{run.score:.0%}")
    table.add_row("Scenario", run.scenario)
    table.add_row("Session", run.session_id)
    if run_id is not None:
        table.add_row("Run", f"#{run_id}")
    table.add_row(
        "Metrics",
        f"{format_duration(run.duration_sec)} | {run.total_turns} turns | "
        f"{run.azd_up_attempts} azd up | {run.bicep_edits} bicep edits",
    )
    missing = [skill for skill, invoked in run.skills.items() if not invoked]
    if missing:
        table.add_row("Missing skills", ", ".join(missing))
    regressed = [name for name, reg in run.regressions.items() if not reg.passed]
    if regressed:
        table.add_row("Regressions", ", ".join(regressed))

    console.print()
    console.print(table)


def render_history(runs: list[Run], console: Console) -> None:
    """Render stored runs as a table, oldest first."""
    table = Table(box=box.ROUNDED)
    table.add_column("Date")
    table.add_column("Scenario")
    table.add_column("Score", justify="right")
    table.add_column("Status")
    table.add_column("Turns", justify="right")
    table.add_column("azd up", justify="right")
    table.add_column("Duration", justify="right")
    table.add_column("Commit", style="dim")

    for run in runs:
        table.add_row(
            f"{run.started_at:%Y-%m-%d %H:%M}",
            run.scenario,
            f"{run.score:.0%}",
            status_markup(run.passed),
            str(run.total_turns),
            str(run.azd_up_attempts),
            format_duration(run.duration_sec),
            run.git_commit or "",
        )

    console.print(table)


def render_loop_summary(results: list[LoopResult], console: Console) -> None:
    table = Table(title="Loop summary", box=box.SIMPLE)
    table.add_column("Iteration", justify="right")
    table.add_column("Status")
    table.add_column("Score", justify="right")
    table.add_column("Turns", justify="right")
    table.add_column("azd up", justify="right")
    table.add_column("Duration", justify="right")
    table.add_column("Session", style="dim")

    for result in results:
        run = result.run
        table.add_row(
            str(result.iteration),
            status_markup(run.passed),
            f"{run.score:.0%}",
            str(run.total_turns),
            str(run.azd_up_attempts),
            format_duration(run.duration_sec),
            result.session_id,
        )

    console.print()
    console.print(table)


def render_verification(result: VerificationResult, console: Console) -> None:
    table = Table(box=box.SIMPLE)
    table.add_column("Step")
    table.add_column("Status")
    table.add_column("Error")
    for name, step in result.steps.items():
        table.add_row(name, status_markup(step.passed), step.error)
    if result.steps:
        console.print(table)
    console.print(f"{status_markup(result.passed)} {result.summary}")
