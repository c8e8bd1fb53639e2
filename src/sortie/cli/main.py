"""Sortie CLI entry point."""

import logging

import typer
from rich.console import Console
from rich.logging import RichHandler

from sortie import __version__
from sortie.cli.analyze_cmd import analyze
from sortie.cli.dashboard_cmd import dashboard
from sortie.cli.extract_cmd import extract
from sortie.cli.history_cmd import history
from sortie.cli.loop_cmd import loop
from sortie.cli.results_cmd import export_results, import_results
from sortie.cli.run_cmd import run
from sortie.cli.validate_cmd import validate
from sortie.cli.verify_cmd import verify

app = typer.Typer(
    name="sortie",
    help="Scenario testing and self-improvement loop for coding assistants",
    no_args_is_help=True,
)

# Register subcommands
app.command()(extract)
app.command()(run)
app.command()(analyze)
app.command()(history)
app.command()(loop)
app.command()(verify)
app.command()(validate)
app.command()(dashboard)
app.command(name="export")(export_results)
app.command(name="import")(import_results)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"sortie {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    log_level: str = typer.Option(
        "WARNING", "--log-level", help="Logging level (DEBUG, INFO, WARNING, ERROR)."
    ),
) -> None:
    """Scenario testing and self-improvement loop for coding assistants."""
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        raise typer.BadParameter(f"unknown log level: {log_level}", param_hint="--log-level")
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )
