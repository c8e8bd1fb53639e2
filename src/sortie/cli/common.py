"""Shared helpers for CLI commands: project lookup and fatal errors."""

from __future__ import annotations

from pathlib import Path
from typing import NoReturn

import typer
import yaml
from pydantic import ValidationError
from rich.console import Console

from sortie.loader.scenario_file import ScenarioParseError, load_scenario
from sortie.models.config import ProjectConfig, find_project_root, load_project_config
from sortie.models.scenario import Scenario
from sortie.storage.sqlite_store import ResultsStore

console = Console(stderr=True)


def fail(stage: str, error: BaseException | str, code: int = 1) -> NoReturn:
    """Print an error naming the failed stage and exit."""
    console.print(f"[bold red]Error ({stage}):[/bold red] {error}")
    raise typer.Exit(code=code)


def load_project() -> tuple[Path, ProjectConfig]:
    """Locate the project root and load sortie.yaml."""
    root = find_project_root()
    try:
        return root, load_project_config(root)
    except (ValidationError, yaml.YAMLError) as e:
        fail("config", f"invalid sortie.yaml: {e}")


def open_store(root: Path, config: ProjectConfig) -> ResultsStore:
    return ResultsStore(root / config.results_db)


def load_scenario_or_exit(path: str) -> Scenario:
    """Load a scenario file, printing every validation error on failure."""
    try:
        return load_scenario(path)
    except FileNotFoundError:
        fail("load", f"scenario file not found: {path}")
    except ScenarioParseError as e:
        console.print(f"[bold red]Scenario validation errors in {path}:[/bold red]")
        for err in e.errors:
            loc = f" (line {err.line})" if err.line else ""
            console.print(f"  {err.field}: {err.message}{loc}")
        raise typer.Exit(code=1) from e
