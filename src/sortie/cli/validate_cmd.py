"""sortie validate CLI command for scenario file validation.

Validates YAML scenario files against the scenario schema, reporting
all errors at once with rich or CI-friendly formatting. Keys the schema
ignores are reported as warnings and do not fail validation.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from sortie.loader.errors import ErrorFormatter
from sortie.loader.validator import find_unknown_fields, validate_scenario_file
from sortie.loader.yaml_parser import parse_yaml_with_lines
from sortie.models.config import find_project_root, load_project_config


def _default_files() -> list[Path]:
    root = find_project_root()
    scenarios_dir = root / load_project_config(root).scenarios_dir
    if not scenarios_dir.is_dir():
        return []
    return sorted(
        list(scenarios_dir.glob("**/*.yaml")) + list(scenarios_dir.glob("**/*.yml"))
    )


def validate(
    scenarios: Optional[list[str]] = typer.Argument(
        None, help="Scenario files to validate (default: all in the scenarios directory)"
    ),
    ci: bool = typer.Option(False, "--ci", help="CI-friendly concise output"),
) -> None:
    """Validate scenario YAML files.

    Checks YAML syntax and model validation, reporting all errors at
    once. Exits with code 0 if all valid, 1 if any errors.
    """
    formatter = ErrorFormatter(ci_mode=ci)

    files: list[Path] = []
    if scenarios:
        for s in scenarios:
            p = Path(s)
            if not p.exists():
                typer.echo(f"Error: File not found: {s}", err=True)
                raise typer.Exit(code=1)
            files.append(p)
    else:
        files = _default_files()
        if not files:
            typer.echo("No scenario files found. Specify files or create a scenarios/ directory.")
            raise typer.Exit(code=1)

    total = len(files)
    valid_count = 0
    error_count = 0

    for filepath in files:
        source = filepath.read_text(encoding="utf-8")
        scenario, errors = validate_scenario_file(filepath)

        if errors:
            error_count += 1
            typer.echo(formatter.format_all(errors, source, str(filepath)), err=not ci)
            continue

        valid_count += 1
        raw_data, line_map = parse_yaml_with_lines(source, filename=str(filepath))
        warnings = find_unknown_fields(raw_data or {}, line_map)
        if warnings:
            typer.echo(formatter.format_all(warnings, source, str(filepath)), err=not ci)
        formatter.print_success(str(filepath), warnings=len(warnings))

    typer.echo(f"\n{valid_count}/{total} scenarios valid")

    if error_count > 0:
        raise typer.Exit(code=1)
