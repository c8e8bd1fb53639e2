"""Scenario validation pipeline combining YAML parsing with Pydantic validation.

Two-stage validation: first parse YAML with line tracking, then validate
against the Scenario model. Errors from both stages are enriched with
source positions and collected for batch reporting. Unknown keys are not
errors (scenarios are forward compatible) but are surfaced as warnings
with a 'did you mean' hint, since a misspelled ceiling is silently unset.
"""

from __future__ import annotations

import difflib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ValidationError

from sortie.loader.yaml_parser import (
    YAMLParseError,
    parse_yaml_file,
    parse_yaml_with_lines,
)
from sortie.models.scenario import Prompt, Regression, Scenario, Scoring, VerifyStep


@dataclass
class ValidationErrorDetail:
    """A single validation problem with source position and context.

    Attributes:
        field: The field name or dotted path that caused the error.
        message: Human-readable error description.
        type: Pydantic error type string (e.g. 'missing', 'too_short').
        line: 1-indexed line number in the source YAML, or None if unknown.
        col: 1-indexed column number in the source YAML, or None if unknown.
        suggestion: 'Did you mean X?' suggestion for typos, or None.
        input_value: The invalid input value, if available.
    """

    field: str
    message: str
    type: str
    line: int | None = None
    col: int | None = None
    suggestion: str | None = None
    input_value: Any = field(default=None)


def _accepted_keys(model: type[BaseModel]) -> list[str]:
    """Every key a model accepts, including camelCase aliases."""
    keys: list[str] = []
    for name, info in model.model_fields.items():
        keys.append(name)
        alias = info.validation_alias
        choices = getattr(alias, "choices", None)
        if choices:
            keys.extend(str(c) for c in choices if isinstance(c, str))
    return sorted(set(keys))


def _loc_to_field_path(loc: tuple[str | int, ...]) -> str:
    """Convert a Pydantic error loc tuple to a dotted field path."""
    return ".".join(str(part) for part in loc)


def _find_line_for_field(
    field_path: str,
    line_map: dict[str, tuple[int, int]],
) -> tuple[int | None, int | None]:
    """Look up the position for a field path, falling back to its parents."""
    parts = field_path.split(".")
    while parts:
        prefix = ".".join(parts)
        if prefix in line_map:
            return line_map[prefix]
        parts.pop()
    return None, None


def _get_suggestion(key: str, candidates: list[str]) -> str | None:
    """Get a 'did you mean?' suggestion for a mistyped key."""
    matches = difflib.get_close_matches(key, candidates, n=1, cutoff=0.6)
    if matches:
        return f"Did you mean '{matches[0]}'?"
    return None


def find_unknown_fields(
    raw_data: dict[str, Any],
    line_map: dict[str, tuple[int, int]],
) -> list[ValidationErrorDetail]:
    """List keys that the scenario schema will ignore.

    Args:
        raw_data: Parsed YAML dictionary.
        line_map: Mapping of dotted key paths to (line, col) positions.

    Returns:
        One warning detail per unknown key, in document order.
    """
    warnings: list[ValidationErrorDetail] = []

    def visit(block: Any, path: str, model: type[BaseModel]) -> None:
        if not isinstance(block, dict):
            return
        known = _accepted_keys(model)
        for key in block:
            if not isinstance(key, str) or key in known:
                continue
            dotted = f"{path}.{key}" if path else key
            line, col = line_map.get(dotted, (None, None))
            warnings.append(
                ValidationErrorDetail(
                    field=dotted,
                    message="Unknown field is ignored",
                    type="unknown_field",
                    line=line,
                    col=col,
                    suggestion=_get_suggestion(key, known),
                )
            )

    visit(raw_data, "", Scenario)
    visit(raw_data.get("scoring"), "scoring", Scoring)
    for list_key, model in (("prompts", Prompt), ("verification", VerifyStep)):
        items = raw_data.get(list_key)
        if isinstance(items, list):
            for idx, item in enumerate(items):
                visit(item, f"{list_key}.{idx}", model)
    scoring = raw_data.get("scoring")
    if isinstance(scoring, dict) and isinstance(scoring.get("regressions"), list):
        for idx, item in enumerate(scoring["regressions"]):
            visit(item, f"scoring.regressions.{idx}", Regression)

    return sorted(warnings, key=lambda w: (w.line or 0, w.col or 0))


def validate_scenario(
    raw_data: dict[str, Any],
    line_map: dict[str, tuple[int, int]],
) -> tuple[Scenario | None, list[ValidationErrorDetail]]:
    """Validate parsed YAML data against the Scenario model.

    Returns:
        Tuple of (Scenario, []) on success, or (None, errors) on failure.
    """
    try:
        return Scenario.model_validate(raw_data), []
    except ValidationError as e:
        errors: list[ValidationErrorDetail] = []
        for err in e.errors():
            field_path = _loc_to_field_path(err.get("loc", ()))
            line, col = _find_line_for_field(field_path, line_map)
            errors.append(
                ValidationErrorDetail(
                    field=field_path or "<root>",
                    message=err.get("msg", "Validation error"),
                    type=err.get("type", "unknown"),
                    line=line,
                    col=col,
                    input_value=err.get("input"),
                )
            )
        return None, errors


def _validate_parsed(
    parse: Any,
    empty_message: str,
    empty_type: str,
) -> tuple[Scenario | None, list[ValidationErrorDetail]]:
    try:
        raw_data, line_map = parse()
    except YAMLParseError as e:
        return None, [
            ValidationErrorDetail(
                field="<yaml>",
                message=e.message,
                type="yaml_syntax_error",
                line=e.line,
                col=e.column,
            )
        ]

    if raw_data is None:
        return None, [
            ValidationErrorDetail(field="<yaml>", message=empty_message, type=empty_type)
        ]
    return validate_scenario(raw_data, line_map)


def validate_scenario_file(
    filepath: Path,
) -> tuple[Scenario | None, list[ValidationErrorDetail]]:
    """Validate a scenario YAML file, returning every error at once.

    Raises:
        FileNotFoundError: If the file does not exist.
    """
    return _validate_parsed(
        lambda: parse_yaml_file(filepath),
        "File is empty or does not contain a mapping",
        "empty_file",
    )


def validate_scenario_string(
    source: str,
    filename: str = "<string>",
) -> tuple[Scenario | None, list[ValidationErrorDetail]]:
    """Validate a scenario from a YAML string."""
    return _validate_parsed(
        lambda: parse_yaml_with_lines(source, filename=filename),
        "Input is empty or does not contain a mapping",
        "empty_input",
    )
