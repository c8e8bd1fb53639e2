"""Load and save scenario YAML files."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from sortie.loader.validator import ValidationErrorDetail, validate_scenario_file
from sortie.models.scenario import Scenario

# Keys written even when empty because the schema requires them
_REQUIRED_KEYS = frozenset({"name", "text", "pattern", "action", "prompts"})


class ScenarioParseError(Exception):
    """Raised when a scenario file is malformed or violates the schema.

    Attributes:
        path: The scenario file that failed to load.
        errors: Every validation problem found in the file.
    """

    def __init__(self, path: Path, errors: list[ValidationErrorDetail]) -> None:
        self.path = path
        self.errors = errors
        first = errors[0] if errors else None
        where = f" (line {first.line})" if first and first.line else ""
        detail = f": {first.field}: {first.message}{where}" if first else ""
        extra = f" (+{len(errors) - 1} more)" if len(errors) > 1 else ""
        super().__init__(f"parse scenario {path}{detail}{extra}")


def load_scenario(path: str | Path) -> Scenario:
    """Read and validate a scenario YAML file.

    Raises:
        FileNotFoundError: If the file does not exist.
        ScenarioParseError: If the YAML is malformed or fails validation.
    """
    filepath = Path(path)
    scenario, errors = validate_scenario_file(filepath)
    if errors or scenario is None:
        raise ScenarioParseError(filepath, errors)
    return scenario


def _prune(value: Any, key: str | None = None) -> Any:
    """Drop empty optional values so written files stay short.

    Every optional scenario field defaults to the empty value of its
    type, so dropping them does not lose information.
    """
    if isinstance(value, dict):
        pruned = {}
        for k, v in value.items():
            v = _prune(v, k)
            if k in _REQUIRED_KEYS or v not in (None, "", [], {}, False, 0):
                pruned[k] = v
        return pruned
    if isinstance(value, list):
        return [_prune(item) for item in value]
    return value


def scenario_to_yaml(scenario: Scenario) -> str:
    """Serialize a scenario to YAML text with snake_case keys."""
    data = _prune(scenario.model_dump(mode="json"))
    return yaml.safe_dump(data, sort_keys=False, allow_unicode=True, width=100)


def save_scenario(scenario: Scenario, path: str | Path) -> Path:
    """Write a scenario to a YAML file, creating parent directories.

    Returns:
        The path written.
    """
    filepath = Path(path)
    filepath.parent.mkdir(parents=True, exist_ok=True)
    filepath.write_text(scenario_to_yaml(scenario), encoding="utf-8")
    return filepath
