"""Sortie scenario loader - parsing, validation, persistence, and error reporting."""

from sortie.loader.scenario_file import (
    ScenarioParseError,
    load_scenario,
    save_scenario,
    scenario_to_yaml,
)
from sortie.loader.validator import (
    ValidationErrorDetail,
    find_unknown_fields,
    validate_scenario_file,
    validate_scenario_string,
)
from sortie.loader.yaml_parser import (
    YAMLParseError,
    parse_yaml_file,
    parse_yaml_with_lines,
)

__all__ = [
    "ScenarioParseError",
    "ValidationErrorDetail",
    "YAMLParseError",
    "find_unknown_fields",
    "load_scenario",
    "parse_yaml_file",
    "parse_yaml_with_lines",
    "save_scenario",
    "scenario_to_yaml",
    "validate_scenario_file",
    "validate_scenario_string",
]
