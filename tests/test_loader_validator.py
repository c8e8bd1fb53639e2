"""Tests for scenario validation pipeline."""

from pathlib import Path

from sortie.loader.validator import (
    find_unknown_fields,
    validate_scenario_file,
    validate_scenario_string,
)
from sortie.loader.yaml_parser import parse_yaml_with_lines

VALID = (
    "name: todo-app\n"
    "prompts:\n"
    "  - text: build a todo app\n"
    "scoring:\n"
    "  maxTurns: 20\n"
)


class TestValidateScenarioString:
    """Tests for validate_scenario_string function."""

    def test_valid_scenario_returns_scenario_and_empty_errors(self):
        """Valid YAML returns a Scenario object and empty error list."""
        scenario, errors = validate_scenario_string(VALID)
        assert errors == []
        assert scenario is not None
        assert scenario.name == "todo-app"
        assert scenario.scoring.max_turns == 20

    def test_missing_prompts(self):
        """Missing prompts list returns a 'missing' error."""
        scenario, errors = validate_scenario_string("name: todo\n")
        assert scenario is None
        prompt_errors = [e for e in errors if e.field == "prompts"]
        assert len(prompt_errors) == 1
        assert prompt_errors[0].type == "missing"

    def test_zero_prompts_reports_line(self):
        """An empty prompts list is too short and points at its line."""
        scenario, errors = validate_scenario_string("name: todo\nprompts: []\n")
        assert scenario is None
        assert errors[0].field == "prompts"
        assert errors[0].type == "too_short"
        assert errors[0].line == 2

    def test_all_errors_reported_at_once(self):
        """Every problem in the document is collected."""
        source = "name: ''\nprompts: []\n"
        _, errors = validate_scenario_string(source)
        assert {e.field for e in errors} == {"name", "prompts"}

    def test_nested_error_falls_back_to_parent_line(self):
        """An error inside a list item is positioned on the nearest known key."""
        source = (
            "name: todo\n"
            "prompts:\n"
            "  - text: go\n"
            "verification:\n"
            "  - action: hover\n"
        )
        _, errors = validate_scenario_string(source)
        assert errors[0].field == "verification.0.action"
        assert errors[0].line == 5

    def test_yaml_syntax_error(self):
        """Malformed YAML becomes a single yaml_syntax_error detail."""
        _, errors = validate_scenario_string("name: [broken\n")
        assert len(errors) == 1
        assert errors[0].type == "yaml_syntax_error"
        assert errors[0].line is not None

    def test_empty_input(self):
        """Empty input is reported rather than raising."""
        _, errors = validate_scenario_string("")
        assert errors[0].type == "empty_input"


class TestValidateScenarioFile:
    """Tests for validate_scenario_file function."""

    def test_valid_file(self, tmp_path: Path):
        """A valid file validates like the equivalent string."""
        path = tmp_path / "todo.yaml"
        path.write_text(VALID)
        scenario, errors = validate_scenario_file(path)
        assert errors == []
        assert scenario.prompts[0].text == "build a todo app"

    def test_empty_file(self, tmp_path: Path):
        """An empty file reports empty_file."""
        path = tmp_path / "empty.yaml"
        path.write_text("")
        _, errors = validate_scenario_file(path)
        assert errors[0].type == "empty_file"


class TestFindUnknownFields:
    """Tests for unknown-key warnings."""

    def test_misspelled_ceiling_suggests_correction(self):
        """A misspelled scoring key is reported with a suggestion."""
        source = VALID + "  maxTurn: 5\n"
        data, line_map = parse_yaml_with_lines(source)
        warnings = find_unknown_fields(data, line_map)
        assert len(warnings) == 1
        assert warnings[0].field == "scoring.maxTurn"
        assert warnings[0].type == "unknown_field"
        assert warnings[0].line == 6
        assert "maxTurns" in warnings[0].suggestion

    def test_unknown_keys_in_list_items(self):
        """Unknown keys inside prompts and regressions are reported."""
        source = (
            "name: todo\n"
            "prompts:\n"
            "  - text: go\n"
            "    txet: typo\n"
            "scoring:\n"
            "  regressions:\n"
            "    - name: acr\n"
            "      pattern: ACR\n"
            "      maxOccurence: 1\n"
        )
        data, line_map = parse_yaml_with_lines(source)
        fields = [w.field for w in find_unknown_fields(data, line_map)]
        assert fields == ["prompts.0.txet", "scoring.regressions.0.maxOccurence"]

    def test_known_keys_produce_no_warnings(self):
        """snake_case and camelCase spellings are both known."""
        source = VALID + "  max_bicep_edits: 3\n"
        data, line_map = parse_yaml_with_lines(source)
        assert find_unknown_fields(data, line_map) == []
