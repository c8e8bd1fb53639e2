"""Tests for YAML parser with line tracking."""

import pytest

from sortie.loader.yaml_parser import YAMLParseError, parse_yaml_with_lines


class TestParseYamlWithLines:
    """Tests for parse_yaml_with_lines function."""

    def test_returns_data_and_line_map_from_valid_yaml(self):
        """parse_yaml_with_lines returns (data_dict, line_map) from valid YAML."""
        source = "name: todo\ndescription: hello\n"
        data, line_map = parse_yaml_with_lines(source)
        assert data == {"name": "todo", "description": "hello"}
        assert isinstance(line_map, dict)

    def test_line_map_contains_correct_line_numbers_for_top_level_keys(self):
        """line_map contains correct 1-indexed line numbers for top-level keys."""
        source = "name: todo\ntimeout: 30m\nprompts: []\n"
        _, line_map = parse_yaml_with_lines(source)
        assert line_map["name"][0] == 1
        assert line_map["timeout"][0] == 2
        assert line_map["prompts"][0] == 3

    def test_line_map_tracks_list_items_and_nested_keys(self):
        """Nested keys under list items are tracked with their index."""
        source = (
            "scoring:\n"
            "  regressions:\n"
            "    - name: acr\n"
            "      pattern: ACR\n"
            "    - name: zone\n"
            "      pattern: zone\n"
        )
        _, line_map = parse_yaml_with_lines(source)
        assert line_map["scoring.regressions"][0] == 2
        assert line_map["scoring.regressions.0.name"][0] == 3
        assert line_map["scoring.regressions.1.pattern"] == (6, 7)

    def test_yaml_syntax_error_raises_yaml_parse_error(self):
        """YAML syntax errors raise YAMLParseError with line/column info."""
        source = "name: todo\nprompts: [invalid\n"
        with pytest.raises(YAMLParseError) as exc_info:
            parse_yaml_with_lines(source, filename="todo.yaml")
        err = exc_info.value
        assert err.line is not None
        assert err.column is not None
        assert err.filename == "todo.yaml"

    def test_empty_and_comment_only_input(self):
        """Empty or comment-only YAML returns (None, {})."""
        assert parse_yaml_with_lines("") == (None, {})
        assert parse_yaml_with_lines("# nothing here\n") == (None, {})

    def test_non_mapping_document(self):
        """A top-level list is not a scenario document."""
        assert parse_yaml_with_lines("- a\n- b\n") == (None, {})
