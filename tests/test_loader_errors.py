"""Tests for the rich and CI error formatter."""

from sortie.loader.errors import ErrorFormatter
from sortie.loader.validator import ValidationErrorDetail


def _too_short() -> ValidationErrorDetail:
    return ValidationErrorDetail(
        field="prompts",
        message="List should have at least 1 item after validation",
        type="too_short",
        line=2,
        col=1,
    )


class TestErrorFormatterRichMode:
    """Tests for human-readable rich error formatting."""

    def test_format_error_quotes_and_underlines_source(self):
        """Rich format quotes the offending line and underlines the key."""
        formatter = ErrorFormatter(ci_mode=False)
        result = formatter.format_error(_too_short(), ["name: todo", "prompts: []"], "todo.yaml")
        assert "error[E002]" in result
        assert "--> todo.yaml:2:1" in result
        assert " 2 | prompts: []" in result
        assert "^^^^^^^" in result

    def test_warning_severity_for_unknown_fields(self):
        """Unknown-field details render as warnings with their suggestion."""
        warning = ValidationErrorDetail(
            field="scoring.maxTurn",
            message="Unknown field is ignored",
            type="unknown_field",
            line=1,
            col=3,
            suggestion="Did you mean 'maxTurns'?",
        )
        result = ErrorFormatter(ci_mode=False).format_error(warning, ["  maxTurn: 5"], "s.yaml")
        assert result.startswith("warning[W001]")
        assert "help: Did you mean 'maxTurns'?" in result

    def test_format_error_handles_none_line_number(self):
        """Formatter produces useful output when the line is unknown."""
        error = ValidationErrorDetail(field="name", message="Field required", type="missing")
        result = ErrorFormatter(ci_mode=False).format_error(error, [], "todo.yaml")
        assert "error[E001]" in result
        assert "name: Field required" in result


class TestErrorFormatterCIMode:
    """Tests for concise CI formatting."""

    def test_ci_format(self):
        """CI format is file:line:col -- field: message."""
        result = ErrorFormatter(ci_mode=True).format_error(_too_short(), [], "todo.yaml")
        assert result == (
            "todo.yaml:2:1 -- prompts: List should have at least 1 item after validation"
        )

    def test_ci_mode_auto_detected(self, monkeypatch):
        """ci_mode=None reads the CI environment variable."""
        monkeypatch.setenv("CI", "true")
        assert ErrorFormatter().ci_mode is True
        monkeypatch.setenv("CI", "")
        assert ErrorFormatter().ci_mode is False

    def test_unknown_error_type_code(self):
        """Unmapped error types get a generic code."""
        assert ErrorFormatter(ci_mode=True).error_code("something_new") == "E999"

    def test_format_all_joins_errors(self):
        """format_all separates errors with blank lines."""
        errors = [_too_short(), _too_short()]
        result = ErrorFormatter(ci_mode=True).format_all(errors, "", "todo.yaml")
        assert result.count("todo.yaml:2:1") == 2
        assert "\n\n" in result
