"""Error formatter with dual-mode output (rich human and CI concise).

Produces annotated, source-quoting messages in human mode and concise
file:line:col -- message lines in CI mode.
"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from sortie.loader.validator import ValidationErrorDetail


# Map Pydantic error types to error codes
ERROR_CODES: dict[str, str] = {
    "missing": "E001",
    "too_short": "E002",
    "string_too_short": "E002",
    "value_error": "E003",
    "greater_than_equal": "E003",
    "int_parsing": "E004",
    "int_type": "E004",
    "bool_parsing": "E004",
    "bool_type": "E004",
    "string_type": "E004",
    "list_type": "E004",
    "dict_type": "E004",
    "model_type": "E004",
    "literal_error": "E005",
    "yaml_syntax_error": "E006",
    "empty_file": "E007",
    "empty_input": "E007",
    "unknown_field": "W001",
}

ERROR_DESCRIPTIONS: dict[str, str] = {
    "E001": "required field missing",
    "E002": "value too short",
    "E003": "invalid value",
    "E004": "type mismatch",
    "E005": "invalid choice",
    "E006": "YAML syntax error",
    "E007": "empty input",
    "W001": "unknown field ignored",
}


class ErrorFormatter:
    """Formats validation errors for human or CI consumption.

    Args:
        ci_mode: If True, use CI-friendly concise output. If None,
            auto-detect from the CI environment variable.
    """

    def __init__(self, ci_mode: bool | None = None) -> None:
        if ci_mode is None:
            self.ci_mode = os.environ.get("CI", "").lower() in ("true", "1", "yes")
        else:
            self.ci_mode = ci_mode

    def error_code(self, error_type: str) -> str:
        """Get the error code for a Pydantic error type."""
        if error_type in ERROR_CODES:
            return ERROR_CODES[error_type]
        for key, code in ERROR_CODES.items():
            if key in error_type:
                return code
        return "E999"

    def format_error(
        self,
        error: ValidationErrorDetail,
        source_lines: list[str],
        filename: str,
    ) -> str:
        """Format a single error for display."""
        if self.ci_mode:
            return self._format_ci(error, filename)
        return self._format_rich(error, source_lines, filename)

    def _format_ci(self, error: ValidationErrorDetail, filename: str) -> str:
        line = error.line if error.line is not None else 0
        col = error.col if error.col is not None else 0
        suggestion_suffix = f" ({error.suggestion})" if error.suggestion else ""
        return f"{filename}:{line}:{col} -- {error.field}: {error.message}{suggestion_suffix}"

    def _format_rich(
        self,
        error: ValidationErrorDetail,
        source_lines: list[str],
        filename: str,
    ) -> str:
        """Format an error with the offending source line underlined.

        Produces output like:
            error[E002]: value too short
              --> smoke.yaml:3:1
               |
             3 | prompts: []
               | ^^^^^^^ List should have at least 1 item after validation
               |
        """
        code = self.error_code(error.type)
        severity = "warning" if code.startswith("W") else "error"
        lines = [f"{severity}[{code}]: {ERROR_DESCRIPTIONS.get(code, 'validation error')}"]

        line_idx = error.line - 1 if error.line is not None else -1
        if 0 <= line_idx < len(source_lines):
            src_line = source_lines[line_idx].rstrip()
            gutter = str(error.line)
            padding = " " * len(gutter)
            lines.append(f"  --> {filename}:{error.line}:{error.col or 1}")
            lines.append("   |")
            lines.append(f" {gutter} | {src_line}")
            key = error.field.split(".")[-1]
            start = src_line.find(key)
            if start >= 0:
                lines.append(f" {padding} | {' ' * start}{'^' * len(key)} {error.message}")
            else:
                lines.append(f" {padding} | {error.message}")
            lines.append("   |")
        else:
            lines.append(f"  --> {filename}")
            lines.append("   |")
            lines.append(f"   | {error.field}: {error.message}")
            lines.append("   |")

        if error.suggestion:
            lines.append(f"   = help: {error.suggestion}")
        return "\n".join(lines)

    def format_all(
        self,
        errors: list[ValidationErrorDetail],
        source: str,
        filename: str,
    ) -> str:
        """Format all errors, separated by blank lines."""
        source_lines = source.splitlines()
        return "\n\n".join(
            self.format_error(error, source_lines, filename) for error in errors
        )

    def print_success(self, filename: str, warnings: int = 0) -> None:
        """Print a one-line success message for a valid file."""
        suffix = f" ({warnings} warning{'s' if warnings != 1 else ''})" if warnings else ""
        print(f"  {filename} ... valid{suffix}")
