"""YAML parser with line tracking for scenario validation errors.

Provides a PyYAML SafeLoader subclass that records the source line of
every mapping key, so a schema violation deep inside a scenario's
scoring block can be reported at the exact line that caused it.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml


class YAMLParseError(Exception):
    """Raised when YAML syntax cannot be parsed.

    Attributes:
        line: 1-indexed line number where the error occurred.
        column: 1-indexed column number where the error occurred.
        message: Human-readable description of the syntax error.
        filename: Name of the file being parsed, or '<string>'.
    """

    def __init__(
        self,
        message: str,
        line: int | None = None,
        column: int | None = None,
        filename: str = "<string>",
    ) -> None:
        self.message = message
        self.line = line
        self.column = column
        self.filename = filename
        super().__init__(message)


class LineTrackingLoader(yaml.SafeLoader):
    """SafeLoader that maps dotted key paths to 1-indexed (line, column).

    List items contribute their index to the path, so the second
    regression's pattern is recorded as 'scoring.regressions.1.pattern'.
    """

    def __init__(self, stream: str) -> None:
        super().__init__(stream)
        self.line_map: dict[str, tuple[int, int]] = {}
        self._path: list[str] = []

    def _record(self, key: str, node: yaml.Node) -> None:
        full_key = ".".join([*self._path, key])
        mark = node.start_mark
        self.line_map[full_key] = (mark.line + 1, mark.column + 1)

    def construct_mapping(self, node: yaml.MappingNode, deep: bool = False) -> dict[Any, Any]:
        self.flatten_mapping(node)
        result: dict[Any, Any] = {}
        for key_node, value_node in node.value:
            key = self.construct_object(key_node, deep=deep)
            nested = isinstance(value_node, (yaml.MappingNode, yaml.SequenceNode))
            if isinstance(key, str):
                self._record(key, key_node)
            if isinstance(key, str) and nested:
                self._path.append(key)
                try:
                    result[key] = self.construct_object(value_node, deep=deep)
                finally:
                    self._path.pop()
            else:
                result[key] = self.construct_object(value_node, deep=deep)
        return result

    def construct_sequence(self, node: yaml.SequenceNode, deep: bool = False) -> list[Any]:
        items = []
        for idx, child in enumerate(node.value):
            if isinstance(child, (yaml.MappingNode, yaml.SequenceNode)):
                self._path.append(str(idx))
                try:
                    items.append(self.construct_object(child, deep=deep))
                finally:
                    self._path.pop()
            else:
                items.append(self.construct_object(child, deep=deep))
        return items

    def construct_yaml_map(self, node: yaml.MappingNode) -> Any:
        yield self.construct_mapping(node, deep=True)

    def construct_yaml_seq(self, node: yaml.SequenceNode) -> Any:
        yield self.construct_sequence(node, deep=True)


LineTrackingLoader.add_constructor(
    "tag:yaml.org,2002:map",
    LineTrackingLoader.construct_yaml_map,
)
LineTrackingLoader.add_constructor(
    "tag:yaml.org,2002:seq",
    LineTrackingLoader.construct_yaml_seq,
)


def parse_yaml_with_lines(
    source: str,
    filename: str = "<string>",
) -> tuple[dict | None, dict[str, tuple[int, int]]]:
    """Parse a YAML string and return (data, line_map).

    Returns (None, {}) for empty, comment-only, or non-mapping documents.

    Raises:
        YAMLParseError: If the YAML contains syntax errors.
    """
    loader = LineTrackingLoader(source)
    try:
        data = loader.get_single_data()
    except yaml.YAMLError as e:
        line = None
        column = None
        mark = getattr(e, "problem_mark", None)
        if mark is not None:
            line = mark.line + 1
            column = mark.column + 1
        raise YAMLParseError(
            message=str(e),
            line=line,
            column=column,
            filename=filename,
        ) from e
    finally:
        loader.dispose()

    if not isinstance(data, dict):
        return None, {}
    return data, loader.line_map


def parse_yaml_file(filepath: Path) -> tuple[dict | None, dict[str, tuple[int, int]]]:
    """Parse a YAML file and return (data, line_map).

    Raises:
        YAMLParseError: If the file contains YAML syntax errors.
        FileNotFoundError: If the file does not exist.
    """
    content = filepath.read_text(encoding="utf-8")
    return parse_yaml_with_lines(content, filename=str(filepath))
