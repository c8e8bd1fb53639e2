"""Tests for the sortie CLI commands."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from sortie import __version__
from sortie.cli.main import app
from sortie.storage.sqlite_store import ResultsStore

runner = CliRunner()

SCENARIO_YAML = (
    "name: todo-app\n"
    "prompts:\n"
    "  - text: build a todo app\n"
    "scoring:\n"
    "  maxTurns: 20\n"
    "  maxDurationMinutes: 30\n"
)


def _event(event_type: str, data: dict, second: int) -> str:
    return json.dumps(
        {"type": event_type, "data": data, "timestamp": f"2026-03-01T10:00:{second:02d}Z"}
    )


@pytest.fixture
def project(tmp_path: Path, monkeypatch) -> Path:
    """A project directory with config, one scenario and one recorded session."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("CI", raising=False)
    (tmp_path / "sortie.yaml").write_text(f"session_state_dir: {tmp_path / 'sessions'}\n")
    scenarios = tmp_path / "scenarios"
    scenarios.mkdir()
    (scenarios / "todo-app.yaml").write_text(SCENARIO_YAML)

    session = tmp_path / "sessions" / "abc"
    session.mkdir(parents=True)
    lines = [
        _event("user.message", {"content": "build a todo app"}, 0),
        _event("assistant.turn_start", {}, 1),
        _event("assistant.message", {"content": "done"}, 30),
    ]
    (session / "events.jsonl").write_text("\n".join(lines) + "\n")
    return tmp_path


def _store(project: Path) -> ResultsStore:
    return ResultsStore(project / "scenarios" / "results.db")


class TestMain:
    """Tests for the top-level app."""

    def test_version(self):
        """--version prints the version and exits."""
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert f"sortie {__version__}" in result.output

    def test_bad_log_level(self, project: Path):
        """An unknown log level is a usage error."""
        result = runner.invoke(app, ["--log-level", "loud", "history"])
        assert result.exit_code == 2


class TestValidateCommand:
    """Tests for sortie validate."""

    def test_valid_scenario_exits_zero(self, project: Path):
        """A valid scenario file passes."""
        result = runner.invoke(app, ["validate", "scenarios/todo-app.yaml"])
        assert result.exit_code == 0
        assert "valid" in result.output
        assert "1/1 scenarios valid" in result.output

    def test_default_scans_scenarios_dir(self, project: Path):
        """Without arguments every file in the scenarios directory is checked."""
        result = runner.invoke(app, ["validate"])
        assert result.exit_code == 0
        assert "todo-app.yaml" in result.output

    def test_invalid_scenario_exits_nonzero(self, project: Path):
        """A scenario without prompts fails validation."""
        bad = project / "scenarios" / "bad.yaml"
        bad.write_text("name: bad\nprompts: []\n")
        result = runner.invoke(app, ["validate", "--ci", str(bad)])
        assert result.exit_code == 1
        assert f"{bad}:" in result.output
        assert "prompts" in result.output

    def test_unknown_field_is_a_warning(self, project: Path):
        """Unknown keys warn but do not fail validation."""
        path = project / "scenarios" / "typo.yaml"
        path.write_text(SCENARIO_YAML + "  maxTurn: 5\n")
        result = runner.invoke(app, ["validate", "--ci", str(path)])
        assert result.exit_code == 0
        assert "Did you mean 'maxTurns'?" in result.output
        assert "valid (1 warning)" in result.output

    def test_missing_file(self, project: Path):
        """A missing file is an error."""
        result = runner.invoke(app, ["validate", "nope.yaml"])
        assert result.exit_code == 1


class TestExtractCommand:
    """Tests for sortie extract."""

    def test_extract_writes_scenario(self, project: Path):
        """The extracted scenario is saved under the scenarios directory."""
        result = runner.invoke(app, ["extract", "abc"])
        assert result.exit_code == 0
        path = project / "scenarios" / "build-a-todo-app.yaml"
        assert path.exists()
        assert "build a todo app" in path.read_text()

    def test_extract_to_output_path(self, project: Path):
        """-o writes to the given path."""
        result = runner.invoke(app, ["extract", "abc", "-o", "out/s.yaml"])
        assert result.exit_code == 0
        assert (project / "out" / "s.yaml").exists()

    def test_extract_unknown_session(self, project: Path):
        """An unknown session id fails with the stage named."""
        result = runner.invoke(app, ["extract", "missing"])
        assert result.exit_code == 1
        assert "Error (extract)" in result.output


class TestAnalyzeAndHistory:
    """Tests for sortie analyze and sortie history."""

    def test_analyze_stores_run(self, project: Path):
        """Analyze prints the report and records the run."""
        result = runner.invoke(app, ["analyze", "abc", "scenarios/todo-app.yaml"])
        assert result.exit_code == 0
        assert "# Scenario Report: todo-app" in result.output
        runs = _store(project).list_runs()
        assert len(runs) == 1
        assert runs[0].passed is True
        assert runs[0].git_commit == "unknown"

    def test_analyze_no_save(self, project: Path):
        """--no-save prints the report without recording it."""
        result = runner.invoke(app, ["analyze", "abc", "scenarios/todo-app.yaml", "--no-save"])
        assert result.exit_code == 0
        assert not _store(project).exists()

    def test_analyze_failing_run_exits_one(self, project: Path):
        """A failing run exits 1 but is still recorded."""
        strict = project / "scenarios" / "strict.yaml"
        strict.write_text(SCENARIO_YAML + "  mustDelegate: true\n")
        result = runner.invoke(app, ["analyze", "abc", str(strict)])
        assert result.exit_code == 1
        assert "FAILED" in result.output
        assert _store(project).count_runs() == 1

    def test_analyze_invalid_scenario(self, project: Path):
        """Scenario validation errors stop analysis."""
        bad = project / "scenarios" / "bad.yaml"
        bad.write_text("name: bad\n")
        result = runner.invoke(app, ["analyze", "abc", str(bad)])
        assert result.exit_code == 1
        assert not _store(project).exists()

    def test_history_empty(self, project: Path):
        """History on an empty store says so."""
        result = runner.invoke(app, ["history"])
        assert result.exit_code == 0
        assert "No runs found." in result.output

    def test_history_json(self, project: Path):
        """--json prints the stored runs."""
        runner.invoke(app, ["analyze", "abc", "scenarios/todo-app.yaml"])
        runner.invoke(app, ["analyze", "abc", "scenarios/todo-app.yaml"])
        result = runner.invoke(app, ["history", "todo-app", "--json", "--limit", "1"])
        assert result.exit_code == 0
        runs = json.loads(result.stdout)
        assert len(runs) == 1
        assert runs[0]["scenario"] == "todo-app"

    def test_history_zero_limit_rejected(self, project: Path):
        """A limit below one is a usage error, not an empty listing."""
        runner.invoke(app, ["analyze", "abc", "scenarios/todo-app.yaml"])
        result = runner.invoke(app, ["history", "-n", "0"])
        assert result.exit_code == 2
        assert "No runs found." not in result.output

    def test_history_table(self, project: Path):
        """History renders a table of runs."""
        runner.invoke(app, ["analyze", "abc", "scenarios/todo-app.yaml"])
        result = runner.invoke(app, ["history"])
        assert result.exit_code == 0
        assert "todo-app" in result.output


class TestResultsCommands:
    """Tests for export, import and dashboard."""

    def test_export_then_import(self, project: Path):
        """Export writes the JSON file; re-importing it adds nothing."""
        runner.invoke(app, ["analyze", "abc", "scenarios/todo-app.yaml"])
        result = runner.invoke(app, ["export"])
        assert result.exit_code == 0
        exported = json.loads((project / "scenarios" / "results.json").read_text())
        assert len(exported) == 1

        result = runner.invoke(app, ["import"])
        assert result.exit_code == 0
        assert "Imported 0 new run(s)" in result.output
        assert _store(project).count_runs() == 1

    def test_import_missing_file(self, project: Path):
        """Importing without an export file fails."""
        result = runner.invoke(app, ["import"])
        assert result.exit_code == 1
        assert "Error (import)" in result.output

    def test_dashboard(self, project: Path):
        """The dashboard is written to the configured path."""
        runner.invoke(app, ["analyze", "abc", "scenarios/todo-app.yaml"])
        result = runner.invoke(app, ["dashboard"])
        assert result.exit_code == 0
        html = (project / "scenarios" / "dashboard.html").read_text()
        assert "todo-app" in html


class TestVerifyCommand:
    """Tests for sortie verify."""

    def test_no_steps_passes(self, project: Path):
        """A scenario without verification steps passes."""
        result = runner.invoke(app, ["verify", "scenarios/todo-app.yaml"])
        assert result.exit_code == 0
        assert "no verification steps defined" in result.output
