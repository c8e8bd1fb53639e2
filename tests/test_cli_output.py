"""Tests for sortie.cli.output - Rich rendering helpers."""

from __future__ import annotations

from datetime import datetime, timezone
from io import StringIO

from rich.console import Console

from sortie.cli.output import (
    format_duration,
    render_headline,
    render_history,
    render_loop_summary,
    render_verification,
)
from sortie.models.result import LoopResult, RegressionResult, Run, VerifyResult
from sortie.verification.runner import VerificationResult


def _console() -> tuple[Console, StringIO]:
    buf = StringIO()
    return Console(file=buf, width=120, no_color=True), buf


def _run(**overrides) -> Run:
    fields = {
        "scenario": "todo-app",
        "session_id": "abc",
        "started_at": datetime(2026, 3, 1, 10, 0, tzinfo=timezone.utc),
        "duration_sec": 125,
        "total_turns": 12,
        "score": 0.8,
        "passed": False,
    }
    fields.update(overrides)
    return Run(**fields)


class TestFormatDuration:
    def test_seconds_only(self):
        assert format_duration(42) == "42s"

    def test_minutes(self):
        assert format_duration(125) == "2m 5s"


class TestRenderHeadline:
    """Tests for render_headline."""

    def test_basic_fields(self):
        """Status, score and metrics are shown."""
        console, buf = _console()
        render_headline(_run(), console, run_id=7)
        text = buf.getvalue()
        assert "FAIL" in text
        assert "80%" in text
        assert "#7" in text
        assert "2m 5s | 12 turns" in text

    def test_missing_skills_and_regressions(self):
        """Uninvoked skills and failed regressions are listed."""
        console, buf = _console()
        run = _run(
            skills={"azure-deploy": False, "azure-prepare": True},
            regressions={"zone redundancy": RegressionResult(occurrences=1, max_allowed=0, passed=False)},
        )
        render_headline(run, console)
        text = buf.getvalue()
        assert "Missing skills" in text
        assert "azure-deploy" in text
        assert "azure-prepare" not in text
        assert "zone redundancy" in text


class TestRenderTables:
    """Tests for the history, loop and verification tables."""

    def test_history(self):
        console, buf = _console()
        render_history([_run(git_commit="0123456789ab", passed=True, score=1.0)], console)
        text = buf.getvalue()
        assert "2026-03-01 10:00" in text
        assert "PASS" in text
        assert "0123456789ab" in text

    def test_loop_summary(self):
        console, buf = _console()
        render_loop_summary([LoopResult(iteration=1, session_id="abc", run=_run(), report="")], console)
        assert "Loop summary" in buf.getvalue()

    def test_verification(self):
        """Step rows and the summary line are printed."""
        console, buf = _console()
        result = VerificationResult(
            steps={"home": VerifyResult(passed=False, error="timeout")},
            passed=False,
            summary="0/1 verification steps passed",
        )
        render_verification(result, console)
        text = buf.getvalue()
        assert "timeout" in text
        assert "0/1 verification steps passed" in text
