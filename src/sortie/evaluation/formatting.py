"""Markdown run reports and failed-criterion summaries.

Reports are plain markdown (no Rich markup) so they can be logged,
written to files, or pasted into pull requests unchanged.
"""

from __future__ import annotations

from sortie.models.result import Run
from sortie.models.scenario import Scenario


def _mark(ok: bool) -> str:
    return "✅" if ok else "❌"


def _within(actual: int, limit: int) -> bool:
    return limit <= 0 or actual <= limit


def _limit(limit: int, suffix: str = "") -> str:
    return f"{limit}{suffix}" if limit > 0 else "-"


def failed_criteria(run: Run, scenario: Scenario) -> list[str]:
    """Describe every hard criterion the run failed, one line each."""
    scoring = scenario.scoring
    failures: list[str] = []

    if not _within(run.total_turns, scoring.max_turns):
        failures.append(
            f"Too many agent turns: {run.total_turns} (limit: {scoring.max_turns}). "
            "Improve agent efficiency."
        )
    if not _within(run.azd_up_attempts, scoring.max_azd_up_attempts):
        failures.append(
            f"Too many azd up attempts: {run.azd_up_attempts} "
            f"(limit: {scoring.max_azd_up_attempts}). "
            "Fix deployment issues so it succeeds on fewer tries."
        )
    if not _within(run.bicep_edits, scoring.max_bicep_edits):
        failures.append(
            f"Too many Bicep edits: {run.bicep_edits} (limit: {scoring.max_bicep_edits}). "
            "Get infrastructure right the first time."
        )
    max_duration_sec = scoring.max_duration_minutes * 60
    if not _within(run.duration_sec, max_duration_sec):
        failures.append(f"Took too long: {run.duration_sec}s (limit: {max_duration_sec}s).")
    if scoring.must_delegate and not run.delegated:
        failures.append(
            "Agent did not delegate to specialized agents. Use task() to delegate."
        )
    for skill, invoked in run.skills.items():
        if not invoked:
            failures.append(f"Required skill '{skill}' was not invoked.")
    for name, reg in run.regressions.items():
        if not reg.passed:
            failures.append(
                f"Regression '{name}': {reg.occurrences} occurrences "
                f"(max: {reg.max_allowed}). Fix the root cause."
            )
    return failures


def format_report(run: Run, scenario: Scenario) -> str:
    """Render a run as a markdown report.

    Args:
        run: The scored run.
        scenario: The scenario the run was scored against; supplies the limits.

    Returns:
        Multi-line markdown with status, metrics, skills, regressions and,
        when recorded, verification tables.
    """
    scoring = scenario.scoring
    status = "✅ PASSED" if run.passed else "❌ FAILED"
    lines = [
        f"# Scenario Report: {scenario.name}",
        "",
        f"**Status:** {status} | **Score:** {run.score * 100:.0f}%",
        f"**Session:** {run.session_id}",
    ]
    if run.git_commit:
        lines.append(f"**Commit:** {run.git_commit}")
    lines.append(f"**Date:** {run.started_at:%Y-%m-%d %H:%M}")
    lines.append("")

    max_duration_sec = scoring.max_duration_minutes * 60
    lines += [
        "## Metrics",
        "",
        "| Metric | Value | Limit | Status |",
        "|--------|-------|-------|--------|",
        f"| Duration | {run.duration_sec}s | {_limit(max_duration_sec, 's')} "
        f"| {_mark(_within(run.duration_sec, max_duration_sec))} |",
        f"| Turns | {run.total_turns} | {_limit(scoring.max_turns)} "
        f"| {_mark(_within(run.total_turns, scoring.max_turns))} |",
        f"| azd up attempts | {run.azd_up_attempts} | {_limit(scoring.max_azd_up_attempts)} "
        f"| {_mark(_within(run.azd_up_attempts, scoring.max_azd_up_attempts))} |",
        f"| Bicep edits | {run.bicep_edits} | {_limit(scoring.max_bicep_edits)} "
        f"| {_mark(_within(run.bicep_edits, scoring.max_bicep_edits))} |",
    ]
    if scoring.must_delegate:
        lines.append(
            f"| Delegated | {str(run.delegated).lower()} | required | {_mark(run.delegated)} |"
        )

    if run.skills:
        lines += ["", "## Skills", "", "| Skill | Invoked |", "|-------|---------|"]
        lines += [f"| {skill} | {_mark(invoked)} |" for skill, invoked in run.skills.items()]

    if run.regressions:
        lines += [
            "",
            "## Regressions",
            "",
            "| Check | Occurrences | Max | Status |",
            "|-------|-------------|-----|--------|",
        ]
        lines += [
            f"| {name} | {reg.occurrences} | {reg.max_allowed} | {_mark(reg.passed)} |"
            for name, reg in run.regressions.items()
        ]

    if run.verification:
        lines += ["", "## Verification", "", "| Step | Status | Error |", "|------|--------|-------|"]
        lines += [
            f"| {step} | {_mark(result.passed)} | {result.error or '-'} |"
            for step, result in run.verification.items()
        ]

    return "\n".join(lines) + "\n"
