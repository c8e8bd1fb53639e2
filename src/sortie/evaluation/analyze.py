"""Scenario extraction and run analysis.

``extract`` turns an existing session into a starter scenario with
headroom above the observed metrics. ``analyze`` scores a session
against a scenario and builds the immutable Run record.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from pathlib import Path

from sortie.evaluation.metrics import SessionMetrics, collect_metrics
from sortie.evaluation.scorer import compute_score, score_components
from sortie.models.result import RegressionResult, Run
from sortie.models.scenario import Prompt, Regression, Scenario, Scoring
from sortie.transcript.reader import SessionEvents, load_session_events

logger = logging.getLogger(__name__)

# Extraction headroom: observed value * multiplier (+ offset), never below the floor
DURATION_MULTIPLIER = 1.5
DURATION_FLOOR_MINUTES = 5
TURNS_MULTIPLIER = 1.3
TURNS_FLOOR = 10
AZD_UP_HEADROOM = 1
AZD_UP_FLOOR = 3
BICEP_EDITS_HEADROOM = 2
BICEP_EDITS_FLOOR = 4
TIMEOUT_PADDING_MINUTES = 5

SLUG_MAX_LENGTH = 50

STARTER_SKILLS = ("avm-bicep-rules",)
STARTER_REGRESSIONS = (
    Regression(
        name="ACR auth spiral",
        pattern=r"ACR.*auth|can't pull|registry.*credential",
        max_occurrences=2,
    ),
    Regression(
        name="zone redundancy",
        pattern=r"zone.*redundant|requires.*subnet",
        max_occurrences=1,
    ),
    Regression(
        name="npm ci without lockfile",
        pattern=r"npm ci.*lockfile|package-lock.*not found",
        max_occurrences=0,
    ),
)

_NON_SLUG = re.compile(r"[^a-z0-9]")
_DASHES = re.compile(r"-{2,}")


class ExtractionError(ValueError):
    """Raised when a session cannot be turned into a scenario."""


def slugify(text: str) -> str:
    """Lowercase, dash-separated identifier of at most 50 characters."""
    slug = _NON_SLUG.sub("-", text.lower())
    slug = _DASHES.sub("-", slug).strip("-")
    return slug[:SLUG_MAX_LENGTH]


def extract_from_events(events: SessionEvents, session_id: str) -> Scenario:
    """Synthesize a scenario from an in-memory transcript.

    Raises:
        ExtractionError: If the transcript has no user messages.
    """
    user_msgs = events.user_messages()
    if not user_msgs:
        raise ExtractionError(f"session {session_id} has no user messages")

    metrics = collect_metrics(events)
    minutes = events.duration().total_seconds() / 60
    duration_min = max(int(minutes * DURATION_MULTIPLIER) + 1, DURATION_FLOOR_MINUTES)
    turns = max(int(metrics.total_turns * TURNS_MULTIPLIER), TURNS_FLOOR)
    max_azd_ups = max(metrics.azd_up_attempts + AZD_UP_HEADROOM, AZD_UP_FLOOR)
    max_bicep_edits = max(metrics.bicep_edits + BICEP_EDITS_HEADROOM, BICEP_EDITS_FLOOR)

    return Scenario(
        name=slugify(user_msgs[0]) or session_id,
        description=f"Extracted from session {session_id}",
        timeout=f"{duration_min + TIMEOUT_PADDING_MINUTES}m",
        prompts=[Prompt(text=msg) for msg in user_msgs],
        scoring=Scoring(
            max_duration_minutes=duration_min,
            max_turns=turns,
            max_azd_up_attempts=max_azd_ups,
            max_bicep_edits=max_bicep_edits,
            # Multi-prompt sessions are expected to hand work to sub-agents
            must_delegate=len(user_msgs) > 1,
            must_invoke_skills=list(STARTER_SKILLS),
            regressions=list(STARTER_REGRESSIONS),
        ),
    )


def extract(session_id: str, session_root: Path | None = None) -> Scenario:
    """Generate a scenario definition from a recorded session.

    Raises:
        SessionNotFoundError: If the session transcript does not exist.
        ExtractionError: If the session has no user messages.
    """
    return extract_from_events(load_session_events(session_id, session_root), session_id)


def check_skills(required: list[str], invoked: tuple[str, ...] | list[str]) -> dict[str, bool]:
    seen = set(invoked)
    return {skill: skill in seen for skill in required}


def check_regressions(
    regressions: list[Regression],
    events: SessionEvents,
) -> dict[str, RegressionResult]:
    results: dict[str, RegressionResult] = {}
    for reg in regressions:
        occurrences = events.count_regression_matches(reg.pattern)
        results[reg.name] = RegressionResult(
            occurrences=occurrences,
            max_allowed=reg.max_occurrences,
            passed=occurrences <= reg.max_occurrences,
        )
    return results


def build_run(
    scenario: Scenario,
    session_id: str,
    metrics: SessionMetrics,
    regressions: dict[str, RegressionResult],
    git_commit: str | None = None,
) -> Run:
    """Score precomputed metrics against a scenario."""
    skills = check_skills(scenario.scoring.must_invoke_skills, metrics.skills_invoked)
    components = score_components(
        scenario.scoring,
        duration_sec=metrics.duration_sec,
        total_turns=metrics.total_turns,
        azd_up_attempts=metrics.azd_up_attempts,
        bicep_edits=metrics.bicep_edits,
        delegated=metrics.delegated,
        skills=skills,
        regressions=regressions,
    )
    score, passed = compute_score(components)
    return Run(
        scenario=scenario.name,
        session_id=session_id,
        git_commit=git_commit,
        started_at=metrics.started_at or datetime.now(timezone.utc),
        duration_sec=metrics.duration_sec,
        total_turns=metrics.total_turns,
        azd_up_attempts=metrics.azd_up_attempts,
        bicep_edits=metrics.bicep_edits,
        delegated=metrics.delegated,
        deployed=metrics.deployed,
        score=score,
        passed=passed,
        skills=skills,
        regressions=regressions,
    )


def analyze_events(
    events: SessionEvents,
    scenario: Scenario,
    session_id: str,
    git_commit: str | None = None,
) -> Run:
    """Score an in-memory transcript against a scenario."""
    metrics = collect_metrics(events)
    regressions = check_regressions(scenario.scoring.regressions, events)
    run = build_run(scenario, session_id, metrics, regressions, git_commit)
    logger.info(
        "Analyzed session %s for %s: score=%.2f passed=%s",
        session_id,
        scenario.name,
        run.score,
        run.passed,
    )
    return run


def analyze(
    session_id: str,
    scenario: Scenario,
    git_commit: str | None = None,
    session_root: Path | None = None,
) -> Run:
    """Load a session transcript and score it against a scenario.

    Raises:
        SessionNotFoundError: If the session transcript does not exist.
    """
    events = load_session_events(session_id, session_root)
    return analyze_events(events, scenario, session_id, git_commit)
