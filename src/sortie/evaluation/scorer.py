"""Weighted scorer with continuous overage credit.

Each criterion becomes a ScoreComponent worth a fixed number of points.
Numeric metrics earn full weight at or below their ceiling and
``weight * ceiling / actual`` above it, so credit shrinks with the
overage but never reaches zero. Everything here is a pure function of
its arguments.
"""

from __future__ import annotations

from dataclasses import dataclass

from sortie.models.result import RegressionResult
from sortie.models.scenario import Scoring

DURATION_WEIGHT = 25.0
TURNS_WEIGHT = 20.0
AZD_UP_WEIGHT = 20.0
BICEP_EDITS_WEIGHT = 10.0
DELEGATION_WEIGHT = 10.0
SKILL_WEIGHT = 5.0
REGRESSION_WEIGHT = 5.0


@dataclass(frozen=True)
class ScoreComponent:
    """Points earned by one criterion out of its weight."""

    name: str
    weight: float
    earned: float
    passed: bool


def metric_points(actual: float, limit: float, weight: float) -> float:
    """Points for a numeric metric against its ceiling.

    A ceiling of zero or less is unset and always earns full weight.
    """
    if limit <= 0 or actual <= limit:
        return weight
    return weight * limit / actual


def _metric(name: str, actual: float, limit: float, weight: float) -> ScoreComponent:
    return ScoreComponent(
        name=name,
        weight=weight,
        earned=metric_points(actual, limit, weight),
        passed=limit <= 0 or actual <= limit,
    )


def _flag(name: str, ok: bool, weight: float) -> ScoreComponent:
    return ScoreComponent(name=name, weight=weight, earned=weight if ok else 0.0, passed=ok)


def score_components(
    scoring: Scoring,
    *,
    duration_sec: int,
    total_turns: int,
    azd_up_attempts: int,
    bicep_edits: int,
    delegated: bool,
    skills: dict[str, bool],
    regressions: dict[str, RegressionResult],
) -> list[ScoreComponent]:
    """Break a run down into its weighted scoring criteria.

    Args:
        scoring: The scenario's ceilings and requirements.
        duration_sec: Session wall-clock duration in seconds.
        total_turns: Assistant turn count.
        azd_up_attempts: Deploy tool invocations.
        bicep_edits: Infra template edits.
        delegated: Whether the delegation tool was used.
        skills: Required skill name -> invoked.
        regressions: Regression name -> checked result.

    Returns:
        Components in report order: metrics, delegation, skills, regressions.
    """
    components = [
        _metric("duration", duration_sec, scoring.max_duration_minutes * 60, DURATION_WEIGHT),
        _metric("turns", total_turns, scoring.max_turns, TURNS_WEIGHT),
        _metric("azd_up_attempts", azd_up_attempts, scoring.max_azd_up_attempts, AZD_UP_WEIGHT),
        _metric("bicep_edits", bicep_edits, scoring.max_bicep_edits, BICEP_EDITS_WEIGHT),
    ]
    if scoring.must_delegate:
        components.append(_flag("delegation", delegated, DELEGATION_WEIGHT))
    for skill, invoked in skills.items():
        components.append(_flag(f"skill:{skill}", invoked, SKILL_WEIGHT))
    for name, result in regressions.items():
        components.append(_flag(f"regression:{name}", result.passed, REGRESSION_WEIGHT))
    return components


def compute_score(components: list[ScoreComponent]) -> tuple[float, bool]:
    """Compute (score, passed) from scoring components.

    Score is earned over available points, 1.0 when no points are
    available. Passed is true only if every component passed.
    """
    max_points = sum(c.weight for c in components)
    passed = all(c.passed for c in components)
    if max_points == 0:
        return 1.0, passed
    score = sum(c.earned for c in components) / max_points
    return min(max(score, 0.0), 1.0), passed
