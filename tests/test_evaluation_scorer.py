"""Tests for the weighted scorer."""

from __future__ import annotations

import pytest

from sortie.evaluation.scorer import (
    DURATION_WEIGHT,
    TURNS_WEIGHT,
    ScoreComponent,
    compute_score,
    metric_points,
    score_components,
)
from sortie.models.result import RegressionResult
from sortie.models.scenario import Scoring


def _components(scoring: Scoring, **overrides) -> list[ScoreComponent]:
    metrics = {
        "duration_sec": 600,
        "total_turns": 15,
        "azd_up_attempts": 1,
        "bicep_edits": 2,
        "delegated": True,
        "skills": {},
        "regressions": {},
    }
    metrics.update(overrides)
    return score_components(scoring, **metrics)


SCORING = Scoring(
    max_duration_minutes=20,
    max_turns=20,
    max_azd_up_attempts=3,
    max_bicep_edits=4,
    must_delegate=True,
)


class TestMetricPoints:
    """Tests for continuous overage credit."""

    def test_full_weight_within_limit(self):
        """At or below the ceiling earns the full weight."""
        assert metric_points(20, 20, TURNS_WEIGHT) == TURNS_WEIGHT
        assert metric_points(5, 20, TURNS_WEIGHT) == TURNS_WEIGHT

    def test_unset_limit_earns_full_weight(self):
        """A zero ceiling is unconstrained."""
        assert metric_points(1000, 0, DURATION_WEIGHT) == DURATION_WEIGHT

    def test_overage_scales_down(self):
        """Above the ceiling earns weight * limit / actual."""
        assert metric_points(40, 20, TURNS_WEIGHT) == pytest.approx(10.0)

    def test_penalty_monotonic(self):
        """More overage never earns more points."""
        points = [metric_points(actual, 20, TURNS_WEIGHT) for actual in range(20, 200, 7)]
        assert points == sorted(points, reverse=True)
        assert all(p > 0 for p in points)


class TestComputeScore:
    """Tests for score_components and compute_score."""

    def test_everything_within_limits_passes(self):
        """A run meeting every criterion scores 1.0 and passes."""
        score, passed = compute_score(_components(SCORING))
        assert score == 1.0
        assert passed is True

    def test_turn_overage_fails_with_partial_credit(self):
        """40 turns against a limit of 20 earns 10 of 20 turn points and fails."""
        components = _components(SCORING, total_turns=40)
        turns = next(c for c in components if c.name == "turns")
        assert turns.earned == pytest.approx(10.0)
        assert turns.passed is False

        score, passed = compute_score(components)
        assert passed is False
        assert score == pytest.approx((25 + 10 + 20 + 10 + 10) / 85)

    def test_no_criteria_scores_one(self):
        """With no components available the score is 1.0."""
        assert compute_score([]) == (1.0, True)

    def test_delegation_only_counted_when_required(self):
        """must_delegate=False adds no delegation component."""
        components = _components(Scoring(), delegated=False)
        assert "delegation" not in [c.name for c in components]
        assert compute_score(components) == (1.0, True)

    def test_missing_delegation_fails(self):
        """Required delegation that did not happen earns nothing."""
        components = _components(SCORING, delegated=False)
        delegation = next(c for c in components if c.name == "delegation")
        assert delegation.earned == 0.0
        assert compute_score(components)[1] is False

    def test_skills_and_regressions(self):
        """Skills and regressions each add a 5-point flag."""
        components = _components(
            SCORING,
            skills={"avm-bicep-rules": True, "azure-deploy": False},
            regressions={
                "acr": RegressionResult(occurrences=3, max_allowed=2, passed=False),
            },
        )
        names = [c.name for c in components]
        assert names[-3:] == ["skill:avm-bicep-rules", "skill:azure-deploy", "regression:acr"]
        score, passed = compute_score(components)
        assert passed is False
        assert score == pytest.approx(90 / 100)

    def test_score_bounded(self):
        """Scores stay within [0, 1] however bad the run is."""
        components = _components(
            SCORING,
            duration_sec=10**7,
            total_turns=10**6,
            azd_up_attempts=10**5,
            bicep_edits=10**5,
            delegated=False,
        )
        score, passed = compute_score(components)
        assert 0.0 <= score <= 1.0
        assert passed is False
