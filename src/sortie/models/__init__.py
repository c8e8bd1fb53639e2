"""Sortie data models - re-exports all public model classes."""

from sortie.models.config import LoopSettings, ProjectConfig
from sortie.models.result import LoopResult, RegressionResult, Run, VerifyResult
from sortie.models.scenario import (
    Prompt,
    Regression,
    Scenario,
    Scoring,
    SuccessCriteria,
    VerifyStep,
)

__all__ = [
    "LoopResult",
    "LoopSettings",
    "ProjectConfig",
    "Prompt",
    "Regression",
    "RegressionResult",
    "Run",
    "Scenario",
    "Scoring",
    "SuccessCriteria",
    "VerifyResult",
    "VerifyStep",
]
