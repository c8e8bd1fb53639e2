"""Result data models for scored scenario runs.

A Run is created once per (scenario, session) pairing and is never
mutated after it is built; corrections are made by recording a new Run.
The same model is the row shape of the results store and the record
shape of the portable JSON export.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class RegressionResult(BaseModel):
    """Outcome of checking one regression pattern against a transcript."""

    model_config = {"frozen": True}

    occurrences: int
    max_allowed: int
    passed: bool


class VerifyResult(BaseModel):
    """Outcome of one browser verification step."""

    model_config = {"frozen": True}

    passed: bool
    error: str = ""


class Run(BaseModel):
    """One scored execution of a scenario against one session transcript."""

    model_config = {"frozen": True}

    scenario: str
    session_id: str
    git_commit: str | None = None
    started_at: datetime
    duration_sec: int = 0
    total_turns: int = 0
    azd_up_attempts: int = 0
    bicep_edits: int = 0
    delegated: bool = False
    deployed: bool = False
    score: float = Field(ge=0.0, le=1.0)
    passed: bool
    skills: dict[str, bool] = Field(default_factory=dict)
    regressions: dict[str, RegressionResult] = Field(default_factory=dict)
    verification: dict[str, VerifyResult] = Field(default_factory=dict)


class LoopResult(BaseModel):
    """Outcome of one improvement-loop iteration."""

    model_config = {"frozen": True}

    iteration: int
    session_id: str
    run: Run
    report: str
