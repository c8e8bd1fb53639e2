"""Scenario data models for Sortie evaluation runs.

These models encode the user-facing YAML contract for defining
assistant scenarios: the prompts to replay, the scoring ceilings and
required capabilities, the regression watchlist, and optional browser
verification steps. Unknown keys are ignored so older harness versions
can read scenarios written by newer ones.
"""

from __future__ import annotations

import re
from typing import Literal

from pydantic import AliasChoices, BaseModel, Field

# Scenario timeout applied when the file leaves it unset or unparseable
DEFAULT_TIMEOUT_SECONDS = 30 * 60

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|h|m|s)")
_DURATION_UNITS: dict[str, float] = {"h": 3600.0, "m": 60.0, "s": 1.0, "ms": 0.001}


def parse_duration(text: str) -> float | None:
    """Parse a duration string like '30m', '1h30m' or '90s' into seconds.

    Returns None when the string is empty or not a valid duration.
    """
    text = text.strip()
    if not text:
        return None
    pos = 0
    total = 0.0
    for match in _DURATION_PART.finditer(text):
        if match.start() != pos:
            return None
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()
    if pos != len(text):
        return None
    return total


def _alias(name: str, camel: str) -> AliasChoices:
    return AliasChoices(name, camel)


class SuccessCriteria(BaseModel):
    """What must be true after a single prompt completes."""

    model_config = {"extra": "ignore", "frozen": True}

    files_exist: list[str] = Field(
        default_factory=list, validation_alias=_alias("files_exist", "filesExist")
    )
    deployed: bool = False
    endpoint_responds: bool = Field(
        default=False,
        validation_alias=_alias("endpoint_responds", "endpointResponds"),
    )


class Prompt(BaseModel):
    """A single user message delivered to the assistant session."""

    model_config = {"extra": "ignore", "frozen": True}

    text: str
    success_criteria: SuccessCriteria = Field(
        default_factory=SuccessCriteria,
        validation_alias=_alias("success_criteria", "successCriteria"),
    )


class Regression(BaseModel):
    """A named failure signature watched for in assistant messages."""

    model_config = {"extra": "ignore", "frozen": True}

    name: str
    pattern: str
    max_occurrences: int = Field(
        default=0,
        ge=0,
        validation_alias=_alias("max_occurrences", "maxOccurrences"),
    )


class Scoring(BaseModel):
    """Ceilings and requirements a run is scored against.

    A numeric ceiling of 0 means the metric is unconstrained.
    """

    model_config = {"extra": "ignore", "frozen": True}

    max_duration_minutes: int = Field(
        default=0,
        ge=0,
        validation_alias=_alias("max_duration_minutes", "maxDurationMinutes"),
    )
    max_turns: int = Field(
        default=0, ge=0, validation_alias=_alias("max_turns", "maxTurns")
    )
    max_azd_up_attempts: int = Field(
        default=0,
        ge=0,
        validation_alias=_alias("max_azd_up_attempts", "maxAzdUpAttempts"),
    )
    max_bicep_edits: int = Field(
        default=0,
        ge=0,
        validation_alias=_alias("max_bicep_edits", "maxBicepEdits"),
    )
    must_delegate: bool = Field(
        default=False, validation_alias=_alias("must_delegate", "mustDelegate")
    )
    must_invoke_skills: list[str] = Field(
        default_factory=list,
        validation_alias=_alias("must_invoke_skills", "mustInvokeSkills"),
    )
    regressions: list[Regression] = Field(default_factory=list)


class VerifyStep(BaseModel):
    """A single browser-level assertion replayed against the deployed app."""

    model_config = {"extra": "ignore", "frozen": True}

    name: str = ""
    action: Literal[
        "navigate", "click", "type", "wait", "check", "check_not_empty", "screenshot"
    ]
    selector: str = ""
    value: str = ""
    url: str = ""
    status_code: int = Field(
        default=0, ge=0, validation_alias=_alias("status_code", "statusCode")
    )


class Scenario(BaseModel):
    """A complete, reusable scenario definition loaded from YAML.

    Holds the ordered prompts replayed in one assistant session and the
    criteria the resulting transcript is scored against.
    """

    model_config = {"extra": "ignore", "frozen": True}

    name: str = Field(min_length=1)
    description: str = ""
    timeout: str | None = None
    prompts: list[Prompt] = Field(min_length=1)
    scoring: Scoring = Field(default_factory=Scoring)
    verification: list[VerifyStep] = Field(default_factory=list)

    @property
    def timeout_seconds(self) -> float:
        """Wall-clock budget for a full run, in seconds."""
        if self.timeout:
            parsed = parse_duration(self.timeout)
            if parsed is not None and parsed > 0:
                return parsed
        return float(DEFAULT_TIMEOUT_SECONDS)
