"""Metrics collected from a session transcript.

The deploy and infra-edit metrics are tool-call counts filtered by an
argument pattern; the tool names and patterns are the assistant's own
conventions and are kept here as constants.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from sortie.transcript.reader import SessionEvents

DEPLOY_TOOL = "powershell"
DEPLOY_ARG_PATTERN = r"azd up"
INFRA_EDIT_TOOL = "edit"
INFRA_EDIT_ARG_PATTERN = r"main\.bicep"


@dataclass(frozen=True)
class SessionMetrics:
    """Raw metrics of one session, before any scenario is applied."""

    duration_sec: int = 0
    total_turns: int = 0
    azd_up_attempts: int = 0
    bicep_edits: int = 0
    delegated: bool = False
    skills_invoked: tuple[str, ...] = field(default_factory=tuple)
    started_at: datetime | None = None

    @property
    def deployed(self) -> bool:
        # Attempted deployment is the only signal the transcript carries
        return self.azd_up_attempts > 0


def collect_metrics(events: SessionEvents) -> SessionMetrics:
    """Compute every scenario-independent metric from a transcript."""
    return SessionMetrics(
        duration_sec=int(events.duration().total_seconds()),
        total_turns=events.turn_count(),
        azd_up_attempts=events.count_tool_calls_matching(DEPLOY_TOOL, DEPLOY_ARG_PATTERN),
        bicep_edits=events.count_tool_calls_matching(INFRA_EDIT_TOOL, INFRA_EDIT_ARG_PATTERN),
        delegated=events.has_delegation(),
        skills_invoked=tuple(events.skills_invoked()),
        started_at=events.started_at(),
    )
