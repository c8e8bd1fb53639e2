"""Sortie execution - assistant process supervision and scenario replay."""

from sortie.execution.runner import (
    RunnerError,
    ScenarioRunner,
    ScenarioRunResult,
    run_scenario,
)
from sortie.execution.supervisor import Outcome, Signal, monitor_output, race, terminate
from sortie.execution.tail import TranscriptTailer

__all__ = [
    "Outcome",
    "RunnerError",
    "ScenarioRunResult",
    "ScenarioRunner",
    "Signal",
    "TranscriptTailer",
    "monitor_output",
    "race",
    "run_scenario",
    "terminate",
]
