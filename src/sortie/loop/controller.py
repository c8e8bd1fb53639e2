"""Improvement loop: run -> analyze -> fix -> rebuild -> repeat.

The controller drives one scenario through a small state machine until
a run passes or the iteration budget is spent. Runner, analyze, store
and rebuild failures abort the loop with a LoopError naming the stage;
the fix step is best effort and never aborts it. Every collaborator is
injectable so the state machine can be exercised without an assistant.
"""

from __future__ import annotations

import asyncio
import logging
import subprocess
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import Protocol

from sortie.evaluation.analyze import analyze
from sortie.evaluation.formatting import failed_criteria, format_report
from sortie.execution.runner import ScenarioRunner, ScenarioRunResult
from sortie.execution.supervisor import (
    OUTPUT_LINE_LIMIT,
    Outcome,
    race,
    start_watchers,
    terminate,
)
from sortie.execution.tail import TranscriptTailer
from sortie.models.config import LoopSettings, ProjectConfig
from sortie.models.result import LoopResult, Run
from sortie.models.scenario import Scenario
from sortie.reporting.dashboard import generate_dashboard
from sortie.storage.sqlite_store import ResultsStore, StoreError
from sortie.transcript.reader import events_path

logger = logging.getLogger(__name__)

GIT_COMMIT_LENGTH = 12


class LoopState(StrEnum):
    RUNNING = "running"
    ANALYZING = "analyzing"
    FIXING = "fixing"
    REBUILDING = "rebuilding"
    PASSED = "passed"
    EXHAUSTED = "exhausted"


class LoopError(Exception):
    """Fatal loop failure.

    Attributes:
        stage: Stage that failed: 'run', 'analyze' or 'rebuild'.
        iteration: 1-based iteration in which it failed.
        results: Results of the iterations completed before the failure.
    """

    def __init__(
        self,
        stage: str,
        iteration: int,
        cause: BaseException,
        results: list[LoopResult],
    ) -> None:
        self.stage = stage
        self.iteration = iteration
        self.results = list(results)
        super().__init__(f"iteration {iteration} {stage}: {cause}")


class RebuildError(Exception):
    """Raised when a build or test command fails."""


class Runner(Protocol):
    async def run(self, scenario: Scenario) -> ScenarioRunResult: ...


@dataclass
class LoopConfig:
    """Everything one loop invocation needs."""

    scenario: Scenario
    project_root: Path
    db_path: Path
    assistant_binary: str = "azd"
    max_iters: int = 3
    dashboard_path: Path | None = None
    session_root: Path | None = None
    settings: LoopSettings = field(default_factory=LoopSettings)

    @classmethod
    def from_project(
        cls,
        scenario: Scenario,
        project_root: Path,
        project_config: ProjectConfig,
        max_iters: int | None = None,
    ) -> LoopConfig:
        settings = project_config.loop
        return cls(
            scenario=scenario,
            project_root=project_root,
            db_path=project_root / project_config.results_db,
            assistant_binary=project_config.assistant_binary,
            max_iters=max_iters or settings.max_iters,
            dashboard_path=project_root / project_config.dashboard_file,
            session_root=project_config.session_root(),
            settings=settings,
        )


@dataclass(frozen=True)
class LoopOutcome:
    state: LoopState
    results: list[LoopResult]
    best_score: float


def build_fix_prompt(
    run: Run,
    scenario: Scenario,
    settings: LoopSettings,
    session_root: Path | None = None,
) -> str:
    """Describe every failed criterion and how the assistant may fix it."""
    lines = [
        f"The scenario test '{scenario.name}' failed. "
        "Here are the issues to fix in our skills and agents:",
        "",
    ]
    lines += [f"- {failure}" for failure in failed_criteria(run, scenario)]
    editable = " and ".join(settings.editable_asset_dirs)
    lines += [
        "",
        f"Analyze the session log at {events_path(run.session_id, session_root)} "
        "to understand what went wrong, then update the skills and agents to fix these issues. "
        f"Only edit files in {editable}. "
        f"Do NOT edit files in {settings.upstream_asset_dir} (upstream). "
        f"After making changes, run '{settings.verify_command}' to verify.",
    ]
    return "\n".join(lines)


async def run_fix_step(
    prompt: str,
    *,
    assistant_binary: str,
    cwd: Path,
    session_root: Path | None = None,
    timeout: float,
    idle_timeout: float,
    echo: Callable[[str], None] | None = None,
) -> Outcome:
    """Send a fix prompt to the assistant in unattended mode.

    The process is killed as soon as it finishes, reports completion in
    its transcript, looks stuck, or runs out of time.

    Raises:
        OSError: If the assistant cannot be started.
    """
    started = time.time()
    process = await asyncio.create_subprocess_exec(
        assistant_binary,
        "copilot",
        "--yolo",
        "-p",
        prompt,
        cwd=cwd,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.STDOUT,
        limit=OUTPUT_LINE_LIMIT,
    )
    exit_task, monitor_task = start_watchers(process, idle_timeout, echo)
    completion = asyncio.create_task(
        TranscriptTailer(session_root, since=started).wait_for_completion()
    )
    try:
        outcome = await race(exit_task, monitor_task, completion, timeout)
    finally:
        await terminate(process, exit_task, monitor_task, completion)
    logger.info("Fix step ended: %s %s", outcome.signal, outcome.detail)
    return outcome


async def _run_command(cmd: list[str], cwd: Path) -> int:
    logger.info("$ %s (in %s)", " ".join(cmd), cwd)
    process = await asyncio.create_subprocess_exec(*cmd, cwd=cwd)
    return await process.wait()


async def rebuild(settings: LoopSettings, project_root: Path) -> None:
    """Build and test the assistant's extension, then reinstall it.

    Raises:
        RebuildError: If a build or test command fails or cannot start.
    """
    build_dir = project_root / settings.build_dir
    for cmd in settings.build_commands:
        try:
            code = await _run_command(cmd, build_dir)
        except OSError as e:
            raise RebuildError(f"{' '.join(cmd)}: {e}") from e
        if code != 0:
            raise RebuildError(f"{' '.join(cmd)} exited with status {code}")

    if settings.install_command:
        install = " ".join(settings.install_command)
        try:
            code = await _run_command(settings.install_command, build_dir)
        except OSError as e:
            logger.warning("%s failed (non-fatal): %s", install, e)
            return
        if code != 0:
            logger.warning("%s exited with status %d (non-fatal)", install, code)


def git_commit(repo_root: Path) -> str:
    """Short HEAD commit of the repository, or 'unknown'."""
    try:
        result = subprocess.run(
            ["git", "rev-parse", "HEAD"],
            cwd=repo_root,
            capture_output=True,
            text=True,
            check=False,
        )
    except OSError:
        return "unknown"
    commit = result.stdout.strip()
    if result.returncode != 0 or not commit:
        return "unknown"
    return commit[:GIT_COMMIT_LENGTH]


class ImprovementLoop:
    """Drives a scenario through run/analyze/fix/rebuild iterations.

    Args:
        config: Loop configuration.
        runner: Scenario runner; defaults to a ScenarioRunner for the
            configured assistant binary.
        store: Results store; defaults to the configured database.
        analyzer: Callable(session_id, scenario, git_commit) -> Run.
        fixer: Async callable(prompt) run in the fixing state.
        rebuilder: Async callable run in the rebuilding state.
        commit_provider: Callable returning the current commit id.
        on_result: Called with each iteration's LoopResult.
    """

    def __init__(
        self,
        config: LoopConfig,
        *,
        runner: Runner | None = None,
        store: ResultsStore | None = None,
        analyzer: Callable[[str, Scenario, str | None], Run] | None = None,
        fixer: Callable[[str], Awaitable[object]] | None = None,
        rebuilder: Callable[[], Awaitable[None]] | None = None,
        commit_provider: Callable[[], str] | None = None,
        on_result: Callable[[LoopResult], None] | None = None,
    ) -> None:
        self.config = config
        self.runner = runner or ScenarioRunner(
            config.assistant_binary,
            config.session_root,
            idle_timeout=config.settings.idle_timeout_seconds,
        )
        self.store = store or ResultsStore(config.db_path)
        self.analyzer = analyzer or self._analyze
        self.fixer = fixer or self._fix
        self.rebuilder = rebuilder or self._rebuild
        self.commit_provider = commit_provider or (lambda: git_commit(config.project_root))
        self.on_result = on_result
        self.state = LoopState.RUNNING
        self.history: list[LoopState] = []

    def _enter(self, state: LoopState, iteration: int) -> None:
        self.state = state
        self.history.append(state)
        logger.info("Iteration %d/%d: %s", iteration, self.config.max_iters, state)

    def _analyze(self, session_id: str, scenario: Scenario, commit: str | None) -> Run:
        return analyze(session_id, scenario, commit, self.config.session_root)

    async def _fix(self, prompt: str) -> Outcome:
        return await run_fix_step(
            prompt,
            assistant_binary=self.config.assistant_binary,
            cwd=self.config.project_root,
            session_root=self.config.session_root,
            timeout=self.config.settings.fix_timeout_seconds,
            idle_timeout=self.config.settings.idle_timeout_seconds,
        )

    async def _rebuild(self) -> None:
        await rebuild(self.config.settings, self.config.project_root)

    async def run(self) -> LoopOutcome:
        """Iterate until a run passes or max_iters runs have been scored.

        Raises:
            LoopError: If running, analyzing/storing, or rebuilding fails.
        """
        scenario = self.config.scenario
        results: list[LoopResult] = []

        for iteration in range(1, self.config.max_iters + 1):
            self._enter(LoopState.RUNNING, iteration)
            try:
                run_result = await self.runner.run(scenario)
            except Exception as e:
                raise LoopError("run", iteration, e, results) from e

            self._enter(LoopState.ANALYZING, iteration)
            try:
                run = self.analyzer(run_result.session_id, scenario, self.commit_provider())
                run_id = self.store.insert_run(run)
            except Exception as e:
                raise LoopError("analyze", iteration, e, results) from e

            report = format_report(run, scenario)
            logger.info("Stored run #%d\n%s", run_id, report)
            result = LoopResult(
                iteration=iteration,
                session_id=run_result.session_id,
                run=run,
                report=report,
            )
            results.append(result)
            if self.on_result is not None:
                self.on_result(result)

            if run.passed:
                self._enter(LoopState.PASSED, iteration)
                break
            if iteration == self.config.max_iters:
                self._enter(LoopState.EXHAUSTED, iteration)
                break

            self._enter(LoopState.FIXING, iteration)
            prompt = build_fix_prompt(run, scenario, self.config.settings, self.config.session_root)
            try:
                await self.fixer(prompt)
            except Exception:
                logger.warning("Fix step failed; continuing to rebuild", exc_info=True)

            self._enter(LoopState.REBUILDING, iteration)
            try:
                await self.rebuilder()
            except Exception as e:
                raise LoopError("rebuild", iteration, e, results) from e

        self._write_dashboard()
        best = max((r.run.score for r in results), default=0.0)
        if self.state is LoopState.EXHAUSTED:
            logger.info("Max iterations reached. Best score: %.0f%%", best * 100)
        return LoopOutcome(state=self.state, results=results, best_score=best)

    def _write_dashboard(self) -> None:
        if self.config.dashboard_path is None:
            return
        try:
            generate_dashboard(self.store, self.config.dashboard_path)
        except (OSError, StoreError) as e:
            logger.warning("Dashboard generation failed: %s", e)


def run_loop(config: LoopConfig, **kwargs) -> LoopOutcome:
    """Synchronous wrapper around ImprovementLoop.run."""
    return asyncio.run(ImprovementLoop(config, **kwargs).run())
