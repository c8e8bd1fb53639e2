"""ScenarioRunner: replays a scenario's prompts in one assistant session.

The assistant is launched once per scenario in a fresh temporary
working directory so multi-turn context and delegation are exercised
the way a user would. Prompts are written to the process's stdin one at
a time; the next prompt is delivered only after the transcript reports
the previous one complete. The whole run is bounded by the scenario
timeout and each prompt by a per-prompt ceiling.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import re
import tempfile
import time
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from sortie.execution.supervisor import (
    IDLE_TIMEOUT_SECONDS,
    OUTPUT_LINE_LIMIT,
    Signal,
    race,
    start_watchers,
    terminate,
)
from sortie.execution.tail import POLL_INTERVAL_SECONDS, TranscriptTailer
from sortie.models.scenario import Scenario
from sortie.transcript.reader import SessionNotFoundError, find_latest_session

logger = logging.getLogger(__name__)

PER_PROMPT_TIMEOUT_SECONDS = 15 * 60
# Time allowed for a clean exit once stdin is closed
SHUTDOWN_GRACE_SECONDS = 10.0

SESSION_ID_PATTERN = re.compile(r"Session ID:\s*([A-Za-z0-9][A-Za-z0-9._-]*)")


class RunnerError(Exception):
    """Raised when the assistant process cannot be run to completion."""


@dataclass(frozen=True)
class ScenarioRunResult:
    """What a scenario run leaves behind for analysis.

    Attributes:
        session_id: Transcript directory name of the assistant session.
        work_dir: Temporary directory the assistant worked in.
        prompts_completed: Prompts that reached the completion signal.
        timed_out: True if the scenario timeout cut the run short.
    """

    session_id: str
    work_dir: Path
    prompts_completed: int
    timed_out: bool = False


def _truncate(text: str, n: int = 80) -> str:
    return text if len(text) <= n else text[:n] + "..."


class ScenarioRunner:
    """Launches and supervises the assistant for one scenario at a time."""

    def __init__(
        self,
        assistant_binary: str = "azd",
        session_root: Path | None = None,
        *,
        prompt_timeout: float = PER_PROMPT_TIMEOUT_SECONDS,
        idle_timeout: float = IDLE_TIMEOUT_SECONDS,
        poll_interval: float = POLL_INTERVAL_SECONDS,
        echo: Callable[[str], None] | None = None,
        command: list[str] | None = None,
    ) -> None:
        self.assistant_binary = assistant_binary
        self.session_root = session_root
        self.prompt_timeout = prompt_timeout
        self.idle_timeout = idle_timeout
        self.poll_interval = poll_interval
        self.echo = echo
        self._command = command

    def command(self) -> list[str]:
        """Argument vector for an unattended interactive session."""
        if self._command is not None:
            return list(self._command)
        return [self.assistant_binary, "copilot", "--yolo"]

    async def run(self, scenario: Scenario) -> ScenarioRunResult:
        """Run every prompt of the scenario in one session.

        A scenario timeout is not an error: the process is killed and the
        partial session is returned for analysis.

        Raises:
            RunnerError: If the process cannot be started, exits with a
                non-zero status the runner did not cause, or leaves no
                session behind.
        """
        work_dir = Path(tempfile.mkdtemp(prefix=f"scenario-{scenario.name}-"))
        logger.info("Working directory: %s", work_dir)
        started = time.time()
        cmd = self.command()

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                cwd=work_dir,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
                limit=OUTPUT_LINE_LIMIT,
            )
        except OSError as e:
            raise RunnerError(f"start {cmd[0]}: {e}") from e

        reported: list[str] = []

        def on_line(line: str) -> None:
            match = SESSION_ID_PATTERN.search(line)
            if match and not reported:
                reported.append(match.group(1))
            if self.echo is not None:
                self.echo(line)

        exit_task, monitor_task = start_watchers(process, self.idle_timeout, on_line)
        tailer = TranscriptTailer(self.session_root, since=started, poll_interval=self.poll_interval)
        completed = 0
        timed_out = False

        try:
            async with asyncio.timeout(scenario.timeout_seconds):
                completed = await self._deliver_prompts(
                    scenario, process, exit_task, monitor_task, tailer
                )
        except TimeoutError:
            timed_out = True
            logger.warning(
                "Scenario %s timed out after %gs; analyzing partial session",
                scenario.name,
                scenario.timeout_seconds,
            )
        finally:
            await self._shutdown(process, exit_task, monitor_task, graceful=not timed_out)

        session_id = reported[0] if reported else tailer.session_id
        if session_id is None:
            try:
                session_id = find_latest_session(self.session_root, since=started)
            except SessionNotFoundError as e:
                raise RunnerError(f"find session: {e}") from e
        logger.info("Session ID: %s", session_id)
        return ScenarioRunResult(
            session_id=session_id,
            work_dir=work_dir,
            prompts_completed=completed,
            timed_out=timed_out,
        )

    async def _deliver_prompts(
        self,
        scenario: Scenario,
        process: asyncio.subprocess.Process,
        exit_task: asyncio.Task[int],
        monitor_task: asyncio.Task[str | None],
        tailer: TranscriptTailer,
    ) -> int:
        completed = 0
        total = len(scenario.prompts)
        for idx, prompt in enumerate(scenario.prompts, start=1):
            if exit_task.done():
                break
            logger.info("Prompt %d/%d: %s", idx, total, _truncate(prompt.text))
            if not await self._write_prompt(process, prompt.text):
                break

            completion = asyncio.create_task(tailer.wait_for_completion())
            try:
                outcome = await race(exit_task, monitor_task, completion, self.prompt_timeout)
            finally:
                completion.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await completion

            if outcome.signal is Signal.COMPLETED:
                completed += 1
                logger.info("Prompt %d complete", idx)
                continue
            if outcome.signal is Signal.EXITED:
                if outcome.returncode:
                    raise RunnerError(
                        f"{self.assistant_binary} exited with status {outcome.returncode} "
                        f"during prompt {idx}"
                    )
                completed += 1
                logger.info("Assistant exited after prompt %d", idx)
                break
            # Stuck or per-prompt timeout: the session cannot take more prompts
            logger.warning("Prompt %d %s: %s; stopping", idx, outcome.signal, outcome.detail)
            break
        return completed

    @staticmethod
    async def _write_prompt(process: asyncio.subprocess.Process, text: str) -> bool:
        assert process.stdin is not None
        try:
            process.stdin.write(text.replace("\r\n", "\n").encode("utf-8") + b"\n")
            await process.stdin.drain()
        except (BrokenPipeError, ConnectionResetError):
            logger.warning("Assistant stopped reading input")
            return False
        return True

    @staticmethod
    async def _shutdown(
        process: asyncio.subprocess.Process,
        exit_task: asyncio.Task[int],
        monitor_task: asyncio.Task[str | None],
        graceful: bool = True,
    ) -> None:
        if process.stdin is not None and not process.stdin.is_closing():
            process.stdin.close()
        if graceful and process.returncode is None:
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(asyncio.shield(exit_task), SHUTDOWN_GRACE_SECONDS)
        await terminate(process, exit_task, monitor_task)


def run_scenario(
    scenario: Scenario,
    assistant_binary: str = "azd",
    session_root: Path | None = None,
    **kwargs,
) -> ScenarioRunResult:
    """Synchronous wrapper around ScenarioRunner.run."""
    runner = ScenarioRunner(assistant_binary, session_root, **kwargs)
    return asyncio.run(runner.run(scenario))
