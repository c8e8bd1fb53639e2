"""Liveness supervision for assistant child processes.

An assistant process is watched by independent tasks: its own exit,
an output monitor that detects stuck loops, and a transcript tailer
that reports the completion signal. ``race`` waits for whichever fires
first or for the timeout, and ``terminate`` kills the process and
cancels whatever is still pending.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum

logger = logging.getLogger(__name__)

# Lines longer than this are real output and never count as repeats
STUCK_LINE_MAX_LEN = 20
# Consecutive repeats of one short line that mean the process is looping
STUCK_REPEAT_THRESHOLD = 5
IDLE_TIMEOUT_SECONDS = 3 * 60
# StreamReader line buffer for child output
OUTPUT_LINE_LIMIT = 1024 * 1024


class Signal(StrEnum):
    """What ended a supervised wait."""

    EXITED = "exited"
    STUCK = "stuck"
    COMPLETED = "completed"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class Outcome:
    signal: Signal
    detail: str = ""
    returncode: int | None = None


async def monitor_output(
    stream: asyncio.StreamReader,
    idle_timeout: float = IDLE_TIMEOUT_SECONDS,
    echo: Callable[[str], None] | None = None,
    repeat_threshold: int = STUCK_REPEAT_THRESHOLD,
) -> str | None:
    """Read output line by line until EOF or a stuck pattern is seen.

    Args:
        stream: Combined stdout/stderr of the child process.
        idle_timeout: Seconds without any output that count as stuck.
        echo: Called with every line read.
        repeat_threshold: Consecutive repeats of a short line that count
            as stuck.

    Returns:
        A human-readable reason if the output looks stuck, or None when
        the stream reaches EOF.
    """
    last_line = ""
    repeats = 0
    while True:
        try:
            raw = await asyncio.wait_for(stream.readline(), timeout=idle_timeout)
        except TimeoutError:
            return f"no output for {idle_timeout:g}s"
        except ValueError:
            # Line exceeded the buffer limit; the overflow is discarded
            last_line, repeats = "", 0
            continue
        if not raw:
            return None

        line = raw.decode("utf-8", errors="replace").rstrip("\r\n")
        if echo is not None:
            echo(line)

        trimmed = line.strip()
        if 0 < len(trimmed) <= STUCK_LINE_MAX_LEN:
            if trimmed == last_line:
                repeats += 1
                if repeats >= repeat_threshold:
                    return f"{trimmed!r} repeated {repeats + 1} times"
            else:
                last_line, repeats = trimmed, 0
        else:
            last_line, repeats = "", 0


async def race(
    process_exit: asyncio.Task[int],
    output_monitor: asyncio.Task[str | None],
    completion: asyncio.Task[None] | None = None,
    timeout: float | None = None,
) -> Outcome:
    """Wait for the first liveness signal.

    The tasks passed in are not cancelled; the caller decides whether
    the process lives on (between prompts) or is terminated. An output
    monitor that reached EOF without a verdict is not a signal by
    itself; the process exit that follows it is.
    """
    loop = asyncio.get_running_loop()
    deadline = None if timeout is None else loop.time() + timeout

    waiting: set[asyncio.Task] = {process_exit}
    if not (output_monitor.done() and output_monitor.result() is None):
        waiting.add(output_monitor)
    if completion is not None:
        waiting.add(completion)

    while True:
        remaining = None if deadline is None else max(deadline - loop.time(), 0.0)
        done, _ = await asyncio.wait(
            waiting, timeout=remaining, return_when=asyncio.FIRST_COMPLETED
        )
        if not done:
            return Outcome(Signal.TIMEOUT, f"no completion within {timeout:g}s")

        if completion is not None and completion in done:
            completion.result()
            return Outcome(Signal.COMPLETED)
        if output_monitor in done:
            reason = output_monitor.result()
            if reason:
                return Outcome(Signal.STUCK, reason)
            waiting.discard(output_monitor)
        if process_exit in done:
            code = process_exit.result()
            return Outcome(Signal.EXITED, f"exit status {code}", returncode=code)


async def terminate(
    process: asyncio.subprocess.Process,
    *tasks: asyncio.Task | None,
) -> int:
    """Kill the process if still running, reap it, and cancel watchers.

    Returns:
        The process return code.
    """
    if process.returncode is None:
        with contextlib.suppress(ProcessLookupError):
            process.kill()
            logger.debug("Killed process %d", process.pid)
    code = await process.wait()
    pending = [t for t in tasks if t is not None and not t.done()]
    for task in pending:
        task.cancel()
    if pending:
        await asyncio.gather(*pending, return_exceptions=True)
    return code


def start_watchers(
    process: asyncio.subprocess.Process,
    idle_timeout: float = IDLE_TIMEOUT_SECONDS,
    echo: Callable[[str], None] | None = None,
) -> tuple[asyncio.Task[int], asyncio.Task[str | None]]:
    """Create the exit-wait and output-monitor tasks for a process."""
    assert process.stdout is not None
    exit_task = asyncio.create_task(process.wait())
    monitor_task = asyncio.create_task(monitor_output(process.stdout, idle_timeout, echo))
    return exit_task, monitor_task
