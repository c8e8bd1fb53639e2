"""Tests for process liveness supervision."""

from __future__ import annotations

import asyncio
import sys

import pytest

from sortie.execution.supervisor import (
    Signal,
    monitor_output,
    race,
    start_watchers,
    terminate,
)


def _reader(data: bytes) -> asyncio.StreamReader:
    reader = asyncio.StreamReader()
    reader.feed_data(data)
    reader.feed_eof()
    return reader


async def _spawn(code: str) -> asyncio.subprocess.Process:
    return await asyncio.create_subprocess_exec(
        sys.executable,
        "-c",
        code,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.STDOUT,
    )


class TestMonitorOutput:
    """Tests for stuck-output detection."""

    @pytest.mark.asyncio
    async def test_eof_returns_none(self):
        """Normal output ending in EOF is not stuck."""
        assert await monitor_output(_reader(b"building\ndeploying\ndone\n")) is None

    @pytest.mark.asyncio
    async def test_repeated_short_line_is_stuck(self):
        """Six identical short lines in a row mean the process is looping."""
        reason = await monitor_output(_reader(b"Thinking...\n" * 6 + b"after\n"))
        assert reason == "'Thinking...' repeated 6 times"

    @pytest.mark.asyncio
    async def test_interrupted_repeats_reset(self):
        """A different line between repeats resets the count."""
        data = b"y\n" * 4 + b"other\n" + b"y\n" * 4
        assert await monitor_output(_reader(data)) is None

    @pytest.mark.asyncio
    async def test_long_lines_never_stuck(self):
        """Lines longer than the short-line limit are real output."""
        line = b"x" * 40 + b"\n"
        assert await monitor_output(_reader(line * 20)) is None

    @pytest.mark.asyncio
    async def test_idle_stream_is_stuck(self):
        """No output within the idle timeout counts as stuck."""
        reader = asyncio.StreamReader()
        reason = await monitor_output(reader, idle_timeout=0.05)
        assert reason == "no output for 0.05s"

    @pytest.mark.asyncio
    async def test_echo_receives_lines(self):
        """Every line is passed to the echo callback without its newline."""
        seen: list[str] = []
        await monitor_output(_reader(b"one\r\ntwo\n"), echo=seen.append)
        assert seen == ["one", "two"]


class TestRace:
    """Tests for race and terminate with real subprocesses."""

    @pytest.mark.asyncio
    async def test_process_exit(self):
        """A process that exits on its own reports EXITED with its code."""
        process = await _spawn("print('hello'); raise SystemExit(3)")
        exit_task, monitor_task = start_watchers(process, idle_timeout=10)
        outcome = await race(exit_task, monitor_task, timeout=10)
        await terminate(process, exit_task, monitor_task)
        assert outcome.signal is Signal.EXITED
        assert outcome.returncode == 3

    @pytest.mark.asyncio
    async def test_stuck_process(self):
        """A looping process is reported STUCK and can be killed."""
        process = await _spawn(
            "import time\nfor _ in range(10): print('waiting', flush=True)\ntime.sleep(30)"
        )
        exit_task, monitor_task = start_watchers(process, idle_timeout=10)
        outcome = await race(exit_task, monitor_task, timeout=10)
        code = await terminate(process, exit_task, monitor_task)
        assert outcome.signal is Signal.STUCK
        assert "waiting" in outcome.detail
        assert code != 0
        assert exit_task.done()

    @pytest.mark.asyncio
    async def test_idle_process(self):
        """A silent process is reported STUCK after the idle timeout."""
        process = await _spawn("import time; time.sleep(30)")
        exit_task, monitor_task = start_watchers(process, idle_timeout=0.2)
        outcome = await race(exit_task, monitor_task, timeout=10)
        await terminate(process, exit_task, monitor_task)
        assert outcome.signal is Signal.STUCK
        assert outcome.detail.startswith("no output")

    @pytest.mark.asyncio
    async def test_timeout(self):
        """No signal before the deadline reports TIMEOUT."""
        process = await _spawn("import time; time.sleep(30)")
        exit_task, monitor_task = start_watchers(process, idle_timeout=30)
        outcome = await race(exit_task, monitor_task, timeout=0.2)
        await terminate(process, exit_task, monitor_task)
        assert outcome.signal is Signal.TIMEOUT
        assert outcome.detail == "no completion within 0.2s"

    @pytest.mark.asyncio
    async def test_completion_wins(self):
        """A completion signal ends the wait while the process lives on."""
        process = await _spawn("import time; time.sleep(30)")
        exit_task, monitor_task = start_watchers(process, idle_timeout=30)
        completion = asyncio.create_task(asyncio.sleep(0.05))
        outcome = await race(exit_task, monitor_task, completion, timeout=10)
        assert process.returncode is None
        await terminate(process, exit_task, monitor_task, completion)
        assert outcome.signal is Signal.COMPLETED
