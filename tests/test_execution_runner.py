"""Tests for ScenarioRunner against a scripted stand-in assistant."""

from __future__ import annotations

import sys
import time
from pathlib import Path

import pytest

from sortie.execution.runner import SHUTDOWN_GRACE_SECONDS, RunnerError, ScenarioRunner
from sortie.models.scenario import Prompt, Scenario

# Echoes a session id, then records each stdin line as a user message
# followed by a completion signal in its transcript.
FAKE_ASSISTANT = """\
import json
import pathlib
import sys
import time

root = pathlib.Path(sys.argv[1])
mode = sys.argv[2]
session = root / "sess-1"
session.mkdir(parents=True, exist_ok=True)
events = session / "events.jsonl"
print("Session ID: sess-1", flush=True)

def record(event_type, data):
    with events.open("a") as f:
        f.write(json.dumps({"type": event_type, "data": data,
                            "timestamp": "2026-03-01T10:00:00Z"}) + "\\n")

while True:
    line = sys.stdin.readline()
    if not line:
        if mode == "deaf":
            time.sleep(30)
        break
    record("user.message", {"content": line.rstrip("\\n")})
    if mode == "fail":
        sys.exit(2)
    if mode in ("hang", "deaf"):
        continue
    record("tool.execution_start", {"toolName": "task_complete"})
    print("done", flush=True)
"""


def _scenario(*prompts: str, timeout: str | None = None) -> Scenario:
    return Scenario(name="fake", timeout=timeout, prompts=[Prompt(text=p) for p in prompts])


def _runner(tmp_path: Path, mode: str, **kwargs) -> tuple[ScenarioRunner, Path]:
    script = tmp_path / "assistant.py"
    script.write_text(FAKE_ASSISTANT)
    sessions = tmp_path / "sessions"
    sessions.mkdir()
    runner = ScenarioRunner(
        "fake",
        sessions,
        poll_interval=0.02,
        command=[sys.executable, str(script), str(sessions), mode],
        **kwargs,
    )
    return runner, sessions


class TestScenarioRunner:
    """Tests for ScenarioRunner.run."""

    def test_default_command(self):
        """The assistant is launched in unattended mode."""
        assert ScenarioRunner("azd").command() == ["azd", "copilot", "--yolo"]

    @pytest.mark.asyncio
    async def test_all_prompts_delivered_in_one_session(self, tmp_path: Path):
        """Each prompt waits for the previous completion signal."""
        runner, sessions = _runner(tmp_path, "ok")
        result = await runner.run(_scenario("build a todo app", "now deploy it"))
        assert result.session_id == "sess-1"
        assert result.prompts_completed == 2
        assert result.timed_out is False
        assert result.work_dir.is_dir()
        transcript = (sessions / "sess-1" / "events.jsonl").read_text()
        assert transcript.index("build a todo app") < transcript.index("now deploy it")

    @pytest.mark.asyncio
    async def test_echo_receives_output(self, tmp_path: Path):
        """Assistant output is passed to the echo callback."""
        seen: list[str] = []
        runner, _ = _runner(tmp_path, "ok", echo=seen.append)
        await runner.run(_scenario("go"))
        assert "Session ID: sess-1" in seen

    @pytest.mark.asyncio
    async def test_nonzero_exit_is_an_error(self, tmp_path: Path):
        """An assistant that dies mid-prompt fails the run."""
        runner, _ = _runner(tmp_path, "fail")
        with pytest.raises(RunnerError, match="status 2"):
            await runner.run(_scenario("go"))

    @pytest.mark.asyncio
    async def test_scenario_timeout_returns_partial_session(self, tmp_path: Path):
        """Hitting the scenario timeout kills the assistant but keeps the session."""
        runner, _ = _runner(tmp_path, "hang")
        result = await runner.run(_scenario("go", "again", timeout="1s"))
        assert result.timed_out is True
        assert result.prompts_completed == 0
        assert result.session_id == "sess-1"

    @pytest.mark.asyncio
    async def test_scenario_timeout_kills_without_grace(self, tmp_path: Path):
        """An assistant that ignores end of input is killed as soon as the timeout fires."""
        runner, _ = _runner(tmp_path, "deaf")
        start = time.monotonic()
        result = await runner.run(_scenario("go", timeout="1s"))
        assert result.timed_out is True
        assert time.monotonic() - start < SHUTDOWN_GRACE_SECONDS

    @pytest.mark.asyncio
    async def test_missing_binary(self, tmp_path: Path):
        """A binary that cannot be started raises RunnerError."""
        runner = ScenarioRunner(
            "missing", tmp_path, command=[str(tmp_path / "no-such-binary")]
        )
        with pytest.raises(RunnerError, match="start"):
            await runner.run(_scenario("go"))
