"""Session transcript reader and derived queries.

Reads an assistant session's events.jsonl and exposes the pure queries
the scoring engine is built on. Every query is a fold over the event
list; nothing is cached and no query mutates the sequence.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path

from pydantic import ValidationError

from sortie.models.config import default_session_root
from sortie.transcript.events import (
    ASSISTANT_MESSAGE,
    ASSISTANT_TURN_START,
    SKILL_INVOKED,
    TOOL_EXECUTION_START,
    USER_MESSAGE,
    AssistantMessagePayload,
    Event,
    SkillInvokedPayload,
    ToolExecutionPayload,
    UserMessagePayload,
)

logger = logging.getLogger(__name__)

EVENTS_FILENAME = "events.jsonl"

# Tool the assistant uses to hand work to a sub-agent
DELEGATION_TOOL = "task"


class SessionNotFoundError(FileNotFoundError):
    """Raised when a session's transcript cannot be found."""

    def __init__(self, session_id: str, path: Path | None = None) -> None:
        self.session_id = session_id
        self.path = path
        where = f" at {path}" if path else ""
        super().__init__(f"session {session_id!r} not found{where}")


@dataclass(frozen=True)
class ToolCall:
    """A tool invocation with its raw JSON arguments."""

    tool_name: str
    arguments: str


def parse_event_line(line: str) -> Event | None:
    """Parse one JSON line into an Event, or None if it is unusable."""
    line = line.strip()
    if not line:
        return None
    try:
        record = json.loads(line)
    except json.JSONDecodeError:
        logger.debug("Skipping malformed transcript line: %.80s", line)
        return None
    if not isinstance(record, dict):
        logger.debug("Skipping non-object transcript record: %.80s", line)
        return None
    try:
        return Event.model_validate(record)
    except ValidationError as e:
        logger.debug("Skipping invalid transcript event (%d errors)", e.error_count())
        return None


class SessionEvents:
    """Ordered events of one session, in file order."""

    def __init__(self, events: Iterable[Event] = ()) -> None:
        self.events: list[Event] = list(events)

    @classmethod
    def from_lines(cls, lines: Iterable[str]) -> SessionEvents:
        """Build from JSON-lines content, skipping malformed lines."""
        parsed = (parse_event_line(line) for line in lines)
        return cls(event for event in parsed if event is not None)

    @classmethod
    def from_file(cls, path: Path) -> SessionEvents:
        with path.open(encoding="utf-8", errors="replace") as f:
            return cls.from_lines(f)

    def __len__(self) -> int:
        return len(self.events)

    def _payloads(self, event_type: str, model: type) -> list:
        payloads = []
        for event in self.events:
            if event.type != event_type:
                continue
            payload = event.payload()
            if isinstance(payload, model):
                payloads.append(payload)
        return payloads

    def user_messages(self) -> list[str]:
        return [p.content for p in self._payloads(USER_MESSAGE, UserMessagePayload)]

    def assistant_messages(self) -> list[str]:
        return [
            p.content for p in self._payloads(ASSISTANT_MESSAGE, AssistantMessagePayload)
        ]

    def turn_count(self) -> int:
        return sum(1 for event in self.events if event.type == ASSISTANT_TURN_START)

    def tool_calls(self) -> list[ToolCall]:
        return [
            ToolCall(tool_name=p.tool_name, arguments=p.arguments)
            for p in self._payloads(TOOL_EXECUTION_START, ToolExecutionPayload)
        ]

    def skills_invoked(self) -> list[str]:
        return [p.name for p in self._payloads(SKILL_INVOKED, SkillInvokedPayload)]

    def count_tool_calls_matching(self, tool_name: str, arg_pattern: str = "") -> int:
        """Count calls to tool_name whose raw arguments match arg_pattern.

        An empty pattern matches every call to the tool. The pattern is
        an unanchored regex search; an invalid pattern counts nothing.
        """
        if arg_pattern:
            try:
                regex = re.compile(arg_pattern)
            except re.error:
                logger.debug("Invalid tool argument pattern %r", arg_pattern)
                return 0
        count = 0
        for call in self.tool_calls():
            if call.tool_name != tool_name:
                continue
            if not arg_pattern or regex.search(call.arguments):
                count += 1
        return count

    def has_delegation(self) -> bool:
        return any(call.tool_name == DELEGATION_TOOL for call in self.tool_calls())

    def count_regression_matches(self, pattern: str) -> int:
        """Count assistant messages matching pattern, case-insensitively."""
        try:
            regex = re.compile(pattern, re.IGNORECASE)
        except re.error:
            logger.debug("Invalid regression pattern %r", pattern)
            return 0
        return sum(1 for msg in self.assistant_messages() if regex.search(msg))

    def duration(self) -> timedelta:
        """Elapsed time between the first and last event."""
        if len(self.events) < 2:
            return timedelta(0)
        return self.events[-1].timestamp - self.events[0].timestamp

    def started_at(self) -> datetime | None:
        return self.events[0].timestamp if self.events else None


def session_dir(session_id: str, session_root: Path | None = None) -> Path:
    return (session_root or default_session_root()) / session_id


def events_path(session_id: str, session_root: Path | None = None) -> Path:
    return session_dir(session_id, session_root) / EVENTS_FILENAME


def load_session_events(
    session_id: str,
    session_root: Path | None = None,
) -> SessionEvents:
    """Read and parse the transcript of a session.

    Args:
        session_id: Directory name of the session under session_root.
        session_root: Root holding session directories. Defaults to
            ~/.copilot/session-state.

    Raises:
        SessionNotFoundError: If the session has no events.jsonl.
    """
    path = events_path(session_id, session_root)
    if not path.is_file():
        raise SessionNotFoundError(session_id, path)
    events = SessionEvents.from_file(path)
    logger.debug("Loaded %d events from %s", len(events), path)
    return events


def find_latest_session(
    session_root: Path | None = None,
    since: float | None = None,
) -> str:
    """Return the id of the most recently modified session directory.

    Args:
        session_root: Root holding session directories.
        since: If given, only consider directories modified at or after
            this POSIX timestamp.

    Raises:
        SessionNotFoundError: If no matching session directory exists.
    """
    root = session_root or default_session_root()
    candidates: list[tuple[float, str]] = []
    if root.is_dir():
        for entry in root.iterdir():
            if not entry.is_dir():
                continue
            mtime = entry.stat().st_mtime
            events_file = entry / EVENTS_FILENAME
            if events_file.exists():
                mtime = max(mtime, events_file.stat().st_mtime)
            if since is not None and mtime < since:
                continue
            candidates.append((mtime, entry.name))
    if not candidates:
        raise SessionNotFoundError("<latest>", root)
    return max(candidates)[1]
