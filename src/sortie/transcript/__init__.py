"""Sortie transcript reader - session events and derived queries."""

from sortie.transcript.events import Event, UnknownPayload
from sortie.transcript.reader import (
    SessionEvents,
    SessionNotFoundError,
    ToolCall,
    events_path,
    find_latest_session,
    load_session_events,
)

__all__ = [
    "Event",
    "SessionEvents",
    "SessionNotFoundError",
    "ToolCall",
    "UnknownPayload",
    "events_path",
    "find_latest_session",
    "load_session_events",
]
