"""Event models for assistant session transcripts.

A transcript is a JSON-lines file; each line is one event envelope with
a type tag and a type-specific payload. Payloads are decoded through a
registry keyed by the type tag, and unrecognised types fall back to
UnknownPayload so new assistant versions never break the reader.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator

SESSION_START = "session.start"
USER_MESSAGE = "user.message"
ASSISTANT_TURN_START = "assistant.turn_start"
ASSISTANT_MESSAGE = "assistant.message"
TOOL_EXECUTION_START = "tool.execution_start"
SKILL_INVOKED = "skill.invoked"


class UnknownPayload(BaseModel):
    """Payload of an event type the reader does not model."""

    model_config = {"extra": "allow", "frozen": True}


class UserMessagePayload(BaseModel):
    model_config = {"extra": "ignore", "frozen": True}

    content: str = ""


class AssistantMessagePayload(BaseModel):
    model_config = {"extra": "ignore", "frozen": True}

    content: str = ""


class TurnStartPayload(BaseModel):
    model_config = {"extra": "ignore", "frozen": True}

    turn_id: str = Field(default="", alias="turnId")


class ToolExecutionPayload(BaseModel):
    """Start of a tool invocation.

    ``arguments`` keeps the raw JSON text of the call arguments so
    pattern matching sees exactly what the assistant sent.
    """

    model_config = {"extra": "ignore", "frozen": True, "populate_by_name": True}

    tool_name: str = Field(default="", alias="toolName")
    arguments: str = ""

    @field_validator("arguments", mode="before")
    @classmethod
    def _serialize_arguments(cls, value: Any) -> str:
        if value is None:
            return ""
        if isinstance(value, str):
            return value
        return json.dumps(value, separators=(",", ":"))


class SkillInvokedPayload(BaseModel):
    model_config = {"extra": "ignore", "frozen": True}

    name: str = ""


Payload = (
    UserMessagePayload
    | AssistantMessagePayload
    | TurnStartPayload
    | ToolExecutionPayload
    | SkillInvokedPayload
    | UnknownPayload
)

PAYLOAD_TYPES: dict[str, type[BaseModel]] = {
    USER_MESSAGE: UserMessagePayload,
    ASSISTANT_MESSAGE: AssistantMessagePayload,
    ASSISTANT_TURN_START: TurnStartPayload,
    TOOL_EXECUTION_START: ToolExecutionPayload,
    SKILL_INVOKED: SkillInvokedPayload,
}


class Event(BaseModel):
    """One transcript record."""

    model_config = {"extra": "ignore", "frozen": True, "populate_by_name": True}

    type: str
    data: dict[str, Any] = Field(default_factory=dict)
    id: str = ""
    timestamp: datetime
    parent_id: str | None = Field(default=None, alias="parentId")

    @field_validator("data", mode="before")
    @classmethod
    def _null_data(cls, value: Any) -> Any:
        return {} if value is None else value

    @field_validator("timestamp")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    def payload(self) -> Payload:
        """Decode ``data`` according to the event type.

        A payload that does not fit its registered model decodes as
        UnknownPayload rather than raising.
        """
        model = PAYLOAD_TYPES.get(self.type, UnknownPayload)
        try:
            return model.model_validate(self.data)  # type: ignore[return-value]
        except ValidationError:
            return UnknownPayload.model_validate(self.data)
