"""
Record types produced by the stream classifier.

Agent events arrive adjacently tagged on the wire:

    {"type": "Step", "data": {"step": 1, "max_steps": 5}}
    {"type": "Done"}

They are flattened and validated into one of six pydantic models through a
discriminated union on ``type``. Markers and the terminal result are plain
text and carry no schema.
"""
from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    field_validator,
)

from miow.errors import FramingError


class EventKind(str, Enum):
    """Agent event kinds (the ``type`` tag on the wire)."""
    STEP = "Step"
    THOUGHT = "Thought"
    TOOL_CALL = "ToolCall"
    TOOL_OUTPUT = "ToolOutput"
    ERROR = "Error"
    DONE = "Done"


class _AgentEventBase(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    seq: int = 0

    @property
    def kind(self) -> EventKind:
        return EventKind(self.type)  # type: ignore[attr-defined]


class StepEvent(_AgentEventBase):
    type: Literal["Step"] = "Step"
    step: int
    max_steps: int


class ThoughtEvent(_AgentEventBase):
    type: Literal["Thought"] = "Thought"
    content: str


class ToolCallEvent(_AgentEventBase):
    """Tool invocation. ``args`` is opaque and only checked to be a mapping."""
    type: Literal["ToolCall"] = "ToolCall"
    tool: str
    args: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("args", mode="before")
    @classmethod
    def _null_args(cls, value: Any) -> Any:
        return {} if value is None else value


class ToolOutputEvent(_AgentEventBase):
    type: Literal["ToolOutput"] = "ToolOutput"
    output: str


class ErrorEvent(_AgentEventBase):
    type: Literal["Error"] = "Error"
    # Backend serializes the field as "error"
    message: str = Field(validation_alias=AliasChoices("error", "message"))


class DoneEvent(_AgentEventBase):
    type: Literal["Done"] = "Done"


AgentEvent = Annotated[
    Union[StepEvent, ThoughtEvent, ToolCallEvent, ToolOutputEvent, ErrorEvent, DoneEvent],
    Field(discriminator="type"),
]

_agent_event_adapter: TypeAdapter = TypeAdapter(AgentEvent)


@dataclass(frozen=True)
class StatusMarker:
    """Plain-text progress line (e.g. indexing notices)."""
    text: str
    seq: int = 0


@dataclass(frozen=True)
class TerminalResult:
    """The agent's final artifact, delivered as unstructured text."""
    text: str
    seq: int = 0
    event: Optional[str] = None  # Last "event:" name seen before the payload

    @property
    def is_error(self) -> bool:
        """Server framed this payload as an error rather than a result."""
        return self.event == "error"


StreamRecord = Union[
    StatusMarker,
    StepEvent,
    ThoughtEvent,
    ToolCallEvent,
    ToolOutputEvent,
    ErrorEvent,
    DoneEvent,
    TerminalResult,
]

AGENT_EVENT_TYPES = (StepEvent, ThoughtEvent, ToolCallEvent, ToolOutputEvent, ErrorEvent, DoneEvent)


def is_agent_event(record: object) -> bool:
    return isinstance(record, AGENT_EVENT_TYPES)


def parse_agent_event(payload: str, seq: int = 0) -> AgentEvent:
    """Decode a JSON data payload into an agent event.

    Raises:
        FramingError: payload is not valid JSON, not an object, or carries
            an unknown ``type`` or ill-typed fields.
    """
    try:
        envelope = json.loads(payload)
    except (ValueError, RecursionError) as e:
        # JSONDecodeError, oversized integers, nesting too deep
        raise FramingError(f"Invalid JSON: {e}", payload) from e

    if not isinstance(envelope, dict):
        raise FramingError("Event payload is not an object", payload)

    data = envelope.get("data")
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise FramingError("Event data is not an object", payload)

    fields = {**data, "type": envelope.get("type"), "seq": seq}
    try:
        return _agent_event_adapter.validate_python(fields)
    except ValidationError as e:
        raise FramingError(f"Invalid agent event: {e.error_count()} error(s)", payload) from e
