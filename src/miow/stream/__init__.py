"""Miow stream core - decode, classify, record and control agent event streams."""

from miow.stream.classifier import LineClassifier, MarkerText
from miow.stream.decoder import FrameDecoder
from miow.stream.events import (
    DoneEvent,
    ErrorEvent,
    EventKind,
    StatusMarker,
    StepEvent,
    StreamRecord,
    TerminalResult,
    ThoughtEvent,
    ToolCallEvent,
    ToolOutputEvent,
    parse_agent_event,
)
from miow.stream.history import EventFilter, EventHistory
from miow.stream.session import SessionControls, SessionState, StreamSession
from miow.stream.source import ByteSource, HttpxByteSource
from miow.stream.status import StatusProjector

__all__ = [
    "FrameDecoder",
    "LineClassifier",
    "MarkerText",
    "EventKind",
    "StepEvent",
    "ThoughtEvent",
    "ToolCallEvent",
    "ToolOutputEvent",
    "ErrorEvent",
    "DoneEvent",
    "StatusMarker",
    "TerminalResult",
    "StreamRecord",
    "parse_agent_event",
    "EventFilter",
    "EventHistory",
    "StatusProjector",
    "StreamSession",
    "SessionState",
    "SessionControls",
    "ByteSource",
    "HttpxByteSource",
]
