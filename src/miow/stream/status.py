"""Status projector - one human-readable status line from the latest record."""
from __future__ import annotations

from miow.stream.events import (
    DoneEvent,
    StatusMarker,
    StepEvent,
    StreamRecord,
    TerminalResult,
    ThoughtEvent,
    ToolCallEvent,
)

CONNECTING_TEXT = "Connecting to agent..."
AGENT_COMPLETED_TEXT = "Agent completed!"
COMPLETE_TEXT = "Complete!"
STOPPED_TEXT = "Stopped by user"


class StatusProjector:
    """
    Tracks the current status text.

    Filtering does not apply here: every classified record is projected.
    ToolOutput and Error events keep the previous status.
    """

    def __init__(self, initial: str = ""):
        self.current = initial

    def project(self, record: StreamRecord) -> str:
        if isinstance(record, StatusMarker):
            self.current = record.text
        elif isinstance(record, StepEvent):
            self.current = f"Step {record.step}/{record.max_steps}"
        elif isinstance(record, ThoughtEvent):
            self.current = record.content
        elif isinstance(record, ToolCallEvent):
            self.current = f"Executing: {record.tool}"
        elif isinstance(record, DoneEvent):
            self.current = AGENT_COMPLETED_TEXT
        elif isinstance(record, TerminalResult):
            self.current = COMPLETE_TEXT
        return self.current

    def set(self, text: str) -> str:
        """Override the status for lifecycle transitions (stop, failure)."""
        self.current = text
        return self.current
