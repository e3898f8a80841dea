"""
Line classifier - maps one complete frame line to a typed record.

Rules, in order:
1. "event:" lines are framing metadata and carry no payload.
2. "data:" lines are stripped and trimmed; an empty payload is ignored.
3. The payload is then a status marker, a JSON agent event, or (anything
   else) the terminal result.

Malformed agent events are dropped with a warning; the stream goes on.
"""
from __future__ import annotations

import logging
from enum import Enum
from typing import Optional

from miow.errors import FramingError
from miow.stream.events import StatusMarker, StreamRecord, TerminalResult, parse_agent_event

logger = logging.getLogger(__name__)

EVENT_PREFIX = "event:"
DATA_PREFIX = "data:"


class MarkerText(str, Enum):
    """Progress marker vocabulary emitted by the backend (protocol v1)."""
    AGENT_STARTING = "Starting autonomous agent..."  # Exact match
    NO_INDEX = "No index found"  # Prefix
    INDEXING = "Indexing"  # Prefix

    @classmethod
    def matches(cls, payload: str) -> bool:
        if payload == cls.AGENT_STARTING.value:
            return True
        return payload.startswith((cls.NO_INDEX.value, cls.INDEXING.value))


class LineClassifier:
    """
    Classifies frame lines and stamps accepted records with sequence numbers.

    Sequence numbers start at 1 and increase by one per emitted record;
    ignored and dropped lines do not consume a number.
    """

    def __init__(self):
        self._seq = 0
        self._last_event_name: Optional[str] = None
        self.dropped = 0

    @property
    def last_seq(self) -> int:
        return self._seq

    def classify(self, line: str) -> Optional[StreamRecord]:
        """Classify a line. Returns None when the line is ignored."""
        if line.startswith(EVENT_PREFIX):
            self._last_event_name = line[len(EVENT_PREFIX):].strip() or None
            return None

        if not line.startswith(DATA_PREFIX):
            # Blank separators, ":" comments, id:/retry: fields
            return None

        payload = line[len(DATA_PREFIX):].strip()
        if not payload:
            return None

        if MarkerText.matches(payload):
            return StatusMarker(text=payload, seq=self._next_seq())

        if payload.startswith("{"):
            try:
                event = parse_agent_event(payload, seq=self._seq + 1)
            except FramingError as e:
                self.dropped += 1
                logger.warning(f"Dropping malformed agent event: {e} ({e.payload[:120]!r})")
                return None
            self._next_seq()
            return event

        return TerminalResult(text=payload, seq=self._next_seq(), event=self._last_event_name)

    def _next_seq(self) -> int:
        self._seq += 1
        return self._seq
