"""Shared fixtures: an in-memory byte source and SSE payload builders."""
from __future__ import annotations

import asyncio
import json
from typing import Any, Dict, List, Optional, Sequence, Union

import pytest

from miow.errors import SourceError

ChunkOrGate = Union[bytes, asyncio.Event]


class FakeSource:
    """
    In-memory byte source.

    Items are returned one per read. An asyncio.Event item holds the read
    until the event is set, then the next item is returned. After the last
    item the source reports end of stream, or raises ``error`` if given.
    """

    def __init__(self, items: Sequence[ChunkOrGate], error: Optional[BaseException] = None):
        self._items: List[ChunkOrGate] = list(items)
        self._error = error
        self.reads = 0
        self.close_count = 0
        self.read_cancelled = False

    async def read(self) -> bytes:
        self.reads += 1
        try:
            while self._items:
                item = self._items.pop(0)
                if isinstance(item, asyncio.Event):
                    await item.wait()
                    continue
                return item
        except asyncio.CancelledError:
            self.read_cancelled = True
            raise
        if self._error is not None:
            raise self._error
        return b""

    async def aclose(self) -> None:
        self.close_count += 1


def opener_for(source: Any):
    async def opener():
        return source
    return opener


def agent_line(kind: str, data: Optional[Dict[str, Any]] = None) -> str:
    envelope: Dict[str, Any] = {"type": kind}
    if data is not None:
        envelope["data"] = data
    return f"data: {json.dumps(envelope)}"


def sse_frame(payload_line: str, event: str = "agent") -> bytes:
    """One server-sent event: event name, data line, blank separator."""
    return f"event: {event}\n{payload_line}\n\n".encode("utf-8")


STEP = agent_line("Step", {"step": 1, "max_steps": 5})
THOUGHT = agent_line("Thought", {"content": "Look at the router first"})
TOOL_CALL = agent_line("ToolCall", {"tool": "view_file", "args": {"path": "src/app.tsx"}})
TOOL_OUTPUT = agent_line("ToolOutput", {"output": "export default App"})
ERROR = agent_line("Error", {"error": "file not found"})
DONE = agent_line("Done")


@pytest.fixture
def full_stream() -> bytes:
    """A well-formed generation stream as the backend sends it."""
    return b"".join(
        [
            sse_frame("data: Starting autonomous agent...", event="status"),
            sse_frame("data: No index found. Indexing codebase...", event="status"),
            sse_frame("data: Indexing completed successfully", event="status"),
            sse_frame(STEP),
            sse_frame(THOUGHT),
            sse_frame(TOOL_CALL),
            sse_frame(TOOL_OUTPUT),
            sse_frame(ERROR),
            sse_frame(DONE),
            sse_frame("data: final artifact text", event="result"),
        ]
    )


@pytest.fixture
def broken_source_error() -> SourceError:
    return SourceError("connection reset by peer")
