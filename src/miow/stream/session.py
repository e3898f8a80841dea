"""
Stream session - lifecycle and control plane for one generation request.

    Idle -> Connecting -> Streaming <-> Paused -> Completed | Stopped | Failed

The read loop holds at most one read in flight. Each wait races that read
against a control signal (asyncio.Event), so pause and stop take effect
without polling:

- pause keeps the source, the carry buffer and any in-flight read; the
  bytes of that read are consumed after resume
- stop cancels the in-flight read, discards the carry buffer and releases
  the source exactly once

Usage:
    session = StreamSession(opener, event_filter)
    await session.start()
    async for record in session.records():
        render(record, session.status)
"""
from __future__ import annotations

import asyncio
import concurrent.futures
import inspect
import logging
from enum import Enum
from typing import AsyncIterator, Awaitable, Callable, Iterable, Optional

import httpx

from miow.errors import SourceError, StateError
from miow.stream.classifier import LineClassifier
from miow.stream.decoder import FrameDecoder
from miow.stream.events import DoneEvent, StreamRecord, TerminalResult
from miow.stream.history import EventFilter, EventHistory
from miow.stream.source import ByteSource
from miow.stream.status import CONNECTING_TEXT, STOPPED_TEXT, StatusProjector

logger = logging.getLogger(__name__)

SourceOpener = Callable[[], Awaitable[ByteSource]]
RecordCallback = Callable[[StreamRecord], Optional[Awaitable[None]]]


class SessionState(str, Enum):
    """Lifecycle states of a stream session."""
    IDLE = "idle"
    CONNECTING = "connecting"
    STREAMING = "streaming"
    PAUSED = "paused"
    COMPLETED = "completed"
    STOPPED = "stopped"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionState.COMPLETED, SessionState.STOPPED, SessionState.FAILED)

    @property
    def is_active(self) -> bool:
        return self in (SessionState.CONNECTING, SessionState.STREAMING, SessionState.PAUSED)


class StreamSession:
    """
    One streaming generation session.

    The session exclusively owns its byte source. History starts empty and
    only grows; the event filter is supplied by the caller so it can stay
    sticky across sessions.
    """

    def __init__(self, opener: SourceOpener, event_filter: Optional[EventFilter] = None):
        self._opener = opener
        self.event_filter = event_filter if event_filter is not None else EventFilter()
        self.history = EventHistory()
        self.decoder = FrameDecoder()
        self.classifier = LineClassifier()
        self.projector = StatusProjector(CONNECTING_TEXT)

        self.state = SessionState.IDLE
        self.result: Optional[TerminalResult] = None
        self.error: Optional[SourceError] = None
        self.agent_done = False

        self._source: Optional[ByteSource] = None
        self._pending_read: Optional[asyncio.Future] = None
        # Set by every control operation; the read loop waits on it
        self._wake = asyncio.Event()
        self._consuming = False

    @property
    def status(self) -> str:
        return self.projector.current

    # =========================================================================
    # Control operations
    # =========================================================================

    def _require(self, operation: str, *allowed: SessionState) -> None:
        if self.state not in allowed:
            raise StateError(operation, self.state.value)

    async def start(self) -> bool:
        """Open the source. Valid only from Idle.

        Raises:
            SourceError: the source could not be opened (session is Failed)
        """
        try:
            self._require("start", SessionState.IDLE)
        except StateError as e:
            logger.debug(f"Ignoring control request: {e}")
            return False

        self.state = SessionState.CONNECTING
        try:
            source = await self._opener()
        except SourceError as e:
            await self._fail(e)
            raise
        except (httpx.HTTPError, OSError) as e:
            error = SourceError(f"Connection failed: {e}")
            await self._fail(error)
            raise error from e

        self._source = source
        if self.state is not SessionState.CONNECTING:
            # Stopped while the connection was being opened
            await self._release()
            return False
        logger.debug("Stream source opened")
        return True

    def pause(self) -> bool:
        """Stop requesting chunks. Valid only while Streaming."""
        try:
            self._require("pause", SessionState.STREAMING)
        except StateError as e:
            logger.debug(f"Ignoring control request: {e}")
            return False
        self.state = SessionState.PAUSED
        self._wake.set()
        logger.debug("Stream paused")
        return True

    def resume(self) -> bool:
        """Continue reading where decoding left off. Valid only while Paused."""
        try:
            self._require("resume", SessionState.PAUSED)
        except StateError as e:
            logger.debug(f"Ignoring control request: {e}")
            return False
        self.state = SessionState.STREAMING
        self._wake.set()
        logger.debug("Stream resumed")
        return True

    def toggle_pause(self) -> bool:
        """Pause if streaming, resume if paused."""
        if self.state is SessionState.PAUSED:
            return self.resume()
        return self.pause()

    async def stop(self) -> bool:
        """Cancel the read and release the source. Idempotent."""
        if self.state.is_terminal:
            return False
        try:
            self._require("stop", SessionState.CONNECTING, SessionState.STREAMING, SessionState.PAUSED)
        except StateError as e:
            logger.debug(f"Ignoring control request: {e}")
            return False

        self.state = SessionState.STOPPED
        self.projector.set(STOPPED_TEXT)
        self.decoder.reset()
        self._wake.set()
        await self._cancel_pending_read()
        await self._release()
        logger.info("Stream stopped by user")
        return True

    # =========================================================================
    # Read loop
    # =========================================================================

    async def records(self) -> AsyncIterator[StreamRecord]:
        """Yield every classified record, filtered or not, in arrival order.

        Starts the session if it is still Idle. Raises SourceError once if
        the stream breaks; history recorded so far is kept.
        """
        if self.state is SessionState.IDLE:
            await self.start()
        if self._consuming:
            raise RuntimeError("Session records are already being consumed")

        self._consuming = True
        try:
            while self.state.is_active:
                chunk = await self._next_chunk()
                if chunk is None:
                    return
                if not chunk:
                    self.decoder.finish()
                    await self._complete()
                    return

                if self.state is SessionState.CONNECTING:
                    self.state = SessionState.STREAMING

                for record in self._classify(self.decoder.feed(chunk)):
                    if not await self._wait_while_paused():
                        return
                    self._accept(record)
                    yield record
                    if isinstance(record, TerminalResult):
                        await self._complete()
                        return
                    if self.state.is_terminal:
                        return
        finally:
            self._consuming = False
            if self.state.is_active:
                # Consumer abandoned the iterator
                await self.stop()
            else:
                await self._release()

    async def run(self, on_record: Optional[RecordCallback] = None) -> SessionState:
        """Drain the session, calling ``on_record`` per record. Returns the final state."""
        async for record in self.records():
            if on_record is not None:
                outcome = on_record(record)
                if inspect.isawaitable(outcome):
                    await outcome
        return self.state

    def _classify(self, lines: Iterable[str]) -> Iterable[StreamRecord]:
        for line in lines:
            record = self.classifier.classify(line)
            if record is not None:
                yield record

    def _accept(self, record: StreamRecord) -> None:
        self.history.record(record, self.event_filter)
        self.projector.project(record)
        if isinstance(record, DoneEvent):
            self.agent_done = True
        elif isinstance(record, TerminalResult):
            self.result = record

    async def _wait_while_paused(self) -> bool:
        """Block while Paused. Returns False once the session is terminal."""
        while self.state is SessionState.PAUSED:
            self._wake.clear()
            await self._wake.wait()
        return not self.state.is_terminal

    async def _next_chunk(self) -> Optional[bytes]:
        """Next chunk from the source, b"" at end of stream, None if stopped."""
        while True:
            if not await self._wait_while_paused():
                return None

            if self._pending_read is None:
                self._pending_read = asyncio.ensure_future(self._source.read())
            read = self._pending_read

            self._wake.clear()
            wake = asyncio.ensure_future(self._wake.wait())
            try:
                done, _ = await asyncio.wait({read, wake}, return_when=asyncio.FIRST_COMPLETED)
            finally:
                wake.cancel()

            if read not in done:
                # Control signal: re-check state, keep the read in flight
                continue

            if self._pending_read is read:
                self._pending_read = None
            if read.cancelled():
                return None

            error = read.exception()
            if error is None:
                return read.result()
            if not isinstance(error, SourceError):
                error = SourceError(f"Stream error: {error}")
            await self._fail(error)
            raise error

    # =========================================================================
    # Terminal transitions
    # =========================================================================

    async def _complete(self) -> None:
        if self.state.is_terminal:
            return
        self.state = SessionState.COMPLETED
        self.decoder.reset()
        await self._cancel_pending_read()
        await self._release()
        logger.debug(f"Stream completed after {self.classifier.last_seq} record(s)")

    async def _fail(self, error: SourceError) -> None:
        self.state = SessionState.FAILED
        self.error = error
        self.projector.set(f"Failed: {error}")
        self.decoder.reset()
        await self._cancel_pending_read()
        await self._release()
        logger.error(f"Stream failed: {error}")

    async def _cancel_pending_read(self) -> None:
        read, self._pending_read = self._pending_read, None
        if read is not None and not read.done():
            read.cancel()
            await asyncio.wait({read})

    async def _release(self) -> None:
        source, self._source = self._source, None
        if source is None:
            return
        try:
            await source.aclose()
        except (httpx.HTTPError, OSError) as e:
            logger.warning(f"Error while releasing stream source: {e}")

    # =========================================================================
    # Context manager
    # =========================================================================

    async def __aenter__(self) -> "StreamSession":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self.state.is_active:
            await self.stop()
        else:
            await self._release()


class SessionControls:
    """
    Thread-safe handle on a session's control operations.

    The keyboard monitor runs on its own thread; these calls marshal the
    request onto the event loop that runs the session.
    """

    def __init__(self, session: StreamSession, loop: asyncio.AbstractEventLoop):
        self.session = session
        self._loop = loop

    def pause(self) -> None:
        self._loop.call_soon_threadsafe(self.session.pause)

    def resume(self) -> None:
        self._loop.call_soon_threadsafe(self.session.resume)

    def toggle_pause(self) -> None:
        self._loop.call_soon_threadsafe(self.session.toggle_pause)

    def stop(self) -> concurrent.futures.Future:
        return asyncio.run_coroutine_threadsafe(self.session.stop(), self._loop)
