"""
Error taxonomy for the Miow client.

Per-event errors (FramingError) are isolated and logged by the stream core;
stream-level errors (SourceError) end the session and are surfaced once.
"""
from __future__ import annotations

from typing import Optional


class MiowError(Exception):
    """Base class for all Miow client errors."""


class FramingError(MiowError):
    """A single data frame could not be decoded into an agent event.

    Recovered: the frame is dropped and the session continues.
    """

    def __init__(self, message: str, payload: str = ""):
        super().__init__(message)
        self.payload = payload


class SourceError(MiowError):
    """The underlying stream failed to open or broke while reading."""


class StateError(MiowError):
    """A control operation was invoked from a state that does not allow it."""

    def __init__(self, operation: str, state: object):
        super().__init__(f"Cannot {operation} while {state}")
        self.operation = operation
        self.state = state


class MiowAPIError(MiowError):
    """Backend answered with a non-success HTTP status."""

    def __init__(self, status_code: int, detail: str = ""):
        message = f"Request failed: {status_code}"
        if detail:
            message += f" - {detail}"
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail


class MiowConnectionError(MiowError):
    """Backend could not be reached."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause
