"""
Frame decoder - turns arbitrarily split byte chunks into complete lines.

A chunk boundary may fall anywhere: inside a line, inside a "data:" prefix,
or inside a multi-byte UTF-8 sequence. The decoder carries the unterminated
tail across calls and only ever returns newline-terminated lines.
"""
from __future__ import annotations

import codecs
import logging
from typing import List

logger = logging.getLogger(__name__)


class FrameDecoder:
    """
    Incremental line framer.

    Usage:
        decoder = FrameDecoder()
        for chunk in chunks:
            for line in decoder.feed(chunk):
                handle(line)
        decoder.finish()  # drops an unterminated tail
    """

    def __init__(self, encoding: str = "utf-8"):
        self.encoding = encoding
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._carry = ""

    @property
    def pending(self) -> str:
        """Text received but not yet resolved into a complete line."""
        return self._carry

    def feed(self, chunk: bytes) -> List[str]:
        """Append a chunk and return every line it completes."""
        if not chunk:
            return []

        self._carry += self._decoder.decode(chunk)
        if "\n" not in self._carry:
            return []

        *lines, self._carry = self._carry.split("\n")
        return [line[:-1] if line.endswith("\r") else line for line in lines]

    def finish(self) -> List[str]:
        """Signal end of stream.

        An unterminated tail has no reliable framing, so it is dropped
        rather than emitted.
        """
        tail = self._carry + self._decoder.decode(b"", final=True)
        if tail:
            logger.debug(f"Dropping unterminated tail at end of stream ({len(tail)} chars)")
        self.reset()
        return []

    def reset(self) -> None:
        """Discard the carry buffer and any partial multi-byte sequence."""
        self._carry = ""
        self._decoder.reset()
