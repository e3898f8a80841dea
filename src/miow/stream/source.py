"""
Byte sources a stream session reads from.

A source is exclusively owned by one session. ``read()`` returns the next
chunk, or ``b""`` at end of stream; ``aclose()`` releases the connection.
"""
from __future__ import annotations

import logging
from typing import AsyncIterator, Optional, Protocol

import httpx

from miow.errors import SourceError

logger = logging.getLogger(__name__)


class ByteSource(Protocol):
    async def read(self) -> bytes:
        ...

    async def aclose(self) -> None:
        ...


class HttpxByteSource:
    """
    Byte source over an open httpx streaming response.

    Usage:
        request = client.build_request("POST", url, json=body)
        response = await client.send(request, stream=True)
        source = HttpxByteSource(response, client=client)
    """

    def __init__(self, response: httpx.Response, client: Optional[httpx.AsyncClient] = None):
        self.response = response
        # Client is closed together with the response when we own it
        self._client = client
        self._iterator: AsyncIterator[bytes] = response.aiter_bytes()
        self._closed = False

    async def read(self) -> bytes:
        if self._closed:
            return b""
        try:
            # Empty chunks would read as end of stream
            chunk = b""
            while not chunk:
                chunk = await self._iterator.__anext__()
            return chunk
        except StopAsyncIteration:
            return b""
        except httpx.TimeoutException as e:
            raise SourceError("Stream timed out waiting for the agent.") from e
        except httpx.HTTPError as e:
            raise SourceError(f"Stream error: {e}") from e

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await self.response.aclose()
        finally:
            if self._client is not None:
                await self._client.aclose()
        logger.debug("Stream source released")
