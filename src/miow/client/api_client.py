"""
Miow API Client - HTTP client for the Miow backend.

Request/response calls (health, files, signature, context, search) are one
POST and one JSON body each. The generation stream is opened here and then
handed to a StreamSession, which owns it from that point on.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from miow.errors import MiowAPIError, MiowConnectionError, SourceError
from miow.stream.history import EventFilter
from miow.stream.session import StreamSession
from miow.stream.source import HttpxByteSource

logger = logging.getLogger(__name__)

ResponseT = TypeVar("ResponseT", bound=BaseModel)


class HealthResponse(BaseModel):
    """Backend health and configuration."""
    status: str
    version: str = ""
    qdrant_connected: bool = False
    gemini_configured: bool = False

    @property
    def ready_for_generation(self) -> bool:
        return self.gemini_configured


class ProjectSignature(BaseModel):
    """Detected technology stack of a codebase."""
    language: str = ""
    framework: str = ""
    package_manager: str = ""
    ui_library: str = ""
    validation_library: str = ""
    auth_library: str = ""
    description: str = ""


class DebugContext(BaseModel):
    """Index statistics for a codebase."""
    total_symbols: int = 0
    total_files: int = 0
    db_path: str = ""
    collection_name: str = ""


class FileInfo(BaseModel):
    """A file the backend ranked as relevant to a prompt."""
    file_path: str
    symbol_name: str = ""
    symbol_kind: str = ""
    relevance_score: float = 0.0
    preview: str = ""


class SignatureResponse(BaseModel):
    success: bool
    signature: Optional[ProjectSignature] = None
    error: Optional[str] = None


class ContextResponse(BaseModel):
    success: bool
    context: Optional[DebugContext] = None
    error: Optional[str] = None


class FilesResponse(BaseModel):
    success: bool
    files: List[FileInfo] = []
    error: Optional[str] = None


class SearchFilesResponse(BaseModel):
    success: bool
    files: Optional[List[str]] = None
    error: Optional[str] = None


class GenerateResponse(BaseModel):
    """Result of a non-streaming generation."""
    success: bool
    result: Optional[str] = None
    error: Optional[str] = None


class MiowAPIClient:
    """
    Thin client for the Miow backend.

    The event filter lives on the client so it stays sticky across
    generation sessions.

    Usage:
        client = MiowAPIClient("http://localhost:3000")
        health = await client.health()
        session = client.create_session("/path/to/project", "add a login page")
        async for record in session.records():
            ...
    """

    DEFAULT_BASE_URL = "http://localhost:3000"

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: float = 300.0,
        event_filter: Optional[EventFilter] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or self.DEFAULT_BASE_URL).rstrip("/")
        self.timeout = timeout
        self.event_filter = event_filter if event_filter is not None else EventFilter()
        self._transport = transport

    def _build_headers(self, stream: bool = False) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if stream:
            headers["Accept"] = "text/event-stream"
        return headers

    def _new_client(self, timeout: Optional[float] = None) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout if timeout is None else timeout,
            transport=self._transport,
        )

    async def _post(
        self,
        path: str,
        payload: Optional[Dict[str, Any]],
        model: Type[ResponseT],
        timeout: Optional[float] = None,
    ) -> ResponseT:
        url = f"{self.base_url}{path}"
        async with self._new_client(timeout) as client:
            try:
                response = await client.post(url, json=payload, headers=self._build_headers())
                response.raise_for_status()
            except httpx.ConnectError as e:
                raise MiowConnectionError(
                    "Cannot reach Miow backend. Make sure the server is running.", e
                ) from e
            except httpx.TimeoutException as e:
                raise MiowConnectionError(f"Request to {path} timed out.", e) from e
            except httpx.HTTPStatusError as e:
                raise MiowAPIError(e.response.status_code, _error_detail(e.response)) from e
            except httpx.HTTPError as e:
                raise MiowConnectionError(f"Request to {path} failed: {e}", e) from e

        try:
            return model.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise MiowAPIError(response.status_code, f"Unexpected response body: {e}") from e

    # ==========================================
    # REQUEST / RESPONSE CALLS
    # ==========================================

    async def health(self) -> HealthResponse:
        """Check backend health and configuration."""
        return await self._post("/api/health", None, HealthResponse, timeout=5.0)

    async def signature(self, codebase_path: str) -> SignatureResponse:
        """Detect the project signature (language, framework, libraries)."""
        return await self._post(
            "/api/debug/signature", {"codebase_path": codebase_path}, SignatureResponse
        )

    async def context(self, codebase_path: str) -> ContextResponse:
        """Fetch index statistics for a codebase."""
        return await self._post(
            "/api/debug/context", {"codebase_path": codebase_path}, ContextResponse
        )

    async def relevant_files(self, codebase_path: str, user_prompt: str) -> FilesResponse:
        """Rank the files most relevant to a prompt."""
        return await self._post(
            "/api/files",
            {"codebase_path": codebase_path, "user_prompt": user_prompt},
            FilesResponse,
        )

    async def search_files(self, codebase_path: str, query: str) -> SearchFilesResponse:
        """Search the codebase for file paths matching a query."""
        return await self._post(
            "/api/search-files",
            {"codebase_path": codebase_path, "query": query},
            SearchFilesResponse,
        )

    async def generate(
        self,
        codebase_path: str,
        user_prompt: str,
        selected_files: Optional[List[str]] = None,
    ) -> GenerateResponse:
        """Run the agent without streaming and return its final result."""
        payload: Dict[str, Any] = {"codebase_path": codebase_path, "user_prompt": user_prompt}
        path = "/api/generate"
        if selected_files:
            payload["selected_files"] = selected_files
            path = "/api/generate-with-files"
        return await self._post(path, payload, GenerateResponse)

    # ==========================================
    # STREAMING
    # ==========================================

    async def open_generation_stream(self, codebase_path: str, user_prompt: str) -> HttpxByteSource:
        """
        Open the agent event stream.

        The returned source owns its HTTP client; closing the source closes both.

        Raises:
            SourceError: backend unreachable or answered with an error status
        """
        client = self._new_client()
        request = client.build_request(
            "POST",
            f"{self.base_url}/api/generate-stream",
            json={"codebase_path": codebase_path, "user_prompt": user_prompt},
            headers=self._build_headers(stream=True),
        )

        try:
            response = await client.send(request, stream=True)
        except httpx.ConnectError as e:
            await client.aclose()
            raise SourceError("Failed to connect to backend. Make sure the server is running.") from e
        except httpx.HTTPError as e:
            await client.aclose()
            raise SourceError(f"Connection failed: {e}") from e

        if not response.is_success:
            try:
                body = (await response.aread()).decode("utf-8", errors="replace")
            finally:
                await response.aclose()
                await client.aclose()
            raise SourceError(f"HTTP error! status: {response.status_code} {body[:200]}".rstrip())

        logger.debug(f"Generation stream opened for {codebase_path}")
        return HttpxByteSource(response, client=client)

    def create_session(self, codebase_path: str, user_prompt: str) -> StreamSession:
        """Create an idle session for one generation request."""

        async def opener() -> HttpxByteSource:
            return await self.open_generation_stream(codebase_path, user_prompt)

        return StreamSession(opener, self.event_filter)


def _error_detail(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(data, dict):
        return str(data.get("error") or data.get("detail") or "")
    return ""
