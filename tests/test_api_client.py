"""Tests for the backend client, served by an in-memory httpx transport."""
from __future__ import annotations

import json

import httpx
import pytest

from miow.client import MiowAPIClient
from miow.errors import MiowAPIError, MiowConnectionError, SourceError
from miow.stream import EventKind, SessionState, StepEvent, TerminalResult

from conftest import DONE, STEP, THOUGHT, sse_frame


class Backend:
    """Routes requests by path and remembers what was sent."""

    def __init__(self, routes):
        self.routes = routes
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self.routes.get(request.url.path)
        if handler is None:
            return httpx.Response(404, json={"error": "not found"})
        return handler(request)

    def body(self, index: int = -1):
        content = self.requests[index].content
        return json.loads(content) if content else None


def make_client(routes, **kwargs) -> tuple:
    backend = Backend(routes)
    client = MiowAPIClient("http://miow.test/", transport=httpx.MockTransport(backend), **kwargs)
    return client, backend


def event_stream(*frames: bytes):
    def handler(request):
        return httpx.Response(200, content=b"".join(frames), headers={"content-type": "text/event-stream"})
    return handler


@pytest.mark.asyncio
async def test_health():
    client, backend = make_client({
        "/api/health": lambda r: httpx.Response(200, json={
            "status": "healthy",
            "version": "0.3.0",
            "qdrant_connected": True,
            "gemini_configured": False,
        }),
    })

    health = await client.health()

    assert health.status == "healthy"
    assert health.qdrant_connected
    assert not health.ready_for_generation
    assert backend.requests[0].method == "POST"
    assert str(backend.requests[0].url) == "http://miow.test/api/health"


@pytest.mark.asyncio
async def test_signature_and_context():
    client, backend = make_client({
        "/api/debug/signature": lambda r: httpx.Response(200, json={
            "success": True,
            "signature": {"language": "TypeScript", "framework": "Next.js", "ui_library": "shadcn"},
        }),
        "/api/debug/context": lambda r: httpx.Response(200, json={
            "success": True,
            "context": {"total_symbols": 1200, "total_files": 87, "collection_name": "proj"},
        }),
    })

    signature = await client.signature("/work/app")
    context = await client.context("/work/app")

    assert signature.signature.framework == "Next.js"
    assert signature.signature.package_manager == ""
    assert context.context.total_files == 87
    assert backend.body(0) == {"codebase_path": "/work/app"}


@pytest.mark.asyncio
async def test_relevant_files_and_search():
    client, backend = make_client({
        "/api/files": lambda r: httpx.Response(200, json={
            "success": True,
            "files": [{
                "file_path": "src/auth.ts",
                "symbol_name": "login",
                "symbol_kind": "function",
                "relevance_score": 0.92,
                "preview": "export function login()",
            }],
        }),
        "/api/search-files": lambda r: httpx.Response(200, json={
            "success": True,
            "files": ["src/auth.ts", "src/auth.test.ts"],
        }),
    })

    files = await client.relevant_files("/work/app", "add logout")
    found = await client.search_files("/work/app", "auth")

    assert files.files[0].symbol_name == "login"
    assert files.files[0].relevance_score == pytest.approx(0.92)
    assert backend.body(0) == {"codebase_path": "/work/app", "user_prompt": "add logout"}
    assert found.files == ["src/auth.ts", "src/auth.test.ts"]
    assert backend.body(1) == {"codebase_path": "/work/app", "query": "auth"}


@pytest.mark.asyncio
async def test_generate_with_selected_files_uses_dedicated_endpoint():
    reply = lambda r: httpx.Response(200, json={"success": True, "result": "artifact"})
    client, backend = make_client({"/api/generate": reply, "/api/generate-with-files": reply})

    plain = await client.generate("/work/app", "add logout")
    pinned = await client.generate("/work/app", "add logout", ["src/auth.ts"])

    assert plain.result == pinned.result == "artifact"
    assert backend.requests[0].url.path == "/api/generate"
    assert "selected_files" not in backend.body(0)
    assert backend.requests[1].url.path == "/api/generate-with-files"
    assert backend.body(1)["selected_files"] == ["src/auth.ts"]


@pytest.mark.asyncio
async def test_error_status_raises_api_error():
    client, _ = make_client({
        "/api/files": lambda r: httpx.Response(500, json={"error": "index unavailable"}),
    })

    with pytest.raises(MiowAPIError) as exc_info:
        await client.relevant_files("/work/app", "x")

    assert exc_info.value.status_code == 500
    assert exc_info.value.detail == "index unavailable"


@pytest.mark.asyncio
async def test_unexpected_body_raises_api_error():
    client, _ = make_client({"/api/health": lambda r: httpx.Response(200, text="<html>")})

    with pytest.raises(MiowAPIError, match="Unexpected response body"):
        await client.health()


@pytest.mark.asyncio
async def test_unreachable_backend_raises_connection_error():
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = MiowAPIClient("http://miow.test", transport=httpx.MockTransport(refuse))

    with pytest.raises(MiowConnectionError, match="Cannot reach Miow backend"):
        await client.health()


@pytest.mark.asyncio
async def test_generation_stream_end_to_end():
    client, backend = make_client({
        "/api/generate-stream": event_stream(
            sse_frame("data: Starting autonomous agent...", event="status"),
            sse_frame(STEP),
            sse_frame(THOUGHT),
            sse_frame(DONE),
            sse_frame("data: final artifact text", event="result"),
        ),
    })
    session = client.create_session("/work/app", "add logout")

    records = [record async for record in session.records()]

    assert backend.requests[0].headers["accept"] == "text/event-stream"
    assert backend.body(0) == {"codebase_path": "/work/app", "user_prompt": "add logout"}
    assert isinstance(records[1], StepEvent)
    assert records[-1] == TerminalResult(text="final artifact text", seq=5, event="result")
    assert session.state is SessionState.COMPLETED
    assert session.status == "Complete!"


@pytest.mark.asyncio
async def test_generation_stream_error_status_fails_session():
    client, _ = make_client({
        "/api/generate-stream": lambda r: httpx.Response(503, text="backend busy"),
    })
    session = client.create_session("/work/app", "add logout")

    with pytest.raises(SourceError, match="HTTP error! status: 503 backend busy"):
        await session.start()
    assert session.state is SessionState.FAILED


@pytest.mark.asyncio
async def test_event_filter_is_sticky_across_sessions():
    client, _ = make_client({
        "/api/generate-stream": event_stream(sse_frame(STEP), sse_frame(THOUGHT), sse_frame("data: ok")),
    })
    client.event_filter.disable(EventKind.THOUGHT)

    first = client.create_session("/work/app", "one")
    await first.run()
    second = client.create_session("/work/app", "two")
    await second.run()

    assert second.event_filter is first.event_filter is client.event_filter
    assert [e.kind for e in first.history] == [EventKind.STEP]
    assert [e.kind for e in second.history] == [EventKind.STEP]


@pytest.mark.asyncio
@pytest.mark.parametrize("error_type", [httpx.ReadError, httpx.RemoteProtocolError])
async def test_transport_errors_raise_connection_error(error_type):
    def broken(request):
        raise error_type("peer closed connection", request=request)

    client = MiowAPIClient("http://miow.test", transport=httpx.MockTransport(broken))

    with pytest.raises(MiowConnectionError, match="Request to /api/files failed"):
        await client.relevant_files("/work/app", "x")
