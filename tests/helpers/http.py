"""Shared HTTP fakes for client tests.

Provides httpx.MockTransport-based fakes whose response streams count how
many are open, so tests can assert that every code path releases the
connection.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator, Callable, Iterable
from typing import Any

import httpx


class HandleTracker:
    """Counts response streams that have been opened but not closed."""

    def __init__(self) -> None:
        self.open = 0
        self.opened = 0
        self.closed = 0


class TrackedStream(httpx.AsyncByteStream):
    """Response body that yields fixed chunks and records open/close.

    Args:
        chunks: Byte chunks yielded in order.
        tracker: Handle counter shared with the test.
        fail_after: Raise httpx.ReadError after this many chunks.
    """

    def __init__(
        self,
        chunks: Iterable[bytes],
        tracker: HandleTracker,
        *,
        fail_after: int | None = None,
    ) -> None:
        self._chunks = list(chunks)
        self._tracker = tracker
        self._fail_after = fail_after
        self._closed = False
        tracker.open += 1
        tracker.opened += 1

    async def __aiter__(self) -> AsyncIterator[bytes]:
        for index, chunk in enumerate(self._chunks):
            if self._fail_after is not None and index >= self._fail_after:
                raise httpx.ReadError("connection reset by peer")
            yield chunk
        if self._fail_after is not None and self._fail_after >= len(self._chunks):
            raise httpx.ReadError("connection reset by peer")

    async def aclose(self) -> None:
        if not self._closed:
            self._closed = True
            self._tracker.open -= 1
            self._tracker.closed += 1


class GatedStream(httpx.AsyncByteStream):
    """Response body that sends ``head`` and then waits on ``gate``.

    Stands in for a slow provider: the rest of the body (``tail``) only
    arrives once the test sets the gate.
    """

    def __init__(self, head: bytes, tail: bytes, gate: asyncio.Event, tracker: HandleTracker) -> None:
        self._head = head
        self._tail = tail
        self._gate = gate
        self._tracker = tracker
        self._closed = False
        tracker.open += 1
        tracker.opened += 1

    async def __aiter__(self) -> AsyncIterator[bytes]:
        yield self._head
        await self._gate.wait()
        yield self._tail

    async def aclose(self) -> None:
        if not self._closed:
            self._closed = True
            self._tracker.open -= 1
            self._tracker.closed += 1


def sse_body(*payloads: str | dict[str, Any], done: bool = True) -> bytes:
    """Build a stream body of ``data:`` lines (dicts are JSON-encoded)."""
    lines = []
    for payload in payloads:
        text = payload if isinstance(payload, str) else json.dumps(payload, ensure_ascii=False)
        lines.append(f"data: {text}\n")
    if done:
        lines.append("data: [DONE]\n")
    return "".join(lines).encode("utf-8")


def delta(content: str) -> dict[str, Any]:
    """A chunk record carrying ``content`` as its delta."""
    return {"choices": [{"index": 0, "delta": {"content": content}}]}


def streaming_client(
    chunks: Iterable[bytes],
    tracker: HandleTracker | None = None,
    *,
    status_code: int = 200,
    fail_after: int | None = None,
    requests: list[httpx.Request] | None = None,
) -> httpx.AsyncClient:
    """AsyncClient whose every response streams ``chunks``."""
    tracker = tracker or HandleTracker()
    chunk_list = list(chunks)

    def handler(request: httpx.Request) -> httpx.Response:
        if requests is not None:
            requests.append(request)
        return httpx.Response(
            status_code,
            headers={"content-type": "text/event-stream"},
            stream=TrackedStream(chunk_list, tracker, fail_after=fail_after),
        )

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def gated_client(
    head: bytes,
    gate: asyncio.Event,
    tracker: HandleTracker,
    *,
    tail: bytes = b"data: [DONE]\n",
) -> httpx.AsyncClient:
    """AsyncClient whose responses stall after ``head`` until ``gate`` is set."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, stream=GatedStream(head, tail, gate, tracker))

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def json_client(
    handler: Callable[[httpx.Request], httpx.Response],
) -> httpx.AsyncClient:
    """AsyncClient routing every request through ``handler``."""
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def envelope(data: dict[str, Any] | None, *, success: bool = True, error: str | None = None) -> dict[str, Any]:
    """Wrap ``data`` the way the trading API does."""
    return {
        "success": success,
        "data": data,
        "error": error,
        "timestamp": "2026-10-19T12:00:00Z",
        "request_id": None,
    }
