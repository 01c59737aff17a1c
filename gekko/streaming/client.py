"""Chat stream client: one streamed completion request per ChatStream.

POSTs an OpenAI-compatible ``stream: true`` request, feeds the response
body through a FrameDecoder and yields the text of each content delta.

Usage::

    client = ChatStreamClient()
    async with client.open("some/model", [{"role": "user", "content": "status?"}]) as stream:
        async for text in stream:
            print(text, end="")
    print(stream.outcome)

A client serves one stream at a time. With the ``reject`` policy, opening a
second stream while one is active raises StreamBusyError; with ``queue``
the second stream waits until the first one terminates.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import AsyncGenerator, Iterable, Mapping
from typing import Any, Literal

import httpx
from pydantic import BaseModel, Field

from gekko.exceptions import GekkoError, StreamBusyError, TransportError, ValidationError
from gekko.session.models import ChatMessage
from gekko.settings import get_settings
from gekko.streaming.deltas import extract_delta
from gekko.streaming.frames import FrameDecoder
from gekko.streaming.outcome import OutcomeKind, StreamOutcome
from gekko.transport import build_http_client, classify_http_error, normalize_base_url, status_error

logger = logging.getLogger(__name__)

ConcurrencyPolicy = Literal["reject", "queue"]


class ChatStreamConfig(BaseModel):
    """Configuration for the chat stream client."""

    base_url: str = Field(..., description="Base URL of the OpenAI-compatible API")
    api_key: str = Field(default="", description="Bearer token (empty = no auth header)")
    timeout: float = Field(default=300.0, gt=0, description="Read timeout between chunks")
    connect_timeout: float = Field(default=10.0, gt=0)
    concurrency: ConcurrencyPolicy = "reject"

    @classmethod
    def from_settings(cls) -> ChatStreamConfig:
        settings = get_settings()
        return cls(
            base_url=settings.llm_base_url,
            api_key=settings.llm_api_key.get_secret_value(),
            timeout=settings.stream_timeout_seconds,
            connect_timeout=settings.stream_connect_timeout_seconds,
            concurrency=settings.stream_concurrency,
        )


class _StreamSlots:
    """FIFO of streams claiming the client's single stream slot."""

    def __init__(self, policy: ConcurrencyPolicy) -> None:
        self.policy = policy
        self._turns: deque[asyncio.Event] = deque()

    @property
    def busy(self) -> bool:
        return bool(self._turns)

    def __len__(self) -> int:
        return len(self._turns)

    def claim(self) -> asyncio.Event:
        if self._turns and self.policy == "reject":
            raise StreamBusyError("A chat stream is already active on this client")
        turn = asyncio.Event()
        if not self._turns:
            turn.set()
        self._turns.append(turn)
        return turn

    def release(self, turn: asyncio.Event) -> None:
        if turn not in self._turns:
            return
        was_head = self._turns[0] is turn
        self._turns.remove(turn)
        if was_head and self._turns:
            self._turns[0].set()


def coerce_messages(messages: Iterable[ChatMessage | Mapping[str, Any]]) -> list[dict[str, str]]:
    """Convert chat messages into the ``[{role, content}]`` wire form.

    Raises:
        ValidationError: If a message lacks role/content or none are given.
    """
    normalized: list[dict[str, str]] = []
    for message in messages:
        if isinstance(message, ChatMessage):
            normalized.append({"role": message.role, "content": message.content})
            continue
        if not isinstance(message, Mapping):
            raise ValidationError(f"Messages must be ChatMessage or mapping, got {type(message).__name__}")
        role = message.get("role")
        content = message.get("content")
        if not isinstance(role, str) or not isinstance(content, str):
            raise ValidationError("Each message needs string 'role' and 'content' fields")
        normalized.append({"role": role, "content": content})
    if not normalized:
        raise ValidationError("At least one message is required to start a chat stream")
    return normalized


class ChatStream:
    """A single-use lazy sequence of content deltas.

    Iterating yields ``str`` fragments. When the stream ends, ``outcome``
    holds exactly one terminal StreamOutcome. Failures are raised from the
    iterator as TransportError, DecodeError or ProtocolViolation after the
    outcome is recorded.

    Closing the stream early (``aclose()``, or leaving an ``async with``
    block) releases the HTTP response and records ``CANCELLED``. ``aclose()``
    may be called from another task while a consumer is waiting for the
    next delta; that consumer's loop then ends without an error.

    A bare ``break`` out of ``async for`` without ``async with`` or
    ``aclose()`` leaves the response open and the client's stream slot
    taken until the ChatStream is garbage-collected. Under the ``reject``
    policy the next ``open()`` raises StreamBusyError until then.
    """

    def __init__(
        self,
        client: ChatStreamClient,
        payload: dict[str, Any],
        turn: asyncio.Event,
    ) -> None:
        self._client = client
        self._payload = payload
        self._turn = turn
        self._outcome: StreamOutcome | None = None
        self._deltas = 0
        self._gen: AsyncGenerator[str, None] | None = None
        self._step: asyncio.Future[str] | None = None
        self._closing = False

    @property
    def model(self) -> str:
        return self._payload["model"]

    @property
    def outcome(self) -> StreamOutcome | None:
        """Terminal outcome, or None while the stream is still open."""
        return self._outcome

    @property
    def closed(self) -> bool:
        return self._outcome is not None

    def __aiter__(self) -> ChatStream:
        return self

    async def __anext__(self) -> str:
        if self._closing:
            raise StopAsyncIteration
        if self._gen is None:
            if self._outcome is not None:
                raise StopAsyncIteration
            self._gen = self._run()
        # Each step runs as its own task so aclose() can cancel it from elsewhere
        step = asyncio.ensure_future(self._gen.__anext__())
        self._step = step
        try:
            return await step
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if self._closing and (current is None or not current.cancelling()):
                raise StopAsyncIteration from None
            raise
        finally:
            self._step = None

    async def __aenter__(self) -> ChatStream:
        return self

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Stop consuming the stream and release the connection."""
        self._closing = True
        step = self._step
        if step is not None and not step.done():
            step.cancel()
            await asyncio.wait([step])
        if self._gen is not None:
            await self._gen.aclose()
        if self._outcome is None:
            self._terminate(StreamOutcome(OutcomeKind.CANCELLED, deltas=self._deltas))
        self._client._slots.release(self._turn)

    def _terminate(self, outcome: StreamOutcome) -> None:
        # First terminal outcome wins
        if self._outcome is None:
            self._outcome = outcome
            logger.debug("Chat stream ended: %s after %d delta(s)", outcome.kind, outcome.deltas)

    async def _run(self) -> AsyncGenerator[str, None]:
        try:
            await self._turn.wait()
            decoder = FrameDecoder()
            try:
                async with self._client._http_stream(self._payload) as response:
                    if not response.is_success:
                        body = await response.aread()
                        raise status_error(
                            "Chat completion",
                            response,
                            body.decode("utf-8", errors="replace"),
                        )
                    async for chunk in response.aiter_bytes():
                        for frame in decoder.feed(chunk):
                            if frame.is_sentinel:
                                self._terminate(
                                    StreamOutcome(OutcomeKind.DONE, saw_sentinel=True, deltas=self._deltas)
                                )
                                return
                            text = extract_delta(frame.payload)
                            if text:
                                self._deltas += 1
                                yield text
                    decoder.flush()
            except GekkoError:
                raise
            except httpx.HTTPError as e:
                raise classify_http_error("Chat completion stream", e) from e
            except Exception as e:
                raise TransportError(f"Unexpected streaming error: {e}") from e
            self._terminate(StreamOutcome(OutcomeKind.DONE, deltas=self._deltas))
        except GekkoError as e:
            self._terminate(StreamOutcome.from_error(e, deltas=self._deltas))
            logger.warning("Chat stream for %s failed: %s", self.model, e)
            raise
        finally:
            if self._outcome is None:
                self._terminate(StreamOutcome(OutcomeKind.CANCELLED, deltas=self._deltas))
            self._client._slots.release(self._turn)


class ChatStreamClient:
    """Client for streamed chat completions.

    Holds one pooled httpx.AsyncClient; each ``open()`` call gets its own
    FrameDecoder so decode state is never shared between streams.
    """

    def __init__(
        self,
        config: ChatStreamConfig | None = None,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        if config is None:
            config = ChatStreamConfig.from_settings()
        self.config = config
        self.base_url = normalize_base_url(config.base_url)
        self._slots = _StreamSlots(config.concurrency)
        self._owns_http = http_client is None
        self._http = http_client or build_http_client(
            timeout=config.timeout,
            connect_timeout=config.connect_timeout,
        )

    @property
    def is_busy(self) -> bool:
        """Whether a stream is currently active (or waiting) on this client."""
        return self._slots.busy

    @property
    def pending_streams(self) -> int:
        return len(self._slots)

    def open(self, model: str, messages: Iterable[ChatMessage | Mapping[str, Any]]) -> ChatStream:
        """Open a streamed completion.

        Args:
            model: Model identifier sent to the provider.
            messages: Conversation context, oldest first.

        Returns:
            A ChatStream; no request is sent until it is iterated.

        Raises:
            ValidationError: Empty model or malformed/empty messages.
            StreamBusyError: Another stream is active and the policy is ``reject``.
        """
        if not model or not model.strip():
            raise ValidationError("A model is required to open a chat stream")
        payload = {
            "model": model,
            "messages": coerce_messages(messages),
            "stream": True,
        }
        turn = self._slots.claim()
        logger.debug(
            "Opening chat stream via %s with %d message(s)",
            model,
            len(payload["messages"]),
        )
        return ChatStream(self, payload, turn)

    def _http_stream(self, payload: dict[str, Any]) -> Any:
        headers = {"Accept": "text/event-stream"}
        if self.config.api_key:
            headers["Authorization"] = f"Bearer {self.config.api_key}"
        return self._http.stream(
            "POST",
            f"{self.base_url}/chat/completions",
            json=payload,
            headers=headers,
        )

    async def aclose(self) -> None:
        """Close the owned HTTP client and release connections."""
        if self._owns_http:
            await self._http.aclose()


__all__ = ["ChatStream", "ChatStreamClient", "ChatStreamConfig", "coerce_messages"]
