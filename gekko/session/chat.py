"""Chat session: send a prompt, stream the reply and commit it to the store.

The user message is appended immediately. The assistant reply is streamed
and handed to ``on_delta`` fragment by fragment; because messages are
immutable, the assistant message is appended once, when the stream
terminates, with whatever text arrived. A failed stream therefore still
commits its partial text, followed by a system message naming the error.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

from gekko.exceptions import GekkoError, ValidationError
from gekko.session.models import ChatMessage
from gekko.session.store import SessionStore
from gekko.streaming.client import ChatStreamClient
from gekko.streaming.outcome import OutcomeKind, StreamOutcome

logger = logging.getLogger(__name__)

DEFAULT_CONTEXT_WINDOW = 10


@dataclass(frozen=True)
class ChatTurn:
    """Result of one prompt/reply exchange.

    Attributes:
        prompt: The user message appended for this turn.
        reply: The assistant message committed (possibly partial or empty).
        outcome: How the stream ended.
        error: System message appended when the stream failed.
    """

    prompt: ChatMessage
    reply: ChatMessage
    outcome: StreamOutcome
    error: ChatMessage | None = None

    @property
    def ok(self) -> bool:
        return not self.outcome.is_error


class ChatSession:
    """Binds a ChatStreamClient to a SessionStore."""

    def __init__(
        self,
        store: SessionStore,
        stream_client: ChatStreamClient,
        *,
        context_window: int = DEFAULT_CONTEXT_WINDOW,
    ) -> None:
        self.store = store
        self.stream_client = stream_client
        self.context_window = context_window

    async def send(
        self,
        prompt: str,
        *,
        on_delta: Callable[[str], None] | None = None,
        model: str | None = None,
    ) -> ChatTurn:
        """Send ``prompt`` and stream the reply into the store.

        Args:
            prompt: User text; must not be blank.
            on_delta: Called with each text fragment as it arrives.
            model: Override the store's selected model for this turn.

        Returns:
            The committed ChatTurn. Stream failures are not raised; they are
            reported in ``outcome`` and ``error``.
            If the calling task is cancelled, the partial reply is committed
            before the cancellation propagates.

        Raises:
            ValidationError: Blank prompt or no model selected.
            StreamBusyError: The stream client is busy (``reject`` policy).
        """
        if not prompt or not prompt.strip():
            raise ValidationError("Cannot send an empty prompt")
        model = model or self.store.selected_model
        if not model:
            raise ValidationError("No model selected")

        user_message = ChatMessage(role="user", content=prompt)
        context = [*self.store.recent_messages(self.context_window - 1), user_message]
        stream = self.stream_client.open(model, context)
        self.store.append_message(user_message)

        parts: list[str] = []
        failure: GekkoError | None = None
        try:
            async with stream:
                try:
                    async for text in stream:
                        parts.append(text)
                        if on_delta is not None:
                            on_delta(text)
                except GekkoError as e:
                    failure = e
        finally:
            # Commit whatever arrived, also when the calling task is cancelled
            reply = ChatMessage(role="assistant", content="".join(parts))
            self.store.append_message(reply)

        outcome = stream.outcome or StreamOutcome(OutcomeKind.CANCELLED, deltas=len(parts))

        error_message: ChatMessage | None = None
        if failure is not None:
            logger.warning("Chat reply ended with %s after %d fragment(s)", outcome.kind, len(parts))
            error_message = ChatMessage(role="system", content=f"Error: {failure}")
            self.store.append_message(error_message)
            self.store.record_diagnostic(
                f"chat.{outcome.kind}",
                str(failure),
                "warning" if outcome.retryable else "critical",
            )

        return ChatTurn(prompt=user_message, reply=reply, outcome=outcome, error=error_message)


__all__ = ["ChatSession", "ChatTurn", "DEFAULT_CONTEXT_WINDOW"]
