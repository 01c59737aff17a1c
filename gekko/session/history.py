"""Chat history and model catalogue loader.

Reads the server-side chat history into the session store and lists the
models the trading API offers for chat. Both endpoints return bare JSON
arrays.

Usage::

    loader = ChatHistoryClient(store=get_session_store())
    await loader.load_history()
    models = await loader.list_models()
"""

from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import BaseModel, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from gekko.exceptions import DecodeError, GekkoError
from gekko.session.models import ChatMessage, ModelInfo
from gekko.session.store import SessionStore, get_session_store
from gekko.settings import get_settings
from gekko.transport import (
    build_http_client,
    classify_http_error,
    normalize_base_url,
    read_json,
    truncate_detail,
)

logger = logging.getLogger(__name__)

HISTORY_PATH = "/api/chat/history"
MODELS_PATH = "/api/chat/models"

_MESSAGES = TypeAdapter(list[ChatMessage])
_MODELS = TypeAdapter(list[ModelInfo])


class ChatHistoryConfig(BaseModel):
    """Configuration for the chat history loader."""

    base_url: str = Field(..., description="Trading API base URL")
    timeout: float = Field(default=10.0, gt=0)

    @classmethod
    def from_settings(cls) -> ChatHistoryConfig:
        settings = get_settings()
        return cls(base_url=settings.orchestrator_url, timeout=settings.orchestrator_timeout_seconds)


class ChatHistoryClient:
    """Loads chat history and the model catalogue from the trading API.

    Raises (from every operation):
        TransportError: Network failure, timeout or non-2xx status.
        DecodeError: 2xx response that is not a JSON array of the
            expected records.
    """

    def __init__(
        self,
        config: ChatHistoryConfig | None = None,
        *,
        store: SessionStore | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        if config is None:
            config = ChatHistoryConfig.from_settings()
        self.config = config
        self.base_url = normalize_base_url(config.base_url)
        self.store = store if store is not None else get_session_store()
        self._owns_http = http_client is None
        self._http = http_client or build_http_client(timeout=config.timeout)

    async def load_history(self) -> tuple[ChatMessage, ...]:
        """Replace the store's chat history with the server's.

        Returns:
            The messages the store holds afterwards. If the server history
            is rejected by the store (duplicate ids), the current history is
            kept and returned.
        """
        messages = await self._fetch("load_history", HISTORY_PATH, _MESSAGES)
        if self.store.replace_messages(messages):
            logger.info("Loaded %d chat message(s) from the server", len(messages))
        return self.store.messages

    async def list_models(self) -> list[ModelInfo]:
        """List the models offered for chat."""
        return await self._fetch("list_models", MODELS_PATH, _MODELS)

    async def _fetch(self, operation: str, path: str, adapter: TypeAdapter[Any]) -> Any:
        try:
            try:
                response = await self._http.get(f"{self.base_url}{path}")
            except httpx.HTTPError as e:
                raise classify_http_error(operation, e) from e
            payload = read_json(operation, response)
            try:
                return adapter.validate_python(payload)
            except PydanticValidationError as e:
                raise DecodeError(
                    f"{operation} returned unexpected records: {e.error_count()} error(s)",
                    detail=truncate_detail(str(e)),
                ) from e
        except GekkoError as e:
            logger.warning("Chat %s failed: %s", operation, e)
            self.store.record_diagnostic(f"chat.{operation}.failed", f"{type(e).__name__}: {e}", "warning")
            raise

    async def close(self) -> None:
        """Close the owned HTTP client and release connections."""
        if self._owns_http:
            await self._http.aclose()


__all__ = ["ChatHistoryClient", "ChatHistoryConfig"]
