"""Orchestrator control client.

Drives the remote trading orchestrator through its four commands and keeps
the session store's mirror of its state in step with the server.

State changes are confirmed-only: nothing is written to the store until a
response has been received and decoded, and the store's stale-write guard
decides whether it is applied. Responses to concurrently issued requests
may arrive in any order; the guard (not arrival order) settles which state
is held.

Usage::

    client = OrchestratorClient(store=get_session_store())
    state = await client.emergency_halt("breaker tripped")
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator
from typing import Any

import httpx
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from gekko.exceptions import DecodeError, GekkoError, TransportError, ValidationError
from gekko.orchestrator.models import (
    EmergencyHaltCommand,
    Envelope,
    OrchestratorState,
    RiskThrottleCommand,
    WindDownCommand,
)
from gekko.session.models import Severity
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

API_PREFIX = "/api/orchestrator"


class OrchestratorClientConfig(BaseModel):
    """Configuration for the orchestrator client."""

    base_url: str = Field(..., description="Trading API base URL")
    timeout: float = Field(default=10.0, gt=0, description="Per-request timeout in seconds")
    serialize_commands: bool = Field(
        default=False,
        description="Run commands one at a time instead of concurrently",
    )

    @classmethod
    def from_settings(cls) -> OrchestratorClientConfig:
        settings = get_settings()
        return cls(
            base_url=settings.orchestrator_url,
            timeout=settings.orchestrator_timeout_seconds,
            serialize_commands=settings.orchestrator_serialize_commands,
        )


class OrchestratorClient:
    """Client for the orchestrator REST endpoints.

    Every operation returns the authoritative OrchestratorState held by the
    store after reconciling the response. A response older than the held
    state is discarded by the guard, in which case the (newer) held state
    is returned.

    Raises (from every operation):
        ValidationError: Invalid arguments; nothing is sent.
        TransportError: Network failure, timeout, non-2xx status, or an
            envelope reporting ``success: false``.
        DecodeError: 2xx response whose body is not a valid state envelope.
    """

    def __init__(
        self,
        config: OrchestratorClientConfig | None = None,
        *,
        store: SessionStore | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        if config is None:
            config = OrchestratorClientConfig.from_settings()
        self.config = config
        self.base_url = normalize_base_url(config.base_url)
        self.store = store if store is not None else get_session_store()
        self._owns_http = http_client is None
        self._http = http_client or build_http_client(timeout=config.timeout)
        self._command_lock = asyncio.Lock()

    # ─── Commands ─────────────────────────────────────────────────────────

    async def engage(self) -> OrchestratorState:
        """Take the orchestrator live."""
        return await self._command("engage", "POST", "/engage", {})

    async def wind_down(self, duration_seconds: int) -> OrchestratorState:
        """Wind trading down over ``duration_seconds`` (non-negative int)."""
        body = self._build(WindDownCommand, duration_seconds=duration_seconds)
        return await self._command("wind_down", "POST", "/wind-down", body)

    async def emergency_halt(self, reason: str) -> OrchestratorState:
        """Halt all trading immediately; ``reason`` must be non-empty."""
        body = self._build(EmergencyHaltCommand, reason=reason)
        return await self._command("emergency_halt", "POST", "/emergency-halt", body)

    async def set_risk_throttle(self, value: float) -> OrchestratorState:
        """Scale risk by ``value`` in [0, 1]."""
        body = self._build(RiskThrottleCommand, value=value)
        return await self._command("set_risk_throttle", "POST", "/risk-throttle", body)

    async def get_state(self) -> OrchestratorState:
        """Fetch the current state (plain read, same stale-write guard)."""
        return await self._reconcile("get_state", "GET", "/state", None)

    # ─── Internals ────────────────────────────────────────────────────────

    @staticmethod
    def _build(model: type[BaseModel], **fields: Any) -> dict[str, Any]:
        try:
            return model(**fields).model_dump(mode="json")
        except PydanticValidationError as e:
            errors = "; ".join(err["msg"] for err in e.errors())
            raise ValidationError(f"Invalid {model.__name__}: {errors}") from e

    @contextlib.asynccontextmanager
    async def _command_slot(self) -> AsyncIterator[None]:
        if self.config.serialize_commands:
            async with self._command_lock:
                yield
        else:
            yield

    async def _command(
        self,
        operation: str,
        method: str,
        path: str,
        body: dict[str, Any],
    ) -> OrchestratorState:
        logger.info("Orchestrator command %s %s", operation, body or "")
        async with self._command_slot():
            return await self._reconcile(operation, method, path, body)

    async def _reconcile(
        self,
        operation: str,
        method: str,
        path: str,
        body: dict[str, Any] | None,
    ) -> OrchestratorState:
        try:
            state = await self._request(operation, method, path, body)
        except GekkoError as e:
            self._report_failure(operation, e)
            raise

        if not self.store.apply_orchestrator_state(state):
            logger.info(
                "%s response from %s superseded by held state",
                operation,
                state.last_updated.isoformat(),
            )
        held = self.store.orchestrator_state
        return held if held is not None else state

    async def _request(
        self,
        operation: str,
        method: str,
        path: str,
        body: dict[str, Any] | None,
    ) -> OrchestratorState:
        url = f"{self.base_url}{API_PREFIX}{path}"
        try:
            response = await self._http.request(method, url, json=body)
        except httpx.HTTPError as e:
            raise classify_http_error(operation, e) from e

        payload = read_json(operation, response)

        try:
            envelope = Envelope[OrchestratorState].model_validate(payload)
        except PydanticValidationError as e:
            raise DecodeError(
                f"{operation} returned an invalid orchestrator state: {e.error_count()} error(s)",
                detail=truncate_detail(str(e)),
            ) from e

        if not envelope.success:
            raise TransportError(
                f"{operation} rejected by orchestrator: {envelope.error or 'no reason given'}",
                status_code=response.status_code,
                detail=envelope.error,
            )
        if envelope.data is None:
            raise DecodeError(f"{operation} response envelope carried no data")
        return envelope.data

    def _report_failure(self, operation: str, error: GekkoError) -> None:
        severity: Severity = "critical" if operation == "emergency_halt" else "warning"
        if isinstance(error, DecodeError):
            logger.error("Orchestrator %s failed: %s", operation, error)
        else:
            logger.warning("Orchestrator %s failed: %s", operation, error)
        self.store.record_diagnostic(
            f"orchestrator.{operation}.failed",
            f"{type(error).__name__}: {error}",
            severity,
        )

    async def close(self) -> None:
        """Close the owned HTTP client and release connections."""
        if self._owns_http:
            await self._http.aclose()


__all__ = ["OrchestratorClient", "OrchestratorClientConfig"]
