"""Gekko exception hierarchy.

Every failure that leaves a public client operation is classified into one
of these kinds, each carrying a correlation_id for tracing across layers.

Usage:
    from gekko.exceptions import DecodeError, TransportError

    try:
        state = await client.engage()
    except TransportError as e:
        logger.warning("Engage failed (%s), retry later", e.correlation_id)
    except DecodeError:
        logger.error("Orchestrator sent an unreadable body")
"""

import uuid
from typing import Any


class GekkoError(Exception):
    """Base exception for all Gekko console errors.

    Carries a correlation_id for tracing errors across layers.
    """

    retryable = False

    def __init__(self, message: str, *, correlation_id: str | None = None):
        self.correlation_id = correlation_id or str(uuid.uuid4())
        super().__init__(message)


class TransportError(GekkoError):
    """Network or HTTP status failure.

    Retryable at the caller's discretion. ``status_code`` is set when the
    server answered with a non-success status.
    """

    retryable = True

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        detail: str | None = None,
        correlation_id: str | None = None,
    ):
        self.status_code = status_code
        self.detail = detail
        super().__init__(message, correlation_id=correlation_id)


class DecodeError(GekkoError):
    """A body (or byte stream) that could not be decoded.

    Not retryable without a server-side fix.
    """

    def __init__(self, message: str, *, detail: str | None = None, **kwargs: Any):
        self.detail = detail
        super().__init__(message, **kwargs)


class ProtocolViolation(GekkoError):
    """A well-formed frame with an unexpected shape arrived mid-stream."""

    def __init__(self, message: str, *, payload: str | None = None, **kwargs: Any):
        self.payload = payload
        super().__init__(message, **kwargs)


class StaleStateRejected(GekkoError):
    """An orchestrator state update older than the held one.

    Raised by the stale-write guard and absorbed by the session store,
    which records it as a diagnostic instead of surfacing it.
    """

    def __init__(self, message: str, *, held: Any = None, incoming: Any = None, **kwargs: Any):
        self.held = held
        self.incoming = incoming
        super().__init__(message, **kwargs)


class StreamBusyError(GekkoError):
    """A chat stream was opened while another one is still active."""

    pass


class ValidationError(GekkoError):
    """Errors from input validation (beyond Pydantic)."""

    pass


class ConfigurationError(GekkoError):
    """Errors from application configuration."""

    pass
