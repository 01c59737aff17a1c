"""Shared HTTP plumbing for the orchestrator and chat stream clients.

Builds pooled httpx.AsyncClient instances and maps httpx failures onto
TransportError so no raw httpx exception escapes a public client call.
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import urlparse

import httpx

from gekko.exceptions import ConfigurationError, DecodeError, TransportError

logger = logging.getLogger(__name__)

_ALLOWED_SCHEMES = {"http", "https"}
_DETAIL_LIMIT = 500


def normalize_base_url(base_url: str) -> str:
    """Validate a base URL and strip its trailing slash.

    Raises:
        ConfigurationError: If the scheme is not http or https.
    """
    parsed = urlparse(base_url)
    if parsed.scheme not in _ALLOWED_SCHEMES or not parsed.netloc:
        msg = f"Invalid base URL '{base_url}'. Only {sorted(_ALLOWED_SCHEMES)} schemes allowed."
        raise ConfigurationError(msg)
    return base_url.rstrip("/")


def build_http_client(
    *,
    timeout: float,
    connect_timeout: float | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Create an httpx.AsyncClient with connection pooling and a hard timeout."""
    return httpx.AsyncClient(
        timeout=httpx.Timeout(timeout, connect=connect_timeout or timeout),
        limits=httpx.Limits(
            max_keepalive_connections=10,
            max_connections=20,
        ),
        transport=transport,
    )


def truncate_detail(text: str | None) -> str | None:
    """Trim a response body for use in error details and logs."""
    if not text:
        return None
    text = text.strip()
    if len(text) > _DETAIL_LIMIT:
        return text[:_DETAIL_LIMIT] + "..."
    return text


def status_error(operation: str, response: httpx.Response, body: str | None = None) -> TransportError:
    """Build the TransportError for a non-2xx response."""
    detail = truncate_detail(body)
    message = f"{operation} failed: HTTP {response.status_code}"
    if detail:
        message = f"{message}: {detail}"
    return TransportError(message, status_code=response.status_code, detail=detail)


def read_json(operation: str, response: httpx.Response) -> Any:
    """Return the decoded JSON body of a response.

    Raises:
        TransportError: Non-2xx status.
        DecodeError: The body is not JSON.
    """
    if not response.is_success:
        raise status_error(operation, response, response.text)
    try:
        return response.json()
    except ValueError as e:
        raise DecodeError(
            f"{operation} returned a non-JSON body",
            detail=truncate_detail(response.text),
        ) from e


def classify_http_error(operation: str, exc: httpx.HTTPError) -> TransportError:
    """Map an httpx exception onto a TransportError."""
    if isinstance(exc, httpx.HTTPStatusError):
        return status_error(operation, exc.response, exc.response.text)
    if isinstance(exc, httpx.TimeoutException):
        return TransportError(f"{operation} timed out: {type(exc).__name__}", detail=str(exc) or None)
    if isinstance(exc, httpx.ConnectError):
        return TransportError(f"{operation} failed: connection failed", detail=str(exc) or None)
    return TransportError(f"{operation} failed: {type(exc).__name__}", detail=str(exc) or None)


__all__ = [
    "build_http_client",
    "classify_http_error",
    "normalize_base_url",
    "read_json",
    "status_error",
    "truncate_detail",
]
