"""Delta extraction: pull the text fragment out of a completion frame.

Frame payloads are OpenAI-compatible chunk records of the form
``{"choices": [{"delta": {"content": "..."}}]}``. Providers interleave
frames that carry no text (keep-alives, role announcements, usage
summaries); those are skipped. Only a payload that parses as JSON but has
the wrong structure is treated as a protocol violation.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from gekko.exceptions import ProtocolViolation, TransportError
from gekko.transport import truncate_detail

logger = logging.getLogger(__name__)


def extract_delta(payload: str) -> str | None:
    """Return the text carried by a frame payload, if any.

    Args:
        payload: Frame payload (a JSON chunk record).

    Returns:
        The non-empty ``choices[0].delta.content`` string, or None when the
        frame carries no text or is not JSON at all.

    Raises:
        ProtocolViolation: The payload is JSON with an unexpected shape.
        TransportError: The provider reported an error mid-stream.
    """
    try:
        record = json.loads(payload)
    except json.JSONDecodeError:
        # Heartbeat / non-content frames are part of the protocol
        logger.debug("Skipping non-JSON frame: %s", payload[:80])
        return None

    if not isinstance(record, dict):
        raise ProtocolViolation(
            f"Expected a JSON object frame, got {type(record).__name__}",
            payload=truncate_detail(payload),
        )

    if "error" in record:
        raise _upstream_error(record["error"])

    choices = record.get("choices")
    if not choices:
        return None
    if not isinstance(choices, list):
        raise ProtocolViolation("Frame 'choices' is not a list", payload=truncate_detail(payload))

    first = choices[0]
    if not isinstance(first, dict):
        raise ProtocolViolation("Frame 'choices[0]' is not an object", payload=truncate_detail(payload))

    delta = first.get("delta")
    if delta is None:
        return None
    if not isinstance(delta, dict):
        raise ProtocolViolation("Frame 'delta' is not an object", payload=truncate_detail(payload))

    content = delta.get("content")
    if content is None:
        return None
    if not isinstance(content, str):
        raise ProtocolViolation(
            f"Frame 'delta.content' is {type(content).__name__}, expected string",
            payload=truncate_detail(payload),
        )
    return content or None


def _upstream_error(error: Any) -> TransportError:
    """Build a TransportError from an in-band ``error`` member."""
    status_code: int | None = None
    if isinstance(error, dict):
        message = str(error.get("message") or "unknown error")
        code = error.get("code")
        if isinstance(code, int):
            status_code = code
    else:
        message = str(error)
    return TransportError(
        f"Provider reported an error mid-stream: {message}",
        status_code=status_code,
        detail=truncate_detail(message),
    )


__all__ = ["extract_delta"]
