"""Terminal outcome of a chat stream.

Every stream element is a ``Delta`` (a plain ``str`` yielded by the
stream). Exactly one StreamOutcome closes the stream.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from gekko.exceptions import DecodeError, GekkoError, ProtocolViolation, TransportError


class OutcomeKind(StrEnum):
    """How a stream ended."""

    DONE = "done"
    TRANSPORT_ERROR = "transport_error"
    DECODE_ERROR = "decode_error"
    PROTOCOL_VIOLATION = "protocol_violation"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class StreamOutcome:
    """Terminal state recorded on a finished stream.

    Attributes:
        kind: Outcome classification.
        detail: Error detail (status body, decode reason) for failures.
        status_code: HTTP status for transport failures, when known.
        saw_sentinel: True when the stream ended on the ``[DONE]`` marker
            rather than at the end of the body.
        deltas: Number of text fragments yielded before termination.
    """

    kind: OutcomeKind
    detail: str | None = None
    status_code: int | None = None
    saw_sentinel: bool = False
    deltas: int = 0

    @property
    def is_error(self) -> bool:
        return self.kind not in (OutcomeKind.DONE, OutcomeKind.CANCELLED)

    @property
    def retryable(self) -> bool:
        return self.kind is OutcomeKind.TRANSPORT_ERROR

    @classmethod
    def from_error(cls, error: GekkoError, *, deltas: int = 0) -> StreamOutcome:
        """Classify a raised client error."""
        if isinstance(error, TransportError):
            return cls(
                OutcomeKind.TRANSPORT_ERROR,
                detail=error.detail or str(error),
                status_code=error.status_code,
                deltas=deltas,
            )
        if isinstance(error, DecodeError):
            return cls(OutcomeKind.DECODE_ERROR, detail=error.detail or str(error), deltas=deltas)
        if isinstance(error, ProtocolViolation):
            return cls(OutcomeKind.PROTOCOL_VIOLATION, detail=str(error), deltas=deltas)
        return cls(OutcomeKind.TRANSPORT_ERROR, detail=str(error), deltas=deltas)


__all__ = ["OutcomeKind", "StreamOutcome"]
