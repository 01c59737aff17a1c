"""Orchestrator wire models.

OrchestratorState mirrors the server's authoritative session state; every
orchestrator response wraps one in an Envelope. Command bodies validate
their arguments before anything is sent.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Generic, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

T = TypeVar("T")


def _as_utc(value: datetime) -> datetime:
    # Naive timestamps are treated as UTC so ordering comparisons never mix
    return value.replace(tzinfo=UTC) if value.tzinfo is None else value


class OrchestratorState(BaseModel):
    """Authoritative trading-orchestrator state.

    Invariants:
        - ``emergency_halt_active`` implies ``not is_live``.
        - ``is_winding_down`` and ``emergency_halt_active`` are never both set.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    is_live: bool = False
    is_winding_down: bool = False
    wind_down_started_at: datetime | None = None
    emergency_halt_active: bool = False
    emergency_halt_reason: str | None = None
    risk_throttle: float = Field(default=1.0, ge=0.0, le=1.0, allow_inf_nan=False)
    last_updated: datetime

    @field_validator("last_updated", "wind_down_started_at")
    @classmethod
    def _normalize_tz(cls, value: datetime | None) -> datetime | None:
        return _as_utc(value) if value is not None else None

    @model_validator(mode="after")
    def _check_flags(self) -> OrchestratorState:
        if self.emergency_halt_active and self.is_live:
            raise ValueError("emergency_halt_active requires is_live to be false")
        if self.emergency_halt_active and self.is_winding_down:
            raise ValueError("is_winding_down and emergency_halt_active are mutually exclusive")
        return self

    def is_older_than(self, other: OrchestratorState) -> bool:
        """Whether this state predates ``other`` (equal timestamps are not older)."""
        return self.last_updated < other.last_updated

    @property
    def mode(self) -> str:
        """One-word summary: halted, winding_down, live or idle."""
        if self.emergency_halt_active:
            return "halted"
        if self.is_winding_down:
            return "winding_down"
        if self.is_live:
            return "live"
        return "idle"


class Envelope(BaseModel, Generic[T]):
    """Response wrapper: success flag and metadata around ``data``."""

    model_config = ConfigDict(extra="ignore")

    success: bool = True
    data: T | None = None
    error: str | None = None
    timestamp: datetime | None = None
    request_id: str | None = None


class WindDownCommand(BaseModel):
    """Body for POST wind-down."""

    command: Literal["wind_down"] = "wind_down"
    duration_seconds: int = Field(ge=0, strict=True)


class EmergencyHaltCommand(BaseModel):
    """Body for POST emergency-halt."""

    command: Literal["emergency_halt"] = "emergency_halt"
    reason: str

    @field_validator("reason")
    @classmethod
    def _reason_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("reason must be a non-empty string")
        return value


class RiskThrottleCommand(BaseModel):
    """Body for POST risk-throttle."""

    command: Literal["set_risk_throttle"] = "set_risk_throttle"
    value: float = Field(ge=0.0, le=1.0, allow_inf_nan=False, strict=True)


__all__ = [
    "EmergencyHaltCommand",
    "Envelope",
    "OrchestratorState",
    "RiskThrottleCommand",
    "WindDownCommand",
]
