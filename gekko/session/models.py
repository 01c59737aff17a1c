"""Session data models.

Chat messages and diagnostic entries are immutable once created: the
session store only ever appends or replaces whole sequences of them.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field

ChatRole = Literal["user", "assistant", "system"]
Severity = Literal["info", "warning", "critical"]


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _new_id() -> str:
    return str(uuid.uuid4())


class InlineCitation(BaseModel):
    """A citation pointing at an in-app source (feed, indicator, report)."""

    model_config = ConfigDict(frozen=True)

    type: Literal["inline"] = "inline"
    source: str
    detail: str


class ExternalCitation(BaseModel):
    """A citation pointing at an external URL."""

    model_config = ConfigDict(frozen=True)

    type: Literal["external"] = "external"
    title: str
    url: str


Citation = Annotated[InlineCitation | ExternalCitation, Field(discriminator="type")]


class ChatMessage(BaseModel):
    """One entry of the chat history."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_id, description="Unique message ID")
    role: ChatRole = Field(description="Message role: user, assistant, system")
    content: str = Field(default="", description="Message content")
    timestamp: datetime = Field(default_factory=_utcnow)
    citations: tuple[Citation, ...] = Field(default=())


class DiagnosticLog(BaseModel):
    """A diagnostic entry shown alongside the chat (failures, guard events)."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_id)
    label: str = Field(description="Short machine-friendly label, e.g. StaleStateRejected")
    detail: str = Field(default="")
    severity: Severity = "info"
    created_at: datetime = Field(default_factory=_utcnow)


class ModelInfo(BaseModel):
    """An entry of the server's model catalogue."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str = Field(min_length=1, description="Provider model identifier")
    display_name: str = ""
    provider: str = ""
    context_window: int = Field(default=0, ge=0)
    specialization: str = ""


__all__ = [
    "ChatMessage",
    "ChatRole",
    "Citation",
    "DiagnosticLog",
    "ExternalCitation",
    "InlineCitation",
    "ModelInfo",
    "Severity",
]
