"""Session state: chat history, orchestrator mirror and diagnostics."""

from gekko.session.models import ChatMessage, DiagnosticLog, ExternalCitation, InlineCitation
from gekko.session.store import SessionSnapshot, SessionStore, get_session_store, reset_session_store

__all__ = [
    "ChatMessage",
    "DiagnosticLog",
    "ExternalCitation",
    "InlineCitation",
    "SessionSnapshot",
    "SessionStore",
    "get_session_store",
    "reset_session_store",
]
