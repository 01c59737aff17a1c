"""Session state store: the single owner of client-side session state.

Holds the chat history, the mirrored orchestrator state, diagnostics and
the selected model. Readers get immutable snapshots; every change goes
through a named mutation that is synchronous, all-or-nothing and never
raises. Rejected updates (stale orchestrator state, malformed input) are
dropped and recorded as diagnostics instead.

Usage::

    store = get_session_store()
    unsubscribe = store.subscribe(lambda snap: render(snap))
    store.append_message(ChatMessage(role="user", content="status?"))
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

from gekko.exceptions import StaleStateRejected
from gekko.orchestrator.models import OrchestratorState
from gekko.session.models import ChatMessage, DiagnosticLog, Severity

logger = logging.getLogger(__name__)

STALE_STATE_LABEL = "StaleStateRejected"
INVALID_UPDATE_LABEL = "InvalidUpdate"
_DEFAULT_MAX_DIAGNOSTICS = 200


@dataclass(frozen=True)
class SessionSnapshot:
    """Immutable view of the session at one point in time."""

    messages: tuple[ChatMessage, ...]
    orchestrator_state: OrchestratorState | None
    diagnostics: tuple[DiagnosticLog, ...]
    selected_model: str
    version: int


Listener = Callable[[SessionSnapshot], None]


def ensure_not_stale(held: OrchestratorState | None, incoming: OrchestratorState) -> None:
    """Stale-write guard.

    Raises:
        StaleStateRejected: If ``incoming`` is older than ``held``.
    """
    if held is not None and incoming.is_older_than(held):
        raise StaleStateRejected(
            f"Discarded orchestrator state from {incoming.last_updated.isoformat()}; "
            f"holding newer state from {held.last_updated.isoformat()}",
            held=held,
            incoming=incoming,
        )


class SessionStore:
    """Observable, single-writer session state."""

    def __init__(
        self,
        *,
        selected_model: str = "",
        max_diagnostics: int = _DEFAULT_MAX_DIAGNOSTICS,
    ) -> None:
        self._messages: list[ChatMessage] = []
        self._message_ids: set[str] = set()
        self._orchestrator_state: OrchestratorState | None = None
        self._diagnostics: deque[DiagnosticLog] = deque(maxlen=max(1, max_diagnostics))
        self._selected_model = selected_model
        self._listeners: list[Listener] = []
        self._version = 0

    # ─── Reads ────────────────────────────────────────────────────────────

    @property
    def messages(self) -> tuple[ChatMessage, ...]:
        return tuple(self._messages)

    @property
    def orchestrator_state(self) -> OrchestratorState | None:
        return self._orchestrator_state

    @property
    def diagnostics(self) -> tuple[DiagnosticLog, ...]:
        return tuple(self._diagnostics)

    @property
    def selected_model(self) -> str:
        return self._selected_model

    @property
    def version(self) -> int:
        """Incremented by every applied mutation."""
        return self._version

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            messages=tuple(self._messages),
            orchestrator_state=self._orchestrator_state,
            diagnostics=tuple(self._diagnostics),
            selected_model=self._selected_model,
            version=self._version,
        )

    def recent_messages(self, limit: int) -> tuple[ChatMessage, ...]:
        """The last ``limit`` messages, oldest first."""
        if limit <= 0:
            return ()
        return tuple(self._messages[-limit:])

    # ─── Observation ──────────────────────────────────────────────────────

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener called with a fresh snapshot after each change.

        Returns:
            A callable that removes the listener.
        """
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _changed(self) -> None:
        self._version += 1
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Session listener %r failed", listener)

    # ─── Mutations ────────────────────────────────────────────────────────

    def append_message(self, message: ChatMessage) -> bool:
        """Append one message to the history.

        Returns:
            True if appended; False if the message was malformed or its id
            is already present.
        """
        if not isinstance(message, ChatMessage):
            self._reject(f"append_message ignored non-message value of type {type(message).__name__}")
            return False
        if message.id in self._message_ids:
            self._reject(f"append_message ignored duplicate message id {message.id}")
            return False
        self._messages.append(message)
        self._message_ids.add(message.id)
        self._changed()
        return True

    def replace_messages(self, messages: Iterable[ChatMessage]) -> bool:
        """Replace the whole history (e.g. after loading it from the server).

        The replacement is applied only if every item is a ChatMessage and
        ids are unique; otherwise the current history is kept.
        """
        try:
            candidate = list(messages)
        except TypeError:
            self._reject("replace_messages ignored a non-iterable value")
            return False
        ids: set[str] = set()
        for message in candidate:
            if not isinstance(message, ChatMessage):
                self._reject(f"replace_messages ignored batch containing {type(message).__name__}")
                return False
            if message.id in ids:
                self._reject(f"replace_messages ignored batch with duplicate id {message.id}")
                return False
            ids.add(message.id)
        self._messages = candidate
        self._message_ids = ids
        self._changed()
        return True

    def set_diagnostics(self, diagnostics: Iterable[DiagnosticLog]) -> bool:
        """Replace the diagnostic list wholesale."""
        try:
            candidate = list(diagnostics)
        except TypeError:
            self._reject("set_diagnostics ignored a non-iterable value")
            return False
        if not all(isinstance(item, DiagnosticLog) for item in candidate):
            self._reject("set_diagnostics ignored batch containing non-diagnostic values")
            return False
        self._diagnostics.clear()
        self._diagnostics.extend(candidate)
        self._changed()
        return True

    def apply_orchestrator_state(self, state: OrchestratorState) -> bool:
        """Apply a server-confirmed orchestrator state, unless it is stale.

        Returns:
            True if applied; False if it was older than the held state (a
            StaleStateRejected diagnostic is recorded) or malformed.
        """
        if not isinstance(state, OrchestratorState):
            self._reject(f"apply_orchestrator_state ignored value of type {type(state).__name__}")
            return False
        try:
            ensure_not_stale(self._orchestrator_state, state)
        except StaleStateRejected as e:
            logger.info("Stale orchestrator state rejected: %s", e)
            self._record(STALE_STATE_LABEL, str(e), "info")
            return False
        self._orchestrator_state = state
        self._changed()
        return True

    def select_model(self, model: str) -> bool:
        """Change the model used for new chat streams."""
        if not isinstance(model, str) or not model.strip():
            self._reject("select_model ignored an empty model name")
            return False
        self._selected_model = model.strip()
        self._changed()
        return True

    def record_diagnostic(self, label: str, detail: str = "", severity: Severity = "info") -> DiagnosticLog:
        """Append a diagnostic entry (oldest entries drop past the cap)."""
        return self._record(label, detail, severity)

    def _record(self, label: str, detail: str, severity: Any) -> DiagnosticLog:
        if severity not in ("info", "warning", "critical"):
            severity = "warning"
        entry = DiagnosticLog(label=str(label), detail=str(detail), severity=severity)
        self._diagnostics.append(entry)
        self._changed()
        return entry

    def _reject(self, detail: str) -> None:
        logger.warning("Session update rejected: %s", detail)
        self._record(INVALID_UPDATE_LABEL, detail, "warning")


# ─── Process-wide store ──────────────────────────────────────────────────────

_store: SessionStore | None = None
_store_lock = threading.Lock()


def get_session_store() -> SessionStore:
    """Get or create the process-wide session store.

    Thread-safe: Uses double-checked locking.
    """
    global _store
    if _store is None:
        with _store_lock:
            if _store is None:
                from gekko.settings import get_settings

                settings = get_settings()
                _store = SessionStore(
                    selected_model=settings.llm_model,
                    max_diagnostics=settings.max_diagnostics,
                )
    return _store


def reset_session_store() -> None:
    """Drop the process-wide store (next access creates a fresh one)."""
    global _store
    with _store_lock:
        _store = None


__all__ = [
    "INVALID_UPDATE_LABEL",
    "STALE_STATE_LABEL",
    "SessionSnapshot",
    "SessionStore",
    "ensure_not_stale",
    "get_session_store",
    "reset_session_store",
]
