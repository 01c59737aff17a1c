"""Shared CLI helpers: console, client factories and state rendering."""

from __future__ import annotations

from rich.console import Console
from rich.table import Table

from gekko.orchestrator.client import OrchestratorClient
from gekko.orchestrator.models import OrchestratorState
from gekko.session.history import ChatHistoryClient
from gekko.session.store import get_session_store
from gekko.streaming.client import ChatStreamClient

console = Console()

MODE_COLORS = {
    "halted": "red",
    "winding_down": "yellow",
    "live": "green",
    "idle": "white",
}


def build_orchestrator_client() -> OrchestratorClient:
    """Create an orchestrator client bound to the process-wide store."""
    return OrchestratorClient(store=get_session_store())


def build_stream_client() -> ChatStreamClient:
    return ChatStreamClient()


def build_history_client() -> ChatHistoryClient:
    return ChatHistoryClient(store=get_session_store())


def render_state(state: OrchestratorState) -> Table:
    """Render an orchestrator state as a two-column table."""
    color = MODE_COLORS.get(state.mode, "white")
    table = Table(title="Orchestrator", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Mode", f"[{color}]{state.mode.upper()}[/{color}]")
    table.add_row("Live", "yes" if state.is_live else "no")
    if state.is_winding_down and state.wind_down_started_at:
        table.add_row("Wind-down since", state.wind_down_started_at.isoformat())
    if state.emergency_halt_active:
        table.add_row("Halt reason", state.emergency_halt_reason or "-")
    table.add_row("Risk throttle", f"{state.risk_throttle * 100:.0f}%")
    table.add_row("Last updated", state.last_updated.isoformat())
    return table
