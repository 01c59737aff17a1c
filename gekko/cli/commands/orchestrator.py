"""Orchestrator control commands."""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Annotated

import typer

from gekko.cli.utils import build_orchestrator_client, console, render_state
from gekko.exceptions import GekkoError
from gekko.orchestrator.client import OrchestratorClient
from gekko.orchestrator.models import OrchestratorState


def _run(action: Callable[[OrchestratorClient], Awaitable[OrchestratorState]], label: str) -> None:
    """Run one client call, print the resulting state or a failure line."""

    async def _invoke() -> OrchestratorState:
        client = build_orchestrator_client()
        try:
            return await action(client)
        finally:
            await client.close()

    try:
        state = asyncio.run(_invoke())
    except GekkoError as e:
        console.print(f"[red]✗ {label} failed:[/red] {e}")
        raise typer.Exit(code=1) from e

    console.print(f"[green]✓ {label}[/green]")
    console.print(render_state(state))


def state() -> None:
    """Show the orchestrator's current state."""
    _run(lambda client: client.get_state(), "State fetched")


def engage() -> None:
    """Take the orchestrator live."""
    _run(lambda client: client.engage(), "Engaged")


def wind_down(
    seconds: Annotated[
        int,
        typer.Argument(min=0, help="Wind-down duration in seconds"),
    ],
) -> None:
    """Wind trading down over the given duration."""
    _run(lambda client: client.wind_down(seconds), f"Wind-down over {seconds}s")


def halt(
    reason: Annotated[str, typer.Argument(help="Why trading is being halted")],
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip the confirmation prompt"),
    ] = False,
) -> None:
    """Trigger an emergency halt."""
    if not yes:
        typer.confirm(f"Halt all trading now ({reason})?", abort=True)
    _run(lambda client: client.emergency_halt(reason), "Emergency halt")


def throttle(
    value: Annotated[
        float,
        typer.Argument(min=0.0, max=1.0, help="Risk throttle between 0 and 1"),
    ],
) -> None:
    """Set the risk throttle."""
    _run(lambda client: client.set_risk_throttle(value), f"Risk throttle {value * 100:.0f}%")
