"""Chat commands."""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Annotated, TypeVar

import typer
from rich.markup import escape
from rich.table import Table

from gekko.cli.utils import build_history_client, build_stream_client, console
from gekko.exceptions import GekkoError
from gekko.session.chat import ChatSession, ChatTurn
from gekko.session.history import ChatHistoryClient
from gekko.session.store import get_session_store
from gekko.settings import get_settings

T = TypeVar("T")

ROLE_COLORS = {"user": "cyan", "assistant": "green", "system": "red"}


def chat(
    prompt: Annotated[str, typer.Argument(help="Message to send")],
    model: Annotated[
        str | None,
        typer.Option("--model", "-m", help="Model to use (defaults to LLM_MODEL)"),
    ] = None,
) -> None:
    """Send one prompt and stream the reply.

    Examples:
        gekko chat "status?"
        gekko chat --model openai/gpt-4o-mini "summarise open risk"
    """
    try:
        turn = asyncio.run(_chat_once(prompt, model))
    except GekkoError as e:
        console.print(f"[red]✗ Chat failed:[/red] {e}")
        raise typer.Exit(code=1) from e

    console.print()
    if not turn.ok:
        console.print(f"[red]✗ Stream ended with {turn.outcome.kind}:[/red] {turn.outcome.detail}")
        raise typer.Exit(code=1)


async def _chat_once(prompt: str, model: str | None) -> ChatTurn:
    store = get_session_store()
    if model:
        store.select_model(model)
    client = build_stream_client()
    session = ChatSession(store, client, context_window=get_settings().chat_context_window)
    try:
        return await session.send(
            prompt,
            on_delta=lambda text: console.print(text, end="", markup=False, highlight=False),
        )
    finally:
        await client.aclose()


def history() -> None:
    """Show the chat history stored on the server."""
    try:
        messages = asyncio.run(_load(lambda client: client.load_history()))
    except GekkoError as e:
        console.print(f"[red]✗ History failed:[/red] {e}")
        raise typer.Exit(code=1) from e

    if not messages:
        console.print("[dim]No chat history[/dim]")
        return
    for message in messages:
        color = ROLE_COLORS.get(message.role, "white")
        console.print(f"[{color}]{message.role}[/{color}] {escape(message.content)}")


def models() -> None:
    """List the models available for chat."""
    try:
        available = asyncio.run(_load(lambda client: client.list_models()))
    except GekkoError as e:
        console.print(f"[red]✗ Model list failed:[/red] {e}")
        raise typer.Exit(code=1) from e

    selected = get_settings().llm_model
    table = Table(title="Chat models")
    table.add_column("", width=1)
    table.add_column("Model", style="cyan")
    table.add_column("Name")
    table.add_column("Provider")
    table.add_column("Context", justify="right")
    for model in available:
        table.add_row(
            "*" if model.id == selected else "",
            model.id,
            model.display_name,
            model.provider,
            f"{model.context_window:,}" if model.context_window else "-",
        )
    console.print(table)


async def _load(action: Callable[[ChatHistoryClient], Awaitable[T]]) -> T:
    client = build_history_client()
    try:
        return await action(client)
    finally:
        await client.close()
