"""CLI entry point.

Provides the operator console with commands for:
- state / engage / wind-down / halt / throttle: drive the orchestrator
- chat: send a prompt and stream the reply
- history / models: read the server's chat history and model catalogue
"""

import typer

from gekko.cli.commands.chat import chat, history, models
from gekko.cli.commands.orchestrator import engage, halt, state, throttle, wind_down
from gekko.logging_config import configure_logging

app = typer.Typer(
    name="gekko",
    help="Operator console for the Gekko trading orchestrator",
    add_completion=False,
    no_args_is_help=True,
)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Configure logging before any command runs."""
    configure_logging("DEBUG" if verbose else None)


app.command()(state)
app.command()(engage)
app.command(name="wind-down")(wind_down)
app.command()(halt)
app.command()(throttle)
app.command()(chat)
app.command()(history)
app.command()(models)


if __name__ == "__main__":
    app()
