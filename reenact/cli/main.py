"""
Main CLI entry point for reenact.

This module provides the command-line interface for replaying and
validating browser recordings.
"""

import typer
from rich.console import Console

from reenact.cli.commands import run, validate

console = Console()

app = typer.Typer(
    name="reenact",
    help="Browser Recording Replay Engine",
    add_completion=False,
    rich_markup_mode="rich",
)

# Add commands
app.command(name="run", help="Replay a recording in a live browser")(run.run)
app.command(name="validate", help="Parse and preprocess a recording without replaying it")(
    validate.validate
)


@app.callback()
def main() -> None:
    """reenact - Browser Recording Replay Engine.

    Replays captured browser sessions against live sites and reports what
    happened for every recorded action.
    """
    pass


if __name__ == "__main__":
    app()
