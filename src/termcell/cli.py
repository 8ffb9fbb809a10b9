"""CLI entry point for termcell."""

from __future__ import annotations

import logging
import os

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from termcell.config import TermcellConfig
from termcell.errors import SetupError
from termcell.pty.screen import ScreenBuffer
from termcell.pty.session import TerminalSession

app = typer.Typer(
    name="termcell",
    help="Run a command in a pseudo-terminal and capture its rendered screen.",
    no_args_is_help=True,
)


def setup_logging(level: str = "WARNING", verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _print_capture(text: str, plain: bool) -> None:
    if plain:
        typer.echo(text)
        return
    Console().print(Panel(Text(text), title="Captured output", title_align="left"))


@app.command(
    context_settings={"allow_interspersed_args": False, "ignore_unknown_options": True}
)
def run(
    command: list[str] = typer.Argument(
        help="Command and arguments. Joined with spaces, then split on whitespace."
    ),
    plain: bool = typer.Option(
        False, "--plain", "-p", help="Print the capture without decoration."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug logging."
    ),
    config_file: str | None = typer.Option(
        None, "--config", "-c", help="Config file path."
    ),
) -> None:
    """Run COMMAND interactively, then print what it left on the screen."""
    try:
        config = TermcellConfig.load(config_file)
    except ValidationError as e:
        typer.echo(f"Error: invalid configuration: {e}", err=True)
        raise typer.Exit(1)
    setup_logging(config.log_level, verbose)

    session = TerminalSession(relay=config.relay)
    output, err = session.execute(" ".join(command))

    if not isinstance(err, SetupError):
        # The command's own output ends wherever its cursor was
        typer.echo()
        _print_capture(output, plain)

    if err is not None:
        typer.echo(f"Error executing command: {err}", err=True)
        raise typer.Exit(1)


@app.command()
def render(
    path: str = typer.Argument(help="File with raw terminal output (e.g. a script(1) log)."),
    columns: int = typer.Option(80, "--columns", help="Screen width."),
    rows: int = typer.Option(24, "--rows", help="Screen height."),
) -> None:
    """Replay recorded terminal output through the screen buffer and print the result."""
    if not os.path.isfile(path):
        typer.echo(f"Error: File not found: {path}", err=True)
        raise typer.Exit(1)

    screen = ScreenBuffer(columns, rows)
    with open(path, "rb") as f:
        screen.write(f.read())
    typer.echo(screen.render())


def main() -> None:
    app()


if __name__ == "__main__":
    main()
