"""AutoWebkit CLI — Main Typer entry point.

Registers all subcommands and provides --version / --verbose global options.
"""

from __future__ import annotations

import typer
from rich.console import Console

from autowebkit import __version__

TAGLINE = "Declarative step scripts for a real browser page."

console = Console()

# ── Version callback ──────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        console.print("AutoWebkit", style="bold cyan")
        console.print(f"  {TAGLINE}", style="dim")
        console.print(f"  v{__version__}\n", style="bold")
        raise typer.Exit()


# ── Main app ──────────────────────────────────────────────────────────────

app = typer.Typer(
    name="autowebkit",
    help=TAGLINE,
    rich_markup_mode="rich",
    no_args_is_help=True,
    add_completion=False,
)


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        help="Show AutoWebkit version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose output.",
    ),
) -> None:
    """AutoWebkit -- run YAML step scripts against a browser page."""
    if verbose:
        import logging

        logging.basicConfig(level=logging.DEBUG, format="%(name)s  %(message)s")


# ── Register subcommands ──────────────────────────────────────────────────

from autowebkit.cli.run import run  # noqa: E402
from autowebkit.cli.validate import validate  # noqa: E402

app.command(name="run", help="Run a step script in a browser.")(run)
app.command(name="validate", help="Parse a step script without launching a browser.")(validate)
