"""herdsafe CLI entry point."""

from __future__ import annotations

import importlib.metadata
import logging
from typing import Annotated

import typer
from rich.logging import RichHandler

from herdsafe.cli.animals import animals_app
from herdsafe.cli.assistant import ask_cmd, diagnose_cmd, kb_app
from herdsafe.cli.common import console
from herdsafe.cli.docs import docs_app
from herdsafe.cli.init import init_cmd
from herdsafe.cli.market import market_app


def _installed_version() -> str:
    try:
        return importlib.metadata.version("herdsafe")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"herdsafe {_installed_version()}")
        raise typer.Exit()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False, rich_tracebacks=True)],
        force=True,
    )
    # LiteLLM logs every request at INFO.
    logging.getLogger("LiteLLM").setLevel(logging.DEBUG if verbose else logging.WARNING)


app = typer.Typer(
    name="herdsafe",
    help=(
        "herdsafe — livestock marketplace core.\n\n"
        "  herdsafe ask / diagnose   Veterinary assistant grounded in your documents.\n"
        "  herdsafe market           Product listings, gated by withdrawal and quarantine."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show debug logging."),
    ] = False,
) -> None:
    """herdsafe — livestock marketplace core."""
    _configure_logging(verbose)


app.command("init")(init_cmd)
app.command("ask")(ask_cmd)
app.command("diagnose")(diagnose_cmd)
app.add_typer(docs_app, name="docs")
app.add_typer(kb_app, name="kb")
app.add_typer(animals_app, name="animals")
app.add_typer(market_app, name="market")


@app.command("version")
def version_cmd() -> None:
    """Show the installed herdsafe version."""
    typer.echo(f"herdsafe {_installed_version()}")


if __name__ == "__main__":
    app()
