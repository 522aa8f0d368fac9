"""Gnosis CLI entry point."""

from __future__ import annotations

import importlib.metadata
from typing import Annotated

import typer

from gnosis.cli.query import query_cmd
from gnosis.cli.serve import serve_cmd
from gnosis.cli.status import status_cmd
from gnosis.cli.sync import sync_cmd


def _installed_version() -> str:
    try:
        return importlib.metadata.version("gnosis")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"gnosis {_installed_version()}")
        raise typer.Exit()


app = typer.Typer(
    name="gnosis",
    help=(
        "Gnosis — knowledge ingestion and retrieval for the website assistant.\n\n"
        "  gnosis sync   One reconciliation pass: bucket → embeddings.\n"
        "  gnosis serve  Start-up sync, then periodic refresh until Ctrl-C."
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
) -> None:
    """Gnosis — knowledge ingestion and retrieval for the website assistant."""


app.command("sync")(sync_cmd)
app.command("serve")(serve_cmd)
app.command("query")(query_cmd)
app.command("status")(status_cmd)


@app.command("version")
def version_cmd() -> None:
    """Show the installed Gnosis version."""
    typer.echo(f"gnosis {_installed_version()}")


if __name__ == "__main__":
    app()
