"""gnosis serve — keep the knowledge base in sync until interrupted."""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from gnosis.cli.errors import err_dimension_mismatch
from gnosis.cli.runtime import load_runtime
from gnosis.errors import EmbeddingDimensionMismatch
from gnosis.ingest.scheduler import RefreshScheduler

console = Console()


def serve_cmd(
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the knowledge-base database (overrides config)."),
    ] = None,
    bucket: Annotated[
        str | None,
        typer.Option("--bucket", "-b", help="Corpus bucket (overrides config)."),
    ] = None,
    interval: Annotated[
        float | None,
        typer.Option("--interval", help="Minutes between refresh passes (overrides config)."),
    ] = None,
) -> None:
    """Run a start-up sync, then refresh periodically until Ctrl-C."""
    runtime = load_runtime(db, bucket)
    cfg = runtime.cfg
    minutes = interval if interval is not None else cfg.refresh.interval_minutes
    if minutes <= 0:
        console.print("[red]Error:[/] --interval must be greater than 0.")
        raise typer.Exit(1)

    try:
        warmed = runtime.warm_mirror()
    except EmbeddingDimensionMismatch as exc:
        console.print(err_dimension_mismatch(cfg.embedding.model, exc.expected, exc.actual))
        raise typer.Exit(1) from exc
    if runtime.uses_mirror:
        console.print(f"[dim]In-memory mirror warmed with {warmed:,} chunks.[/]")

    scheduler = RefreshScheduler(runtime.reconciler(), interval_minutes=minutes)
    console.print(
        f"Syncing [bold]{cfg.storage.bucket}[/] → {cfg.database.path} "
        f"every {minutes:g} min. Press Ctrl-C to stop."
    )
    scheduler.init_data()

    try:
        _block_until_interrupted()
    except KeyboardInterrupt:
        console.print("\n[dim]Stopping…[/]")
    finally:
        scheduler.stop()


def _block_until_interrupted() -> None:
    threading.Event().wait()
