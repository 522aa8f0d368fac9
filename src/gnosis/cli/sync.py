"""gnosis sync — run one reconciliation pass against the corpus bucket."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from gnosis.cli.errors import err_bucket_unreachable, err_dimension_mismatch
from gnosis.cli.runtime import load_runtime
from gnosis.errors import CorpusListingError, EmbeddingDimensionMismatch
from gnosis.ingest.reconciler import ReconcileReport

console = Console()


def sync_cmd(
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the knowledge-base database (overrides config)."),
    ] = None,
    bucket: Annotated[
        str | None,
        typer.Option("--bucket", "-b", help="Corpus bucket (overrides config)."),
    ] = None,
) -> None:
    """Synchronise the corpus bucket into the knowledge base once."""
    runtime = load_runtime(db, bucket)
    cfg = runtime.cfg

    try:
        runtime.warm_mirror()
        report = runtime.reconciler().run_pass()
    except CorpusListingError as exc:
        console.print(err_bucket_unreachable(exc.bucket, exc.reason))
        raise typer.Exit(1) from exc
    except EmbeddingDimensionMismatch as exc:
        console.print(err_dimension_mismatch(cfg.embedding.model, exc.expected, exc.actual))
        raise typer.Exit(1) from exc

    if report is None:
        console.print("[yellow]A sync is already running; skipped.[/]")
        raise typer.Exit(0)

    _print_report(report, cfg.storage.bucket)
    if report.failed or report.fetch_failures:
        raise typer.Exit(2)


def _print_report(report: ReconcileReport, bucket: str) -> None:
    if not report.changed and not report.failed and not report.fetch_failures:
        console.print(
            f"[green]✓[/] Knowledge base is up to date with [bold]{bucket}[/] "
            f"({len(report.skipped)} files, {report.duration:.1f}s)."
        )
        return

    table = Table(show_header=True, header_style="bold", box=None, padding=(0, 1))
    table.add_column("File")
    table.add_column("Result")

    for name in report.updated:
        table.add_row(escape(name), "[green]updated[/]")
    for name in report.removed:
        table.add_row(escape(name), "[yellow]removed[/]")
    for name, error in report.failed.items():
        table.add_row(escape(name), f"[red]failed[/] [dim]{escape(error)}[/]")
    for outcome in report.fetch_failures:
        table.add_row(
            escape(outcome.file_id),
            f"[red]{outcome.status.value}[/] [dim]{escape(outcome.error or '')}[/]",
        )

    console.print(table)
    console.print(
        f"[bold]{len(report.updated)}[/] updated, [bold]{len(report.removed)}[/] removed, "
        f"[bold]{len(report.skipped)}[/] unchanged, "
        f"[bold]{len(report.failed) + len(report.fetch_failures)}[/] failed, "
        f"{report.chunks_written:,} chunks written in {report.duration:.1f}s"
    )
