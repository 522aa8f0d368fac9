"""gnosis status — overview of the knowledge base.

Shows the configured corpus and embedding model, database size, and one row
per known file with its fingerprint date and chunk count.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from gnosis.cli.errors import err_dimension_mismatch, err_no_db
from gnosis.cli.runtime import load_runtime
from gnosis.config import GnosisConfig
from gnosis.db.repository import Repository, open_repository
from gnosis.errors import EmbeddingDimensionMismatch

console = Console()


def status_cmd(
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the knowledge-base database (overrides config)."),
    ] = None,
) -> None:
    """Show knowledge-base status: corpus, model, files and chunk counts."""
    runtime = load_runtime(db, require_api_key=False)
    cfg = runtime.cfg
    db_path = Path(cfg.database.path)

    _show_config_panel(cfg, db_path)

    if not db_path.exists():
        console.print(err_no_db(str(db_path)))
        raise typer.Exit(1)

    try:
        with open_repository(
            runtime.db, cfg.embedding.model, cfg.embedding.dimensions
        ) as repo:
            _show_files_panel(repo)
    except EmbeddingDimensionMismatch as exc:
        console.print(err_dimension_mismatch(cfg.embedding.model, exc.expected, exc.actual))
        raise typer.Exit(1) from exc


# ---------------------------------------------------------------------------
# Panel renderers
# ---------------------------------------------------------------------------


def _show_config_panel(cfg: GnosisConfig, db_path: Path) -> None:
    db_info = f"{db_path}"
    if db_path.exists():
        size_mb = db_path.stat().st_size / (1024 * 1024)
        db_info = f"{db_path} ({size_mb:.1f} MB)"

    storage = cfg.storage
    lines = [
        f"Bucket:     [bold]{storage.bucket}[/]"
        + (f" [dim]@ {storage.endpoint_url}[/]" if storage.endpoint_url else ""),
        f"Database:   {db_info}",
        f"Embedding:  {cfg.embedding.model} [dim]({cfg.embedding.dimensions} dims)[/]",
        f"Retrieval:  top_k={cfg.retrieval.top_k} min_score={cfg.retrieval.min_score} "
        f"backend={cfg.retrieval.backend}",
        f"Refresh:    every {cfg.refresh.interval_minutes:g} min",
    ]
    console.print(Panel("\n".join(lines), title="[bold]Gnosis[/]", expand=False))


def _show_files_panel(repo: Repository) -> None:
    fingerprints = {fp.file_name: fp for fp in repo.list_fingerprints()}
    counts = repo.chunk_counts_by_file()
    names = sorted(set(fingerprints) | set(counts))

    if not names:
        console.print(
            Panel(
                "[dim]No files synchronised yet.[/]\n"
                "  Run:  gnosis sync",
                title="[bold]Knowledge Base[/]",
                expand=False,
            )
        )
        return

    table = Table(show_header=True, header_style="bold", box=None, padding=(0, 1))
    table.add_column("File")
    table.add_column("Chunks", justify="right")
    table.add_column("Updated", style="dim")
    table.add_column("Hash", style="dim")

    for name in names:
        fp = fingerprints.get(name)
        chunks = counts.get(name, 0)
        chunk_cell = f"{chunks:,}" if chunks else "[yellow]0[/]"
        table.add_row(
            escape(name),
            chunk_cell,
            (fp.updated_at or "")[:16] if fp else "",
            fp.content_hash[:12] if fp else "[yellow]missing[/]",
        )

    console.print(
        Panel(
            table,
            title=(
                f"[bold]Knowledge Base[/] [dim]({len(names)} files, "
                f"{repo.count_chunks():,} chunks, {repo.vec_table})[/]"
            ),
            expand=False,
        )
    )
