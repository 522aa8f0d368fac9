"""gnosis query — show the chunks retrieved for a question."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.text import Text

from gnosis.cli.errors import err_dimension_mismatch, err_embedding_failed, err_no_db
from gnosis.cli.runtime import load_runtime
from gnosis.errors import EmbeddingDimensionMismatch, EmbeddingError

console = Console()


def query_cmd(
    text: Annotated[str, typer.Argument(help="Question or message to retrieve context for.")],
    top_k: Annotated[
        int | None,
        typer.Option(
            "--top-k", "-k", min=1, max=1000, help="Number of chunks (overrides config)."
        ),
    ] = None,
    min_score: Annotated[
        float | None,
        typer.Option(
            "--min-score", min=0.0, max=1.0, help="Minimum cosine similarity (overrides config)."
        ),
    ] = None,
    scores: Annotated[
        bool,
        typer.Option("--scores", help="Show file and similarity for each chunk."),
    ] = False,
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the knowledge-base database (overrides config)."),
    ] = None,
) -> None:
    """Retrieve the most relevant knowledge-base chunks for TEXT."""
    runtime = load_runtime(db)
    cfg = runtime.cfg

    if not Path(cfg.database.path).exists():
        console.print(err_no_db(cfg.database.path))
        raise typer.Exit(1)

    k = top_k if top_k is not None else cfg.retrieval.top_k
    threshold = min_score if min_score is not None else cfg.retrieval.min_score

    try:
        runtime.warm_mirror()
        hits = runtime.retriever().search(text, top_k=k, min_score=threshold)
    except EmbeddingDimensionMismatch as exc:
        console.print(err_dimension_mismatch(cfg.embedding.model, exc.expected, exc.actual))
        raise typer.Exit(1) from exc
    except EmbeddingError as exc:
        console.print(err_embedding_failed(cfg.embedding.model, str(exc)))
        raise typer.Exit(1) from exc

    if not hits:
        console.print("[yellow]No chunks found.[/] Run:  gnosis sync")
        raise typer.Exit(0)

    for rank, hit in enumerate(hits, start=1):
        title = f"[bold]#{rank}[/]"
        if scores:
            title += f"  {escape(hit.file_name)}  [dim]similarity {1.0 - hit.distance:.3f}[/]"
        # Chunk text starts with "[file]", which must not be read as markup
        console.print(Panel(Text(hit.text), title=title, title_align="left", expand=False))
