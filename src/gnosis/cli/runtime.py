"""Shared start-up for CLI commands: .env, config, logging, components."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import typer
from dotenv import load_dotenv
from rich.console import Console

from gnosis.cli.errors import err_config, err_no_api_key
from gnosis.config import ConfigError, GnosisConfig, load_config
from gnosis.db.connection import Database
from gnosis.db.repository import open_repository
from gnosis.ingest.chunker import SentenceChunker
from gnosis.ingest.fetcher import ContentFetcher, build_s3_client
from gnosis.ingest.reconciler import Reconciler
from gnosis.log import configure_logging
from gnosis.rag.llm_client import validate_api_key
from gnosis.rag.mirror import EmbeddingMirror
from gnosis.rag.retriever import Retriever

console = Console()


@dataclass
class Runtime:
    """Configured components shared by one CLI invocation."""

    cfg: GnosisConfig
    db: Database
    mirror: EmbeddingMirror | None = None

    @property
    def uses_mirror(self) -> bool:
        return self.cfg.retrieval.backend == "memory"

    def reconciler(self) -> Reconciler:
        fetcher = ContentFetcher(build_s3_client(self.cfg.storage), self.cfg.storage.bucket)
        chunker = SentenceChunker(
            max_tokens=self.cfg.chunking.max_tokens,
            overlap_ratio=self.cfg.chunking.overlap_ratio,
        )
        return Reconciler(fetcher, self.db, self.cfg.embedding, chunker, mirror=self.mirror)

    def retriever(self) -> Retriever:
        return Retriever(
            self.db,
            self.cfg.embedding,
            mirror=self.mirror,
            backend=self.cfg.retrieval.backend,
        )

    def warm_mirror(self) -> int:
        """Load stored vectors into the mirror (0 when the mirror is off)."""
        if self.mirror is None:
            return 0
        with open_repository(
            self.db, self.cfg.embedding.model, self.cfg.embedding.dimensions
        ) as repo:
            return self.mirror.warm(repo)


def load_runtime(
    db_path: Path | None = None,
    bucket: str | None = None,
    *,
    require_api_key: bool = True,
) -> Runtime:
    """Load .env and config, apply CLI overrides, configure logging.

    Exits with an actionable message when the config is invalid or the
    embedding provider's API key is missing.
    """
    load_dotenv()
    try:
        cfg = load_config()
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1) from exc

    if db_path is not None:
        cfg.database.path = str(db_path)
    if bucket:
        cfg.storage.bucket = bucket

    configure_logging(cfg.logging.level, json_output=cfg.logging.json)

    if require_api_key:
        try:
            validate_api_key(cfg.embedding.model)
        except EnvironmentError as exc:
            provider = cfg.embedding.model.split("/")[0] if "/" in cfg.embedding.model else "openai"
            console.print(err_no_api_key(provider))
            raise typer.Exit(1) from exc

    mirror = EmbeddingMirror() if cfg.retrieval.backend == "memory" else None
    return Runtime(cfg=cfg, db=Database(cfg.database.path), mirror=mirror)
