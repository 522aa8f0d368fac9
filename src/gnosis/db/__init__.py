"""Gnosis database layer."""

from gnosis.db.connection import Database
from gnosis.db.migrations import MIGRATIONS, run_migrations
from gnosis.db.models import FileFingerprint, SearchHit, StoredChunk
from gnosis.db.repository import Repository, open_repository
from gnosis.db.schema import initialize
from gnosis.db.vectors import ensure_vec_table, model_to_slug, vec_table_name

__all__ = [
    "Database",
    "FileFingerprint",
    "MIGRATIONS",
    "Repository",
    "SearchHit",
    "StoredChunk",
    "ensure_vec_table",
    "initialize",
    "model_to_slug",
    "open_repository",
    "run_migrations",
    "vec_table_name",
]
