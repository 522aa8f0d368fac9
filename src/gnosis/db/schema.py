"""Database initialization: relational schema plus the model's vec table."""

from __future__ import annotations

import sqlite3

from gnosis.db.migrations import run_migrations
from gnosis.db.vectors import ensure_vec_table, model_to_slug


def initialize(conn: sqlite3.Connection, embedding_model: str, dimensions: int) -> str:
    """Run pending migrations and ensure the vec table for *embedding_model*.

    Idempotent. Returns the vec table name the repository should use.
    """
    run_migrations(conn)
    return ensure_vec_table(conn, model_to_slug(embedding_model), dimensions)
