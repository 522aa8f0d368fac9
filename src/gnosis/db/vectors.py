"""Per-model sqlite-vec virtual table management."""

from __future__ import annotations

import re
import sqlite3

from gnosis.errors import EmbeddingDimensionMismatch

_DIMENSIONS_RE = re.compile(r"float\[(\d+)\]")


def model_to_slug(model: str) -> str:
    """Convert a provider/model string to a valid table name suffix.

    Examples:
        "openai/text-embedding-3-small" -> "openai_text_embedding_3_small"
        "openai/text-embedding-3-large" -> "openai_text_embedding_3_large"
    """
    return re.sub(r"[^a-z0-9]", "_", model.lower())


def vec_table_name(model_slug: str) -> str:
    """Return the full vec table name for a model slug."""
    return f"vec_chunks_{model_slug}"


def vec_table_dimensions(conn: sqlite3.Connection, table: str) -> int | None:
    """Return the declared vector length of *table*, or None if it does not exist."""
    row = conn.execute(
        "SELECT sql FROM sqlite_master WHERE type='table' AND name=?", (table,)
    ).fetchone()
    if row is None:
        return None
    match = _DIMENSIONS_RE.search(row[0] or "")
    return int(match.group(1)) if match else None


def ensure_vec_table(conn: sqlite3.Connection, model_slug: str, dimensions: int) -> str:
    """Create vec_chunks_{model_slug} if it doesn't already exist.

    Vectors are compared by cosine distance (1 - cosine similarity), so a
    distance of 0 is an identical direction and 2 is the opposite one.

    Args:
        conn: Active database connection (sqlite-vec must be loaded).
        model_slug: Sanitized model identifier (use model_to_slug() to generate).
        dimensions: Embedding vector dimensions (e.g. 3072 for text-embedding-3-large).

    Returns:
        The table name (vec_chunks_{model_slug}).

    Raises:
        EmbeddingDimensionMismatch: If the table exists with another dimension.
    """
    if not re.fullmatch(r"[a-z0-9_]+", model_slug):
        raise ValueError(
            f"Invalid model_slug '{model_slug}' — use model_to_slug() to sanitize."
        )
    if dimensions < 1:
        raise ValueError(f"dimensions must be >= 1, got {dimensions}")

    table = vec_table_name(model_slug)
    existing = vec_table_dimensions(conn, table)

    if existing is None:
        conn.execute(
            f"CREATE VIRTUAL TABLE IF NOT EXISTS {table} "
            f"USING vec0(embedding float[{dimensions}] distance_metric=cosine)"
        )
        conn.commit()
    elif existing != dimensions:
        raise EmbeddingDimensionMismatch(existing, dimensions, where=table)

    return table
