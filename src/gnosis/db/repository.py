"""Repository for all knowledge-base database operations.

Single interface for: file fingerprints, chunks, vec embeddings.
Single-row operations commit immediately; the per-file operations
(replace_file_chunks, remove_file) run in one transaction so a concurrent
reader sees either the old or the new state of a file, never a mix.
"""

from __future__ import annotations

import json
import sqlite3
from collections.abc import Iterable, Iterator, Sequence
from contextlib import contextmanager

import numpy as np

from gnosis.db.connection import Database
from gnosis.db.models import FileFingerprint, SearchHit, StoredChunk
from gnosis.db.schema import initialize
from gnosis.errors import EmbeddingDimensionMismatch

# sqlite-vec rejects KNN queries with k above this.
KNN_LIMIT = 4096


class Repository:
    """Data access layer for fingerprints, chunks and their vectors.

    Wraps an open sqlite3.Connection plus the name of the vec table for the
    active embedding model. The connection is owned by the caller.
    """

    def __init__(self, conn: sqlite3.Connection, vec_table: str, dimensions: int) -> None:
        """Initialise with an open, initialised database connection.

        Args:
            conn: An open sqlite3.Connection with sqlite-vec loaded and schema
                initialised (see gnosis.db.schema.initialize).
            vec_table: Vec table returned by initialize().
            dimensions: Vector length stored in *vec_table*.
        """
        self._conn = conn
        self._vec_table = vec_table
        self._dimensions = dimensions

    @property
    def vec_table(self) -> str:
        return self._vec_table

    # ------------------------------------------------------------------
    # Fingerprints
    # ------------------------------------------------------------------

    def get_hash(self, file_name: str) -> str | None:
        """Return the stored content hash for *file_name*, or None."""
        row = self._conn.execute(
            "SELECT hash FROM file_hashes WHERE file_name = ?", (file_name,)
        ).fetchone()
        return row["hash"] if row else None

    def upsert_hash(self, file_name: str, content_hash: str) -> None:
        """Insert or update the fingerprint for *file_name*."""
        self._upsert_hash(file_name, content_hash)
        self._conn.commit()

    def delete_hash(self, file_name: str) -> None:
        """Delete the fingerprint for *file_name* (no-op if absent)."""
        self._conn.execute("DELETE FROM file_hashes WHERE file_name = ?", (file_name,))
        self._conn.commit()

    def list_fingerprints(self) -> list[FileFingerprint]:
        """Return all fingerprints ordered by file name."""
        rows = self._conn.execute(
            "SELECT file_name, hash, updated_at FROM file_hashes ORDER BY file_name"
        ).fetchall()
        return [
            FileFingerprint(
                file_name=r["file_name"], content_hash=r["hash"], updated_at=r["updated_at"]
            )
            for r in rows
        ]

    # ------------------------------------------------------------------
    # Chunks + vectors
    # ------------------------------------------------------------------

    def insert_chunk(self, file_name: str, text: str, vector: Sequence[float]) -> int:
        """Append one chunk row and its vector. Returns the new rowid."""
        rowid = self._insert_chunk(file_name, text, vector)
        self._conn.commit()
        return rowid

    def delete_by_file(self, file_name: str) -> int:
        """Delete every chunk (and vector) of *file_name*. Returns rows removed."""
        removed = self._delete_chunks(file_name)
        self._conn.commit()
        return removed

    def count_chunks(self) -> int:
        return self._conn.execute("SELECT COUNT(*) FROM chunks").fetchone()[0]

    def count_chunks_by_file(self, file_name: str) -> int:
        return self._conn.execute(
            "SELECT COUNT(*) FROM chunks WHERE file_name = ?", (file_name,)
        ).fetchone()[0]

    def chunk_counts_by_file(self) -> dict[str, int]:
        """Return {file_name: chunk count} for every file with stored chunks."""
        rows = self._conn.execute(
            "SELECT file_name, COUNT(*) AS n FROM chunks GROUP BY file_name ORDER BY file_name"
        ).fetchall()
        return {r["file_name"]: r["n"] for r in rows}

    def list_distinct_file_ids(self) -> set[str]:
        rows = self._conn.execute("SELECT DISTINCT file_name FROM chunks").fetchall()
        return {r["file_name"] for r in rows}

    def load_all(self) -> list[StoredChunk]:
        """Full scan of chunks with their vectors, in storage order."""
        rows = self._conn.execute(
            f"""
            SELECT c.id, c.file_name, c.chunk, v.embedding
            FROM chunks c JOIN {self._vec_table} v ON v.rowid = c.id
            ORDER BY c.id
            """
        ).fetchall()
        return [
            StoredChunk(
                file_name=r["file_name"],
                text=r["chunk"],
                vector=np.frombuffer(r["embedding"], dtype=np.float32).tolist(),
                rowid=r["id"],
            )
            for r in rows
        ]

    def query(self, vector: Sequence[float], top_n: int) -> list[SearchHit]:
        """Return the *top_n* chunks nearest to *vector*, closest first.

        Distance is cosine distance; equal distances keep storage order.
        *top_n* is capped at KNN_LIMIT, the largest k sqlite-vec accepts.
        """
        if top_n < 1:
            return []
        self._check_dimensions(vector, "query")
        vec_rows = self._conn.execute(
            f"SELECT rowid, distance FROM {self._vec_table} "
            "WHERE embedding MATCH ? ORDER BY distance LIMIT ?",
            (json.dumps(list(vector)), min(top_n, KNN_LIMIT)),
        ).fetchall()
        if not vec_rows:
            return []

        ids = [r["rowid"] for r in vec_rows]
        chunks = {
            r["id"]: r
            for r in self._conn.execute(
                "SELECT id, file_name, chunk FROM chunks "
                "WHERE id IN (SELECT value FROM json_each(?))",
                (json.dumps(ids),),
            ).fetchall()
        }
        ranked = sorted(
            (r for r in vec_rows if r["rowid"] in chunks),
            key=lambda r: (r["distance"], r["rowid"]),
        )
        return [
            SearchHit(
                file_name=chunks[r["rowid"]]["file_name"],
                text=chunks[r["rowid"]]["chunk"],
                distance=float(r["distance"]),
                rowid=r["rowid"],
            )
            for r in ranked
        ]

    # ------------------------------------------------------------------
    # Per-file transactional operations
    # ------------------------------------------------------------------

    def replace_file_chunks(
        self,
        file_name: str,
        rows: Iterable[tuple[str, Sequence[float]]],
        content_hash: str | None = None,
    ) -> int:
        """Atomically swap the chunks of *file_name* for *rows*.

        Deletes the old chunks, inserts the new (text, vector) pairs and, when
        *content_hash* is given, upserts the fingerprint, all in one
        transaction. Returns the number of chunks inserted.
        """
        rows = list(rows)
        for _, vector in rows:
            self._check_dimensions(vector, file_name)

        with self._transaction():
            self._delete_chunks(file_name)
            for text, vector in rows:
                self._insert_chunk(file_name, text, vector)
            if content_hash is not None:
                self._upsert_hash(file_name, content_hash)
        return len(rows)

    def remove_file(self, file_name: str) -> int:
        """Delete all chunks and the fingerprint of *file_name* in one transaction."""
        with self._transaction():
            removed = self._delete_chunks(file_name)
            self._conn.execute("DELETE FROM file_hashes WHERE file_name = ?", (file_name,))
        return removed

    # ------------------------------------------------------------------
    # Internals (no commit)
    # ------------------------------------------------------------------

    @contextmanager
    def _transaction(self) -> Iterator[None]:
        """Commit on success, roll back on any exception."""
        try:
            yield
        except BaseException:
            self._conn.rollback()
            raise
        self._conn.commit()

    def _insert_chunk(self, file_name: str, text: str, vector: Sequence[float]) -> int:
        self._check_dimensions(vector, file_name)
        cur = self._conn.execute(
            "INSERT INTO chunks (file_name, chunk) VALUES (?, ?)", (file_name, text)
        )
        rowid = cur.lastrowid
        self._conn.execute(
            f"INSERT INTO {self._vec_table}(rowid, embedding) VALUES (?, ?)",
            (rowid, json.dumps(list(vector))),
        )
        return rowid

    def _delete_chunks(self, file_name: str) -> int:
        rowids = [
            r[0]
            for r in self._conn.execute(
                "SELECT id FROM chunks WHERE file_name = ?", (file_name,)
            ).fetchall()
        ]
        if not rowids:
            return 0
        placeholders = ",".join("?" * len(rowids))
        self._conn.execute(
            f"DELETE FROM {self._vec_table} WHERE rowid IN ({placeholders})", rowids  # noqa: S608
        )
        self._conn.execute("DELETE FROM chunks WHERE file_name = ?", (file_name,))
        return len(rowids)

    def _upsert_hash(self, file_name: str, content_hash: str) -> None:
        self._conn.execute(
            """
            INSERT INTO file_hashes (file_name, hash)
            VALUES (?, ?)
            ON CONFLICT(file_name) DO UPDATE SET
                hash = excluded.hash,
                updated_at = datetime('now')
            """,
            (file_name, content_hash),
        )

    def _check_dimensions(self, vector: Sequence[float], where: str) -> None:
        if len(vector) != self._dimensions:
            raise EmbeddingDimensionMismatch(self._dimensions, len(vector), where=where)


@contextmanager
def open_repository(
    db: Database, embedding_model: str, dimensions: int
) -> Iterator[Repository]:
    """Open a connection, initialise the schema, and yield a Repository."""
    with db.session() as conn:
        vec_table = initialize(conn, embedding_model, dimensions)
        yield Repository(conn, vec_table, dimensions)
