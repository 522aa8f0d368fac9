"""In-memory mirror of the stored chunk vectors.

Optional retrieval backend (``retrieval.backend: memory``). The mirror is
warmed from the database once, then kept in step by the reconciler after
every committed file change. Queries are exact cosine-distance scans over a
numpy matrix, so results match the database backend up to float rounding.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable, Sequence

import numpy as np

from gnosis.db.models import SearchHit, StoredChunk
from gnosis.db.repository import Repository


class EmbeddingMirror:
    """Thread-safe in-memory copy of ``(file, chunk, vector)`` rows.

    Row order is insertion order; within a file it follows chunk order, which
    makes ties in :meth:`query` resolve the same way as the database backend.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._rows: dict[str, list[StoredChunk]] = {}
        self._matrix: np.ndarray | None = None
        self._flat: list[StoredChunk] = []

    def __len__(self) -> int:
        with self._lock:
            return sum(len(rows) for rows in self._rows.values())

    def file_ids(self) -> set[str]:
        with self._lock:
            return set(self._rows)

    def warm(self, repo: Repository) -> int:
        """Replace the mirror's contents with every stored chunk. Returns rows loaded."""
        by_file: dict[str, list[StoredChunk]] = {}
        for chunk in repo.load_all():
            by_file.setdefault(chunk.file_name, []).append(chunk)
        with self._lock:
            self._rows = by_file
            self._invalidate()
        return sum(len(rows) for rows in by_file.values())

    def replace(self, file_id: str, rows: Iterable[tuple[str, Sequence[float]]]) -> None:
        """Swap the rows of *file_id* for ``(text, vector)`` pairs."""
        chunks = [
            StoredChunk(file_name=file_id, text=text, vector=list(vector))
            for text, vector in rows
        ]
        with self._lock:
            self._rows.pop(file_id, None)
            if chunks:
                self._rows[file_id] = chunks
            self._invalidate()

    def drop(self, file_id: str) -> None:
        with self._lock:
            if self._rows.pop(file_id, None) is not None:
                self._invalidate()

    def query(self, vector: Sequence[float], top_n: int) -> list[SearchHit]:
        """Return the *top_n* rows nearest to *vector* by cosine distance."""
        if top_n < 1:
            return []
        with self._lock:
            matrix, flat = self._snapshot()
        if matrix is None:
            return []

        q = np.asarray(vector, dtype=np.float32)
        if q.shape[0] != matrix.shape[1]:
            raise ValueError(
                f"Query vector has {q.shape[0]} dimensions, mirror holds {matrix.shape[1]}"
            )

        norms = _safe_norm(np.linalg.norm(matrix, axis=1) * np.linalg.norm(q))
        distances = 1.0 - (matrix @ q) / norms
        order = np.argsort(distances, kind="stable")[:top_n]
        return [
            SearchHit(
                file_name=flat[i].file_name,
                text=flat[i].text,
                distance=float(distances[i]),
                rowid=flat[i].rowid,
            )
            for i in order
        ]

    # ------------------------------------------------------------------
    # Internals (caller holds the lock)
    # ------------------------------------------------------------------

    def _invalidate(self) -> None:
        self._matrix = None
        self._flat = []

    def _snapshot(self) -> tuple[np.ndarray | None, list[StoredChunk]]:
        if self._matrix is None:
            self._flat = [chunk for rows in self._rows.values() for chunk in rows]
            if self._flat:
                self._matrix = np.asarray(
                    [chunk.vector for chunk in self._flat], dtype=np.float32
                )
        return self._matrix, self._flat


def _safe_norm(norms: np.ndarray) -> np.ndarray:
    # Zero vectors get distance 1.0 instead of NaN.
    return np.where(norms == 0, np.inf, norms)
