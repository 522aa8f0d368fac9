"""Dense retriever: nearest stored chunks for a visitor message.

The query is embedded with the same model as ingestion. Twice ``top_k``
candidates are fetched, then filtered to cosine similarity >= ``min_score``
(distance <= ``1 - min_score``). When fewer than ``top_k`` candidates pass the
filter, the unfiltered top ``top_k`` are returned instead, so a non-empty
store always yields answers.
"""

from __future__ import annotations

from gnosis.config import EmbeddingCfg
from gnosis.db.connection import Database
from gnosis.db.models import SearchHit
from gnosis.db.repository import KNN_LIMIT, open_repository
from gnosis.rag.llm_client import Embedder
from gnosis.rag.mirror import EmbeddingMirror

_OVERFETCH = 2


class Retriever:
    """Ranks stored chunks against a query.

    Args:
        db: Database written by the reconciler.
        embedding_cfg: Embedding settings, identical to ingestion's.
        mirror: In-memory mirror, required when *backend* is 'memory'.
        backend: 'database' (sqlite-vec KNN) or 'memory' (mirror scan).
    """

    def __init__(
        self,
        db: Database,
        embedding_cfg: EmbeddingCfg,
        mirror: EmbeddingMirror | None = None,
        backend: str = "database",
    ) -> None:
        if backend not in ("database", "memory"):
            raise ValueError(f"Unknown retrieval backend '{backend}'")
        if backend == "memory" and mirror is None:
            raise ValueError("The 'memory' backend needs an EmbeddingMirror")
        self._db = db
        self._embedding_cfg = embedding_cfg
        self._embedder = Embedder(embedding_cfg)
        self._mirror = mirror
        self._backend = backend

    def search(self, query: str, top_k: int = 5, min_score: float = 0.75) -> list[SearchHit]:
        """Return up to *top_k* hits, closest first, with their distances."""
        if not query.strip() or top_k < 1:
            return []

        vector = self._embedder.embed_one(query)
        candidates = self._candidates(vector, min(top_k * _OVERFETCH, KNN_LIMIT))

        max_distance = 1.0 - min_score
        passing = [hit for hit in candidates if hit.distance <= max_distance]
        if len(passing) < top_k:
            return candidates[:top_k]
        return passing[:top_k]

    def retrieve(self, query_text: str, top_k: int = 5, min_score: float = 0.75) -> list[str]:
        """Return the chunk texts of :meth:`search`, closest first."""
        return [hit.text for hit in self.search(query_text, top_k, min_score)]

    get_relevant_chunks_for_message = retrieve

    def _candidates(self, vector: list[float], limit: int) -> list[SearchHit]:
        if self._backend == "memory":
            assert self._mirror is not None
            return self._mirror.query(vector, limit)
        with open_repository(
            self._db, self._embedding_cfg.model, self._embedding_cfg.dimensions
        ) as repo:
            return repo.query(vector, limit)
