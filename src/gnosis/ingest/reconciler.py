"""Reconciler — bring the embedding store in line with the corpus.

One pass:
  1. Fetch the corpus snapshot (a listing failure aborts the pass).
  2. Remove every stored file that is no longer listed.
  3. For each decoded document, skip it when its fingerprint is unchanged and
     it still has chunks (or yields none); otherwise chunk, embed, and atomically replace its
     chunks and fingerprint.

Vectors are computed before anything is deleted, so a failed embedding call
leaves the file's previous chunks in place. Passes are single-flight: a pass
requested while another is running is skipped, not queued.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field

from gnosis.config import EmbeddingCfg
from gnosis.db.connection import Database
from gnosis.db.repository import Repository, open_repository
from gnosis.errors import GnosisError
from gnosis.ingest.chunker import SentenceChunker
from gnosis.ingest.fetcher import ContentFetcher, Document, FetchOutcome
from gnosis.ingest.fingerprint import ChangeDetector
from gnosis.log import get_logger
from gnosis.rag.llm_client import Embedder
from gnosis.rag.mirror import EmbeddingMirror

logger = get_logger(__name__)


@dataclass
class ReconcileReport:
    """Summary of one reconciliation pass."""

    removed: list[str] = field(default_factory=list)
    updated: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)
    fetch_failures: list[FetchOutcome] = field(default_factory=list)
    chunks_written: int = 0
    duration: float = 0.0

    @property
    def changed(self) -> bool:
        return bool(self.removed or self.updated)


class Reconciler:
    """Synchronise the corpus into the embedding store.

    Args:
        fetcher: Source of the corpus snapshot.
        db: Database holding chunks and fingerprints.
        embedding_cfg: Embedding model settings (shared with retrieval).
        chunker: Sentence chunker; defaults to 150 tokens / 0.2 overlap.
        mirror: Optional in-memory mirror kept in step with every commit.
    """

    def __init__(
        self,
        fetcher: ContentFetcher,
        db: Database,
        embedding_cfg: EmbeddingCfg,
        chunker: SentenceChunker | None = None,
        mirror: EmbeddingMirror | None = None,
    ) -> None:
        self._fetcher = fetcher
        self._db = db
        self._embedding_cfg = embedding_cfg
        self._embedder = Embedder(embedding_cfg)
        self._chunker = chunker or SentenceChunker()
        self._mirror = mirror
        self._lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    def run_pass(self) -> ReconcileReport | None:
        """Run one reconciliation pass.

        Returns:
            The pass report, or None when another pass is already running.

        Raises:
            CorpusListingError: The bucket could not be listed.
        """
        if not self._lock.acquire(blocking=False):
            logger.warning("reconcile_skipped", reason="pass already running")
            return None
        try:
            return self._run()
        finally:
            self._lock.release()

    # ------------------------------------------------------------------
    # Pass body
    # ------------------------------------------------------------------

    def _run(self) -> ReconcileReport:
        started = time.monotonic()
        report = ReconcileReport()

        snapshot = self._fetcher.fetch_corpus()
        report.fetch_failures = list(snapshot.failures)

        with open_repository(
            self._db, self._embedding_cfg.model, self._embedding_cfg.dimensions
        ) as repo:
            store_was_empty = repo.count_chunks() == 0

            known = repo.list_distinct_file_ids() | {
                fp.file_name for fp in repo.list_fingerprints()
            }
            for file_id in sorted(known - snapshot.listed_keys):
                self._remove(repo, file_id, report)

            detector = ChangeDetector(repo)
            counts = repo.chunk_counts_by_file()
            for document in snapshot.documents:
                changed, digest = detector.check(document.file_id, document.text)
                has_chunks = counts.get(document.file_id, 0) > 0
                if not store_was_empty and not changed and has_chunks:
                    report.skipped.append(document.file_id)
                    continue
                chunks = self._chunker.split(document.text)
                if not changed and not chunks:
                    # fingerprinted and nothing to embed
                    report.skipped.append(document.file_id)
                    continue
                self._process(repo, document, chunks, digest, report)

        report.duration = time.monotonic() - started
        self._log_summary(report, store_was_empty)
        return report

    def _remove(self, repo: Repository, file_id: str, report: ReconcileReport) -> None:
        try:
            removed = repo.remove_file(file_id)
        except Exception as exc:  # per-file storage failure must not abort the pass
            logger.error("file_remove_failed", file=file_id, error=str(exc))
            report.failed[file_id] = str(exc)
            return
        if self._mirror is not None:
            self._mirror.drop(file_id)
        report.removed.append(file_id)
        logger.info("file_removed", file=file_id, chunks=removed)

    def _process(
        self,
        repo: Repository,
        document: Document,
        chunks: list[str],
        digest: str,
        report: ReconcileReport,
    ) -> None:
        file_id = document.file_id
        labeled = [document.label(chunk) for chunk in chunks]
        try:
            vectors = self._embedder.embed_many(labeled)
            rows = list(zip(labeled, vectors))
            written = repo.replace_file_chunks(file_id, rows, content_hash=digest)
        except GnosisError as exc:
            logger.error("file_embed_failed", file=file_id, error=str(exc))
            report.failed[file_id] = str(exc)
            return
        except Exception as exc:  # storage failure: old chunks stay, next pass retries
            logger.exception("file_update_failed", file=file_id)
            report.failed[file_id] = str(exc)
            return

        if self._mirror is not None:
            self._mirror.replace(file_id, rows)
        report.updated.append(file_id)
        report.chunks_written += written
        logger.info("file_updated", file=file_id, chunks=written)

    @staticmethod
    def _log_summary(report: ReconcileReport, store_was_empty: bool) -> None:
        if report.changed or report.failed:
            logger.info(
                "reconcile_complete",
                removed=len(report.removed),
                updated=len(report.updated),
                skipped=len(report.skipped),
                failed=len(report.failed),
                fetch_failures=len(report.fetch_failures),
                chunks_written=report.chunks_written,
                duration=round(report.duration, 3),
            )
        elif store_was_empty and not report.skipped:
            logger.info("reconcile_complete", status="corpus empty")
        else:
            logger.info("reconcile_complete", status="up to date", files=len(report.skipped))
