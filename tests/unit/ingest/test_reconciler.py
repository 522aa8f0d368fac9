"""Tests for the Reconciler (incremental corpus → embedding store sync)."""

from __future__ import annotations

import pytest

from gnosis.db.repository import open_repository
from gnosis.errors import CorpusListingError
from gnosis.ingest.chunker import SentenceChunker
from gnosis.ingest.fetcher import ContentFetcher, FetchStatus
from gnosis.ingest.fingerprint import content_hash
from gnosis.ingest.reconciler import Reconciler
from gnosis.rag.mirror import EmbeddingMirror


@pytest.fixture
def mirror():
    return EmbeddingMirror()


@pytest.fixture
def reconciler(fake_s3, database, embedding_cfg, mirror, keyword_embedding):
    fetcher = ContentFetcher(fake_s3, "web-chatbot-docs")
    return Reconciler(fetcher, database, embedding_cfg, SentenceChunker(), mirror=mirror)


@pytest.fixture
def store(database, embedding_cfg):
    """Open a repository on the reconciler's database for assertions."""

    def _open():
        return open_repository(database, embedding_cfg.model, embedding_cfg.dimensions)

    return _open


def _chunks(store) -> dict[str, list[str]]:
    with store() as repo:
        result: dict[str, list[str]] = {}
        for chunk in repo.load_all():
            result.setdefault(chunk.file_name, []).append(chunk.text)
        return result


# ------------------------------------------------------------------
# First pass
# ------------------------------------------------------------------

def test_first_pass_embeds_every_file(fake_s3, reconciler, store):
    fake_s3.objects = {
        "faq.md": b"We open at nine.",
        "prices.txt": b"Cleaning pricing starts at 80 EUR.",
    }

    report = reconciler.run_pass()

    assert sorted(report.updated) == ["faq.md", "prices.txt"]
    assert report.chunks_written == 2
    assert _chunks(store) == {
        "faq.md": ["[faq.md]\nWe open at nine."],
        "prices.txt": ["[prices.txt]\nCleaning pricing starts at 80 EUR."],
    }
    with store() as repo:
        assert repo.get_hash("faq.md") == content_hash("We open at nine.")


def test_empty_bucket(reconciler, store):
    report = reconciler.run_pass()
    assert report.updated == []
    assert report.removed == []
    assert _chunks(store) == {}


def test_embeddings_sent_in_batches(fake_s3, reconciler, keyword_embedding):
    # batch_size=2 in the test config; one sentence per chunk at max_tokens=2
    reconciler._chunker = SentenceChunker(max_tokens=2, overlap_ratio=0.0)
    fake_s3.objects = {"a.txt": b"One one. Two two. Six six. Ten ten. Ok ok."}

    report = reconciler.run_pass()

    assert report.chunks_written == 5
    assert keyword_embedding.call_count == 3
    assert [len(c.kwargs["input"]) for c in keyword_embedding.call_args_list] == [2, 2, 1]


# ------------------------------------------------------------------
# Idempotence and change detection
# ------------------------------------------------------------------

def test_second_pass_is_a_no_op(fake_s3, reconciler, keyword_embedding, store):
    fake_s3.objects = {"faq.md": b"We open at nine.", "b.txt": b"Beta."}
    reconciler.run_pass()
    before = _chunks(store)
    calls = keyword_embedding.call_count

    report = reconciler.run_pass()

    assert report.updated == []
    assert sorted(report.skipped) == ["b.txt", "faq.md"]
    assert keyword_embedding.call_count == calls
    assert _chunks(store) == before


def test_file_without_text_settles_after_first_pass(fake_s3, reconciler, store):
    fake_s3.objects = {"empty.txt": b"   \n", "a.txt": b"Hello world."}
    first = reconciler.run_pass()
    assert sorted(first.updated) == ["a.txt", "empty.txt"]
    with store() as repo:
        stamped = repo.get_hash("empty.txt")

    second = reconciler.run_pass()

    assert second.updated == []
    assert not second.changed
    assert sorted(second.skipped) == ["a.txt", "empty.txt"]
    with store() as repo:
        assert repo.get_hash("empty.txt") == stamped
        assert repo.count_chunks_by_file("empty.txt") == 0


def test_only_textless_files_settle_on_empty_store(fake_s3, reconciler):
    fake_s3.objects = {"scan.pdf.txt": b""}
    reconciler.run_pass()
    report = reconciler.run_pass()
    assert report.updated == []
    assert report.skipped == ["scan.pdf.txt"]


def test_edited_file_is_reembedded_alone(fake_s3, reconciler, store):
    fake_s3.objects = {"faq.md": b"We open at nine.", "b.txt": b"Beta."}
    reconciler.run_pass()

    fake_s3.objects["faq.md"] = b"We open at ten."
    report = reconciler.run_pass()

    assert report.updated == ["faq.md"]
    assert report.skipped == ["b.txt"]
    assert _chunks(store)["faq.md"] == ["[faq.md]\nWe open at ten."]


def test_empty_store_forces_reembedding(fake_s3, reconciler, store):
    fake_s3.objects = {"faq.md": b"We open at nine."}
    reconciler.run_pass()
    with store() as repo:
        repo.delete_by_file("faq.md")  # fingerprint survives

    report = reconciler.run_pass()

    assert report.updated == ["faq.md"]
    assert _chunks(store) == {"faq.md": ["[faq.md]\nWe open at nine."]}


def test_file_with_fingerprint_but_no_chunks_is_recovered(fake_s3, reconciler, store):
    fake_s3.objects = {"faq.md": b"We open at nine.", "b.txt": b"Beta."}
    reconciler.run_pass()
    with store() as repo:
        repo.delete_by_file("faq.md")

    report = reconciler.run_pass()

    assert report.updated == ["faq.md"]
    assert report.skipped == ["b.txt"]


# ------------------------------------------------------------------
# Deletion and failures
# ------------------------------------------------------------------

def test_deleted_file_is_removed(fake_s3, reconciler, mirror, store):
    fake_s3.objects = {"faq.md": b"We open at nine.", "old.txt": b"Old news."}
    reconciler.run_pass()

    del fake_s3.objects["old.txt"]
    report = reconciler.run_pass()

    assert report.removed == ["old.txt"]
    assert set(_chunks(store)) == {"faq.md"}
    with store() as repo:
        assert repo.get_hash("old.txt") is None
    assert mirror.file_ids() == {"faq.md"}


def test_orphan_fingerprint_is_removed(fake_s3, reconciler, store):
    with store() as repo:
        repo.upsert_hash("ghost.txt", "0" * 64)

    report = reconciler.run_pass()

    assert report.removed == ["ghost.txt"]
    with store() as repo:
        assert repo.list_fingerprints() == []


def test_download_failure_keeps_previous_chunks(fake_s3, reconciler, store):
    fake_s3.objects = {"faq.md": b"We open at nine."}
    reconciler.run_pass()

    fake_s3.fail_get.add("faq.md")
    report = reconciler.run_pass()

    assert report.removed == []
    assert report.fetch_failures[0].status is FetchStatus.DOWNLOAD_ERROR
    assert _chunks(store) == {"faq.md": ["[faq.md]\nWe open at nine."]}


def test_decode_failure_keeps_previous_chunks(fake_s3, reconciler, store):
    fake_s3.objects = {"hours.json": b'{"mon": "9-17"}'}
    reconciler.run_pass()

    fake_s3.objects["hours.json"] = b"{broken"
    report = reconciler.run_pass()

    assert report.removed == []
    assert report.fetch_failures[0].status is FetchStatus.DECODE_ERROR
    assert "hours.json" in _chunks(store)


def test_embedding_failure_keeps_previous_chunks(fake_s3, reconciler, keyword_embedding, store):
    fake_s3.objects = {"faq.md": b"We open at nine.", "b.txt": b"Beta."}
    reconciler.run_pass()

    fake_s3.objects["faq.md"] = b"We open at ten."
    fake_s3.objects["c.txt"] = b"Gamma."
    original = keyword_embedding.side_effect

    def _flaky(model, input, num_retries=0):
        if any("ten" in text for text in input):
            raise RuntimeError("rate limited")
        return original(model, input, num_retries)

    keyword_embedding.side_effect = _flaky
    report = reconciler.run_pass()

    assert "faq.md" in report.failed
    assert report.updated == ["c.txt"]
    assert _chunks(store)["faq.md"] == ["[faq.md]\nWe open at nine."]
    with store() as repo:
        assert repo.get_hash("faq.md") == content_hash("We open at nine.")

    # Next pass retries the file
    keyword_embedding.side_effect = original
    report = reconciler.run_pass()
    assert report.updated == ["faq.md"]


def test_listing_failure_aborts_pass(fake_s3, reconciler, store):
    fake_s3.objects = {"faq.md": b"We open at nine."}
    reconciler.run_pass()

    fake_s3.fail_list = True
    with pytest.raises(CorpusListingError):
        reconciler.run_pass()
    assert "faq.md" in _chunks(store)

    fake_s3.fail_list = False
    assert reconciler.run_pass() is not None


# ------------------------------------------------------------------
# Single flight and mirror
# ------------------------------------------------------------------

def test_overlapping_pass_is_skipped(fake_s3, reconciler):
    fake_s3.objects = {"faq.md": b"We open at nine."}
    inner: list[object] = []
    fetch = reconciler._fetcher.fetch_corpus

    def _reentrant(*args, **kwargs):
        inner.append(reconciler.run_pass())
        return fetch(*args, **kwargs)

    reconciler._fetcher.fetch_corpus = _reentrant
    report = reconciler.run_pass()

    assert inner == [None]
    assert report is not None
    assert not reconciler.is_running


def test_mirror_tracks_store(fake_s3, reconciler, mirror):
    fake_s3.objects = {"faq.md": b"We open at nine.", "prices.txt": b"Pricing."}
    reconciler.run_pass()

    assert mirror.file_ids() == {"faq.md", "prices.txt"}
    assert len(mirror) == 2


# ------------------------------------------------------------------
# End to end
# ------------------------------------------------------------------

def test_add_unchanged_remove_cycle(fake_s3, reconciler, store):
    fake_s3.objects = {"a.txt": b"Hello world. This is a test."}

    first = reconciler.run_pass()
    with store() as repo:
        assert len(repo.list_fingerprints()) == 1
        assert repo.count_chunks_by_file("a.txt") >= 1
        stored_hash = repo.get_hash("a.txt")

    second = reconciler.run_pass()
    assert first.chunks_written >= 1
    assert second.chunks_written == 0
    with store() as repo:
        assert repo.get_hash("a.txt") == stored_hash

    fake_s3.objects = {}
    reconciler.run_pass()
    with store() as repo:
        assert repo.list_fingerprints() == []
        assert repo.count_chunks() == 0
        assert repo.list_distinct_file_ids() == set()
