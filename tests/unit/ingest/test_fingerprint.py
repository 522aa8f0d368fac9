"""Tests for content fingerprints and ChangeDetector."""

from __future__ import annotations

import hashlib

import pytest

from gnosis.ingest.fingerprint import ChangeDetector, content_hash


@pytest.fixture
def detector(repo):
    return ChangeDetector(repo)


def test_content_hash_is_sha256_hex():
    digest = content_hash("hello")
    assert digest == hashlib.sha256(b"hello").hexdigest()
    assert len(digest) == 64


def test_content_hash_utf8():
    assert content_hash("café") == hashlib.sha256("café".encode()).hexdigest()


def test_first_sighting_is_changed(detector, repo):
    assert detector.has_changed("faq.md", "v1") is True
    assert repo.get_hash("faq.md") == content_hash("v1")


def test_same_text_unchanged_second_time(detector):
    detector.has_changed("faq.md", "v1")
    assert detector.has_changed("faq.md", "v1") is False


def test_edit_detected_and_stored(detector, repo):
    detector.has_changed("faq.md", "v1")
    assert detector.has_changed("faq.md", "v2") is True
    assert repo.get_hash("faq.md") == content_hash("v2")


def test_check_has_no_side_effect(detector, repo):
    changed, digest = detector.check("faq.md", "v1")
    assert changed is True
    assert digest == content_hash("v1")
    assert repo.get_hash("faq.md") is None


def test_forget(detector, repo):
    detector.has_changed("faq.md", "v1")
    detector.forget("faq.md")
    assert repo.get_hash("faq.md") is None
    assert detector.has_changed("faq.md", "v1") is True
