"""Shared pytest fixtures."""

from __future__ import annotations

import logging
from io import BytesIO
from unittest.mock import MagicMock

import pytest
import structlog
from botocore.exceptions import ClientError

from gnosis.config import EmbeddingCfg
from gnosis.db.connection import Database
from gnosis.db.repository import Repository
from gnosis.db.schema import initialize

TEST_MODEL = "openai/text-embedding-test"
TEST_DIMS = 3


@pytest.fixture(autouse=True)
def _no_ambient_config(monkeypatch, tmp_path):
    """Keep host env vars and ~/.gnosis out of every test."""
    for var in (
        "GNOSIS_BUCKET",
        "GNOSIS_S3_ENDPOINT",
        "GNOSIS_DB_PATH",
        "GNOSIS_EMBEDDING_MODEL",
        "GNOSIS_EMBEDDING_DIMENSIONS",
        "GNOSIS_REFRESH_MINUTES",
        "GNOSIS_LOG_LEVEL",
    ):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setattr("gnosis.config._GLOBAL_CONFIG_PATH", tmp_path / "no-global.yaml")


@pytest.fixture(autouse=True)
def _reset_logging():
    """CLI commands configure logging against CliRunner's streams; undo that."""
    yield
    structlog.reset_defaults()
    logging.getLogger().handlers.clear()


@pytest.fixture
def embedding_cfg():
    return EmbeddingCfg(model=TEST_MODEL, dimensions=TEST_DIMS, batch_size=2)


@pytest.fixture
def database(tmp_path):
    return Database(tmp_path / ".gnosis.db")


@pytest.fixture
def tmp_db(database):
    """File-based DB in tmp_path with schema initialized, closed after test."""
    conn = database.connect()
    initialize(conn, TEST_MODEL, TEST_DIMS)
    yield conn
    conn.close()


@pytest.fixture
def repo(tmp_db):
    return Repository(tmp_db, initialize(tmp_db, TEST_MODEL, TEST_DIMS), TEST_DIMS)


# ------------------------------------------------------------------
# Fake object store
# ------------------------------------------------------------------


def _client_error(operation: str, code: str = "NoSuchKey") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": "boom"}}, operation)


class FakeS3:
    """In-memory stand-in for the boto3 S3 calls the fetcher makes."""

    def __init__(self, objects: dict[str, bytes] | None = None, page_size: int = 1000) -> None:
        self.objects: dict[str, bytes] = dict(objects or {})
        self.page_size = page_size
        self.fail_get: set[str] = set()
        self.fail_list = False
        self.pages_served = 0

    def get_paginator(self, name: str):
        assert name == "list_objects_v2"
        paginator = MagicMock()
        paginator.paginate.side_effect = self._paginate
        return paginator

    def _paginate(self, Bucket: str):
        if self.fail_list:
            raise _client_error("ListObjectsV2", "NoSuchBucket")
        keys = sorted(self.objects)
        if not keys:
            self.pages_served += 1
            yield {"KeyCount": 0}
            return
        for start in range(0, len(keys), self.page_size):
            self.pages_served += 1
            yield {"Contents": [{"Key": k} for k in keys[start : start + self.page_size]]}

    def get_object(self, Bucket: str, Key: str):
        if Key in self.fail_get or Key not in self.objects:
            raise _client_error("GetObject")
        return {"Body": BytesIO(self.objects[Key])}


@pytest.fixture
def fake_s3():
    return FakeS3()


# ------------------------------------------------------------------
# Fake embeddings
# ------------------------------------------------------------------

# Texts mentioning a keyword point along its axis; everything else points
# along the last axis.
KEYWORD_AXES = {"pricing": 0, "hours": 1}


def keyword_vector(text: str) -> list[float]:
    vector = [0.0] * TEST_DIMS
    lowered = text.lower()
    hit = False
    for word, axis in KEYWORD_AXES.items():
        if word in lowered:
            vector[axis] += 1.0
            hit = True
    if not hit:
        vector[TEST_DIMS - 1] = 1.0
    return vector


def embedding_response(vectors: list[list[float]]) -> MagicMock:
    response = MagicMock()
    response.data = [{"index": i, "embedding": v} for i, v in enumerate(vectors)]
    return response


@pytest.fixture
def keyword_embedding(monkeypatch):
    """Patch litellm.embedding with deterministic keyword vectors. Returns the mock."""
    mock = MagicMock(
        side_effect=lambda model, input, num_retries=0: embedding_response(
            [keyword_vector(t) for t in input]
        )
    )
    monkeypatch.setattr("gnosis.rag.llm_client.litellm.embedding", mock)
    return mock
