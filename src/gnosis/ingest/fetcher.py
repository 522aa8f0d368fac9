"""Content fetcher — list, download and decode the corpus from an S3-compatible bucket.

Extension dispatch:
  .txt .md .html .htm .yaml .yml .csv → PlainTextDecoder
  .json                               → JsonDecoder (pretty-printed)
  .docx                               → DocxDecoder
  .pdf                                → PdfDecoder
  .xlsx                               → SpreadsheetDecoder
  anything else                       → PlainTextDecoder

Every listed key ends up either as a Document or as a failed FetchOutcome.
A failed file is still part of ``listed_keys``: only keys missing from the
listing are grounds for deleting stored data.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from gnosis.config import StorageCfg
from gnosis.errors import CorpusListingError, DecodeError, DocumentFetchError
from gnosis.ingest.base import BaseDecoder, extension_of
from gnosis.ingest.docx_decoder import DocxDecoder
from gnosis.ingest.json_decoder import JsonDecoder
from gnosis.ingest.pdf import PdfDecoder
from gnosis.ingest.plaintext import PlainTextDecoder
from gnosis.ingest.spreadsheet import SpreadsheetDecoder
from gnosis.log import get_logger

logger = get_logger(__name__)

_FALLBACK_DECODER = PlainTextDecoder()
_DECODERS: tuple[BaseDecoder, ...] = (
    _FALLBACK_DECODER,
    JsonDecoder(),
    DocxDecoder(),
    PdfDecoder(),
    SpreadsheetDecoder(),
)
_BY_EXTENSION: dict[str, BaseDecoder] = {
    ext: decoder for decoder in _DECODERS for ext in decoder.extensions
}


def decoder_for(key: str) -> BaseDecoder:
    """Return the decoder for *key*'s extension (plain text when unknown)."""
    return _BY_EXTENSION.get(extension_of(key), _FALLBACK_DECODER)


# ------------------------------------------------------------------
# Result types
# ------------------------------------------------------------------


class FetchStatus(str, Enum):
    OK = "ok"
    DOWNLOAD_ERROR = "download_error"
    DECODE_ERROR = "decode_error"


@dataclass
class Document:
    """A decoded corpus file. Transient: rebuilt on every fetch."""

    file_id: str
    text: str

    def label(self, chunk: str) -> str:
        """Prefix *chunk* with this document's bracketed source label."""
        return f"[{self.file_id}]\n{chunk}"


@dataclass
class FetchOutcome:
    file_id: str
    status: FetchStatus
    error: str | None = None


@dataclass
class CorpusSnapshot:
    """Everything one fetch cycle saw in the bucket."""

    bucket: str
    listed_keys: set[str] = field(default_factory=set)
    documents: list[Document] = field(default_factory=list)
    failures: list[FetchOutcome] = field(default_factory=list)


# ------------------------------------------------------------------
# Client construction
# ------------------------------------------------------------------


def build_s3_client(storage: StorageCfg) -> Any:
    """Create a boto3 S3 client for *storage*.

    Credentials come from GNOSIS_S3_ACCESS_KEY_ID / GNOSIS_S3_SECRET_ACCESS_KEY
    when set, otherwise from boto3's default credential chain.
    """
    return boto3.client(
        "s3",
        endpoint_url=storage.endpoint_url,
        region_name=storage.region,
        aws_access_key_id=os.environ.get("GNOSIS_S3_ACCESS_KEY_ID"),
        aws_secret_access_key=os.environ.get("GNOSIS_S3_SECRET_ACCESS_KEY"),
    )


# ------------------------------------------------------------------
# Fetcher
# ------------------------------------------------------------------


class ContentFetcher:
    """Lists and downloads the corpus from one bucket.

    Args:
        client: A boto3 S3 client (or any object with the same
            ``get_paginator`` / ``get_object`` surface).
        bucket: Default bucket name.
    """

    def __init__(self, client: Any, bucket: str) -> None:
        self._client = client
        self._bucket = bucket

    @property
    def bucket(self) -> str:
        return self._bucket

    def list_keys(self, bucket: str | None = None) -> list[str]:
        """Return every object key in the bucket, following pagination.

        Raises:
            CorpusListingError: If the listing call fails.
        """
        bucket = bucket or self._bucket
        keys: list[str] = []
        try:
            paginator = self._client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=bucket):
                for obj in page.get("Contents", []):
                    key = obj["Key"]
                    if not key.endswith("/"):
                        keys.append(key)
        except (BotoCoreError, ClientError) as exc:
            raise CorpusListingError(bucket, str(exc)) from exc
        return keys

    def download(self, key: str, bucket: str | None = None) -> bytes:
        """Return the raw body of *key*.

        Raises:
            DocumentFetchError: If the object cannot be downloaded.
        """
        bucket = bucket or self._bucket
        try:
            response = self._client.get_object(Bucket=bucket, Key=key)
            return response["Body"].read()
        except (BotoCoreError, ClientError, OSError, KeyError) as exc:
            raise DocumentFetchError(key, str(exc)) from exc

    def fetch_document(self, key: str, bucket: str | None = None) -> Document:
        """Download and decode a single object.

        Raises:
            DocumentFetchError: Download failed.
            DecodeError: The payload could not be decoded.
        """
        data = self.download(key, bucket)
        text = decoder_for(key).decode(data, key)
        return Document(file_id=key, text=text)

    def fetch_corpus(self, bucket: str | None = None) -> CorpusSnapshot:
        """Fetch and decode every object in the bucket.

        Per-file failures are logged and recorded; they never abort the fetch.

        Raises:
            CorpusListingError: If the bucket itself cannot be listed.
        """
        bucket = bucket or self._bucket
        keys = self.list_keys(bucket)
        snapshot = CorpusSnapshot(bucket=bucket, listed_keys=set(keys))

        for key in keys:
            try:
                snapshot.documents.append(self.fetch_document(key, bucket))
            except DocumentFetchError as exc:
                logger.error("document_download_failed", file=key, error=exc.reason)
                snapshot.failures.append(
                    FetchOutcome(key, FetchStatus.DOWNLOAD_ERROR, exc.reason)
                )
            except DecodeError as exc:
                logger.error("document_decode_failed", file=key, error=exc.reason)
                snapshot.failures.append(
                    FetchOutcome(key, FetchStatus.DECODE_ERROR, exc.reason)
                )

        logger.info(
            "corpus_fetched",
            bucket=bucket,
            listed=len(keys),
            decoded=len(snapshot.documents),
            failed=len(snapshot.failures),
        )
        return snapshot

    def fetch_corpus_texts(self, bucket: str | None = None) -> list[tuple[str, str]]:
        """Return ``[(file_id, text), ...]`` for every decodable object."""
        return [(d.file_id, d.text) for d in self.fetch_corpus(bucket).documents]
