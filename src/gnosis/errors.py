"""Exception hierarchy for the ingestion and retrieval pipeline.

Per-file errors (DocumentFetchError, DecodeError, EmbeddingError) are caught by
the reconciler, logged, and the file is skipped for the current pass.
CorpusListingError is the only error that aborts a whole pass.
"""

from __future__ import annotations


class GnosisError(Exception):
    """Base class for all pipeline errors."""


class CorpusListingError(GnosisError):
    """The object-store bucket could not be listed."""

    def __init__(self, bucket: str, reason: str) -> None:
        super().__init__(f"Could not list bucket '{bucket}': {reason}")
        self.bucket = bucket
        self.reason = reason


class DocumentFetchError(GnosisError):
    """A single object could not be downloaded."""

    def __init__(self, key: str, reason: str) -> None:
        super().__init__(f"Could not download '{key}': {reason}")
        self.key = key
        self.reason = reason


class DecodeError(GnosisError):
    """A downloaded object could not be decoded into text."""

    def __init__(self, key: str, reason: str) -> None:
        super().__init__(f"Could not decode '{key}': {reason}")
        self.key = key
        self.reason = reason


class EmbeddingError(GnosisError):
    """The embedding provider failed or returned an unusable vector."""


class EmbeddingDimensionMismatch(EmbeddingError):
    """A vector's length does not match the configured dimensionality."""

    def __init__(self, expected: int, actual: int, where: str = "") -> None:
        location = f" ({where})" if where else ""
        super().__init__(
            f"Embedding dimension mismatch{location}: expected {expected}, got {actual}"
        )
        self.expected = expected
        self.actual = actual
