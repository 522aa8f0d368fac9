"""Domain models for the knowledge-base database layer."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class FileFingerprint:
    file_name: str
    content_hash: str
    updated_at: str | None = None


@dataclass
class StoredChunk:
    file_name: str
    text: str
    vector: list[float]
    rowid: int | None = None  # set after insert; None for unsaved chunks


@dataclass
class SearchHit:
    """One nearest-neighbour result. Lower distance = more similar."""

    file_name: str
    text: str
    distance: float
    rowid: int | None = None
