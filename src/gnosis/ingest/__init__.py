"""Gnosis ingest pipeline — fetch, decode, fingerprint, chunk, reconcile."""

from gnosis.ingest.base import BaseDecoder
from gnosis.ingest.chunker import SentenceChunker, split_into_chunks
from gnosis.ingest.docx_decoder import DocxDecoder
from gnosis.ingest.fetcher import ContentFetcher, CorpusSnapshot, Document, FetchStatus
from gnosis.ingest.fingerprint import ChangeDetector, content_hash
from gnosis.ingest.json_decoder import JsonDecoder
from gnosis.ingest.pdf import PdfDecoder
from gnosis.ingest.plaintext import PlainTextDecoder
from gnosis.ingest.spreadsheet import SpreadsheetDecoder

__all__ = [
    "BaseDecoder",
    "ChangeDetector",
    "ContentFetcher",
    "CorpusSnapshot",
    "Document",
    "DocxDecoder",
    "FetchStatus",
    "JsonDecoder",
    "PdfDecoder",
    "PlainTextDecoder",
    "SentenceChunker",
    "SpreadsheetDecoder",
    "content_hash",
    "split_into_chunks",
]
