"""Sentence-aligned chunker with sentence-count overlap.

Text is split into paragraphs (blank lines), paragraphs into sentences, and
sentences are packed greedily into chunks of at most ``max_tokens``
approximate tokens. A sentence is never split: a sentence larger than the
budget becomes a chunk of its own. When a chunk closes, its trailing
``ceil(overlap_ratio * n_sentences)`` sentences are repeated at the start of
the next chunk.

Token counting uses ``ceil(len(text) / 4)``; no tokenizer dependency.
"""

from __future__ import annotations

import math
import re

_PARAGRAPH_RE = re.compile(r"\n{2,}")
# A run of non-terminators followed by its terminator run, or a trailing run
# with no terminator at all.
_SENTENCE_RE = re.compile(r"[^.!?\n]*[.!?\n]+|[^.!?\n]+")

DEFAULT_MAX_TOKENS = 150
DEFAULT_OVERLAP_RATIO = 0.2


class SentenceChunker:
    """Split text into overlapping, sentence-aligned chunks.

    Args:
        max_tokens: Nominal token budget per chunk (must be >= 1).
        overlap_ratio: Fraction of a closed chunk's sentences carried into the
            next chunk, in ``[0.0, 1.0)``.
    """

    def __init__(
        self,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        overlap_ratio: float = DEFAULT_OVERLAP_RATIO,
    ) -> None:
        if max_tokens < 1:
            raise ValueError("max_tokens must be >= 1")
        if not 0.0 <= overlap_ratio < 1.0:
            raise ValueError("overlap_ratio must be in [0.0, 1.0)")
        self.max_tokens = max_tokens
        self.overlap_ratio = overlap_ratio

    @staticmethod
    def count_tokens(text: str) -> int:
        """Approximate token count: 4 characters ≈ 1 token, rounded up."""
        return math.ceil(len(text) / 4)

    def split(self, text: str) -> list[str]:
        """Return the ordered chunk strings for *text* (``[]`` for blank input)."""
        chunks: list[str] = []
        current: list[str] = []
        current_tokens = 0

        for paragraph in self._split_paragraphs(text):
            for sentence in self._split_sentences(paragraph):
                sentence_tokens = self.count_tokens(sentence)

                if current and current_tokens + sentence_tokens > self.max_tokens:
                    chunks.append(" ".join(current).strip())
                    carried = self._overlap(current)
                    current = [*carried, sentence]
                    current_tokens = (
                        sum(self.count_tokens(s) for s in carried) + sentence_tokens
                    )
                else:
                    current.append(sentence)
                    current_tokens += sentence_tokens

        if current:
            chunks.append(" ".join(current).strip())
        return chunks

    def _overlap(self, sentences: list[str]) -> list[str]:
        """Trailing sentences of a closed chunk to repeat in the next one."""
        count = math.ceil(len(sentences) * self.overlap_ratio)
        if count <= 0:
            return []
        return sentences[len(sentences) - count :]

    @staticmethod
    def _split_paragraphs(text: str) -> list[str]:
        """Split on two or more consecutive newlines, discarding blanks."""
        parts = _PARAGRAPH_RE.split(text)
        return [p.strip() for p in parts if p.strip()]

    @staticmethod
    def _split_sentences(paragraph: str) -> list[str]:
        """Split on ``.``, ``!``, ``?`` or newline terminators.

        A paragraph with no terminator is returned as a single sentence.
        """
        sentences = [s.strip() for s in _SENTENCE_RE.findall(paragraph)]
        sentences = [s for s in sentences if s]
        return sentences or [paragraph]


def split_into_chunks(
    text: str,
    max_tokens: int = DEFAULT_MAX_TOKENS,
    overlap_ratio: float = DEFAULT_OVERLAP_RATIO,
) -> list[str]:
    """Functional form of :meth:`SentenceChunker.split`."""
    return SentenceChunker(max_tokens=max_tokens, overlap_ratio=overlap_ratio).split(text)
