"""PDF decoder — page-by-page extraction via pypdf."""

from __future__ import annotations

from io import BytesIO

import pypdf

from gnosis.ingest.base import BaseDecoder


class PdfDecoder(BaseDecoder):
    """Extract text from a PDF page by page.

    Each page's text is followed by a newline. Pages that yield no text
    (scanned images, etc.) contribute an empty line.
    """

    extensions = frozenset({"pdf"})

    def _decode(self, data: bytes) -> str:
        reader = pypdf.PdfReader(BytesIO(data))
        parts: list[str] = []
        for page in reader.pages:
            page_text = page.extract_text() or ""
            parts.append(page_text.strip() + "\n")
        return "".join(parts)
