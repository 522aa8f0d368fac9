"""Word document decoder — raw paragraph and table text via python-docx."""

from __future__ import annotations

from io import BytesIO

import docx

from gnosis.ingest.base import BaseDecoder


class DocxDecoder(BaseDecoder):
    """Extract raw text from a .docx file.

    Strategy:
    - Each non-empty paragraph becomes its own block, separated by a blank
      line so the chunker treats it as a paragraph.
    - Table rows follow the body text, cells joined with ``, ``.
    - Formatting, headers/footers and images are ignored.
    """

    extensions = frozenset({"docx"})

    def _decode(self, data: bytes) -> str:
        document = docx.Document(BytesIO(data))

        blocks = [p.text.strip() for p in document.paragraphs if p.text.strip()]

        for table in document.tables:
            for row in table.rows:
                cells = [cell.text.strip() for cell in row.cells]
                if any(cells):
                    blocks.append(", ".join(cells))

        return "\n\n".join(blocks)
