"""Plain text decoder — pass-through UTF-8 for text-like formats."""

from __future__ import annotations

from gnosis.ingest.base import BaseDecoder


class PlainTextDecoder(BaseDecoder):
    """Decode text, Markdown, HTML, YAML and CSV objects as-is.

    Also the fallback for unknown extensions.
    """

    extensions = frozenset({"txt", "md", "html", "htm", "yaml", "yml", "csv"})

    def _decode(self, data: bytes) -> str:
        return self._utf8(data)
