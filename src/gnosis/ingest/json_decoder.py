"""JSON decoder — parse, then pretty-print so the chunker sees one value per line."""

from __future__ import annotations

import json

from gnosis.ingest.base import BaseDecoder


class JsonDecoder(BaseDecoder):
    """Re-serialise a JSON document with 2-space indentation.

    Invalid JSON is a decode error: the file is skipped for the pass rather
    than embedded as raw text.
    """

    extensions = frozenset({"json"})

    def _decode(self, data: bytes) -> str:
        parsed = json.loads(self._utf8(data))
        return json.dumps(parsed, indent=2, ensure_ascii=False)
