"""Base decoder interface for all corpus file formats."""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import PurePosixPath

from gnosis.errors import DecodeError


def extension_of(key: str) -> str:
    """Return the lower-cased extension of an object key without the dot.

    Keys without an extension return "".
    """
    return PurePosixPath(key).suffix.lower().lstrip(".")


class BaseDecoder(ABC):
    """Abstract base for all decoders.

    Subclasses implement ``_decode()`` and list the extensions they handle.
    ``decode()`` wraps any parser failure in :class:`DecodeError` so callers
    only need to handle one exception type per file.
    """

    extensions: frozenset[str] = frozenset()

    def decode(self, data: bytes, key: str = "") -> str:
        """Decode raw object bytes into UTF-8 text.

        Args:
            data: Object body as downloaded.
            key: Object key (used in error messages).

        Raises:
            DecodeError: If the payload cannot be parsed.
        """
        try:
            return self._decode(data)
        except DecodeError:
            raise
        except Exception as exc:
            raise DecodeError(key, f"{type(exc).__name__}: {exc}") from exc

    @abstractmethod
    def _decode(self, data: bytes) -> str:
        """Format-specific decoding. May raise any exception."""

    @staticmethod
    def _utf8(data: bytes) -> str:
        """Lenient UTF-8 decode; a leading BOM is dropped."""
        return data.decode("utf-8-sig", errors="replace")
