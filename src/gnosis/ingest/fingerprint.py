"""Content fingerprints — decide whether a file needs re-embedding."""

from __future__ import annotations

import hashlib

from gnosis.db.repository import Repository


def content_hash(text: str) -> str:
    """SHA-256 hex digest of *text* encoded as UTF-8."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


class ChangeDetector:
    """Compares a file's current text against its stored fingerprint.

    Args:
        repo: Repository holding the ``file_hashes`` table.
    """

    def __init__(self, repo: Repository) -> None:
        self._repo = repo

    def check(self, file_id: str, text: str) -> tuple[bool, str]:
        """Return ``(changed, digest)`` without touching storage.

        A file with no stored fingerprint counts as changed.
        """
        digest = content_hash(text)
        return digest != self._repo.get_hash(file_id), digest

    def has_changed(self, file_id: str, text: str) -> bool:
        """Return True if *text* differs from the stored fingerprint.

        On True the new fingerprint is stored immediately (upsert), so a
        second call with the same text returns False. The reconciler uses
        :meth:`check` instead and commits the fingerprint together with the
        file's chunks.
        """
        changed, digest = self.check(file_id, text)
        if changed:
            self._repo.upsert_hash(file_id, digest)
        return changed

    def forget(self, file_id: str) -> None:
        """Delete the stored fingerprint for *file_id*."""
        self._repo.delete_hash(file_id)
