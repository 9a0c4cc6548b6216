"""Short-lived download tokens.

Hey future me - an export or a zipped gallery is staged under the downloads
directory and handed to the browser as /downloads/<hash>. The hash is only valid
for a short time, and unless keep=True it can be fetched exactly once.
"""

import secrets
import threading
import time
from dataclasses import dataclass

DEFAULT_TTL_SECONDS = 5 * 60


@dataclass
class DownloadEntry:
    """A staged file and its expiry."""

    path: str
    content_type: str
    keep: bool
    created_at: float
    ttl_seconds: int

    def is_expired(self) -> bool:
        return time.time() > (self.created_at + self.ttl_seconds)


class DownloadStore:
    """Maps random hashes to staged files."""

    def __init__(self, ttl_seconds: int = DEFAULT_TTL_SECONDS) -> None:
        self._ttl = ttl_seconds
        self._entries: dict[str, DownloadEntry] = {}
        self._lock = threading.Lock()

    def register_file(self, path: str, content_type: str, keep: bool = False) -> str:
        """Stage a file and return its download hash."""
        file_hash = secrets.token_urlsafe(16)
        with self._lock:
            self._purge_expired()
            self._entries[file_hash] = DownloadEntry(
                path=path,
                content_type=content_type,
                keep=keep,
                created_at=time.time(),
                ttl_seconds=self._ttl,
            )
        return file_hash

    def get(self, file_hash: str) -> DownloadEntry | None:
        """Resolve a hash. One-shot entries are removed on first use."""
        with self._lock:
            entry = self._entries.get(file_hash)
            if entry is None:
                return None
            if entry.is_expired():
                del self._entries[file_hash]
                return None
            if not entry.keep:
                del self._entries[file_hash]
            return entry

    def _purge_expired(self) -> None:
        for file_hash in [h for h, e in self._entries.items() if e.is_expired()]:
            del self._entries[file_hash]
