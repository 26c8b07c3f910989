"""
Extraction Cache - content-addressed memo of extraction results

Keys are SHA-256 digests of the normalized (sender, subject, body) triple,
so identical boilerplate mail sent to different users shares one entry.
The cache is bounded; inserting past the bound evicts the oldest entry.
Shared process-wide, guarded by a lock.
"""

import hashlib
import threading
from collections import OrderedDict
from typing import Dict, Optional

from careerpulse.models import CacheEntry, ExtractionResult
from careerpulse.normalize import collapse_whitespace


def content_hash(sender: str, subject: str, body: str) -> str:
    """Stable digest of normalized message content."""
    parts = [collapse_whitespace(sender).lower(), collapse_whitespace(subject), collapse_whitespace(body)]
    return hashlib.sha256("\x1f".join(parts).encode("utf-8")).hexdigest()


class ExtractionCache:
    """Bounded FIFO cache of ExtractionResult keyed by content hash."""

    def __init__(self, max_size: int = 1000):
        if max_size <= 0:
            raise ValueError("max_size must be positive")
        self.max_size = max_size
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def get(self, key: str) -> Optional[ExtractionResult]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None
            self._hits += 1
            return entry.result

    def put(self, key: str, result: ExtractionResult) -> None:
        with self._lock:
            # Re-inserting keeps the original position; age is first insertion
            if key in self._entries:
                self._entries[key].result = result
                return
            self._entries[key] = CacheEntry(content_hash=key, result=result)
            while len(self._entries) > self.max_size:
                self._entries.popitem(last=False)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._hits = 0
            self._misses = 0

    def stats(self) -> Dict[str, int]:
        with self._lock:
            return {
                "size": len(self._entries),
                "max_size": self.max_size,
                "hits": self._hits,
                "misses": self._misses,
            }

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._entries
