"""In-memory outcome cache keyed by a content hash of the capture batch.

Only real (non-fallback) outcomes are stored, and only for ``ttl_seconds``.
The cache is an explicit collaborator: whoever wants caching creates one
instance and passes it to every orchestrator that should share it.
"""

from __future__ import annotations

import hashlib
import time
from collections.abc import Sequence
from threading import Lock
from typing import Any

from .contracts import AnalysisKind, AnalysisOutcome

_MAX_ENTRIES = 256


def batch_key(kind: AnalysisKind | str, images: Sequence[Any]) -> str:
    """sha256 over the kind and every image; bytes are hashed as given."""
    digest = hashlib.sha256()
    digest.update(AnalysisKind(kind).value.encode())
    for image in images:
        data = bytes(image) if isinstance(image, (bytes, bytearray)) else str(image).encode()
        digest.update(b"\x00")
        digest.update(hashlib.sha256(data).digest())
    return digest.hexdigest()


class AnalysisCache:
    def __init__(self, ttl_seconds: float, *, max_entries: int = _MAX_ENTRIES) -> None:
        self._ttl_seconds = ttl_seconds
        self._max_entries = max(1, int(max_entries))
        self._entries: dict[str, tuple[float, AnalysisOutcome]] = {}
        self._lock = Lock()

    @property
    def enabled(self) -> bool:
        return self._ttl_seconds > 0

    def get(self, key: str) -> AnalysisOutcome | None:
        if not self.enabled:
            return None
        now = time.monotonic()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, outcome = entry
            if expires_at <= now:
                del self._entries[key]
                return None
            return outcome.model_copy(deep=True)

    def put(self, key: str, outcome: AnalysisOutcome) -> None:
        if not self.enabled or outcome.is_fallback:
            return
        now = time.monotonic()
        with self._lock:
            if len(self._entries) >= self._max_entries:
                self._prune(now)
            if len(self._entries) >= self._max_entries:
                # Still full: drop the entry that expires first.
                oldest = min(self._entries, key=lambda k: self._entries[k][0])
                del self._entries[oldest]
            self._entries[key] = (now + self._ttl_seconds, outcome.model_copy(deep=True))

    def _prune(self, now: float) -> None:
        """Remove expired entries (called under lock)."""
        stale = [key for key, (expires_at, _) in self._entries.items() if expires_at <= now]
        for key in stale:
            del self._entries[key]

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def reset(self) -> None:
        with self._lock:
            self._entries.clear()
