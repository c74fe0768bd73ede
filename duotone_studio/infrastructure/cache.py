from __future__ import annotations

import hashlib
import threading
import time
from typing import Dict, Optional, Tuple

from ..config import SETTINGS


CacheEntry = Tuple[float, bytes]

MAX_ENTRIES = 16


def result_key(source: bytes, reverse: bool) -> str:
    digest = hashlib.sha256(source).hexdigest()
    return f"{digest}:{'reversed' if reverse else 'normal'}"


class ResultCache:
    """Encoded duotone results keyed by source digest and orientation."""

    def __init__(self, ttl: float | None = None, max_entries: int = MAX_ENTRIES) -> None:
        self._entries: Dict[str, CacheEntry] = {}
        self._ttl = ttl
        self._max_entries = max_entries
        self._lock = threading.Lock()

    @property
    def ttl(self) -> float:
        return SETTINGS.cache_ttl if self._ttl is None else self._ttl

    def get(self, key: str) -> Optional[bytes]:
        with self._lock:
            entry = self._entries.get(key)
            if not entry:
                return None
            timestamp, data = entry
            if time.time() - timestamp > self.ttl:
                self._entries.pop(key, None)
                return None
            return data

    def put(self, key: str, data: bytes) -> None:
        with self._lock:
            if key not in self._entries and len(self._entries) >= self._max_entries:
                oldest = min(self._entries.items(), key=lambda item: item[1][0])[0]
                self._entries.pop(oldest, None)
            self._entries[key] = (time.time(), data)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


CACHE = ResultCache()
