from __future__ import annotations

import time
from typing import Dict, Mapping, Optional, Tuple

from ..config import SETTINGS

CacheEntry = Tuple[float, bytes]

MAX_ENTRIES = 16


def cache_key(source_url: str, params: Mapping[str, object]) -> str:
    """Stable key for a rendered source: the URL plus sorted settings."""
    rendered = "&".join(f"{key}={params[key]}" for key in sorted(params))
    return f"{source_url}?{rendered}"


class ResponseCache:
    """Rendered PNG bytes keyed by request, expiring after ``CACHE_TTL``."""

    def __init__(self, max_entries: int = MAX_ENTRIES) -> None:
        self._entries: Dict[str, CacheEntry] = {}
        self.max_entries = max_entries

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str) -> Optional[bytes]:
        entry = self._entries.get(key)
        if not entry:
            return None
        timestamp, data = entry
        if time.time() - timestamp > SETTINGS.cache_ttl:
            self._entries.pop(key, None)
            return None
        return data

    def put(self, key: str, data: bytes) -> None:
        if key not in self._entries and len(self._entries) >= self.max_entries:
            oldest = min(self._entries.items(), key=lambda item: item[1][0])[0]
            self._entries.pop(oldest, None)
        self._entries[key] = (time.time(), data)

    def clear(self) -> None:
        self._entries.clear()


CACHE = ResponseCache()
_last_good_png: bytes = b""


def remember_last_good(data: bytes) -> None:
    global _last_good_png
    _last_good_png = data


def last_good_png() -> Optional[bytes]:
    return _last_good_png or None


def forget_last_good() -> None:
    global _last_good_png
    _last_good_png = b""
