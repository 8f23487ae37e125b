import time
from dataclasses import dataclass
from typing import Callable

CACHE_KEY_SEPARATOR = "::"


@dataclass
class CacheEntry:
    value: dict[str, str]
    expires_at: float


def build_cache_key(
    *,
    engine: str,
    ai_provider: str,
    endpoint: str,
    model: str,
    source_lang: str,
    targets: list[str],
    text: str,
) -> str:
    """Fingerprint of one translation; target order does not matter."""
    return CACHE_KEY_SEPARATOR.join(
        [engine, ai_provider, endpoint, model, source_lang, ",".join(sorted(targets)), text]
    )


class ResultCache:
    """In-memory TTL map of fingerprint -> {lang: translated text}."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._entries: dict[str, CacheEntry] = {}
        self._clock = clock

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str) -> dict[str, str] | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expires_at <= self._clock():
            # Not swept yet, still a miss
            del self._entries[key]
            return None
        return dict(entry.value)

    def put(self, key: str, value: dict[str, str], ttl_s: float):
        self._entries[key] = CacheEntry(value=dict(value), expires_at=self._clock() + ttl_s)

    def sweep(self) -> int:
        """Drop expired entries. Returns how many were removed."""
        now = self._clock()
        expired = [k for k, e in self._entries.items() if e.expires_at <= now]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def clear(self):
        self._entries.clear()
