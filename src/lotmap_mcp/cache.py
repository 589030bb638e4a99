"""In-memory TTL cache for geocoding lookups."""

import time
from typing import Any, Hashable

# ~1 m at the equator; nearby map clicks share a reverse-geocode entry.
COORDINATE_PLACES = 5


def forward_key(query: str) -> tuple[str, str]:
    return ("forward", " ".join(query.lower().split()))


def reverse_key(lat: float, lng: float) -> tuple[str, float, float]:
    return ("reverse", round(lat, COORDINATE_PLACES), round(lng, COORDINATE_PLACES))


class GeocodeCache:
    """Expiring lookup results keyed by normalized query or rounded coordinates.

    Empty answers (no candidates, no address) are cached like any other;
    lookups that failed are not cached at all.
    """

    _MISSING = object()

    def __init__(self, ttl_seconds: int = 3600, max_entries: int = 500):
        self._entries: dict[Hashable, tuple[float, Any]] = {}
        self._ttl = ttl_seconds
        self._max = max_entries

    def lookup(self, key: Hashable) -> tuple[bool, Any]:
        """Return ``(hit, value)``; ``value`` may legitimately be None."""
        entry = self._entries.get(key, self._MISSING)
        if entry is self._MISSING:
            return False, None
        stored_at, value = entry
        if time.time() - stored_at >= self._ttl:
            del self._entries[key]
            return False, None
        return True, value

    def store(self, key: Hashable, value: Any) -> None:
        if key not in self._entries and len(self._entries) >= self._max:
            oldest = min(self._entries, key=lambda k: self._entries[k][0])
            del self._entries[oldest]
        self._entries[key] = (time.time(), value)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
