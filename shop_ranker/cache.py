"""Short-lived memo cache for shop pool lookups."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple, TypeVar

from . import config
from .geo import round_coordinate
from .models import RankingContext

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class CacheKey:
    """Every input that changes a ranked result; a new filter gets a new field here."""

    lat: Optional[float]
    lng: Optional[float]
    category: str
    locality: str
    search: str
    page: int = 1
    page_size: int = 0

    @classmethod
    def from_context(
        cls,
        ctx: RankingContext,
        search_text: Optional[str] = None,
        page: int = 1,
        page_size: int = 0,
        precision: Optional[int] = None,
    ) -> "CacheKey":
        lat: Optional[float] = None
        lng: Optional[float] = None
        if ctx.coordinate is not None:
            rounded = round_coordinate(ctx.coordinate, precision)
            lat, lng = rounded.lat, rounded.lng
        return cls(
            lat=lat,
            lng=lng,
            category=ctx.selected_category or "",
            locality=(ctx.selected_locality or "").casefold(),
            search=(search_text or "").strip().casefold(),
            page=int(page),
            page_size=int(page_size),
        )

    def filters(self) -> Tuple[str, str, str]:
        return (self.category, self.locality, self.search)


def _copy(value: Any) -> Any:
    # Callers may keep mutating the list they handed in or got back.
    if isinstance(value, list):
        return list(value)
    return value


class CacheGate:
    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: Dict[CacheKey, Tuple[float, Any]] = {}
        self._hits = 0
        self._misses = 0

    def get_or_compute(self, key: CacheKey, ttl_ms: Optional[int], compute: Callable[[], T]) -> T:
        """Return the value stored under ``key`` if younger than ``ttl_ms``.

        Otherwise call ``compute``, store its result and return it. Errors
        raised by ``compute`` propagate and leave nothing behind.
        """
        if ttl_ms is None:
            ttl_ms = config.CACHE_TTL_MS
        now = self._clock()
        entry = self._entries.get(key)
        if entry is not None:
            stored_at, value = entry
            if (now - stored_at) * 1000.0 < ttl_ms:
                self._hits += 1
                logger.debug("Cache hit: %s", key)
                return _copy(value)
            del self._entries[key]
            logger.debug("Cache entry expired: %s", key)

        self._misses += 1
        logger.debug("Cache miss: %s", key)
        value = compute()
        self._entries[key] = (self._clock(), _copy(value))
        return value

    def invalidate(self, key: CacheKey) -> bool:
        return self._entries.pop(key, None) is not None

    def invalidate_filters(self, ctx: RankingContext, search_text: Optional[str] = None) -> int:
        """Drop every page cached for one filter combination, at any location."""
        target = CacheKey.from_context(ctx, search_text).filters()
        stale = [k for k in self._entries if k.filters() == target]
        for key in stale:
            del self._entries[key]
        return len(stale)

    def clear(self) -> None:
        self._entries.clear()
        self._hits = 0
        self._misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def stats(self) -> Dict[str, Any]:
        total = self._hits + self._misses
        return {
            "size": len(self._entries),
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": round(self._hits / total * 100, 1) if total > 0 else 0.0,
        }
