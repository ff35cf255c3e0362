"""Discovery pipeline and the incremental shop feed.

raw pool -> validation -> dedupe (cross-source, then identity) -> rank -> {category sample | paged feed}
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Set, Tuple

from . import config
from .cache import CacheGate, CacheKey
from .dedup import drop_listed_elsewhere, merge_by_source
from .geo import Coordinate
from .identity import validate_records
from .models import RankedEntry, RankingContext, ShopRecord
from .pagination import PaginationCursor
from .ranking import rank, rank_entries, resolve_distance_km
from .sampling import sample_by_category
from .shops_client import ShopFetchError, ShopPage, ShopPoolProvider, ShopQuery

logger = logging.getLogger(__name__)

STATUS_IDLE = "idle"
STATUS_LOADING = "loading"
STATUS_READY = "ready"
STATUS_EMPTY = "empty"
STATUS_ERROR = "error"


class FeedLoadError(RuntimeError):
    pass


def _unranked(shops: Iterable[ShopRecord], ctx: RankingContext) -> List[RankedEntry]:
    out: List[RankedEntry] = []
    for shop in shops:
        try:
            km = resolve_distance_km(shop, ctx)
        except (TypeError, ValueError, AttributeError) as exc:
            logger.debug("No distance for %s: %s", shop.display_name, exc)
            km = None
        out.append(RankedEntry(shop=shop, distance_km=km))
    return out


def discover(shops: Iterable[ShopRecord], ctx: Optional[RankingContext] = None) -> List[RankedEntry]:
    """Validate, deduplicate and rank a raw pool.

    If ranking itself fails the deduplicated pool comes back in input order;
    a bad record never blanks the feed.
    """
    if ctx is None:
        ctx = RankingContext()
    pool = merge_by_source(validate_records(shops))
    try:
        return rank_entries(pool, ctx)
    except Exception:
        logger.exception("Ranking failed; returning %s shops unranked", len(pool))
        return _unranked(pool, ctx)


def discover_categories(
    shops: Iterable[ShopRecord],
    ctx: Optional[RankingContext] = None,
    max_categories: Optional[int] = None,
) -> List[Tuple[str, ShopRecord]]:
    if ctx is None:
        ctx = RankingContext()
    if max_categories is None:
        max_categories = config.MAX_SAMPLED_CATEGORIES
    pool = merge_by_source(validate_records(shops))
    try:
        ordered = rank(pool, RankingContext(coordinate=ctx.coordinate))
    except Exception:
        logger.exception("Proximity ordering failed; sampling %s shops in input order", len(pool))
        ordered = pool
    return sample_by_category(ordered, max_categories, ctx)


@dataclass
class FeedState:
    status: str = STATUS_IDLE
    error_message: Optional[str] = None
    total_available: Optional[int] = None


class ShopFeed:
    """Fetch-and-append feed over a shop pool provider.

    Pages come through the cache gate; failed fetches are surfaced as
    ``FeedLoadError`` and leave the cursor on the same page.
    """

    def __init__(
        self,
        provider: ShopPoolProvider,
        ctx: Optional[RankingContext] = None,
        search_text: Optional[str] = None,
        cache: Optional[CacheGate] = None,
        cursor: Optional[PaginationCursor] = None,
        ttl_ms: Optional[int] = None,
    ) -> None:
        self.provider = provider
        self.ctx = ctx or RankingContext()
        self.search_text = search_text
        self.cache = cache if cache is not None else CacheGate()
        self.cursor = cursor or PaginationCursor()
        self.ttl_ms = ttl_ms if ttl_ms is not None else config.CACHE_TTL_MS
        self.items: List[RankedEntry] = []
        self.state = FeedState()
        self._seen_keys: Set[str] = set()

    @property
    def shops(self) -> List[ShopRecord]:
        return [entry.shop for entry in self.items]

    @property
    def has_more(self) -> bool:
        return self.cursor.has_more

    def _query(self, page: int) -> ShopQuery:
        return ShopQuery(
            coordinate=self.ctx.coordinate,
            category=self.ctx.selected_category,
            locality=self.ctx.selected_locality,
            search_text=self.search_text,
            page=page,
            page_size=self.cursor.page_size,
            offset=self.cursor.offset,
        )

    def load_next(self) -> List[RankedEntry]:
        """Fetch the next page and append its new shops; returns only the new ones."""
        if self.cursor.in_flight:
            logger.debug("Fetch already in flight for page %s; ignoring", self.cursor.page)
            return []
        if not self.cursor.has_more:
            return []

        page = self.cursor.advance()
        query = self._query(page)
        key = CacheKey.from_context(self.ctx, self.search_text, page, query.page_size)
        self.state.status = STATUS_LOADING
        try:
            result: ShopPage = self.cache.get_or_compute(key, self.ttl_ms, lambda: self.provider.fetch(query))
        except Exception as exc:
            self.cursor.record_failure()
            self.state.status = STATUS_ERROR
            self.state.error_message = str(exc)
            if isinstance(exc, ShopFetchError):
                logger.warning("Could not load page %s: %s", page, exc)
            else:
                logger.exception("Shop provider failed on page %s", page)
            raise FeedLoadError(f"Could not load shops (page {page}): {exc}") from exc

        self.cursor.record_fetch(len(result.shops))
        self.state.total_available = result.total_available
        self.state.error_message = None
        added = self._absorb(result.shops)
        self.state.status = STATUS_READY if self.items else STATUS_EMPTY
        logger.info(
            "Loaded page %s: %s shops, %s new, has_more=%s",
            page,
            len(result.shops),
            len(added),
            self.cursor.has_more,
        )
        return added

    def _absorb(self, shops: Iterable[ShopRecord]) -> List[RankedEntry]:
        fresh: List[ShopRecord] = []
        incoming = drop_listed_elsewhere(merge_by_source(validate_records(shops)), self.shops)
        for shop in incoming:
            key = shop.key
            if key and key in self._seen_keys:
                continue
            if key:
                self._seen_keys.add(key)
            fresh.append(shop)
        added = discover(fresh, self.ctx)
        self.items.extend(added)
        return added

    def _clear(self) -> None:
        self.cursor.reset()
        self.items = []
        self._seen_keys = set()

    def refresh(self) -> List[RankedEntry]:
        self._clear()
        self.state = FeedState()
        return self.load_next()

    def change_filters(
        self,
        category: Optional[str] = None,
        locality: Optional[str] = None,
        search_text: Optional[str] = None,
    ) -> List[RankedEntry]:
        """Switch filters: reset the cursor and items, drop the old cache entries, fetch page 1."""
        self._clear()
        dropped = self.cache.invalidate_filters(self.ctx, self.search_text)
        logger.debug("Filter change dropped %s cached pages", dropped)
        self.ctx = RankingContext(coordinate=self.ctx.coordinate, category=category, locality=locality)
        self.search_text = search_text
        self.state = FeedState()
        return self.load_next()

    def set_location(self, coordinate: Optional[Coordinate]) -> List[RankedEntry]:
        """Re-rank what is already loaded once a coordinate arrives (or goes away)."""
        self.ctx = self.ctx.with_coordinate(coordinate)
        self.items = discover([entry.shop for entry in self.items], self.ctx)
        return self.items
