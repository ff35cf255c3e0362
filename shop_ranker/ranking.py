"""Location-aware priority ranking.

Shops are ordered by a tuple key, evaluated left to right:

1. shops with a known distance before shops without one
2. 0.5 km distance bucket, nearest first
3. locality match against the selected city
4. exact category match against the selected category
5. paid listings
6. featured listings
7. rating, highest first
8. exact distance, nearest first

``sorted`` is stable, so shops equal on every key keep their input order.
"""
from __future__ import annotations

import math
from typing import Iterable, List, Optional, Tuple

from . import config
from .geo import distance_km
from .models import RankedEntry, RankingContext, ShopRecord

RankKey = Tuple[int, float, int, int, int, int, float, float]


def resolve_distance_km(shop: ShopRecord, ctx: RankingContext) -> Optional[float]:
    """Distance supplied by the provider wins over one computed from coordinates."""
    pre = shop.precomputed_distance_km
    if pre is not None and math.isfinite(pre) and pre >= 0:
        return float(pre)
    return distance_km(ctx.coordinate, shop.coordinates)


def distance_bucket(km: float, width: Optional[float] = None) -> float:
    if width is None:
        width = config.DISTANCE_BUCKET_KM
    return math.floor(km / width) * width


def locality_matches(shop: ShopRecord, ctx: RankingContext) -> bool:
    selected = ctx.selected_locality
    if selected is None:
        return False
    return selected.casefold() in (shop.locality or "").casefold()


def category_matches(shop: ShopRecord, ctx: RankingContext) -> bool:
    selected = ctx.selected_category
    if selected is None:
        return False
    return shop.category == selected


def rank_sort_key(shop: ShopRecord, ctx: RankingContext, km: Optional[float]) -> RankKey:
    has_distance = km is not None
    return (
        0 if has_distance else 1,
        distance_bucket(km) if has_distance else 0.0,
        0 if locality_matches(shop, ctx) else 1,
        0 if category_matches(shop, ctx) else 1,
        0 if shop.is_paid else 1,
        0 if shop.is_featured else 1,
        -float(shop.rating or 0.0),
        km if has_distance else 0.0,
    )


def rank_entries(shops: Iterable[ShopRecord], ctx: Optional[RankingContext] = None) -> List[RankedEntry]:
    if ctx is None:
        ctx = RankingContext()
    entries = [RankedEntry(shop=shop, distance_km=resolve_distance_km(shop, ctx)) for shop in shops]
    return sorted(entries, key=lambda e: rank_sort_key(e.shop, ctx, e.distance_km))


def rank(shops: Iterable[ShopRecord], ctx: Optional[RankingContext] = None) -> List[ShopRecord]:
    """Return a new, stably sorted list; the input is left untouched."""
    return [entry.shop for entry in rank_entries(shops, ctx)]
