"""Category-diverse sampling: one closest shop per category."""
from __future__ import annotations

import math
from typing import Dict, Iterable, List, Optional, Tuple

from . import config
from .models import RankingContext, ShopRecord
from .ranking import resolve_distance_km


def category_label(shop: ShopRecord) -> str:
    # Blank categories share one explicit bucket instead of being dropped.
    label = (shop.category or "").strip()
    return label or config.UNCATEGORIZED_LABEL


def sample_by_category(
    ranked_shops: Iterable[ShopRecord],
    max_categories: int,
    ctx: Optional[RankingContext] = None,
) -> List[Tuple[str, ShopRecord]]:
    """Pick the closest shop of each category, nearest categories first.

    Input should already be deduplicated and ordered by proximity. A shop
    replaces its category's representative only when it is strictly closer;
    unknown distances compare as infinitely far.
    """
    if max_categories <= 0:
        return []
    if ctx is None:
        ctx = RankingContext()

    chosen: Dict[str, Tuple[float, int, ShopRecord]] = {}
    for position, shop in enumerate(ranked_shops):
        km = resolve_distance_km(shop, ctx)
        dist = km if km is not None else math.inf
        label = category_label(shop)
        current = chosen.get(label)
        if current is None:
            chosen[label] = (dist, position, shop)
        elif dist < current[0]:
            chosen[label] = (dist, current[1], shop)

    ordered = sorted(chosen.items(), key=lambda item: (item[1][0], item[1][1]))
    return [(label, shop) for label, (_, _, shop) in ordered[:max_categories]]
