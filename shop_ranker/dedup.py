"""Duplicate suppression for shop sequences."""
from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Set

from . import config
from .identity import resolve_key
from .models import SOURCE_EXTERNAL, ShopRecord

logger = logging.getLogger(__name__)


def dedupe(shops: Iterable[ShopRecord]) -> List[ShopRecord]:
    """Drop repeated shops, keeping the first occurrence and the input order.

    Shops without any identity key are kept unconditionally; they are never
    merged with each other.
    """
    seen: Set[str] = set()
    out: List[ShopRecord] = []
    skipped = 0
    for shop in shops:
        key = resolve_key(shop)
        if not key:
            out.append(shop)
            continue
        if key in seen:
            skipped += 1
            continue
        seen.add(key)
        out.append(shop)
    if skipped:
        logger.debug("Dedup removed %s repeated shops", skipped)
    return out


def is_same_place(a: ShopRecord, b: ShopRecord, tolerance_deg: Optional[float] = None) -> bool:
    if tolerance_deg is None:
        tolerance_deg = config.CROSS_SOURCE_MATCH_TOLERANCE_DEG
    if a.coordinates is None or b.coordinates is None:
        return False
    if a.display_name.strip().casefold() != b.display_name.strip().casefold():
        return False
    return (
        abs(a.coordinates.lat - b.coordinates.lat) < tolerance_deg
        and abs(a.coordinates.lng - b.coordinates.lng) < tolerance_deg
    )


def merge_sources(
    internal: Iterable[ShopRecord],
    external: Iterable[ShopRecord],
    tolerance_deg: Optional[float] = None,
) -> List[ShopRecord]:
    """Append externally sourced shops that are not already listed internally.

    An external shop duplicates an internal one when the names match
    case-insensitively and both coordinates lie within the tolerance. The
    merged list is then deduplicated by identity.
    """
    merged = list(internal)
    anchors = [s for s in merged if s.coordinates is not None]
    skipped = 0
    for shop in external:
        if any(is_same_place(shop, anchor, tolerance_deg) for anchor in anchors):
            skipped += 1
            continue
        merged.append(shop)
    if skipped:
        logger.debug("Cross-source merge skipped %s external duplicates", skipped)
    return dedupe(merged)


def merge_by_source(shops: Iterable[ShopRecord], tolerance_deg: Optional[float] = None) -> List[ShopRecord]:
    """Split a mixed page by ``source`` and run :func:`merge_sources` on the halves."""
    internal: List[ShopRecord] = []
    external: List[ShopRecord] = []
    for shop in shops:
        (external if shop.source == SOURCE_EXTERNAL else internal).append(shop)
    if not external:
        return dedupe(internal)
    return merge_sources(internal, external, tolerance_deg)


def drop_listed_elsewhere(
    shops: Iterable[ShopRecord],
    listed: Iterable[ShopRecord],
    tolerance_deg: Optional[float] = None,
) -> List[ShopRecord]:
    """Drop external shops that match an internal shop in ``listed``."""
    anchors = [s for s in listed if s.source != SOURCE_EXTERNAL and s.coordinates is not None]
    if not anchors:
        return list(shops)
    out: List[ShopRecord] = []
    for shop in shops:
        if shop.source == SOURCE_EXTERNAL and any(is_same_place(shop, a, tolerance_deg) for a in anchors):
            logger.debug("Skipping %s: already listed internally", shop.display_name)
            continue
        out.append(shop)
    return out
