"""Shop pool providers: the directory's nearby-shops API and a local JSON file."""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

import requests

from . import config
from .dedup import merge_by_source
from .geo import Coordinate
from .http import HttpClient
from .models import RankingContext, ShopRecord, shop_from_dict
from .ranking import rank

logger = logging.getLogger(__name__)


class ShopFetchError(RuntimeError):
    pass


@dataclass(frozen=True)
class ShopQuery:
    coordinate: Optional[Coordinate] = None
    category: Optional[str] = None
    locality: Optional[str] = None
    search_text: Optional[str] = None
    page: int = 1
    page_size: int = field(default_factory=lambda: config.PAGE_SIZE)
    offset: Optional[int] = None

    @property
    def start(self) -> int:
        if self.offset is not None:
            return self.offset
        return (self.page - 1) * self.page_size


@dataclass
class ShopPage:
    shops: List[ShopRecord] = field(default_factory=list)
    total_available: Optional[int] = None


class ShopPoolProvider(Protocol):
    def fetch(self, query: ShopQuery) -> ShopPage:
        ...


class ShopsApiClient:
    def __init__(
        self,
        base_url: str,
        http_client: Optional[HttpClient] = None,
        path: Optional[str] = None,
        include_external: bool = True,
    ) -> None:
        if not base_url:
            raise ValueError("Shops API base URL is not set")
        self.base_url = base_url.rstrip("/")
        self.http = http_client or HttpClient()
        self.path = path or config.SHOPS_NEARBY_PATH
        self.include_external = include_external

    @property
    def url(self) -> str:
        return f"{self.base_url}{self.path}"

    def fetch(self, query: ShopQuery) -> ShopPage:
        params = build_query_params(query, include_external=self.include_external)
        try:
            response = self.http.get_json(self.url, params=params)
        except (requests.RequestException, ValueError) as exc:
            raise ShopFetchError(f"Could not load shops from {self.url}: {exc}") from exc
        return parse_shops_response(response)


def build_query_params(query: ShopQuery, include_external: bool = True) -> Dict[str, Any]:
    params: Dict[str, Any] = {
        "page": query.page,
        "limit": query.page_size,
    }
    if query.offset is not None:
        # Later pages are larger than the first, so page*limit alone misplaces them.
        params["offset"] = query.offset
    if query.coordinate is not None:
        params["lat"] = query.coordinate.lat
        params["lng"] = query.coordinate.lng
        params["google"] = "true" if include_external else "false"
    else:
        params["google"] = "false"
    if query.category and query.category != config.ALL_CATEGORIES:
        params["category"] = query.category
    if query.locality:
        params["city"] = query.locality
    if query.search_text:
        params["search"] = query.search_text
    return params


def parse_shops_response(response: Any) -> ShopPage:
    if isinstance(response, list):
        raw = response
        total = None
    elif isinstance(response, dict):
        raw = response.get("shops") or []
        total = response.get("total")
    else:
        raise ShopFetchError(f"Unexpected shops payload type: {type(response).__name__}")

    shops: List[ShopRecord] = []
    for item in raw:
        if not isinstance(item, dict):
            logger.warning("Skipping non-object shop entry: %r", item)
            continue
        shops.append(shop_from_dict(item))
    try:
        total_available = int(total) if total is not None else None
    except (TypeError, ValueError):
        total_available = None
    return ShopPage(shops=shops, total_available=total_available)


def _matches(shop: ShopRecord, query: ShopQuery) -> bool:
    if query.category and query.category != config.ALL_CATEGORIES:
        if query.category.casefold() not in shop.category.casefold():
            return False
    if query.locality and query.locality.casefold() not in shop.locality.casefold():
        return False
    if query.search_text:
        needle = query.search_text.strip().casefold()
        haystack = " ".join([shop.display_name, shop.category, shop.address]).casefold()
        if needle and needle not in haystack:
            return False
    return True


class FileShopPool:
    """Serves shops from a JSON file: a list or an object with a "shops" list."""

    def __init__(self, path: str) -> None:
        self.path = path
        self._shops: Optional[List[ShopRecord]] = None

    def load(self) -> List[ShopRecord]:
        if self._shops is None:
            file_path = Path(self.path)
            try:
                with open(file_path, "r", encoding="utf-8") as f:
                    data = json.load(f)
            except (OSError, ValueError) as exc:
                raise ShopFetchError(f"Could not read shop pool {file_path}: {exc}") from exc
            self._shops = parse_shops_response(data).shops
            logger.info("Loaded %s shops from %s", len(self._shops), file_path)
        return self._shops

    def fetch(self, query: ShopQuery) -> ShopPage:
        # Rank the whole match set before slicing so pages stay consistent.
        ctx = RankingContext(coordinate=query.coordinate, category=query.category, locality=query.locality)
        matching = rank(merge_by_source(s for s in self.load() if _matches(s, query)), ctx)
        start = max(0, query.start)
        return ShopPage(
            shops=matching[start : start + query.page_size],
            total_available=len(matching),
        )
