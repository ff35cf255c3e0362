"""Shop records, ranking context and the adapter from provider JSON."""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, Optional

from . import config
from .geo import Coordinate, format_distance, format_eta, is_valid_coordinate, travel_minutes
from .identity import resolve_key

SOURCE_INTERNAL = "internal"
SOURCE_EXTERNAL = "external"


@dataclass(frozen=True)
class ShopRecord:
    display_name: str
    category: str = ""
    locality: str = ""
    primary_id: Optional[str] = None
    external_id: Optional[str] = None
    coordinates: Optional[Coordinate] = None
    rating: float = 0.0
    review_count: int = 0
    is_paid: bool = False
    is_featured: bool = False
    precomputed_distance_km: Optional[float] = None
    address: str = ""
    source: str = SOURCE_INTERNAL

    @property
    def key(self) -> str:
        return resolve_key(self)


@dataclass(frozen=True)
class RankingContext:
    coordinate: Optional[Coordinate] = None
    category: Optional[str] = None
    locality: Optional[str] = None

    @property
    def selected_category(self) -> Optional[str]:
        if not self.category or self.category == config.ALL_CATEGORIES:
            return None
        return self.category

    @property
    def selected_locality(self) -> Optional[str]:
        locality = (self.locality or "").strip()
        return locality or None

    def with_coordinate(self, coordinate: Optional[Coordinate]) -> "RankingContext":
        return RankingContext(coordinate=coordinate, category=self.category, locality=self.locality)


@dataclass(frozen=True)
class RankedEntry:
    shop: ShopRecord
    distance_km: Optional[float] = None

    @property
    def key(self) -> str:
        return self.shop.key

    @property
    def distance_text(self) -> Optional[str]:
        if self.distance_km is None:
            return None
        return format_distance(self.distance_km)

    @property
    def eta_text(self) -> Optional[str]:
        if self.distance_km is None:
            return None
        return format_eta(travel_minutes(self.distance_km))


# Adapter/mapper for shop API fields

def _as_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, dict):
        # Mongo extended JSON: {"$oid": "..."}
        value = value.get("$oid") or value.get("id")
        if value is None:
            return None
    text = str(value).strip()
    return text or None


def _as_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


def _as_int(value: Any) -> int:
    number = _as_float(value)
    if number is None or number < 0:
        return 0
    return int(number)


def _parse_coordinates(data: Dict[str, Any]) -> Optional[Coordinate]:
    location = data.get("location")
    lat: Optional[float] = None
    lng: Optional[float] = None
    if isinstance(location, dict):
        coords = location.get("coordinates")
        if isinstance(coords, (list, tuple)) and len(coords) == 2:
            # GeoJSON order: [lng, lat]
            lng = _as_float(coords[0])
            lat = _as_float(coords[1])
        else:
            lat = _as_float(location.get("lat", location.get("latitude")))
            lng = _as_float(location.get("lng", location.get("lon", location.get("longitude"))))
    if lat is None or lng is None:
        lat = _as_float(data.get("lat", data.get("latitude")))
        lng = _as_float(data.get("lng", data.get("lon", data.get("longitude"))))
    if lat is None or lng is None:
        return None
    coord = Coordinate(lat, lng)
    return coord if is_valid_coordinate(coord) else None


def shop_from_dict(data: Dict[str, Any]) -> ShopRecord:
    primary_id = _as_str(data.get("_id", data.get("id")))
    external_id = _as_str(data.get("place_id", data.get("placeId")))
    source = data.get("source")
    if source in ("google", SOURCE_EXTERNAL) or (external_id and not primary_id):
        source = SOURCE_EXTERNAL
    else:
        source = SOURCE_INTERNAL

    rating = _as_float(data.get("rating")) or 0.0
    rating = max(0.0, min(5.0, rating))
    distance = _as_float(data.get("distance", data.get("distanceKm")))
    if distance is not None and distance < 0:
        distance = None

    return ShopRecord(
        display_name=_as_str(data.get("name", data.get("displayName"))) or "",
        category=_as_str(data.get("category")) or "",
        locality=_as_str(data.get("city", data.get("locality"))) or "",
        primary_id=primary_id,
        external_id=external_id,
        coordinates=_parse_coordinates(data),
        rating=rating,
        review_count=_as_int(data.get("reviewCount", data.get("review_count"))),
        is_paid=bool(data.get("isPaid", data.get("is_paid", False))),
        is_featured=bool(data.get("isFeatured", data.get("is_featured", False))),
        precomputed_distance_km=distance,
        address=_as_str(data.get("address")) or "",
        source=source,
    )


def shop_to_dict(shop: ShopRecord, distance_km: Optional[float] = None) -> Dict[str, Any]:
    coords = shop.coordinates
    return {
        "key": shop.key,
        "primary_id": shop.primary_id,
        "external_id": shop.external_id,
        "name": shop.display_name,
        "category": shop.category,
        "city": shop.locality,
        "lat": coords.lat if coords else None,
        "lng": coords.lng if coords else None,
        "rating": shop.rating,
        "review_count": shop.review_count,
        "is_paid": shop.is_paid,
        "is_featured": shop.is_featured,
        "distance_km": round(distance_km, 3) if distance_km is not None else None,
        "distance_text": format_distance(distance_km) if distance_km is not None else None,
        "eta_text": format_eta(travel_minutes(distance_km)) if distance_km is not None else None,
        "source": shop.source,
    }
