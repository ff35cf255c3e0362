"""Geospatial helpers: great-circle distance and travel-time estimates."""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

from . import config


@dataclass(frozen=True)
class Coordinate:
    lat: float
    lng: float


@dataclass(frozen=True)
class DistanceEstimate:
    distance_km: float
    eta_minutes: int
    eta_text: str

    @property
    def distance_text(self) -> str:
        return format_distance(self.distance_km)


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    r = config.EARTH_RADIUS_KM
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lon2 - lon1)

    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return r * c


def is_valid_coordinate(coord: Optional[Coordinate]) -> bool:
    """Finite, in range, and not the (0, 0) placeholder that unset rows carry."""
    if coord is None:
        return False
    lat, lng = coord.lat, coord.lng
    if not isinstance(lat, (int, float)) or not isinstance(lng, (int, float)):
        return False
    if not math.isfinite(lat) or not math.isfinite(lng):
        return False
    if lat < -90 or lat > 90 or lng < -180 or lng > 180:
        return False
    return not (lat == 0 and lng == 0)


def travel_minutes(distance_km: float) -> int:
    if distance_km < config.CITY_MAX_KM:
        speed = config.CITY_SPEED_KMH
    elif distance_km < config.SUBURBAN_MAX_KM:
        speed = config.SUBURBAN_SPEED_KMH
    else:
        speed = config.HIGHWAY_SPEED_KMH
    # Half-up to match how the directory front end rounds.
    return int(math.floor(distance_km / speed * 60 + 0.5))


def format_eta(minutes: int) -> str:
    if minutes < 1:
        return "< 1 min"
    if minutes < 60:
        return f"{minutes} min"
    return f"{minutes // 60}h {minutes % 60}m"


def format_distance(distance_km: float) -> str:
    if distance_km < 1:
        return f"{int(math.floor(distance_km * 1000 + 0.5))} m"
    if distance_km < 10:
        return f"{distance_km:.1f} km"
    return f"{int(math.floor(distance_km + 0.5))} km"


def distance_km(a: Optional[Coordinate], b: Optional[Coordinate]) -> Optional[float]:
    if not is_valid_coordinate(a) or not is_valid_coordinate(b):
        return None
    return haversine_km(a.lat, a.lng, b.lat, b.lng)


def estimate(a: Optional[Coordinate], b: Optional[Coordinate]) -> Optional[DistanceEstimate]:
    """Distance and ETA between two points, or None when either point is unusable.

    None means "no distance available"; it is never reported as 0 km.
    """
    km = distance_km(a, b)
    if km is None:
        return None
    minutes = travel_minutes(km)
    return DistanceEstimate(distance_km=km, eta_minutes=minutes, eta_text=format_eta(minutes))


def round_coordinate(coord: Coordinate, precision: Optional[int] = None) -> Coordinate:
    if precision is None:
        precision = config.COORDINATE_CACHE_PRECISION
    return Coordinate(round(coord.lat, precision), round(coord.lng, precision))
