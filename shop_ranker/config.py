"""Project configuration.

Loads ranking overrides from ranking_config.json when available, falling back
to the defaults below. Keep provider request shapes centralized here.
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Optional

_REPO_ROOT = Path(__file__).resolve().parent.parent

# --- API endpoints ---

SHOPS_NEARBY_PATH = "/api/shops/nearby"
GEOLOCATION_API_URL = "https://ipapi.co/{ip}/json/"

# --- Geo ---

EARTH_RADIUS_KM = 6371.0
COORDINATE_CACHE_PRECISION = 3  # ~110 m

# Average travel speeds (km/h) used for the ETA heuristic.
CITY_SPEED_KMH = 20.0
SUBURBAN_SPEED_KMH = 35.0
HIGHWAY_SPEED_KMH = 50.0
CITY_MAX_KM = 5.0
SUBURBAN_MAX_KM = 20.0

# Shops imported from an external source within this many degrees of an
# internal shop with the same name are the same shop.
CROSS_SOURCE_MATCH_TOLERANCE_DEG = 0.001

# --- Ranking ---

DISTANCE_BUCKET_KM = 0.5
ALL_CATEGORIES = "all"

# --- Category sampling ---

UNCATEGORIZED_LABEL = "Uncategorized"
MAX_SAMPLED_CATEGORIES = 20

# --- Pagination ---

FIRST_PAGE_SIZE = 5
PAGE_SIZE = 15

# --- Cache gate ---

CACHE_TTL_MS = 5 * 60 * 1000

# --- Geolocation ---

GEOLOCATION_TIMEOUT_SECONDS = 10.0

# --- HTTP ---

HTTP_TIMEOUT_SECONDS = 20
HTTP_RETRY_MAX = 3
HTTP_BACKOFF_BASE = 0.5
HTTP_BACKOFF_MAX = 8.0
HTTP_USER_AGENT = "shop-ranker"

# --- Outputs ---

OUTPUT_DIR = "out"

_INT_KEYS = {
    "first_page_size": "FIRST_PAGE_SIZE",
    "page_size": "PAGE_SIZE",
    "cache_ttl_ms": "CACHE_TTL_MS",
    "max_categories": "MAX_SAMPLED_CATEGORIES",
    "coordinate_cache_precision": "COORDINATE_CACHE_PRECISION",
    "http_retry_max": "HTTP_RETRY_MAX",
}
_FLOAT_KEYS = {
    "distance_bucket_km": "DISTANCE_BUCKET_KM",
    "geolocation_timeout_seconds": "GEOLOCATION_TIMEOUT_SECONDS",
    "cross_source_match_tolerance_deg": "CROSS_SOURCE_MATCH_TOLERANCE_DEG",
    "http_timeout_seconds": "HTTP_TIMEOUT_SECONDS",
}
_STR_KEYS = {
    "uncategorized_label": "UNCATEGORIZED_LABEL",
    "all_categories": "ALL_CATEGORIES",
    "output_dir": "OUTPUT_DIR",
}


def load_ranking_config(path: Optional[str] = None) -> bool:
    """Load ranking configuration from a JSON file.

    Updates module-level globals with values from the config file.
    Returns True if config was loaded, False if file not found.
    """
    if path is None:
        path = str(_REPO_ROOT / "ranking_config.json")

    config_path = Path(path)
    if not config_path.exists():
        return False

    with open(config_path, "r", encoding="utf-8") as f:
        data: Dict[str, Any] = json.load(f)

    globals_ref = globals()

    for key, name in _INT_KEYS.items():
        if data.get(key) is not None:
            globals_ref[name] = int(data[key])
    for key, name in _FLOAT_KEYS.items():
        if data.get(key) is not None:
            globals_ref[name] = float(data[key])
    for key, name in _STR_KEYS.items():
        if data.get(key):
            globals_ref[name] = str(data[key])

    speeds = data.get("speeds_kmh", {})
    if "city" in speeds:
        globals_ref["CITY_SPEED_KMH"] = float(speeds["city"])
    if "suburban" in speeds:
        globals_ref["SUBURBAN_SPEED_KMH"] = float(speeds["suburban"])
    if "highway" in speeds:
        globals_ref["HIGHWAY_SPEED_KMH"] = float(speeds["highway"])

    return True
