"""Best-effort caller location with a hard time limit.

Ranking never waits on this: callers rank without a coordinate first and
re-rank once ``acquire_location`` reports one.
"""
from __future__ import annotations

import ipaddress
import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

import requests

from . import config
from .geo import Coordinate, is_valid_coordinate
from .http import HttpClient

logger = logging.getLogger(__name__)

STATUS_SUCCESS = "success"
STATUS_DENIED = "denied"
STATUS_TIMEOUT = "timeout"
STATUS_UNAVAILABLE = "unavailable"


class LocationDeniedError(RuntimeError):
    pass


class LocationUnavailableError(RuntimeError):
    pass


class GeolocationProvider(Protocol):
    def locate(self) -> Coordinate:
        ...


@dataclass(frozen=True)
class LocationResult:
    status: str
    coordinate: Optional[Coordinate] = None
    city: Optional[str] = None
    detail: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == STATUS_SUCCESS and self.coordinate is not None


@dataclass(frozen=True)
class FixedLocation:
    """A coordinate the caller already knows, e.g. from CLI flags."""

    coordinate: Coordinate

    def locate(self) -> Coordinate:
        if not is_valid_coordinate(self.coordinate):
            raise LocationUnavailableError(f"Invalid coordinate: {self.coordinate}")
        return self.coordinate


def is_private_ip(ip: str) -> bool:
    try:
        addr = ipaddress.ip_address(ip.strip())
    except ValueError:
        return True
    return addr.is_private or addr.is_loopback or addr.is_link_local or addr.is_unspecified


class IpGeolocationClient:
    """Looks the caller up by IP address against an ipapi.co style endpoint."""

    def __init__(
        self,
        ip: str = "",
        http_client: Optional[HttpClient] = None,
        url_template: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
    ) -> None:
        if timeout_seconds is None:
            timeout_seconds = config.GEOLOCATION_TIMEOUT_SECONDS
        self.ip = ip
        # One attempt, and never longer than the caller is willing to wait.
        self.http = http_client or HttpClient(
            timeout=min(float(config.HTTP_TIMEOUT_SECONDS), timeout_seconds),
            retry_max=1,
        )
        self.url_template = url_template or config.GEOLOCATION_API_URL
        self.city: Optional[str] = None

    def locate(self) -> Coordinate:
        if self.ip and is_private_ip(self.ip):
            raise LocationDeniedError(f"No public location for address {self.ip}")
        if self.ip:
            url = self.url_template.format(ip=self.ip)
        else:
            # Without an address the service geolocates the calling host.
            url = self.url_template.replace("{ip}/", "")
        try:
            payload = self.http.get_json(url)
        except (requests.RequestException, ValueError) as exc:
            raise LocationUnavailableError(f"IP lookup failed: {exc}") from exc
        return self._parse(payload)

    def _parse(self, payload: Any) -> Coordinate:
        if not isinstance(payload, dict):
            raise LocationUnavailableError("IP lookup returned a non-object payload")
        if payload.get("error") or payload.get("status") == "fail":
            raise LocationUnavailableError(str(payload.get("reason") or payload.get("message") or "lookup failed"))
        lat = payload.get("latitude", payload.get("lat"))
        lng = payload.get("longitude", payload.get("lon"))
        try:
            coord = Coordinate(float(lat), float(lng))
        except (TypeError, ValueError) as exc:
            raise LocationUnavailableError("IP lookup returned no coordinates") from exc
        if not is_valid_coordinate(coord):
            raise LocationUnavailableError(f"IP lookup returned an unusable coordinate: {coord}")
        self.city = payload.get("city") or None
        return coord


def acquire_location(
    provider: GeolocationProvider,
    timeout_seconds: Optional[float] = None,
) -> LocationResult:
    """Run ``provider.locate()`` for at most ``timeout_seconds``.

    Never raises: every failure maps to a non-success status so callers can
    carry on without a coordinate. The lookup runs on a daemon thread, so one
    that overruns is abandoned and never holds up interpreter exit.
    """
    if timeout_seconds is None:
        timeout_seconds = config.GEOLOCATION_TIMEOUT_SECONDS

    outcome: Dict[str, Any] = {}

    def _run() -> None:
        try:
            outcome["coordinate"] = provider.locate()
        except Exception as exc:
            outcome["error"] = exc

    worker = threading.Thread(target=_run, name="geolocate", daemon=True)
    worker.start()
    worker.join(timeout_seconds)

    if worker.is_alive():
        logger.warning("Location lookup timed out after %ss; continuing without it", timeout_seconds)
        return LocationResult(status=STATUS_TIMEOUT, detail=f"timed out after {timeout_seconds}s")
    error = outcome.get("error")
    if isinstance(error, LocationDeniedError):
        logger.info("Location denied: %s", error)
        return LocationResult(status=STATUS_DENIED, detail=str(error))
    if error is not None:
        logger.warning("Location unavailable: %s", error)
        return LocationResult(status=STATUS_UNAVAILABLE, detail=str(error))

    coordinate = outcome.get("coordinate")
    if not is_valid_coordinate(coordinate):
        return LocationResult(status=STATUS_UNAVAILABLE, detail=f"invalid coordinate {coordinate}")
    city = getattr(provider, "city", None)
    return LocationResult(status=STATUS_SUCCESS, coordinate=coordinate, city=city)
