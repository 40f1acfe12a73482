"""Road-distance resolver backed by an OSRM HTTP endpoint.

Lookups are cached in the Django cache and bounded by a short timeout.
Any failure (timeout, HTTP error, malformed payload, no route) degrades to
the haversine straight-line distance with an estimated duration at
``FALLBACK_SPEED_KMH``; callers never see the failure.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import requests
import structlog
from django.conf import settings
from django.core.cache import cache

from shared.domain.geo import Coordinates, haversine_km

logger = structlog.get_logger(__name__)

FALLBACK_SPEED_KMH = 30.0
METHOD_OSRM = "osrm"
METHOD_STRAIGHT_LINE = "straight-line"


class ExternalServiceDegraded(Exception):
    """The routing service could not answer; a fallback was used."""


@dataclass(frozen=True)
class RouteEstimate:
    km: float
    seconds: int
    method: str


class RouteDistanceResolver:
    """Resolve driving distance between two points.

    ``base_url`` empty disables the HTTP lookup entirely.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        cache_seconds: Optional[int] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._base_url = (
            settings.ROUTING_BASE_URL if base_url is None else base_url
        ).rstrip("/")
        self._timeout = settings.ROUTING_TIMEOUT_SECONDS if timeout is None else timeout
        self._cache_seconds = (
            settings.ROUTING_CACHE_SECONDS if cache_seconds is None else cache_seconds
        )
        self._session = session or requests.Session()

    def route_distance(
        self, origin: Coordinates, destination: Coordinates
    ) -> RouteEstimate:
        key = self._cache_key(origin, destination)
        cached = cache.get(key)
        if cached is not None:
            return RouteEstimate(**cached)

        try:
            estimate = self._request_route(origin, destination)
        except ExternalServiceDegraded as exc:
            logger.warning(
                "routing.fallback_straight_line",
                reason=str(exc),
                origin=f"{origin.lat},{origin.lng}",
                destination=f"{destination.lat},{destination.lng}",
            )
            return self.straight_line(origin, destination)

        cache.set(key, estimate.__dict__, self._cache_seconds)
        return estimate

    @staticmethod
    def straight_line(origin: Coordinates, destination: Coordinates) -> RouteEstimate:
        km = haversine_km(origin, destination)
        return RouteEstimate(
            km=km,
            seconds=int(round(km / FALLBACK_SPEED_KMH * 3600)),
            method=METHOD_STRAIGHT_LINE,
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _request_route(
        self, origin: Coordinates, destination: Coordinates
    ) -> RouteEstimate:
        if not self._base_url:
            raise ExternalServiceDegraded("routing disabled")

        # OSRM expects lng,lat pairs
        url = (
            f"{self._base_url}/{origin.lng},{origin.lat};"
            f"{destination.lng},{destination.lat}"
        )
        try:
            response = self._session.get(
                url,
                params={"overview": "false", "alternatives": "false", "steps": "false"},
                timeout=self._timeout,
            )
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as exc:
            raise ExternalServiceDegraded(f"routing request failed: {exc}") from exc

        if not isinstance(data, dict) or data.get("code") != "Ok" or not data.get("routes"):
            raise ExternalServiceDegraded("no route found")

        route = data["routes"][0]
        try:
            return RouteEstimate(
                km=float(route["distance"]) / 1000,
                seconds=int(round(float(route["duration"]))),
                method=METHOD_OSRM,
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise ExternalServiceDegraded(f"malformed route payload: {exc}") from exc

    @staticmethod
    def _cache_key(origin: Coordinates, destination: Coordinates) -> str:
        # ~1 m precision keeps nearby lookups on the same key
        return "route:{:.5f},{:.5f}:{:.5f},{:.5f}".format(
            origin.lat, origin.lng, destination.lat, destination.lng
        )
