"""
Route provider: fetches a driving route through the proxy endpoint and turns
it into a normalized point sequence. Falls back to the hand-authored drive on
any failure, so callers always receive a playable route.
"""
from __future__ import annotations

import logging
from typing import Dict, List, Optional

import requests
from django.conf import settings

from .exceptions import EmptyRoute, InvalidResponse, RouteTrackerError, TransportFailure
from .fallback import fallback_waypoints, get_catalog_route
from .normalizer import RouteNormalizer
from .structures import RoutePoint

LOGGER = logging.getLogger(__name__)


class RouteProvider:
    """
    Explicitly constructed, stateless provider. One instance per app is
    enough; views build it from settings or receive one injected.
    """

    def __init__(
        self,
        endpoint: str,
        timeout: float = 10,
        normalizer: Optional[RouteNormalizer] = None,
    ):
        self.endpoint = endpoint
        self.timeout = timeout
        self.normalizer = normalizer or RouteNormalizer()

    @classmethod
    def from_settings(cls) -> "RouteProvider":
        config = settings.ROUTE_CONFIG
        normalizer = RouteNormalizer(
            duplicate_threshold_km=config["duplicate_threshold_km"],
            step_match_threshold_km=config["step_match_threshold_km"],
            max_segment_km=config["max_segment_km"],
        )
        return cls(
            endpoint=config["endpoint"],
            timeout=config.get("timeout_seconds", 10),
            normalizer=normalizer,
        )

    def fetch_route(
        self, start_lat: float, start_lng: float, end_lat: float, end_lng: float
    ) -> List[RoutePoint]:
        try:
            payload = self._request_route(start_lat, start_lng, end_lat, end_lng)
            route = self.normalizer.normalize_directions(payload)
            if not route:
                raise EmptyRoute("Directions response normalized to zero points")
        except RouteTrackerError as error:
            LOGGER.warning("%s, falling back to mock route", error)
            return self.fallback_route()
        except (AttributeError, KeyError, TypeError, ValueError) as error:
            LOGGER.warning("Error processing route response, falling back to mock route: %s", error)
            return self.fallback_route()

        LOGGER.info("Fetched route with %d points", len(route))
        return route

    def fetch_catalog_route(self, route_id: str) -> Optional[List[RoutePoint]]:
        catalog_route = get_catalog_route(route_id)
        if catalog_route is None:
            return None
        return self.fetch_route(
            catalog_route.start.latitude,
            catalog_route.start.longitude,
            catalog_route.end.latitude,
            catalog_route.end.longitude,
        )

    def fallback_route(self) -> List[RoutePoint]:
        return self.normalizer.normalize(fallback_waypoints())

    def _request_route(
        self, start_lat: float, start_lng: float, end_lat: float, end_lng: float
    ) -> Dict:
        body = {
            "start": {"lat": start_lat, "lng": start_lng},
            "end": {"lat": end_lat, "lng": end_lng},
        }
        try:
            response = requests.post(self.endpoint, json=body, timeout=self.timeout)
        except requests.exceptions.RequestException as error:
            raise TransportFailure(f"Error fetching route: {error}") from error

        if not response.ok:
            raise TransportFailure(f"API error {response.status_code}: {response.reason}")

        try:
            data = response.json()
        except ValueError as error:
            raise InvalidResponse("Route response is not valid JSON") from error

        if not isinstance(data, dict):
            raise InvalidResponse("Route response is not a JSON object")

        if data.get("status") != "OK" or not _first_leg(data):
            raise InvalidResponse(
                f"Invalid route response: {data.get('error_message') or data.get('status')}"
            )
        return data


def _first_leg(data: Dict) -> Optional[Dict]:
    try:
        return data["routes"][0]["legs"][0]
    except (KeyError, IndexError, TypeError):
        return None
