"""
Client for the third-party driving-directions API the proxy endpoint forwards
to. Every failure is raised as a RouteTrackerError subclass so the view can
turn it into a JSON error response.
"""
from __future__ import annotations

import logging
from typing import Dict

import requests
from django.conf import settings

from .exceptions import ConfigurationError, InvalidResponse, TransportFailure
from .structures import GeoPoint

LOGGER = logging.getLogger(__name__)

DEFAULT_DIRECTIONS_URL = "https://maps.googleapis.com/maps/api/directions/json"


def fetch_directions(start: GeoPoint, end: GeoPoint) -> Dict:
    config = settings.ROUTE_CONFIG
    api_key = config.get("google_maps_api_key")
    if not api_key:
        raise ConfigurationError("Google Maps API key is not configured")

    params = {
        "origin": f"{start.latitude:.6f},{start.longitude:.6f}",
        "destination": f"{end.latitude:.6f},{end.longitude:.6f}",
        "mode": "driving",
        "key": api_key,
    }
    url = config.get("directions_url") or DEFAULT_DIRECTIONS_URL

    LOGGER.info(
        "Requesting directions from %s to %s", params["origin"], params["destination"]
    )

    try:
        response = requests.get(url, params=params, timeout=config.get("timeout_seconds", 10))
    except requests.exceptions.RequestException as error:
        raise TransportFailure(f"Directions API request failed: {error}") from error

    try:
        data = response.json()
    except ValueError:
        data = None

    if isinstance(data, dict) and data.get("error_message"):
        LOGGER.error("Directions API error message: %s", data["error_message"])

    if not response.ok:
        raise TransportFailure(
            f"Directions API HTTP error: {response.status_code} {response.reason}"
        )

    if not isinstance(data, dict):
        raise InvalidResponse("Directions API returned a non-JSON body")

    status = data.get("status")
    if status != "OK":
        if status == "REQUEST_DENIED":
            LOGGER.error("Directions request denied; check the API key and its enabled APIs.")
        raise InvalidResponse(
            f"Directions API error: {status} - {data.get('error_message') or 'No error message provided'}"
        )

    return data
