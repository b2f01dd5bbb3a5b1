"""
Turn a driving-directions payload, or a hand-authored list of waypoints, into
a dense, uniformly spaced route annotated with cumulative distance, cumulative
travel time and heading.
"""
from __future__ import annotations

import logging
import math
from dataclasses import replace
from typing import Dict, List, Optional, Sequence, Tuple

import polyline
from django.utils.html import strip_tags

from .exceptions import InvalidResponse
from .geo import bearing_degrees, distance_km, lerp_point
from .structures import GeoPoint, RoutePoint

LOGGER = logging.getLogger(__name__)

DUPLICATE_THRESHOLD_KM = 0.00005
STEP_MATCH_THRESHOLD_KM = 0.1
MAX_SEGMENT_KM = 0.02

MIN_STEP_SPEED_KMH = 10.0
MAX_STEP_SPEED_KMH = 80.0
DEFAULT_SPEED_KMH = 40.0
DEFAULT_STREET_NAME = "Road"


def _decode(encoded: Optional[str]) -> List[Tuple[float, float]]:
    if not encoded:
        return []
    try:
        return polyline.decode(encoded)
    except (IndexError, TypeError, ValueError) as error:
        raise InvalidResponse(f"Malformed polyline: {error}") from error


def _step_speed(step: Dict) -> float:
    distance = (step.get("distance") or {}).get("value")
    duration = (step.get("duration") or {}).get("value")
    if not distance or not duration:
        return DEFAULT_SPEED_KMH
    speed_kmh = distance / duration * 3.6
    return max(MIN_STEP_SPEED_KMH, min(MAX_STEP_SPEED_KMH, speed_kmh))


def _step_text(step: Dict) -> Tuple[str, Optional[str]]:
    """Return (street name, plain instruction) for a narrated step."""
    html = step.get("html_instructions")
    if html is None:
        return DEFAULT_STREET_NAME, None
    instruction = strip_tags(html)
    parts = instruction.split(" on ")
    street_name = parts[1] if len(parts) > 1 and parts[1] else DEFAULT_STREET_NAME
    return street_name, instruction


class RouteNormalizer:
    """
    Stateless route processing; the thresholds are tuned constants kept
    configurable rather than derived.
    """

    def __init__(
        self,
        duplicate_threshold_km: float = DUPLICATE_THRESHOLD_KM,
        step_match_threshold_km: float = STEP_MATCH_THRESHOLD_KM,
        max_segment_km: float = MAX_SEGMENT_KM,
    ):
        self.duplicate_threshold_km = duplicate_threshold_km
        self.step_match_threshold_km = step_match_threshold_km
        self.max_segment_km = max_segment_km

    # ----------------
    # Directions payload
    # ----------------
    def from_directions(self, payload: Dict) -> List[RoutePoint]:
        """
        Build the sparse, step-annotated route from a directions response.

        Raises InvalidResponse when the payload carries no overview path or
        no narrated steps.
        """
        try:
            route = payload["routes"][0]
            leg = route["legs"][0]
        except (KeyError, IndexError, TypeError) as error:
            raise InvalidResponse("No route leg found in directions response") from error

        overview = (route.get("overview_polyline") or {}).get("points")
        if not overview:
            raise InvalidResponse("No route polyline found")

        steps = leg.get("steps") or []
        if not steps:
            raise InvalidResponse("Route leg has no steps")

        step_paths = [
            [GeoPoint(lat, lng) for lat, lng in _decode((step.get("polyline") or {}).get("points"))]
            for step in steps
        ]

        route_points: List[RoutePoint] = []
        current_step = 0
        last_kept: Optional[GeoPoint] = None

        for lat, lng in _decode(overview):
            point = GeoPoint(lat, lng)
            if last_kept is not None and distance_km(last_kept, point) < self.duplicate_threshold_km:
                continue

            # Steps are matched in travel order, never backwards.
            while current_step < len(steps) and not any(
                distance_km(point, step_point) < self.step_match_threshold_km
                for step_point in step_paths[current_step]
            ):
                current_step += 1

            step = steps[min(current_step, len(steps) - 1)]
            street_name, instruction = _step_text(step)
            route_points.append(
                RoutePoint(
                    latitude=lat,
                    longitude=lng,
                    speed=_step_speed(step),
                    street_name=street_name,
                    instruction=instruction,
                )
            )
            last_kept = point

        LOGGER.debug(
            "Matched %d overview points against %d steps", len(route_points), len(steps)
        )
        return route_points

    # ----------------
    # Densify and measure
    # ----------------
    def densify(self, points: Sequence[RoutePoint]) -> List[RoutePoint]:
        """
        Insert evenly spaced points so no segment exceeds ``max_segment_km``.
        Metrics and rotation are cleared; ``measure`` fills them in.
        """
        if not points:
            return []

        densified: List[RoutePoint] = []
        for start, end in zip(points[:-1], points[1:]):
            segment_km = distance_km(start, end)
            parts = max(1, math.ceil(segment_km / self.max_segment_km))
            for part in range(parts):
                position = lerp_point(start, end, part / parts)
                densified.append(
                    RoutePoint(
                        latitude=position.latitude,
                        longitude=position.longitude,
                        speed=start.speed,
                        street_name=start.street_name,
                        instruction=start.instruction if part == 0 else None,
                    )
                )

        last = points[-1]
        densified.append(
            replace(last, distance_from_start=0.0, estimated_time=0.0, rotation=None)
        )
        return densified

    def measure(self, points: Sequence[RoutePoint]) -> List[RoutePoint]:
        """
        Return new points carrying cumulative distance (km), cumulative time
        (minutes) and the outgoing heading of each point.
        """
        count = len(points)
        distances = [0.0] * count
        times = [0.0] * count
        rotations: List[Optional[float]] = [None] * count

        for i in range(1, count):
            prev, cur = points[i - 1], points[i]
            segment_km = distance_km(prev, cur)
            distances[i] = distances[i - 1] + segment_km
            avg_speed = (prev.speed + cur.speed) / 2 or cur.speed or DEFAULT_SPEED_KMH
            times[i] = times[i - 1] + segment_km / avg_speed * 60
            rotations[i - 1] = bearing_degrees(prev, cur)

        if count >= 2:
            rotations[-1] = rotations[-2]

        return [
            replace(
                point,
                distance_from_start=distances[i],
                estimated_time=times[i],
                rotation=rotations[i],
            )
            for i, point in enumerate(points)
        ]

    def normalize(self, points: Sequence[RoutePoint]) -> List[RoutePoint]:
        return self.measure(self.densify(points))

    def normalize_directions(self, payload: Dict) -> List[RoutePoint]:
        return self.normalize(self.from_directions(payload))
