"""
Plane and great-circle helpers shared by the route normalizer and the
playback animator.

Every function takes objects exposing ``latitude`` and ``longitude``
attributes, so GeoPoint, RoutePoint and VehicleState can be mixed freely.
"""
from __future__ import annotations

import math

from .structures import GeoPoint

EARTH_RADIUS_KM = 6371.0


def distance_km(start, end) -> float:
    """
    Compute the great-circle distance between two coordinates in kilometres.
    """
    lat1 = math.radians(start.latitude)
    lat2 = math.radians(end.latitude)
    d_lat = lat2 - lat1
    d_lng = math.radians(end.longitude - start.longitude)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(lat1) * math.cos(lat2) * math.sin(d_lng / 2) ** 2
    )
    # Rounding can push near-antipodal pairs just past 1.
    a = min(1.0, a)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def bearing_degrees(start, end) -> float:
    """
    Compute the forward azimuth in degrees from ``start`` to ``end``.

    Identical points have no direction; the result is 0 in that case.
    """
    phi1 = math.radians(start.latitude)
    phi2 = math.radians(end.latitude)
    d_lambda = math.radians(end.longitude - start.longitude)

    x = math.sin(d_lambda) * math.cos(phi2)
    y = math.cos(phi1) * math.sin(phi2) - math.sin(phi1) * math.cos(phi2) * math.cos(
        d_lambda
    )
    bearing = math.degrees(math.atan2(x, y))
    return (bearing + 360) % 360


def lerp_angle(a: float, b: float, t: float) -> float:
    """
    Interpolate between two headings along the shorter arc, result in [0, 360).
    """
    diff = (b - a) % 360
    # Normalize diff to [-180, 180)
    if diff >= 180:
        diff -= 360
    return (a + diff * t) % 360


def lerp_point(start, end, t: float) -> GeoPoint:
    # Linear in lat/lng; segments are far below a kilometre after densifying.
    return GeoPoint(
        latitude=start.latitude + (end.latitude - start.latitude) * t,
        longitude=start.longitude + (end.longitude - start.longitude) * t,
    )
