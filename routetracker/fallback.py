"""
Static route data: the hand-authored fallback drive used whenever the live
directions fetch fails, and the catalog of routes offered on the route list.
"""
from __future__ import annotations

from typing import Dict, List, Optional, Sequence

from .structures import CatalogRoute, GeoPoint, RoutePoint

# Mission District to Downtown SF, following streets.
FALLBACK_WAYPOINTS: Sequence[Dict[str, object]] = [
    {"lat": 37.7647, "lng": -122.4192, "speed": 30, "street": "Mission St", "instruction": "Start at Mission & 16th"},
    {"lat": 37.7651, "lng": -122.4198, "speed": 20, "street": "16th St", "instruction": "Turn right onto 16th St"},
    {"lat": 37.7652, "lng": -122.4207, "speed": 25, "street": "16th St", "instruction": "Continue on 16th St"},
    {"lat": 37.7653, "lng": -122.4212, "speed": 25, "street": "16th St"},
    {"lat": 37.7654, "lng": -122.4217, "speed": 20, "street": "16th St", "instruction": "Approaching Mission St"},
    {"lat": 37.7655, "lng": -122.4226, "speed": 15, "street": "16th St"},
    {"lat": 37.7656, "lng": -122.4231, "speed": 10, "street": "16th St", "instruction": "Prepare to turn left"},
    {"lat": 37.7657, "lng": -122.4236, "speed": 15, "street": "Mission St", "instruction": "Turn left onto Mission St"},
    {"lat": 37.7662, "lng": -122.4235, "speed": 25, "street": "Mission St"},
    {"lat": 37.7666, "lng": -122.4234, "speed": 30, "street": "Mission St", "instruction": "Continue on Mission St"},
    {"lat": 37.7671, "lng": -122.4233, "speed": 30, "street": "Mission St"},
    {"lat": 37.7676, "lng": -122.4232, "speed": 25, "street": "Mission St", "instruction": "Approaching 14th St"},
    {"lat": 37.7681, "lng": -122.4231, "speed": 30, "street": "Mission St"},
    {"lat": 37.7685, "lng": -122.4230, "speed": 30, "street": "Mission St", "instruction": "Pass Duboce Ave"},
    {"lat": 37.7690, "lng": -122.4229, "speed": 30, "street": "Mission St"},
    {"lat": 37.7694, "lng": -122.4228, "speed": 25, "street": "Mission St", "instruction": "Approaching Market St"},
    {"lat": 37.7699, "lng": -122.4227, "speed": 20, "street": "Mission St"},
    {"lat": 37.7703, "lng": -122.4226, "speed": 15, "street": "Mission St", "instruction": "Prepare to turn right"},
    {"lat": 37.7712, "lng": -122.4224, "speed": 15, "street": "Market St", "instruction": "Turn right onto Market St"},
    {"lat": 37.7716, "lng": -122.4221, "speed": 25, "street": "Market St"},
    {"lat": 37.7721, "lng": -122.4218, "speed": 30, "street": "Market St", "instruction": "Continue on Market St"},
    {"lat": 37.7725, "lng": -122.4215, "speed": 30, "street": "Market St"},
    {"lat": 37.7730, "lng": -122.4212, "speed": 25, "street": "Market St", "instruction": "Approaching 8th St"},
    {"lat": 37.7734, "lng": -122.4209, "speed": 30, "street": "Market St"},
    {"lat": 37.7739, "lng": -122.4206, "speed": 30, "street": "Market St", "instruction": "Pass 7th St"},
    {"lat": 37.7743, "lng": -122.4203, "speed": 25, "street": "Market St"},
    {"lat": 37.7748, "lng": -122.4200, "speed": 20, "street": "Market St", "instruction": "Approaching destination"},
    {"lat": 37.7752, "lng": -122.4197, "speed": 15, "street": "Market St"},
    {"lat": 37.7757, "lng": -122.4194, "speed": 10, "street": "Market St", "instruction": "Arriving at Market & 5th"},
]

# Used when a client asks for a route without coordinates.
DEFAULT_START = GeoPoint(latitude=37.7647, longitude=-122.4192)
DEFAULT_END = GeoPoint(latitude=37.7757, longitude=-122.4194)

ROUTE_CATALOG_DEFINITIONS: Sequence[Dict[str, object]] = [
    {
        "id": "1",
        "start_location": "AWR Office, Business Bay, Dubai",
        "end_location": "Burj Khalifa, Downtown Dubai",
        "start": (25.1879, 55.2744),
        "end": (25.1972, 55.2744),
        "live_tracking_available": True,
        "distance": "1.2 km",
        "estimated_time": "4 min",
    },
    {
        "id": "2",
        "start_location": "Dubai Mall, Downtown",
        "end_location": "Mall of the Emirates",
        "start": (25.1972, 55.2796),
        "end": (25.1181, 55.2008),
        "live_tracking_available": False,
        "distance": "12.5 km",
        "estimated_time": "18 min",
    },
    {
        "id": "3",
        "start_location": "Dubai International Airport",
        "end_location": "Palm Jumeirah",
        "start": (25.2532, 55.3657),
        "end": (25.1124, 55.1390),
        "live_tracking_available": False,
        "distance": "35 km",
        "estimated_time": "32 min",
    },
    {
        "id": "4",
        "start_location": "Dubai Marina",
        "end_location": "Jumeirah Beach",
        "start": (25.0804, 55.1398),
        "end": (25.2321, 55.2709),
        "live_tracking_available": True,
        "distance": "19.5 km",
        "estimated_time": "24 min",
    },
    {
        "id": "5",
        "start_location": "Deira City Centre",
        "end_location": "Gold Souk, Deira",
        "start": (25.2524, 55.3309),
        "end": (25.2701, 55.3001),
        "live_tracking_available": False,
        "distance": "4.8 km",
        "estimated_time": "12 min",
    },
]


def fallback_waypoints() -> List[RoutePoint]:
    """Un-densified fallback drive as RoutePoints."""
    return [
        RoutePoint(
            latitude=waypoint["lat"],
            longitude=waypoint["lng"],
            speed=float(waypoint["speed"]),
            street_name=waypoint["street"],
            instruction=waypoint.get("instruction"),
        )
        for waypoint in FALLBACK_WAYPOINTS
    ]


def _build_catalog() -> List[CatalogRoute]:
    catalog: List[CatalogRoute] = []
    for definition in ROUTE_CATALOG_DEFINITIONS:
        start_lat, start_lng = definition["start"]
        end_lat, end_lng = definition["end"]
        catalog.append(
            CatalogRoute(
                id=definition["id"],
                start_location=definition["start_location"],
                end_location=definition["end_location"],
                start=GeoPoint(start_lat, start_lng),
                end=GeoPoint(end_lat, end_lng),
                live_tracking_available=definition["live_tracking_available"],
                distance=definition.get("distance"),
                estimated_time=definition.get("estimated_time"),
            )
        )
    return catalog


ROUTE_CATALOG = _build_catalog()


def get_catalog_route(route_id: str) -> Optional[CatalogRoute]:
    for route in ROUTE_CATALOG:
        if route.id == route_id:
            return route
    return None
