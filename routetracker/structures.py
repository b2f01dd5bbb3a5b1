# Internal data structures shared by the normalizer, provider and animator.
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional


@dataclass(frozen=True)
class GeoPoint:
    """A raw coordinate, immutable once created."""
    latitude: float
    longitude: float


@dataclass(frozen=True)
class RoutePoint:
    """
    One annotated point of a normalized route.

    speed: km/h
    distance_from_start: km, cumulative from the route origin
    estimated_time: minutes, cumulative from the route origin
    rotation: heading leaving this point, degrees in [0, 360)
    """
    latitude: float
    longitude: float
    speed: float
    street_name: str
    instruction: Optional[str] = None
    distance_from_start: float = 0.0
    estimated_time: float = 0.0
    rotation: Optional[float] = None

    def as_dict(self) -> Dict[str, object]:
        return {
            "latitude": self.latitude,
            "longitude": self.longitude,
            "speed": self.speed,
            "streetName": self.street_name,
            "instruction": self.instruction,
            "distanceFromStart": self.distance_from_start,
            "estimatedTime": self.estimated_time,
            "rotation": self.rotation,
        }


@dataclass(frozen=True)
class CatalogRoute:
    """A predefined start/end pair offered on the route list."""
    id: str
    start_location: str
    end_location: str
    start: GeoPoint
    end: GeoPoint
    live_tracking_available: bool
    distance: Optional[str] = None
    estimated_time: Optional[str] = None

    def as_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "startLocation": self.start_location,
            "endLocation": self.end_location,
            "startCoords": {"lat": self.start.latitude, "lng": self.start.longitude},
            "endCoords": {"lat": self.end.latitude, "lng": self.end.longitude},
            "liveTrackingAvailable": self.live_tracking_available,
            "distance": self.distance,
            "estimatedTime": self.estimated_time,
        }


class PlaybackStatus(Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"


@dataclass
class PlaybackState:
    current_index: int = 0
    progress: float = 0.0


@dataclass(frozen=True)
class LiveMetrics:
    current_instruction: str = ""
    remaining_distance: float = 0.0
    eta: str = ""


@dataclass(frozen=True)
class VehicleState:
    """Interpolated vehicle position handed to playback listeners."""
    latitude: float
    longitude: float
    speed: float
    street_name: str
    instruction: Optional[str]
    distance_from_start: float
    estimated_time: float
    rotation: float
