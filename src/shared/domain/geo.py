"""Geographic value objects and great-circle helpers."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Mapping, Optional

EARTH_RADIUS_M = 6_371_000.0


@dataclass(frozen=True)
class Coordinates:
    """A WGS84 point in decimal degrees."""

    lat: float
    lng: float

    def __post_init__(self) -> None:
        if not -90.0 <= self.lat <= 90.0:
            raise ValueError(f"Latitude out of range: {self.lat}")
        if not -180.0 <= self.lng <= 180.0:
            raise ValueError(f"Longitude out of range: {self.lng}")

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> Optional[Coordinates]:
        """Build from ``{"lat": ..., "lng": ...}``; ``None`` when absent."""
        if not data or data.get("lat") is None or data.get("lng") is None:
            return None
        return cls(lat=float(data["lat"]), lng=float(data["lng"]))

    def as_dict(self) -> dict[str, float]:
        return {"lat": self.lat, "lng": self.lng}

    def display(self) -> str:
        return f"Lat: {self.lat:.4f}, Lng: {self.lng:.4f}"


def haversine_distance_m(a: Coordinates, b: Coordinates) -> float:
    """Great-circle distance between two points, in meters."""
    lat1, lat2 = math.radians(a.lat), math.radians(b.lat)
    d_lat = lat2 - lat1
    d_lng = math.radians(b.lng - a.lng)
    h = (
        math.sin(d_lat / 2) ** 2
        + math.cos(lat1) * math.cos(lat2) * math.sin(d_lng / 2) ** 2
    )
    return 2 * EARTH_RADIUS_M * math.asin(min(1.0, math.sqrt(h)))


def haversine_distance_km(a: Coordinates, b: Coordinates) -> float:
    return haversine_distance_m(a, b) / 1000.0
