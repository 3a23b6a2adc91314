"""
Core domain models for event location resolution.
These are framework-agnostic and can be used across all services.
"""
from dataclasses import dataclass
from typing import Any, Dict


@dataclass(frozen=True)
class Coordinate:
    """A WGS84 point in degrees."""
    lat: float
    lng: float

    def __post_init__(self) -> None:
        if not -90.0 <= self.lat <= 90.0:
            raise ValueError(f"Latitude out of range: {self.lat}")
        if not -180.0 <= self.lng <= 180.0:
            raise ValueError(f"Longitude out of range: {self.lng}")

    def to_param(self) -> str:
        """Render as the 'lat,lng' string map providers expect."""
        return f"{self.lat},{self.lng}"

    def to_dict(self) -> Dict[str, float]:
        return {"lat": self.lat, "lng": self.lng}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Coordinate":
        return cls(lat=float(data["lat"]), lng=float(data["lng"]))


@dataclass(frozen=True)
class ResolvedLocation:
    """
    A confirmed location handed back to the event form.

    Only ever built once a coordinate is known; typed text without a
    coordinate is reported through the callback but never becomes one.
    """
    display_name: str
    coordinate: Coordinate
    timezone: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "display_name": self.display_name,
            "lat": self.coordinate.lat,
            "lng": self.coordinate.lng,
            "timezone": self.timezone,
        }
