"""
Coordinate -> IANA timezone resolution.

The provider lookup is authoritative; when it fails (network error, quota,
missing key) an offline bounding-box approximation is used instead. Both
paths return plain timezone names; only the logs say which one was taken.
"""
from __future__ import annotations

import logging
from typing import Dict, Optional, Tuple

from domain.models import Coordinate
from services.provider_errors import LocationProviderError
from settings import settings

logger = logging.getLogger(__name__)

# (min_lat, max_lat, min_lng, max_lng, timezone). First match wins, so the
# small city boxes sit ahead of the broad Indonesian bands that overlap them.
TIMEZONE_BOXES: Tuple[Tuple[float, float, float, float, str], ...] = (
    (1.15, 1.48, 103.6, 104.1, "Asia/Singapore"),
    (34.0, 37.0, 138.0, 141.0, "Asia/Tokyo"),
    (34.3, 35.2, 135.0, 136.0, "Asia/Tokyo"),  # Osaka / Kyoto
    (33.0, 38.0, 126.0, 130.0, "Asia/Seoul"),
    (39.0, 41.0, 116.0, 118.0, "Asia/Shanghai"),
    (22.1, 22.6, 113.8, 114.5, "Asia/Hong_Kong"),
    (24.8, 25.3, 121.3, 121.8, "Asia/Taipei"),
    (13.0, 15.0, 100.0, 101.5, "Asia/Bangkok"),
    (2.5, 3.5, 101.2, 102.0, "Asia/Kuala_Lumpur"),
    (20.5, 21.5, 105.3, 106.3, "Asia/Ho_Chi_Minh"),
    (14.0, 15.0, 120.5, 121.5, "Asia/Manila"),
    # Indonesia: WIB west of ~115E, WITA to ~125E, WIT beyond.
    (-11.0, 6.0, 95.0, 115.0, "Asia/Jakarta"),
    (-11.0, 6.0, 115.0, 125.0, "Asia/Makassar"),
    (-11.0, 6.0, 125.0, 141.0, "Asia/Jayapura"),
)

# Popular dashboard cities, for typed text that never got a coordinate.
LOCATION_TIMEZONES: Dict[str, str] = {
    "bangkok": "Asia/Bangkok",
    "beijing": "Asia/Shanghai",
    "hanoi": "Asia/Ho_Chi_Minh",
    "hong kong": "Asia/Hong_Kong",
    "jakarta": "Asia/Jakarta",
    "kuala lumpur": "Asia/Kuala_Lumpur",
    "kyoto": "Asia/Tokyo",
    "manila": "Asia/Manila",
    "osaka": "Asia/Tokyo",
    "seoul": "Asia/Seoul",
    "singapore": "Asia/Singapore",
    "taipei": "Asia/Taipei",
    "tokyo": "Asia/Tokyo",
}


def approximate_timezone(coordinate: Coordinate, default: Optional[str] = None) -> str:
    """Rough offline timezone for a point; never fails."""
    for min_lat, max_lat, min_lng, max_lng, tz_name in TIMEZONE_BOXES:
        if min_lat <= coordinate.lat <= max_lat and min_lng <= coordinate.lng <= max_lng:
            return tz_name
    return default or settings.DEFAULT_TIMEZONE


def timezone_for_location_name(name: Optional[str], default: Optional[str] = None) -> str:
    """Timezone for a typed location label such as 'Tokyo, Japan'."""
    fallback = default or settings.DEFAULT_TIMEZONE
    if not name or not name.strip():
        return fallback
    key = name.strip().casefold()
    if key in LOCATION_TIMEZONES:
        return LOCATION_TIMEZONES[key]
    head = key.split(",", 1)[0].strip()
    return LOCATION_TIMEZONES.get(head, fallback)


class TimezoneResolver:
    def __init__(self, provider=None, default_timezone: Optional[str] = None):
        """
        Args:
            provider: async provider exposing ``timezone_lookup(coordinate)``;
                None means always use the offline table.
            default_timezone: zone for points outside every known box.
        """
        self.provider = provider
        self.default_timezone = default_timezone or settings.DEFAULT_TIMEZONE

    async def resolve(self, coordinate: Coordinate) -> str:
        if self.provider is not None:
            try:
                tz_name = await self.provider.timezone_lookup(coordinate)
                logger.info(
                    "Timezone for %.5f,%.5f from provider: %s",
                    coordinate.lat,
                    coordinate.lng,
                    tz_name,
                )
                return tz_name
            except LocationProviderError as exc:
                logger.warning(
                    "Timezone lookup failed for %.5f,%.5f (%s); using offline approximation",
                    coordinate.lat,
                    coordinate.lng,
                    exc,
                )
        tz_name = approximate_timezone(coordinate, self.default_timezone)
        logger.info(
            "Timezone for %.5f,%.5f from offline table: %s",
            coordinate.lat,
            coordinate.lng,
            tz_name,
        )
        return tz_name

    def resolve_name(self, name: Optional[str]) -> str:
        return timezone_for_location_name(name, self.default_timezone)
