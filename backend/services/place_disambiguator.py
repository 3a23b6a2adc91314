"""
Map-click disambiguation.

Given a clicked coordinate and the places around it, pick the single
real-world entity the user most likely meant. Importance beats proximity:
a mall 150 m away wins over a cafe 20 m away, as long as the mall is within
its own distance threshold. When nothing qualifies the click resolves to a
street address via reverse geocoding.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Iterable, List, Optional

from domain.models import Coordinate
from services.address_formatter import format_address
from services.places_client import DETAILS_POI_FIELDS
from services.places_types import NearbyPlace
from services.poi_priority import VERY_CLOSE, distance_threshold, priority_of
from services.provider_errors import LocationProviderError
from settings import settings

logger = logging.getLogger(__name__)

SOURCE_PLACE = "place"
SOURCE_NEARBY = "nearby"
SOURCE_ADDRESS = "address"


@dataclass(frozen=True)
class RankedPlace:
    place: NearbyPlace
    distance: float  # degrees
    priority: int

    @property
    def accepted(self) -> bool:
        return self.distance < distance_threshold(self.priority) or self.distance < VERY_CLOSE


@dataclass(frozen=True)
class ClickResolution:
    display_name: str
    coordinate: Coordinate  # the clicked point
    source: str
    place_id: Optional[str] = None


def planar_distance(a: Coordinate, b: Coordinate) -> float:
    """Euclidean distance in degree space; fine at city scale."""
    return math.hypot(a.lat - b.lat, a.lng - b.lng)


def rank_places(click: Coordinate, places: Iterable[NearbyPlace]) -> List[RankedPlace]:
    """Order places by priority (desc), then distance (asc). Full ties keep input order."""
    ranked = [
        RankedPlace(
            place=place,
            distance=planar_distance(click, place.coordinate),
            priority=priority_of(place.types),
        )
        for place in places
    ]
    ranked.sort(key=lambda r: (-r.priority, r.distance))
    return ranked


def select_place(click: Coordinate, places: Iterable[NearbyPlace]) -> Optional[RankedPlace]:
    """Return the top-ranked place if it is close enough for its priority."""
    ranked = rank_places(click, places)
    if not ranked:
        return None
    best = ranked[0]
    if best.accepted:
        return best
    logger.debug(
        "Top candidate %r rejected: distance=%.6f priority=%d threshold=%.4f",
        best.place.name,
        best.distance,
        best.priority,
        distance_threshold(best.priority),
    )
    return None


class PlaceDisambiguator:
    def __init__(
        self,
        provider,
        radius_m: Optional[float] = None,
        nearest_limit: Optional[int] = None,
        home_country: Optional[str] = None,
    ):
        self.provider = provider
        self.radius_m = radius_m or settings.NEARBY_SEARCH_RADIUS_M
        self.nearest_limit = nearest_limit or settings.NEAREST_FALLBACK_LIMIT
        self.home_country = home_country if home_country is not None else settings.HOME_COUNTRY

    async def resolve_place_click(self, coordinate: Coordinate, place_id: str) -> Optional[ClickResolution]:
        """Click where the map supplied a place id directly."""
        try:
            detail = await self.provider.get_details(place_id, DETAILS_POI_FIELDS)
        except LocationProviderError as exc:
            logger.warning("Details for clicked place %s failed: %s", place_id, exc)
            detail = None
        if detail is not None and detail.name:
            return ClickResolution(detail.name, coordinate, SOURCE_PLACE, place_id)
        return await self.resolve_click(coordinate)

    async def resolve_click(self, coordinate: Coordinate) -> Optional[ClickResolution]:
        """Coordinate-only click: nearby POIs first, street address otherwise."""
        candidates = await self._nearby(coordinate, rank_by_distance=False)
        if not candidates:
            candidates = await self._nearby(coordinate, rank_by_distance=True)

        best = select_place(coordinate, candidates)
        if best is not None:
            name = best.place.name
            try:
                detail = await self.provider.get_details(best.place.id, DETAILS_POI_FIELDS)
                if detail.name:
                    name = detail.name
            except LocationProviderError as exc:
                logger.warning("Details for %s failed, keeping nearby name: %s", best.place.id, exc)
            if name:
                return ClickResolution(name, coordinate, SOURCE_NEARBY, best.place.id or None)

        return await self._reverse_geocode(coordinate)

    async def _nearby(self, coordinate: Coordinate, rank_by_distance: bool) -> List[NearbyPlace]:
        try:
            if rank_by_distance:
                return await self.provider.nearby_search(
                    coordinate, rank_by_distance=True, max_results=self.nearest_limit
                )
            return await self.provider.nearby_search(coordinate, radius_m=self.radius_m)
        except LocationProviderError as exc:
            logger.warning("Nearby search failed at %s: %s", coordinate.to_param(), exc)
            return []

    async def _reverse_geocode(self, coordinate: Coordinate) -> Optional[ClickResolution]:
        try:
            result = await self.provider.reverse_geocode(coordinate)
        except LocationProviderError as exc:
            logger.warning("Reverse geocode failed at %s: %s", coordinate.to_param(), exc)
            return None
        if result is None:
            return None
        name = format_address(result.formatted_address, result.address_components, self.home_country)
        if not name:
            return None
        return ClickResolution(name, coordinate, SOURCE_ADDRESS)
