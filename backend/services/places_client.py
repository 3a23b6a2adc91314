"""
Lightweight Google Maps Web Services client with shared rate limiting.

Exposes the five capabilities the location picker needs: autocomplete,
place details, nearby search, reverse geocoding and timezone lookup.
Calls are blocking (requests); AsyncPlacesClient runs them off the event loop.
"""
from __future__ import annotations

import asyncio
import functools
import logging
import threading
import time
from typing import Any, Iterable, List, Optional, Sequence

import requests

from domain.models import Coordinate
from services.places_types import (
    AddressComponent,
    NearbyPlace,
    PlaceCandidate,
    PlaceDetails,
    ReverseGeocodeResult,
)
from services.provider_errors import (
    ProviderRequestError,
    ProviderStatusError,
    ProviderUnavailableError,
)
from settings import settings

logger = logging.getLogger(__name__)
_session = requests.Session()
_last_request_ts: float = 0.0
_lock = threading.Lock()

# Google rejects autocomplete requests with more than five country components.
MAX_AUTOCOMPLETE_COUNTRIES = 5
DETAILS_SELECTION_FIELDS = ("geometry", "address_component")
DETAILS_POI_FIELDS = ("name", "types", "formatted_address", "address_component", "geometry")
_OK_STATUSES = {"OK", "ZERO_RESULTS"}


def _throttled_get(
    url: str,
    *,
    params: dict[str, Any],
    timeout: float,
    min_interval: float,
) -> requests.Response:
    """Perform a GET request with a simple global rate limit."""
    global _last_request_ts
    with _lock:
        now = time.time()
        delta = now - _last_request_ts
        if delta < min_interval:
            time.sleep(min_interval - delta)
        _last_request_ts = time.time()
    return _session.get(url, params=params, timeout=timeout)


def _coordinate_from_geometry(raw: Optional[dict]) -> Optional[Coordinate]:
    location = (raw or {}).get("location") or {}
    if "lat" not in location or "lng" not in location:
        return None
    try:
        return Coordinate(lat=float(location["lat"]), lng=float(location["lng"]))
    except (TypeError, ValueError):
        return None


def _components(raw: Iterable[dict] | None) -> List[AddressComponent]:
    return [AddressComponent.from_raw(item) for item in raw or [] if isinstance(item, dict)]


def _payload_errors(func):
    """Report malformed provider payloads as ProviderRequestError."""

    @functools.wraps(func)
    def wrapper(self, *args, **kwargs):
        try:
            return func(self, *args, **kwargs)
        except (AttributeError, KeyError, TypeError) as exc:
            raise ProviderRequestError(f"{func.__name__}: malformed provider payload: {exc}") from exc

    return wrapper


class PlacesClient:
    def __init__(
        self,
        api_key: Optional[str] = None,
        timezone_api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        min_interval: Optional[float] = None,
        default_radius_m: Optional[float] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.GOOGLE_MAPS_API_KEY
        self.timezone_api_key = timezone_api_key or settings.GOOGLE_TIMEZONE_API_KEY or self.api_key
        self.base_url = (base_url or settings.GOOGLE_MAPS_BASE_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.PROVIDER_TIMEOUT_SECONDS
        self.min_interval = min_interval if min_interval is not None else settings.PROVIDER_MIN_INTERVAL
        self.default_radius_m = default_radius_m or settings.NEARBY_SEARCH_RADIUS_M
        self.logger = logging.getLogger(__name__)

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def _get_json(self, endpoint: str, params: dict[str, Any], key: Optional[str] = None) -> dict:
        api_key = key or self.api_key
        if not api_key:
            raise ProviderUnavailableError("Google Maps API key not configured")
        url = f"{self.base_url}/{endpoint}/json"
        try:
            resp = _throttled_get(
                url,
                params={**params, "key": api_key},
                timeout=self.timeout,
                min_interval=self.min_interval,
            )
            resp.raise_for_status()
            data = resp.json()
        except requests.RequestException as exc:
            raise ProviderRequestError(f"{endpoint} request failed: {exc}") from exc
        except ValueError as exc:
            raise ProviderRequestError(f"{endpoint} returned invalid JSON: {exc}") from exc

        if not isinstance(data, dict):
            raise ProviderRequestError(f"{endpoint} returned an unexpected payload")
        status = data.get("status")
        if status not in _OK_STATUSES:
            raise ProviderStatusError(
                data.get("error_message") or f"{endpoint} failed with status {status}",
                status=status,
            )
        return data

    @_payload_errors
    def autocomplete(
        self,
        text: str,
        countries: Optional[Sequence[str]] = None,
    ) -> List[PlaceCandidate]:
        params: dict[str, Any] = {"input": text}
        if countries:
            codes = [c.lower() for c in countries if c]
            if len(codes) > MAX_AUTOCOMPLETE_COUNTRIES:
                self.logger.debug(
                    "autocomplete: %d countries requested, sending first %d",
                    len(codes),
                    MAX_AUTOCOMPLETE_COUNTRIES,
                )
                codes = codes[:MAX_AUTOCOMPLETE_COUNTRIES]
            params["components"] = "|".join(f"country:{c}" for c in codes)

        data = self._get_json("place/autocomplete", params)
        results: List[PlaceCandidate] = []
        for item in data.get("predictions") or []:
            place_id = item.get("place_id")
            if not place_id:
                continue
            formatting = item.get("structured_formatting") or {}
            description = item.get("description") or ""
            results.append(
                PlaceCandidate(
                    id=str(place_id),
                    description=description,
                    main_text=formatting.get("main_text") or description,
                    secondary_text=formatting.get("secondary_text") or "",
                )
            )
        self.logger.debug("PlacesClient.autocomplete: %r got %d predictions", text, len(results))
        return results

    @_payload_errors
    def get_details(
        self,
        place_id: str,
        fields: Sequence[str] = DETAILS_SELECTION_FIELDS,
    ) -> PlaceDetails:
        data = self._get_json(
            "place/details",
            {"place_id": place_id, "fields": ",".join(fields)},
        )
        result = data.get("result")
        if not result:
            raise ProviderStatusError(f"No details for place {place_id}", status=data.get("status"))
        return PlaceDetails(
            coordinate=_coordinate_from_geometry(result.get("geometry")),
            address_components=_components(result.get("address_components")),
            name=result.get("name"),
            formatted_address=result.get("formatted_address"),
            types=list(result.get("types") or []),
        )

    @_payload_errors
    def nearby_search(
        self,
        coordinate: Coordinate,
        radius_m: Optional[float] = None,
        rank_by_distance: bool = False,
        max_results: Optional[int] = None,
    ) -> List[NearbyPlace]:
        params: dict[str, Any] = {"location": coordinate.to_param()}
        if rank_by_distance:
            # rankby=distance requires a type/keyword and forbids radius.
            params["rankby"] = "distance"
            params["type"] = "establishment"
        else:
            params["radius"] = int(radius_m or self.default_radius_m)

        data = self._get_json("place/nearbysearch", params)
        results: List[NearbyPlace] = []
        for item in data.get("results") or []:
            place_coord = _coordinate_from_geometry(item.get("geometry"))
            if place_coord is None:
                continue
            results.append(
                NearbyPlace(
                    name=item.get("name") or "",
                    types=tuple(item.get("types") or ()),
                    coordinate=place_coord,
                    id=str(item.get("place_id") or ""),
                )
            )
        if max_results is not None:
            results = results[:max_results]
        self.logger.debug(
            "PlacesClient.nearby_search: lat=%.6f lng=%.6f %s got %d results",
            coordinate.lat,
            coordinate.lng,
            "rankby=distance" if rank_by_distance else f"radius_m={params['radius']}",
            len(results),
        )
        return results

    @_payload_errors
    def reverse_geocode(self, coordinate: Coordinate) -> Optional[ReverseGeocodeResult]:
        """Return the most specific address for a point, or None when nothing matches."""
        data = self._get_json("geocode", {"latlng": coordinate.to_param()})
        results = data.get("results") or []
        if not results:
            return None
        first = results[0]
        return ReverseGeocodeResult(
            formatted_address=first.get("formatted_address") or "",
            address_components=_components(first.get("address_components")),
        )

    @_payload_errors
    def timezone_lookup(self, coordinate: Coordinate) -> str:
        data = self._get_json(
            "timezone",
            {"location": coordinate.to_param(), "timestamp": int(time.time())},
            key=self.timezone_api_key,
        )
        tz_name = data.get("timeZoneId")
        if data.get("status") != "OK" or not tz_name:
            raise ProviderStatusError("Timezone lookup returned no zone", status=data.get("status"))
        return str(tz_name)


class AsyncPlacesClient:
    """Runs a blocking PlacesClient in worker threads so callers can await it."""

    def __init__(self, client: PlacesClient):
        self.client = client

    @property
    def is_configured(self) -> bool:
        return self.client.is_configured

    async def autocomplete(self, text: str, countries: Optional[Sequence[str]] = None) -> List[PlaceCandidate]:
        return await asyncio.to_thread(self.client.autocomplete, text, countries)

    async def get_details(self, place_id: str, fields: Sequence[str] = DETAILS_SELECTION_FIELDS) -> PlaceDetails:
        return await asyncio.to_thread(self.client.get_details, place_id, fields)

    async def nearby_search(
        self,
        coordinate: Coordinate,
        radius_m: Optional[float] = None,
        rank_by_distance: bool = False,
        max_results: Optional[int] = None,
    ) -> List[NearbyPlace]:
        return await asyncio.to_thread(
            self.client.nearby_search, coordinate, radius_m, rank_by_distance, max_results
        )

    async def reverse_geocode(self, coordinate: Coordinate) -> Optional[ReverseGeocodeResult]:
        return await asyncio.to_thread(self.client.reverse_geocode, coordinate)

    async def timezone_lookup(self, coordinate: Coordinate) -> str:
        return await asyncio.to_thread(self.client.timezone_lookup, coordinate)


_default_places_client: Optional[AsyncPlacesClient] = None


def get_default_places_client() -> AsyncPlacesClient:
    global _default_places_client
    if _default_places_client is None:
        _default_places_client = AsyncPlacesClient(PlacesClient())
    return _default_places_client
