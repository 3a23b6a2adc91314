"""
Location API routes.

Backs the event form's location picker: autocomplete, candidate selection,
map-click resolution and timezone lookup.
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, HTTPException, Query, Request, Response
from pydantic import BaseModel, Field

from domain.models import Coordinate
from services.location_controller import (
    NO_RESULTS_MESSAGE,
    PROVIDER_UNAVAILABLE_MESSAGE,
    resolve_candidate_selection,
)
from services.place_disambiguator import PlaceDisambiguator
from services.places_client import get_default_places_client
from services.places_types import PlaceCandidate
from services.provider_errors import LocationProviderError
from services.rate_limit import FixedWindowRateLimiter, client_identifier
from services.timezone_resolver import TimezoneResolver, timezone_for_location_name
from settings import settings

router = APIRouter()
places = get_default_places_client()
timezone_limiter = FixedWindowRateLimiter(settings.TIMEZONE_RATE_LIMIT_PER_MINUTE, 60.0)
logger = logging.getLogger(__name__)


class ProviderStatusResponse(BaseModel):
    available: bool
    message: Optional[str] = None


class CandidateResponse(BaseModel):
    place_id: str
    description: str
    main_text: str
    secondary_text: str


class AutocompleteResponse(BaseModel):
    query: str
    candidates: List[CandidateResponse]


class SelectRequest(BaseModel):
    place_id: str
    description: str


class LocationResponse(BaseModel):
    display_name: str
    timezone: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None


class ClickRequest(BaseModel):
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)
    place_id: Optional[str] = None


class ClickResponse(LocationResponse):
    source: str


class TimezoneResponse(BaseModel):
    timezone: str


def _require_provider() -> None:
    if not places.is_configured:
        raise HTTPException(status_code=503, detail=PROVIDER_UNAVAILABLE_MESSAGE)


@router.get("/status", response_model=ProviderStatusResponse)
async def provider_status():
    """Tell the picker whether it should render as enabled."""
    if places.is_configured:
        return ProviderStatusResponse(available=True)
    return ProviderStatusResponse(available=False, message=PROVIDER_UNAVAILABLE_MESSAGE)


@router.get("/autocomplete", response_model=AutocompleteResponse)
async def autocomplete(
    q: str = Query(..., min_length=1),
    restrict: bool = Query(False, description="Limit results to the form's country allow-list"),
):
    _require_provider()
    countries = settings.AUTOCOMPLETE_COUNTRIES if restrict else None
    try:
        candidates = await places.autocomplete(q, countries)
    except LocationProviderError as exc:
        logger.warning("Autocomplete for %r failed: %s", q, exc)
        candidates = []
    return AutocompleteResponse(
        query=q,
        candidates=[
            CandidateResponse(
                place_id=c.id,
                description=c.description,
                main_text=c.main_text,
                secondary_text=c.secondary_text,
            )
            for c in candidates[: settings.AUTOCOMPLETE_MAX_RESULTS]
        ],
    )


@router.post("/select", response_model=LocationResponse)
async def select_candidate(payload: SelectRequest):
    """Resolve an autocomplete pick; falls back to the bare description on failure."""
    candidate = PlaceCandidate(id=payload.place_id, description=payload.description)
    outcome = await resolve_candidate_selection(places, TimezoneResolver(places), candidate)
    return LocationResponse(
        display_name=outcome.display_name,
        timezone=outcome.timezone,
        lat=outcome.coordinate.lat if outcome.coordinate else None,
        lng=outcome.coordinate.lng if outcome.coordinate else None,
    )


@router.post("/resolve-click", response_model=ClickResponse)
async def resolve_click(payload: ClickRequest):
    _require_provider()
    coordinate = Coordinate(lat=payload.lat, lng=payload.lng)
    disambiguator = PlaceDisambiguator(places)
    if payload.place_id:
        resolution = await disambiguator.resolve_place_click(coordinate, payload.place_id)
    else:
        resolution = await disambiguator.resolve_click(coordinate)
    if resolution is None:
        raise HTTPException(status_code=404, detail=NO_RESULTS_MESSAGE)
    timezone = await TimezoneResolver(places).resolve(resolution.coordinate)
    return ClickResponse(
        display_name=resolution.display_name,
        timezone=timezone,
        lat=resolution.coordinate.lat,
        lng=resolution.coordinate.lng,
        source=resolution.source,
    )


@router.get("/timezone", response_model=TimezoneResponse)
async def timezone_by_coordinates(
    request: Request,
    response: Response,
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
):
    """IANA timezone for a point; rate limited per client."""
    identifier = client_identifier(
        request.headers,
        request.client.host if request.client else None,
        trust_proxy=settings.TRUST_PROXY_HEADERS,
    )
    result = timezone_limiter.check(f"timezone:{identifier}")
    if not result.allowed:
        retry_after = result.retry_after(timezone_limiter.clock())
        raise HTTPException(
            status_code=429,
            detail="Too many requests. Please try again later.",
            headers={"Retry-After": str(retry_after)},
        )
    response.headers["X-RateLimit-Remaining"] = str(result.remaining)
    timezone = await TimezoneResolver(places).resolve(Coordinate(lat=lat, lng=lng))
    return TimezoneResponse(timezone=timezone)


@router.get("/timezone/by-name", response_model=TimezoneResponse)
async def timezone_by_name(name: str = Query(..., min_length=1)):
    """Offline timezone guess for typed text with no coordinate."""
    return TimezoneResponse(timezone=timezone_for_location_name(name))
