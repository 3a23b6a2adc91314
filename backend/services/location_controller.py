"""
Search/selection controller for one location picker.

Runs on a single asyncio event loop. Keystrokes are debounced into
autocomplete requests; selecting a candidate or clicking the map resolves a
location (name, coordinate, timezone) and reports it through one callback.
Every user action bumps a generation counter, and any provider response that
comes back for an older generation is dropped.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Sequence, Set

from domain.models import Coordinate, ResolvedLocation
from services.place_disambiguator import ClickResolution, PlaceDisambiguator
from services.places_client import DETAILS_SELECTION_FIELDS
from services.places_types import PlaceCandidate
from services.provider_errors import LocationProviderError
from services.timezone_resolver import TimezoneResolver
from settings import settings

logger = logging.getLogger(__name__)

NO_RESULTS_MESSAGE = "No results"
PROVIDER_UNAVAILABLE_MESSAGE = "Location search is unavailable: map provider not configured"

LocationCallback = Callable[[str, Optional[str], Optional[Coordinate]], None]


class Phase(str, Enum):
    IDLE = "idle"
    QUERYING = "querying"
    SHOWING_CANDIDATES = "showing_candidates"
    RESOLVING = "resolving"
    CONFIRMED = "confirmed"


@dataclass
class PickerState:
    """Working copy of one picker interaction."""
    phase: Phase = Phase.IDLE
    query: str = ""
    candidates: List[PlaceCandidate] = field(default_factory=list)
    current_location: Optional[ResolvedLocation] = None
    hover_preview_enabled: bool = True
    preview_coordinate: Optional[Coordinate] = None
    loading: bool = False
    available: bool = True
    message: Optional[str] = None


@dataclass(frozen=True)
class SelectionOutcome:
    display_name: str
    timezone: Optional[str] = None
    coordinate: Optional[Coordinate] = None

    @property
    def location(self) -> Optional[ResolvedLocation]:
        if self.coordinate is None or self.timezone is None:
            return None
        return ResolvedLocation(self.display_name, self.coordinate, self.timezone)


async def resolve_candidate_selection(
    provider,
    resolver: TimezoneResolver,
    candidate: PlaceCandidate,
) -> SelectionOutcome:
    """
    Resolve an autocomplete pick into name + coordinate + timezone.

    If the details lookup fails the candidate's description is returned on
    its own, without coordinate or timezone.
    """
    if provider is None:
        return SelectionOutcome(candidate.description)
    try:
        details = await provider.get_details(candidate.id, DETAILS_SELECTION_FIELDS)
    except LocationProviderError as exc:
        logger.warning("Details lookup for %s failed: %s", candidate.id, exc)
        return SelectionOutcome(candidate.description)
    if details.coordinate is None:
        logger.warning("Details for %s carried no geometry", candidate.id)
        return SelectionOutcome(candidate.description)
    timezone = await resolver.resolve(details.coordinate)
    return SelectionOutcome(candidate.description, timezone, details.coordinate)


class LocationSearchController:
    def __init__(
        self,
        provider,
        on_location_resolved: LocationCallback,
        *,
        resolver: Optional[TimezoneResolver] = None,
        disambiguator: Optional[PlaceDisambiguator] = None,
        countries: Optional[Sequence[str]] = None,
        debounce_seconds: Optional[float] = None,
        max_results: Optional[int] = None,
        initial_location: Optional[ResolvedLocation] = None,
    ):
        """
        Args:
            provider: async provider (see AsyncPlacesClient); None or an
                unconfigured provider puts the picker in its unavailable state.
            on_location_resolved: called once per confirmation with
                (display_name, timezone, coordinate).
            countries: autocomplete allow-list; None searches worldwide.
            initial_location: location already stored on the event being edited.
        """
        self.provider = provider
        self.on_location_resolved = on_location_resolved
        self.resolver = resolver or TimezoneResolver(provider)
        self.disambiguator = disambiguator or PlaceDisambiguator(provider)
        self.countries = list(countries) if countries else None
        self.debounce_seconds = (
            debounce_seconds if debounce_seconds is not None else settings.AUTOCOMPLETE_DEBOUNCE_SECONDS
        )
        self.max_results = max_results or settings.AUTOCOMPLETE_MAX_RESULTS

        self.state = PickerState()
        self._generation = 0
        self._debounce_task: Optional[asyncio.Task] = None
        self._tasks: Set[asyncio.Task] = set()

        if provider is None or not getattr(provider, "is_configured", True):
            self.state.available = False
            self.state.message = PROVIDER_UNAVAILABLE_MESSAGE

        if initial_location is not None:
            self.state.current_location = initial_location
            self.state.query = initial_location.display_name
            self.state.phase = Phase.CONFIRMED
            self.state.hover_preview_enabled = False

    # -- typing -----------------------------------------------------------

    def type_text(self, text: str) -> None:
        """Handle a keystroke; must be called from the running event loop."""
        if not text:
            self.clear()
            return
        self._supersede()
        self.state.query = text
        self.state.hover_preview_enabled = True
        if not self.state.available:
            return
        self.state.phase = Phase.QUERYING
        self._debounce_task = self._spawn(self._debounce(text, self._generation))

    async def _debounce(self, text: str, generation: int) -> None:
        await asyncio.sleep(self.debounce_seconds)
        self._debounce_task = None
        # The request outlives later keystrokes; its result is filtered by generation.
        self._spawn(self._run_query(text, generation))

    async def _run_query(self, text: str, generation: int) -> None:
        if generation != self._generation:
            return
        self.state.loading = True
        try:
            candidates = await self.provider.autocomplete(text, self.countries)
        except LocationProviderError as exc:
            logger.warning("Autocomplete for %r failed: %s", text, exc)
            candidates = []
        if generation != self._generation:
            logger.debug("Dropping stale autocomplete response for %r", text)
            return
        self.state.loading = False
        self.state.candidates = list(candidates)[: self.max_results]
        self.state.phase = Phase.SHOWING_CANDIDATES
        self.state.message = None if self.state.candidates else NO_RESULTS_MESSAGE

    # -- selection --------------------------------------------------------

    async def hover_candidate(self, candidate: PlaceCandidate) -> Optional[Coordinate]:
        """Preview a candidate's position; disabled after an explicit choice."""
        if not self.state.hover_preview_enabled or not self.state.available:
            return None
        generation = self._generation
        try:
            details = await self.provider.get_details(candidate.id, ("geometry",))
        except LocationProviderError as exc:
            logger.debug("Hover preview for %s failed: %s", candidate.id, exc)
            return None
        if generation != self._generation or not self.state.hover_preview_enabled:
            return None
        self.state.preview_coordinate = details.coordinate
        return details.coordinate

    async def select_candidate(self, candidate: PlaceCandidate) -> SelectionOutcome:
        generation = self._supersede()
        self.state.hover_preview_enabled = False
        self.state.phase = Phase.RESOLVING
        self.state.query = candidate.description
        self.state.candidates = []
        self.state.loading = True

        outcome = await resolve_candidate_selection(self.provider, self.resolver, candidate)
        if generation == self._generation:
            self._confirm(outcome)
        return outcome

    async def click_map(
        self,
        coordinate: Coordinate,
        place_id: Optional[str] = None,
    ) -> Optional[ClickResolution]:
        """Resolve a map click; place_id is set when the map reported a POI directly."""
        generation = self._supersede()
        if not self.state.available:
            self.state.message = PROVIDER_UNAVAILABLE_MESSAGE
            return None
        self.state.phase = Phase.RESOLVING
        self.state.candidates = []
        self.state.loading = True

        if place_id:
            resolution = await self.disambiguator.resolve_place_click(coordinate, place_id)
        else:
            resolution = await self.disambiguator.resolve_click(coordinate)
        if generation != self._generation:
            return resolution

        if resolution is None:
            self.state.loading = False
            self.state.phase = Phase.SHOWING_CANDIDATES
            self.state.message = NO_RESULTS_MESSAGE
            return None

        timezone = await self.resolver.resolve(resolution.coordinate)
        if generation != self._generation:
            return resolution
        self.state.hover_preview_enabled = False
        self._confirm(SelectionOutcome(resolution.display_name, timezone, resolution.coordinate))
        return resolution

    def commit_text(self, text: Optional[str] = None) -> Optional[SelectionOutcome]:
        """Confirm typed text that never got a coordinate."""
        value = (text if text is not None else self.state.query).strip()
        if not value:
            self.clear()
            return None
        self._supersede()
        current = self.state.current_location
        if current is not None and value == current.display_name:
            # Unchanged text keeps the confirmed coordinate; nothing new to report.
            self.state.phase = Phase.CONFIRMED
            self.state.query = value
            self.state.candidates = []
            self.state.loading = False
            return SelectionOutcome(current.display_name, current.timezone, current.coordinate)
        outcome = SelectionOutcome(value, self.resolver.resolve_name(value), None)
        self._confirm(outcome)
        return outcome

    def clear(self) -> None:
        self._supersede()
        self.state.phase = Phase.IDLE
        self.state.query = ""
        self.state.candidates = []
        self.state.current_location = None
        self.state.preview_coordinate = None
        self.state.hover_preview_enabled = True
        self.state.loading = False
        self.state.message = None if self.state.available else PROVIDER_UNAVAILABLE_MESSAGE

    def close(self) -> None:
        """Cancel pending timers and requests when the picker goes away."""
        self._supersede()
        for task in list(self._tasks):
            task.cancel()

    async def wait_for_pending(self) -> None:
        """
        Wait until debounce timers and in-flight requests have settled.

        Hosts await this before tearing down the event loop (after close(),
        or to let a typed query land), so no request task is left unretrieved.
        """
        while True:
            pending = [task for task in self._tasks if not task.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    # -- internals --------------------------------------------------------

    def _supersede(self) -> int:
        self._generation += 1
        if self._debounce_task is not None:
            self._debounce_task.cancel()
            self._debounce_task = None
        return self._generation

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _confirm(self, outcome: SelectionOutcome) -> None:
        self.state.loading = False
        self.state.phase = Phase.CONFIRMED
        self.state.query = outcome.display_name
        self.state.current_location = outcome.location
        self.state.message = None
        logger.info(
            "Location confirmed: %r tz=%s coordinate=%s",
            outcome.display_name,
            outcome.timezone,
            outcome.coordinate.to_param() if outcome.coordinate else None,
        )
        self.on_location_resolved(outcome.display_name, outcome.timezone, outcome.coordinate)
