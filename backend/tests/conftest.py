import asyncio
import sys
from pathlib import Path

import pytest

# Ensure the backend package root is on sys.path for direct pytest runs
BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from services.places_types import PlaceDetails  # noqa: E402


class FakeProvider:
    """In-memory async provider; values may be Exceptions to simulate failures."""

    def __init__(self):
        self.is_configured = True
        self.candidates = {}
        self.details = {}
        self.nearby = []
        self.nearest = []
        self.reverse = None
        self.timezone = "Asia/Jakarta"
        self.autocomplete_gates = {}
        self.calls = []

    @staticmethod
    def _unwrap(value):
        if isinstance(value, Exception):
            raise value
        return value

    async def autocomplete(self, text, countries=None):
        self.calls.append(("autocomplete", text, countries, asyncio.get_running_loop().time()))
        gate = self.autocomplete_gates.get(text)
        if gate is not None:
            await gate.wait()
        return list(self._unwrap(self.candidates.get(text, [])))

    async def get_details(self, place_id, fields=()):
        self.calls.append(("get_details", place_id, tuple(fields)))
        return self._unwrap(self.details.get(place_id, PlaceDetails(coordinate=None)))

    async def nearby_search(self, coordinate, radius_m=None, rank_by_distance=False, max_results=None):
        self.calls.append(("nearby_search", coordinate, radius_m, rank_by_distance, max_results))
        if rank_by_distance:
            return list(self._unwrap(self.nearest))[:max_results]
        return list(self._unwrap(self.nearby))

    async def reverse_geocode(self, coordinate):
        self.calls.append(("reverse_geocode", coordinate))
        return self._unwrap(self.reverse)

    async def timezone_lookup(self, coordinate):
        self.calls.append(("timezone_lookup", coordinate))
        return self._unwrap(self.timezone)

    def call_names(self):
        return [call[0] for call in self.calls]


@pytest.fixture
def fake_provider():
    return FakeProvider()
