from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from domain.models import Coordinate


@dataclass(frozen=True)
class AddressComponent:
    long_name: str
    short_name: str
    types: Tuple[str, ...] = ()

    @classmethod
    def from_raw(cls, raw: dict) -> "AddressComponent":
        long_name = str(raw.get("long_name") or "")
        return cls(
            long_name=long_name,
            short_name=str(raw.get("short_name") or long_name),
            types=tuple(raw.get("types") or ()),
        )


@dataclass(frozen=True)
class PlaceCandidate:
    id: str  # provider place id
    description: str
    main_text: str = ""
    secondary_text: str = ""


@dataclass
class PlaceDetails:
    coordinate: Optional[Coordinate]  # None when the provider returned no geometry
    address_components: List[AddressComponent] = field(default_factory=list)
    name: Optional[str] = None
    formatted_address: Optional[str] = None
    types: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class NearbyPlace:
    name: str
    types: Tuple[str, ...]
    coordinate: Coordinate
    id: str


@dataclass
class ReverseGeocodeResult:
    formatted_address: str
    address_components: List[AddressComponent] = field(default_factory=list)
