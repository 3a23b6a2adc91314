"""
Reverse-geocode address cleanup.

Turns a provider's formatted address (plus its component list when present)
into the same short style the autocomplete list shows, e.g.
"AB12+34, Kecamatan Cengkareng, Jakarta, Indonesia" -> "Cengkareng, Jakarta".
"""
from __future__ import annotations

import logging
import re
from typing import Iterable, List, Optional, Union

from services.places_types import AddressComponent
from settings import settings

logger = logging.getLogger(__name__)

# Plus codes such as "AB12+34," at the start of an address.
GRID_CODE_PATTERN = re.compile(r"^[A-Z]{2}[0-9]+[+-]?[0-9A-Z]*,\s*")
POSTAL_CODE_PATTERN = re.compile(r"\s+\d{5}$")

# Indonesian administrative words: district, sub-district, village, city,
# regency, province, special capital region. Longer forms come first.
_LEADING_PREFIXES = [
    re.compile(rf"^{p}\s+", re.IGNORECASE)
    for p in (
        r"Kecamatan",
        r"Kec\.",
        r"Kelurahan",
        r"Kel\.",
        r"Desa",
        r"Kota",
        r"Kabupaten",
        r"Kab\.",
        r"Provinsi",
        r"Prov\.",
        r"Daerah Khusus Ibukota",
        r"DKI",
        r"Daerah Istimewa",
        r"DI",
    )
]

_INLINE_PREFIXES = [
    re.compile(rf"\b{p}\s+", re.IGNORECASE)
    for p in (
        r"Kecamatan",
        r"Kec\.",
        r"Kelurahan",
        r"Kel\.",
        r"Desa",
        r"Kota",
        r"Kabupaten",
        r"Kab\.",
        r"Provinsi",
        r"Prov\.",
        r"Daerah Khusus Ibukota",
        r"DKI",
    )
]

ComponentLike = Union[AddressComponent, dict]


def _until_stable(func, text: str) -> str:
    previous = None
    while previous != text:
        previous = text
        text = func(text)
    return text


def strip_grid_code(text: str) -> str:
    """Remove leading plus-code style grid locators."""
    return _until_stable(lambda t: GRID_CODE_PATTERN.sub("", t), text)


def strip_regional_prefix(name: Optional[str]) -> str:
    """Drop administrative prefixes from the start of a single place name."""
    if not name:
        return ""

    def _once(text: str) -> str:
        for pattern in _LEADING_PREFIXES:
            text = pattern.sub("", text)
        return text.strip()

    return _until_stable(_once, name.strip())


def _strip_inline_prefixes(text: str) -> str:
    def _once(value: str) -> str:
        for pattern in _INLINE_PREFIXES:
            value = pattern.sub("", value)
        return value

    return _until_stable(_once, text)


def _strip_trailing_noise(text: str, home_country: Optional[str]) -> str:
    country_pattern = None
    if home_country:
        country_pattern = re.compile(rf",\s*{re.escape(home_country)}\s*$", re.IGNORECASE)

    def _once(value: str) -> str:
        value = value.strip()
        if country_pattern is not None:
            value = country_pattern.sub("", value)
        return POSTAL_CODE_PATTERN.sub("", value).strip()

    return _until_stable(_once, text)


def _clean_text(text: str, home_country: Optional[str]) -> str:
    """Free-text cleanup shared by both paths, iterated to a fixed point."""

    def _once(value: str) -> str:
        value = strip_grid_code(value)
        value = _strip_inline_prefixes(value)
        return _strip_trailing_noise(value, home_country)

    return _until_stable(_once, text)


def _normalize_components(components: Optional[Iterable[ComponentLike]]) -> List[AddressComponent]:
    result: List[AddressComponent] = []
    for comp in components or []:
        if isinstance(comp, AddressComponent):
            result.append(comp)
        elif isinstance(comp, dict):
            result.append(AddressComponent.from_raw(comp))
    return result


def _find(components: List[AddressComponent], type_name: str) -> Optional[AddressComponent]:
    for comp in components:
        if type_name in comp.types:
            return comp
    return None


def _long(components: List[AddressComponent], type_name: str) -> str:
    comp = _find(components, type_name)
    return comp.long_name.strip() if comp and comp.long_name else ""


def _same(a: str, b: str) -> bool:
    return a.casefold() == b.casefold()


def _from_components(components: List[AddressComponent], home_country: Optional[str]) -> str:
    parts: List[str] = []

    primary = (
        _long(components, "point_of_interest")
        or _long(components, "establishment")
        or _long(components, "premise")
    )
    if primary:
        parts.append(primary)

    street = " ".join(p for p in (_long(components, "street_number"), _long(components, "route")) if p)
    if street:
        parts.append(street)

    city = _long(components, "locality") or strip_regional_prefix(
        _long(components, "administrative_area_level_2")
    )
    if city and not any(_same(city, p) for p in parts):
        parts.append(city)

    country = _long(components, "country")
    in_home_country = bool(country and home_country and _same(country, home_country))

    admin1 = _find(components, "administrative_area_level_1")
    if admin1 is not None:
        province = strip_regional_prefix(admin1.long_name)
        if province and not (city and _same(province, city)):
            short = (admin1.short_name or "").strip()
            if in_home_country and short and short != admin1.long_name:
                province = strip_regional_prefix(short)
            if province and not (city and _same(province, city)) and not any(_same(province, p) for p in parts):
                parts.append(province)

    if country and not in_home_country:
        parts.append(country)

    return _clean_text(", ".join(parts), home_country)


def format_address(
    formatted_address: Optional[str],
    address_components: Optional[Iterable[ComponentLike]] = None,
    home_country: Optional[str] = None,
) -> str:
    """
    Build a clean display string from a reverse-geocode result.

    Never raises: an address with no recognizable structure comes back
    trimmed and prefix-stripped, possibly unchanged.
    """
    home = home_country if home_country is not None else settings.HOME_COUNTRY
    raw = (formatted_address or "").strip()
    try:
        components = _normalize_components(address_components)
        if components:
            structured = _from_components(components, home)
            if structured:
                return structured
        if not raw:
            return ""
        return _clean_text(raw, home)
    except Exception as exc:  # pragma: no cover
        logger.warning("format_address failed for %r: %s", raw, exc)
        return raw
