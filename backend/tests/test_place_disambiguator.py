import asyncio

import pytest

from domain.models import Coordinate
from services.place_disambiguator import (
    SOURCE_ADDRESS,
    SOURCE_NEARBY,
    SOURCE_PLACE,
    PlaceDisambiguator,
    planar_distance,
    rank_places,
    select_place,
)
from services.places_types import AddressComponent, NearbyPlace, PlaceDetails, ReverseGeocodeResult
from services.provider_errors import ProviderRequestError, ProviderStatusError

CLICK = Coordinate(-6.2, 106.8)


def _place(name, types, d_lat=0.0, d_lng=0.0, place_id=None):
    return NearbyPlace(
        name=name,
        types=tuple(types),
        coordinate=Coordinate(CLICK.lat + d_lat, CLICK.lng + d_lng),
        id=place_id or name.lower().replace(" ", "-"),
    )


def test_planar_distance():
    assert planar_distance(Coordinate(0.0, 0.0), Coordinate(0.0003, 0.0004)) == pytest.approx(0.0005)


def test_rank_prefers_priority_over_distance():
    cafe = _place("Cafe", ["cafe"], d_lat=0.0002)
    mall = _place("Mall", ["shopping_mall"], d_lat=0.0013)
    ranked = rank_places(CLICK, [cafe, mall])
    assert [r.place.name for r in ranked] == ["Mall", "Cafe"]
    assert ranked[0].priority == 100


def test_rank_breaks_priority_ties_by_distance_and_keeps_order_on_full_ties():
    far = _place("Far Cafe", ["cafe"], d_lat=0.0004)
    near = _place("Near Cafe", ["cafe"], d_lat=0.0001)
    twin_a = _place("Twin A", ["lodging"], d_lng=0.0002)
    twin_b = _place("Twin B", ["lodging"], d_lng=0.0002)
    ranked = rank_places(CLICK, [far, twin_a, near, twin_b])
    assert [r.place.name for r in ranked] == ["Twin A", "Twin B", "Near Cafe", "Far Cafe"]


def test_select_mall_within_threshold():
    cafe = _place("Cafe", ["cafe"], d_lat=0.0002)
    mall = _place("Mall", ["shopping_mall"], d_lat=0.0013)
    best = select_place(CLICK, [cafe, mall])
    assert best is not None and best.place.name == "Mall"


def test_select_rejects_top_candidate_beyond_threshold():
    # The best-ranked place is too far; lower-ranked places are never consulted.
    restaurant = _place("Restaurant", ["restaurant"], d_lat=0.0006)
    street_thing = _place("Thing", ["route"], d_lat=0.0001)
    assert select_place(CLICK, [restaurant, street_thing]) is None


def test_select_boundary_distance_is_rejected():
    origin = Coordinate(0.0, 0.0)
    edge = NearbyPlace("Edge", ("route",), Coordinate(0.0, 0.0005), "edge")
    assert select_place(origin, [edge]) is None


def test_restaurant_exactly_at_threshold_is_rejected():
    origin = Coordinate(0.0, 0.0)
    restaurant = NearbyPlace("Restaurant", ("restaurant",), Coordinate(0.0, 0.0005), "restaurant")
    assert select_place(origin, [restaurant]) is None


def test_select_accepts_very_close_place_regardless_of_priority():
    origin = Coordinate(0.0, 0.0)
    spot = NearbyPlace("Spot", (), Coordinate(0.0, 0.00005), "spot")
    best = select_place(origin, [spot])
    assert best is not None and best.accepted


def test_select_empty_list():
    assert select_place(CLICK, []) is None


def test_resolve_click_uses_details_name(fake_provider):
    fake_provider.nearby = [
        _place("Cafe", ["cafe"], d_lat=0.0002),
        _place("Mall", ["shopping_mall"], d_lat=0.0013, place_id="mall-1"),
    ]
    fake_provider.details["mall-1"] = PlaceDetails(coordinate=None, name="Grand Indonesia Mall")

    resolution = asyncio.run(PlaceDisambiguator(fake_provider).resolve_click(CLICK))

    assert resolution.display_name == "Grand Indonesia Mall"
    assert resolution.source == SOURCE_NEARBY
    assert resolution.place_id == "mall-1"
    assert resolution.coordinate == CLICK
    assert "reverse_geocode" not in fake_provider.call_names()


def test_resolve_click_keeps_nearby_name_when_details_fail(fake_provider):
    fake_provider.nearby = [_place("Bakmi GM", ["restaurant"], d_lat=0.0003, place_id="bakmi")]
    fake_provider.details["bakmi"] = ProviderStatusError("denied", status="REQUEST_DENIED")

    resolution = asyncio.run(PlaceDisambiguator(fake_provider).resolve_click(CLICK))

    assert resolution.display_name == "Bakmi GM"
    assert resolution.source == SOURCE_NEARBY


def test_resolve_click_falls_back_to_nearest_search(fake_provider):
    fake_provider.nearby = []
    fake_provider.nearest = [_place("Warung", ["food"], d_lat=0.0004, place_id="warung")]
    fake_provider.details["warung"] = PlaceDetails(coordinate=None, name="Warung Sederhana")

    resolution = asyncio.run(PlaceDisambiguator(fake_provider, nearest_limit=3).resolve_click(CLICK))

    assert resolution.display_name == "Warung Sederhana"
    searches = [c for c in fake_provider.calls if c[0] == "nearby_search"]
    assert [c[3] for c in searches] == [False, True]
    assert searches[1][4] == 3


def test_resolve_click_uses_formatted_address_when_nothing_qualifies(fake_provider):
    fake_provider.nearby = [_place("Restaurant", ["restaurant"], d_lat=0.0006)]
    fake_provider.reverse = ReverseGeocodeResult(
        formatted_address="AB12+34, Kecamatan Cengkareng, Jakarta, Indonesia"
    )

    resolution = asyncio.run(PlaceDisambiguator(fake_provider, home_country="Indonesia").resolve_click(CLICK))

    assert resolution.display_name == "Cengkareng, Jakarta"
    assert resolution.source == SOURCE_ADDRESS
    assert resolution.place_id is None


def test_resolve_click_formats_reverse_geocode_components(fake_provider):
    fake_provider.reverse = ReverseGeocodeResult(
        formatted_address="Jl. Daan Mogot, Jakarta Barat, Indonesia",
        address_components=[
            AddressComponent("Jalan Daan Mogot", "Jl. Daan Mogot", ("route",)),
            AddressComponent("Kota Jakarta Barat", "Kota Jakarta Barat", ("administrative_area_level_2",)),
            AddressComponent("Indonesia", "ID", ("country",)),
        ],
    )

    resolution = asyncio.run(PlaceDisambiguator(fake_provider, home_country="Indonesia").resolve_click(CLICK))

    assert resolution.display_name == "Jalan Daan Mogot, Jakarta Barat"


def test_resolve_click_survives_nearby_failure(fake_provider):
    fake_provider.nearby = ProviderRequestError("timeout")
    fake_provider.nearest = ProviderRequestError("timeout")
    fake_provider.reverse = ReverseGeocodeResult(formatted_address="Menteng, Jakarta")

    resolution = asyncio.run(PlaceDisambiguator(fake_provider).resolve_click(CLICK))

    assert resolution.display_name == "Menteng, Jakarta"


def test_resolve_click_returns_none_without_any_result(fake_provider):
    fake_provider.reverse = None
    assert asyncio.run(PlaceDisambiguator(fake_provider).resolve_click(CLICK)) is None

    fake_provider.reverse = ProviderStatusError("quota", status="OVER_QUERY_LIMIT")
    assert asyncio.run(PlaceDisambiguator(fake_provider).resolve_click(CLICK)) is None


def test_resolve_place_click_uses_place_details(fake_provider):
    fake_provider.details["poi-9"] = PlaceDetails(coordinate=Coordinate(-6.1, 106.9), name="Monas")

    resolution = asyncio.run(PlaceDisambiguator(fake_provider).resolve_place_click(CLICK, "poi-9"))

    assert resolution.display_name == "Monas"
    assert resolution.source == SOURCE_PLACE
    assert resolution.coordinate == CLICK
    assert fake_provider.call_names() == ["get_details"]


def test_resolve_place_click_falls_back_to_coordinate_path(fake_provider):
    fake_provider.details["poi-9"] = ProviderRequestError("boom")
    fake_provider.reverse = ReverseGeocodeResult(formatted_address="Gambir, Jakarta")

    resolution = asyncio.run(PlaceDisambiguator(fake_provider).resolve_place_click(CLICK, "poi-9"))

    assert resolution.display_name == "Gambir, Jakarta"
    assert resolution.source == SOURCE_ADDRESS


def test_priority_dominates_at_equal_distance():
    shop = _place("Shop", ["store"], d_lat=0.0003)
    mall = _place("Mall", ["shopping_mall"], d_lng=0.0003)
    best = select_place(CLICK, [shop, mall])
    assert best.place.name == "Mall"


def test_nearby_mall_and_restaurant_within_threshold_are_accepted():
    assert select_place(CLICK, [_place("Mall", ["shopping_mall"], d_lat=0.0003)]) is not None
    assert select_place(CLICK, [_place("Restaurant", ["restaurant"], d_lat=0.0003)]) is not None
