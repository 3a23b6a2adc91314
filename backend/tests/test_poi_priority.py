import pytest

from services.poi_priority import (
    DEFAULT_PRIORITY,
    POI_TYPE_PRIORITY,
    VERY_CLOSE,
    distance_threshold,
    priority_of,
)


def test_priority_uses_highest_tag():
    assert priority_of(["restaurant", "shopping_mall", "point_of_interest"]) == 100
    assert priority_of(["cafe", "establishment"]) == 20


def test_priority_defaults_for_unknown_or_empty_tags():
    assert priority_of([]) == DEFAULT_PRIORITY
    assert priority_of(None) == DEFAULT_PRIORITY
    assert priority_of(["route", "political"]) == DEFAULT_PRIORITY


def test_priority_table_stays_within_bounds():
    assert all(5 <= score <= 100 for score in POI_TYPE_PRIORITY.values())


@pytest.mark.parametrize(
    "priority,expected",
    [
        (100, 0.002),
        (80, 0.002),
        (79, 0.001),
        (50, 0.001),
        (49, 0.0007),
        (25, 0.0007),
        (24, 0.0005),
        (5, 0.0005),
    ],
)
def test_distance_threshold_steps(priority, expected):
    assert distance_threshold(priority) == expected


def test_distance_threshold_is_monotonic():
    thresholds = [distance_threshold(p) for p in range(5, 101)]
    assert thresholds == sorted(thresholds)
    assert VERY_CLOSE < min(thresholds)
