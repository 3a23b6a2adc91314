"""
Point-of-interest importance scores.

Higher score = larger venue. A click near a mall resolves to the mall rather
than a shop inside it, the way consumer map applications behave.
"""
from typing import Dict, Iterable, Optional

DEFAULT_PRIORITY = 5

POI_TYPE_PRIORITY: Dict[str, int] = {
    # Large venues
    "shopping_mall": 100,
    "stadium": 100,
    "airport": 100,
    "university": 95,
    "hospital": 95,
    "convention_center": 90,
    "casino": 85,
    "amusement_park": 85,
    "zoo": 85,
    "museum": 80,
    "library": 75,
    "city_hall": 75,
    "courthouse": 70,
    "place_of_worship": 70,
    "primary_school": 65,
    "secondary_school": 65,
    "school": 65,
    # Accommodation
    "lodging": 60,
    "hotel": 60,
    # Transportation
    "transit_station": 50,
    "subway_station": 50,
    "train_station": 50,
    "bus_station": 45,
    "taxi_stand": 20,
    # Services
    "pharmacy": 35,
    "bank": 30,
    "doctor": 30,
    "dentist": 30,
    "gym": 25,
    "hair_care": 15,
    "beauty_salon": 15,
    "atm": 10,
    # Stores, usually tenants of something bigger
    "department_store": 30,
    "supermarket": 25,
    "grocery_or_supermarket": 25,
    "hardware_store": 20,
    "store": 15,
    "clothing_store": 15,
    "shoe_store": 15,
    "electronics_store": 15,
    # Food & drink
    "restaurant": 20,
    "cafe": 20,
    "bar": 20,
    "night_club": 20,
    "bakery": 15,
    "meal_takeaway": 15,
    "meal_delivery": 15,
    # Generic tags
    "establishment": DEFAULT_PRIORITY,
    "point_of_interest": DEFAULT_PRIORITY,
}

# Anything this close (~10 m) is accepted whatever its priority.
VERY_CLOSE = 0.0001

# (minimum priority, max distance in degrees), checked top-down.
_DISTANCE_STEPS = (
    (80, 0.002),   # ~200 m for major venues
    (50, 0.001),   # ~100 m for hotels, stations
    (25, 0.0007),  # ~70 m for supermarkets and the like
)
_DEFAULT_THRESHOLD = 0.0005  # ~50 m


def priority_of(types: Optional[Iterable[str]]) -> int:
    """Highest score across a place's category tags (5 when none are known)."""
    best = DEFAULT_PRIORITY
    for tag in types or ():
        best = max(best, POI_TYPE_PRIORITY.get(tag, DEFAULT_PRIORITY))
    return best


def distance_threshold(priority: int) -> float:
    """Maximum click distance, in degrees, at which a place of this priority is accepted."""
    for min_priority, threshold in _DISTANCE_STEPS:
        if priority >= min_priority:
            return threshold
    return _DEFAULT_THRESHOLD
