"""Valuation Estimator - fixed, auditable price formula.

estimate = area x base rate x room factor x age factor x feature multiplier

- Base rate per sqm: apartment 55 000, house 38 000 (SEK)
- Room factor: 1.05 from 4 rooms, else 1.0
- Age factor: -0.1% per year of age, at most -12%; age clamped to [0, 200]
- Feature multiplier: 1.0 plus a fixed weight per active feature, clamped to
  [0.85, 1.25]. Elevator counts for apartments only, garden for houses only.
- Range: low = 92% and high = 108% of the rounded estimate.

Rounding happens only on the final values (half up). The module is pure: the
same attributes always give the same result for a given year.
"""
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from typing import Dict, Optional, Union
import math

from models import Features, PropertyType

BASE_RATE_SEK_PER_SQM = {
    PropertyType.APARTMENT: 55000,
    PropertyType.HOUSE: 38000,
}

ROOM_BONUS_MIN_ROOMS = 4
ROOM_BONUS_FACTOR = 1.05

DEPRECIATION_PER_YEAR = 0.001
MAX_DEPRECIATION = 0.12
MAX_AGE_YEARS = 200

# Applied in this order; the sum is not reordered so results are reproducible
FEATURE_WEIGHTS = (
    ("balcony", 0.02),
    ("renovated_kitchen", 0.03),
    ("renovated_bathroom", 0.025),
    ("parking", 0.015),
    ("storage", 0.01),
    ("sea_view", 0.05),
    ("fireplace", 0.01),
)

PROPERTY_TYPE_FEATURE_WEIGHTS = (
    ("elevator", PropertyType.APARTMENT, 0.015),
    ("garden", PropertyType.HOUSE, 0.02),
)

MIN_FEATURE_MULTIPLIER = 0.85
MAX_FEATURE_MULTIPLIER = 1.25

RANGE_LOW_FACTOR = 0.92
RANGE_HIGH_FACTOR = 1.08

CONFIDENCE = 62


@dataclass(frozen=True)
class PriceEstimate:
    estimate: int
    low: int
    high: int
    confidence: int

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


def clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(upper, value))


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def room_factor(rooms: Optional[float]) -> float:
    return ROOM_BONUS_FACTOR if rooms and rooms >= ROOM_BONUS_MIN_ROOMS else 1.0


def age_factor(year_built: Optional[int], current_year: int) -> float:
    if year_built is None:
        return 1.0
    age = clamp(current_year - year_built, 0, MAX_AGE_YEARS)
    return 1 - clamp(age * DEPRECIATION_PER_YEAR, 0, MAX_DEPRECIATION)


def feature_multiplier(property_type: PropertyType, features: Optional[Features]) -> float:
    features = features or Features()
    multiplier = 1.0
    for name, weight in FEATURE_WEIGHTS:
        if getattr(features, name):
            multiplier += weight
    for name, applies_to, weight in PROPERTY_TYPE_FEATURE_WEIGHTS:
        if property_type == applies_to and getattr(features, name):
            multiplier += weight
    return clamp(multiplier, MIN_FEATURE_MULTIPLIER, MAX_FEATURE_MULTIPLIER)


def estimate_price(
    property_type: Union[PropertyType, str],
    living_area: float,
    rooms: Optional[float] = 1,
    year_built: Optional[int] = None,
    features: Optional[Features] = None,
    current_year: Optional[int] = None,
) -> PriceEstimate:
    """Compute estimate/low/high/confidence from property attributes."""
    property_type = PropertyType(property_type)
    if current_year is None:
        current_year = datetime.now(timezone.utc).year

    estimate = living_area * BASE_RATE_SEK_PER_SQM[property_type] * room_factor(rooms)
    estimate *= age_factor(year_built, current_year)
    estimate = round_half_up(estimate * feature_multiplier(property_type, features))

    return PriceEstimate(
        estimate=estimate,
        low=round_half_up(estimate * RANGE_LOW_FACTOR),
        high=round_half_up(estimate * RANGE_HIGH_FACTOR),
        confidence=CONFIDENCE,
    )
