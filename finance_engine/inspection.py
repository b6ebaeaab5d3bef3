"""
Used-vehicle inspection tiers.

The inspection subsystem itself lives outside the engine; only its pricing
contract is provided here so the purchase flow can present the options.
"""

import math
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from .exceptions import InvalidDealError


@dataclass(frozen=True)
class InspectionTier:
    name: str
    base_cost: Decimal
    percent_of_price: Decimal
    max_cost: Decimal
    duration_hours: int
    reveal_level: int
    description: str


INSPECTION_TIERS = (
    InspectionTier("Quick Glance", Decimal("1000"), Decimal("0.02"), Decimal("2500"), 2, 1,
                   "Overall rating only"),
    InspectionTier("Standard", Decimal("2000"), Decimal("0.03"), Decimal("5000"), 6, 2,
                   "Full reliability + parts condition"),
    InspectionTier("Comprehensive", Decimal("4000"), Decimal("0.05"), Decimal("10000"), 12, 3,
                   "Full details + DNA hint + repair estimate"),
)

# Tier indexes are 1-based; anything unknown falls back to Standard
DEFAULT_TIER_INDEX = 2


def get_inspection_tier(tier_index: int) -> InspectionTier:
    if not 1 <= tier_index <= len(INSPECTION_TIERS):
        tier_index = DEFAULT_TIER_INDEX
    return INSPECTION_TIERS[tier_index - 1]


def calculate_inspection_cost(tier_index: int, vehicle_price) -> int:
    """Whole-unit cost: base + price share, capped per tier."""
    tier = get_inspection_tier(tier_index)
    try:
        price = max(Decimal("0"), Decimal(str(vehicle_price)))
    except InvalidOperation as e:
        raise InvalidDealError(f"vehicle price must be a number, got: {vehicle_price!r}") from e
    cost = min(tier.base_cost + price * tier.percent_of_price, tier.max_cost)
    return math.floor(cost)


def get_inspection_tier_options(vehicle_price) -> list[dict]:
    """Every tier with its cost for a vehicle at ``vehicle_price``."""
    return [
        {
            "index": index,
            "name": tier.name,
            "cost": calculate_inspection_cost(index, vehicle_price),
            "duration_hours": tier.duration_hours,
            "reveal_level": tier.reveal_level,
            "description": tier.description,
        }
        for index, tier in enumerate(INSPECTION_TIERS, start=1)
    ]
