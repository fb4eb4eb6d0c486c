"""
Pricing services.

Zone lookup and the tariff cascade used to quote and price rides.
"""

from .tariff import (
    FareBreakdown,
    FareQuote,
    TARIFF_RULES,
    calculate_fare,
    calculate_fare_for_client,
    round_fare,
)
from .zones import find_zone_containing, get_zone_for_point, zone_contains

__all__ = [
    "FareBreakdown",
    "FareQuote",
    "TARIFF_RULES",
    "calculate_fare",
    "calculate_fare_for_client",
    "round_fare",
    "find_zone_containing",
    "get_zone_for_point",
    "zone_contains",
]
