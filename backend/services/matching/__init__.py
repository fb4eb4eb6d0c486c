"""
Matching service - Driver search and the offer/accept handshake.

This module handles:
    - Finding the nearest eligible driver for a ride
    - Offering rides to drivers and accepting offers
    - Operator driver assignment
"""

from .driver_search import (
    DriverMatch,
    estimate_arrival_minutes,
    find_nearest_driver,
    find_nearest_driver_for_phone,
    find_nearest_driver_for_ride,
    rank_drivers,
)
from .offer_dispatch import (
    accept_ride,
    assign_driver,
    list_pending_offers,
    offer_ride,
)

__all__ = [
    "DriverMatch",
    "estimate_arrival_minutes",
    "find_nearest_driver",
    "find_nearest_driver_for_phone",
    "find_nearest_driver_for_ride",
    "rank_drivers",
    "accept_ride",
    "assign_driver",
    "list_pending_offers",
    "offer_ride",
]
