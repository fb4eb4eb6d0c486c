"""
Ride management service - Core ride lifecycle operations.

This module handles:
    - Quoting and creating rides
    - Starting and completing trips
    - Cancelling rides and administrative status changes
    - Querying rides and public tracking
"""

from .ride_lifecycle import (
    RideQuote,
    RideResult,
    cancel_ride,
    cancel_ride_for_phone,
    change_status,
    complete_trip,
    create_ride,
    estimate_fare,
    find_active_ride_for_phone,
    generate_tracking_code,
    get_current_driver_ride,
    get_ride,
    get_ride_by_tracking_code,
    normalize_phone,
    prepare_ride_quote,
    start_trip,
)
from .state_machine import TRANSITIONS, can_transition, validate_transition
from .tracking import get_public_tracking_info, mask_phone

__all__ = [
    # Lifecycle operations
    "create_ride",
    "estimate_fare",
    "prepare_ride_quote",
    "start_trip",
    "complete_trip",
    "cancel_ride",
    "cancel_ride_for_phone",
    "change_status",
    # Queries
    "get_ride",
    "get_ride_by_tracking_code",
    "find_active_ride_for_phone",
    "get_current_driver_ride",
    "get_public_tracking_info",
    # Helpers
    "RideQuote",
    "RideResult",
    "TRANSITIONS",
    "can_transition",
    "validate_transition",
    "generate_tracking_code",
    "normalize_phone",
    "mask_phone",
]
