"""
Routing services.

Geocoding of free-text addresses and driving distance/duration estimates
with provider fallback.
"""

from .geocoding import geocode_address, reverse_geocode
from .providers import RouteEstimate, estimate_route, haversine_route

__all__ = [
    "geocode_address",
    "reverse_geocode",
    "RouteEstimate",
    "estimate_route",
    "haversine_route",
]
