"""Common utility functions."""

from .geo import (
    GeoPoint,
    InvalidCoordinatesError,
    calculate_distance_km,
    distance_between,
    format_wkt_point,
    parse_wkt_point,
    validate_coordinates,
)

__all__ = [
    "GeoPoint",
    "InvalidCoordinatesError",
    "calculate_distance_km",
    "distance_between",
    "format_wkt_point",
    "parse_wkt_point",
    "validate_coordinates",
]
