"""
Geographic utility functions.

This module provides core geospatial calculations used throughout the application:
WKT point parsing/formatting, coordinate validation and Haversine distance.
"""

import re
from dataclasses import dataclass
from math import radians, cos, sin, asin, sqrt
from typing import Dict, Optional

EARTH_RADIUS_KM = 6371.0

_NUMBER = r"[-+]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][-+]?\d+)?"
_WKT_POINT_RE = re.compile(
    r"^\s*POINT\s*\(\s*(?P<lon>%s)\s+(?P<lat>%s)\s*\)\s*$" % (_NUMBER, _NUMBER),
    re.IGNORECASE,
)


class InvalidCoordinatesError(ValueError):
    """Raised when a coordinate pair or WKT string cannot be used."""

    def __init__(self, message: str, errors: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.errors = errors or {}


@dataclass(frozen=True)
class GeoPoint:
    """A WGS84 (SRID 4326) point. Longitude first, like WKT."""
    longitude: float
    latitude: float

    @property
    def wkt(self) -> str:
        return format_wkt_point(self.longitude, self.latitude)

    def as_dict(self) -> Dict[str, float]:
        return {"longitude": self.longitude, "latitude": self.latitude}


def coordinate_errors(longitude, latitude) -> Dict[str, str]:
    """Return a field -> message mapping for every out-of-range coordinate."""
    errors = {}
    for field, value, limit in (("longitude", longitude, 180), ("latitude", latitude, 90)):
        try:
            number = float(value)
        except (TypeError, ValueError):
            errors[field] = f"{field} must be a number"
            continue
        if number != number:  # NaN
            errors[field] = f"{field} must be a number"
        elif not -limit <= number <= limit:
            errors[field] = f"{field} must be between -{limit} and {limit}"
    return errors


def validate_coordinates(longitude, latitude) -> GeoPoint:
    """
    Validate a longitude/latitude pair and return it as a GeoPoint.

    Raises:
        InvalidCoordinatesError: listing every violated field
    """
    errors = coordinate_errors(longitude, latitude)
    if errors:
        raise InvalidCoordinatesError("Invalid coordinates", errors)
    return GeoPoint(float(longitude), float(latitude))


def format_wkt_point(longitude: float, latitude: float) -> str:
    """Format a coordinate pair as ``POINT(<lon> <lat>)``."""
    return f"POINT({float(longitude)!r} {float(latitude)!r})"


def parse_wkt_point(wkt: str) -> GeoPoint:
    """
    Parse a WKT ``POINT(<lon> <lat>)`` string.

    Raises:
        InvalidCoordinatesError: if the string is malformed or out of range
    """
    match = _WKT_POINT_RE.match(wkt or "")
    if not match:
        raise InvalidCoordinatesError(
            f"Invalid WKT point: {wkt!r}", {"coordinates": "expected POINT(<lon> <lat>)"}
        )
    return validate_coordinates(match.group("lon"), match.group("lat"))


def calculate_distance_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Calculate great-circle distance between two points in kilometres using Haversine formula.

    Args:
        lat1: Latitude of first point
        lon1: Longitude of first point
        lat2: Latitude of second point
        lon2: Longitude of second point

    Returns:
        Distance in kilometres
    """
    lat1, lon1, lat2, lon2 = map(radians, [float(lat1), float(lon1), float(lat2), float(lon2)])
    dlat = lat2 - lat1
    dlon = lon2 - lon1
    a = sin(dlat / 2) ** 2 + cos(lat1) * cos(lat2) * sin(dlon / 2) ** 2
    c = 2 * asin(sqrt(min(1.0, a)))
    return c * EARTH_RADIUS_KM


def distance_between(a: GeoPoint, b: GeoPoint) -> float:
    """Haversine distance in kilometres between two GeoPoints."""
    return calculate_distance_km(a.latitude, a.longitude, b.latitude, b.longitude)
