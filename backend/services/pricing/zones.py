"""
Zone lookup by point.

Zone areas are GeoJSON polygons; containment is evaluated with shapely.
A point on the polygon boundary counts as inside.
"""

import logging
from typing import Optional

from shapely.geometry import Point, shape

from common.utils import GeoPoint
from rides.models import Zone
from services.exceptions import ZoneNotFoundError

logger = logging.getLogger(__name__)


def zone_contains(zone: Zone, point: GeoPoint) -> bool:
    """Return True if the zone's polygon covers the point."""
    try:
        polygon = shape(zone.area)
    except (KeyError, TypeError, ValueError, AttributeError):
        logger.warning("Zone %s has an invalid area geometry", zone.id)
        return False
    return polygon.covers(Point(point.longitude, point.latitude))


def find_zone_containing(point: GeoPoint) -> Optional[Zone]:
    """First active zone (lowest id) whose polygon contains the point."""
    for zone in Zone.objects.filter(active=True).order_by('id'):
        if zone_contains(zone, point):
            return zone
    return None


def get_zone_for_point(point: GeoPoint) -> Zone:
    """
    Like find_zone_containing but raises when no zone matches.

    Raises:
        ZoneNotFoundError: if no active zone contains the point
    """
    zone = find_zone_containing(point)
    if zone is None:
        raise ZoneNotFoundError(f"No fare zone found for {point.wkt}")
    return zone
