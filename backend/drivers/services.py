"""
Driver location registry.

Ingests GPS fixes (HTTP or WebSocket), keeps each driver's current position
and an append-only history, and serves the roster of drivers that can be
offered a ride.
"""

import logging
from typing import List, Optional, Union

from django.db import transaction
from django.utils import timezone

from common.utils import GeoPoint, InvalidCoordinatesError, parse_wkt_point, validate_coordinates
from drivers.models import Driver, DriverLocation
from rides.models import Ride
from services.exceptions import DriverNotFoundError, InvalidInputError

logger = logging.getLogger(__name__)


def _as_point(point: Union[GeoPoint, str]) -> GeoPoint:
    try:
        if isinstance(point, str):
            return parse_wkt_point(point)
        return validate_coordinates(point.longitude, point.latitude)
    except InvalidCoordinatesError as exc:
        raise InvalidInputError(str(exc), exc.errors)


def get_active_driver(driver_id: int) -> Driver:
    driver = Driver.objects.filter(id=driver_id, active=True).first()
    if driver is None:
        raise DriverNotFoundError(f"Driver {driver_id} not found or inactive")
    return driver


# RECORD POSITION
@transaction.atomic
def record_position(
    driver_id: int,
    point: Union[GeoPoint, str],
    speed=None,
    heading: Optional[int] = None,
    ride_id: Optional[int] = None,
) -> DriverLocation:
    """
    Store a GPS fix for a driver.

    Updates the driver's current position and appends a history row in the
    same transaction. ``point`` may be a GeoPoint or a WKT string.

    Raises:
        InvalidInputError: coordinates out of range or malformed
        DriverNotFoundError: unknown or inactive driver
    """
    point = _as_point(point)
    driver = Driver.objects.select_for_update().filter(id=driver_id, active=True).first()
    if driver is None:
        raise DriverNotFoundError(f"Driver {driver_id} not found or inactive")

    if ride_id is not None and not Ride.objects.filter(id=ride_id).exists():
        logger.warning("Location for driver %s references unknown ride %s", driver_id, ride_id)
        ride_id = None

    now = timezone.now()
    latitude = round(point.latitude, 6)
    longitude = round(point.longitude, 6)

    driver.current_latitude = latitude
    driver.current_longitude = longitude
    driver.last_location_update = now
    driver.save(update_fields=["current_latitude", "current_longitude", "last_location_update"])

    location = DriverLocation.objects.create(
        driver=driver,
        ride_id=ride_id,
        latitude=latitude,
        longitude=longitude,
        speed=speed,
        heading=heading,
        timestamp=now,
    )
    logger.debug("Driver %s at %s", driver_id, point.wkt)
    return location


def get_current_position(driver_id: int) -> Optional[dict]:
    driver = get_active_driver(driver_id)
    point = driver.current_point
    if point is None:
        return None
    return {
        "driver_id": driver.id,
        "coordinates": point.wkt,
        **point.as_dict(),
        "last_update": driver.last_location_update,
    }


def get_position_history(driver_id: int, start=None, end=None, limit: Optional[int] = None) -> List[DriverLocation]:
    """Fixes for a driver, newest first, optionally bounded in time."""
    get_active_driver(driver_id)
    history = DriverLocation.objects.filter(driver_id=driver_id)
    if start is not None:
        history = history.filter(timestamp__gte=start)
    if end is not None:
        history = history.filter(timestamp__lte=end)
    history = history.order_by("-timestamp", "-id")
    if limit:
        history = history[:limit]
    return list(history)


# ACTIVE ROSTER
def get_active_drivers():
    """
    Drivers that can be offered a ride: active, not offline, with a known
    position and no outstanding pending offer. Ordered by id.
    """
    return (
        Driver.objects
        .filter(
            active=True,
            current_latitude__isnull=False,
            current_longitude__isnull=False,
            pending_offer__isnull=True,
        )
        .exclude(status=Driver.OFFLINE)
        .order_by("id")
    )


# DRIVER STATUS UPDATE
def update_driver_status(driver_id: int, new_status: str) -> Driver:
    """
    Driver's own availability toggle.

    Raises:
        InvalidInputError: unknown status value
        DriverNotFoundError: unknown or inactive driver
    """
    valid = {choice for choice, _ in Driver.STATUS_CHOICES}
    if new_status not in valid:
        raise InvalidInputError(
            f"Invalid driver status '{new_status}'",
            {"status": f"must be one of {', '.join(sorted(valid))}"},
        )
    driver = get_active_driver(driver_id)
    driver.status = new_status
    driver.save(update_fields=["status"])
    logger.info("Driver %s set status to %s", driver_id, new_status)
    return driver
