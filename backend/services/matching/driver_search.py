"""
Nearest-driver search for a ride.

Candidates come from the location registry roster. Each candidate must be
available, seat the ride's passengers, and carry a child seat when the ride
needs one; the closest by Haversine distance to the pickup wins.
"""

import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple

from django.conf import settings

from common.utils import distance_between
from drivers.models import Driver
from drivers.services import get_active_drivers
from rides.models import Ride
from services.exceptions import GeocodingError, NoEligibleDriverError, RideNotFoundError
from services.ride_management import normalize_phone
from services.routing import geocoding

logger = logging.getLogger(__name__)

UNKNOWN_LOCATION = 'Location unavailable'


@dataclass
class DriverMatch:
    """Nearest eligible driver for a ride."""
    driver: Driver
    ride: Ride
    distance_km: float
    eta_minutes: int
    street_name: str = UNKNOWN_LOCATION

    def as_dict(self) -> Dict[str, Any]:
        driver = self.driver
        return {
            'driver': {
                'id': driver.id,
                'first_name': driver.first_name,
                'last_name': driver.last_name,
                'phone_number': driver.phone_number,
                'vehicle': driver.vehicle_description,
                'license_plate': driver.license_plate,
                'status': driver.status,
                'location': driver.current_point.as_dict(),
                'distance': round(self.distance_km, 2),
                'estimated_arrival': self.eta_minutes,
                'street_name': self.street_name,
            },
            'ride_info': {
                'id': self.ride.id,
                'origin': self.ride.origin,
                'destination': self.ride.destination,
                'client': self.ride.client.full_name or 'Client',
                'destination_coordinates': self.ride.destination_point.wkt,
                'distance': self.ride.distance,
                'duration': self.ride.duration,
                'price': self.ride.price,
                'tracking_code': self.ride.tracking_code,
            },
        }


def estimate_arrival_minutes(distance_km: float) -> int:
    """Minutes to cover the distance at the assumed average speed, rounded up."""
    speed = getattr(settings, 'DISPATCH_AVERAGE_SPEED_KMH', 30)
    return math.ceil(distance_km / speed * 60)


def is_eligible(driver: Driver, ride: Ride) -> bool:
    if driver.status != Driver.AVAILABLE or driver.current_point is None:
        return False
    if (ride.passenger_count or 1) > (driver.max_passengers or 4):
        logger.debug("Driver %s skipped: capacity %s < %s", driver.id, driver.max_passengers, ride.passenger_count)
        return False
    if ride.has_children_under_5 and not driver.has_child_seat:
        logger.debug("Driver %s skipped: no child seat", driver.id)
        return False
    return True


def rank_drivers(ride: Ride, drivers: Iterable[Driver]) -> List[Tuple[Driver, float]]:
    """Eligible drivers with their distance to the pickup, closest first."""
    origin = ride.origin_point
    candidates = [
        (driver, distance_between(origin, driver.current_point))
        for driver in drivers
        if is_eligible(driver, ride)
    ]
    # sort is stable: equal distances keep roster (id) order
    candidates.sort(key=lambda item: item[1])
    return candidates


def _street_name(driver: Driver) -> str:
    point = driver.current_point
    try:
        address = geocoding.reverse_geocode(point.latitude, point.longitude)
    except GeocodingError as exc:
        logger.warning("No street name for driver %s: %s", driver.id, exc)
        return UNKNOWN_LOCATION
    return address.get('street') or address.get('full_address') or UNKNOWN_LOCATION


def find_nearest_driver(ride: Ride, resolve_street: bool = True) -> DriverMatch:
    """
    Select the closest eligible driver for a ride.

    Raises:
        NoEligibleDriverError: nobody on the roster can take the ride
    """
    candidates = rank_drivers(ride, get_active_drivers())
    if not candidates:
        raise NoEligibleDriverError("No drivers available at the moment")

    driver, distance = candidates[0]
    match = DriverMatch(
        driver=driver,
        ride=ride,
        distance_km=distance,
        eta_minutes=estimate_arrival_minutes(distance),
    )
    if resolve_street:
        match.street_name = _street_name(driver)

    logger.info(
        "Nearest driver for ride %s: driver %s at %.2f km (%s min)",
        ride.id, driver.id, distance, match.eta_minutes,
    )
    return match


def find_nearest_driver_for_ride(ride_id: int, resolve_street: bool = True) -> DriverMatch:
    ride = Ride.objects.select_related('client').filter(id=ride_id).first()
    if ride is None:
        raise RideNotFoundError(f"Ride {ride_id} not found")
    return find_nearest_driver(ride, resolve_street)


def find_nearest_driver_for_phone(phone_number: str, resolve_street: bool = True) -> DriverMatch:
    """Nearest driver for the pending ride of the client with this phone."""
    ride: Optional[Ride] = (
        Ride.objects.select_related('client')
        .filter(client__phone_number=normalize_phone(phone_number), status=Ride.PENDING)
        .order_by('-request_date', '-id')
        .first()
    )
    if ride is None:
        raise RideNotFoundError("No pending ride found for this phone number")
    return find_nearest_driver(ride, resolve_street)
