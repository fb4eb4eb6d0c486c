"""Public, reduced-information ride lookup by tracking code."""

import logging
from datetime import timedelta
from typing import Any, Dict, Optional

from django.conf import settings
from django.utils import timezone

from rides.models import Ride
from services.exceptions import RideNotFoundError
from .ride_lifecycle import get_ride_by_tracking_code

logger = logging.getLogger(__name__)


def mask_phone(phone: Optional[str]) -> str:
    if not phone:
        return 'N/A'
    return f"{phone[:3]}****{phone[7:]}"


def _finished_at(ride: Ride):
    return ride.end_date or ride.cancelled_at


def is_trackable(ride: Ride, now=None) -> bool:
    """Active rides, and finished ones within the visibility window."""
    if ride.status in Ride.ACTIVE_STATUSES:
        return True
    finished_at = _finished_at(ride)
    if finished_at is None:
        return False
    window = timedelta(hours=getattr(settings, 'TRACKING_VISIBILITY_HOURS', 12))
    return finished_at > (now or timezone.now()) - window


def get_public_tracking_info(tracking_code: str, now=None) -> Dict[str, Any]:
    """
    Reduced view of a ride for unauthenticated tracking.

    Raises:
        RideNotFoundError: unknown code, or the ride finished too long ago
    """
    ride = get_ride_by_tracking_code(tracking_code)
    now = now or timezone.now()

    if not is_trackable(ride, now):
        raise RideNotFoundError("Tracking information is no longer available")

    is_active = ride.status in Ride.ACTIVE_STATUSES
    driver_data = None
    if ride.driver_id:
        driver = ride.driver
        location = None
        point = driver.current_point
        if is_active and point is not None:
            location = {
                **point.as_dict(),
                'last_update': driver.last_location_update,
            }
        driver_data = {
            'id': driver.id,
            'first_name': driver.first_name,
            'last_name': driver.last_name,
            'vehicle': driver.vehicle,
            'model': driver.model,
            'color': driver.color,
            'license_plate': driver.license_plate,
            'phone_number': mask_phone(driver.phone_number),
            'current_location': location,
            'average_rating': driver.average_rating,
        }

    logger.info("Tracking info requested for ride %s (%s)", ride.id, ride.tracking_code)
    return {
        'ride': {
            'id': ride.id,
            'tracking_code': ride.tracking_code,
            'origin': ride.origin,
            'destination': ride.destination,
            'origin_coordinates': ride.origin_point.wkt,
            'destination_coordinates': ride.destination_point.wkt,
            'status': ride.status,
            'price': ride.price,
            'distance': ride.distance,
            'duration': ride.duration,
            'request_date': ride.request_date,
            'start_date': ride.start_date,
            'end_date': ride.end_date,
            'client': {
                'first_name': ride.client.first_name or 'Client',
                'phone_number': mask_phone(ride.client.phone_number),
            },
        },
        'driver': driver_data,
        'is_active': is_active,
        'last_updated': now,
    }
