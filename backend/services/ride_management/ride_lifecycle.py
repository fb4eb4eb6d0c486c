"""
Core ride lifecycle operations.

This module owns ride creation (geocode -> route -> price -> persist) and
every status transition a ride goes through afterwards. Side effects of a
transition (driver status sync, messages, socket pushes) are isolated in
``side_effects`` and never undo the transition itself.
"""

import logging
import secrets
import string
from dataclasses import dataclass
from typing import Optional, Dict, Any

from django.conf import settings
from django.db import transaction

from clients.models import Client
from common.utils import GeoPoint
from drivers.models import Driver
from rides.models import Ride, PendingOffer
from rides import tasks
from services.exceptions import (
    ActiveRideExistsError,
    ClientNotFoundError,
    DriverNotFoundError,
    RideNotFoundError,
    RouteOutOfBoundsError,
)
from services.pricing import FareQuote, calculate_fare
from services.routing import RouteEstimate, estimate_route, geocoding
from .side_effects import (
    enqueue_task,
    push_client_event,
    push_driver_event,
    sync_driver_status,
)
from .state_machine import apply_transition, is_terminal

logger = logging.getLogger(__name__)

TRACKING_CODE_ALPHABET = string.ascii_uppercase + string.digits
TRACKING_CODE_LENGTH = 8


@dataclass
class RideResult:
    """Result object for ride operations."""
    success: bool
    ride: Optional[Ride] = None
    message: str = ""
    error_code: Optional[str] = None
    extra: Optional[Dict[str, Any]] = None


@dataclass
class RideQuote:
    """Everything needed to persist a ride, computed before any write."""
    client: Client
    origin: GeoPoint
    destination: GeoPoint
    route: RouteEstimate
    fare: FareQuote

    def as_dict(self) -> Dict[str, Any]:
        return {
            "origin_coordinates": self.origin.wkt,
            "destination_coordinates": self.destination.wkt,
            "distance": self.route.distance_km,
            "duration": self.route.duration_minutes,
            "route_provider": self.route.provider,
            "fare": self.fare.as_dict(),
        }


# ===================== Helpers =====================

def normalize_phone(phone: str) -> str:
    """Strip the WhatsApp ``@...`` suffix and surrounding spaces."""
    return (phone or "").split("@", 1)[0].strip()


def generate_tracking_code() -> str:
    """Random 8-char uppercase alphanumeric code, unique among rides."""
    while True:
        code = "".join(secrets.choice(TRACKING_CODE_ALPHABET) for _ in range(TRACKING_CODE_LENGTH))
        if not Ride.objects.filter(tracking_code=code).exists():
            return code


def get_client_by_phone(phone: str) -> Client:
    client = Client.objects.filter(phone_number=normalize_phone(phone), active=True).first()
    if client is None:
        raise ClientNotFoundError(f"Client with phone {phone} not found")
    return client


def get_pending_ride_for_client(client) -> Optional[Ride]:
    return Ride.objects.filter(client=client, status=Ride.PENDING).first()


def _check_route_bounds(route: RouteEstimate) -> None:
    max_distance = settings.DISPATCH_MAX_RIDE_DISTANCE_KM
    max_duration = settings.DISPATCH_MAX_RIDE_DURATION_MINUTES

    if route.distance_km > max_distance:
        raise RouteOutOfBoundsError(
            f"Ride distance ({route.distance_km} km) exceeds the {max_distance} km limit. "
            "Please check the origin and destination addresses.",
            {"distance": f"must be <= {max_distance} km"},
        )
    if route.duration_minutes > max_duration:
        raise RouteOutOfBoundsError(
            f"Estimated duration ({route.duration_minutes} min) exceeds the {max_duration} minute limit. "
            "Please check the origin and destination addresses.",
            {"duration": f"must be <= {max_duration} minutes"},
        )


# ===================== Quote & Creation =====================

def prepare_ride_quote(
    client: Client,
    origin: str,
    destination: str,
    origin_point: Optional[GeoPoint] = None,
    now=None,
) -> RideQuote:
    """
    Geocode both ends, estimate the route and price it.

    The supplied origin point biases origin geocoding and is used as the
    origin when the address cannot be resolved. The resolved origin biases
    destination geocoding.

    Raises:
        RouteOutOfBoundsError: distance or duration beyond the sane limits
        ZoneNotFoundError: no active zone contains the origin
        GeocodingError / InvalidInputError: from the geocoder
    """
    origin_resolved = geocoding.geocode_address(origin, context=origin_point, is_origin=True)
    destination_resolved = geocoding.geocode_address(destination, context=origin_resolved)

    route = estimate_route(origin_resolved, destination_resolved)
    _check_route_bounds(route)

    fare = calculate_fare(client, origin_resolved, route.duration_minutes, now=now)
    return RideQuote(
        client=client,
        origin=origin_resolved,
        destination=destination_resolved,
        route=route,
        fare=fare,
    )


def estimate_fare(
    phone_number: str,
    origin: str,
    destination: str,
    origin_point: Optional[GeoPoint] = None,
    now=None,
) -> RideQuote:
    """Run the creation pipeline without persisting anything."""
    client = get_client_by_phone(phone_number)
    return prepare_ride_quote(client, origin, destination, origin_point, now=now)


def create_ride(
    phone_number: str,
    origin: str,
    destination: str,
    origin_point: Optional[GeoPoint] = None,
    passenger_count: int = 1,
    has_children_under_5: bool = False,
    is_round_trip: bool = False,
    payment_method: str = "cash",
    now=None,
) -> RideResult:
    """
    Create a new PENDING ride for a client.

    Args:
        phone_number: Client phone (WhatsApp suffix allowed)
        origin: Pickup address
        destination: Destination address
        origin_point: Client-reported pickup position, if known
        passenger_count: Number of passengers
        has_children_under_5: Ride needs a child seat
        is_round_trip: Round trip flag
        payment_method: Payment method label
        now: Moment used for surcharges (defaults to now)

    Returns:
        RideResult with the created ride and the fare quote in ``extra``

    Raises:
        ClientNotFoundError: unknown or inactive client
        ActiveRideExistsError: the client already has a pending ride
        RouteOutOfBoundsError: absurd route, nothing persisted
    """
    client = get_client_by_phone(phone_number)
    if get_pending_ride_for_client(client):
        raise ActiveRideExistsError("You already have a pending ride")

    # Provider calls stay outside the transaction
    quote = prepare_ride_quote(client, origin, destination, origin_point, now=now)

    with transaction.atomic():
        Client.objects.select_for_update().get(id=client.id)
        if get_pending_ride_for_client(client):
            raise ActiveRideExistsError("You already have a pending ride")

        ride = Ride.objects.create(
            client=client,
            origin=origin,
            destination=destination,
            origin_latitude=round(quote.origin.latitude, 6),
            origin_longitude=round(quote.origin.longitude, 6),
            destination_latitude=round(quote.destination.latitude, 6),
            destination_longitude=round(quote.destination.longitude, 6),
            status=Ride.PENDING,
            tracking_code=generate_tracking_code(),
            distance=quote.route.distance_km,
            duration=quote.route.duration_minutes,
            price=quote.fare.final_fare,
            commission_percentage=quote.fare.commission_percentage,
            commission_amount=quote.fare.commission_amount,
            passenger_count=passenger_count,
            has_children_under_5=has_children_under_5,
            is_round_trip=is_round_trip,
            payment_method=payment_method or "cash",
        )

    logger.info(
        "Ride %s created (tracking %s) for client %s: %s km, %s min, price %s",
        ride.id, ride.tracking_code, client.id,
        ride.distance, ride.duration, ride.price,
    )
    return RideResult(
        success=True,
        ride=ride,
        message="Ride created",
        extra={"fare": quote.fare.as_dict(), "route_provider": quote.route.provider},
    )


# ===================== Queries =====================

def get_ride(ride_id: int) -> Ride:
    ride = Ride.objects.select_related("client", "driver").filter(id=ride_id).first()
    if ride is None:
        raise RideNotFoundError(f"Ride {ride_id} not found")
    return ride


def get_ride_by_tracking_code(tracking_code: str) -> Ride:
    ride = (
        Ride.objects.select_related("client", "driver")
        .filter(tracking_code=(tracking_code or "").upper())
        .first()
    )
    if ride is None:
        raise RideNotFoundError(f"Ride with tracking code {tracking_code} not found")
    return ride


def find_active_ride_for_phone(phone_number: str) -> Optional[Ride]:
    """Most recent pending / in-progress / on-the-way ride of a client."""
    return (
        Ride.objects.select_related("client", "driver")
        .filter(client__phone_number=normalize_phone(phone_number), status__in=Ride.ACTIVE_STATUSES)
        .order_by("-request_date", "-id")
        .first()
    )


def get_current_driver_ride(driver_id: int) -> Optional[Ride]:
    """Get the driver's in-progress or on-the-way ride."""
    return (
        Ride.objects.select_related("client", "driver")
        .filter(driver_id=driver_id, status__in=[Ride.IN_PROGRESS, Ride.ON_THE_WAY])
        .order_by("-request_date", "-id")
        .first()
    )


def _get_driver(driver_id: int) -> Driver:
    driver = Driver.objects.filter(id=driver_id, active=True).first()
    if driver is None:
        raise DriverNotFoundError(f"Driver {driver_id} not found")
    return driver


# ===================== Driver Operations =====================

@transaction.atomic
def start_trip(driver_id: int) -> RideResult:
    """
    Driver picked up the client: IN_PROGRESS -> ON_THE_WAY.

    Raises:
        DriverNotFoundError: unknown driver
        RideNotFoundError: the driver has no in-progress ride
    """
    _get_driver(driver_id)
    ride = (
        Ride.objects.select_for_update()
        .filter(driver_id=driver_id, status=Ride.IN_PROGRESS)
        .first()
    )
    if ride is None:
        raise RideNotFoundError(f"Driver {driver_id} has no ride in progress")

    ride.save(update_fields=apply_transition(ride, Ride.ON_THE_WAY))
    sync_driver_status(driver_id, Driver.ON_THE_WAY)

    logger.info("Ride %s started by driver %s", ride.id, driver_id)
    return RideResult(success=True, ride=ride, message="Trip started")


@transaction.atomic
def complete_trip(driver_id: int) -> RideResult:
    """
    Driver dropped the client off: ON_THE_WAY -> COMPLETED.

    Raises:
        DriverNotFoundError: unknown driver
        RideNotFoundError: the driver has no ride on the way
    """
    _get_driver(driver_id)
    ride = (
        Ride.objects.select_for_update()
        .filter(driver_id=driver_id, status=Ride.ON_THE_WAY)
        .first()
    )
    if ride is None:
        raise RideNotFoundError(f"Driver {driver_id} has no ride on the way")

    ride.save(update_fields=apply_transition(ride, Ride.COMPLETED))
    sync_driver_status(driver_id, Driver.AVAILABLE)

    ride = get_ride(ride.id)
    enqueue_task(tasks.notify_client_trip_completed_task, ride.id)
    enqueue_task(tasks.clear_chat_history_task, ride.client.phone_number)
    push_client_event("ride_completed", ride, "Your trip is complete")

    logger.info("Ride %s completed by driver %s", ride.id, driver_id)
    return RideResult(success=True, ride=ride, message="Trip completed")


# ===================== Cancellation & Admin =====================

@transaction.atomic
def cancel_ride(ride_id: int, reason: str = "") -> RideResult:
    """
    Cancel a ride that has not finished yet.

    A driver attached to the ride is freed whatever the ride status was; a
    driver serving an in-progress ride is also messaged.

    Raises:
        RideNotFoundError: unknown ride
        InvalidTransitionError: ride already completed or cancelled
    """
    ride = Ride.objects.select_for_update().filter(id=ride_id).first()
    if ride is None:
        raise RideNotFoundError(f"Ride {ride_id} not found")

    previous_status = ride.status
    changed = apply_transition(ride, Ride.CANCELLED)
    if reason:
        ride.cancellation_reason = reason
        changed.append("cancellation_reason")
    ride.save(update_fields=changed)

    PendingOffer.objects.filter(ride=ride).delete()

    ride = get_ride(ride.id)
    driver_id = ride.driver_id
    if driver_id:
        if previous_status == Ride.IN_PROGRESS:
            enqueue_task(tasks.notify_driver_cancellation_task, ride.id, driver_id)
        push_driver_event("ride_cancelled", ride, driver_id, "The ride was cancelled")
        sync_driver_status(driver_id, Driver.AVAILABLE)

    enqueue_task(tasks.clear_chat_history_task, ride.client.phone_number)
    push_client_event("ride_cancelled", ride, "Your ride was cancelled")

    logger.info("Ride %s cancelled (was %s, driver %s)", ride.id, previous_status, driver_id)
    return RideResult(success=True, ride=ride, message="Ride cancelled")


def cancel_ride_for_phone(phone_number: str, reason: str = "") -> RideResult:
    """Cancel the active ride of the client owning this phone number."""
    ride = find_active_ride_for_phone(phone_number)
    if ride is None:
        raise RideNotFoundError(f"No active ride for phone {normalize_phone(phone_number)}")
    return cancel_ride(ride.id, reason)


@transaction.atomic
def change_status(ride_id: int, new_status: str) -> RideResult:
    """
    Administrative status change, checked against the transition table.

    Outstanding offers are dropped once the ride leaves PENDING, so the
    offered driver is free for other rides. Finishing states free the
    attached driver.

    Raises:
        RideNotFoundError: unknown ride
        InvalidInputError / InvalidTransitionError: status not allowed
    """
    ride = Ride.objects.select_for_update().filter(id=ride_id).first()
    if ride is None:
        raise RideNotFoundError(f"Ride {ride_id} not found")

    previous_status = ride.status
    ride.save(update_fields=apply_transition(ride, new_status))

    if new_status != Ride.PENDING:
        dropped = PendingOffer.objects.filter(ride=ride).delete()[0]
        if dropped:
            logger.info("Dropped %s offer(s) of ride %s on admin change to %s", dropped, ride.id, new_status)

    if is_terminal(new_status) and ride.driver_id:
        sync_driver_status(ride.driver_id, Driver.AVAILABLE)

    logger.info("Ride %s status %s -> %s (admin)", ride.id, previous_status, new_status)
    return RideResult(success=True, ride=get_ride(ride.id), message=f"Ride status changed to {new_status}")
