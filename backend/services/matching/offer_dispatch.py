"""
Offer / accept handshake.

A ride is first offered to one driver (a PendingOffer row), and only becomes
IN_PROGRESS once that same driver accepts:

1. offer_ride: replaces any outstanding offer for the ride
2. accept_ride: consumes the matching offer and binds the driver
3. assign_driver: operator shortcut that re-offers a ride to a chosen driver

Offer and accept lock the ride row, so two concurrent accepts for the same
ride are serialized and only one of them finds the offer to delete.
"""

import logging
from typing import List

from django.db import IntegrityError, transaction

from drivers.models import Driver
from rides.models import Ride, PendingOffer
from rides import tasks
from services.exceptions import (
    DriverNotFoundError,
    InvalidTransitionError,
    OfferConflictError,
    OfferNotFoundError,
    RideNotFoundError,
)
from services.ride_management import RideResult, get_ride
from services.ride_management.side_effects import (
    enqueue_task,
    push_client_event,
    push_driver_event,
    sync_driver_status,
)
from services.ride_management.state_machine import apply_transition

logger = logging.getLogger(__name__)


def _lock_ride(ride_id: int) -> Ride:
    ride = Ride.objects.select_for_update().filter(id=ride_id).first()
    if ride is None:
        raise RideNotFoundError(f"Ride {ride_id} not found")
    return ride


def _get_driver(driver_id: int) -> Driver:
    driver = Driver.objects.filter(id=driver_id, active=True).first()
    if driver is None:
        raise DriverNotFoundError(f"Driver {driver_id} not found")
    return driver


def _create_offer(ride: Ride, driver: Driver) -> PendingOffer:
    if PendingOffer.objects.filter(driver=driver).exists():
        raise OfferConflictError(f"Driver {driver.id} already has a pending offer")
    try:
        with transaction.atomic():
            return PendingOffer.objects.create(ride=ride, driver=driver)
    except IntegrityError:
        raise OfferConflictError(f"Driver {driver.id} already has a pending offer")


@transaction.atomic
def offer_ride(driver_id: int, ride_id: int) -> PendingOffer:
    """
    Offer a pending ride to a driver.

    Any previous offer for the ride is discarded first, so a ride never has
    more than one outstanding offer.

    Raises:
        RideNotFoundError / DriverNotFoundError: unknown ride or driver
        InvalidTransitionError: the ride is no longer pending
        OfferConflictError: the driver holds an offer for another ride
    """
    ride = _lock_ride(ride_id)
    driver = _get_driver(driver_id)
    if ride.status != Ride.PENDING:
        raise InvalidTransitionError(f"Ride {ride_id} is {ride.status}, only pending rides can be offered")

    replaced = PendingOffer.objects.filter(ride=ride).delete()[0]
    offer = _create_offer(ride, driver)

    push_driver_event("ride_offer", get_ride(ride.id), driver.id, "New ride offer")
    logger.info("Ride %s offered to driver %s (replaced %s offer(s))", ride.id, driver.id, replaced)
    return offer


@transaction.atomic
def accept_ride(driver_id: int, ride_id: int) -> RideResult:
    """
    Driver accepts the ride they were offered: PENDING -> IN_PROGRESS.

    Raises:
        RideNotFoundError: unknown ride
        OfferNotFoundError: no offer of this ride to this driver
        InvalidTransitionError: the ride is no longer pending
    """
    ride = _lock_ride(ride_id)

    deleted, _ = PendingOffer.objects.filter(driver_id=driver_id, ride_id=ride_id).delete()
    if not deleted:
        raise OfferNotFoundError(f"No pending offer of ride {ride_id} for driver {driver_id}")

    changed = apply_transition(ride, Ride.IN_PROGRESS)
    ride.driver_id = driver_id
    ride.save(update_fields=changed + ["driver"])

    sync_driver_status(driver_id, Driver.ON_THE_WAY)

    ride = get_ride(ride.id)
    push_client_event("ride_accepted", ride, "A driver is on the way")
    push_driver_event("ride_accepted", ride, driver_id, "Ride accepted")

    logger.info("Ride %s accepted by driver %s", ride.id, driver_id)
    return RideResult(success=True, ride=ride, message="Ride accepted")


@transaction.atomic
def assign_driver(ride_id: int, driver_id: int) -> RideResult:
    """
    Operator assigns a driver to a ride.

    The ride is re-offered to the chosen driver and bound to them; an
    IN_PROGRESS ride goes back to PENDING so the driver still has to accept.
    A different driver previously bound to the ride is freed.

    Raises:
        RideNotFoundError / DriverNotFoundError: unknown ride or driver
        InvalidTransitionError: ride is neither pending nor in progress
        OfferConflictError: the driver holds an offer for another ride
    """
    ride = _lock_ride(ride_id)
    driver = _get_driver(driver_id)
    if ride.status not in (Ride.PENDING, Ride.IN_PROGRESS):
        raise InvalidTransitionError(f"Ride {ride_id} is {ride.status} and cannot be assigned")

    previous_status = ride.status
    previous_driver_id = ride.driver_id

    PendingOffer.objects.filter(ride=ride).delete()
    _create_offer(ride, driver)

    ride.driver = driver
    ride.status = Ride.PENDING
    ride.save(update_fields=["driver", "status", "updated_at"])

    if previous_driver_id and previous_driver_id != driver.id:
        sync_driver_status(previous_driver_id, Driver.AVAILABLE)

    ride = get_ride(ride.id)
    enqueue_task(tasks.notify_driver_assignment_task, ride.id, driver.id)
    push_driver_event("ride_offer", ride, driver.id, "A ride was assigned to you")

    logger.info(
        "Ride %s assigned to driver %s by operator (was %s, driver %s)",
        ride.id, driver.id, previous_status, previous_driver_id,
    )
    return RideResult(success=True, ride=ride, message="Driver assigned")


def list_pending_offers() -> List[PendingOffer]:
    return list(PendingOffer.objects.select_related("ride", "driver").order_by("created_at", "id"))
