"""Celery tasks for best-effort ride side effects (messages, chat cleanup)."""

from celery import shared_task
import logging
import requests

logger = logging.getLogger(__name__)

RETRY_OPTIONS = {
    'autoretry_for': (requests.RequestException,),
    'retry_backoff': True,
    'max_retries': 3,
}


def _load_ride(ride_id: int):
    from rides.models import Ride

    ride = Ride.objects.select_related('client', 'driver').filter(id=ride_id).first()
    if ride is None:
        logger.warning(f"Ride {ride_id} not found for notification task")
    return ride


@shared_task(**RETRY_OPTIONS)
def notify_driver_cancellation_task(ride_id: int, driver_id: int):
    """Tell the driver that was serving a ride that it was cancelled."""
    from drivers.models import Driver
    from services.notifications import cancellation_message, send_text

    ride = _load_ride(ride_id)
    driver = Driver.objects.filter(id=driver_id).first()
    if ride is None or driver is None:
        return False

    logger.info(f"Sending cancellation of ride {ride.tracking_code} to driver {driver_id}")
    return send_text(driver.phone_number, cancellation_message(ride))


@shared_task(**RETRY_OPTIONS)
def notify_client_trip_completed_task(ride_id: int):
    """Send the trip receipt to the client."""
    from services.notifications import completion_message, send_text

    ride = _load_ride(ride_id)
    if ride is None:
        return False

    logger.info(f"Sending completion of ride {ride.tracking_code} to client {ride.client_id}")
    return send_text(ride.client.phone_number, completion_message(ride))


@shared_task(**RETRY_OPTIONS)
def notify_driver_assignment_task(ride_id: int, driver_id: int):
    """Tell a driver a ride was assigned to them by an operator."""
    from drivers.models import Driver
    from services.notifications import assignment_message, send_text

    ride = _load_ride(ride_id)
    driver = Driver.objects.filter(id=driver_id).first()
    if ride is None or driver is None:
        return False

    logger.info(f"Sending assignment of ride {ride.tracking_code} to driver {driver_id}")
    return send_text(driver.phone_number, assignment_message(ride))


@shared_task
def clear_chat_history_task(phone_number: str):
    """Forget the assistant conversation of a client once their ride is over."""
    from services.notifications import clear_client_chat_history

    return clear_client_chat_history(phone_number)
