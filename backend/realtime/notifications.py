"""
Notification helpers for pushing ride events over the channel layer.

Drivers listen on ``driver_<driver_id>`` and clients on ``client_<client_id>``.
Every helper returns False instead of raising when there is nothing to send.
"""

from __future__ import annotations

import logging
from typing import Dict, Any

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer

logger = logging.getLogger(__name__)


def driver_group(driver_id: int) -> str:
    return f"driver_{driver_id}"


def client_group(client_id: int) -> str:
    return f"client_{client_id}"


def _ride_payload(event_type: str, ride, extra: Dict[str, Any] = None, message: str = "") -> Dict[str, Any]:
    from rides.serializers import RideSerializer

    payload = {
        "type": event_type,
        "ride_id": ride.id,
        "status": ride.status,
        "ride_data": RideSerializer(ride).data,
        **(extra or {}),
    }
    if message:
        payload["message"] = message
    return payload


def notify_driver_event(
    event_type: str,
    ride,
    driver_id: int | None,
    message: str = "",
    extra: Dict[str, Any] = None,
) -> bool:
    """
    Send an event to a specific driver using their personal group.

    Args:
        event_type: Handler name in the consumer (ride_offer, ride_accepted, ride_cancelled)
        ride: Ride model instance
        driver_id: Target driver id
        message: Optional message to include
        extra: Additional payload data

    Returns:
        True if sent, False otherwise
    """
    if not driver_id:
        return False

    channel_layer = get_channel_layer()
    if channel_layer is None:
        return False

    payload = _ride_payload(event_type, ride, {"driver_id": driver_id, **(extra or {})}, message)
    logger.debug("WS -> %s: %s", driver_group(driver_id), event_type)
    async_to_sync(channel_layer.group_send)(driver_group(driver_id), payload)
    return True


def notify_client_event(
    event_type: str,
    ride,
    message: str = "",
    extra: Dict[str, Any] = None,
) -> bool:
    """Send a ride event to the ride's client group."""
    if not ride.client_id:
        return False

    channel_layer = get_channel_layer()
    if channel_layer is None:
        return False

    payload = _ride_payload(event_type, ride, extra, message)
    logger.debug("WS -> %s: %s", client_group(ride.client_id), event_type)
    async_to_sync(channel_layer.group_send)(client_group(ride.client_id), payload)
    return True
