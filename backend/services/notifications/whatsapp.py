"""
Outbound WhatsApp messages through an Evolution-style HTTP gateway.

Messages are plain text posted as ``{"number", "text"}`` to
``<WHATSAPP_API_URL>/message/sendText/<WHATSAPP_INSTANCE>``. With no gateway
URL configured, messages are only logged.
"""

import logging
import re

import requests
from django.conf import settings

logger = logging.getLogger(__name__)

SEND_TIMEOUT_SECONDS = 10


def format_phone_for_whatsapp(phone: str) -> str:
    """Digits only, country code kept as given."""
    return re.sub(r'\D', '', phone or '')


def send_text(phone: str, text: str) -> bool:
    """
    Post a text message to the gateway.

    Returns False when the gateway is disabled or answers with an unexpected
    status. Transport errors propagate so the calling task can retry.
    """
    base_url = getattr(settings, 'WHATSAPP_API_URL', '')
    if not base_url:
        logger.info("WhatsApp disabled, message to %s not sent: %s", phone, text)
        return False

    number = format_phone_for_whatsapp(phone)
    instance = getattr(settings, 'WHATSAPP_INSTANCE', 'default')
    response = requests.post(
        f"{base_url.rstrip('/')}/message/sendText/{instance}",
        json={'number': number, 'text': text},
        headers={'apikey': getattr(settings, 'WHATSAPP_API_KEY', '')},
        timeout=SEND_TIMEOUT_SECONDS,
    )

    if response.status_code in (200, 201):
        logger.info("WhatsApp message sent to %s", number)
        return True

    logger.warning("WhatsApp gateway answered %s for %s", response.status_code, number)
    return False


# ---------------------- Message builders ----------------------

def cancellation_message(ride) -> str:
    client_name = ride.client.full_name if ride.client_id else ''
    client_info = f" from {client_name}" if client_name else ''
    return (
        "*Ride cancelled*\n"
        f"Hello, the ride{client_info} has been cancelled.\n\n"
        "*Ride details:*\n"
        f"- Code: {ride.tracking_code}\n"
        f"- Origin: {ride.origin}\n"
        f"- Destination: {ride.destination}\n\n"
        "You can keep receiving new rides. Thank you!"
    )


def completion_message(ride) -> str:
    driver_name = ride.driver.full_name if ride.driver_id else ''
    return (
        "*Trip completed*\n"
        f"Thanks for riding with us, {ride.client.first_name}!\n\n"
        f"- Code: {ride.tracking_code}\n"
        f"- From: {ride.origin}\n"
        f"- To: {ride.destination}\n"
        f"- Distance: {ride.distance} km\n"
        f"- Total: {ride.price}\n"
        f"- Driver: {driver_name}"
    )


def assignment_message(ride) -> str:
    return (
        "*New ride assigned*\n"
        f"- Code: {ride.tracking_code}\n"
        f"- Client: {ride.client.full_name}\n"
        f"- Pickup: {ride.origin}\n"
        f"- Destination: {ride.destination}\n"
        f"- Passengers: {ride.passenger_count}\n"
        f"- Fare: {ride.price}\n\n"
        "Please accept the ride in the app."
    )
