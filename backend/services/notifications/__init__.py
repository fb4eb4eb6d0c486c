"""
Client and driver messaging.

WhatsApp text delivery and the assistant's chat-history store. These are
called from Celery tasks after the ride state change commits.
"""

from .chat_history import clear_client_chat_history, session_id_for_phone
from .whatsapp import (
    assignment_message,
    cancellation_message,
    completion_message,
    send_text,
)

__all__ = [
    "clear_client_chat_history",
    "session_id_for_phone",
    "assignment_message",
    "cancellation_message",
    "completion_message",
    "send_text",
]
