"""Conversation memory kept by the WhatsApp assistant, per client phone."""

import logging

from clients.models import ChatHistory

logger = logging.getLogger(__name__)

WHATSAPP_SESSION_SUFFIX = '@s.whatsapp.net'


def session_id_for_phone(phone: str) -> str:
    return f"{(phone or '').lstrip('+')}{WHATSAPP_SESSION_SUFFIX}"


def clear_client_chat_history(phone: str) -> int:
    """Delete the chat history of a client; returns the number of rows removed."""
    session_id = session_id_for_phone(phone)
    deleted, _ = ChatHistory.objects.filter(session_id=session_id).delete()
    logger.info("Cleared %s chat history rows for %s", deleted, session_id)
    return deleted
