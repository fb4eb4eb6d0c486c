"""Base WebSocket consumer: identity check, group membership, ride event forwarding."""

import logging
from typing import Dict, Any, List, Set

from channels.generic.websocket import AsyncJsonWebsocketConsumer

logger = logging.getLogger(__name__)

# Close code for connections to an unknown identity
CLOSE_NOT_FOUND = 4404


class BaseConsumer(AsyncJsonWebsocketConsumer):
    """
    JSON consumer that only accepts identified sockets.

    Subclasses provide:
        - identify(): resolve who is connecting, False rejects the socket
        - get_groups(): channel-layer groups the socket listens on
        - handle_message(msg_type, data): inbound message dispatch

    Ride events pushed to those groups (see realtime.notifications) are
    forwarded to the socket as ``{"type", "ride_id", "status", "message", "ride"}``.
    """

    async def connect(self):
        self.joined_groups: Set[str] = set()

        if not await self.identify():
            await self.close(code=CLOSE_NOT_FOUND)
            return

        for group in self.get_groups():
            await self.channel_layer.group_add(group, self.channel_name)
            self.joined_groups.add(group)

        await self.accept()
        await self.on_connect()

    async def identify(self) -> bool:
        return True

    def get_groups(self) -> List[str]:
        return []

    async def on_connect(self):
        await self.send_json({"type": "connection_established"})

    async def disconnect(self, close_code):
        try:
            for group in list(getattr(self, "joined_groups", ())):
                await self.channel_layer.group_discard(group, self.channel_name)
                self.joined_groups.discard(group)
            await self.on_disconnect(close_code)
        except Exception:
            logger.exception("Error during disconnect of %s", self.channel_name)

    async def on_disconnect(self, close_code):
        pass

    async def receive_json(self, data: Dict[str, Any]):
        msg_type = data.get("type") if isinstance(data, dict) else None
        if not msg_type:
            await self.send_error("Message type is required")
            return

        try:
            await self.handle_message(msg_type, data)
        except Exception:
            logger.exception("Error handling message type %s", msg_type)
            await self.send_error(f"Error processing {msg_type}")

    async def handle_message(self, msg_type: str, data: Dict[str, Any]):
        await self.send_error(f"Unknown message type: {msg_type}")

    # ---------------------- Outbound ----------------------

    async def send_error(self, message: str, errors: Dict[str, Any] = None):
        payload = {"type": "error", "message": message}
        if errors:
            payload["errors"] = errors
        await self.send_json(payload)

    async def send_success(self, event_type: str, **kwargs):
        await self.send_json({"type": event_type, **kwargs})

    async def _forward_ride_event(self, event: Dict[str, Any], socket_type: str, default_message: str = ""):
        await self.send_json({
            "type": socket_type,
            "ride_id": event.get("ride_id"),
            "status": event.get("status"),
            "driver_id": event.get("driver_id"),
            "message": event.get("message", default_message),
            "ride": event.get("ride_data", {}),
        })

    # ---------------------- Group event handlers ----------------------

    async def ride_offer(self, event):
        await self._forward_ride_event(event, "new_ride_offer")

    async def ride_accepted(self, event):
        await self._forward_ride_event(event, "ride_accepted")

    async def ride_cancelled(self, event):
        await self._forward_ride_event(event, "ride_cancelled", "Ride cancelled")

    async def ride_completed(self, event):
        await self._forward_ride_event(event, "ride_completed", "Ride completed")
