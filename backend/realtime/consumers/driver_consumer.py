"""Driver WebSocket consumer for real-time location updates and ride offers."""

import logging
from typing import Dict, Any, List, Optional

from channels.db import database_sync_to_async
from rest_framework.exceptions import ValidationError

from .base import BaseConsumer
from drivers import services as driver_services
from drivers.models import Driver
from realtime.notifications import driver_group
from realtime.registry import ConnectionRegistry
from services.exceptions import DispatchError
from common.serializers import resolve_point

logger = logging.getLogger(__name__)


class DriverConsumer(BaseConsumer):
    """
    WebSocket consumer for drivers at ``ws/driver/<driver_id>/``.

    Handles:
        - Driver location updates (stored in the location registry)
        - Status changes
        - Ride offer / cancellation notifications
    """

    def __init__(self, *args, registry: Optional[ConnectionRegistry] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.registry = registry
        self.driver_id = None

    async def identify(self) -> bool:
        try:
            driver_id = int(self.scope["url_route"]["kwargs"]["driver_id"])
        except (KeyError, TypeError, ValueError):
            return False
        if not await self._driver_exists(driver_id):
            logger.warning("Rejected socket for unknown driver %s", driver_id)
            return False
        self.driver_id = driver_id
        return True

    def get_groups(self) -> List[str]:
        return [driver_group(self.driver_id)]

    async def on_connect(self):
        if self.registry is not None:
            self.registry.register(self.driver_id, self.channel_name)
        logger.info("Driver %s connected (%s)", self.driver_id, self.channel_name)
        await self.send_json({
            "type": "connection_established",
            "driver_id": self.driver_id,
            "message": "Driver connected successfully",
        })

    async def on_disconnect(self, close_code):
        if self.registry is not None and self.driver_id is not None:
            self.registry.unregister(self.driver_id, self.channel_name)
        logger.info("Driver %s disconnected (%s)", self.driver_id, close_code)

    async def handle_message(self, msg_type: str, data: Dict[str, Any]):
        """Handle driver-specific messages."""
        if msg_type == "location_update":
            await self._handle_location_update(data)
        elif msg_type == "status_update":
            await self._handle_status_update(data)
        else:
            await self.send_error(f"Unknown message type: {msg_type}")

    # ---------------------- Message Handlers ----------------------

    async def _handle_location_update(self, data: Dict[str, Any]):
        """Store a GPS fix sent as latitude/longitude or a WKT point."""
        fields = {key: data.get(key) for key in ("latitude", "longitude", "coordinates")}
        try:
            point = resolve_point(fields)
            location = await self._record_position(
                point,
                speed=data.get("speed"),
                heading=data.get("heading"),
                ride_id=data.get("ride_id"),
            )
        except DispatchError as exc:
            await self.send_error(exc.message, exc.errors)
            return
        except ValidationError as exc:
            await self.send_error("Invalid coordinates", exc.detail)
            return

        await self.send_success(
            "location_recorded",
            coordinates=location.point.wkt,
            timestamp=location.timestamp.isoformat(),
        )

    async def _handle_status_update(self, data: Dict[str, Any]):
        """Handle driver status change."""
        status = data.get("status")
        try:
            await self._update_status(status)
        except DispatchError as exc:
            await self.send_error(exc.message, exc.errors)
            return
        await self.send_success("status_updated", status=status)

    # ---------------------- Database Helpers ----------------------

    @database_sync_to_async
    def _driver_exists(self, driver_id: int) -> bool:
        return Driver.objects.filter(id=driver_id, active=True).exists()

    @database_sync_to_async
    def _record_position(self, point, speed=None, heading=None, ride_id=None):
        return driver_services.record_position(
            self.driver_id, point, speed=speed, heading=heading, ride_id=ride_id
        )

    @database_sync_to_async
    def _update_status(self, status: str):
        return driver_services.update_driver_status(self.driver_id, status)
