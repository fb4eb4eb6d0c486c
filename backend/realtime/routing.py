"""WebSocket URL routing for the realtime app."""

from django.urls import re_path

from .consumers.driver_consumer import DriverConsumer
from .registry import ConnectionRegistry

# Sockets served by this process
connection_registry = ConnectionRegistry()

websocket_urlpatterns = [
    # Driver-specific WebSocket endpoint
    # URL: ws://localhost:8000/ws/driver/<driver_id>/
    re_path(
        r"ws/driver/(?P<driver_id>\d+)/$",
        DriverConsumer.as_asgi(registry=connection_registry),
        name="driver-ws"
    ),
]
