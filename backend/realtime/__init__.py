"""
Realtime app for WebSocket communication with drivers.

This app provides:
- The driver WebSocket consumer (location fixes, status, ride events)
- A connection registry of open driver sockets
- Notification helpers for pushing ride events through the channel layer

Usage:
    from realtime.consumers import DriverConsumer
    from realtime.notifications import notify_driver_event, notify_client_event
    from realtime.registry import ConnectionRegistry
"""
