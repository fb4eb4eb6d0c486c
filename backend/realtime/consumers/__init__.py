"""Realtime consumers for WebSocket communication."""

from .base import BaseConsumer
from .driver_consumer import DriverConsumer

__all__ = [
    "BaseConsumer",
    "DriverConsumer",
]
