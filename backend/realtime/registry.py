"""Connected driver sockets, keyed by driver id."""

import threading
from typing import Dict, FrozenSet, List, Set


class ConnectionRegistry:
    """
    Thread-safe map of driver id -> open channel names.

    A driver may hold several sockets at once (e.g. phone and tablet); the
    driver counts as connected while at least one is open.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._channels: Dict[int, Set[str]] = {}

    def register(self, driver_id: int, channel_name: str) -> None:
        with self._lock:
            self._channels.setdefault(driver_id, set()).add(channel_name)

    def unregister(self, driver_id: int, channel_name: str) -> bool:
        """Forget one socket; returns True if the driver has none left."""
        with self._lock:
            channels = self._channels.get(driver_id)
            if channels is None:
                return True
            channels.discard(channel_name)
            if not channels:
                del self._channels[driver_id]
                return True
            return False

    def is_connected(self, driver_id: int) -> bool:
        with self._lock:
            return bool(self._channels.get(driver_id))

    def channels_for(self, driver_id: int) -> FrozenSet[str]:
        with self._lock:
            return frozenset(self._channels.get(driver_id, ()))

    def connected_driver_ids(self) -> List[int]:
        with self._lock:
            return sorted(self._channels)

    def __len__(self):
        with self._lock:
            return len(self._channels)
