"""
Ride status transitions.

    pending      -> in_progress | cancelled
    in_progress  -> on_the_way | completed | cancelled
    on_the_way   -> completed | cancelled
    completed, cancelled: terminal
"""

from typing import List, Optional

from django.utils import timezone

from rides.models import Ride
from services.exceptions import InvalidInputError, InvalidTransitionError

TRANSITIONS = {
    Ride.PENDING: frozenset({Ride.IN_PROGRESS, Ride.CANCELLED}),
    Ride.IN_PROGRESS: frozenset({Ride.ON_THE_WAY, Ride.COMPLETED, Ride.CANCELLED}),
    Ride.ON_THE_WAY: frozenset({Ride.COMPLETED, Ride.CANCELLED}),
    Ride.COMPLETED: frozenset(),
    Ride.CANCELLED: frozenset(),
}

# Timestamp stamped the first time a ride enters the state
TIMESTAMP_FIELDS = {
    Ride.IN_PROGRESS: 'assigned_at',
    Ride.ON_THE_WAY: 'start_date',
    Ride.COMPLETED: 'end_date',
    Ride.CANCELLED: 'cancelled_at',
}


def can_transition(current: str, new: str) -> bool:
    return new in TRANSITIONS.get(current, frozenset())


def validate_transition(current: str, new: str) -> None:
    """
    Raises:
        InvalidInputError: if ``new`` is not a ride status
        InvalidTransitionError: if the table does not allow current -> new
    """
    if new not in TRANSITIONS:
        raise InvalidInputError(f"Unknown ride status '{new}'", {'status': 'invalid choice'})
    if not can_transition(current, new):
        raise InvalidTransitionError(f"Cannot change ride status from '{current}' to '{new}'")


def apply_transition(ride: Ride, new_status: str, now=None) -> List[str]:
    """
    Move ``ride`` to ``new_status`` in memory.

    Returns the list of changed fields, ready for ``save(update_fields=...)``.
    """
    validate_transition(ride.status, new_status)
    ride.status = new_status
    changed = ['status', 'updated_at']

    field = TIMESTAMP_FIELDS.get(new_status)
    if field and getattr(ride, field) is None:
        setattr(ride, field, now or timezone.now())
        changed.append(field)
    return changed


def is_terminal(status: Optional[str]) -> bool:
    return status in Ride.TERMINAL_STATUSES
