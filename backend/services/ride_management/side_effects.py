"""
Best-effort side effects of ride transitions.

Nothing here may fail the transition that triggered it: errors are logged
and swallowed. Work that leaves the process (messages, socket pushes, chat
cleanup) only runs after the surrounding transaction commits.
"""

import logging

from django.db import transaction

from drivers.models import Driver

logger = logging.getLogger(__name__)


def sync_driver_status(driver_id: int, status: str) -> bool:
    """Update a driver's status inside a savepoint; False if it failed."""
    if not driver_id:
        return False
    try:
        with transaction.atomic():
            Driver.objects.filter(id=driver_id).update(status=status)
    except Exception:
        logger.exception("Failed to set driver %s status to %s", driver_id, status)
        return False
    logger.info("Driver %s status -> %s", driver_id, status)
    return True


def run_after_commit(label: str, func, *args, **kwargs) -> None:
    """Schedule ``func`` once the current transaction commits."""
    def _run():
        try:
            func(*args, **kwargs)
        except Exception:
            logger.exception("Side effect '%s' failed", label)

    transaction.on_commit(_run)


def enqueue_task(task, *args) -> None:
    """Queue a Celery task after commit."""
    run_after_commit(task.name, task.delay, *args)


def push_driver_event(event_type: str, ride, driver_id: int, message: str = "") -> None:
    from realtime.notifications import notify_driver_event

    run_after_commit(f"{event_type} -> driver {driver_id}", notify_driver_event, event_type, ride, driver_id, message)


def push_client_event(event_type: str, ride, message: str = "") -> None:
    from realtime.notifications import notify_client_event

    run_after_commit(f"{event_type} -> client {ride.client_id}", notify_client_event, event_type, ride, message)
