import redis
from django.conf import settings
from django.utils import timezone
from rest_framework.decorators import api_view
from rest_framework.response import Response
from rest_framework import status
from channels.layers import get_channel_layer

from drivers.models import Driver
from rides.models import Ride
from realtime.routing import connection_registry
from rides.tasks import clear_chat_history_task


def _configured_providers():
    """Routing/geocoding/messaging providers that are switched on."""
    return {
        "google_maps": bool(settings.GOOGLE_MAPS_API_KEY and settings.GOOGLE_MAPS_BASE_URL),
        "osrm": bool(settings.OSRM_BASE_URL),
        "nominatim": bool(settings.NOMINATIM_BASE_URL),
        "whatsapp": bool(settings.WHATSAPP_API_URL),
    }


@api_view(["GET"])
def health_check(request):
    """Health of the dispatch backend and the services it leans on"""

    health_status = {
        "status": "healthy",
        "timestamp": timezone.now().isoformat(),
        "services": {},
        "providers": _configured_providers(),
    }

    # Database check, with a dispatch snapshot
    try:
        health_status["dispatch"] = {
            "pending_rides": Ride.objects.filter(status=Ride.PENDING).count(),
            "active_rides": Ride.objects.filter(status__in=[Ride.IN_PROGRESS, Ride.ON_THE_WAY]).count(),
            "available_drivers": Driver.objects.filter(active=True, status=Driver.AVAILABLE).count(),
        }
        health_status["services"]["database"] = "healthy"
    except Exception as e:
        health_status["services"]["database"] = f"unhealthy: {e}"
        health_status["status"] = "unhealthy"

    # Redis check (channel layer + Celery broker)
    try:
        redis_client = redis.Redis.from_url(settings.REDIS_URL, socket_timeout=3)
        redis_client.ping()
        health_status["services"]["redis"] = "healthy"
    except Exception as e:
        health_status["services"]["redis"] = f"unhealthy: {e}"
        health_status["status"] = "unhealthy"

    # Channel layer check
    if get_channel_layer() is not None:
        health_status["services"]["channels"] = "healthy"
    else:
        health_status["services"]["channels"] = "unhealthy: no channel layer"
        health_status["status"] = "unhealthy"

    # Driver sockets served by this process
    health_status["realtime"] = {
        "connected_drivers": len(connection_registry),
        "driver_ids": connection_registry.connected_driver_ids(),
    }

    # Celery check
    if clear_chat_history_task.name in clear_chat_history_task.app.tasks:
        health_status["services"]["celery"] = "healthy"
    else:
        health_status["services"]["celery"] = "unhealthy: task not registered"
        health_status["status"] = "unhealthy"

    status_code = (
        status.HTTP_200_OK
        if health_status["status"] == "healthy"
        else status.HTTP_503_SERVICE_UNAVAILABLE
    )

    return Response(health_status, status=status_code)
