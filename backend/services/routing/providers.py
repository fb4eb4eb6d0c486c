"""
Route distance/duration estimation.

Providers are tried in order and each one is only called when the previous
one failed: Google Directions, then OSRM, then a straight-line Haversine
estimate at the configured average speed. Distances are kilometres rounded
to 2 decimals, durations are whole minutes rounded up.
"""

import logging
import math
from dataclasses import dataclass
from typing import Any, Dict

import requests
from django.conf import settings

from common.utils import GeoPoint, distance_between
from services.exceptions import RoutingError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RouteEstimate:
    distance_km: float
    duration_minutes: int
    provider: str

    def as_dict(self) -> Dict[str, Any]:
        return {
            'distance': self.distance_km,
            'duration': self.duration_minutes,
            'provider': self.provider,
        }


def _timeout():
    return getattr(settings, 'EXTERNAL_HTTP_TIMEOUT_SECONDS', 5)


def _average_speed_kmh():
    return getattr(settings, 'DISPATCH_AVERAGE_SPEED_KMH', 30)


def google_directions_route(origin: GeoPoint, destination: GeoPoint) -> RouteEstimate:
    """Driving route from the Google Directions API (traffic-aware)."""
    api_key = getattr(settings, 'GOOGLE_MAPS_API_KEY', '')
    base_url = getattr(settings, 'GOOGLE_MAPS_BASE_URL', '')
    if not api_key or not base_url:
        raise RoutingError("Google Maps is not configured")

    try:
        response = requests.get(
            f"{base_url}/directions/json",
            params={
                'origin': f"{origin.latitude},{origin.longitude}",
                'destination': f"{destination.latitude},{destination.longitude}",
                'mode': 'driving',
                'units': 'metric',
                'avoid': 'tolls',
                'departure_time': 'now',
                'traffic_model': 'best_guess',
                'key': api_key,
            },
            timeout=_timeout(),
        )
        response.raise_for_status()
        data = response.json()
    except (requests.RequestException, ValueError) as exc:
        raise RoutingError(f"Google Directions request failed: {exc}")

    routes = data.get('routes') or []
    if not routes or not routes[0].get('legs'):
        raise RoutingError(f"Google Directions returned no route ({data.get('status')})")

    leg = routes[0]['legs'][0]
    if 'distance' not in leg or 'duration' not in leg:
        raise RoutingError("Google Directions route has no distance or duration")

    seconds = leg['duration']['value']
    in_traffic = leg.get('duration_in_traffic', {}).get('value')
    if in_traffic and in_traffic > seconds:
        seconds = in_traffic

    return RouteEstimate(
        distance_km=round(leg['distance']['value'] / 1000, 2),
        duration_minutes=math.ceil(seconds / 60),
        provider='google',
    )


def osrm_route(origin: GeoPoint, destination: GeoPoint) -> RouteEstimate:
    """Driving route from an OSRM server."""
    base_url = getattr(settings, 'OSRM_BASE_URL', '')
    if not base_url:
        raise RoutingError("OSRM is not configured")

    url = (
        f"{base_url}/route/v1/driving/"
        f"{origin.longitude},{origin.latitude};{destination.longitude},{destination.latitude}"
    )
    try:
        response = requests.get(url, params={'overview': 'false'}, timeout=_timeout())
        response.raise_for_status()
        data = response.json()
    except (requests.RequestException, ValueError) as exc:
        raise RoutingError(f"OSRM request failed: {exc}")

    routes = data.get('routes') or []
    if not routes:
        raise RoutingError(f"OSRM returned no route ({data.get('code')})")

    route = routes[0]
    return RouteEstimate(
        distance_km=round(route['distance'] / 1000, 2),
        duration_minutes=math.ceil(route['duration'] / 60),
        provider='osrm',
    )


def haversine_route(origin: GeoPoint, destination: GeoPoint) -> RouteEstimate:
    """Straight-line estimate at the assumed average city speed."""
    distance = round(distance_between(origin, destination), 2)
    return RouteEstimate(
        distance_km=distance,
        duration_minutes=math.ceil(distance / _average_speed_kmh() * 60),
        provider='haversine',
    )


def estimate_route(origin: GeoPoint, destination: GeoPoint) -> RouteEstimate:
    """
    Estimate driving distance and duration between two points.

    Never raises for provider failures: the Haversine estimate is the last
    fallback.
    """
    providers = (("google", google_directions_route), ("osrm", osrm_route))
    for name, provider in providers:
        try:
            estimate = provider(origin, destination)
        except RoutingError as exc:
            logger.warning("Route provider %s failed: %s", name, exc)
            continue
        logger.info(
            "Route %s -> %s via %s: %s km, %s min",
            origin.wkt, destination.wkt, estimate.provider,
            estimate.distance_km, estimate.duration_minutes,
        )
        return estimate

    estimate = haversine_route(origin, destination)
    logger.info(
        "Route %s -> %s estimated by distance: %s km, %s min",
        origin.wkt, destination.wkt, estimate.distance_km, estimate.duration_minutes,
    )
    return estimate
