"""
Address geocoding with a context point.

Google Geocoding is tried first, then OpenStreetMap Nominatim. A context
point (the client's reported position, or the ride's origin when geocoding
a destination) biases the search and guards against matches in another city.
"""

import logging
from typing import Dict, Optional

import requests
from django.conf import settings

from common.utils import GeoPoint, distance_between
from services.exceptions import GeocodingError, InvalidInputError

logger = logging.getLogger(__name__)

UNKNOWN_STREET = 'Unknown street'

GOOGLE_BOUNDS_DEGREES = 0.01
NOMINATIM_VIEWBOX_DEGREES = 0.5


class _NoResults(Exception):
    pass


def _timeout():
    return getattr(settings, 'EXTERNAL_HTTP_TIMEOUT_SECONDS', 5)


def _max_context_distance_km():
    return getattr(settings, 'GEOCODING_MAX_CONTEXT_DISTANCE_KM', 50)


def _nominatim_headers():
    return {'User-Agent': getattr(settings, 'GEOCODING_USER_AGENT', 'dispatch-backend/1.0')}


def _google_geocode(address: str, context: Optional[GeoPoint]) -> GeoPoint:
    api_key = getattr(settings, 'GOOGLE_MAPS_API_KEY', '')
    base_url = getattr(settings, 'GOOGLE_MAPS_BASE_URL', '')
    if not api_key or not base_url:
        raise GeocodingError("Google Maps is not configured")

    params = {'address': address, 'key': api_key}
    if context is not None:
        d = GOOGLE_BOUNDS_DEGREES
        params['bounds'] = (
            f"{context.latitude - d},{context.longitude - d}|"
            f"{context.latitude + d},{context.longitude + d}"
        )

    response = requests.get(f"{base_url}/geocode/json", params=params, timeout=_timeout())
    response.raise_for_status()
    results = response.json().get('results') or []
    if not results:
        raise _NoResults(address)

    location = results[0]['geometry']['location']
    return GeoPoint(float(location['lng']), float(location['lat']))


def _nominatim_geocode(address: str, context: Optional[GeoPoint]) -> GeoPoint:
    base_url = getattr(settings, 'NOMINATIM_BASE_URL', '')
    if not base_url:
        raise GeocodingError("Nominatim is not configured")

    params = {'format': 'json', 'q': address, 'limit': 1}
    if context is not None:
        d = NOMINATIM_VIEWBOX_DEGREES
        params['viewbox'] = (
            f"{context.longitude - d},{context.latitude + d},"
            f"{context.longitude + d},{context.latitude - d}"
        )
        params['bounded'] = 1

    response = requests.get(
        f"{base_url}/search", params=params, headers=_nominatim_headers(), timeout=_timeout()
    )
    response.raise_for_status()
    results = response.json() or []
    if not results:
        raise _NoResults(address)

    return GeoPoint(float(results[0]['lon']), float(results[0]['lat']))


def geocode_address(address: str, context: Optional[GeoPoint] = None, is_origin: bool = False) -> GeoPoint:
    """
    Resolve an address to a point.

    Args:
        address: Free-text address
        context: Point used to bias the search and validate the result
        is_origin: Origins fall back to the context point instead of failing

    Returns:
        GeoPoint

    Raises:
        InvalidInputError: destination resolved too far from the context point
        GeocodingError: no provider produced a usable result
    """
    max_distance = _max_context_distance_km()

    for name, provider in (("google", _google_geocode), ("nominatim", _nominatim_geocode)):
        try:
            point = provider(address, context)
        except _NoResults:
            logger.warning("Geocoder %s found nothing for %r", name, address)
            continue
        except GeocodingError as exc:
            logger.warning("Geocoder %s unavailable: %s", name, exc)
            continue
        except (requests.RequestException, ValueError, KeyError) as exc:
            logger.warning("Geocoder %s failed for %r: %s", name, address, exc)
            continue

        if context is not None:
            distance = distance_between(context, point)
            if distance > max_distance:
                logger.warning(
                    "Geocoder %s placed %r %.2f km away from %s",
                    name, address, distance, context.wkt,
                )
                if is_origin:
                    return context
                raise InvalidInputError(
                    f"Address '{address}' resolves {distance:.1f} km away from the pickup area",
                    {'destination': 'too far from origin'},
                )

        logger.info("Geocoded %r via %s to %s", address, name, point.wkt)
        return point

    if is_origin and context is not None:
        logger.warning("Geocoding failed for origin %r, using supplied coordinates", address)
        return context

    raise GeocodingError(f"Could not geocode address '{address}'")


def _google_reverse(latitude: float, longitude: float) -> Dict[str, str]:
    api_key = getattr(settings, 'GOOGLE_MAPS_API_KEY', '')
    base_url = getattr(settings, 'GOOGLE_MAPS_BASE_URL', '')
    if not api_key or not base_url:
        raise GeocodingError("Google Maps is not configured")

    response = requests.get(
        f"{base_url}/geocode/json",
        params={'latlng': f"{latitude},{longitude}", 'key': api_key},
        timeout=_timeout(),
    )
    response.raise_for_status()
    results = response.json().get('results') or []
    if not results:
        raise _NoResults(f"{latitude},{longitude}")

    result = results[0]
    street = next(
        (c['long_name'] for c in result.get('address_components', []) if 'route' in c.get('types', [])),
        UNKNOWN_STREET,
    )
    return {'street': street, 'full_address': result.get('formatted_address', '')}


def _nominatim_reverse(latitude: float, longitude: float) -> Dict[str, str]:
    base_url = getattr(settings, 'NOMINATIM_BASE_URL', '')
    if not base_url:
        raise GeocodingError("Nominatim is not configured")

    response = requests.get(
        f"{base_url}/reverse",
        params={'format': 'json', 'lat': latitude, 'lon': longitude, 'zoom': 18, 'addressdetails': 1},
        headers=_nominatim_headers(),
        timeout=_timeout(),
    )
    response.raise_for_status()
    data = response.json() or {}
    address = data.get('address')
    if not address:
        raise _NoResults(f"{latitude},{longitude}")

    street = next(
        (address[key] for key in ('road', 'pedestrian', 'path', 'footway', 'cycleway') if address.get(key)),
        UNKNOWN_STREET,
    )
    return {'street': street, 'full_address': data.get('display_name', '')}


def reverse_geocode(latitude: float, longitude: float) -> Dict[str, str]:
    """
    Street name and full address for a position.

    Raises:
        GeocodingError: if no provider resolved the position
    """
    for name, provider in (("google", _google_reverse), ("nominatim", _nominatim_reverse)):
        try:
            return provider(latitude, longitude)
        except (_NoResults, GeocodingError, requests.RequestException, ValueError, KeyError) as exc:
            logger.warning("Reverse geocoder %s failed for %s,%s: %s", name, latitude, longitude, exc)
    raise GeocodingError(f"Could not reverse geocode {latitude},{longitude}")
