"""Custom exceptions shared by the dispatch services."""

from typing import Dict, Optional


class DispatchError(Exception):
    """Base class for errors returned synchronously to the caller."""
    status_code = 400
    code = "dispatch_error"

    def __init__(self, message: str = "", errors: Optional[Dict[str, str]] = None):
        super().__init__(message or self.__class__.__doc__)
        self.message = message or (self.__class__.__doc__ or "").strip()
        self.errors = errors or {}


# ---------------------- Not found ----------------------

class NotFoundError(DispatchError):
    """Requested resource does not exist."""
    status_code = 404
    code = "not_found"


class ClientNotFoundError(NotFoundError):
    """Raised when a client cannot be found."""
    code = "client_not_found"


class DriverNotFoundError(NotFoundError):
    """Raised when a driver cannot be found or is inactive."""
    code = "driver_not_found"


class RideNotFoundError(NotFoundError):
    """Raised when a ride cannot be found."""
    code = "ride_not_found"


class ZoneNotFoundError(NotFoundError):
    """Raised when no active zone contains a point."""
    code = "zone_not_found"


class OfferNotFoundError(NotFoundError):
    """Raised when a ride offer cannot be found."""
    code = "offer_not_found"


class NoEligibleDriverError(NotFoundError):
    """Raised when no driver is eligible for a ride."""
    code = "no_drivers_available"


# ---------------------- Conflict ----------------------

class ConflictError(DispatchError):
    """Request conflicts with the current state."""
    status_code = 409
    code = "conflict"


class ActiveRideExistsError(ConflictError):
    """Raised when the client already has a pending ride."""
    code = "active_ride_exists"


class OfferConflictError(ConflictError):
    """Raised when a driver already holds an offer for another ride."""
    code = "offer_conflict"


# ---------------------- Invalid input ----------------------

class InvalidInputError(DispatchError):
    """Request data is invalid."""
    status_code = 400
    code = "invalid_input"


class InvalidTransitionError(InvalidInputError):
    """Raised when a ride status change is not allowed."""
    code = "invalid_transition"


class RouteOutOfBoundsError(InvalidInputError):
    """Raised when a computed route is too long to be a real taxi ride."""
    code = "route_out_of_bounds"


# ---------------------- Upstream ----------------------

class UpstreamError(DispatchError):
    """An external provider failed and no fallback was left."""
    status_code = 502
    code = "upstream_failure"


class GeocodingError(UpstreamError):
    """Raised when an address cannot be geocoded by any provider."""
    code = "geocoding_failed"


class RoutingError(UpstreamError):
    """Raised when a routing provider fails."""
    code = "routing_failed"
