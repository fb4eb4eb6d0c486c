"""
Tariff engine.

Prices a ride with an ordered cascade of tariff rules. The first rule whose
predicate matches supplies the base fare; its tag is reported back as
``calculationType``:

    1. client_vip_flat_rate     - VIP client with a flat rate
    2. client_vip_minute_rate   - VIP client with a per-minute rate
    3. zone_special_client_rate - client has a special flat rate in this zone
    4. zone_flat_rate           - zone priced with a flat rate
    5. zone_minute_rate         - zone priced per minute (or rate type unset)
    6. default_per_minute       - fallback, zone priced per minute

Night and weekend surcharges only apply to the per-minute rules. The total is
then rounded to ``FARE_ROUNDING_STEP`` and the commission is reported as a
fraction of that final fare (it is not added to the client price).
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from functools import cached_property
from typing import Any, Callable, Dict, Optional

from django.conf import settings
from django.utils import timezone

from clients.models import Client, ZoneClient
from common.utils import GeoPoint, InvalidCoordinatesError, parse_wkt_point
from rides.models import Zone
from services.exceptions import ClientNotFoundError, InvalidInputError
from .zones import get_zone_for_point

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
HUNDRED = Decimal("100")

NIGHT_START_HOUR = 22
NIGHT_END_HOUR = 5


# ---------------------- Result types ----------------------

@dataclass
class FareBreakdown:
    time_cost: Decimal = Decimal("0")
    night_surcharge: Decimal = Decimal("0")
    weekend_surcharge: Decimal = Decimal("0")


@dataclass
class FareQuote:
    """Outcome of a fare calculation."""
    base_fare: Decimal
    final_fare: Decimal
    zone_id: int
    zone_name: str
    commission_percentage: Decimal
    commission_amount: Decimal
    calculation_type: str
    client_type: str
    breakdown: FareBreakdown = field(default_factory=FareBreakdown)

    def as_dict(self) -> Dict[str, Any]:
        """Wire representation of the fare calculation."""
        return {
            "baseFare": self.base_fare,
            "finalFare": self.final_fare,
            "zoneId": self.zone_id,
            "zoneName": self.zone_name,
            "commissionPercentage": self.commission_percentage,
            "commissionAmount": self.commission_amount,
            "calculationType": self.calculation_type,
            "clientType": self.client_type,
            "breakdown": {
                "timeCost": self.breakdown.time_cost,
                "nightSurcharge": self.breakdown.night_surcharge,
                "weekendSurcharge": self.breakdown.weekend_surcharge,
            },
        }


# ---------------------- Rule cascade ----------------------

@dataclass
class FareContext:
    client: Client
    zone: Zone
    duration: Decimal

    @cached_property
    def special_rate(self) -> Optional[Decimal]:
        return (
            ZoneClient.objects
            .filter(client=self.client, zone=self.zone, active=True)
            .values_list("special_flat_rate", flat=True)
            .first()
        )


@dataclass(frozen=True)
class TariffRule:
    calculation_type: str
    client_type: str
    applies: Callable[[FareContext], bool]
    rate: Callable[[FareContext], Decimal]
    per_minute: bool

    def base_fare(self, ctx: FareContext) -> Decimal:
        rate = Decimal(self.rate(ctx))
        if not self.per_minute:
            return rate
        return max(rate * ctx.duration, Decimal(ctx.zone.minimum_fare))

    def time_cost(self, ctx: FareContext) -> Decimal:
        if not self.per_minute:
            return Decimal("0")
        return Decimal(self.rate(ctx)) * ctx.duration


def _is_vip(ctx: FareContext, rate_type: str) -> bool:
    return bool(ctx.client.is_vip and ctx.client.vip_rate_type == rate_type)


TARIFF_RULES = (
    TariffRule(
        "client_vip_flat_rate", "vip_flat",
        applies=lambda ctx: _is_vip(ctx, Client.FLAT_RATE) and bool(ctx.client.flat_rate),
        rate=lambda ctx: ctx.client.flat_rate,
        per_minute=False,
    ),
    TariffRule(
        "client_vip_minute_rate", "vip_minute",
        applies=lambda ctx: _is_vip(ctx, Client.MINUTE_RATE) and bool(ctx.client.minute_rate),
        rate=lambda ctx: ctx.client.minute_rate,
        per_minute=True,
    ),
    TariffRule(
        "zone_special_client_rate", "zone_special",
        applies=lambda ctx: bool(ctx.special_rate),
        rate=lambda ctx: ctx.special_rate,
        per_minute=False,
    ),
    TariffRule(
        "zone_flat_rate", "regular_zone_flat",
        applies=lambda ctx: ctx.zone.rate_type == Zone.FLAT_RATE and bool(ctx.zone.flat_rate),
        rate=lambda ctx: ctx.zone.flat_rate,
        per_minute=False,
    ),
    TariffRule(
        "zone_minute_rate", "regular_zone_minute",
        applies=lambda ctx: ctx.zone.rate_type in (Zone.MINUTE_RATE, None, ""),
        rate=lambda ctx: ctx.zone.price_per_minute,
        per_minute=True,
    ),
    TariffRule(
        "default_per_minute", "regular_default",
        applies=lambda ctx: True,
        rate=lambda ctx: ctx.zone.price_per_minute,
        per_minute=True,
    ),
)


def select_rule(ctx: FareContext) -> TariffRule:
    """Return the first rule of the cascade that matches."""
    for rule in TARIFF_RULES:
        if rule.applies(ctx):
            return rule
    raise AssertionError("default tariff rule must always apply")


# ---------------------- Helpers ----------------------

def is_night_time(moment: datetime) -> bool:
    hour = timezone.localtime(moment).hour
    return hour >= NIGHT_START_HOUR or hour < NIGHT_END_HOUR


def is_weekend(moment: datetime) -> bool:
    return timezone.localtime(moment).weekday() >= 5


def round_fare(amount: Decimal, step=None) -> Decimal:
    """Round to the nearest multiple of ``step`` (half up); step 0 keeps cents."""
    if step is None:
        step = getattr(settings, "FARE_ROUNDING_STEP", 5)
    step = Decimal(str(step or 0))
    if step <= 0:
        return amount.quantize(CENT, rounding=ROUND_HALF_UP)
    return ((amount / step).quantize(Decimal("1"), rounding=ROUND_HALF_UP) * step).quantize(CENT)


def _commission_percentage(zone: Zone) -> Decimal:
    if zone.commission_percentage is None:
        return Decimal(str(getattr(settings, "FARE_DEFAULT_COMMISSION_PERCENTAGE", 10)))
    return Decimal(zone.commission_percentage)


# ---------------------- Public API ----------------------

def calculate_fare(
    client: Client,
    origin: GeoPoint,
    duration_minutes,
    zone: Optional[Zone] = None,
    now: Optional[datetime] = None,
) -> FareQuote:
    """
    Calculate a ride's fare with the priority cascade.

    Args:
        client: Client being charged
        origin: Pickup point, used to pick the zone when none is given
        duration_minutes: Estimated ride duration
        zone: Zone to price in (defaults to the zone containing origin)
        now: Moment used for night/weekend surcharges (defaults to now)

    Returns:
        FareQuote

    Raises:
        ZoneNotFoundError: if no active zone contains the origin
        InvalidInputError: if the duration is negative
    """
    duration = Decimal(str(duration_minutes))
    if duration < 0:
        raise InvalidInputError("Duration cannot be negative", {"duration": "must be >= 0"})

    if zone is None:
        zone = get_zone_for_point(origin)
    moment = now or timezone.now()

    ctx = FareContext(client=client, zone=zone, duration=duration)
    rule = select_rule(ctx)
    base_fare = rule.base_fare(ctx)

    breakdown = FareBreakdown()
    if rule.per_minute:
        breakdown.time_cost = rule.time_cost(ctx).quantize(CENT)
        if is_night_time(moment):
            breakdown.night_surcharge = base_fare * Decimal(zone.night_rate_percentage) / HUNDRED
        if is_weekend(moment):
            breakdown.weekend_surcharge = base_fare * Decimal(zone.weekend_rate_percentage) / HUNDRED

    total = base_fare + breakdown.night_surcharge + breakdown.weekend_surcharge
    final_fare = round_fare(total)

    commission_percentage = _commission_percentage(zone)
    commission_amount = (final_fare * commission_percentage / HUNDRED).quantize(CENT, rounding=ROUND_HALF_UP)

    breakdown.night_surcharge = breakdown.night_surcharge.quantize(CENT, rounding=ROUND_HALF_UP)
    breakdown.weekend_surcharge = breakdown.weekend_surcharge.quantize(CENT, rounding=ROUND_HALF_UP)

    logger.info(
        "Fare for client %s in zone %s (%s): base=%s final=%s duration=%s min",
        client.id, zone.name, rule.calculation_type, base_fare, final_fare, duration,
    )

    return FareQuote(
        base_fare=base_fare.quantize(CENT, rounding=ROUND_HALF_UP),
        final_fare=final_fare,
        zone_id=zone.id,
        zone_name=zone.name,
        commission_percentage=commission_percentage,
        commission_amount=commission_amount,
        calculation_type=rule.calculation_type,
        client_type=rule.client_type,
        breakdown=breakdown,
    )


def calculate_fare_for_client(client_id: int, origin_coordinates: str, duration_minutes, now=None) -> FareQuote:
    """Look up an active client and price a ride from a WKT origin."""
    client = Client.objects.filter(id=client_id, active=True).first()
    if client is None:
        raise ClientNotFoundError(f"Client {client_id} not found")
    try:
        origin = parse_wkt_point(origin_coordinates)
    except InvalidCoordinatesError as exc:
        raise InvalidInputError(str(exc), exc.errors)
    return calculate_fare(client, origin, duration_minutes, now=now)
