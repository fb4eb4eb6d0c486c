"""Model builders shared by the app test suites (not shipped with the package)."""

from decimal import Decimal

from clients.models import Client
from common.utils import GeoPoint
from drivers.models import Driver
from rides.models import Ride, Zone
from services.ride_management import generate_tracking_code

ORIGIN = GeoPoint(-74.0, 40.7)
DESTINATION = GeoPoint(-74.0, 40.8)

KM_PER_DEGREE_LATITUDE = 111.19508


def square_area(center: GeoPoint = ORIGIN, half_side: float = 0.5) -> dict:
	"""GeoJSON polygon around a point."""
	lon, lat = center.longitude, center.latitude
	return {
		'type': 'Polygon',
		'coordinates': [[
			[lon - half_side, lat - half_side],
			[lon + half_side, lat - half_side],
			[lon + half_side, lat + half_side],
			[lon - half_side, lat + half_side],
			[lon - half_side, lat - half_side],
		]],
	}


def make_zone(**overrides) -> Zone:
	fields = {
		'name': 'Downtown',
		'area': square_area(),
		'rate_type': Zone.MINUTE_RATE,
		'price_per_minute': Decimal('1.30'),
		'minimum_fare': Decimal('10.00'),
		'night_rate_percentage': Decimal('20.00'),
		'weekend_rate_percentage': Decimal('10.00'),
		'commission_percentage': Decimal('15.00'),
	}
	fields.update(overrides)
	return Zone.objects.create(**fields)


def make_client(phone_number='+15550001111', **overrides) -> Client:
	fields = {'first_name': 'Ana', 'last_name': 'Lopez', 'phone_number': phone_number}
	fields.update(overrides)
	return Client.objects.create(**fields)


def make_driver(index=1, north_km=None, **overrides) -> Driver:
	"""Driver ``north_km`` kilometres due north of ORIGIN (no position if None)."""
	fields = {
		'first_name': f'Driver{index}',
		'last_name': 'Test',
		'phone_number': f'+1555100{index:04d}',
		'license_plate': f'TX-{index:04d}',
		'vehicle': 'Toyota',
		'model': 'Corolla',
		'color': 'White',
		'status': Driver.AVAILABLE,
	}
	if north_km is not None:
		fields['current_latitude'] = round(ORIGIN.latitude + north_km / KM_PER_DEGREE_LATITUDE, 6)
		fields['current_longitude'] = ORIGIN.longitude
	fields.update(overrides)
	return Driver.objects.create(**fields)


def make_ride(client, **overrides) -> Ride:
	fields = {
		'client': client,
		'origin': '5th Avenue 100',
		'destination': 'Broadway 200',
		'origin_latitude': Decimal(str(ORIGIN.latitude)),
		'origin_longitude': Decimal(str(ORIGIN.longitude)),
		'destination_latitude': Decimal(str(DESTINATION.latitude)),
		'destination_longitude': Decimal(str(DESTINATION.longitude)),
		'status': Ride.PENDING,
		'tracking_code': generate_tracking_code(),
		'distance': Decimal('11.12'),
		'duration': 23,
		'price': Decimal('30.00'),
	}
	fields.update(overrides)
	return Ride.objects.create(**fields)
