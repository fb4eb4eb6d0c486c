from datetime import timedelta
from unittest.mock import patch

from django.test import TestCase
from django.utils import timezone
from rest_framework.test import APIClient

from common.utils import GeoPoint
from drivers import services
from drivers.models import Driver, DriverLocation
from factories import ORIGIN, make_client, make_driver, make_ride
from rides.models import PendingOffer, Ride
from services import matching
from services.exceptions import (
	DriverNotFoundError,
	GeocodingError,
	InvalidInputError,
	NoEligibleDriverError,
	RideNotFoundError,
)


class RecordPositionTests(TestCase):
	def setUp(self):
		self.driver = make_driver(1)

	def test_fix_updates_current_position_and_history(self):
		location = services.record_position(self.driver.id, GeoPoint(-74.0, 40.7), speed=32, heading=90)

		self.driver.refresh_from_db()
		self.assertEqual(self.driver.current_point, GeoPoint(-74.0, 40.7))
		self.assertIsNotNone(self.driver.last_location_update)
		self.assertEqual(location.heading, 90)
		self.assertEqual(DriverLocation.objects.filter(driver=self.driver).count(), 1)

	def test_fix_accepts_wkt(self):
		services.record_position(self.driver.id, 'POINT(-58.3816 -34.6037)')

		self.driver.refresh_from_db()
		self.assertEqual(self.driver.current_point, GeoPoint(-58.3816, -34.6037))

	def test_invalid_coordinates_are_rejected(self):
		with self.assertRaises(InvalidInputError) as ctx:
			services.record_position(self.driver.id, GeoPoint(-74.0, 95.0))

		self.assertIn('latitude', ctx.exception.errors)
		self.assertFalse(DriverLocation.objects.exists())

	def test_unknown_or_inactive_driver(self):
		with self.assertRaises(DriverNotFoundError):
			services.record_position(9999, ORIGIN)

		self.driver.active = False
		self.driver.save()
		with self.assertRaises(DriverNotFoundError):
			services.record_position(self.driver.id, ORIGIN)

	def test_unknown_ride_reference_is_dropped(self):
		location = services.record_position(self.driver.id, ORIGIN, ride_id=9999)

		self.assertIsNone(location.ride_id)

	def test_history_is_newest_first_and_bounded(self):
		now = timezone.now()
		for minutes_ago in (30, 20, 10):
			DriverLocation.objects.create(
				driver=self.driver, latitude=40.7, longitude=-74.0,
				timestamp=now - timedelta(minutes=minutes_ago),
			)

		history = services.get_position_history(self.driver.id, limit=2)
		window = services.get_position_history(self.driver.id, start=now - timedelta(minutes=25))

		self.assertEqual(len(history), 2)
		self.assertGreater(history[0].timestamp, history[1].timestamp)
		self.assertEqual(len(window), 2)

	def test_current_position_without_fix(self):
		self.assertIsNone(services.get_current_position(self.driver.id))

	def test_status_update(self):
		services.update_driver_status(self.driver.id, Driver.BUSY)
		self.driver.refresh_from_db()
		self.assertEqual(self.driver.status, Driver.BUSY)

		with self.assertRaises(InvalidInputError):
			services.update_driver_status(self.driver.id, 'sleeping')


class ActiveRosterTests(TestCase):
	def test_roster_filters(self):
		available = make_driver(1, north_km=1.0)
		busy = make_driver(2, north_km=1.0, status=Driver.BUSY)
		make_driver(3, north_km=1.0, status=Driver.OFFLINE)
		make_driver(4, north_km=1.0, active=False)
		make_driver(5)
		offered = make_driver(6, north_km=1.0)
		PendingOffer.objects.create(ride=make_ride(make_client()), driver=offered)

		roster = list(services.get_active_drivers())

		self.assertEqual(roster, [available, busy])


class NearestDriverTests(TestCase):
	def setUp(self):
		self.client_obj = make_client()
		self.ride = make_ride(self.client_obj)

	def test_closest_driver_wins(self):
		make_driver(1, north_km=2.1)
		closest = make_driver(2, north_km=0.4)
		make_driver(3, north_km=5.0)

		match = matching.find_nearest_driver(self.ride, resolve_street=False)

		self.assertEqual(match.driver, closest)
		self.assertAlmostEqual(match.distance_km, 0.4, places=2)
		self.assertEqual(match.eta_minutes, 1)

	def test_over_capacity_driver_is_skipped(self):
		self.ride.passenger_count = 3
		self.ride.save()
		make_driver(1, north_km=0.1, max_passengers=2)
		fits = make_driver(2, north_km=0.4)

		match = matching.find_nearest_driver(self.ride, resolve_street=False)

		self.assertEqual(match.driver, fits)

	def test_child_seat_is_required_when_asked(self):
		self.ride.has_children_under_5 = True
		self.ride.save()
		make_driver(1, north_km=0.2)
		with_seat = make_driver(2, north_km=3.0, has_child_seat=True)

		match = matching.find_nearest_driver(self.ride, resolve_street=False)

		self.assertEqual(match.driver, with_seat)

	def test_only_available_drivers_are_matched(self):
		make_driver(1, north_km=0.1, status=Driver.BUSY)
		make_driver(2, north_km=0.2, status=Driver.ON_THE_WAY)
		available = make_driver(3, north_km=2.0)

		match = matching.find_nearest_driver(self.ride, resolve_street=False)

		self.assertEqual(match.driver, available)

	def test_no_eligible_driver(self):
		make_driver(1, north_km=0.1, status=Driver.OFFLINE)

		with self.assertRaises(NoEligibleDriverError):
			matching.find_nearest_driver(self.ride, resolve_street=False)

	def test_arrival_estimate(self):
		self.assertEqual(matching.estimate_arrival_minutes(5.0), 10)
		self.assertEqual(matching.estimate_arrival_minutes(2.1), 5)
		self.assertEqual(matching.estimate_arrival_minutes(0), 0)

	def test_street_name_is_resolved(self):
		make_driver(1, north_km=0.4)

		with patch('services.routing.geocoding.reverse_geocode', return_value={'street': 'Main St', 'full_address': ''}):
			match = matching.find_nearest_driver_for_ride(self.ride.id)

		self.assertEqual(match.street_name, 'Main St')
		self.assertEqual(match.as_dict()['driver']['street_name'], 'Main St')

	def test_street_lookup_failure_is_not_fatal(self):
		make_driver(1, north_km=0.4)

		with patch('services.routing.geocoding.reverse_geocode', side_effect=GeocodingError('down')):
			match = matching.find_nearest_driver_for_ride(self.ride.id)

		self.assertEqual(match.street_name, 'Location unavailable')

	def test_lookup_by_phone_uses_pending_ride(self):
		make_driver(1, north_km=0.4)

		match = matching.find_nearest_driver_for_phone(self.client_obj.phone_number, resolve_street=False)

		self.assertEqual(match.ride, self.ride)

	def test_lookup_by_phone_without_pending_ride(self):
		self.ride.status = Ride.CANCELLED
		self.ride.save()

		with self.assertRaises(RideNotFoundError):
			matching.find_nearest_driver_for_phone(self.client_obj.phone_number)


class DriverApiTests(TestCase):
	def setUp(self):
		self.api = APIClient()
		self.driver = make_driver(1)

	def test_post_location(self):
		response = self.api.post(
			f'/api/driver/{self.driver.id}/location/',
			{'latitude': 40.7, 'longitude': -74.0, 'heading': 45},
			format='json',
		)

		self.assertEqual(response.status_code, 201)
		self.assertEqual(response.data['coordinates'], 'POINT(-74.0 40.7)')

	def test_post_location_with_bad_coordinates(self):
		response = self.api.post(
			f'/api/driver/{self.driver.id}/location/',
			{'coordinates': 'POINT(-74.0 140.0)'},
			format='json',
		)

		self.assertEqual(response.status_code, 400)
		self.assertIn('coordinates', response.data)

	def test_unknown_driver_location(self):
		response = self.api.post('/api/driver/9999/location/', {'latitude': 40.7, 'longitude': -74.0}, format='json')

		self.assertEqual(response.status_code, 404)
		self.assertEqual(response.data['error'], 'driver_not_found')

	def test_current_location(self):
		services.record_position(self.driver.id, ORIGIN)

		response = self.api.get(f'/api/driver/{self.driver.id}/location/')

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['current']['coordinates'], ORIGIN.wkt)

	def test_active_roster(self):
		services.record_position(self.driver.id, ORIGIN)

		response = self.api.get('/api/driver/active/')

		self.assertEqual(response.status_code, 200)
		self.assertEqual([d['id'] for d in response.data], [self.driver.id])

	def test_status_update(self):
		response = self.api.put(f'/api/driver/{self.driver.id}/status/', {'status': 'busy'}, format='json')

		self.assertEqual(response.status_code, 200)
		self.driver.refresh_from_db()
		self.assertEqual(self.driver.status, Driver.BUSY)

	def test_start_trip_without_ride(self):
		response = self.api.post(f'/api/driver/{self.driver.id}/start-trip/')

		self.assertEqual(response.status_code, 404)
		self.assertFalse(response.data['success'])
