from unittest.mock import patch

from django.test import TestCase
from rest_framework.test import APIClient

from factories import DESTINATION, ORIGIN, make_client, make_driver, make_ride, make_zone
from rides.models import PendingOffer, Ride
from services.routing import RouteEstimate


def _geocode(address, context=None, is_origin=False):
	return ORIGIN if is_origin else DESTINATION


@patch('services.ride_management.ride_lifecycle.estimate_route', return_value=RouteEstimate(11.12, 20, 'osrm'))
@patch('services.routing.geocoding.geocode_address', side_effect=_geocode)
class RideCreationApiTests(TestCase):
	def setUp(self):
		self.api = APIClient()
		make_zone()
		self.client_obj = make_client()

	def _payload(self, **overrides):
		payload = {
			'phone_number': self.client_obj.phone_number,
			'origin': '5th Avenue 100',
			'destination': 'Broadway 200',
			'origin_latitude': ORIGIN.latitude,
			'origin_longitude': ORIGIN.longitude,
		}
		payload.update(overrides)
		return payload

	def test_create_ride(self, mock_geocode, mock_route):
		response = self.api.post('/api/rides/', self._payload(passenger_count=2), format='json')

		self.assertEqual(response.status_code, 201)
		self.assertEqual(response.data['status'], Ride.PENDING)
		self.assertEqual(response.data['origin_coordinates'], ORIGIN.wkt)
		self.assertEqual(response.data['passenger_count'], 2)
		self.assertIn('finalFare', response.data['fare'])
		self.assertEqual(mock_geocode.call_args_list[0].kwargs['context'], ORIGIN)

	def test_duplicate_pending_ride_conflicts(self, mock_geocode, mock_route):
		self.api.post('/api/rides/', self._payload(), format='json')
		response = self.api.post('/api/rides/', self._payload(), format='json')

		self.assertEqual(response.status_code, 409)
		self.assertEqual(response.data['error'], 'active_ride_exists')

	def test_unknown_client(self, mock_geocode, mock_route):
		response = self.api.post('/api/rides/', self._payload(phone_number='+19999999999'), format='json')

		self.assertEqual(response.status_code, 404)
		self.assertEqual(response.data['error'], 'client_not_found')

	def test_invalid_origin_coordinates(self, mock_geocode, mock_route):
		response = self.api.post('/api/rides/', self._payload(origin_latitude=123.0), format='json')

		self.assertEqual(response.status_code, 400)
		self.assertIn('origin_latitude', response.data)
		mock_geocode.assert_not_called()

	def test_out_of_bounds_route(self, mock_geocode, mock_route):
		mock_route.return_value = RouteEstimate(250.0, 300, 'osrm')

		response = self.api.post('/api/rides/', self._payload(), format='json')

		self.assertEqual(response.status_code, 400)
		self.assertEqual(response.data['error'], 'route_out_of_bounds')
		self.assertFalse(Ride.objects.exists())

	def test_estimate(self, mock_geocode, mock_route):
		response = self.api.post('/api/rides/estimate/', self._payload(), format='json')

		self.assertEqual(response.status_code, 200)
		self.assertTrue(response.data['success'])
		self.assertEqual(response.data['duration'], 20)
		self.assertFalse(Ride.objects.exists())


class FareApiTests(TestCase):
	def setUp(self):
		self.api = APIClient()
		make_zone()
		self.client_obj = make_client()

	def test_calculate_fare(self):
		response = self.api.post(
			'/api/rides/fares/calculate/',
			{'client_id': self.client_obj.id, 'origin_coordinates': ORIGIN.wkt, 'duration': 20},
			format='json',
		)

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['calculationType'], 'zone_minute_rate')

	def test_origin_outside_zones(self):
		response = self.api.post(
			'/api/rides/fares/calculate/',
			{'client_id': self.client_obj.id, 'origin_coordinates': 'POINT(2.35 48.85)', 'duration': 20},
			format='json',
		)

		self.assertEqual(response.status_code, 404)
		self.assertEqual(response.data['error'], 'zone_not_found')


class RideDispatchApiTests(TestCase):
	def setUp(self):
		self.api = APIClient()
		self.client_obj = make_client()
		self.ride = make_ride(self.client_obj)
		self.driver = make_driver(1, north_km=0.4)

	def test_offer_then_accept(self):
		response = self.api.post(
			'/api/rides/offers/', {'driver_id': self.driver.id, 'ride_id': self.ride.id}, format='json',
		)
		self.assertEqual(response.status_code, 201)

		response = self.api.post(
			'/api/rides/offers/accept/', {'driver_id': self.driver.id, 'ride_id': self.ride.id}, format='json',
		)
		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['ride']['status'], Ride.IN_PROGRESS)

		response = self.api.post(
			'/api/rides/offers/accept/', {'driver_id': self.driver.id, 'ride_id': self.ride.id}, format='json',
		)
		self.assertEqual(response.status_code, 404)
		self.assertEqual(response.data['error'], 'offer_not_found')

	def test_list_offers(self):
		PendingOffer.objects.create(ride=self.ride, driver=self.driver)

		response = self.api.get('/api/rides/offers/')

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data[0]['ride'], self.ride.id)

	def test_assign_driver(self):
		response = self.api.post(
			f'/api/rides/{self.ride.id}/assign-driver/', {'driver_id': self.driver.id}, format='json',
		)

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['ride']['driver']['id'], self.driver.id)

	def test_find_nearest_driver(self):
		response = self.api.get('/api/rides/find-nearest-driver/', {'ride_id': self.ride.id})

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['driver']['id'], self.driver.id)
		self.assertEqual(response.data['driver']['estimated_arrival'], 1)

	def test_find_nearest_driver_needs_a_query(self):
		response = self.api.get('/api/rides/find-nearest-driver/')

		self.assertEqual(response.status_code, 400)

	def test_cancel_and_status(self):
		response = self.api.post(f'/api/rides/{self.ride.id}/cancel/', {'reason': 'No longer needed'}, format='json')
		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['ride']['status'], Ride.CANCELLED)

		response = self.api.post(f'/api/rides/{self.ride.id}/status/', {'status': 'pending'}, format='json')
		self.assertEqual(response.status_code, 400)
		self.assertEqual(response.data['error'], 'invalid_transition')

	def test_cancel_by_phone(self):
		response = self.api.post(
			'/api/rides/cancel-by-phone/', {'phone_number': self.client_obj.phone_number}, format='json',
		)

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['ride']['id'], self.ride.id)

	def test_track(self):
		response = self.api.get(f'/api/rides/track/{self.ride.tracking_code}/')

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['ride']['client']['phone_number'], '+15****01111')

	def test_ride_detail_not_found(self):
		response = self.api.get('/api/rides/9999/')

		self.assertEqual(response.status_code, 404)
		self.assertEqual(response.data['error'], 'ride_not_found')
