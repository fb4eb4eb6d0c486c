from unittest.mock import MagicMock, patch

import requests
from django.test import SimpleTestCase, override_settings

from common.utils import GeoPoint, distance_between
from factories import DESTINATION, ORIGIN
from services.exceptions import GeocodingError, InvalidInputError
from services.routing import estimate_route, geocoding
from services.routing.providers import haversine_route

GOOGLE = {'GOOGLE_MAPS_API_KEY': 'test-key', 'GOOGLE_MAPS_BASE_URL': 'https://maps.example'}
OSRM = {'OSRM_BASE_URL': 'https://osrm.example'}
NOMINATIM = {'NOMINATIM_BASE_URL': 'https://nominatim.example'}


def _response(payload):
	response = MagicMock()
	response.json.return_value = payload
	response.raise_for_status.return_value = None
	return response


def _osrm_payload(meters, seconds):
	return {'code': 'Ok', 'routes': [{'distance': meters, 'duration': seconds}]}


def _google_payload(meters, seconds, in_traffic=None):
	leg = {'distance': {'value': meters}, 'duration': {'value': seconds}}
	if in_traffic is not None:
		leg['duration_in_traffic'] = {'value': in_traffic}
	return {'status': 'OK', 'routes': [{'legs': [leg]}]}


class RouteEstimateTests(SimpleTestCase):
	def test_without_providers_falls_back_to_haversine(self):
		with patch('services.routing.providers.requests.get') as mock_get:
			route = estimate_route(ORIGIN, DESTINATION)

		mock_get.assert_not_called()
		self.assertEqual(route.provider, 'haversine')
		self.assertEqual(route.distance_km, round(distance_between(ORIGIN, DESTINATION), 2))
		self.assertEqual(route.duration_minutes, 23)

	@override_settings(**OSRM)
	def test_osrm_result_is_rounded(self):
		with patch('services.routing.providers.requests.get', return_value=_response(_osrm_payload(12340, 601))):
			route = estimate_route(ORIGIN, DESTINATION)

		self.assertEqual(route.provider, 'osrm')
		self.assertEqual(route.distance_km, 12.34)
		self.assertEqual(route.duration_minutes, 11)

	@override_settings(**GOOGLE, **OSRM)
	def test_google_failure_falls_through_to_osrm(self):
		with patch('services.routing.providers.requests.get') as mock_get:
			mock_get.side_effect = [requests.Timeout('slow'), _response(_osrm_payload(5000, 600))]
			route = estimate_route(ORIGIN, DESTINATION)

		self.assertEqual(mock_get.call_count, 2)
		self.assertEqual(route.provider, 'osrm')
		self.assertEqual(route.duration_minutes, 10)

	@override_settings(**GOOGLE, **OSRM)
	def test_google_is_used_first_and_prefers_traffic_duration(self):
		with patch('services.routing.providers.requests.get') as mock_get:
			mock_get.return_value = _response(_google_payload(8000, 900, in_traffic=1260))
			route = estimate_route(ORIGIN, DESTINATION)

		self.assertEqual(mock_get.call_count, 1)
		self.assertEqual(route.provider, 'google')
		self.assertEqual(route.distance_km, 8.0)
		self.assertEqual(route.duration_minutes, 21)

	@override_settings(**GOOGLE, **OSRM)
	def test_every_provider_failing_still_returns_an_estimate(self):
		with patch('services.routing.providers.requests.get', side_effect=requests.ConnectionError('down')):
			route = estimate_route(ORIGIN, DESTINATION)

		self.assertEqual(route.provider, 'haversine')

	@override_settings(**OSRM)
	def test_empty_osrm_response_is_a_failure(self):
		with patch('services.routing.providers.requests.get', return_value=_response({'code': 'NoRoute', 'routes': []})):
			route = estimate_route(ORIGIN, DESTINATION)

		self.assertEqual(route.provider, 'haversine')

	@override_settings(DISPATCH_AVERAGE_SPEED_KMH=60)
	def test_haversine_uses_configured_speed(self):
		route = haversine_route(ORIGIN, DESTINATION)

		self.assertEqual(route.duration_minutes, 12)


@override_settings(**NOMINATIM)
class GeocodingTests(SimpleTestCase):
	def _nominatim(self, lat, lon):
		return _response([{'lat': str(lat), 'lon': str(lon), 'display_name': 'Somewhere'}])

	def test_address_resolved_by_nominatim(self):
		with patch('services.routing.geocoding.requests.get', return_value=self._nominatim(40.75, -73.99)) as mock_get:
			point = geocoding.geocode_address('Times Square', context=ORIGIN)

		self.assertEqual(point, GeoPoint(-73.99, 40.75))
		self.assertEqual(mock_get.call_args.kwargs['params']['bounded'], 1)

	def test_far_origin_match_falls_back_to_context(self):
		with patch('services.routing.geocoding.requests.get', return_value=self._nominatim(34.05, -118.24)):
			point = geocoding.geocode_address('Main Street', context=ORIGIN, is_origin=True)

		self.assertEqual(point, ORIGIN)

	def test_far_destination_match_is_rejected(self):
		with patch('services.routing.geocoding.requests.get', return_value=self._nominatim(34.05, -118.24)):
			with self.assertRaises(InvalidInputError):
				geocoding.geocode_address('Main Street', context=ORIGIN)

	def test_failed_origin_uses_context(self):
		with patch('services.routing.geocoding.requests.get', side_effect=requests.Timeout('slow')):
			point = geocoding.geocode_address('Nowhere', context=ORIGIN, is_origin=True)

		self.assertEqual(point, ORIGIN)

	def test_failed_address_without_context_raises(self):
		with patch('services.routing.geocoding.requests.get', return_value=_response([])):
			with self.assertRaises(GeocodingError):
				geocoding.geocode_address('Nowhere')

	@override_settings(**GOOGLE)
	def test_google_is_tried_before_nominatim(self):
		google = _response({'results': [{'geometry': {'location': {'lat': 40.71, 'lng': -74.01}}}]})
		with patch('services.routing.geocoding.requests.get', return_value=google) as mock_get:
			point = geocoding.geocode_address('City Hall', context=ORIGIN)

		self.assertEqual(point, GeoPoint(-74.01, 40.71))
		self.assertEqual(mock_get.call_count, 1)
		self.assertIn('bounds', mock_get.call_args.kwargs['params'])

	def test_reverse_geocode_street(self):
		payload = {'display_name': '5th Avenue, New York', 'address': {'road': '5th Avenue'}}
		with patch('services.routing.geocoding.requests.get', return_value=_response(payload)):
			address = geocoding.reverse_geocode(40.7, -74.0)

		self.assertEqual(address, {'street': '5th Avenue', 'full_address': '5th Avenue, New York'})

	def test_reverse_geocode_without_road(self):
		payload = {'display_name': 'Central Park', 'address': {'park': 'Central Park'}}
		with patch('services.routing.geocoding.requests.get', return_value=_response(payload)):
			address = geocoding.reverse_geocode(40.78, -73.96)

		self.assertEqual(address['street'], geocoding.UNKNOWN_STREET)

	def test_reverse_geocode_failure(self):
		with patch('services.routing.geocoding.requests.get', side_effect=requests.ConnectionError('down')):
			with self.assertRaises(GeocodingError):
				geocoding.reverse_geocode(40.7, -74.0)
