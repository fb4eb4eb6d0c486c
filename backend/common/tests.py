from django.test import SimpleTestCase
from rest_framework import serializers

from common.serializers import resolve_point
from common.utils import (
	GeoPoint,
	InvalidCoordinatesError,
	calculate_distance_km,
	format_wkt_point,
	parse_wkt_point,
	validate_coordinates,
)


class WktPointTests(SimpleTestCase):
	def test_round_trip_keeps_negative_coordinates(self):
		wkt = format_wkt_point(-58.3816, -34.6037)
		point = parse_wkt_point(wkt)

		self.assertEqual(point, GeoPoint(-58.3816, -34.6037))
		self.assertEqual(point.wkt, wkt)

	def test_longitude_comes_first(self):
		point = parse_wkt_point('POINT(-74.006 40.7128)')

		self.assertEqual(point.longitude, -74.006)
		self.assertEqual(point.latitude, 40.7128)

	def test_parse_is_lenient_with_case_and_spacing(self):
		point = parse_wkt_point('  point ( 2.35   48.85 ) ')

		self.assertEqual(point, GeoPoint(2.35, 48.85))

	def test_malformed_strings_are_rejected(self):
		for wkt in ['', 'POINT(1)', 'POINT(a b)', 'LINESTRING(0 0, 1 1)', '1 2']:
			with self.subTest(wkt=wkt):
				with self.assertRaises(InvalidCoordinatesError) as ctx:
					parse_wkt_point(wkt)
				self.assertIn('coordinates', ctx.exception.errors)

	def test_out_of_range_values_list_every_field(self):
		with self.assertRaises(InvalidCoordinatesError) as ctx:
			parse_wkt_point('POINT(200 -95)')

		self.assertEqual(set(ctx.exception.errors), {'longitude', 'latitude'})

	def test_bounds_are_inclusive(self):
		self.assertEqual(validate_coordinates(180, -90), GeoPoint(180.0, -90.0))


class HaversineTests(SimpleTestCase):
	def test_same_point_is_zero(self):
		self.assertEqual(calculate_distance_km(40.7, -74.0, 40.7, -74.0), 0)

	def test_one_degree_of_latitude(self):
		self.assertAlmostEqual(calculate_distance_km(0, 0, 1, 0), 111.195, places=2)

	def test_known_city_pair(self):
		# Paris -> London
		distance = calculate_distance_km(48.8566, 2.3522, 51.5074, -0.1278)
		self.assertAlmostEqual(distance, 343.5, delta=1)


class ResolvePointTests(SimpleTestCase):
	def test_pair_is_resolved_and_keys_consumed(self):
		attrs = {'origin_latitude': 40.7, 'origin_longitude': -74.0, 'phone': 'x'}

		point = resolve_point(attrs, 'origin_latitude', 'origin_longitude', 'origin_coordinates')

		self.assertEqual(point, GeoPoint(-74.0, 40.7))
		self.assertEqual(attrs, {'phone': 'x'})

	def test_errors_use_request_field_names(self):
		attrs = {'origin_latitude': 95, 'origin_longitude': -74.0}

		with self.assertRaises(serializers.ValidationError) as ctx:
			resolve_point(attrs, 'origin_latitude', 'origin_longitude', 'origin_coordinates')

		self.assertIn('origin_latitude', ctx.exception.detail)

	def test_optional_point_may_be_missing(self):
		self.assertIsNone(resolve_point({}, required=False))

	def test_required_point_must_be_given(self):
		with self.assertRaises(serializers.ValidationError):
			resolve_point({})
