from unittest.mock import patch

import redis
from django.test import TestCase
from rest_framework.test import APIClient

from factories import make_client, make_driver, make_ride
from realtime.routing import connection_registry


class HealthCheckTests(TestCase):
	def setUp(self):
		self.api = APIClient()
		make_ride(make_client())
		make_driver(1)

	@patch('app_backend.views.redis.Redis.from_url')
	def test_healthy(self, mock_from_url):
		response = self.api.get('/health/')

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['status'], 'healthy')
		self.assertEqual(response.data['dispatch']['pending_rides'], 1)
		self.assertEqual(response.data['dispatch']['available_drivers'], 1)
		self.assertFalse(response.data['providers']['whatsapp'])
		mock_from_url.return_value.ping.assert_called_once()

	@patch('app_backend.views.redis.Redis.from_url')
	def test_redis_down(self, mock_from_url):
		mock_from_url.return_value.ping.side_effect = redis.ConnectionError('refused')

		response = self.api.get('/health/')

		self.assertEqual(response.status_code, 503)
		self.assertTrue(response.data['services']['redis'].startswith('unhealthy'))

	@patch('app_backend.views.redis.Redis.from_url')
	def test_reports_connected_driver_sockets(self, mock_from_url):
		connection_registry.register(7, 'specific.abc!one')
		self.addCleanup(connection_registry.unregister, 7, 'specific.abc!one')

		response = self.api.get('/health/')

		self.assertEqual(response.data['realtime']['connected_drivers'], 1)
		self.assertEqual(response.data['realtime']['driver_ids'], [7])
