from unittest.mock import AsyncMock, MagicMock, patch

from channels.db import database_sync_to_async
from channels.routing import URLRouter
from channels.testing import WebsocketCommunicator
from django.test import SimpleTestCase, TestCase, TransactionTestCase
from django.urls import re_path

from drivers.models import Driver, DriverLocation
from factories import make_client, make_driver, make_ride
from realtime.consumers import DriverConsumer
from realtime.notifications import notify_client_event, notify_driver_event
from realtime.registry import ConnectionRegistry


class ConnectionRegistryTests(SimpleTestCase):
	def test_driver_stays_connected_while_a_socket_is_open(self):
		registry = ConnectionRegistry()
		registry.register(7, 'phone')
		registry.register(7, 'tablet')

		self.assertFalse(registry.unregister(7, 'phone'))
		self.assertTrue(registry.is_connected(7))
		self.assertEqual(registry.channels_for(7), frozenset({'tablet'}))

		self.assertTrue(registry.unregister(7, 'tablet'))
		self.assertFalse(registry.is_connected(7))
		self.assertEqual(len(registry), 0)

	def test_unregister_unknown_driver(self):
		self.assertTrue(ConnectionRegistry().unregister(1, 'nothing'))

	def test_connected_driver_ids_are_sorted(self):
		registry = ConnectionRegistry()
		for driver_id in (3, 1, 2):
			registry.register(driver_id, f'channel-{driver_id}')

		self.assertEqual(registry.connected_driver_ids(), [1, 2, 3])


class RideEventTests(TestCase):
	def setUp(self):
		self.ride = make_ride(make_client())
		self.layer = MagicMock()
		self.layer.group_send = AsyncMock()

	def test_driver_event_goes_to_driver_group(self):
		with patch('realtime.notifications.get_channel_layer', return_value=self.layer):
			sent = notify_driver_event('ride_offer', self.ride, 5, 'New ride offer')

		self.assertTrue(sent)
		group, payload = self.layer.group_send.await_args.args
		self.assertEqual(group, 'driver_5')
		self.assertEqual(payload['type'], 'ride_offer')
		self.assertEqual(payload['ride_id'], self.ride.id)
		self.assertEqual(payload['driver_id'], 5)
		self.assertEqual(payload['ride_data']['tracking_code'], self.ride.tracking_code)

	def test_client_event_goes_to_client_group(self):
		with patch('realtime.notifications.get_channel_layer', return_value=self.layer):
			notify_client_event('ride_cancelled', self.ride, 'Your ride was cancelled')

		group, payload = self.layer.group_send.await_args.args
		self.assertEqual(group, f'client_{self.ride.client_id}')
		self.assertEqual(payload['message'], 'Your ride was cancelled')

	def test_nothing_sent_without_driver(self):
		with patch('realtime.notifications.get_channel_layer', return_value=self.layer):
			self.assertFalse(notify_driver_event('ride_offer', self.ride, None))

		self.layer.group_send.assert_not_awaited()


class DriverConsumerTests(TransactionTestCase):
	def setUp(self):
		self.registry = ConnectionRegistry()
		self.application = URLRouter([
			re_path(r'ws/driver/(?P<driver_id>\d+)/$', DriverConsumer.as_asgi(registry=self.registry)),
		])

	async def _connect(self, driver_id):
		communicator = WebsocketCommunicator(self.application, f'/ws/driver/{driver_id}/')
		connected, code = await communicator.connect()
		return communicator, connected, code

	async def test_location_update_over_socket(self):
		driver = await database_sync_to_async(make_driver)(1)
		communicator, connected, _ = await self._connect(driver.id)
		self.assertTrue(connected)

		welcome = await communicator.receive_json_from()
		self.assertEqual(welcome['driver_id'], driver.id)
		self.assertTrue(self.registry.is_connected(driver.id))

		await communicator.send_json_to({'type': 'location_update', 'latitude': 40.7, 'longitude': -74.0})
		reply = await communicator.receive_json_from()
		self.assertEqual(reply['type'], 'location_recorded')
		self.assertEqual(reply['coordinates'], 'POINT(-74.0 40.7)')

		count = await database_sync_to_async(DriverLocation.objects.filter(driver_id=driver.id).count)()
		self.assertEqual(count, 1)

		await communicator.disconnect()
		self.assertFalse(self.registry.is_connected(driver.id))

	async def test_invalid_messages_get_errors(self):
		driver = await database_sync_to_async(make_driver)(1)
		communicator, _, _ = await self._connect(driver.id)
		await communicator.receive_json_from()

		await communicator.send_json_to({'type': 'location_update', 'latitude': 91, 'longitude': 0})
		reply = await communicator.receive_json_from()
		self.assertEqual(reply['type'], 'error')
		self.assertIn('latitude', reply['errors'])

		await communicator.send_json_to({'type': 'dance'})
		reply = await communicator.receive_json_from()
		self.assertEqual(reply['type'], 'error')

		await communicator.disconnect()

	async def test_status_update_over_socket(self):
		driver = await database_sync_to_async(make_driver)(1, status=Driver.OFFLINE)
		communicator, _, _ = await self._connect(driver.id)
		await communicator.receive_json_from()

		await communicator.send_json_to({'type': 'status_update', 'status': Driver.AVAILABLE})
		reply = await communicator.receive_json_from()
		self.assertEqual(reply, {'type': 'status_updated', 'status': Driver.AVAILABLE})

		await communicator.disconnect()

	async def test_unknown_driver_is_rejected(self):
		communicator, connected, code = await self._connect(9999)

		self.assertFalse(connected)
		self.assertEqual(code, 4404)
