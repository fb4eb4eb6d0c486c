from datetime import datetime, timedelta, timezone as dt_timezone
from decimal import Decimal
from unittest.mock import MagicMock, patch

from django.db import DatabaseError
from django.test import TestCase
from django.utils import timezone

from clients.models import ChatHistory
from common.utils import GeoPoint
from drivers.models import Driver
from factories import DESTINATION, ORIGIN, make_client, make_driver, make_ride, make_zone
from rides.models import PendingOffer, Ride
from services import ride_management
from services.exceptions import (
	ActiveRideExistsError,
	ClientNotFoundError,
	InvalidInputError,
	InvalidTransitionError,
	RideNotFoundError,
	RouteOutOfBoundsError,
	ZoneNotFoundError,
)
from services.notifications import session_id_for_phone
from services.ride_management.state_machine import TRANSITIONS, validate_transition
from services.routing import RouteEstimate

WEEKDAY_NOON = datetime(2026, 10, 14, 12, 0, tzinfo=dt_timezone.utc)


def _geocode(address, context=None, is_origin=False):
	return ORIGIN if is_origin else DESTINATION


class RideCreationTests(TestCase):
	def setUp(self):
		make_zone()
		self.client_obj = make_client()

		geocode = patch('services.routing.geocoding.geocode_address', side_effect=_geocode)
		self.mock_geocode = geocode.start()
		self.addCleanup(geocode.stop)

		route = patch(
			'services.ride_management.ride_lifecycle.estimate_route',
			return_value=RouteEstimate(11.12, 20, 'osrm'),
		)
		self.mock_route = route.start()
		self.addCleanup(route.stop)

	def _create(self, **kwargs):
		params = {
			'phone_number': self.client_obj.phone_number,
			'origin': '5th Avenue 100',
			'destination': 'Broadway 200',
			'now': WEEKDAY_NOON,
		}
		params.update(kwargs)
		return ride_management.create_ride(**params)

	def test_create_ride_persists_priced_pending_ride(self):
		result = self._create(passenger_count=3, has_children_under_5=True)
		ride = Ride.objects.get(id=result.ride.id)

		self.assertTrue(result.success)
		self.assertEqual(ride.status, Ride.PENDING)
		self.assertIsNone(ride.driver)
		self.assertEqual(ride.price, Decimal('25.00'))
		self.assertEqual(ride.commission_amount, Decimal('3.75'))
		self.assertEqual(ride.distance, Decimal('11.12'))
		self.assertEqual(ride.duration, 20)
		self.assertEqual(ride.passenger_count, 3)
		self.assertTrue(ride.has_children_under_5)
		self.assertEqual(ride.origin_point, ORIGIN)
		self.assertEqual(ride.destination_point, DESTINATION)
		self.assertEqual(result.extra['fare']['calculationType'], 'zone_minute_rate')

	def test_tracking_code_format(self):
		code = self._create().ride.tracking_code

		self.assertEqual(len(code), 8)
		self.assertTrue(code.isalnum())
		self.assertEqual(code, code.upper())

	def test_destination_geocoding_uses_resolved_origin(self):
		self._create(origin_point=ORIGIN)

		origin_call, destination_call = self.mock_geocode.call_args_list
		self.assertEqual(origin_call.kwargs, {'context': ORIGIN, 'is_origin': True})
		self.assertEqual(destination_call.kwargs, {'context': ORIGIN})

	def test_whatsapp_suffix_is_ignored(self):
		result = self._create(phone_number=f'{self.client_obj.phone_number}@s.whatsapp.net')

		self.assertEqual(result.ride.client_id, self.client_obj.id)

	def test_second_pending_ride_is_rejected(self):
		self._create()

		with self.assertRaises(ActiveRideExistsError):
			self._create()
		self.assertEqual(Ride.objects.count(), 1)

	def test_new_ride_allowed_after_cancellation(self):
		first = self._create().ride
		ride_management.cancel_ride(first.id)

		second = self._create().ride

		self.assertNotEqual(first.id, second.id)
		self.assertEqual(Ride.objects.filter(status=Ride.PENDING).count(), 1)

	def test_unknown_client(self):
		with self.assertRaises(ClientNotFoundError):
			self._create(phone_number='+19999999999')

	def test_inactive_client(self):
		self.client_obj.active = False
		self.client_obj.save()

		with self.assertRaises(ClientNotFoundError):
			self._create()

	def test_too_long_route_is_rejected_without_persisting(self):
		self.mock_route.return_value = RouteEstimate(150.0, 140, 'osrm')

		with self.assertRaises(RouteOutOfBoundsError) as ctx:
			self._create()

		self.assertIn('distance', ctx.exception.errors)
		self.assertEqual(Ride.objects.count(), 0)

	def test_too_slow_route_is_rejected(self):
		self.mock_route.return_value = RouteEstimate(90.0, 200, 'osrm')

		with self.assertRaises(RouteOutOfBoundsError) as ctx:
			self._create()

		self.assertIn('duration', ctx.exception.errors)
		self.assertEqual(Ride.objects.count(), 0)

	def test_origin_outside_zones(self):
		self.mock_geocode.side_effect = None
		self.mock_geocode.return_value = GeoPoint(2.35, 48.85)

		with self.assertRaises(ZoneNotFoundError):
			self._create()
		self.assertEqual(Ride.objects.count(), 0)

	def test_estimate_does_not_persist(self):
		quote = ride_management.estimate_fare(
			self.client_obj.phone_number, '5th Avenue 100', 'Broadway 200', now=WEEKDAY_NOON,
		)

		self.assertEqual(quote.as_dict()['fare']['finalFare'], Decimal('25.00'))
		self.assertEqual(quote.as_dict()['route_provider'], 'osrm')
		self.assertEqual(Ride.objects.count(), 0)


class RideTransitionTests(TestCase):
	def setUp(self):
		self.client_obj = make_client()
		self.driver = make_driver(1, north_km=1.0, status=Driver.ON_THE_WAY)

	def test_terminal_states_have_no_exit(self):
		for terminal in Ride.TERMINAL_STATUSES:
			for target in TRANSITIONS:
				with self.subTest(current=terminal, target=target):
					with self.assertRaises(InvalidTransitionError):
						validate_transition(terminal, target)

	def test_unknown_status_is_invalid_input(self):
		with self.assertRaises(InvalidInputError):
			validate_transition(Ride.PENDING, 'teleported')

	def test_start_and_complete_trip(self):
		ride = make_ride(self.client_obj, driver=self.driver, status=Ride.IN_PROGRESS)
		ChatHistory.objects.create(session_id=session_id_for_phone(self.client_obj.phone_number), message={'text': 'hi'})

		started = ride_management.start_trip(self.driver.id)
		self.assertEqual(started.ride.status, Ride.ON_THE_WAY)
		self.assertIsNotNone(started.ride.start_date)

		with patch('services.notifications.send_text', return_value=True) as mock_send:
			with self.captureOnCommitCallbacks(execute=True):
				completed = ride_management.complete_trip(self.driver.id)

		ride.refresh_from_db()
		self.driver.refresh_from_db()
		self.assertEqual(completed.ride.status, Ride.COMPLETED)
		self.assertEqual(ride.status, Ride.COMPLETED)
		self.assertIsNotNone(ride.end_date)
		self.assertEqual(self.driver.status, Driver.AVAILABLE)
		mock_send.assert_called_once()
		self.assertEqual(mock_send.call_args.args[0], self.client_obj.phone_number)
		self.assertFalse(ChatHistory.objects.exists())

	def test_driver_status_failure_does_not_undo_completion(self):
		ride = make_ride(self.client_obj, driver=self.driver, status=Ride.ON_THE_WAY)
		failing_driver = MagicMock()
		failing_driver.objects.filter.return_value.update.side_effect = DatabaseError('locked')

		with patch('services.ride_management.side_effects.Driver', failing_driver), \
				patch('services.notifications.send_text', return_value=True):
			with self.captureOnCommitCallbacks(execute=True):
				result = ride_management.complete_trip(self.driver.id)

		ride.refresh_from_db()
		self.driver.refresh_from_db()
		self.assertTrue(result.success)
		self.assertEqual(ride.status, Ride.COMPLETED)
		self.assertIsNotNone(ride.end_date)
		self.assertEqual(self.driver.status, Driver.ON_THE_WAY)

	def test_queue_failure_does_not_undo_completion(self):
		ride = make_ride(self.client_obj, driver=self.driver, status=Ride.ON_THE_WAY)

		with patch('rides.tasks.notify_client_trip_completed_task') as mock_notify, \
				patch('rides.tasks.clear_chat_history_task') as mock_clear:
			mock_notify.delay.side_effect = RuntimeError('broker down')
			mock_clear.delay.side_effect = RuntimeError('broker down')
			with self.captureOnCommitCallbacks(execute=True):
				result = ride_management.complete_trip(self.driver.id)

		ride.refresh_from_db()
		self.driver.refresh_from_db()
		self.assertTrue(result.success)
		self.assertEqual(ride.status, Ride.COMPLETED)
		self.assertEqual(self.driver.status, Driver.AVAILABLE)

	def test_start_trip_without_ride(self):
		with self.assertRaises(RideNotFoundError):
			ride_management.start_trip(self.driver.id)

	def test_complete_requires_started_trip(self):
		make_ride(self.client_obj, driver=self.driver, status=Ride.IN_PROGRESS)

		with self.assertRaises(RideNotFoundError):
			ride_management.complete_trip(self.driver.id)

	def test_cancel_in_progress_ride_frees_and_notifies_driver(self):
		ride = make_ride(self.client_obj, driver=self.driver, status=Ride.IN_PROGRESS)

		with patch('rides.tasks.notify_driver_cancellation_task') as mock_task:
			with self.captureOnCommitCallbacks(execute=True):
				result = ride_management.cancel_ride(ride.id, 'Changed plans')

		self.driver.refresh_from_db()
		self.assertEqual(result.ride.status, Ride.CANCELLED)
		self.assertEqual(result.ride.cancellation_reason, 'Changed plans')
		self.assertIsNotNone(result.ride.cancelled_at)
		self.assertEqual(self.driver.status, Driver.AVAILABLE)
		mock_task.delay.assert_called_once_with(ride.id, self.driver.id)

	def test_cancel_pending_ride_does_not_message_driver(self):
		ride = make_ride(self.client_obj, driver=self.driver)
		PendingOffer.objects.create(ride=ride, driver=self.driver)

		with patch('rides.tasks.notify_driver_cancellation_task') as mock_task:
			with self.captureOnCommitCallbacks(execute=True):
				ride_management.cancel_ride(ride.id)

		self.driver.refresh_from_db()
		self.assertEqual(self.driver.status, Driver.AVAILABLE)
		self.assertFalse(PendingOffer.objects.exists())
		mock_task.delay.assert_not_called()

	def test_cancel_twice_is_rejected(self):
		ride = make_ride(self.client_obj)
		ride_management.cancel_ride(ride.id)

		with self.assertRaises(InvalidTransitionError):
			ride_management.cancel_ride(ride.id)

	def test_cancel_completed_ride_is_rejected(self):
		ride = make_ride(self.client_obj, status=Ride.COMPLETED, end_date=timezone.now())

		with self.assertRaises(InvalidTransitionError):
			ride_management.cancel_ride(ride.id)

	def test_failing_side_effect_does_not_undo_cancellation(self):
		ride = make_ride(self.client_obj)

		with patch('realtime.notifications.notify_client_event', side_effect=RuntimeError('socket down')):
			with self.captureOnCommitCallbacks(execute=True):
				result = ride_management.cancel_ride(ride.id)

		ride.refresh_from_db()
		self.assertTrue(result.success)
		self.assertEqual(ride.status, Ride.CANCELLED)

	def test_cancel_by_phone(self):
		ride = make_ride(self.client_obj)

		result = ride_management.cancel_ride_for_phone(f'{self.client_obj.phone_number}@s.whatsapp.net')

		self.assertEqual(result.ride.id, ride.id)
		self.assertEqual(result.ride.status, Ride.CANCELLED)

	def test_cancel_by_phone_without_active_ride(self):
		make_ride(self.client_obj, status=Ride.COMPLETED)

		with self.assertRaises(RideNotFoundError):
			ride_management.cancel_ride_for_phone(self.client_obj.phone_number)

	def test_change_status_stamps_and_frees_driver(self):
		ride = make_ride(self.client_obj, driver=self.driver)

		result = ride_management.change_status(ride.id, Ride.IN_PROGRESS)
		self.assertIsNotNone(result.ride.assigned_at)

		result = ride_management.change_status(ride.id, Ride.COMPLETED)
		self.driver.refresh_from_db()
		self.assertEqual(result.ride.status, Ride.COMPLETED)
		self.assertIsNotNone(result.ride.end_date)
		self.assertEqual(self.driver.status, Driver.AVAILABLE)

	def test_change_status_rejects_skipping_acceptance(self):
		ride = make_ride(self.client_obj)

		with self.assertRaises(InvalidTransitionError):
			ride_management.change_status(ride.id, Ride.ON_THE_WAY)
		ride.refresh_from_db()
		self.assertEqual(ride.status, Ride.PENDING)

	def test_unknown_ride(self):
		with self.assertRaises(RideNotFoundError):
			ride_management.change_status(9999, Ride.CANCELLED)


class RideTrackingTests(TestCase):
	def setUp(self):
		self.client_obj = make_client('+15550001111')
		self.driver = make_driver(1, north_km=0.5, phone_number='+15557654321')

	def test_contact_details_are_masked(self):
		ride = make_ride(self.client_obj, driver=self.driver, status=Ride.IN_PROGRESS)

		info = ride_management.get_public_tracking_info(ride.tracking_code.lower())

		self.assertTrue(info['is_active'])
		self.assertEqual(info['ride']['client']['phone_number'], '+15****01111')
		self.assertEqual(info['driver']['phone_number'], '+15****54321')
		self.assertIsNotNone(info['driver']['current_location'])
		self.assertNotIn('last_name', info['ride']['client'])

	def test_recently_finished_ride_is_visible_without_location(self):
		now = timezone.now()
		ride = make_ride(
			self.client_obj, driver=self.driver, status=Ride.COMPLETED, end_date=now - timedelta(hours=1),
		)

		info = ride_management.get_public_tracking_info(ride.tracking_code, now=now)

		self.assertFalse(info['is_active'])
		self.assertIsNone(info['driver']['current_location'])

	def test_old_finished_ride_is_hidden(self):
		now = timezone.now()
		ride = make_ride(self.client_obj, status=Ride.CANCELLED, cancelled_at=now - timedelta(hours=13))

		with self.assertRaises(RideNotFoundError):
			ride_management.get_public_tracking_info(ride.tracking_code, now=now)

	def test_unknown_code(self):
		with self.assertRaises(RideNotFoundError):
			ride_management.get_public_tracking_info('NOPE0000')

	def test_mask_phone(self):
		self.assertEqual(ride_management.mask_phone(None), 'N/A')
		self.assertEqual(ride_management.mask_phone('5551234567'), '555****567')
