import threading
from unittest import skipIf
from unittest.mock import MagicMock, patch

from django.db import DatabaseError, connection
from django.test import TestCase, TransactionTestCase

from drivers.models import Driver
from drivers.services import get_active_drivers
from factories import make_client, make_driver, make_ride
from rides.models import PendingOffer, Ride
from services import matching
from services.exceptions import (
	DriverNotFoundError,
	InvalidTransitionError,
	OfferConflictError,
	OfferNotFoundError,
	RideNotFoundError,
)
from services.ride_management import RideResult


class OfferHandshakeTests(TestCase):
	def setUp(self):
		self.client_obj = make_client()
		self.ride = make_ride(self.client_obj)
		self.driver_one = make_driver(1, north_km=0.5)
		self.driver_two = make_driver(2, north_km=1.5)

	def test_offer_creates_single_pending_offer(self):
		offer = matching.offer_ride(self.driver_one.id, self.ride.id)

		self.assertEqual(offer.ride_id, self.ride.id)
		self.assertEqual(offer.driver_id, self.driver_one.id)
		self.ride.refresh_from_db()
		self.assertEqual(self.ride.status, Ride.PENDING)
		self.assertIsNone(self.ride.driver_id)

	def test_new_offer_replaces_previous_one(self):
		matching.offer_ride(self.driver_one.id, self.ride.id)
		matching.offer_ride(self.driver_two.id, self.ride.id)

		offers = PendingOffer.objects.filter(ride=self.ride)
		self.assertEqual(offers.count(), 1)
		self.assertEqual(offers.get().driver_id, self.driver_two.id)

	def test_driver_cannot_hold_two_offers(self):
		other_ride = make_ride(make_client('+15550002222'))
		matching.offer_ride(self.driver_one.id, self.ride.id)

		with self.assertRaises(OfferConflictError):
			matching.offer_ride(self.driver_one.id, other_ride.id)
		self.assertFalse(PendingOffer.objects.filter(ride=other_ride).exists())

	def test_only_pending_rides_can_be_offered(self):
		self.ride.status = Ride.IN_PROGRESS
		self.ride.save()

		with self.assertRaises(InvalidTransitionError):
			matching.offer_ride(self.driver_one.id, self.ride.id)

	def test_offer_to_unknown_driver_or_ride(self):
		with self.assertRaises(DriverNotFoundError):
			matching.offer_ride(9999, self.ride.id)
		with self.assertRaises(RideNotFoundError):
			matching.offer_ride(self.driver_one.id, 9999)

	def test_accept_consumes_offer_and_binds_driver(self):
		matching.offer_ride(self.driver_one.id, self.ride.id)

		with self.captureOnCommitCallbacks(execute=True):
			result = matching.accept_ride(self.driver_one.id, self.ride.id)

		self.driver_one.refresh_from_db()
		self.assertTrue(result.success)
		self.assertEqual(result.ride.status, Ride.IN_PROGRESS)
		self.assertEqual(result.ride.driver_id, self.driver_one.id)
		self.assertIsNotNone(result.ride.assigned_at)
		self.assertFalse(PendingOffer.objects.exists())
		self.assertEqual(self.driver_one.status, Driver.ON_THE_WAY)

	def test_second_accept_finds_no_offer(self):
		matching.offer_ride(self.driver_one.id, self.ride.id)
		matching.accept_ride(self.driver_one.id, self.ride.id)

		with self.assertRaises(OfferNotFoundError):
			matching.accept_ride(self.driver_one.id, self.ride.id)

	def test_accept_without_offer(self):
		with self.assertRaises(OfferNotFoundError):
			matching.accept_ride(self.driver_one.id, self.ride.id)
		self.ride.refresh_from_db()
		self.assertEqual(self.ride.status, Ride.PENDING)

	def test_only_offered_driver_can_accept(self):
		matching.offer_ride(self.driver_one.id, self.ride.id)

		with self.assertRaises(OfferNotFoundError):
			matching.accept_ride(self.driver_two.id, self.ride.id)
		self.assertTrue(PendingOffer.objects.filter(driver=self.driver_one).exists())

	def test_cancelled_ride_offer_cannot_be_accepted(self):
		from services import ride_management

		matching.offer_ride(self.driver_one.id, self.ride.id)
		ride_management.cancel_ride(self.ride.id)

		with self.assertRaises(OfferNotFoundError):
			matching.accept_ride(self.driver_one.id, self.ride.id)

	def test_admin_status_change_releases_offered_driver(self):
		from services import ride_management

		other_ride = make_ride(make_client('+15550002222'))
		matching.offer_ride(self.driver_one.id, self.ride.id)

		ride_management.change_status(self.ride.id, Ride.IN_PROGRESS)

		self.assertFalse(PendingOffer.objects.filter(ride=self.ride).exists())
		self.assertIn(self.driver_one.id, [driver.id for driver in get_active_drivers()])

		offer = matching.offer_ride(self.driver_one.id, other_ride.id)
		self.assertEqual(offer.ride_id, other_ride.id)

	def test_accept_survives_failing_side_effects(self):
		failing_driver = MagicMock()
		failing_driver.objects.filter.return_value.update.side_effect = DatabaseError('locked')
		matching.offer_ride(self.driver_one.id, self.ride.id)

		with patch('services.ride_management.side_effects.Driver', failing_driver), \
				patch('realtime.notifications.notify_client_event', side_effect=RuntimeError('socket down')):
			with self.captureOnCommitCallbacks(execute=True):
				result = matching.accept_ride(self.driver_one.id, self.ride.id)

		self.ride.refresh_from_db()
		self.driver_one.refresh_from_db()
		self.assertTrue(result.success)
		self.assertEqual(self.ride.status, Ride.IN_PROGRESS)
		self.assertEqual(self.ride.driver_id, self.driver_one.id)
		self.assertFalse(PendingOffer.objects.exists())
		self.assertEqual(self.driver_one.status, Driver.AVAILABLE)

	def test_list_pending_offers(self):
		matching.offer_ride(self.driver_one.id, self.ride.id)

		offers = matching.list_pending_offers()

		self.assertEqual([(o.ride_id, o.driver_id) for o in offers], [(self.ride.id, self.driver_one.id)])


class AssignDriverTests(TestCase):
	def setUp(self):
		self.client_obj = make_client()
		self.driver_one = make_driver(1, north_km=0.5)
		self.driver_two = make_driver(2, north_km=1.5)

	def test_assign_pending_ride_offers_it(self):
		ride = make_ride(self.client_obj)

		with patch('rides.tasks.notify_driver_assignment_task') as mock_task:
			with self.captureOnCommitCallbacks(execute=True):
				result = matching.assign_driver(ride.id, self.driver_one.id)

		self.assertEqual(result.ride.status, Ride.PENDING)
		self.assertEqual(result.ride.driver_id, self.driver_one.id)
		self.assertTrue(PendingOffer.objects.filter(ride=ride, driver=self.driver_one).exists())
		mock_task.delay.assert_called_once_with(ride.id, self.driver_one.id)

	def test_reassigning_in_progress_ride_demotes_it(self):
		ride = make_ride(self.client_obj, driver=self.driver_one, status=Ride.IN_PROGRESS)
		Driver.objects.filter(id=self.driver_one.id).update(status=Driver.ON_THE_WAY)

		result = matching.assign_driver(ride.id, self.driver_two.id)

		self.driver_one.refresh_from_db()
		self.assertEqual(result.ride.status, Ride.PENDING)
		self.assertEqual(result.ride.driver_id, self.driver_two.id)
		self.assertEqual(self.driver_one.status, Driver.AVAILABLE)

		accepted = matching.accept_ride(self.driver_two.id, ride.id)
		self.assertEqual(accepted.ride.status, Ride.IN_PROGRESS)

	def test_assign_replaces_outstanding_offer(self):
		ride = make_ride(self.client_obj)
		matching.offer_ride(self.driver_one.id, ride.id)

		matching.assign_driver(ride.id, self.driver_two.id)

		self.assertEqual(PendingOffer.objects.get(ride=ride).driver_id, self.driver_two.id)

	def test_assign_driver_holding_other_offer(self):
		ride = make_ride(self.client_obj)
		other_ride = make_ride(make_client('+15550002222'))
		matching.offer_ride(self.driver_one.id, other_ride.id)

		with self.assertRaises(OfferConflictError):
			matching.assign_driver(ride.id, self.driver_one.id)

		ride.refresh_from_db()
		self.assertIsNone(ride.driver_id)

	def test_assign_finished_ride(self):
		ride = make_ride(self.client_obj, status=Ride.COMPLETED)

		with self.assertRaises(InvalidTransitionError):
			matching.assign_driver(ride.id, self.driver_one.id)

	def test_queue_failure_does_not_undo_assignment(self):
		ride = make_ride(self.client_obj)

		with patch('rides.tasks.notify_driver_assignment_task') as mock_task:
			mock_task.delay.side_effect = RuntimeError('broker down')
			with self.captureOnCommitCallbacks(execute=True):
				result = matching.assign_driver(ride.id, self.driver_one.id)

		ride.refresh_from_db()
		self.assertTrue(result.success)
		self.assertEqual(ride.driver_id, self.driver_one.id)
		self.assertTrue(PendingOffer.objects.filter(ride=ride, driver=self.driver_one).exists())


@skipIf(connection.vendor == 'sqlite', 'row locks need a server database')
class ConcurrentAcceptTests(TransactionTestCase):
	def test_only_one_of_two_concurrent_accepts_wins(self):
		ride = make_ride(make_client())
		driver = make_driver(1, north_km=0.5)
		matching.offer_ride(driver.id, ride.id)

		barrier = threading.Barrier(2)
		outcomes = []

		def accept():
			barrier.wait()
			try:
				outcomes.append(matching.accept_ride(driver.id, ride.id))
			except OfferNotFoundError as exc:
				outcomes.append(exc)
			finally:
				connection.close()

		threads = [threading.Thread(target=accept) for _ in range(2)]
		for thread in threads:
			thread.start()
		for thread in threads:
			thread.join(timeout=10)

		self.assertEqual(len(outcomes), 2)
		self.assertEqual(sum(isinstance(o, RideResult) for o in outcomes), 1)
		self.assertEqual(sum(isinstance(o, OfferNotFoundError) for o in outcomes), 1)

		ride.refresh_from_db()
		self.assertEqual(ride.status, Ride.IN_PROGRESS)
		self.assertEqual(ride.driver_id, driver.id)
		self.assertFalse(PendingOffer.objects.exists())
