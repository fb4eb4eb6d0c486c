from datetime import datetime, timezone as dt_timezone
from decimal import Decimal

from django.test import TestCase, override_settings

from clients.models import Client, ZoneClient
from common.utils import GeoPoint
from factories import ORIGIN, make_client, make_zone
from services.exceptions import ClientNotFoundError, InvalidInputError, ZoneNotFoundError
from services.pricing import calculate_fare, calculate_fare_for_client, round_fare
from services.pricing.tariff import is_night_time, is_weekend

# 2026-10-14 is a Wednesday, 2026-10-17 a Saturday
WEEKDAY_NOON = datetime(2026, 10, 14, 12, 0, tzinfo=dt_timezone.utc)
WEEKDAY_NIGHT = datetime(2026, 10, 14, 23, 0, tzinfo=dt_timezone.utc)
SATURDAY_NOON = datetime(2026, 10, 17, 12, 0, tzinfo=dt_timezone.utc)
SATURDAY_NIGHT = datetime(2026, 10, 17, 23, 0, tzinfo=dt_timezone.utc)


class TariffCascadeTests(TestCase):
	def setUp(self):
		self.zone = make_zone()
		self.client_obj = make_client()

	def test_zone_minute_rate(self):
		quote = calculate_fare(self.client_obj, ORIGIN, 20, now=WEEKDAY_NOON)

		self.assertEqual(quote.calculation_type, 'zone_minute_rate')
		self.assertEqual(quote.client_type, 'regular_zone_minute')
		self.assertEqual(quote.base_fare, Decimal('26.00'))
		self.assertEqual(quote.breakdown.time_cost, Decimal('26.00'))
		self.assertEqual(quote.final_fare, Decimal('25.00'))
		self.assertEqual(quote.zone_id, self.zone.id)

	def test_minimum_fare_applies_to_short_rides(self):
		quote = calculate_fare(self.client_obj, ORIGIN, 5, now=WEEKDAY_NOON)

		self.assertEqual(quote.breakdown.time_cost, Decimal('6.50'))
		self.assertEqual(quote.base_fare, Decimal('10.00'))
		self.assertEqual(quote.final_fare, Decimal('10.00'))

	def test_night_surcharge(self):
		quote = calculate_fare(self.client_obj, ORIGIN, 20, now=WEEKDAY_NIGHT)

		self.assertEqual(quote.breakdown.night_surcharge, Decimal('5.20'))
		self.assertEqual(quote.breakdown.weekend_surcharge, Decimal('0'))
		self.assertEqual(quote.final_fare, Decimal('30.00'))

	def test_weekend_surcharge(self):
		quote = calculate_fare(self.client_obj, ORIGIN, 20, now=SATURDAY_NOON)

		self.assertEqual(quote.breakdown.night_surcharge, Decimal('0'))
		self.assertEqual(quote.breakdown.weekend_surcharge, Decimal('2.60'))
		self.assertEqual(quote.final_fare, Decimal('30.00'))

	def test_night_and_weekend_surcharges_stack(self):
		quote = calculate_fare(self.client_obj, ORIGIN, 20, now=SATURDAY_NIGHT)

		self.assertEqual(quote.final_fare, Decimal('35.00'))

	def test_vip_flat_rate_wins_and_has_no_surcharges(self):
		vip = make_client(
			'+15550002222', is_vip=True, vip_rate_type=Client.FLAT_RATE, flat_rate=Decimal('42.50'),
		)
		ZoneClient.objects.create(zone=self.zone, client=vip, special_flat_rate=Decimal('33.00'))

		quote = calculate_fare(vip, ORIGIN, 90, now=SATURDAY_NIGHT)

		self.assertEqual(quote.calculation_type, 'client_vip_flat_rate')
		self.assertEqual(quote.client_type, 'vip_flat')
		self.assertEqual(quote.base_fare, Decimal('42.50'))
		self.assertEqual(quote.breakdown.night_surcharge, Decimal('0'))
		self.assertEqual(quote.breakdown.weekend_surcharge, Decimal('0'))
		self.assertEqual(quote.final_fare, Decimal('45.00'))

	def test_vip_minute_rate(self):
		vip = make_client(
			'+15550003333', is_vip=True, vip_rate_type=Client.MINUTE_RATE, minute_rate=Decimal('2.00'),
		)

		quote = calculate_fare(vip, ORIGIN, 20, now=WEEKDAY_NOON)

		self.assertEqual(quote.calculation_type, 'client_vip_minute_rate')
		self.assertEqual(quote.final_fare, Decimal('40.00'))

	def test_vip_without_rate_falls_through_to_zone(self):
		vip = make_client('+15550004444', is_vip=True, vip_rate_type=Client.FLAT_RATE)

		quote = calculate_fare(vip, ORIGIN, 20, now=WEEKDAY_NOON)

		self.assertEqual(quote.calculation_type, 'zone_minute_rate')

	def test_zone_special_client_rate(self):
		ZoneClient.objects.create(zone=self.zone, client=self.client_obj, special_flat_rate=Decimal('33.00'))

		quote = calculate_fare(self.client_obj, ORIGIN, 20, now=SATURDAY_NIGHT)

		self.assertEqual(quote.calculation_type, 'zone_special_client_rate')
		self.assertEqual(quote.base_fare, Decimal('33.00'))
		self.assertEqual(quote.final_fare, Decimal('35.00'))

	def test_inactive_special_rate_is_ignored(self):
		ZoneClient.objects.create(
			zone=self.zone, client=self.client_obj, special_flat_rate=Decimal('33.00'), active=False,
		)

		quote = calculate_fare(self.client_obj, ORIGIN, 20, now=WEEKDAY_NOON)

		self.assertEqual(quote.calculation_type, 'zone_minute_rate')

	def test_zone_flat_rate(self):
		self.zone.rate_type = self.zone.FLAT_RATE
		self.zone.flat_rate = Decimal('18.00')
		self.zone.save()

		quote = calculate_fare(self.client_obj, ORIGIN, 20, now=WEEKDAY_NIGHT)

		self.assertEqual(quote.calculation_type, 'zone_flat_rate')
		self.assertEqual(quote.breakdown.night_surcharge, Decimal('0'))
		self.assertEqual(quote.final_fare, Decimal('20.00'))

	def test_flat_zone_without_rate_uses_default_per_minute(self):
		self.zone.rate_type = self.zone.FLAT_RATE
		self.zone.save()

		quote = calculate_fare(self.client_obj, ORIGIN, 20, now=WEEKDAY_NOON)

		self.assertEqual(quote.calculation_type, 'default_per_minute')
		self.assertEqual(quote.client_type, 'regular_default')
		self.assertEqual(quote.final_fare, Decimal('25.00'))

	def test_commission_is_a_share_of_the_final_fare(self):
		quote = calculate_fare(self.client_obj, ORIGIN, 20, now=WEEKDAY_NOON)

		self.assertEqual(quote.commission_percentage, Decimal('15.00'))
		self.assertEqual(quote.commission_amount, Decimal('3.75'))

	def test_missing_commission_uses_default(self):
		self.zone.commission_percentage = None
		self.zone.save()

		quote = calculate_fare(self.client_obj, ORIGIN, 20, now=WEEKDAY_NOON)

		self.assertEqual(quote.commission_percentage, Decimal('10'))
		self.assertEqual(quote.commission_amount, Decimal('2.50'))

	def test_final_fare_is_always_a_multiple_of_five(self):
		for duration in [0, 1, 7, 13, 20, 37, 59, 61, 120]:
			for moment in [WEEKDAY_NOON, WEEKDAY_NIGHT, SATURDAY_NOON, SATURDAY_NIGHT]:
				with self.subTest(duration=duration, moment=moment):
					quote = calculate_fare(self.client_obj, ORIGIN, duration, now=moment)
					self.assertEqual(quote.final_fare % 5, 0)
					self.assertGreaterEqual(quote.base_fare, Decimal('10.00'))

	@override_settings(FARE_ROUNDING_STEP=0)
	def test_rounding_can_be_disabled(self):
		quote = calculate_fare(self.client_obj, ORIGIN, 20, now=WEEKDAY_NOON)

		self.assertEqual(quote.final_fare, Decimal('26.00'))

	def test_negative_duration_is_rejected(self):
		with self.assertRaises(InvalidInputError):
			calculate_fare(self.client_obj, ORIGIN, -1, now=WEEKDAY_NOON)

	def test_origin_outside_every_zone(self):
		with self.assertRaises(ZoneNotFoundError):
			calculate_fare(self.client_obj, GeoPoint(2.35, 48.85), 20, now=WEEKDAY_NOON)

	def test_inactive_zone_is_not_used(self):
		self.zone.active = False
		self.zone.save()

		with self.assertRaises(ZoneNotFoundError):
			calculate_fare(self.client_obj, ORIGIN, 20, now=WEEKDAY_NOON)

	def test_wire_format(self):
		data = calculate_fare(self.client_obj, ORIGIN, 20, now=WEEKDAY_NOON).as_dict()

		self.assertEqual(data['calculationType'], 'zone_minute_rate')
		self.assertEqual(data['zoneName'], 'Downtown')
		self.assertEqual(set(data['breakdown']), {'timeCost', 'nightSurcharge', 'weekendSurcharge'})


class FareForClientTests(TestCase):
	def setUp(self):
		make_zone()
		self.client_obj = make_client()

	def test_prices_from_wkt_origin(self):
		quote = calculate_fare_for_client(self.client_obj.id, ORIGIN.wkt, 20, now=WEEKDAY_NOON)

		self.assertEqual(quote.final_fare, Decimal('25.00'))

	def test_unknown_client(self):
		with self.assertRaises(ClientNotFoundError):
			calculate_fare_for_client(9999, ORIGIN.wkt, 20)

	def test_malformed_origin(self):
		with self.assertRaises(InvalidInputError):
			calculate_fare_for_client(self.client_obj.id, 'POINT(-74.0)', 20)


class FareHelperTests(TestCase):
	def test_round_fare_half_up(self):
		self.assertEqual(round_fare(Decimal('32.49'), 5), Decimal('30.00'))
		self.assertEqual(round_fare(Decimal('32.50'), 5), Decimal('35.00'))
		self.assertEqual(round_fare(Decimal('32.499'), 0), Decimal('32.50'))

	def test_night_window(self):
		self.assertTrue(is_night_time(datetime(2026, 10, 14, 22, 0, tzinfo=dt_timezone.utc)))
		self.assertTrue(is_night_time(datetime(2026, 10, 14, 4, 59, tzinfo=dt_timezone.utc)))
		self.assertFalse(is_night_time(datetime(2026, 10, 14, 5, 0, tzinfo=dt_timezone.utc)))
		self.assertFalse(is_night_time(WEEKDAY_NOON))

	def test_weekend(self):
		self.assertTrue(is_weekend(SATURDAY_NOON))
		self.assertFalse(is_weekend(WEEKDAY_NOON))
