from datetime import datetime, timedelta, timezone as dt_timezone
from decimal import Decimal

from django.test import SimpleTestCase, override_settings

from rentacar import pricing


class TotalAmountTests(SimpleTestCase):
    def test_short_rental_has_no_discount(self):
        self.assertEqual(pricing.total_amount(6, Decimal("100.00")), Decimal("600.00"))

    def test_weekly_discount_from_seven_days(self):
        self.assertEqual(pricing.total_amount(7, Decimal("100.00")), Decimal("630.00"))

    def test_monthly_discount_stacks_on_weekly(self):
        self.assertEqual(pricing.total_amount(30, Decimal("100.00")), Decimal("2160.00"))

    def test_rounds_half_up_to_cents(self):
        # 7 * 33.33 * 0.9 = 209.979
        self.assertEqual(pricing.total_amount(7, "33.33"), Decimal("209.98"))


class RentalDaysTests(SimpleTestCase):
    def setUp(self):
        self.start = datetime(2024, 1, 1, 10, 0, tzinfo=dt_timezone.utc)

    def test_whole_days(self):
        self.assertEqual(pricing.rental_days(self.start, self.start + timedelta(days=3)), 3)

    def test_started_day_counts_as_full_day(self):
        self.assertEqual(pricing.rental_days(self.start, self.start + timedelta(days=2, hours=1)), 3)


class LateFeeTests(SimpleTestCase):
    def setUp(self):
        self.end = datetime(2024, 1, 10, 12, 0, tzinfo=dt_timezone.utc)

    def test_on_time_return_is_free(self):
        self.assertEqual(pricing.late_fee(self.end, self.end), Decimal("0.00"))

    def test_early_return_is_free(self):
        self.assertEqual(pricing.late_fee(self.end, self.end - timedelta(hours=5)), Decimal("0.00"))

    def test_one_day_late(self):
        self.assertEqual(pricing.late_fee(self.end, self.end + timedelta(days=1)), Decimal("50.00"))

    def test_partial_day_rounds_up(self):
        self.assertEqual(pricing.late_fee(self.end, self.end + timedelta(days=2.5)), Decimal("150.00"))

    @override_settings(RENTACAR={"LATE_FEE_PER_DAY": "75.00"})
    def test_fee_per_day_is_configurable(self):
        self.assertEqual(pricing.late_fee(self.end, self.end + timedelta(days=2)), Decimal("150.00"))
