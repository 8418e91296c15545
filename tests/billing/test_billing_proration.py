# ===============================================================================
# PRORATION ENGINE TESTS
# ===============================================================================

from datetime import date, datetime
from decimal import Decimal

from django.test import SimpleTestCase

from billing.services.proration import (
    Discount,
    calculate_full_month_amount,
    calculate_prorated_amount,
    days_in_month,
    inclusive_days_between,
    month_bounds,
    needs_proration,
    previous_period,
    reference_month_days,
)


class DateArithmeticTestCase(SimpleTestCase):
    """Month lengths and inclusive day counts"""

    def test_days_in_month_handles_leap_years(self):
        self.assertEqual(days_in_month(2024, 2), 29)
        self.assertEqual(days_in_month(2023, 2), 28)
        self.assertEqual(days_in_month(2000, 2), 29)
        self.assertEqual(days_in_month(2100, 2), 28)
        self.assertEqual(days_in_month(2024, 4), 30)
        self.assertEqual(days_in_month(2024, 12), 31)

    def test_single_day_range_counts_one(self):
        self.assertEqual(inclusive_days_between(date(2024, 3, 5), date(2024, 3, 5)), 1)

    def test_range_includes_both_endpoints(self):
        self.assertEqual(inclusive_days_between(date(2024, 1, 1), date(2024, 1, 31)), 31)
        self.assertEqual(inclusive_days_between(date(2024, 1, 28), date(2024, 2, 2)), 6)

    def test_reversed_range_is_not_positive(self):
        self.assertLessEqual(inclusive_days_between(date(2024, 1, 10), date(2024, 1, 9)), 0)

    def test_accepts_datetimes_and_strings(self):
        self.assertEqual(inclusive_days_between(datetime(2024, 1, 1, 23, 30), '2024-01-02'), 2)

    def test_month_bounds_and_previous_period(self):
        self.assertEqual(month_bounds(2024, 2), (date(2024, 2, 1), date(2024, 2, 29)))
        self.assertEqual(previous_period(1, 2025), (12, 2024))
        self.assertEqual(previous_period(7, 2024), (6, 2024))


class ReferenceMonthDaysTestCase(SimpleTestCase):
    """Proration denominator"""

    def test_same_month_uses_that_month(self):
        for month in range(1, 13):
            start = date(2024, month, 3)
            end = date(2024, month, 20)
            self.assertEqual(reference_month_days(start, end), days_in_month(2024, month))

    def test_cross_month_averages_half_up(self):
        # (31 + 29) / 2 = 30
        self.assertEqual(reference_month_days(date(2024, 1, 28), date(2024, 2, 2)), 30)
        # (31 + 30) / 2 = 30.5 rounds up to 31
        self.assertEqual(reference_month_days(date(2024, 3, 20), date(2024, 4, 10)), 31)
        # (31 + 28) / 2 = 29.5 rounds up to 30
        self.assertEqual(reference_month_days(date(2023, 1, 20), date(2023, 2, 10)), 30)

    def test_cross_year_range(self):
        self.assertEqual(reference_month_days(date(2024, 12, 20), date(2025, 1, 10)), 31)


class CalculateProratedAmountTestCase(SimpleTestCase):
    """Full pricing breakdown"""

    def test_leap_february_half_month_with_percentage_discount(self):
        result = calculate_prorated_amount(300, date(2024, 2, 1), date(2024, 2, 15), {'type': 'percentage', 'value': 10})

        self.assertEqual(result.subscription_days, 15)
        self.assertEqual(result.month_days, 29)
        self.assertEqual(result.prorated_ratio, Decimal('0.5172'))
        self.assertEqual(result.prorated_amount, Decimal('155.17'))
        self.assertEqual(result.discount_amount, Decimal('15.52'))
        self.assertEqual(result.final_amount, Decimal('139.65'))

    def test_cross_month_range(self):
        result = calculate_prorated_amount(200, '2024-01-28', '2024-02-02')

        self.assertEqual(result.subscription_days, 6)
        self.assertEqual(result.month_days, 30)
        self.assertEqual(result.prorated_ratio, Decimal('0.2000'))
        self.assertEqual(result.prorated_amount, Decimal('40.00'))
        self.assertEqual(result.discount_amount, Decimal('0.00'))
        self.assertEqual(result.final_amount, Decimal('40.00'))

    def test_full_month_bills_base_price(self):
        result = calculate_prorated_amount(Decimal('250'), date(2024, 3, 1), date(2024, 3, 31))
        self.assertEqual(result.prorated_ratio, Decimal('1.0000'))
        self.assertEqual(result.final_amount, Decimal('250.00'))

    def test_thirty_days_of_a_thirty_one_day_month_is_below_full_price(self):
        result = calculate_prorated_amount(310, date(2024, 1, 1), date(2024, 1, 30))
        self.assertLess(result.prorated_ratio, 1)
        self.assertEqual(result.prorated_amount, Decimal('300.00'))

    def test_single_day(self):
        result = calculate_prorated_amount(300, date(2024, 4, 10), date(2024, 4, 10))
        self.assertEqual(result.subscription_days, 1)
        self.assertEqual(result.prorated_amount, Decimal('10.00'))

    def test_amount_uses_full_precision_ratio(self):
        # 999 * 10/31 = 322.258; 999 * 0.3226 would be 322.28
        result = calculate_prorated_amount(999, date(2024, 1, 1), date(2024, 1, 10))
        self.assertEqual(result.prorated_ratio, Decimal('0.3226'))
        self.assertEqual(result.prorated_amount, Decimal('322.26'))

    def test_fixed_discount_is_prorated(self):
        # 15 of 30 days: half the price, half the discount
        result = calculate_prorated_amount(300, date(2024, 4, 1), date(2024, 4, 15), {'type': 'fixed', 'value': 50})
        self.assertEqual(result.prorated_amount, Decimal('150.00'))
        self.assertEqual(result.discount_amount, Decimal('25.00'))
        self.assertEqual(result.final_amount, Decimal('125.00'))

    def test_fixed_discount_is_capped_at_prorated_amount(self):
        result = calculate_prorated_amount(100, date(2024, 4, 1), date(2024, 4, 15), {'type': 'fixed', 'value': 500})
        self.assertEqual(result.discount_amount, result.prorated_amount)
        self.assertEqual(result.final_amount, Decimal('0.00'))

    def test_discount_equal_to_amount_gives_zero(self):
        result = calculate_prorated_amount(300, date(2024, 4, 1), date(2024, 4, 30), {'type': 'fixed', 'value': 300})
        self.assertEqual(result.final_amount, Decimal('0.00'))

    def test_zero_or_negative_discount_is_ignored(self):
        for value in (0, -5):
            result = calculate_prorated_amount(300, date(2024, 4, 1), date(2024, 4, 15), {'type': 'percentage', 'value': value})
            self.assertEqual(result.discount_amount, Decimal('0.00'))
            self.assertEqual(result.final_amount, result.prorated_amount)

    def test_final_amount_bounds_hold_across_discounts(self):
        discounts = [None, Discount(), Discount('percentage', Decimal('33.33')), Discount('percentage', Decimal('100')),
                     Discount('fixed', Decimal('12.5')), Discount('fixed', Decimal('10000'))]
        ranges = [(date(2024, 2, 1), date(2024, 2, 29)), (date(2024, 1, 15), date(2024, 2, 14)), (date(2023, 6, 9), date(2023, 6, 9))]
        for discount in discounts:
            for start, end in ranges:
                result = calculate_prorated_amount(Decimal('275.50'), start, end, discount)
                self.assertGreaterEqual(result.final_amount, 0)
                self.assertLessEqual(result.final_amount, result.prorated_amount)
                self.assertLessEqual(result.discount_amount, result.prorated_amount)

    def test_missing_inputs_return_zero_result(self):
        for args in ((0, date(2024, 1, 1), date(2024, 1, 31)), (300, None, date(2024, 1, 31)), (300, date(2024, 1, 1), None)):
            result = calculate_prorated_amount(*args)
            self.assertEqual(result.subscription_days, 0)
            self.assertEqual(result.month_days, 30)
            self.assertEqual(result.final_amount, Decimal('0'))

    def test_percentage_is_whole_number(self):
        result = calculate_prorated_amount(300, date(2024, 2, 1), date(2024, 2, 15))
        self.assertEqual(result.percentage, 52)

    def test_full_month_preview(self):
        preview = calculate_full_month_amount(Decimal('150'), {'type': 'percentage', 'value': 10})
        self.assertEqual(preview['discount_amount'], Decimal('15.00'))
        self.assertEqual(preview['final_amount'], Decimal('135.00'))


class NeedsProrationTestCase(SimpleTestCase):
    """Full-month threshold"""

    def test_near_full_month_does_not_prorate(self):
        # 28 of 31 days = 90.3%
        self.assertFalse(needs_proration(date(2024, 1, 1), date(2024, 1, 28)))
        self.assertFalse(needs_proration(date(2024, 1, 1), date(2024, 1, 31)))

    def test_partial_month_prorates(self):
        # 27 of 31 days = 87.1%
        self.assertTrue(needs_proration(date(2024, 1, 1), date(2024, 1, 27)))
        self.assertTrue(needs_proration(date(2024, 2, 1), date(2024, 2, 15)))

    def test_exact_threshold_counts_as_full_month(self):
        # 27 of 30 days is exactly 90%
        self.assertFalse(needs_proration(date(2024, 4, 1), date(2024, 4, 27)))

    def test_cross_month_always_prorates(self):
        self.assertTrue(needs_proration(date(2024, 1, 2), date(2024, 2, 1)))
        self.assertTrue(needs_proration(date(2024, 1, 31), date(2024, 2, 1)))

    def test_missing_dates(self):
        self.assertFalse(needs_proration(None, date(2024, 1, 31)))
