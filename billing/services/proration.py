"""
Prorated billing arithmetic.

Turns a monthly plan price and an inclusive date range into the amounts that
get written onto a subscription's pricing block and its derived payment.
Everything here is a pure function of its arguments; money is handled as
``Decimal`` and rounded half-up to cents.
"""
import calendar
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP

from django.conf import settings

CENTS = Decimal('0.01')
RATIO_PLACES = Decimal('0.0001')

PERCENTAGE = 'percentage'
FIXED = 'fixed'

DISCOUNT_TYPE_CHOICES = [
    (PERCENTAGE, 'Percentage'),
    (FIXED, 'Fixed Amount'),
]


def to_decimal(value):
    if value is None or value == '':
        return Decimal('0')
    if isinstance(value, Decimal):
        return value
    # str() keeps floats like 0.1 from dragging binary noise into the amount
    return Decimal(str(value))


def round_money(value):
    return to_decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def to_date(value):
    """Normalize a date-like value (date, datetime or ISO string) to a calendar date."""
    if not value:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


# =============================================================================
# DATE ARITHMETIC
# =============================================================================

def days_in_month(year, month):
    return calendar.monthrange(year, month)[1]


def inclusive_days_between(start, end):
    """
    Count the days in [start, end], both endpoints included.

    A single-day range is 1. When end precedes start the result is zero or
    negative and callers treat it as bad input.
    """
    return (to_date(end) - to_date(start)).days + 1


def month_bounds(year, month):
    """First and last calendar day of a month."""
    return date(year, month, 1), date(year, month, days_in_month(year, month))


def previous_period(month, year):
    if month == 1:
        return 12, year - 1
    return month - 1, year


def reference_month_days(start, end):
    """
    Month length used as the proration denominator.

    Same-month ranges use that month's length. Ranges crossing a month
    boundary use the average of the start and end month lengths, rounded
    half-up.
    """
    start, end = to_date(start), to_date(end)
    if (start.year, start.month) == (end.year, end.month):
        return days_in_month(start.year, start.month)
    total = days_in_month(start.year, start.month) + days_in_month(end.year, end.month)
    return (total + 1) // 2


# =============================================================================
# VALUE OBJECTS
# =============================================================================

@dataclass(frozen=True)
class Discount:
    type: str = PERCENTAGE
    value: Decimal = Decimal('0')
    reason: str = ''

    @classmethod
    def from_data(cls, data):
        """Build from a mapping such as request data; ``None`` means no discount."""
        if isinstance(data, cls):
            return data
        if not data:
            return cls()
        return cls(
            type=data.get('type') or PERCENTAGE,
            value=to_decimal(data.get('value')),
            reason=data.get('reason') or '',
        )

    @property
    def is_applied(self):
        return self.value > 0

    def as_dict(self):
        return {'type': self.type, 'value': str(self.value), 'reason': self.reason}


@dataclass(frozen=True)
class ProrationResult:
    base_price_per_month: Decimal
    subscription_days: int
    month_days: int
    prorated_ratio: Decimal
    prorated_amount: Decimal
    discount_amount: Decimal
    final_amount: Decimal

    @classmethod
    def zero(cls, base_price_per_month=Decimal('0')):
        return cls(
            base_price_per_month=base_price_per_month,
            subscription_days=0,
            month_days=settings.DEFAULT_MONTH_DAYS,
            prorated_ratio=Decimal('0'),
            prorated_amount=Decimal('0.00'),
            discount_amount=Decimal('0.00'),
            final_amount=Decimal('0.00'),
        )

    @property
    def percentage(self):
        """Share of the reference month covered, as a whole percent."""
        return int((self.prorated_ratio * 100).quantize(Decimal('1'), rounding=ROUND_HALF_UP))

    def as_dict(self):
        return {
            'base_price_per_month': str(self.base_price_per_month),
            'subscription_days': self.subscription_days,
            'month_days': self.month_days,
            'prorated_ratio': str(self.prorated_ratio),
            'prorated_amount': str(self.prorated_amount),
            'discount_amount': str(self.discount_amount),
            'final_amount': str(self.final_amount),
        }


# =============================================================================
# PRORATION ENGINE
# =============================================================================

def discount_amount_for(prorated_amount, ratio, discount):
    """
    Discount taken off a prorated amount.

    Fixed discounts are monthly figures, so they are scaled by the same
    ratio as the price. The result never exceeds the prorated amount.
    """
    if not discount.is_applied:
        return Decimal('0.00')
    if discount.type == FIXED:
        amount = round_money(discount.value * ratio)
    else:
        amount = round_money(prorated_amount * discount.value / 100)
    return min(amount, prorated_amount)


def calculate_prorated_amount(base_price_per_month, start_date, end_date, discount=None):
    """
    Price the inclusive range [start_date, end_date] against a monthly rate.

    Missing price or dates produce a zero result instead of an error.
    The amount is computed from the full-precision ratio; the ratio
    reported on the result is rounded to four places independently.
    """
    base_price = to_decimal(base_price_per_month)
    start, end = to_date(start_date), to_date(end_date)
    if not base_price or not start or not end:
        return ProrationResult.zero(base_price)

    discount = Discount.from_data(discount)
    subscription_days = inclusive_days_between(start, end)
    month_days = reference_month_days(start, end)

    ratio = Decimal(subscription_days) / Decimal(month_days)
    prorated_amount = round_money(base_price * ratio)
    discount_amount = discount_amount_for(prorated_amount, ratio, discount)
    final_amount = round_money(max(Decimal('0'), prorated_amount - discount_amount))

    return ProrationResult(
        base_price_per_month=base_price,
        subscription_days=subscription_days,
        month_days=month_days,
        prorated_ratio=ratio.quantize(RATIO_PLACES, rounding=ROUND_HALF_UP),
        prorated_amount=prorated_amount,
        discount_amount=discount_amount,
        final_amount=final_amount,
    )


def calculate_full_month_amount(base_price_per_month, discount=None):
    """Whole-month price with the discount applied, for previews without a date range."""
    base_price = round_money(base_price_per_month)
    discount = Discount.from_data(discount)
    discount_amount = discount_amount_for(base_price, Decimal('1'), discount)
    return {
        'base_price_per_month': base_price,
        'discount_amount': discount_amount,
        'final_amount': round_money(max(Decimal('0'), base_price - discount_amount)),
    }


def needs_proration(start_date, end_date):
    """
    Whether a range should be billed pro rata rather than at the monthly rate.

    Same-month ranges covering at least the configured share of the month
    count as a full month. Ranges crossing a month boundary always prorate.
    """
    start, end = to_date(start_date), to_date(end_date)
    if not start or not end:
        return False
    if (start.year, start.month) != (end.year, end.month):
        return True
    month_days = days_in_month(start.year, start.month)
    threshold = to_decimal(settings.FULL_MONTH_COVERAGE_THRESHOLD)
    return Decimal(inclusive_days_between(start, end)) < threshold * month_days
