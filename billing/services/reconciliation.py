"""
Keeps subscriptions and their payments consistent.

Every path that bills a subscription (creation, update, auto-extension,
backfill) prices it through ``calculate_prorated_amount`` and derives the
payment with ``create_derived_payment``. Business-rule violations raise
``BillingError`` subclasses before anything is written.
"""
import logging
from dataclasses import dataclass, field
from datetime import timedelta

from django.conf import settings
from django.db import transaction
from django.db.models import Q, RestrictedError
from django.utils import timezone

from customers.models import Customer
from billing.exceptions import InvalidBillingPeriodError, SubscriptionLockedError, SubscriptionOverlapError
from billing.models import Payment, Subscription
from .proration import FIXED, Discount, calculate_prorated_amount, month_bounds, previous_period, to_date

logger = logging.getLogger(__name__)

SUCCESS = 'success'
SKIPPED = 'skipped'
ERROR = 'error'


# =============================================================================
# BATCH RESULTS
# =============================================================================

@dataclass(frozen=True)
class Outcome:
    """What happened to one candidate in a batch run."""
    status: str
    customer_id: int
    customer_name: str
    reason: str = ''
    details: dict = field(default_factory=dict)

    def as_dict(self):
        data = {'customer_id': self.customer_id, 'customer_name': self.customer_name}
        if self.status == SKIPPED:
            data['reason'] = self.reason
        elif self.status == ERROR:
            data['error'] = self.reason
        data.update(self.details)
        return data


@dataclass
class BatchResult:
    success_key: str
    outcomes: list = field(default_factory=list)

    def add(self, status, subscription, reason='', **details):
        self.outcomes.append(Outcome(
            status=status,
            customer_id=subscription.customer_id,
            customer_name=subscription.customer.name,
            reason=reason,
            details=details,
        ))

    def _with_status(self, status):
        return [outcome for outcome in self.outcomes if outcome.status == status]

    @property
    def succeeded(self):
        return self._with_status(SUCCESS)

    @property
    def skipped(self):
        return self._with_status(SKIPPED)

    @property
    def errors(self):
        return self._with_status(ERROR)

    def summary(self, title):
        return (
            f"{title} completed. {self.success_key.capitalize()}: {len(self.succeeded)}, "
            f"Skipped: {len(self.skipped)}, Errors: {len(self.errors)}"
        )

    def as_dict(self):
        return {
            self.success_key: [outcome.as_dict() for outcome in self.succeeded],
            'skipped': [outcome.as_dict() for outcome in self.skipped],
            'errors': [outcome.as_dict() for outcome in self.errors],
        }


@dataclass
class SubscriptionCreation:
    subscription: Subscription
    payment: Payment = None
    payment_error: str = ''


# =============================================================================
# PRICING AND PAYMENT DERIVATION
# =============================================================================

def validate_period(start_date, end_date):
    if end_date < start_date:
        raise InvalidBillingPeriodError('End date must be on or after the start date')


def quote_subscription(subscription):
    return calculate_prorated_amount(
        subscription.base_price_per_month,
        subscription.start_date,
        subscription.end_date,
        subscription.get_discount(),
    )


def price_subscription(subscription):
    """Re-derive the subscription's pricing block from its price, dates and discount."""
    result = quote_subscription(subscription)
    subscription.apply_proration(result)
    return result


def payment_due_date(end_date):
    return end_date + timedelta(days=settings.PAYMENT_GRACE_DAYS)


def build_plan_snapshot(subscription, result):
    return {
        'subscription_id': subscription.pk,
        'plan_name': subscription.meal_plan.plan_name,
        'plan_code': subscription.meal_plan.plan_code,
        'currency': subscription.meal_plan.currency,
        'monthly_amount': str(result.base_price_per_month),
        'prorated_amount': str(result.prorated_amount),
        'discount_amount': str(result.discount_amount),
        'final_amount': str(result.final_amount),
        'discount_applied': subscription.get_discount().as_dict(),
        'subscription_period': subscription.period_label,
        'subscription_days': result.subscription_days,
        'month_days': result.month_days,
        'prorated_ratio': str(result.prorated_ratio),
    }


def describe_charge(subscription, result, prefix='Payment for'):
    """Human-readable payment note, e.g. 'Payment for Basic subscription (15 days out of 29, 52%, ...)'."""
    note = (
        f"{prefix} {subscription.meal_plan.plan_name} subscription "
        f"({result.subscription_days} days out of {result.month_days}, {result.percentage}%, "
        f"{subscription.start_date:%d %b %Y} to {subscription.end_date:%d %b %Y})"
    )
    discount = subscription.get_discount()
    if discount.is_applied:
        if discount.type == FIXED:
            amount = f"{discount.value} {subscription.meal_plan.currency}"
        else:
            amount = f"{discount.value.normalize():f}%"
        note += f" - {amount} discount applied"
    return note


def create_derived_payment(subscription, prefix='Payment for', recorded_by=None):
    """Create the payment billing a subscription's period at its prorated final amount."""
    result = quote_subscription(subscription)
    return Payment.objects.create(
        customer=subscription.customer,
        subscription=subscription,
        month=subscription.month,
        year=subscription.year,
        period_start=subscription.start_date,
        period_end=subscription.end_date,
        plan_details=build_plan_snapshot(subscription, result),
        amount_due=result.final_amount,
        due_date=payment_due_date(subscription.end_date),
        notes=describe_charge(subscription, result, prefix=prefix),
        recorded_by=recorded_by,
    )


def _create_payment_isolated(subscription, prefix='Payment for', recorded_by=None):
    """
    Derive the payment inside its own savepoint.

    A failure here is logged and returned; it never undoes the subscription.
    """
    try:
        with transaction.atomic():
            payment = create_derived_payment(subscription, prefix=prefix, recorded_by=recorded_by)
    except Exception as e:
        logger.exception(f"Payment creation failed for subscription {subscription.pk}")
        return None, str(e)
    logger.info(f"Payment {payment.pk} created for subscription {subscription.pk}: {payment.amount_due}")
    return payment, ''


# =============================================================================
# OVERLAP AND MUTATION GUARDS
# =============================================================================

def find_overlapping(customer, start_date, end_date, exclude=None):
    """Subscriptions of ``customer`` whose closed date range intersects [start_date, end_date]."""
    queryset = Subscription.objects.filter(
        customer=customer,
        start_date__lte=end_date,
        end_date__gte=start_date,
    )
    if exclude is not None:
        queryset = queryset.exclude(pk=exclude.pk)
    return queryset


def ensure_no_overlap(customer, start_date, end_date, exclude=None):
    if find_overlapping(customer, start_date, end_date, exclude=exclude).exists():
        logger.warning(f"Rejected overlapping subscription for customer {customer.pk}: {start_date} to {end_date}")
        raise SubscriptionOverlapError(
            'Customer already has a subscription with overlapping dates. Please choose different dates.'
        )


def payments_in_window(subscription):
    """
    Payments that lock a subscription against edits and deletion.

    The window is year-level: any payment for the customer tagged with a
    year from the start year to the end year counts.
    """
    return Payment.objects.filter(
        customer_id=subscription.customer_id,
        year__gte=subscription.start_date.year,
        year__lte=subscription.end_date.year,
    )


def check_payments(subscription):
    count = payments_in_window(subscription).count()
    if count:
        message = f"{count} payment record(s) exist for this subscription period"
    else:
        message = 'No payments found for this subscription'
    return {'has_payments': count > 0, 'payment_count': count, 'message': message}


def ensure_mutable(subscription, action):
    count = payments_in_window(subscription).count()
    if count:
        logger.warning(f"Rejected {action} of subscription {subscription.pk}: {count} payment(s) exist")
        raise SubscriptionLockedError(
            f"Cannot {action} subscription: {count} payment record(s) exist for this customer "
            f"during the subscription period. Please delete payments first."
        )


def _lock_customer(customer):
    # Serializes overlap check-and-write per customer
    return Customer.objects.select_for_update().get(pk=customer.pk)


# =============================================================================
# SUBSCRIPTION LIFECYCLE
# =============================================================================

def create_subscription(customer, meal_plan, start_date, end_date, discount=None, base_price=None,
                        month=None, year=None, custom_meals=None, notes='', status='active',
                        created_by='', recorded_by=None, payment_prefix='Payment for'):
    """
    Price, persist and bill a new subscription.

    Raises InvalidBillingPeriodError or SubscriptionOverlapError before any
    write. The derived payment is created in a savepoint; if it fails the
    subscription still stands and the error is returned on the result.
    """
    start_date, end_date = to_date(start_date), to_date(end_date)
    validate_period(start_date, end_date)

    with transaction.atomic():
        _lock_customer(customer)
        ensure_no_overlap(customer, start_date, end_date)

        subscription = Subscription(
            customer=customer,
            meal_plan=meal_plan,
            month=month or start_date.month,
            year=year or start_date.year,
            start_date=start_date,
            end_date=end_date,
            base_price_per_month=meal_plan.base_price if base_price is None else base_price,
            custom_meals=custom_meals or {},
            notes=notes,
            status=status,
            created_by=created_by,
        )
        subscription.set_discount(Discount.from_data(discount))
        price_subscription(subscription)
        subscription.save()
        logger.info(
            f"Subscription {subscription.pk} created for customer {customer.pk}: "
            f"{start_date} to {end_date}, final {subscription.final_price}"
        )

        payment, payment_error = _create_payment_isolated(
            subscription, prefix=payment_prefix, recorded_by=recorded_by,
        )

    return SubscriptionCreation(subscription=subscription, payment=payment, payment_error=payment_error)


SUBSCRIPTION_EDITABLE_FIELDS = ('meal_plan', 'start_date', 'end_date', 'month', 'year', 'custom_meals', 'status', 'notes')


def update_subscription(subscription, changes, updated_by=''):
    """
    Apply ``changes`` to a subscription and re-derive its pricing.

    Rejected once payments exist in the subscription's year window, or if
    the new dates would overlap another of the customer's subscriptions.
    """
    with transaction.atomic():
        _lock_customer(subscription.customer)
        ensure_mutable(subscription, 'edit')

        for name in SUBSCRIPTION_EDITABLE_FIELDS:
            if name in changes:
                setattr(subscription, name, changes[name])
        subscription.start_date = to_date(subscription.start_date)
        subscription.end_date = to_date(subscription.end_date)
        # Period tag follows a moved start date unless one was given
        if 'start_date' in changes and 'month' not in changes and 'year' not in changes:
            subscription.month = subscription.start_date.month
            subscription.year = subscription.start_date.year
        if 'discount' in changes:
            subscription.set_discount(Discount.from_data(changes['discount']))
        if changes.get('base_price_per_month') is not None:
            subscription.base_price_per_month = changes['base_price_per_month']
        elif 'meal_plan' in changes:
            subscription.base_price_per_month = subscription.meal_plan.base_price

        validate_period(subscription.start_date, subscription.end_date)
        ensure_no_overlap(subscription.customer, subscription.start_date, subscription.end_date, exclude=subscription)

        price_subscription(subscription)
        subscription.updated_by = updated_by
        subscription.save()

    logger.info(f"Subscription {subscription.pk} updated by {updated_by or 'unknown'}")
    return subscription


def cancel_subscription(subscription, updated_by=''):
    subscription.status = 'cancelled'
    subscription.updated_by = updated_by
    subscription.save(update_fields=['status', 'updated_by', 'updated_at'])
    logger.info(f"Subscription {subscription.pk} cancelled by {updated_by or 'unknown'}")
    return subscription


def delete_subscription(subscription):
    with transaction.atomic():
        ensure_mutable(subscription, 'delete')
        pk = subscription.pk
        try:
            subscription.delete()
        except RestrictedError:
            raise SubscriptionLockedError(
                'Cannot delete subscription: payment records reference this subscription. '
                'Please delete payments first.'
            )
    logger.info(f"Subscription {pk} deleted")


# =============================================================================
# AUTO-EXTENSION
# =============================================================================

def resolve_target_period(month=None, year=None):
    today = timezone.localdate()
    return month or today.month, year or today.year


def find_extension_candidates(target_month, target_year):
    """
    Subscriptions that roll over into the target month.

    From the preceding month's active subscriptions, take each customer's
    latest-ending one and keep it only if it runs to the last day of that
    month.
    """
    source_month, source_year = previous_period(target_month, target_year)
    _, last_day = month_bounds(source_year, source_month)

    latest_by_customer = {}
    queryset = (
        Subscription.objects
        .filter(status='active', month=source_month, year=source_year)
        .select_related('customer', 'meal_plan')
        .order_by('customer_id', '-end_date', 'pk')
    )
    for subscription in queryset:
        latest_by_customer.setdefault(subscription.customer_id, subscription)

    return [sub for sub in latest_by_customer.values() if sub.end_date == last_day]


def _target_exists(subscription, target_month, target_year):
    return Subscription.objects.filter(
        customer_id=subscription.customer_id,
        meal_plan_id=subscription.meal_plan_id,
        month=target_month,
        year=target_year,
    ).exists()


def list_extension_candidates(target_month=None, target_year=None):
    """Preview of an auto-extension run: who is eligible and who already has the target month."""
    target_month, target_year = resolve_target_period(target_month, target_year)
    source_month, source_year = previous_period(target_month, target_year)
    eligible = []
    for subscription in find_extension_candidates(target_month, target_year):
        eligible.append({
            'subscription_id': subscription.pk,
            'customer_id': subscription.customer_id,
            'customer_name': subscription.customer.name,
            'customer_phone': subscription.customer.full_phone_number,
            'meal_plan': subscription.meal_plan.plan_name,
            'end_date': subscription.end_date,
            'base_price_per_month': subscription.base_price_per_month,
            'already_extended': _target_exists(subscription, target_month, target_year),
        })
    return {
        'target_period': {'month': target_month, 'year': target_year},
        'source_period': {'month': source_month, 'year': source_year},
        'eligible': eligible,
    }


def auto_extend(target_month=None, target_year=None, created_by=None):
    """
    Roll full-month subscriptions over into the target month.

    Each candidate is handled independently; the result partitions them into
    extended, skipped (with reason) and errors (with message).
    """
    target_month, target_year = resolve_target_period(target_month, target_year)
    source_month, source_year = previous_period(target_month, target_year)
    start_date, end_date = month_bounds(target_year, target_month)
    created_by = created_by or settings.AUTO_EXTENSION_CREATED_BY

    candidates = find_extension_candidates(target_month, target_year)
    logger.info(
        f"Auto-extension from {source_month}/{source_year} to {target_month}/{target_year}: "
        f"{len(candidates)} eligible subscription(s)"
    )

    results = BatchResult(success_key='extended')
    for subscription in candidates:
        if _target_exists(subscription, target_month, target_year):
            results.add(SKIPPED, subscription, reason='Same meal plan subscription already exists for target period')
            continue
        try:
            creation = create_subscription(
                customer=subscription.customer,
                meal_plan=subscription.meal_plan,
                start_date=start_date,
                end_date=end_date,
                discount=subscription.get_discount(),
                base_price=subscription.base_price_per_month,
                month=target_month,
                year=target_year,
                custom_meals=subscription.custom_meals,
                notes=subscription.notes,
                created_by=created_by,
                payment_prefix='Auto-extended payment for',
            )
        except SubscriptionOverlapError as e:
            results.add(SKIPPED, subscription, reason=e.message)
            continue
        except Exception as e:
            logger.exception(f"Auto-extension failed for customer {subscription.customer_id}")
            results.add(ERROR, subscription, reason=str(e))
            continue

        new_subscription = creation.subscription
        results.add(
            SUCCESS, subscription,
            subscription_id=new_subscription.pk,
            meal_plan=new_subscription.meal_plan.plan_name,
            final_price=str(new_subscription.final_price),
            payment_id=creation.payment.pk if creation.payment else None,
            payment_error=creation.payment_error,
        )

    logger.info(results.summary('Auto-extension'))
    return {
        'target_period': {'month': target_month, 'year': target_year},
        'source_period': {'month': source_month, 'year': source_year},
        'results': results,
    }


# =============================================================================
# BACKFILL
# =============================================================================

def find_matching_payment(subscription):
    """
    The payment already billing this subscription, if any.

    Matches on the stored subscription reference, or for payments without
    one on customer, period tag and exact date range.
    """
    return Payment.objects.filter(
        Q(subscription=subscription) | Q(
            subscription__isnull=True,
            customer_id=subscription.customer_id,
            month=subscription.month,
            year=subscription.year,
            period_start=subscription.start_date,
            period_end=subscription.end_date,
        )
    ).first()


def generate_missing_payments(recorded_by=None):
    """Create the derived payment for every active subscription that has none."""
    subscriptions = (
        Subscription.objects
        .filter(status='active')
        .select_related('customer', 'meal_plan')
        .order_by('start_date', 'pk')
    )
    results = BatchResult(success_key='created')
    for subscription in subscriptions:
        if find_matching_payment(subscription) is not None:
            results.add(SKIPPED, subscription, reason='Payment already exists')
            continue
        try:
            with transaction.atomic():
                payment = create_derived_payment(subscription, prefix='Generated payment for', recorded_by=recorded_by)
        except Exception as e:
            logger.exception(f"Backfill failed for subscription {subscription.pk}")
            results.add(ERROR, subscription, reason=str(e))
            continue
        results.add(
            SUCCESS, subscription,
            payment_id=payment.pk,
            amount=str(payment.amount_due),
            subscription_period=subscription.period_label,
        )

    logger.info(results.summary('Payment generation'))
    return results
