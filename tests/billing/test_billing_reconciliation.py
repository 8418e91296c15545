# ===============================================================================
# SUBSCRIPTION / PAYMENT RECONCILIATION TESTS
# ===============================================================================

from datetime import date
from decimal import Decimal
from unittest.mock import patch

from django.db import DatabaseError
from django.test import TestCase

from customers.models import Customer
from billing.exceptions import InvalidBillingPeriodError, SubscriptionLockedError, SubscriptionOverlapError
from billing.models import Payment, Subscription
from billing.services import reconciliation
from billing.services.reconciliation import (
    auto_extend,
    cancel_subscription,
    check_payments,
    create_subscription,
    delete_subscription,
    generate_missing_payments,
    list_extension_candidates,
    update_subscription,
)
from tests.factories import make_customer, make_meal_plan


def subscribe(customer, plan, start, end, **kwargs):
    return create_subscription(customer=customer, meal_plan=plan, start_date=start, end_date=end, **kwargs)


def subscribe_unbilled(customer, plan, start, end, **kwargs):
    """Subscription with its derived payment removed, so it is free to edit."""
    creation = subscribe(customer, plan, start, end, **kwargs)
    creation.payment.delete()
    return creation.subscription


# ===============================================================================
# CREATION AND DERIVED PAYMENT
# ===============================================================================

class CreateSubscriptionTestCase(TestCase):
    """Creating a subscription prices it and bills it"""

    def setUp(self):
        self.customer = make_customer()
        self.plan = make_meal_plan(base_price=Decimal('300.00'))

    def test_pricing_block_matches_engine(self):
        creation = subscribe(self.customer, self.plan, date(2024, 2, 1), date(2024, 2, 15),
                             discount={'type': 'percentage', 'value': 10, 'reason': 'Launch offer'})
        subscription = Subscription.objects.get(pk=creation.subscription.pk)

        self.assertEqual(subscription.month, 2)
        self.assertEqual(subscription.year, 2024)
        self.assertEqual(subscription.base_price_per_month, Decimal('300.00'))
        self.assertEqual(subscription.subscription_days, 15)
        self.assertEqual(subscription.month_days, 29)
        self.assertEqual(subscription.prorated_ratio, Decimal('0.5172'))
        self.assertEqual(subscription.prorated_amount, Decimal('155.17'))
        self.assertEqual(subscription.discount_amount, Decimal('15.52'))
        self.assertEqual(subscription.final_price, Decimal('139.65'))
        self.assertEqual(subscription.discount_reason, 'Launch offer')

    def test_derived_payment(self):
        creation = subscribe(self.customer, self.plan, date(2024, 2, 1), date(2024, 2, 15),
                             discount={'type': 'percentage', 'value': 10})
        payment = creation.payment

        self.assertEqual(creation.payment_error, '')
        self.assertEqual(payment.customer, self.customer)
        self.assertEqual(payment.subscription, creation.subscription)
        self.assertEqual((payment.month, payment.year), (2, 2024))
        self.assertEqual(payment.amount_due, Decimal('139.65'))
        self.assertEqual(payment.due_date, date(2024, 2, 20))
        self.assertEqual(payment.period_start, date(2024, 2, 1))
        self.assertEqual(payment.period_end, date(2024, 2, 15))

        details = payment.plan_details
        self.assertEqual(details['plan_name'], self.plan.plan_name)
        self.assertEqual(details['monthly_amount'], '300.00')
        self.assertEqual(details['prorated_amount'], '155.17')
        self.assertEqual(details['final_amount'], '139.65')
        self.assertEqual(details['subscription_days'], 15)
        self.assertEqual(details['month_days'], 29)
        self.assertEqual(details['prorated_ratio'], '0.5172')
        self.assertEqual(details['discount_applied']['type'], 'percentage')
        self.assertIn('01 Feb 2024', details['subscription_period'])
        self.assertIn('15 Feb 2024', details['subscription_period'])

        self.assertIn('15 days out of 29, 52%', payment.notes)
        self.assertIn('10% discount applied', payment.notes)

    def test_custom_base_price_and_period_tag(self):
        creation = subscribe(self.customer, self.plan, date(2024, 1, 28), date(2024, 2, 2),
                             base_price=Decimal('200'), month=2, year=2024)
        self.assertEqual((creation.subscription.month, creation.subscription.year), (2, 2024))
        self.assertEqual(creation.subscription.final_price, Decimal('40.00'))
        self.assertEqual(creation.payment.amount_due, Decimal('40.00'))

    def test_end_before_start_is_rejected(self):
        with self.assertRaises(InvalidBillingPeriodError):
            subscribe(self.customer, self.plan, date(2024, 3, 10), date(2024, 3, 9))
        self.assertFalse(Subscription.objects.exists())

    def test_payment_failure_keeps_subscription(self):
        with patch.object(reconciliation, 'create_derived_payment', side_effect=DatabaseError('payments table locked')):
            creation = subscribe(self.customer, self.plan, date(2024, 5, 1), date(2024, 5, 31))

        self.assertIsNone(creation.payment)
        self.assertEqual(creation.payment_error, 'payments table locked')
        self.assertTrue(Subscription.objects.filter(pk=creation.subscription.pk).exists())
        self.assertFalse(Payment.objects.exists())


# ===============================================================================
# OVERLAP PREVENTION
# ===============================================================================

class OverlapTestCase(TestCase):
    """Closed-interval overlap per customer"""

    def setUp(self):
        self.customer = make_customer()
        self.plan = make_meal_plan()
        subscribe(self.customer, self.plan, date(2024, 1, 1), date(2024, 1, 15))

    def test_overlapping_range_is_rejected(self):
        with self.assertRaises(SubscriptionOverlapError) as ctx:
            subscribe(self.customer, self.plan, date(2024, 1, 10), date(2024, 1, 20))
        self.assertIn('overlapping dates', ctx.exception.message)
        self.assertEqual(Subscription.objects.count(), 1)
        self.assertEqual(Payment.objects.count(), 1)

    def test_shared_boundary_day_is_an_overlap(self):
        with self.assertRaises(SubscriptionOverlapError):
            subscribe(self.customer, self.plan, date(2024, 1, 15), date(2024, 1, 31))

    def test_adjacent_range_is_accepted(self):
        creation = subscribe(self.customer, self.plan, date(2024, 1, 16), date(2024, 1, 31))
        self.assertEqual(creation.subscription.subscription_days, 16)
        self.assertEqual(Subscription.objects.count(), 2)

    def test_enclosing_range_is_rejected(self):
        with self.assertRaises(SubscriptionOverlapError):
            subscribe(self.customer, self.plan, date(2023, 12, 20), date(2024, 2, 10))

    def test_other_customers_are_independent(self):
        other = make_customer(name='Omar Khalid')
        creation = subscribe(other, self.plan, date(2024, 1, 10), date(2024, 1, 20))
        self.assertIsNotNone(creation.subscription.pk)


# ===============================================================================
# CUSTOMER ROW LOCK
# ===============================================================================

class CustomerLockTestCase(TestCase):
    """Create and edit hold the customer row while checking overlaps"""

    def setUp(self):
        self.customer = make_customer()
        self.plan = make_meal_plan(base_price=Decimal('300.00'))

    def test_lock_selects_customer_for_update(self):
        with patch.object(Customer.objects, 'select_for_update', wraps=Customer.objects.select_for_update) as lock:
            locked = reconciliation._lock_customer(self.customer)
        lock.assert_called_once_with()
        self.assertEqual(locked.pk, self.customer.pk)

    def test_create_takes_lock(self):
        with patch.object(reconciliation, '_lock_customer', wraps=reconciliation._lock_customer) as lock:
            subscribe(self.customer, self.plan, date(2024, 4, 1), date(2024, 4, 30))
        lock.assert_called_once_with(self.customer)

    def test_create_takes_lock_before_overlap_check(self):
        subscribe(self.customer, self.plan, date(2024, 4, 1), date(2024, 4, 30))
        with patch.object(reconciliation, '_lock_customer', wraps=reconciliation._lock_customer) as lock:
            with self.assertRaises(SubscriptionOverlapError):
                subscribe(self.customer, self.plan, date(2024, 4, 10), date(2024, 4, 20))
        lock.assert_called_once_with(self.customer)

    def test_update_takes_lock(self):
        subscription = subscribe_unbilled(self.customer, self.plan, date(2024, 4, 1), date(2024, 4, 30))
        with patch.object(reconciliation, '_lock_customer', wraps=reconciliation._lock_customer) as lock:
            update_subscription(subscription, {'end_date': date(2024, 4, 15)})
        lock.assert_called_once_with(subscription.customer)

    def test_update_takes_lock_before_mutation_guard(self):
        subscription = subscribe(self.customer, self.plan, date(2024, 4, 1), date(2024, 4, 30)).subscription
        with patch.object(reconciliation, '_lock_customer', wraps=reconciliation._lock_customer) as lock:
            with self.assertRaises(SubscriptionLockedError):
                update_subscription(subscription, {'notes': 'changed'})
        lock.assert_called_once_with(subscription.customer)


# ===============================================================================
# MUTATION GUARD
# ===============================================================================

class MutationGuardTestCase(TestCase):
    """Subscriptions lock once payments exist in their year window"""

    def setUp(self):
        self.customer = make_customer()
        self.plan = make_meal_plan(base_price=Decimal('300.00'))

    def test_update_blocked_by_derived_payment(self):
        subscription = subscribe(self.customer, self.plan, date(2024, 4, 1), date(2024, 4, 30)).subscription
        with self.assertRaises(SubscriptionLockedError) as ctx:
            update_subscription(subscription, {'notes': 'changed'})
        self.assertIn('Cannot edit subscription: 1 payment record(s) exist', ctx.exception.message)

    def test_delete_blocked_by_derived_payment(self):
        subscription = subscribe(self.customer, self.plan, date(2024, 4, 1), date(2024, 4, 30)).subscription
        with self.assertRaises(SubscriptionLockedError) as ctx:
            delete_subscription(subscription)
        self.assertIn('Cannot delete subscription', ctx.exception.message)
        self.assertTrue(Subscription.objects.filter(pk=subscription.pk).exists())

    def test_guard_is_year_level(self):
        subscription = subscribe_unbilled(self.customer, self.plan, date(2024, 4, 1), date(2024, 4, 30))
        Payment.objects.create(customer=self.customer, month=11, year=2024, amount_due=Decimal('50'), due_date=date(2024, 11, 30))

        self.assertTrue(check_payments(subscription)['has_payments'])
        with self.assertRaises(SubscriptionLockedError):
            update_subscription(subscription, {'notes': 'changed'})

    def test_payments_in_other_years_do_not_lock(self):
        subscription = subscribe_unbilled(self.customer, self.plan, date(2024, 4, 1), date(2024, 4, 30))
        Payment.objects.create(customer=self.customer, month=12, year=2023, amount_due=Decimal('50'), due_date=date(2023, 12, 31))

        result = check_payments(subscription)
        self.assertFalse(result['has_payments'])
        self.assertEqual(result['message'], 'No payments found for this subscription')

    def test_update_reprices(self):
        subscription = subscribe_unbilled(self.customer, self.plan, date(2024, 4, 1), date(2024, 4, 30))
        update_subscription(subscription, {
            'end_date': date(2024, 4, 15),
            'discount': {'type': 'fixed', 'value': Decimal('50')},
        }, updated_by='Front Desk')

        subscription.refresh_from_db()
        self.assertEqual(subscription.subscription_days, 15)
        self.assertEqual(subscription.prorated_amount, Decimal('150.00'))
        self.assertEqual(subscription.discount_amount, Decimal('25.00'))
        self.assertEqual(subscription.final_price, Decimal('125.00'))
        self.assertEqual(subscription.updated_by, 'Front Desk')

    def test_update_meal_plan_takes_new_base_price(self):
        subscription = subscribe_unbilled(self.customer, self.plan, date(2024, 4, 1), date(2024, 4, 30))
        premium = make_meal_plan(plan_code='PREMIUM', base_price=Decimal('450.00'))
        update_subscription(subscription, {'meal_plan': premium})

        subscription.refresh_from_db()
        self.assertEqual(subscription.base_price_per_month, Decimal('450.00'))
        self.assertEqual(subscription.final_price, Decimal('450.00'))

    def test_update_rejects_overlap_but_ignores_itself(self):
        subscription = subscribe_unbilled(self.customer, self.plan, date(2024, 4, 1), date(2024, 4, 15))
        subscribe_unbilled(self.customer, self.plan, date(2024, 4, 20), date(2024, 4, 30))

        update_subscription(subscription, {'end_date': date(2024, 4, 19)})
        with self.assertRaises(SubscriptionOverlapError):
            update_subscription(subscription, {'end_date': date(2024, 4, 20)})

    def test_moving_start_date_moves_period_tag(self):
        subscription = subscribe_unbilled(self.customer, self.plan, date(2024, 4, 1), date(2024, 4, 30))
        update_subscription(subscription, {'start_date': date(2024, 5, 3), 'end_date': date(2024, 5, 20)})

        subscription.refresh_from_db()
        self.assertEqual((subscription.month, subscription.year), (5, 2024))
        self.assertEqual(subscription.subscription_days, 18)

    def test_explicit_period_tag_wins_over_start_date(self):
        subscription = subscribe_unbilled(self.customer, self.plan, date(2024, 4, 1), date(2024, 4, 30))
        update_subscription(subscription, {'start_date': date(2024, 4, 28), 'end_date': date(2024, 5, 27), 'month': 5})

        subscription.refresh_from_db()
        self.assertEqual((subscription.month, subscription.year), (5, 2024))

    def test_end_date_change_keeps_period_tag(self):
        subscription = subscribe_unbilled(self.customer, self.plan, date(2024, 4, 1), date(2024, 4, 30), month=3)
        update_subscription(subscription, {'end_date': date(2024, 4, 20)})

        subscription.refresh_from_db()
        self.assertEqual((subscription.month, subscription.year), (3, 2024))

    def test_delete_without_payments(self):
        subscription = subscribe_unbilled(self.customer, self.plan, date(2024, 4, 1), date(2024, 4, 30))
        delete_subscription(subscription)
        self.assertFalse(Subscription.objects.exists())

    def test_cancel_is_not_guarded(self):
        subscription = subscribe(self.customer, self.plan, date(2024, 4, 1), date(2024, 4, 30)).subscription
        cancel_subscription(subscription, updated_by='Front Desk')
        subscription.refresh_from_db()
        self.assertEqual(subscription.status, 'cancelled')


# ===============================================================================
# AUTO-EXTENSION
# ===============================================================================

class AutoExtendTestCase(TestCase):
    """Rolling full-month subscriptions into the next month"""

    def setUp(self):
        self.plan = make_meal_plan(base_price=Decimal('300.00'))
        self.full = make_customer(name='Full Month')
        self.partial = make_customer(name='Mid Month')
        subscribe(self.full, self.plan, date(2024, 1, 1), date(2024, 1, 31))
        subscribe(self.partial, self.plan, date(2024, 1, 1), date(2024, 1, 20))

    def test_extends_only_subscriptions_ending_on_month_end(self):
        run = auto_extend(target_month=2, target_year=2024)
        results = run['results']

        self.assertEqual(run['source_period'], {'month': 1, 'year': 2024})
        self.assertEqual([outcome.customer_name for outcome in results.succeeded], ['Full Month'])
        self.assertEqual(results.skipped, [])
        self.assertEqual(results.errors, [])

        extended = Subscription.objects.get(customer=self.full, month=2, year=2024)
        self.assertEqual((extended.start_date, extended.end_date), (date(2024, 2, 1), date(2024, 2, 29)))
        self.assertEqual(extended.final_price, Decimal('300.00'))
        self.assertEqual(extended.created_by, 'Auto-Extension System')
        self.assertEqual(extended.status, 'active')
        self.assertFalse(Subscription.objects.filter(customer=self.partial, month=2).exists())

        payment = Payment.objects.get(subscription=extended)
        self.assertEqual(payment.amount_due, Decimal('300.00'))
        self.assertEqual(payment.due_date, date(2024, 3, 5))
        self.assertTrue(payment.notes.startswith('Auto-extended payment for'))

    def test_second_run_skips_existing_target(self):
        auto_extend(target_month=2, target_year=2024)
        results = auto_extend(target_month=2, target_year=2024)['results']

        self.assertEqual(results.succeeded, [])
        self.assertEqual(len(results.skipped), 1)
        self.assertEqual(results.skipped[0].reason, 'Same meal plan subscription already exists for target period')
        self.assertEqual(Subscription.objects.filter(month=2, year=2024).count(), 1)

    def test_latest_subscription_per_customer_decides(self):
        split = make_customer(name='Split Month')
        subscribe(split, self.plan, date(2024, 1, 1), date(2024, 1, 15))
        subscribe(split, self.plan, date(2024, 1, 16), date(2024, 1, 31))

        results = auto_extend(target_month=2, target_year=2024)['results']
        names = sorted(outcome.customer_name for outcome in results.succeeded)
        self.assertEqual(names, ['Full Month', 'Split Month'])
        self.assertEqual(Subscription.objects.filter(customer=split, month=2).count(), 1)

    def test_discount_is_carried_over(self):
        discounted = make_customer(name='Discounted')
        subscribe(discounted, self.plan, date(2024, 1, 1), date(2024, 1, 31), discount={'type': 'fixed', 'value': 30})

        auto_extend(target_month=2, target_year=2024)
        extended = Subscription.objects.get(customer=discounted, month=2)
        self.assertEqual(extended.discount_type, 'fixed')
        self.assertEqual(extended.discount_amount, Decimal('30.00'))
        self.assertEqual(extended.final_price, Decimal('270.00'))

    def test_wraps_year(self):
        december = make_customer(name='December')
        subscribe(december, self.plan, date(2023, 12, 1), date(2023, 12, 31))

        run = auto_extend(target_month=1, target_year=2024)
        self.assertEqual(run['source_period'], {'month': 12, 'year': 2023})
        self.assertEqual([outcome.customer_name for outcome in run['results'].succeeded], ['December'])

    def test_overlapping_target_subscription_is_skipped(self):
        other_plan = make_meal_plan(plan_code='LUNCH', base_price=Decimal('80.00'))
        subscribe(self.full, other_plan, date(2024, 2, 10), date(2024, 2, 20))

        results = auto_extend(target_month=2, target_year=2024)['results']
        self.assertEqual(results.succeeded, [])
        self.assertEqual(len(results.skipped), 1)
        self.assertIn('overlapping dates', results.skipped[0].reason)

    def test_one_failure_does_not_abort_batch(self):
        second = make_customer(name='Second Full')
        subscribe(second, self.plan, date(2024, 1, 1), date(2024, 1, 31))
        real_price = reconciliation.price_subscription

        def flaky(subscription):
            if subscription.customer_id == self.full.pk:
                raise ValueError('pricing unavailable')
            return real_price(subscription)

        with patch.object(reconciliation, 'price_subscription', side_effect=flaky):
            results = auto_extend(target_month=2, target_year=2024)['results']

        self.assertEqual([outcome.customer_name for outcome in results.succeeded], ['Second Full'])
        self.assertEqual(len(results.errors), 1)
        self.assertEqual(results.errors[0].reason, 'pricing unavailable')
        self.assertFalse(Subscription.objects.filter(customer=self.full, month=2).exists())

    def test_summary_and_payload(self):
        results = auto_extend(target_month=2, target_year=2024)['results']
        self.assertEqual(results.summary('Auto-extension'), 'Auto-extension completed. Extended: 1, Skipped: 0, Errors: 0')
        payload = results.as_dict()
        self.assertEqual(set(payload), {'extended', 'skipped', 'errors'})
        self.assertEqual(payload['extended'][0]['final_price'], '300.00')

    def test_candidate_listing(self):
        listing = list_extension_candidates(2, 2024)
        self.assertEqual([item['customer_name'] for item in listing['eligible']], ['Full Month'])
        self.assertFalse(listing['eligible'][0]['already_extended'])

        auto_extend(target_month=2, target_year=2024)
        listing = list_extension_candidates(2, 2024)
        self.assertTrue(listing['eligible'][0]['already_extended'])


# ===============================================================================
# BACKFILL
# ===============================================================================

class BackfillTestCase(TestCase):
    """Generating missing payments for active subscriptions"""

    def setUp(self):
        self.plan = make_meal_plan(base_price=Decimal('300.00'))
        self.customer = make_customer()

    def test_creates_missing_payment_with_engine_amount(self):
        subscription = subscribe_unbilled(self.customer, self.plan, date(2024, 2, 1), date(2024, 2, 15),
                                          discount={'type': 'percentage', 'value': 10})

        results = generate_missing_payments()

        self.assertEqual(len(results.succeeded), 1)
        payment = Payment.objects.get(subscription=subscription)
        self.assertEqual(payment.amount_due, Decimal('139.65'))
        self.assertEqual(payment.due_date, date(2024, 2, 20))
        self.assertTrue(payment.notes.startswith('Generated payment for'))

    def test_second_run_creates_nothing(self):
        subscribe_unbilled(self.customer, self.plan, date(2024, 2, 1), date(2024, 2, 15))
        subscribe_unbilled(make_customer(name='Second'), self.plan, date(2024, 2, 1), date(2024, 2, 29))

        first = generate_missing_payments()
        second = generate_missing_payments()

        self.assertEqual(len(first.succeeded), 2)
        self.assertEqual(len(second.succeeded), 0)
        self.assertEqual(len(second.skipped), 2)
        self.assertEqual(second.skipped[0].reason, 'Payment already exists')
        self.assertEqual(Payment.objects.count(), 2)

    def test_matches_unlinked_payment_on_exact_period(self):
        subscription = subscribe_unbilled(self.customer, self.plan, date(2024, 2, 1), date(2024, 2, 15))
        Payment.objects.create(
            customer=self.customer, month=2, year=2024,
            period_start=date(2024, 2, 1), period_end=date(2024, 2, 15),
            amount_due=Decimal('155.17'), due_date=date(2024, 2, 20),
        )

        results = generate_missing_payments()
        self.assertEqual(len(results.skipped), 1)
        self.assertFalse(Payment.objects.filter(subscription=subscription).exists())

    def test_unlinked_payment_for_other_period_does_not_match(self):
        subscribe_unbilled(self.customer, self.plan, date(2024, 2, 1), date(2024, 2, 15))
        Payment.objects.create(
            customer=self.customer, month=2, year=2024,
            period_start=date(2024, 2, 16), period_end=date(2024, 2, 29),
            amount_due=Decimal('144.83'), due_date=date(2024, 3, 5),
        )

        results = generate_missing_payments()
        self.assertEqual(len(results.succeeded), 1)

    def test_inactive_subscriptions_are_ignored(self):
        subscription = subscribe_unbilled(self.customer, self.plan, date(2024, 2, 1), date(2024, 2, 15))
        cancel_subscription(subscription)

        results = generate_missing_payments()
        self.assertEqual(results.outcomes, [])
        self.assertFalse(Payment.objects.exists())
