"""
Read-only aggregations over subscriptions and payments.
"""
import calendar
from datetime import timedelta
from decimal import Decimal

from django.db.models import Count, DecimalField, Q, Sum, Value
from django.db.models.functions import Coalesce
from django.utils import timezone

from billing.models import Payment, Subscription
from .proration import round_money
from .reconciliation import quote_subscription

ZERO = Value(Decimal('0'), output_field=DecimalField(max_digits=12, decimal_places=2))


def collection_percentage(total_due, total_paid):
    if not total_due:
        return Decimal('0.00')
    return round_money(Decimal(total_paid) / Decimal(total_due) * 100)


def _totals(queryset):
    totals = queryset.aggregate(
        total_due=Coalesce(Sum('amount_due'), ZERO),
        total_paid=Coalesce(Sum('amount_paid'), ZERO),
    )
    totals['pending_amount'] = totals['total_due'] - totals['total_paid']
    totals['collection_percentage'] = collection_percentage(totals['total_due'], totals['total_paid'])
    return totals


def _status_stats(queryset):
    return list(
        queryset.values('payment_status')
        .annotate(count=Count('id'), amount=Coalesce(Sum('amount_due'), ZERO))
        .order_by('payment_status')
    )


# =============================================================================
# SUBSCRIPTIONS
# =============================================================================

def subscription_stats(today=None):
    """
    Headline subscription numbers.

    Revenue for the current month is re-derived through the proration
    engine for each active subscription tagged with the current month.
    """
    today = today or timezone.localdate()
    active_this_month = Subscription.objects.filter(status='active', month=today.month, year=today.year)

    monthly_revenue = sum(
        (quote_subscription(subscription).final_amount for subscription in active_this_month),
        Decimal('0.00'),
    )
    status_stats = list(
        Subscription.objects.values('status').annotate(count=Count('id')).order_by('status')
    )
    return {
        'total_count': Subscription.objects.count(),
        'active_count': active_this_month.count(),
        'monthly_revenue': monthly_revenue,
        'status_stats': status_stats,
    }


def weekly_subscription_report(today=None, days=3):
    """Subscriptions starting or ending within ``days`` either side of today."""
    today = today or timezone.localdate()
    window_start, window_end = today - timedelta(days=days), today + timedelta(days=days)
    live = Subscription.objects.filter(status__in=['active', 'paused']).select_related('customer', 'meal_plan')

    newly_activated = list(live.filter(start_date__range=(window_start, window_end)).order_by('start_date'))
    expiring = list(live.filter(end_date__range=(window_start, window_end)).order_by('end_date'))
    return {
        'date_range': {'from': window_start, 'to': window_end},
        'summary': {
            'total_newly_activated': len(newly_activated),
            'total_expiring': len(expiring),
            'net_change': len(newly_activated) - len(expiring),
        },
        'newly_activated': newly_activated,
        'expiring': expiring,
    }


# =============================================================================
# PAYMENTS
# =============================================================================

def payment_stats(month=None, year=None, today=None):
    today = today or timezone.localdate()
    month, year = month or today.month, year or today.year
    payments = Payment.objects.all()

    current = payments.filter(month=today.month, year=today.year)
    requested = payments.filter(month=month, year=year)

    trend_since = today - timedelta(days=183)
    monthly_trend = list(
        payments.filter(created_at__date__gte=trend_since, payment_status='paid')
        .values('year', 'month')
        .annotate(total_collected=Coalesce(Sum('amount_paid'), ZERO), count=Count('id'))
        .order_by('year', 'month')
    )

    return {
        'overall': {
            'total_payments': payments.count(),
            'total_amount': payments.aggregate(total=Coalesce(Sum('amount_due'), ZERO))['total'],
            'status_stats': _status_stats(payments),
        },
        'current_month': {**_totals(current), 'status_stats': _status_stats(current)},
        'requested_month': {
            'month': month,
            'year': year,
            **_totals(requested),
            'status_stats': _status_stats(requested),
        },
        'overdue_payments': payments.filter(payment_status='overdue').count(),
        'monthly_trend': monthly_trend,
    }


def monthly_report(month, year):
    payments = (
        Payment.objects.filter(month=month, year=year)
        .select_related('customer')
        .order_by('customer__name')
    )
    totals = _totals(payments)
    status_breakdown = {row['payment_status']: row['count'] for row in _status_stats(payments)}
    return {
        'summary': {
            'month': month,
            'year': year,
            'total_customers': payments.count(),
            'total_due': totals['total_due'],
            'total_paid': totals['total_paid'],
            'total_pending': totals['pending_amount'],
            'collection_percentage': totals['collection_percentage'],
            'status_breakdown': status_breakdown,
        },
        'payments': list(payments),
    }


def yearly_report(year):
    rows = (
        Payment.objects.filter(year=year)
        .values('month')
        .annotate(
            total_due=Coalesce(Sum('amount_due'), ZERO),
            total_paid=Coalesce(Sum('amount_paid'), ZERO),
            customer_count=Count('id'),
            paid_count=Count('id', filter=Q(payment_status='paid')),
            partial_count=Count('id', filter=Q(payment_status='partial')),
            pending_count=Count('id', filter=Q(payment_status='pending')),
            overdue_count=Count('id', filter=Q(payment_status='overdue')),
        )
        .order_by('month')
    )

    breakdown = []
    total_due = total_paid = Decimal('0.00')
    for row in rows:
        total_due += row['total_due']
        total_paid += row['total_paid']
        breakdown.append({
            'month': row['month'],
            'month_name': calendar.month_name[row['month']],
            'total_due': row['total_due'],
            'total_paid': row['total_paid'],
            'customer_count': row['customer_count'],
            'collection_percentage': collection_percentage(row['total_due'], row['total_paid']),
            'status_breakdown': {
                'paid': row['paid_count'],
                'partial': row['partial_count'],
                'pending': row['pending_count'],
                'overdue': row['overdue_count'],
            },
        })

    return {
        'year': year,
        'summary': {
            'total_due': total_due,
            'total_paid': total_paid,
            'total_pending': total_due - total_paid,
            'collection_percentage': collection_percentage(total_due, total_paid),
        },
        'monthly_breakdown': breakdown,
    }
