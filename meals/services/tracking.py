import logging

from django.utils import timezone

from billing.models import Subscription
from meals.models import DailyMealTracking, default_tracked_meals
from .meal_slots import DELIVERY_TIME_OPTIONS, MEAL_TYPES, STANDARD

logger = logging.getLogger(__name__)


def active_subscriptions_on(day, customer_id=None):
    queryset = Subscription.objects.filter(
        status='active',
        start_date__lte=day,
        end_date__gte=day,
    ).select_related('customer', 'meal_plan')
    if customer_id:
        queryset = queryset.filter(customer_id=customer_id)
    return queryset


def mark_attendance(customer, day, meal_type, attended, recorded_by=None):
    """
    Record whether a customer received and ate one meal on ``day``.

    Raises ValueError when the meal type is unknown or the customer has no
    active subscription covering the day.
    """
    if meal_type not in MEAL_TYPES:
        raise ValueError(f'Invalid meal type: {meal_type}')

    subscription = active_subscriptions_on(day, customer_id=customer.pk).order_by('start_date').first()
    if subscription is None:
        raise ValueError('No active subscription found for this customer and date')

    record, created = DailyMealTracking.objects.get_or_create(
        customer=customer,
        date=day,
        defaults={'subscription': subscription, 'meals': default_tracked_meals()},
    )
    previous = record.meals.get(meal_type) or {}
    record.meals[meal_type] = {
        'served': attended,
        'consumed': attended,
        'servedTime': timezone.now().isoformat() if attended else None,
        'notes': previous.get('notes', ''),
    }
    record.recorded_by = recorded_by
    record.save()

    logger.info(f"Marked {meal_type} {'attended' if attended else 'missed'} for customer {customer.pk} on {day}")
    return record


def _empty_breakdown():
    return {
        meal_type: {
            slot: {'delivery_time': option['time'], 'count': 0, 'customers': []}
            for slot, option in options.items()
        }
        for meal_type, options in DELIVERY_TIME_OPTIONS.items()
    }


def delivery_time_breakdown(day=None):
    """Customers to deliver to on ``day``, grouped by meal type and delivery slot."""
    day = day or timezone.localdate()
    breakdown = _empty_breakdown()

    for subscription in active_subscriptions_on(day):
        customer = subscription.customer
        for meal_type, slot in subscription.get_effective_meals().items():
            bucket = breakdown[meal_type].get(slot.delivery_time)
            if not slot.enabled or bucket is None:
                continue
            bucket['customers'].append({
                'id': customer.pk,
                'name': customer.name,
                'phone': customer.phone,
                'email': customer.email,
            })
            bucket['count'] += 1

    summary = {
        meal_type: {
            'total_customers': sum(bucket['count'] for bucket in slots.values()),
            'delivery_slots': len(slots),
        }
        for meal_type, slots in breakdown.items()
    }
    return {'date': day, 'breakdown': breakdown, 'summary': summary}


def delivery_report(day, meal_type='lunch', delivery_time=STANDARD, customer_id=None):
    """
    Delivery run sheet for one meal on ``day``, sorted by building then name.

    ``delivery_time='all'`` includes every slot.
    """
    if meal_type not in MEAL_TYPES:
        raise ValueError(f'Invalid meal type: {meal_type}')

    options = DELIVERY_TIME_OPTIONS[meal_type]
    plan = []
    for subscription in active_subscriptions_on(day, customer_id=customer_id):
        slot = subscription.get_effective_meals()[meal_type]
        if not slot.enabled:
            continue
        if delivery_time != 'all' and slot.delivery_time != delivery_time:
            continue
        customer = subscription.customer
        option = options.get(slot.delivery_time, options[STANDARD])
        plan.append({
            'subscription_id': subscription.pk,
            'customer': {
                'id': customer.pk,
                'name': customer.name,
                'phone': customer.phone,
                'building_name': customer.building_name,
                'flat_number': customer.flat_number,
                'area': customer.area,
                'notes': customer.notes,
                'full_address': customer.get_full_address(),
            },
            'meal_plan': {'id': subscription.meal_plan_id, 'name': subscription.meal_plan.plan_name},
            'delivery_time': slot.delivery_time,
            'delivery_time_display': option['time'],
        })

    # Customers without a building go last
    plan.sort(key=lambda item: (
        not item['customer']['building_name'],
        item['customer']['building_name'].lower(),
        item['customer']['name'].lower(),
    ))

    slots = {}
    for item in plan:
        entry = slots.setdefault(item['delivery_time'], {
            'time_slot': item['delivery_time'],
            'display_time': item['delivery_time_display'],
            'count': 0,
            'customers': [],
        })
        entry['count'] += 1
        entry['customers'].append(item['customer']['name'])

    areas = sorted({item['customer']['area'] for item in plan if item['customer']['area']})
    return {
        'delivery_plan': plan,
        'summary': {
            'date': day,
            'meal_type': meal_type,
            'total_deliveries': len(plan),
            'delivery_time_breakdown': list(slots.values()),
            'areas': areas,
        },
    }


def attendance_stats(day=None):
    """Expected versus attended meals for ``day``."""
    day = day or timezone.localdate()
    stats = {meal_type: {'expected': 0, 'attended': 0} for meal_type in MEAL_TYPES}

    for subscription in active_subscriptions_on(day):
        for meal_type, slot in subscription.get_effective_meals().items():
            if slot.enabled:
                stats[meal_type]['expected'] += 1

    for record in DailyMealTracking.objects.filter(date=day):
        for meal_type in MEAL_TYPES:
            meal = record.meals.get(meal_type) or {}
            if meal.get('served') and meal.get('consumed'):
                stats[meal_type]['attended'] += 1

    total_expected = sum(item['expected'] for item in stats.values())
    total_attended = sum(item['attended'] for item in stats.values())
    rate = round(total_attended * 100 / total_expected) if total_expected else 0
    return {
        'date': day,
        'total_expected': total_expected,
        'total_attended': total_attended,
        'attendance_rate': rate,
        **stats,
    }
