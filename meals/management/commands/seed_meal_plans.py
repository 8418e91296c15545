from decimal import Decimal

from django.conf import settings
from django.core.management.base import BaseCommand

from meals.models import MealPlan

DEFAULT_PLANS = [
    {
        'plan_code': 'BASIC',
        'plan_name': 'Basic Plan',
        'description': 'Breakfast and lunch delivered daily',
        'meals': {
            'breakfast': {'enabled': True, 'deliveryTime': 'standard'},
            'lunch': {'enabled': True, 'deliveryTime': 'standard'},
            'dinner': {'enabled': False, 'deliveryTime': 'standard'},
        },
        'base_price': Decimal('150.00'),
    },
    {
        'plan_code': 'PREMIUM',
        'plan_name': 'Premium Plan',
        'description': 'All three meals delivered daily',
        'meals': {
            'breakfast': {'enabled': True, 'deliveryTime': 'standard'},
            'lunch': {'enabled': True, 'deliveryTime': 'standard'},
            'dinner': {'enabled': True, 'deliveryTime': 'standard'},
        },
        'base_price': Decimal('250.00'),
    },
    {
        'plan_code': 'LUNCH',
        'plan_name': 'Lunch Only',
        'description': 'Lunch delivered daily',
        'meals': {
            'breakfast': {'enabled': False, 'deliveryTime': 'standard'},
            'lunch': {'enabled': True, 'deliveryTime': 'standard'},
            'dinner': {'enabled': False, 'deliveryTime': 'standard'},
        },
        'base_price': Decimal('80.00'),
    },
]


class Command(BaseCommand):
    help = 'Create the default meal plans (Basic, Premium, Lunch Only) if they do not exist'

    def handle(self, *args, **options):
        created_count = 0
        for plan in DEFAULT_PLANS:
            defaults = {key: value for key, value in plan.items() if key != 'plan_code'}
            defaults.update({'currency': settings.DEFAULT_CURRENCY, 'created_by': 'System'})
            _, created = MealPlan.objects.get_or_create(plan_code=plan['plan_code'], defaults=defaults)
            if created:
                created_count += 1
                self.stdout.write(f"  Created {plan['plan_name']} ({plan['plan_code']})")
            else:
                self.stdout.write(f"  Skipped {plan['plan_code']} (already exists)")

        self.stdout.write(self.style.SUCCESS(f'Seeded {created_count} meal plan(s).'))
