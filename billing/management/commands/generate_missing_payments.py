from django.core.management.base import BaseCommand

from billing.services.reconciliation import generate_missing_payments


class Command(BaseCommand):
    help = 'Create payment records for active subscriptions that do not have one'

    def handle(self, *args, **options):
        results = generate_missing_payments()
        for outcome in results.succeeded:
            self.stdout.write(f"  Created payment for {outcome.customer_name}: {outcome.details['amount']}")
        for outcome in results.errors:
            self.stdout.write(self.style.ERROR(f"  Error for {outcome.customer_name}: {outcome.reason}"))
        self.stdout.write(self.style.SUCCESS(results.summary('Payment generation')))
