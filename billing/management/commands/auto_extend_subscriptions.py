from django.core.management.base import BaseCommand

from billing.services.reconciliation import auto_extend


class Command(BaseCommand):
    help = 'Roll full-month subscriptions from the previous month into the target month'

    def add_arguments(self, parser):
        parser.add_argument('--month', type=int, help='Target month (1-12); defaults to the current month')
        parser.add_argument('--year', type=int, help='Target year; defaults to the current year')

    def handle(self, *args, **options):
        run = auto_extend(target_month=options['month'], target_year=options['year'])
        results = run['results']
        target = run['target_period']
        source = run['source_period']

        self.stdout.write(f"Extending {source['month']}/{source['year']} -> {target['month']}/{target['year']}")
        for outcome in results.skipped:
            self.stdout.write(self.style.WARNING(f"  Skipped {outcome.customer_name}: {outcome.reason}"))
        for outcome in results.errors:
            self.stdout.write(self.style.ERROR(f"  Error for {outcome.customer_name}: {outcome.reason}"))
        self.stdout.write(self.style.SUCCESS(results.summary('Auto-extension')))
