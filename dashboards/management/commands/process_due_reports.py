"""
Process Due Reports Management Command

Cron alternative to the Celery beat schedule. Run it hourly:

    0 * * * * cd /path/to/farm-analytics && python manage.py process_due_reports
"""

from django.core.management.base import BaseCommand
from django.utils import timezone
from dashboards.services.scheduler import ReportScheduler


class Command(BaseCommand):
    help = 'Compile and deliver every scheduled report whose occurrence is due'

    def handle(self, *args, **options):
        self.stdout.write(f'[{timezone.now().strftime("%Y-%m-%d %H:%M:%S")}] Processing due reports...')

        result = ReportScheduler().process_due_reports()

        self.stdout.write(
            f'{result.evaluated} evaluated, {result.delivered} delivered, '
            f'{result.failed} failed, {result.skipped} skipped'
        )
        for outcome in result.results:
            line = f"  {outcome['name']} ({outcome['occurrence']}): {outcome['status']}"
            if outcome['status'] == 'failed':
                self.stdout.write(self.style.ERROR(f"{line} - {outcome.get('error', '')}"))
            elif outcome['status'] == 'delivered':
                self.stdout.write(self.style.SUCCESS(line))
            else:
                self.stdout.write(self.style.WARNING(line))
