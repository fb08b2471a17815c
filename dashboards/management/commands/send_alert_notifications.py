"""
Send Alert Notifications Management Command

    python manage.py send_alert_notifications
    python manage.py send_alert_notifications --organization <uuid>
"""

from django.core.management.base import BaseCommand, CommandError
from accounts.models import Organization
from dashboards.exceptions import DeliveryFailure
from dashboards.services.notifications import AlertNotifier


class Command(BaseCommand):
    help = 'Email current production alerts to organization owners and managers'

    def add_arguments(self, parser):
        parser.add_argument(
            '--organization',
            help='Only notify this organization (UUID)',
        )

    def handle(self, *args, **options):
        notifier = AlertNotifier()

        if options['organization']:
            try:
                result = notifier.send_alert_notifications(options['organization'])
            except Organization.DoesNotExist:
                raise CommandError(f"Organization {options['organization']} not found")
            except DeliveryFailure as e:
                raise CommandError(str(e))
            self.stdout.write(self.style.SUCCESS(
                f"{result['organization']}: {result['status']} ({result['alerts']} alert(s))"
            ))
            return

        summary = notifier.send_alert_notifications_for_all()
        for result in summary['results']:
            if result['status'] == 'failed':
                self.stdout.write(self.style.ERROR(f"{result['organization']}: {result['error']}"))
            else:
                self.stdout.write(f"{result['organization']}: {result['status']}")
        self.stdout.write(self.style.SUCCESS(
            f"✓ {summary['succeeded']} succeeded, {summary['failed']} failed"
        ))
