"""
Alert notifications for owners and managers.

Classifies each organization's current alerts and emails them. The same
batch of alerts is sent at most once per organization and day; the cache
``add`` is the lock that guarantees it across concurrent runs.
"""

import hashlib
import logging
from datetime import date

from django.core.cache import cache
from django.utils import timezone

from dashboards.conf import scheduler_setting
from dashboards.exceptions import DeliveryFailure
from dashboards.services.alerts import AlertClassifier, lookback_start
from dashboards.services.delivery import ReportDelivery
from dashboards.services.metrics import DateRange, MetricAggregator
from dashboards.services.scopes import Scope

logger = logging.getLogger(__name__)


def alert_digest(alerts) -> str:
    fingerprint = '|'.join(
        sorted(f"{a.kind}:{a.scope_type}:{a.scope_id}:{a.date.isoformat()}" for a in alerts)
    )
    return hashlib.sha256(fingerprint.encode()).hexdigest()[:16]


class AlertNotifier:
    """
    Usage:
        notifier = AlertNotifier()
        notifier.send_alert_notifications(organization.id)
        summary = notifier.send_alert_notifications_for_all()
    """

    def __init__(self, delivery: ReportDelivery = None, classifier: AlertClassifier = None):
        self.delivery = delivery or ReportDelivery()
        self.classifier = classifier or AlertClassifier()

    def recipients(self, organization_id):
        from accounts.models import User

        return list(
            User.objects.filter(
                organization_id=organization_id,
                is_active=True,
                role__in=[User.UserRole.OWNER, User.UserRole.MANAGER],
            )
            .exclude(email='')
            .order_by('email')
            .values_list('email', flat=True)
        )

    def send_alert_notifications(self, organization_id, today: date = None) -> dict:
        """
        Email the organization's current alerts to its owners and managers.

        Raises:
            DeliveryFailure when no recipient could be reached
        """
        from accounts.models import Organization

        organization = Organization.objects.get(id=organization_id)
        today = today or timezone.localdate()

        aggregate = MetricAggregator(organization.id, Scope.all_org()).aggregate(
            DateRange(lookback_start(today), today)
        )
        alerts = self.classifier.classify(aggregate, as_of=today)

        result = {
            'organization_id': str(organization.id),
            'organization': organization.name,
            'alerts': len(alerts),
        }
        if not alerts:
            result['status'] = 'no_alerts'
            return result

        recipients = self.recipients(organization.id)
        if not recipients:
            logger.warning(f"No alert recipients for organization {organization.id}")
            result['status'] = 'no_recipients'
            return result

        lock_key = f"alerts:{organization.id}:{today.isoformat()}:{alert_digest(alerts)}"
        if not cache.add(lock_key, timezone.now().isoformat(), scheduler_setting('ALERT_DEDUP_SECONDS')):
            logger.info(f"Alerts for organization {organization.id} already sent today")
            result['status'] = 'duplicate'
            return result

        try:
            delivery = self.delivery.send_alerts(organization.name, alerts, recipients)
        except DeliveryFailure:
            # Let the next run retry this batch
            cache.delete(lock_key)
            raise

        result['status'] = 'sent'
        result.update(delivery.as_dict())
        return result

    def send_alert_notifications_for_all(self, today: date = None) -> dict:
        """Fan out over every organization; one failure never stops the batch."""
        from accounts.models import Organization

        summary = {'organizations': 0, 'succeeded': 0, 'failed': 0, 'results': []}
        for organization in Organization.objects.order_by('name', 'id'):
            summary['organizations'] += 1
            try:
                result = self.send_alert_notifications(organization.id, today=today)
                summary['succeeded'] += 1
            except Exception as exc:
                logger.exception(f"Alert notifications failed for organization {organization.id}")
                result = {
                    'organization_id': str(organization.id),
                    'organization': organization.name,
                    'status': 'failed',
                    'error': str(exc),
                }
                summary['failed'] += 1
            summary['results'].append(result)

        logger.info(
            f"Alert notifications: {summary['succeeded']} succeeded, "
            f"{summary['failed']} failed of {summary['organizations']}"
        )
        return summary
