"""
Dashboard Celery tasks.

Scheduled report delivery and alert notifications. Both are scheduled via
Celery Beat and are safe to run more than once for the same period.
"""
from celery import shared_task
from django.utils import timezone
import logging

logger = logging.getLogger(__name__)


@shared_task
def process_due_reports():
    """
    Compile and email every scheduled report whose occurrence is due.

    Scheduled via Celery Beat every hour.
    """
    from dashboards.services.scheduler import ReportScheduler

    logger.info("Processing due scheduled reports...")

    try:
        result = ReportScheduler().process_due_reports()
        return {
            'status': 'success',
            'timestamp': timezone.now().isoformat(),
            **result.as_dict(),
        }
    except Exception as exc:
        logger.error(f"Scheduled report processing failed: {exc}")
        return {'status': 'error', 'error': str(exc)}


@shared_task
def send_alert_notifications():
    """
    Email current alerts to owners and managers of every organization.

    Scheduled via Celery Beat every four hours.
    """
    from dashboards.services.notifications import AlertNotifier

    logger.info("Sending alert notifications...")

    try:
        summary = AlertNotifier().send_alert_notifications_for_all()
        return {
            'status': 'success',
            'timestamp': timezone.now().isoformat(),
            **summary,
        }
    except Exception as exc:
        logger.error(f"Alert notification batch failed: {exc}")
        return {'status': 'error', 'error': str(exc)}


@shared_task
def send_organization_alerts(organization_id):
    """Send alert notifications for a single organization."""
    from dashboards.services.notifications import AlertNotifier

    try:
        result = AlertNotifier().send_alert_notifications(organization_id)
        return {'status': 'success', **result}
    except Exception as exc:
        logger.error(f"Alert notifications for organization {organization_id} failed: {exc}")
        return {'status': 'error', 'organization_id': str(organization_id), 'error': str(exc)}
