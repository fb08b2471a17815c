"""
Report and alert delivery over email.

Each recipient gets their own message so one bad address does not block
the others. A batch only fails when nobody could be reached.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List

from django.conf import settings
from django.core.mail import send_mail

from dashboards.exceptions import DeliveryFailure

logger = logging.getLogger(__name__)


@dataclass
class DeliveryResult:
    sent: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)

    def as_dict(self):
        return {'sent': list(self.sent), 'failed': dict(self.failed)}


class ReportDelivery:
    """Send rendered reports and alert batches by email."""

    def __init__(self, from_email=None):
        self.from_email = from_email or settings.DEFAULT_FROM_EMAIL

    def send(self, subject: str, body: str, recipients) -> DeliveryResult:
        """
        Email ``body`` to every recipient.

        Raises:
            DeliveryFailure if there are no recipients or none could be reached
        """
        recipients = [r.strip() for r in recipients or [] if r and r.strip()]
        if not recipients:
            raise DeliveryFailure('No recipients configured')

        result = DeliveryResult()
        for recipient in recipients:
            try:
                send_mail(
                    subject=subject,
                    message=body,
                    from_email=self.from_email,
                    recipient_list=[recipient],
                    fail_silently=False,
                )
                result.sent.append(recipient)
            except Exception as e:
                logger.error(f"Email send to {recipient} failed: {str(e)}")
                result.failed[recipient] = str(e)

        if not result.sent:
            raise DeliveryFailure(
                f"Could not deliver '{subject}' to any of {len(recipients)} recipient(s)",
                failed_recipients=result.failed,
            )

        logger.info(f"Delivered '{subject}' to {len(result.sent)} recipient(s), {len(result.failed)} failed")
        return result

    def send_report(self, report, recipients) -> DeliveryResult:
        subject, body = render_report_email(report)
        return self.send(subject, body, recipients)

    def send_alerts(self, organization_name, alerts, recipients) -> DeliveryResult:
        subject, body = render_alert_email(organization_name, alerts)
        return self.send(subject, body, recipients)


# =============================================================================
# RENDERING
# =============================================================================

def _fmt_rate(value):
    return f"{value * 100:.1f}%" if value is not None else 'n/a'


def render_report_email(report):
    meta = report.metadata
    date_range = meta['date_range']
    subject = (
        f"{meta['label']} - {meta['organization']['name']} "
        f"({date_range['start_date']} to {date_range['end_date']})"
    )

    lines = [
        f"{meta['label']} for {meta['organization']['name']}",
        f"Period: {date_range['start_date']} to {date_range['end_date']} ({date_range['days']} days)",
    ]
    if meta.get('cycle_position'):
        position = meta['cycle_position']
        lines.append(f"Cycle week {position['week']}, day {position['day_of_week']}")
    lines.append('')

    if report.production is not None:
        summary = report.production['summary']
        lines += [
            'PRODUCTION',
            f"  Total eggs: {summary['total_eggs']}",
            f"  Sellable eggs: {summary['sellable_eggs']}",
            f"  Loss: {summary['loss_percentage']:.1f}%",
            f"  Average daily: {summary['average_daily']:.0f} over {summary['days_recorded']} recorded days",
            f"  Efficiency: {_fmt_rate(summary['efficiency'])}",
            f"  Mortality: {summary['mortality']}",
            '',
        ]

    if report.attendance is not None:
        summary = report.attendance['summary']
        lines += [
            'ATTENDANCE',
            f"  Workers: {summary['total_workers']}",
            f"  Attendance rate: {_fmt_rate(summary['average_attendance_rate'])}",
            f"  Present / late / absent: {summary['present']} / {summary['late']} / {summary['absent']}",
            '',
        ]

    if report.alerts:
        lines.append('ALERTS')
        lines += [f"  [{alert['severity'].upper()}] {alert['message']}" for alert in report.alerts]
        lines.append('')

    if report.insights:
        comparison = report.insights.get('comparison')
        if comparison:
            lines.append(f"Trend: {comparison['description']}")
        lines.append('Recommendations:')
        lines += [f"  - {item}" for item in report.insights.get('recommendations', [])]
        lines.append('')

    lines += list(report.notes)
    return subject, '\n'.join(lines).strip() + '\n'


def render_alert_email(organization_name, alerts):
    critical = sum(1 for alert in alerts if alert.severity == 'critical')
    subject = f"{len(alerts)} farm alert(s) for {organization_name}"
    if critical:
        subject = f"[CRITICAL] {subject}"

    lines = [f"The following alerts were raised for {organization_name}:", '']
    for alert in alerts:
        lines.append(f"[{alert.severity.upper()}] {alert.scope_name} ({alert.date.isoformat()}): {alert.message}")
    return subject, '\n'.join(lines) + '\n'
