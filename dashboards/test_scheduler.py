"""
Tests for scheduled report delivery and alert notifications.

Covers occurrence math, at-most-once delivery under concurrent runs,
failure isolation and retry, and alert deduplication.
"""
import pytest
from io import StringIO
from datetime import date, datetime, time, timedelta
from smtplib import SMTPException
from unittest.mock import patch

from django.core.management import call_command
from django.utils import timezone

from dashboards.exceptions import ClaimConflict, DeliveryFailure
from dashboards.models import ReportDefinition
from dashboards.services.delivery import ReportDelivery
from dashboards.services.metrics import DateRange
from dashboards.services.notifications import AlertNotifier
from dashboards.services.scheduler import (
    ReportScheduler, due_occurrence, latest_occurrence, report_range,
)
from dashboards.tasks import process_due_reports


def local(*args):
    return timezone.make_aware(datetime(*args))


# 2024-01-08 is a Monday
NOW = local(2024, 1, 8, 9, 0)


@pytest.fixture
def make_definition(organization, owner):
    def _make_definition(name='Daily summary', frequency='daily', **kwargs):
        kwargs.setdefault('recipients', ['ops@example.com', 'owner@example.com'])
        kwargs.setdefault('report_type', 'comprehensive')
        definition = ReportDefinition.objects.create(
            organization=kwargs.pop('organization', organization),
            name=name,
            frequency=frequency,
            created_by=owner,
            **kwargs
        )
        # Definitions are created well before the occurrences under test
        ReportDefinition.objects.filter(pk=definition.pk).update(created_at=local(2023, 12, 1))
        definition.refresh_from_db()
        return definition
    return _make_definition


@pytest.fixture
def yesterday_production(shed, make_production):
    make_production(shed, date(2024, 1, 7), sellable=4000, broken=50)


class TestOccurrences:

    def test_daily_after_send_time(self):
        definition = ReportDefinition(frequency='daily', send_time=time(8, 0))
        assert latest_occurrence(definition, NOW) == local(2024, 1, 8, 8, 0)

    def test_daily_before_send_time_uses_yesterday(self):
        definition = ReportDefinition(frequency='daily', send_time=time(8, 0))
        assert latest_occurrence(definition, local(2024, 1, 8, 7, 59)) == local(2024, 1, 7, 8, 0)

    def test_weekly_anchors_on_weekday(self):
        definition = ReportDefinition(frequency='weekly', weekday=0, send_time=time(8, 0))
        assert latest_occurrence(definition, local(2024, 1, 11, 12, 0)) == local(2024, 1, 8, 8, 0)
        assert latest_occurrence(definition, local(2024, 1, 8, 7, 0)) == local(2024, 1, 1, 8, 0)

    def test_monthly_before_day_uses_previous_month(self):
        definition = ReportDefinition(frequency='monthly', day_of_month=1, send_time=time(8, 0))
        assert latest_occurrence(definition, local(2024, 1, 15, 0, 0)) == local(2024, 1, 1, 8, 0)
        assert latest_occurrence(definition, local(2024, 1, 1, 7, 0)) == local(2023, 12, 1, 8, 0)

    def test_report_ranges(self):
        assert report_range('daily', local(2024, 1, 8, 8, 0)) == DateRange(date(2024, 1, 7), date(2024, 1, 7))
        assert report_range('weekly', local(2024, 1, 8, 8, 0)) == DateRange(date(2024, 1, 1), date(2024, 1, 7))
        assert report_range('monthly', local(2024, 3, 1, 8, 0)) == DateRange(date(2024, 2, 1), date(2024, 2, 29))

    def test_monthly_day_past_month_end_falls_on_last_day(self):
        definition = ReportDefinition(frequency='monthly', day_of_month=31, send_time=time(8, 0))
        assert latest_occurrence(definition, local(2024, 2, 10, 9, 0)) == local(2024, 1, 31, 8, 0)
        assert latest_occurrence(definition, local(2024, 3, 1, 9, 0)) == local(2024, 2, 29, 8, 0)

    def test_monthly_range_crosses_year_end(self):
        assert report_range('monthly', local(2024, 1, 1, 8, 0)) == DateRange(date(2023, 12, 1), date(2023, 12, 31))

    def test_delivered_occurrence_is_not_due(self, make_definition):
        definition = make_definition(last_occurrence=local(2024, 1, 8, 8, 0))
        assert due_occurrence(definition, NOW) is None
        assert due_occurrence(definition, NOW + timedelta(days=1)) == local(2024, 1, 9, 8, 0)

    def test_occurrences_before_creation_are_not_due(self, make_definition):
        definition = make_definition()
        ReportDefinition.objects.filter(pk=definition.pk).update(created_at=NOW)
        definition.refresh_from_db()
        assert due_occurrence(definition, NOW) is None


class TestReportScheduler:

    def test_due_report_is_delivered(self, make_definition, yesterday_production, mailoutbox):
        definition = make_definition()

        run = ReportScheduler().process_due_reports(now=NOW)

        assert (run.evaluated, run.delivered, run.failed, run.skipped) == (1, 1, 0, 0)
        assert sorted(m.to[0] for m in mailoutbox) == ['ops@example.com', 'owner@example.com']
        assert '2024-01-07' in mailoutbox[0].subject
        assert 'Total eggs: 4050' in mailoutbox[0].body

        definition.refresh_from_db()
        assert definition.status == ReportDefinition.Status.DELIVERED
        assert definition.last_occurrence == local(2024, 1, 8, 8, 0)
        assert definition.claimed_occurrence is None
        assert definition.version == 2

    def test_second_run_does_not_resend(self, make_definition, yesterday_production, mailoutbox):
        make_definition()
        scheduler = ReportScheduler()

        scheduler.process_due_reports(now=NOW)
        run = scheduler.process_due_reports(now=NOW + timedelta(minutes=30))

        assert run.delivered == 0
        assert len(mailoutbox) == 2

    def test_next_occurrence_is_delivered_later(self, make_definition, yesterday_production, mailoutbox):
        make_definition()
        scheduler = ReportScheduler()

        scheduler.process_due_reports(now=NOW)
        run = scheduler.process_due_reports(now=NOW + timedelta(days=1))

        assert run.delivered == 1
        assert len(mailoutbox) == 4

    def test_stale_copy_loses_the_claim(self, make_definition):
        definition = make_definition()
        first = ReportDefinition.objects.get(pk=definition.pk)
        second = ReportDefinition.objects.get(pk=definition.pk)
        scheduler = ReportScheduler()
        occurrence = latest_occurrence(definition, NOW)

        scheduler.claim(first, occurrence, NOW)

        with pytest.raises(ClaimConflict):
            scheduler.claim(second, occurrence, NOW)
        outcome = scheduler.process_definition(second, occurrence, NOW)
        assert outcome['status'] == 'skipped'

    def test_overlapping_run_skips_claimed_occurrence(self, make_definition, yesterday_production, mailoutbox):
        make_definition()
        inner_runs = []

        class OverlappingDelivery(ReportDelivery):
            def send_report(self, report, recipients):
                inner_runs.append(ReportScheduler(delivery=ReportDelivery()).process_due_reports(now=NOW))
                return super().send_report(report, recipients)

        run = ReportScheduler(delivery=OverlappingDelivery()).process_due_reports(now=NOW)

        assert run.delivered == 1
        assert inner_runs[0].skipped == 1
        assert inner_runs[0].delivered == 0
        assert len(mailoutbox) == 2

    def test_abandoned_claim_is_taken_over(self, make_definition, yesterday_production, mailoutbox):
        definition = make_definition()
        ReportDefinition.objects.filter(pk=definition.pk).update(
            status=ReportDefinition.Status.PROCESSING,
            claimed_occurrence=local(2024, 1, 8, 8, 0),
            claimed_at=NOW - timedelta(hours=2),
            version=7,
        )

        run = ReportScheduler().process_due_reports(now=NOW)

        assert run.delivered == 1
        definition.refresh_from_db()
        assert definition.status == ReportDefinition.Status.DELIVERED

    def test_live_claim_is_respected(self, make_definition, mailoutbox):
        definition = make_definition()
        ReportDefinition.objects.filter(pk=definition.pk).update(
            status=ReportDefinition.Status.PROCESSING,
            claimed_occurrence=local(2024, 1, 8, 8, 0),
            claimed_at=NOW - timedelta(minutes=5),
        )

        run = ReportScheduler().process_due_reports(now=NOW)

        assert run.skipped == 1
        assert mailoutbox == []

    def test_one_failure_does_not_stop_the_batch(self, make_definition, yesterday_production, mailoutbox):
        broken = make_definition(name='Broken', recipients=['broken@example.com'])
        healthy = make_definition(name='Healthy', recipients=['ok@example.com'])

        def flaky_send_mail(subject, message, from_email, recipient_list, fail_silently):
            if recipient_list == ['broken@example.com']:
                raise SMTPException('mailbox unavailable')
            return 1

        with patch('dashboards.services.delivery.send_mail', side_effect=flaky_send_mail):
            run = ReportScheduler().process_due_reports(now=NOW)

        assert (run.delivered, run.failed) == (1, 1)
        broken.refresh_from_db()
        healthy.refresh_from_db()
        assert broken.status == ReportDefinition.Status.FAILED
        assert broken.failure_count == 1
        assert broken.last_error.startswith('Could not deliver')
        assert broken.last_occurrence is None
        assert healthy.status == ReportDefinition.Status.DELIVERED

    def test_evaluation_error_does_not_stop_the_batch(self, make_definition, yesterday_production, mailoutbox):
        broken = make_definition(name='Broken', recipients=['broken@example.com'])
        make_definition(name='Healthy', recipients=['ok@example.com'])

        def failing_due_occurrence(definition, now):
            if definition.pk == broken.pk:
                raise RuntimeError('corrupt schedule')
            return due_occurrence(definition, now)

        with patch('dashboards.services.scheduler.due_occurrence', side_effect=failing_due_occurrence):
            run = ReportScheduler().process_due_reports(now=NOW)

        assert (run.evaluated, run.delivered, run.failed) == (2, 1, 1)
        assert [m.to for m in mailoutbox] == [['ok@example.com']]
        failed = next(r for r in run.results if r['name'] == 'Broken')
        assert failed['error'] == 'corrupt schedule'

    def test_month_end_definition_runs_alongside_daily(self, make_definition, yesterday_production, mailoutbox):
        month_end = make_definition(name='Month end', frequency='monthly', day_of_month=31,
                                    recipients=['finance@example.com'])
        make_definition(name='Daily', recipients=['ops@example.com'])

        run = ReportScheduler().process_due_reports(now=local(2024, 2, 8, 9, 0))

        assert (run.evaluated, run.delivered, run.failed) == (2, 2, 0)
        assert sorted(m.to[0] for m in mailoutbox) == ['finance@example.com', 'ops@example.com']
        month_end.refresh_from_db()
        assert month_end.last_occurrence == local(2024, 1, 31, 8, 0)

    def test_failed_occurrence_is_retried(self, make_definition, yesterday_production, mailoutbox):
        definition = make_definition(recipients=['ops@example.com'])

        with patch('dashboards.services.delivery.send_mail', side_effect=SMTPException('down')):
            ReportScheduler().process_due_reports(now=NOW)
        run = ReportScheduler().process_due_reports(now=NOW + timedelta(minutes=60))

        assert run.delivered == 1
        definition.refresh_from_db()
        assert definition.status == ReportDefinition.Status.DELIVERED
        assert definition.failure_count == 0
        assert definition.last_error == ''
        assert len(mailoutbox) == 1

    def test_partial_delivery_counts_as_delivered(self, make_definition, yesterday_production):
        make_definition(recipients=['ops@example.com', 'bad@example.com'])

        def flaky_send_mail(subject, message, from_email, recipient_list, fail_silently):
            if recipient_list == ['bad@example.com']:
                raise SMTPException('rejected')
            return 1

        with patch('dashboards.services.delivery.send_mail', side_effect=flaky_send_mail):
            run = ReportScheduler().process_due_reports(now=NOW)

        outcome = run.results[0]
        assert outcome['status'] == 'delivered'
        assert outcome['sent'] == ['ops@example.com']
        assert list(outcome['failed']) == ['bad@example.com']

    def test_inactive_definitions_are_ignored(self, make_definition, mailoutbox):
        make_definition(is_active=False)
        run = ReportScheduler().process_due_reports(now=NOW)
        assert run.evaluated == 0
        assert mailoutbox == []

    def test_scoped_definition_reports_only_its_farm(self, make_definition, farm, yesterday_production,
                                                     other_shed, make_production, mailoutbox):
        make_production(other_shed, date(2024, 1, 7), sellable=9999)
        make_definition(farm=farm, frequency='weekly', weekday=0)

        ReportScheduler().process_due_reports(now=NOW)

        assert 'Total eggs: 4050' in mailoutbox[0].body
        assert '(2024-01-01 to 2024-01-07)' in mailoutbox[0].subject


class TestDelivery:

    def test_no_recipients_is_a_failure(self):
        with pytest.raises(DeliveryFailure):
            ReportDelivery().send('Subject', 'Body', [])

    def test_every_recipient_failing_raises(self):
        with patch('dashboards.services.delivery.send_mail', side_effect=SMTPException('down')):
            with pytest.raises(DeliveryFailure) as excinfo:
                ReportDelivery().send('Subject', 'Body', ['a@example.com', 'b@example.com'])
        assert set(excinfo.value.failed_recipients) == {'a@example.com', 'b@example.com'}


class TestAlertNotifier:

    TODAY = date(2024, 1, 8)

    def test_alerts_are_sent_to_owners_and_managers(self, owner, shed, make_user, organization, mailoutbox):
        make_user(organization, 'worker')

        result = AlertNotifier().send_alert_notifications(organization.id, today=self.TODAY)

        assert result['status'] == 'sent'
        assert result['alerts'] >= 1
        assert sorted(m.to[0] for m in mailoutbox) == ['manager@example.com', 'owner@example.com']
        assert 'No production recorded for Shed A' in mailoutbox[0].body

    def test_same_alerts_are_sent_once_per_day(self, owner, shed, organization, mailoutbox):
        notifier = AlertNotifier()

        notifier.send_alert_notifications(organization.id, today=self.TODAY)
        second = notifier.send_alert_notifications(organization.id, today=self.TODAY)

        assert second['status'] == 'duplicate'
        assert len(mailoutbox) == 2

    def test_organization_without_alerts(self, organization, owner, mailoutbox):
        result = AlertNotifier().send_alert_notifications(organization.id, today=self.TODAY)
        assert result['status'] == 'no_alerts'
        assert mailoutbox == []

    def test_organization_without_recipients(self, organization, shed, manager, mailoutbox):
        manager.is_active = False
        manager.save()

        result = AlertNotifier().send_alert_notifications(organization.id, today=self.TODAY)

        assert result['status'] == 'no_recipients'

    def test_failed_delivery_can_be_retried(self, organization, owner, shed, mailoutbox):
        notifier = AlertNotifier()

        with patch('dashboards.services.delivery.send_mail', side_effect=SMTPException('down')):
            with pytest.raises(DeliveryFailure):
                notifier.send_alert_notifications(organization.id, today=self.TODAY)
        result = notifier.send_alert_notifications(organization.id, today=self.TODAY)

        assert result['status'] == 'sent'
        assert len(mailoutbox) == 2

    def test_fan_out_isolates_failures(self, organization, owner, shed, other_organization, other_shed, make_user):
        make_user(other_organization, 'boss', role='OWNER', email='boss@other.example')

        def flaky_send_mail(subject, message, from_email, recipient_list, fail_silently):
            if recipient_list[0].endswith('@other.example'):
                raise SMTPException('unreachable')
            return 1

        with patch('dashboards.services.delivery.send_mail', side_effect=flaky_send_mail):
            summary = AlertNotifier().send_alert_notifications_for_all(today=self.TODAY)

        assert (summary['organizations'], summary['succeeded'], summary['failed']) == (2, 1, 1)
        statuses = {r['organization']: r['status'] for r in summary['results']}
        assert statuses == {'Other Farms Ltd': 'failed', 'Sunrise Poultry': 'sent'}

        # The failed organization's batch was not marked as sent
        retry = AlertNotifier().send_alert_notifications(other_organization.id, today=self.TODAY)
        assert retry['status'] == 'sent'


class TestEntryPoints:

    def test_task_reports_success(self, make_definition, yesterday_production, mailoutbox):
        make_definition()
        with patch('dashboards.services.scheduler.timezone.now', return_value=NOW):
            result = process_due_reports()

        assert result['status'] == 'success'
        assert result['delivered'] == 1

    def test_management_command(self, make_definition, yesterday_production, mailoutbox):
        make_definition(name='Morning summary')
        out = StringIO()
        with patch('dashboards.services.scheduler.timezone.now', return_value=NOW):
            call_command('process_due_reports', stdout=out)

        assert '1 delivered' in out.getvalue()
        assert 'Morning summary' in out.getvalue()
