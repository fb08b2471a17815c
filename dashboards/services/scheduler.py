"""
Report Scheduler

Finds recurring report definitions whose latest occurrence has not been
delivered yet, claims each occurrence with a compare-and-swap on the
definition's ``version``, then compiles and emails the report.

State per definition: idle -> due -> processing -> delivered, or failed
(retried on the next run). A run never stops on one definition's failure.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import List, Optional

from dateutil.relativedelta import relativedelta
from django.db.models import F
from django.utils import timezone

from dashboards.conf import scheduler_setting
from dashboards.exceptions import ClaimConflict
from dashboards.services.delivery import ReportDelivery
from dashboards.services.metrics import DateRange
from dashboards.services.reports import ReportCompiler

logger = logging.getLogger(__name__)


# =============================================================================
# OCCURRENCE MATH
# =============================================================================

def _at(on: date, send_time, tz):
    return timezone.make_aware(datetime.combine(on, send_time), tz)


def latest_occurrence(definition, now: datetime) -> datetime:
    """
    Latest scheduled occurrence of ``definition`` at or before ``now``.

    A monthly ``day_of_month`` past the end of a short month falls on that
    month's last day.
    """
    tz = timezone.get_current_timezone()
    local_now = timezone.localtime(now, tz)
    today = local_now.date()
    frequency = definition.frequency

    if frequency == 'daily':
        candidate = _at(today, definition.send_time, tz)
        if candidate > now:
            candidate = _at(today - timedelta(days=1), definition.send_time, tz)
    elif frequency == 'weekly':
        anchor = today - timedelta(days=(today.weekday() - definition.weekday) % 7)
        candidate = _at(anchor, definition.send_time, tz)
        if candidate > now:
            candidate = _at(anchor - timedelta(days=7), definition.send_time, tz)
    elif frequency == 'monthly':
        anchor = today + relativedelta(day=definition.day_of_month)
        candidate = _at(anchor, definition.send_time, tz)
        if candidate > now:
            previous = today + relativedelta(months=-1, day=definition.day_of_month)
            candidate = _at(previous, definition.send_time, tz)
    else:
        raise ValueError(f"Unknown frequency: {frequency}")

    return candidate


def report_range(frequency: str, occurrence: datetime) -> DateRange:
    """Date range a report covers for one occurrence."""
    occurred_on = timezone.localtime(occurrence).date()
    if frequency == 'daily':
        day = occurred_on - timedelta(days=1)
        return DateRange(day, day)
    if frequency == 'weekly':
        return DateRange(occurred_on - timedelta(days=7), occurred_on - timedelta(days=1))
    if frequency == 'monthly':
        first = occurred_on + relativedelta(months=-1, day=1)
        return DateRange(first, first + relativedelta(day=31))
    raise ValueError(f"Unknown frequency: {frequency}")


def due_occurrence(definition, now: datetime) -> Optional[datetime]:
    """The occurrence to deliver now, or None when the latest one was already delivered."""
    occurrence = latest_occurrence(definition, now)
    baseline = definition.last_occurrence or definition.created_at
    if baseline is not None and occurrence <= baseline:
        return None
    return occurrence


# =============================================================================
# SCHEDULER
# =============================================================================

@dataclass
class SchedulerRunResult:
    evaluated: int = 0
    delivered: int = 0
    failed: int = 0
    skipped: int = 0
    results: List[dict] = field(default_factory=list)

    def as_dict(self):
        return {
            'evaluated': self.evaluated,
            'delivered': self.delivered,
            'failed': self.failed,
            'skipped': self.skipped,
            'results': self.results,
        }


class ReportScheduler:
    """
    Usage:
        result = ReportScheduler().process_due_reports()
        logger.info(f"Delivered {result.delivered} reports")
    """

    def __init__(self, delivery: ReportDelivery = None, compiler_class=ReportCompiler):
        self.delivery = delivery or ReportDelivery()
        self.compiler_class = compiler_class

    def process_due_reports(self, now: datetime = None) -> SchedulerRunResult:
        from dashboards.models import ReportDefinition

        now = now or timezone.now()
        run = SchedulerRunResult()

        definitions = (
            ReportDefinition.objects
            .filter(is_active=True)
            .select_related('organization')
            .order_by('created_at', 'id')
        )
        for definition in definitions:
            run.evaluated += 1
            try:
                outcome = self.evaluate_definition(definition, now)
            except Exception as exc:
                logger.exception(f"Report {definition.id} ({definition.name}) could not be evaluated")
                outcome = {
                    'definition_id': str(definition.id),
                    'name': definition.name,
                    'organization_id': str(definition.organization_id),
                    'status': ReportDefinition.Status.FAILED,
                    'error': str(exc),
                }
            if outcome is None:
                continue

            run.results.append(outcome)
            if outcome['status'] == ReportDefinition.Status.DELIVERED:
                run.delivered += 1
            elif outcome['status'] == ReportDefinition.Status.FAILED:
                run.failed += 1
            else:
                run.skipped += 1

        logger.info(
            f"Scheduler run: {run.evaluated} evaluated, {run.delivered} delivered, "
            f"{run.failed} failed, {run.skipped} skipped"
        )
        return run

    def evaluate_definition(self, definition, now: datetime) -> Optional[dict]:
        """Process ``definition`` if an occurrence is due; None when nothing is due."""
        from dashboards.models import ReportDefinition

        occurrence = due_occurrence(definition, now)
        if occurrence is None:
            return None

        settled = [ReportDefinition.Status.IDLE, ReportDefinition.Status.DELIVERED]
        if definition.status in settled:
            ReportDefinition.objects.filter(
                pk=definition.pk, version=definition.version, status__in=settled
            ).update(status=ReportDefinition.Status.DUE)
            definition.status = ReportDefinition.Status.DUE

        return self.process_definition(definition, occurrence, now)

    def process_definition(self, definition, occurrence: datetime, now: datetime) -> dict:
        """Claim, compile and deliver one occurrence. Never raises for delivery or compile errors."""
        from dashboards.models import ReportDefinition

        outcome = {
            'definition_id': str(definition.id),
            'name': definition.name,
            'organization_id': str(definition.organization_id),
            'occurrence': occurrence.isoformat(),
        }

        try:
            self.claim(definition, occurrence, now)
        except ClaimConflict as exc:
            logger.info(f"Skipping report {definition.id}: {exc}")
            outcome.update(status='skipped', reason=str(exc))
            return outcome

        try:
            date_range = report_range(definition.frequency, occurrence)
            report = self.compiler_class(definition.organization_id).compile(
                definition.report_type,
                date_range,
                definition.scope,
                requested_by=definition.created_by,
            )
            delivery = self.delivery.send_report(report, definition.recipients)
        except Exception as exc:
            logger.exception(f"Report {definition.id} ({definition.name}) failed for {occurrence.isoformat()}")
            self._release(definition, ReportDefinition.Status.FAILED, now, error=str(exc))
            outcome.update(status=ReportDefinition.Status.FAILED, error=str(exc))
            return outcome

        self._release(definition, ReportDefinition.Status.DELIVERED, now, occurrence=occurrence)
        logger.info(f"Report {definition.id} delivered for {occurrence.isoformat()}")
        outcome.update(status=ReportDefinition.Status.DELIVERED, **delivery.as_dict())
        return outcome

    # -------------------------------------------------------------------------
    # Claim / release
    # -------------------------------------------------------------------------

    def claim(self, definition, occurrence: datetime, now: datetime):
        """
        Mark the occurrence as processing with a compare-and-swap on ``version``.

        Raises:
            ClaimConflict when another run holds a live claim or won the swap
        """
        from dashboards.models import ReportDefinition

        timeout = timedelta(minutes=scheduler_setting('CLAIM_TIMEOUT_MINUTES'))
        if (
            definition.status == ReportDefinition.Status.PROCESSING
            and definition.claimed_at is not None
            and now - definition.claimed_at < timeout
        ):
            raise ClaimConflict(
                f"Occurrence {definition.claimed_occurrence} of {definition.id} is already being processed"
            )

        claimed = ReportDefinition.objects.filter(pk=definition.pk, version=definition.version).update(
            status=ReportDefinition.Status.PROCESSING,
            claimed_occurrence=occurrence,
            claimed_at=now,
            version=F('version') + 1,
        )
        if not claimed:
            raise ClaimConflict(f"Report {definition.id} was claimed by another run")

        definition.status = ReportDefinition.Status.PROCESSING
        definition.claimed_occurrence = occurrence
        definition.claimed_at = now
        definition.version += 1

    def _release(self, definition, status, now, occurrence=None, error=''):
        from dashboards.models import ReportDefinition

        changes = {
            'status': status,
            'claimed_occurrence': None,
            'claimed_at': None,
            'version': F('version') + 1,
        }
        if status == ReportDefinition.Status.DELIVERED:
            changes.update(
                last_occurrence=occurrence,
                last_delivered_at=now,
                last_error='',
                failure_count=0,
            )
        else:
            changes.update(last_error=error[:2000], failure_count=F('failure_count') + 1)

        updated = ReportDefinition.objects.filter(pk=definition.pk, version=definition.version).update(**changes)
        if not updated:
            # The claim expired and another run took it over
            logger.warning(f"Report {definition.id} claim was lost before release as {status}")
        definition.refresh_from_db()
