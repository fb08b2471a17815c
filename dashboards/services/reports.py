"""
Report Compiler

Assembles aggregator and classifier output into a ``ComprehensiveReport``
for a report type, date range and scope. Compilation only reads data:
compiling twice with the same parameters yields the same figures, and only
``generated_at`` differs.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Optional, Tuple

from django.utils import timezone

from dashboards.exceptions import EmptyRangeError
from dashboards.services.alerts import AlertClassifier
from dashboards.services.cycle_calendar import resolve
from dashboards.services.metrics import AttendancePolicy, DateRange, MetricAggregator
from dashboards.services.scopes import Scope

logger = logging.getLogger(__name__)


REPORT_TYPES = {
    'comprehensive': 'Comprehensive Report',
    'production': 'Production Report',
    'attendance': 'Attendance Report',
    'daily': 'Daily Summary',
    'weekly': 'Weekly Summary',
    'monthly': 'Monthly Summary',
}

EXCELLENT_ATTENDANCE = 0.95
GOOD_ATTENDANCE = 0.85
LOW_ATTENDANCE = 0.85
HIGH_LOSS = 0.10
LOW_UTILIZATION = 0.60

NO_DATA_NOTE = 'No records were found for the selected period.'
EMPTY_RANGE_NOTE = 'The selected date range contains no days.'


def attendance_status(rate: Optional[float]) -> str:
    if rate is not None and rate >= EXCELLENT_ATTENDANCE:
        return 'excellent'
    if rate is not None and rate >= GOOD_ATTENDANCE:
        return 'good'
    return 'needs_improvement'


def _percent(value):
    return round(value * 100, 2) if value is not None else None


def _change(current, previous) -> Optional[float]:
    if not previous:
        return None
    return round((current - previous) / previous * 100, 2)


@dataclass(frozen=True)
class ComprehensiveReport:
    metadata: dict
    production: Optional[dict] = None
    attendance: Optional[dict] = None
    alerts: Tuple[dict, ...] = ()
    insights: Optional[dict] = None
    notes: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def title(self):
        return self.metadata['label']

    @property
    def has_data(self):
        return NO_DATA_NOTE not in self.notes and EMPTY_RANGE_NOTE not in self.notes

    def as_dict(self):
        return {
            'metadata': self.metadata,
            'production': self.production,
            'attendance': self.attendance,
            'alerts': list(self.alerts),
            'insights': self.insights,
            'notes': list(self.notes),
        }


class ReportCompiler:
    """
    Compile organization-scoped reports.

    Usage:
        compiler = ReportCompiler(organization.id)
        report = compiler.compile('weekly', DateRange(start, end), Scope.farm(farm.id), requested_by=user)
        payload = report.as_dict()
    """

    def __init__(self, organization_id, policy: AttendancePolicy = None, classifier: AlertClassifier = None):
        self.organization_id = organization_id
        self.policy = policy or AttendancePolicy.from_settings()
        self.classifier = classifier or AlertClassifier()

    def compile(self, report_type: str, date_range: DateRange, scope: Scope = None,
                requested_by=None) -> ComprehensiveReport:
        """
        Build a report.

        Raises:
            ValueError for an unknown report type
            InvalidScopeError when the scope is not inside the organization
            RangeTooLargeError when the range exceeds the configured cap
        """
        from accounts.models import Organization

        if report_type not in REPORT_TYPES:
            raise ValueError(f"Unknown report type: {report_type}")

        scope = (scope or Scope.all_org()).validate(self.organization_id)
        date_range.validate()
        organization = Organization.objects.get(id=self.organization_id)

        aggregator = MetricAggregator(self.organization_id, scope, self.policy)
        aggregate = aggregator.aggregate(date_range)

        with_production = report_type != 'attendance'
        with_attendance = report_type != 'production'
        with_insights = report_type not in ('production', 'attendance')

        production = self._production_section(aggregate) if with_production else None
        attendance = self._attendance_section(aggregate) if with_attendance else None

        insights = None
        if with_insights:
            previous = None
            if not date_range.is_empty:
                previous = aggregator.aggregate(date_range.previous())
            insights = self._insights(aggregate, previous, production, attendance)

        alerts = tuple(alert.as_dict() for alert in self.classifier.classify(aggregate))

        notes = []
        try:
            self._require_data(aggregate)
        except EmptyRangeError as e:
            logger.info(f"Empty {report_type} report for org {self.organization_id}: {e}")
            notes.append(str(e))

        report = ComprehensiveReport(
            metadata=self._metadata(report_type, organization, aggregate, requested_by),
            production=production,
            attendance=attendance,
            alerts=alerts,
            insights=insights,
            notes=tuple(notes),
        )
        logger.info(
            f"Compiled {report_type} report for org {self.organization_id} "
            f"({scope}, {date_range.start} to {date_range.end})"
        )
        return report

    @staticmethod
    def _require_data(aggregate):
        if aggregate.date_range.is_empty:
            raise EmptyRangeError(EMPTY_RANGE_NOTE)
        if not aggregate.has_data:
            raise EmptyRangeError(NO_DATA_NOTE)

    # -------------------------------------------------------------------------
    # Sections
    # -------------------------------------------------------------------------

    def _metadata(self, report_type, organization, aggregate, requested_by):
        date_range = aggregate.date_range
        position = None
        if aggregate.cycle.get('has_cycle') and not date_range.is_empty:
            start = date.fromisoformat(aggregate.cycle['start_date'])
            if date_range.end >= start:
                position = resolve(
                    start, date_range.end,
                    total_days=aggregate.cycle['total_days'],
                    start_week=aggregate.cycle['start_week'],
                ).as_dict()

        return {
            'report_type': report_type,
            'label': REPORT_TYPES[report_type],
            'organization': {'id': str(organization.id), 'name': organization.name},
            'date_range': date_range.as_dict(),
            'scope': aggregate.scope.as_dict(),
            'generated_at': timezone.now().isoformat(),
            'requested_by': {
                'id': str(requested_by.id),
                'name': requested_by.display_name,
            } if requested_by is not None else None,
            'week_framing': aggregate.framing,
            'cycle': aggregate.cycle,
            'cycle_position': position,
        }

    def _production_section(self, aggregate):
        totals = aggregate.totals
        return {
            'summary': {
                'total_eggs': totals['total_eggs'],
                'sellable_eggs': totals['sellable_eggs'],
                'broken_eggs': totals['broken_eggs'],
                'damaged_eggs': totals['damaged_eggs'],
                'loss_percentage': _percent(totals['loss_rate']) or 0,
                'average_daily': round(totals['average_daily'] or 0, 2),
                'days_recorded': totals['days_recorded'],
                'efficiency': totals['efficiency'],
                'mortality': totals['mortality'],
                'production_records': totals['production_records'],
            },
            'farm_breakdown': [farm.as_dict() for farm in aggregate.by_farm],
            'shed_breakdown': [shed.as_dict() for shed in aggregate.by_shed],
            'weekly': [week.as_dict() for week in aggregate.weekly if week.has_production],
            'production_details': list(aggregate.details),
        }

    def _attendance_section(self, aggregate):
        totals = aggregate.totals
        workers = []
        for worker in aggregate.workers:
            row = worker.as_dict()
            row['status'] = attendance_status(worker.rate)
            workers.append(row)

        return {
            'summary': {
                'total_workers': totals['workers'],
                'average_attendance_rate': totals['attendance_rate'],
                'present': totals['present'],
                'late': totals['late'],
                'absent': totals['absent'],
                'late_credit': self.policy.late_credit,
            },
            'worker_breakdown': workers,
        }

    def _insights(self, aggregate, previous, production, attendance):
        totals = aggregate.totals
        insights = {}
        recommendations = []

        if production is not None:
            summary = production['summary']
            insights['production_trends'] = {
                'description': (
                    f"Average daily production of {summary['average_daily']:.0f} eggs with "
                    f"{summary['loss_percentage']:.1f}% loss rate over {aggregate.date_range.days} days."
                ),
            }

            sheds = [shed for shed in aggregate.by_shed if shed.efficiency is not None]
            if sheds:
                ranked = sorted(sheds, key=lambda s: (-s.efficiency, s.farm_name, s.shed_name, s.shed_id))
                best, worst = ranked[0], ranked[-1]
                insights['shed_performance'] = {
                    'best_shed': best.shed_name,
                    'worst_shed': worst.shed_name,
                    'description': (
                        f"{best.shed_name} is the top performer with {best.efficiency * 100:.1f}% efficiency."
                    ),
                }

            if (totals['loss_rate'] or 0) > HIGH_LOSS:
                recommendations.append(
                    "High egg loss rate detected. Consider reviewing handling procedures and storage conditions."
                )
            low = [
                shed for shed in aggregate.by_shed
                if shed.capacity_utilization is not None and shed.capacity_utilization < LOW_UTILIZATION
            ]
            if low:
                recommendations.append(
                    f"{len(low)} shed(s) showing low efficiency. "
                    "Review feeding schedules and environmental conditions."
                )

        if attendance is not None and totals['attendance_rate'] is not None:
            rate = totals['attendance_rate']
            insights['attendance_insights'] = {
                'description': (
                    f"Overall attendance rate of {rate * 100:.1f}% across {totals['workers']} workers."
                ),
            }
            if rate < LOW_ATTENDANCE:
                recommendations.append(
                    "Low attendance rate. Consider implementing attendance incentives or reviewing work conditions."
                )

        if previous is not None:
            insights['comparison'] = self._comparison(aggregate, previous)

        if not recommendations:
            recommendations.append(
                "Operations are performing well. Continue current practices and monitor trends."
            )
        insights['recommendations'] = recommendations
        return insights

    def _comparison(self, aggregate, previous):
        current, prior = aggregate.totals, previous.totals
        eggs_change = _change(current['total_eggs'], prior['total_eggs'])
        attendance_change = None
        if current['attendance_rate'] is not None and prior['attendance_rate'] is not None:
            attendance_change = round((current['attendance_rate'] - prior['attendance_rate']) * 100, 2)

        if eggs_change is None:
            description = 'No production in the prior period to compare against.'
        else:
            description = f"{eggs_change:+.1f}% vs prior period"

        return {
            'previous_range': previous.date_range.as_dict(),
            'previous_total_eggs': prior['total_eggs'],
            'total_eggs_change_pct': eggs_change,
            'attendance_rate_change_points': attendance_change,
            'description': description,
        }
