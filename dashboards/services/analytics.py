"""
Analytics Service

Read-only dashboard analytics for one organization and scope, built on the
aggregator, the cycle calendar and the alert classifier. All periods end on
``today`` and include it: ``days=30`` covers today and the 29 days before.
"""

import logging
from datetime import date, timedelta
from typing import Any, Dict, List

from django.utils import timezone

from dashboards.exceptions import InvalidCycleDate
from dashboards.services.alerts import AlertClassifier, lookback_start
from dashboards.services.cycle_calendar import CycleCalendar
from dashboards.services.metrics import AttendancePolicy, DateRange, MetricAggregator
from dashboards.services.reports import attendance_status
from dashboards.services.scopes import Scope

logger = logging.getLogger(__name__)


def _change_pct(current, previous):
    if not previous:
        return None
    return round((current - previous) / previous * 100, 2)


class AnalyticsService:
    """
    Dashboard analytics for an organization.

    Usage:
        service = AnalyticsService(request.user.organization_id, Scope.farm(farm_id))
        stats = service.get_dashboard_stats(days=30)
        weeks = service.get_weekly_production_summary(weeks=12)
    """

    def __init__(self, organization_id, scope: Scope = None, today: date = None,
                 policy: AttendancePolicy = None):
        self.organization_id = organization_id
        self.scope = scope or Scope.all_org()
        self.today = today or timezone.localdate()
        self.policy = policy or AttendancePolicy.from_settings()
        self.calendar = CycleCalendar.for_scope(organization_id, self.scope)

    def _aggregate(self, date_range: DateRange):
        aggregator = MetricAggregator(self.organization_id, self.scope, self.policy, calendar=self.calendar)
        return aggregator.aggregate(date_range)

    # =========================================================================
    # DASHBOARD
    # =========================================================================

    def get_dashboard_stats(self, days: int = 30) -> Dict[str, Any]:
        date_range = DateRange.last_days(days, self.today)
        aggregate = self._aggregate(date_range)
        totals = aggregate.totals

        today = aggregate.day(self.today)
        yesterday = aggregate.day(self.today - timedelta(days=1))
        today_eggs = today.total if today else 0
        yesterday_eggs = yesterday.total if yesterday else 0

        attendance_trend = None
        if today and yesterday and today.attendance_rate is not None and yesterday.attendance_rate is not None:
            attendance_trend = round((today.attendance_rate - yesterday.attendance_rate) * 100, 2)

        return {
            'period_days': date_range.days,
            'start_date': date_range.start.isoformat(),
            'end_date': date_range.end.isoformat(),
            'today_production': today_eggs,
            'total_production': totals['total_eggs'],
            'sellable_production': totals['sellable_eggs'],
            'average_daily': totals['average_daily'],
            'days_recorded': totals['days_recorded'],
            'efficiency': totals['efficiency'],
            'mortality': totals['mortality'],
            'attendance_rate': totals['attendance_rate'],
            'active_farms': len(aggregate.by_farm),
            'active_sheds': totals['sheds'],
            'total_workers': totals['workers'],
            'production_trend': _change_pct(today_eggs, yesterday_eggs),
            'attendance_trend': attendance_trend,
            'cycle_position': self.calendar.position(self.today).as_dict()
            if self._cycle_started() else {'has_cycle': False},
        }

    def get_production_trend(self, days: int = 30) -> List[Dict[str, Any]]:
        """Daily production series; days without production records are omitted."""
        aggregate = self._aggregate(DateRange.last_days(days, self.today))
        return [
            {
                'date': day.date.isoformat(),
                'total_eggs': day.total,
                'sellable_eggs': day.sellable,
                'broken_eggs': day.broken,
                'damaged_eggs': day.damaged,
                'loss_eggs': day.broken + day.damaged,
                'efficiency': day.efficiency,
                'mortality': day.mortality,
            }
            for day in aggregate.daily
            if day.has_production
        ]

    def get_shed_performance(self, days: int = 30) -> List[Dict[str, Any]]:
        aggregate = self._aggregate(DateRange.last_days(days, self.today))
        return [shed.as_dict() for shed in aggregate.by_shed]

    def get_attendance_summary(self, days: int = 30) -> Dict[str, Any]:
        aggregate = self._aggregate(DateRange.last_days(days, self.today))
        workers = []
        for worker in aggregate.workers:
            row = worker.as_dict()
            row['status'] = attendance_status(worker.rate)
            workers.append(row)

        return {
            'period_days': aggregate.date_range.days,
            'late_credit': self.policy.late_credit,
            'attendance_rate': aggregate.totals['attendance_rate'],
            'present': aggregate.totals['present'],
            'late': aggregate.totals['late'],
            'absent': aggregate.totals['absent'],
            'workers': workers,
        }

    def get_production_alerts(self) -> List[Dict[str, Any]]:
        aggregate = self._aggregate(DateRange(lookback_start(self.today), self.today))
        return [alert.as_dict() for alert in AlertClassifier().classify(aggregate, as_of=self.today)]

    # =========================================================================
    # CYCLE WEEKS
    # =========================================================================

    def _cycle_started(self):
        return self.calendar.has_cycle and self.today >= self.calendar.start_date

    def get_current_week_status(self) -> Dict[str, Any]:
        """Where today falls in the active cycle, with week-to-date production."""
        if not self.calendar.has_cycle:
            return {'has_cycle': False, 'cycle': None}

        try:
            position = self.calendar.position(self.today)
        except InvalidCycleDate:
            return {
                'has_cycle': True,
                'started': False,
                'starts_in_days': (self.calendar.start_date - self.today).days,
                'cycle': self.calendar.describe(),
            }

        week_start, week_end = self.calendar.week_bounds(position.week)
        week_to_date = self._aggregate(DateRange(week_start, self.today))
        status = position.as_dict()
        status.update({
            'started': True,
            'cycle': self.calendar.describe(),
            'week_start': week_start.isoformat(),
            'week_end': week_end.isoformat(),
            'week_to_date': {
                'total_eggs': week_to_date.totals['total_eggs'],
                'sellable_eggs': week_to_date.totals['sellable_eggs'],
                'days_recorded': week_to_date.totals['days_recorded'],
                'efficiency': week_to_date.totals['efficiency'],
                'mortality': week_to_date.totals['mortality'],
            },
        })
        return status

    def get_weekly_production_summary(self, weeks: int = 12) -> List[Dict[str, Any]]:
        """
        Weekly rollups for the last ``weeks`` weeks up to today.

        With an active cycle the window is aligned to cycle weeks and never
        starts before the cycle. Weeks without production records are left
        out, even when they hold attendance or mortality.
        """
        if self._cycle_started():
            current = self.calendar.position(self.today).week
            first_week = max(current - weeks + 1, 1)
            start, _ = self.calendar.week_bounds(first_week)
        else:
            start = self.today - timedelta(days=weeks * 7 - 1)

        aggregate = self._aggregate(DateRange(start, self.today))
        rows = []
        for week in aggregate.weekly:
            if not week.has_production:
                continue
            row = week.as_dict()
            row['framing'] = aggregate.framing
            rows.append(row)
        return rows
