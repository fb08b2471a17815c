"""
Metric Aggregator

Scans the raw daily records of one organization (production, mortality,
attendance) inside a date range and rolls them up per day, per week, per
farm, per shed and per worker.

Rules:
- Days without records are absent from the series; they contribute nothing
  to counts and are excluded from "days recorded" denominators.
- Efficiency is sellable / total, pooled over days whose total is non-zero.
- Weeks follow the scope's active cycle when the range lies inside it,
  otherwise 7-day blocks counted from the range start.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Dict, List, Optional

from django.utils import timezone

from dashboards.conf import analytics_setting
from dashboards.exceptions import RangeTooLargeError
from dashboards.services.cycle_calendar import CycleCalendar
from dashboards.services.scopes import Scope

logger = logging.getLogger(__name__)


FRAMING_CYCLE = 'cycle'
FRAMING_RANGE = 'range'


def _ratio(numerator, denominator) -> Optional[float]:
    if not denominator:
        return None
    return numerator / denominator


# =============================================================================
# INPUT TYPES
# =============================================================================

@dataclass(frozen=True)
class DateRange:
    """Inclusive date range. ``end < start`` is a legal, empty range."""

    start: date
    end: date

    @classmethod
    def last_days(cls, days: int, today: date):
        """The ``days`` days ending on (and including) ``today``."""
        return cls(today - timedelta(days=days - 1), today)

    @property
    def days(self) -> int:
        return max((self.end - self.start).days + 1, 0)

    @property
    def is_empty(self) -> bool:
        return self.days == 0

    def dates(self):
        for offset in range(self.days):
            yield self.start + timedelta(days=offset)

    def previous(self):
        """Equally long range immediately before this one."""
        length = max(self.days, 1)
        return DateRange(self.start - timedelta(days=length), self.start - timedelta(days=1))

    def validate(self, max_days: Optional[int] = None):
        max_days = max_days or analytics_setting('MAX_RANGE_DAYS')
        if self.days > max_days:
            raise RangeTooLargeError(self.days, max_days)
        return self

    def as_dict(self):
        return {
            'start_date': self.start.isoformat(),
            'end_date': self.end.isoformat(),
            'days': self.days,
        }


@dataclass(frozen=True)
class AttendancePolicy:
    """How a LATE mark counts toward the attendance rate (1.0 = same as present)."""

    late_credit: float = 1.0

    @classmethod
    def from_settings(cls):
        return cls(late_credit=float(analytics_setting('LATE_ATTENDANCE_CREDIT')))

    def rate(self, present: int, late: int, absent: int) -> Optional[float]:
        return _ratio(present + late * self.late_credit, present + late + absent)


# =============================================================================
# RESULT TYPES
# =============================================================================

@dataclass
class ProductionTally:
    sellable: int = 0
    broken: int = 0
    damaged: int = 0
    total: int = 0
    mortality: int = 0
    days_recorded: int = 0

    def add_production(self, row):
        self.sellable += row['sellable_eggs']
        self.broken += row['broken_eggs']
        self.damaged += row['damaged_eggs']
        self.total += row['total_eggs']

    @property
    def has_production(self):
        return self.days_recorded > 0

    @property
    def efficiency(self) -> Optional[float]:
        return _ratio(self.sellable, self.total)

    @property
    def loss_rate(self) -> Optional[float]:
        return _ratio(self.broken + self.damaged, self.total)

    @property
    def average_daily(self) -> Optional[float]:
        return _ratio(self.sellable, self.days_recorded)

    def production_dict(self):
        return {
            'sellable_eggs': self.sellable,
            'broken_eggs': self.broken,
            'damaged_eggs': self.damaged,
            'total_eggs': self.total,
            'mortality': self.mortality,
            'days_recorded': self.days_recorded,
            'efficiency': self.efficiency,
            'loss_rate': self.loss_rate,
            'average_daily': self.average_daily,
        }


@dataclass
class AttendanceTally:
    present: int = 0
    late: int = 0
    absent: int = 0

    def add(self, status):
        if status == 'PRESENT':
            self.present += 1
        elif status == 'LATE':
            self.late += 1
        elif status == 'ABSENT':
            self.absent += 1

    @property
    def marked(self):
        return self.present + self.late + self.absent


@dataclass
class DayMetric(ProductionTally):
    date: 'Optional[date]' = None
    opening_flock: int = 0
    closing_flock: int = 0
    attendance: AttendanceTally = field(default_factory=AttendanceTally)
    attendance_rate: Optional[float] = None

    def as_dict(self):
        data = self.production_dict()
        data.update({
            'date': self.date.isoformat(),
            'opening_flock': self.opening_flock,
            'closing_flock': self.closing_flock,
            'present': self.attendance.present,
            'late': self.attendance.late,
            'absent': self.attendance.absent,
            'attendance_rate': self.attendance_rate,
        })
        return data


@dataclass
class WeekMetric(ProductionTally):
    week: int = 0
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    attendance: AttendanceTally = field(default_factory=AttendanceTally)
    attendance_rate: Optional[float] = None

    def as_dict(self):
        data = self.production_dict()
        data.update({
            'week': self.week,
            'start_date': self.start_date.isoformat(),
            'end_date': self.end_date.isoformat(),
            'attendance_rate': self.attendance_rate,
        })
        return data


@dataclass
class ShedDay:
    """One shed's figures on one day, kept for trend rules."""
    sellable: int = 0
    broken: int = 0
    damaged: int = 0
    total: int = 0
    mortality: int = 0
    opening_flock: Optional[int] = None
    has_production: bool = False


@dataclass
class ShedMetric(ProductionTally):
    shed_id: str = ''
    shed_name: str = ''
    farm_id: str = ''
    farm_name: str = ''
    capacity: int = 0
    is_active: bool = True
    last_record_date: Optional[date] = None
    created_on: Optional[date] = None
    current_flock: Optional[int] = None
    series: Dict[date, ShedDay] = field(default_factory=dict)

    @property
    def capacity_utilization(self) -> Optional[float]:
        if self.average_daily is None:
            return None
        return _ratio(self.average_daily, self.capacity)

    def as_dict(self):
        data = self.production_dict()
        data.update({
            'shed_id': self.shed_id,
            'shed_name': self.shed_name,
            'farm_id': self.farm_id,
            'farm_name': self.farm_name,
            'capacity': self.capacity,
            'is_active': self.is_active,
            'capacity_utilization': self.capacity_utilization,
            'last_record_date': self.last_record_date.isoformat() if self.last_record_date else None,
            'current_flock': self.current_flock,
        })
        return data


@dataclass
class FarmMetric(ProductionTally):
    farm_id: str = ''
    farm_name: str = ''
    manager_id: Optional[str] = None
    shed_count: int = 0
    active_shed_count: int = 0
    attendance: AttendanceTally = field(default_factory=AttendanceTally)
    attendance_rate: Optional[float] = None
    # Mortality recorded against the farm without a shed, by date
    farm_level_mortality: Dict[date, int] = field(default_factory=dict)
    opening_flock_by_date: Dict[date, int] = field(default_factory=dict)

    def as_dict(self):
        data = self.production_dict()
        data.update({
            'farm_id': self.farm_id,
            'farm_name': self.farm_name,
            'manager_id': self.manager_id,
            'shed_count': self.shed_count,
            'active_shed_count': self.active_shed_count,
            'attendance_rate': self.attendance_rate,
        })
        return data


@dataclass
class WorkerMetric(AttendanceTally):
    user_id: str = ''
    name: str = ''
    rate: Optional[float] = None

    def as_dict(self):
        return {
            'user_id': self.user_id,
            'name': self.name,
            'present': self.present,
            'late': self.late,
            'absent': self.absent,
            'days_marked': self.marked,
            'attendance_rate': self.rate,
        }


@dataclass
class AggregateResult:
    date_range: DateRange
    scope: Scope
    framing: str
    cycle: dict
    daily: List[DayMetric] = field(default_factory=list)
    weekly: List[WeekMetric] = field(default_factory=list)
    by_farm: List[FarmMetric] = field(default_factory=list)
    by_shed: List[ShedMetric] = field(default_factory=list)
    workers: List[WorkerMetric] = field(default_factory=list)
    details: List[dict] = field(default_factory=list)
    totals: dict = field(default_factory=dict)

    @property
    def as_of(self) -> date:
        return self.date_range.end

    @property
    def has_data(self) -> bool:
        return bool(self.daily)

    def day(self, on: date) -> Optional[DayMetric]:
        for metric in self.daily:
            if metric.date == on:
                return metric
        return None

    def as_dict(self):
        return {
            'date_range': self.date_range.as_dict(),
            'scope': self.scope.as_dict(),
            'framing': self.framing,
            'cycle': self.cycle,
            'totals': self.totals,
            'daily': [d.as_dict() for d in self.daily],
            'weekly': [w.as_dict() for w in self.weekly],
            'by_farm': [f.as_dict() for f in self.by_farm],
            'by_shed': [s.as_dict() for s in self.by_shed],
            'workers': [w.as_dict() for w in self.workers],
            'details': self.details,
        }


# =============================================================================
# AGGREGATOR
# =============================================================================

class MetricAggregator:
    """
    Rolls up one organization's records for a scope and date range.

    Usage:
        aggregator = MetricAggregator(organization.id, Scope.farm(farm.id))
        result = aggregator.aggregate(DateRange(date(2024, 1, 1), date(2024, 1, 31)))
        result.totals['efficiency']
    """

    def __init__(self, organization_id, scope: Scope = None, policy: AttendancePolicy = None,
                 calendar: CycleCalendar = None):
        self.organization_id = organization_id
        self.scope = scope or Scope.all_org()
        self.policy = policy or AttendancePolicy.from_settings()
        self._calendar = calendar

    @property
    def calendar(self) -> CycleCalendar:
        if self._calendar is None:
            self._calendar = CycleCalendar.for_scope(self.organization_id, self.scope)
        return self._calendar

    def aggregate(self, date_range: DateRange) -> AggregateResult:
        date_range.validate()

        calendar = self.calendar
        framing = FRAMING_CYCLE
        if not calendar.has_cycle or date_range.start < calendar.start_date:
            framing = FRAMING_RANGE

        result = AggregateResult(
            date_range=date_range,
            scope=self.scope,
            framing=framing,
            cycle=calendar.describe(),
        )

        sheds, farms = self._load_structure()
        if date_range.is_empty:
            result.by_shed = [s for s in sheds.values() if s.is_active]
            result.by_farm = list(farms.values())
            result.totals = self._totals(result)
            return result

        days: Dict[date, DayMetric] = {}

        def day_for(on):
            if on not in days:
                days[on] = DayMetric(date=on)
            return days[on]

        for row in self._production_rows(date_range):
            on = row['date']
            shed = sheds[str(row['shed_id'])]
            farm = farms[shed.farm_id]
            opening = row['opening_male'] + row['opening_female']
            closing = row['closing_male'] + row['closing_female']

            day = day_for(on)
            day.days_recorded = 1
            if on not in farm.opening_flock_by_date:
                farm.days_recorded += 1
            for tally in (day, shed, farm):
                tally.add_production(row)
            day.opening_flock += opening
            day.closing_flock += closing
            farm.opening_flock_by_date[on] = farm.opening_flock_by_date.get(on, 0) + opening

            shed.days_recorded += 1
            shed.last_record_date = on
            shed.current_flock = closing
            shed.series[on] = ShedDay(
                sellable=row['sellable_eggs'],
                broken=row['broken_eggs'],
                damaged=row['damaged_eggs'],
                total=row['total_eggs'],
                opening_flock=opening,
                has_production=True,
            )

            result.details.append({
                'id': str(row['id']),
                'date': on.isoformat(),
                'farm_id': shed.farm_id,
                'farm_name': shed.farm_name,
                'shed_id': shed.shed_id,
                'shed_name': shed.shed_name,
                'sellable_eggs': row['sellable_eggs'],
                'broken_eggs': row['broken_eggs'],
                'damaged_eggs': row['damaged_eggs'],
                'total_eggs': row['total_eggs'],
                'opening_flock': opening,
                'closing_flock': closing,
                'mortality': 0,
                'efficiency': _ratio(row['sellable_eggs'], row['total_eggs']),
            })

        detail_index = {(d['shed_id'], d['date']): d for d in result.details}

        for row in self._mortality_rows(date_range):
            on = row['date']
            count = row['male_mortality'] + row['female_mortality']
            farm = farms.get(str(row['farm_id']))
            if farm is None:
                continue
            day = day_for(on)
            day.mortality += count
            farm.mortality += count

            if row['shed_id']:
                shed = sheds.get(str(row['shed_id']))
                if shed is None:
                    continue
                shed.mortality += count
                shed_day = shed.series.setdefault(on, ShedDay())
                shed_day.mortality += count
                detail = detail_index.get((shed.shed_id, on.isoformat()))
                if detail is not None:
                    detail['mortality'] += count
            else:
                farm.farm_level_mortality[on] = farm.farm_level_mortality.get(on, 0) + count

        workers: Dict[str, WorkerMetric] = {}
        for row in self._attendance_rows(date_range):
            day = day_for(row['date'])
            day.attendance.add(row['status'])
            farm = farms.get(str(row['farm_id']))
            if farm is not None:
                farm.attendance.add(row['status'])
            user_id = str(row['user_id'])
            worker = workers.get(user_id)
            if worker is None:
                name = ' '.join(filter(None, [row['user__first_name'], row['user__last_name']]))
                worker = WorkerMetric(user_id=user_id, name=name or row['user__username'])
                workers[user_id] = worker
            worker.add(row['status'])

        for day in days.values():
            day.attendance_rate = self._rate(day.attendance)
        for farm in farms.values():
            farm.attendance_rate = self._rate(farm.attendance)
        for worker in workers.values():
            worker.rate = self.policy.rate(worker.present, worker.late, worker.absent)

        result.daily = [days[on] for on in sorted(days)]
        result.weekly = self._weekly(result.daily, date_range, framing)
        result.by_shed = sorted(
            (s for s in sheds.values() if s.is_active or s.days_recorded or s.mortality),
            key=lambda s: (s.farm_name, s.shed_name, s.shed_id),
        )
        result.by_farm = sorted(farms.values(), key=lambda f: (f.farm_name, f.farm_id))
        result.workers = sorted(workers.values(), key=lambda w: (w.name, w.user_id))
        result.totals = self._totals(result)

        logger.debug(
            f"Aggregated {date_range.days} days for org {self.organization_id} ({self.scope}): "
            f"{result.totals['days_recorded']} production days"
        )
        return result

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def _load_structure(self):
        from farms.models import Shed, Farm

        farms = {}
        farm_qs = Farm.objects.filter(
            self.scope.predicate(self.organization_id, farm_path='', shed_path=None)
        ).distinct()
        for farm in farm_qs.order_by('name', 'id'):
            farms[str(farm.id)] = FarmMetric(
                farm_id=str(farm.id),
                farm_name=farm.name,
                manager_id=str(farm.manager_id) if farm.manager_id else None,
            )

        sheds = {}
        shed_qs = Shed.objects.filter(
            self.scope.predicate(self.organization_id, farm_path='farm', shed_path='')
        ).select_related('farm')
        for shed in shed_qs.order_by('farm__name', 'name', 'id'):
            active = shed.is_active and shed.farm.is_active
            sheds[str(shed.id)] = ShedMetric(
                shed_id=str(shed.id),
                shed_name=shed.name,
                farm_id=str(shed.farm_id),
                farm_name=shed.farm.name,
                capacity=shed.capacity,
                is_active=active,
                created_on=timezone.localtime(shed.created_at).date() if shed.created_at else None,
            )
            farm = farms.get(str(shed.farm_id))
            if farm is not None:
                farm.shed_count += 1
                farm.active_shed_count += int(active)

        return sheds, farms

    def _production_rows(self, date_range):
        from flock_management.models import ProductionRecord

        return (
            ProductionRecord.objects
            .filter(self.scope.predicate(self.organization_id, farm_path='shed__farm', shed_path='shed'))
            .filter(date__gte=date_range.start, date__lte=date_range.end)
            .order_by('date', 'shed__farm__name', 'shed__name', 'id')
            .values(
                'id', 'date', 'shed_id', 'sellable_eggs', 'broken_eggs', 'damaged_eggs', 'total_eggs',
                'opening_male', 'opening_female', 'closing_male', 'closing_female',
            )
        )

    def _mortality_rows(self, date_range):
        from flock_management.models import MortalityRecord

        return (
            MortalityRecord.objects
            .filter(self.scope.predicate(self.organization_id, farm_path='farm', shed_path='shed'))
            .filter(date__gte=date_range.start, date__lte=date_range.end)
            .order_by('date', 'id')
            .values('date', 'farm_id', 'shed_id', 'male_mortality', 'female_mortality')
        )

    def _attendance_rows(self, date_range):
        from farms.models import AttendanceRecord

        return (
            AttendanceRecord.objects
            .filter(self.scope.predicate(self.organization_id, farm_path='farm'))
            .filter(user__organization_id=self.organization_id)
            .filter(date__gte=date_range.start, date__lte=date_range.end)
            .order_by('date', 'id')
            .values(
                'date', 'farm_id', 'user_id', 'status',
                'user__first_name', 'user__last_name', 'user__username',
            )
        )

    # -------------------------------------------------------------------------
    # Rollups
    # -------------------------------------------------------------------------

    def _rate(self, tally: AttendanceTally):
        return self.policy.rate(tally.present, tally.late, tally.absent)

    def _week_of(self, on: date, date_range: DateRange, framing: str):
        if framing == FRAMING_CYCLE:
            week = self.calendar.position(on).week
            start, end = self.calendar.week_bounds(week)
            return week, start, end
        block = (on - date_range.start).days // 7
        start = date_range.start + timedelta(days=block * 7)
        return block + 1, start, start + timedelta(days=6)

    def _weekly(self, daily, date_range, framing) -> List[WeekMetric]:
        weeks: Dict[int, WeekMetric] = {}
        for day in daily:
            number, start, end = self._week_of(day.date, date_range, framing)
            week = weeks.get(number)
            if week is None:
                week = weeks[number] = WeekMetric(week=number, start_date=start, end_date=end)
            week.sellable += day.sellable
            week.broken += day.broken
            week.damaged += day.damaged
            week.total += day.total
            week.mortality += day.mortality
            week.days_recorded += day.days_recorded
            week.attendance.present += day.attendance.present
            week.attendance.late += day.attendance.late
            week.attendance.absent += day.attendance.absent

        for week in weeks.values():
            week.attendance_rate = self._rate(week.attendance)
        return [weeks[number] for number in sorted(weeks)]

    def _totals(self, result: AggregateResult) -> dict:
        tally = ProductionTally()
        attendance = AttendanceTally()
        for day in result.daily:
            tally.sellable += day.sellable
            tally.broken += day.broken
            tally.damaged += day.damaged
            tally.total += day.total
            tally.mortality += day.mortality
            tally.days_recorded += day.days_recorded
            attendance.present += day.attendance.present
            attendance.late += day.attendance.late
            attendance.absent += day.attendance.absent

        totals = tally.production_dict()
        totals.update({
            'production_records': len(result.details),
            'farms': len(result.by_farm),
            'sheds': len([s for s in result.by_shed if s.is_active]),
            'total_capacity': sum(s.capacity for s in result.by_shed if s.is_active),
            'workers': len(result.workers),
            'present': attendance.present,
            'late': attendance.late,
            'absent': attendance.absent,
            'attendance_rate': self._rate(attendance),
        })
        return totals
