"""
Cycle Calendar Resolver

Maps a date onto the flock-cycle calendar: the cycle start date is week 1,
day 1, and weeks are 7 days long. A scope without an active cycle resolves
to ``NO_CYCLE`` so that callers can report week-based metrics as
unavailable instead of zero.
"""

from dataclasses import dataclass, asdict
from datetime import date, timedelta
from typing import Optional

from dashboards.exceptions import InvalidCycleDate
from dashboards.services.scopes import Scope


@dataclass(frozen=True)
class CyclePosition:
    week: int
    day_of_week: int
    days_elapsed: int
    days_remaining: Optional[int]
    total_days: Optional[int] = None
    flock_age_week: Optional[int] = None

    def as_dict(self):
        data = asdict(self)
        data['has_cycle'] = True
        return data


class _NoCycle:
    """Sentinel for "no active cycle"; falsy so it reads naturally in conditions."""

    def __bool__(self):
        return False

    def __repr__(self):
        return 'NO_CYCLE'

    def as_dict(self):
        return {'has_cycle': False}


NO_CYCLE = _NoCycle()


def resolve(cycle_start: date, target_date: date, total_days: Optional[int] = None,
            start_week: int = 1) -> CyclePosition:
    """
    Resolve ``target_date`` against a cycle starting on ``cycle_start``.

    Raises:
        InvalidCycleDate if target_date is before cycle_start
    """
    days_elapsed = (target_date - cycle_start).days
    if days_elapsed < 0:
        raise InvalidCycleDate(cycle_start, target_date)

    week = days_elapsed // 7 + 1
    days_remaining = None
    if total_days is not None:
        days_remaining = max(total_days - days_elapsed, 0)

    return CyclePosition(
        week=week,
        day_of_week=days_elapsed % 7 + 1,
        days_elapsed=days_elapsed,
        days_remaining=days_remaining,
        total_days=total_days,
        flock_age_week=start_week + week - 1,
    )


class CycleCalendar:
    """
    Calendar for one scope's active production cycle.

    Usage:
        calendar = CycleCalendar.for_scope(organization.id, Scope.farm(farm.id))
        position = calendar.position(timezone.localdate())
        if position:
            print(position.week, position.day_of_week)
    """

    def __init__(self, cycle=None):
        self.cycle = cycle

    @classmethod
    def for_scope(cls, organization_id, scope: Scope = None):
        from farms.models import ProductionCycle, Shed

        scope = scope or Scope.all_org()
        active = ProductionCycle.objects.filter(organization_id=organization_id, is_active=True)

        farm_id = None
        if scope.kind == Scope.FARM:
            farm_id = scope.id
        elif scope.kind == Scope.SHED:
            farm_id = (
                Shed.objects.filter(id=scope.id, farm__organization_id=organization_id)
                .values_list('farm_id', flat=True)
                .first()
            )

        default_cycle = active.filter(farm__isnull=True).order_by('-start_date').first()

        if farm_id:
            cycle = active.filter(farm_id=farm_id).order_by('-start_date').first()
            return cls(cycle or default_cycle)

        if default_cycle:
            return cls(default_cycle)

        # No organization default: use the farm cycle only when it is unambiguous
        farm_cycles = list(
            active.filter(farm__isnull=False)
            .filter(scope.predicate(organization_id, farm_path='farm'))
            .order_by('-start_date')[:2]
        )
        if len(farm_cycles) == 1:
            return cls(farm_cycles[0])
        return cls(None)

    @property
    def has_cycle(self):
        return self.cycle is not None

    @property
    def start_date(self):
        return self.cycle.start_date if self.cycle else None

    def position(self, target_date: date):
        """Resolve a date, or return NO_CYCLE when there is no active cycle."""
        if not self.cycle:
            return NO_CYCLE
        return resolve(
            self.cycle.start_date,
            target_date,
            total_days=self.cycle.total_days,
            start_week=self.cycle.start_week,
        )

    def week_bounds(self, week: int):
        """First and last date of a cycle week."""
        if not self.cycle:
            return None
        start = self.cycle.start_date + timedelta(days=(week - 1) * 7)
        return start, start + timedelta(days=6)

    def describe(self):
        if not self.cycle:
            return {'has_cycle': False}
        return {
            'has_cycle': True,
            'cycle_id': str(self.cycle.id),
            'name': self.cycle.name,
            'farm_id': str(self.cycle.farm_id) if self.cycle.farm_id else None,
            'start_date': self.cycle.start_date.isoformat(),
            'start_week': self.cycle.start_week,
            'expected_end_week': self.cycle.expected_end_week,
            'total_days': self.cycle.total_days,
        }
