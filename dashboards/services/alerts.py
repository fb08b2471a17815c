"""
Alert Classifier

Evaluates an ``AggregateResult`` against thresholds and emits transient
alerts. Works only on the aggregate it is given; it never queries the
database. Rules fire independently and several may fire at once.
"""

from dataclasses import dataclass, asdict
from datetime import date, timedelta
from typing import List, Optional

from dashboards.conf import analytics_setting


SEVERITY_CRITICAL = 'critical'
SEVERITY_WARNING = 'warning'
SEVERITY_INFO = 'info'

SEVERITY_ORDER = {
    SEVERITY_CRITICAL: 0,
    SEVERITY_WARNING: 1,
    SEVERITY_INFO: 2,
}

PRODUCTION_DROP = 'production_drop'
MORTALITY_SPIKE = 'mortality_spike'
ATTENDANCE_SHORTFALL = 'attendance_shortfall'
STALE_DATA = 'stale_data'
HIGH_LOSS = 'high_loss'
LOW_PRODUCTION = 'low_production'
CAPACITY_ISSUE = 'capacity_issue'


@dataclass(frozen=True)
class Alert:
    kind: str
    severity: str
    scope_type: str
    scope_id: Optional[str]
    scope_name: str
    date: 'date'
    metric: str
    value: Optional[float]
    threshold: Optional[float]
    message: str

    def as_dict(self):
        data = asdict(self)
        data['date'] = self.date.isoformat()
        data['scope'] = {'type': data.pop('scope_type'), 'id': data.pop('scope_id'), 'name': data.pop('scope_name')}
        return data

    @property
    def sort_key(self):
        return (SEVERITY_ORDER.get(self.severity, 99), self.kind, self.scope_name, self.scope_id or '')


@dataclass(frozen=True)
class AlertThresholds:
    production_drop_ratio: float = 0.85
    production_drop_window_days: int = 7
    mortality_spike_absolute: int = 20
    mortality_spike_flock_percent: float = 1.0
    attendance_shortfall_rate: float = 0.7
    stale_data_days: int = 2
    high_loss_rate: float = 0.10
    expected_lay_rate: float = 0.8
    low_production_ratio: float = 0.6
    capacity_issue_utilization: float = 0.95

    @classmethod
    def from_settings(cls):
        return cls(
            production_drop_ratio=float(analytics_setting('PRODUCTION_DROP_THRESHOLD')),
            production_drop_window_days=int(analytics_setting('PRODUCTION_DROP_WINDOW_DAYS')),
            mortality_spike_absolute=int(analytics_setting('MORTALITY_SPIKE_ABSOLUTE')),
            mortality_spike_flock_percent=float(analytics_setting('MORTALITY_SPIKE_FLOCK_PERCENT')),
            attendance_shortfall_rate=float(analytics_setting('ATTENDANCE_SHORTFALL_THRESHOLD')),
            stale_data_days=int(analytics_setting('STALE_DATA_DAYS')),
            high_loss_rate=float(analytics_setting('HIGH_LOSS_THRESHOLD')),
            expected_lay_rate=float(analytics_setting('EXPECTED_LAY_RATE')),
            low_production_ratio=float(analytics_setting('LOW_PRODUCTION_RATIO')),
            capacity_issue_utilization=float(analytics_setting('CAPACITY_ISSUE_UTILIZATION')),
        )


def _pct(value):
    return f"{value * 100:.1f}%"


class AlertClassifier:
    """
    Usage:
        alerts = AlertClassifier().classify(aggregate)
        critical = [a for a in alerts if a.severity == 'critical']
    """

    def __init__(self, thresholds: AlertThresholds = None):
        self.thresholds = thresholds or AlertThresholds.from_settings()

    def classify(self, aggregate, as_of: Optional[date] = None) -> List[Alert]:
        as_of = as_of or aggregate.as_of
        if aggregate.date_range.is_empty:
            return []

        alerts = []
        for shed in aggregate.by_shed:
            alerts.extend(self._production_drop(shed, as_of))
            alerts.extend(self._shed_mortality_spike(shed, as_of))
            alerts.extend(self._high_loss(shed, as_of))
            alerts.extend(self._low_production(shed, as_of))
            alerts.extend(self._capacity_issue(shed, as_of))
            alerts.extend(self._stale_data(shed, as_of, aggregate.date_range.start))
        for farm in aggregate.by_farm:
            alerts.extend(self._farm_mortality_spike(farm, as_of))
        alerts.extend(self._attendance_shortfall(aggregate, as_of))

        return sorted(alerts, key=lambda alert: alert.sort_key)

    # -------------------------------------------------------------------------
    # Rules
    # -------------------------------------------------------------------------

    def _shed_alert(self, shed, kind, severity, on, metric, value, threshold, message):
        return Alert(
            kind=kind,
            severity=severity,
            scope_type='shed',
            scope_id=shed.shed_id,
            scope_name=f"{shed.farm_name} / {shed.shed_name}",
            date=on,
            metric=metric,
            value=value,
            threshold=threshold,
            message=message,
        )

    def _production_drop(self, shed, as_of):
        today = shed.series.get(as_of)
        if not today or not today.has_production:
            return []

        window = self.thresholds.production_drop_window_days
        history = [
            shed.series[on].total
            for on in sorted(shed.series)
            if on < as_of and shed.series[on].has_production
        ][-window:]
        if not history:
            return []

        average = sum(history) / len(history)
        floor = average * self.thresholds.production_drop_ratio
        if today.total >= floor:
            return []

        return [self._shed_alert(
            shed, PRODUCTION_DROP, SEVERITY_WARNING, as_of, 'total_eggs', today.total, round(floor, 2),
            f"{shed.shed_name} produced {today.total} eggs, below {_pct(self.thresholds.production_drop_ratio)} "
            f"of its recent average of {average:.0f}",
        )]

    def _spike_limit(self, count, flock):
        """Return the threshold a mortality count exceeds, or None."""
        if count > self.thresholds.mortality_spike_absolute:
            return self.thresholds.mortality_spike_absolute
        if flock:
            limit = flock * self.thresholds.mortality_spike_flock_percent / 100
            if count > limit:
                return round(limit, 2)
        return None

    def _shed_mortality_spike(self, shed, as_of):
        today = shed.series.get(as_of)
        if not today or not today.mortality:
            return []
        flock = today.opening_flock if today.opening_flock is not None else shed.current_flock
        limit = self._spike_limit(today.mortality, flock)
        if limit is None:
            return []
        return [self._shed_alert(
            shed, MORTALITY_SPIKE, SEVERITY_CRITICAL, as_of, 'mortality', today.mortality, limit,
            f"{today.mortality} birds died in {shed.shed_name} on {as_of.isoformat()} (threshold {limit})",
        )]

    def _farm_mortality_spike(self, farm, as_of):
        count = farm.farm_level_mortality.get(as_of, 0)
        if not count:
            return []
        limit = self._spike_limit(count, farm.opening_flock_by_date.get(as_of))
        if limit is None:
            return []
        return [Alert(
            kind=MORTALITY_SPIKE,
            severity=SEVERITY_CRITICAL,
            scope_type='farm',
            scope_id=farm.farm_id,
            scope_name=farm.farm_name,
            date=as_of,
            metric='mortality',
            value=count,
            threshold=limit,
            message=f"{count} birds died at {farm.farm_name} on {as_of.isoformat()} (threshold {limit})",
        )]

    def _high_loss(self, shed, as_of):
        today = shed.series.get(as_of)
        if not today or not today.total:
            return []
        loss = (today.broken + today.damaged) / today.total
        threshold = self.thresholds.high_loss_rate
        if loss <= threshold:
            return []
        severity = SEVERITY_CRITICAL if loss > threshold * 1.5 else SEVERITY_WARNING
        return [self._shed_alert(
            shed, HIGH_LOSS, severity, as_of, 'loss_rate', round(loss, 4), threshold,
            f"{shed.shed_name} lost {_pct(loss)} of its eggs to breakage or damage",
        )]

    def _low_production(self, shed, as_of):
        today = shed.series.get(as_of)
        if not today or not today.has_production or not shed.capacity:
            return []
        expected = shed.capacity * self.thresholds.expected_lay_rate
        floor = expected * self.thresholds.low_production_ratio
        if today.sellable >= floor:
            return []
        return [self._shed_alert(
            shed, LOW_PRODUCTION, SEVERITY_CRITICAL, as_of, 'sellable_eggs', today.sellable, round(floor, 2),
            f"{shed.shed_name} production is significantly below expected "
            f"({today.sellable} vs {expected:.0f})",
        )]

    def _capacity_issue(self, shed, as_of):
        if not shed.capacity:
            return []
        recent = [
            shed.series[on].sellable
            for on in sorted(shed.series)
            if on <= as_of and shed.series[on].has_production
        ][-self.thresholds.production_drop_window_days:]
        if not recent:
            return []

        utilization = sum(recent) / len(recent) / shed.capacity
        threshold = self.thresholds.capacity_issue_utilization
        if utilization <= threshold:
            return []
        return [self._shed_alert(
            shed, CAPACITY_ISSUE, SEVERITY_WARNING, as_of, 'capacity_utilization', round(utilization, 4),
            threshold, f"{shed.shed_name} is operating at {_pct(utilization)} of capacity",
        )]

    def _stale_data(self, shed, as_of, range_start):
        if not shed.is_active:
            return []
        last = shed.last_record_date
        if last is not None and last > as_of:
            last = max((on for on in shed.series if on <= as_of and shed.series[on].has_production), default=None)

        if last is None:
            # A shed cannot be missing records from before it existed
            first = max(range_start, shed.created_on) if shed.created_on else range_start
            missing = (as_of - first).days + 1
        else:
            first = last
            missing = (as_of - last).days
        if missing < self.thresholds.stale_data_days:
            return []

        since = f"since {first.isoformat()}"
        return [self._shed_alert(
            shed, STALE_DATA, SEVERITY_INFO, as_of, 'days_without_records', missing,
            self.thresholds.stale_data_days,
            f"No production recorded for {shed.shed_name} {since} ({missing} days)",
        )]

    def _attendance_shortfall(self, aggregate, as_of):
        day = aggregate.day(as_of)
        if day is None or day.attendance_rate is None:
            return []
        threshold = self.thresholds.attendance_shortfall_rate
        if day.attendance_rate >= threshold:
            return []

        scope = aggregate.scope
        name = 'All farms'
        if scope.kind == scope.FARM and aggregate.by_farm:
            name = aggregate.by_farm[0].farm_name
        elif scope.kind == scope.SHED and aggregate.by_shed:
            name = aggregate.by_shed[0].shed_name
        elif scope.kind == scope.MANAGER:
            name = 'Managed farms'

        return [Alert(
            kind=ATTENDANCE_SHORTFALL,
            severity=SEVERITY_WARNING,
            scope_type=scope.kind,
            scope_id=str(scope.id) if scope.id is not None else None,
            scope_name=name,
            date=as_of,
            metric='attendance_rate',
            value=round(day.attendance_rate, 4),
            threshold=threshold,
            message=f"Attendance was {_pct(day.attendance_rate)} on {as_of.isoformat()}, "
                    f"below the {_pct(threshold)} target",
        )]


def lookback_start(as_of: date):
    """Start date of the window the classifier needs to evaluate ``as_of``."""
    return as_of - timedelta(days=int(analytics_setting('ALERT_LOOKBACK_DAYS')) - 1)
