"""
Tests for scopes and the metric aggregator.
Covers denominators under missing data, week framing, attendance policy
and tenant isolation.
"""
import pytest
from datetime import date, timedelta

from farms.models import Farm, Shed
from dashboards.exceptions import InvalidScopeError, RangeTooLargeError
from dashboards.services.metrics import AttendancePolicy, DateRange, MetricAggregator
from dashboards.services.scopes import Scope


class TestDateRange:

    def test_inclusive_days(self):
        assert DateRange(date(2024, 1, 1), date(2024, 1, 7)).days == 7

    def test_end_before_start_is_empty(self):
        date_range = DateRange(date(2024, 1, 7), date(2024, 1, 1))
        assert date_range.is_empty
        assert list(date_range.dates()) == []

    def test_previous_has_same_length(self):
        previous = DateRange(date(2024, 1, 8), date(2024, 1, 14)).previous()
        assert previous == DateRange(date(2024, 1, 1), date(2024, 1, 7))

    def test_last_days_includes_today(self):
        date_range = DateRange.last_days(30, date(2024, 3, 30))
        assert date_range.start == date(2024, 3, 1)
        assert date_range.days == 30

    def test_range_over_cap_raises(self, settings):
        settings.ANALYTICS = {'MAX_RANGE_DAYS': 10}
        with pytest.raises(RangeTooLargeError):
            DateRange(date(2024, 1, 1), date(2024, 1, 11)).validate()


class TestScope:

    def test_most_specific_filter_wins(self):
        assert Scope.from_filters(farm_id='f', shed_id='s').kind == Scope.SHED
        assert Scope.from_filters(farm_id='f', manager_id='m').kind == Scope.FARM
        assert Scope.from_filters().kind == Scope.ALL_ORG

    def test_predicate_always_carries_tenant(self):
        predicate = Scope.farm('abc').predicate('org-1', farm_path='shed__farm', shed_path='shed')
        assert ('shed__farm__organization_id', 'org-1') in predicate.children
        assert ('shed__farm__id', 'abc') in predicate.children

    def test_foreign_farm_is_rejected(self, organization, other_farm):
        with pytest.raises(InvalidScopeError):
            Scope.farm(other_farm.id).validate(organization.id)

    def test_foreign_shed_is_rejected(self, organization, other_shed):
        with pytest.raises(InvalidScopeError):
            Scope.shed(other_shed.id).validate(organization.id)

    def test_worker_is_not_a_manager_scope(self, organization, make_user):
        worker = make_user(organization, 'worker')
        with pytest.raises(InvalidScopeError):
            Scope.manager(worker.id).validate(organization.id)

    def test_malformed_id_is_rejected(self, organization):
        with pytest.raises(InvalidScopeError):
            Scope.farm('not-a-uuid').validate(organization.id)

    def test_own_farm_is_accepted(self, organization, farm):
        assert Scope.farm(farm.id).validate(organization.id).id == farm.id


class TestProductionAggregation:

    def test_zero_total_days_are_excluded_from_efficiency(self, organization, shed, make_production):
        make_production(shed, date(2024, 1, 1), sellable=0)
        make_production(shed, date(2024, 1, 2), sellable=8, broken=2)

        result = MetricAggregator(organization.id).aggregate(DateRange(date(2024, 1, 1), date(2024, 1, 2)))

        assert result.totals['efficiency'] == pytest.approx(0.8)
        assert result.daily[0].efficiency is None

    def test_week_with_five_recorded_days(self, organization, shed, make_cycle, make_production):
        make_cycle(organization, date(2024, 1, 1))
        for offset in range(5):
            make_production(shed, date(2024, 1, 1) + timedelta(days=offset), sellable=140, broken=15, damaged=5)

        result = MetricAggregator(organization.id).aggregate(DateRange(date(2024, 1, 1), date(2024, 1, 7)))

        assert result.framing == 'cycle'
        assert len(result.weekly) == 1
        week = result.weekly[0]
        assert week.week == 1
        assert week.sellable == 700
        assert week.total == 800
        assert week.efficiency == pytest.approx(0.875)
        assert week.days_recorded == 5
        assert week.average_daily == pytest.approx(140)

    def test_weekly_totals_equal_sum_of_days(self, organization, shed, shed_b, make_cycle, make_production,
                                             make_mortality, farm):
        make_cycle(organization, date(2024, 1, 1))
        for offset in range(0, 21, 2):
            on = date(2024, 1, 1) + timedelta(days=offset)
            make_production(shed, on, sellable=100 + offset, broken=offset % 3)
            make_production(shed_b, on + timedelta(days=1), sellable=90, damaged=offset % 4)
            make_mortality(farm, on, female=offset % 5, shed=shed)

        result = MetricAggregator(organization.id).aggregate(DateRange(date(2024, 1, 1), date(2024, 1, 21)))

        for week in result.weekly:
            days = [d for d in result.daily if week.start_date <= d.date <= week.end_date]
            assert week.total == sum(d.total for d in days)
            assert week.sellable == sum(d.sellable for d in days)
            assert week.mortality == sum(d.mortality for d in days)
            assert week.days_recorded == sum(d.days_recorded for d in days)
        assert sum(w.total for w in result.weekly) == result.totals['total_eggs']

    def test_weeks_without_records_are_absent(self, organization, shed, make_cycle, make_production):
        make_cycle(organization, date(2024, 1, 1))
        make_production(shed, date(2024, 1, 2), sellable=100)
        make_production(shed, date(2024, 1, 16), sellable=100)

        result = MetricAggregator(organization.id).aggregate(DateRange(date(2024, 1, 1), date(2024, 1, 21)))

        assert [w.week for w in result.weekly] == [1, 3]
        assert [d.date for d in result.daily] == [date(2024, 1, 2), date(2024, 1, 16)]

    def test_range_framing_without_cycle(self, organization, shed, make_production):
        make_production(shed, date(2024, 1, 3), sellable=50)
        make_production(shed, date(2024, 1, 10), sellable=60)

        result = MetricAggregator(organization.id).aggregate(DateRange(date(2024, 1, 3), date(2024, 1, 16)))

        assert result.framing == 'range'
        assert [(w.week, w.start_date) for w in result.weekly] == [
            (1, date(2024, 1, 3)),
            (2, date(2024, 1, 10)),
        ]

    def test_range_framing_when_range_starts_before_cycle(self, organization, shed, make_cycle, make_production):
        make_cycle(organization, date(2024, 1, 10))
        make_production(shed, date(2024, 1, 12), sellable=50)

        result = MetricAggregator(organization.id).aggregate(DateRange(date(2024, 1, 1), date(2024, 1, 14)))

        assert result.framing == 'range'
        assert result.weekly[0].week == 2

    def test_empty_range_yields_empty_collections(self, organization, shed, make_production):
        make_production(shed, date(2024, 1, 1), sellable=50)

        result = MetricAggregator(organization.id).aggregate(DateRange(date(2024, 1, 5), date(2024, 1, 1)))

        assert result.daily == []
        assert result.weekly == []
        assert result.details == []
        assert result.totals['total_eggs'] == 0
        assert result.totals['efficiency'] is None

    def test_shed_rollup(self, organization, shed, make_production, make_mortality, farm):
        make_production(shed, date(2024, 1, 1), sellable=4000, broken=100)
        make_production(shed, date(2024, 1, 3), sellable=3000, closing=(100, 4890))
        make_mortality(farm, date(2024, 1, 3), female=10, shed=shed)

        result = MetricAggregator(organization.id).aggregate(DateRange(date(2024, 1, 1), date(2024, 1, 3)))

        rollup = result.by_shed[0]
        assert rollup.days_recorded == 2
        assert rollup.average_daily == pytest.approx(3500)
        assert rollup.capacity_utilization == pytest.approx(0.7)
        assert rollup.last_record_date == date(2024, 1, 3)
        assert rollup.current_flock == 4990
        assert rollup.mortality == 10
        assert result.details[-1]['mortality'] == 10

    def test_farm_level_mortality_counts_toward_farm_and_day(self, organization, farm, shed, make_mortality):
        make_mortality(farm, date(2024, 1, 2), female=4)

        result = MetricAggregator(organization.id).aggregate(DateRange(date(2024, 1, 1), date(2024, 1, 3)))

        assert result.totals['mortality'] == 4
        assert result.by_farm[0].farm_level_mortality == {date(2024, 1, 2): 4}
        assert result.by_shed[0].mortality == 0


class TestAttendance:

    @pytest.fixture
    def marks(self, organization, farm, make_user, make_attendance):
        on = date(2024, 1, 2)
        for name, status in [('w1', 'PRESENT'), ('w2', 'PRESENT'), ('w3', 'LATE'), ('w4', 'ABSENT')]:
            make_attendance(make_user(organization, name), farm, on, status)
        return on

    def test_late_counts_as_present_by_default(self, organization, marks):
        result = MetricAggregator(organization.id).aggregate(DateRange(marks, marks))
        assert result.day(marks).attendance_rate == pytest.approx(0.75)
        assert result.totals['attendance_rate'] == pytest.approx(0.75)

    def test_late_credit_is_configurable(self, organization, marks, settings):
        settings.ANALYTICS = {'LATE_ATTENDANCE_CREDIT': 0.5}
        result = MetricAggregator(organization.id).aggregate(DateRange(marks, marks))
        assert result.day(marks).attendance_rate == pytest.approx(0.625)

    def test_policy_can_be_passed_explicitly(self, organization, marks):
        aggregator = MetricAggregator(organization.id, policy=AttendancePolicy(late_credit=0.0))
        result = aggregator.aggregate(DateRange(marks, marks))
        assert result.day(marks).attendance_rate == pytest.approx(0.5)

    def test_worker_breakdown(self, organization, marks):
        result = MetricAggregator(organization.id).aggregate(DateRange(marks, marks))
        assert [w.name for w in result.workers] == ['w1', 'w2', 'w3', 'w4']
        assert result.workers[3].rate == 0


class TestTenantIsolation:

    def test_other_organization_records_are_never_counted(self, organization, shed, other_shed, make_production):
        make_production(shed, date(2024, 1, 1), sellable=100)
        make_production(other_shed, date(2024, 1, 1), sellable=9999)

        result = MetricAggregator(organization.id).aggregate(DateRange(date(2024, 1, 1), date(2024, 1, 1)))

        assert result.totals['sellable_eggs'] == 100
        assert [s.shed_name for s in result.by_shed] == ['Shed A']

    def test_foreign_farm_scope_reads_nothing(self, organization, other_farm, other_shed, make_production):
        make_production(other_shed, date(2024, 1, 1), sellable=9999)

        result = MetricAggregator(organization.id, Scope.farm(other_farm.id)).aggregate(
            DateRange(date(2024, 1, 1), date(2024, 1, 1))
        )

        assert result.totals['total_eggs'] == 0
        assert result.by_farm == []

    def test_shed_scope_excludes_sibling_shed(self, organization, shed, shed_b, make_production):
        make_production(shed, date(2024, 1, 1), sellable=100)
        make_production(shed_b, date(2024, 1, 1), sellable=300)

        result = MetricAggregator(organization.id, Scope.shed(shed_b.id)).aggregate(
            DateRange(date(2024, 1, 1), date(2024, 1, 1))
        )

        assert result.totals['sellable_eggs'] == 300

    def test_manager_scope_covers_managed_farms_only(self, organization, manager, shed, make_production):
        unmanaged = Farm.objects.create(organization=organization, name='Unmanaged Farm')
        unmanaged_shed = Shed.objects.create(farm=unmanaged, name='Shed Z', capacity=1000)
        make_production(shed, date(2024, 1, 1), sellable=100)
        make_production(unmanaged_shed, date(2024, 1, 1), sellable=500)

        result = MetricAggregator(organization.id, Scope.manager(manager.id)).aggregate(
            DateRange(date(2024, 1, 1), date(2024, 1, 1))
        )

        assert result.totals['sellable_eggs'] == 100
        assert [f.farm_name for f in result.by_farm] == ['North Farm']
