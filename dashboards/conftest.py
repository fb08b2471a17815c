"""
Shared pytest fixtures for dashboards tests.
"""
import pytest
from datetime import date, datetime
from django.core.cache import cache
from django.utils import timezone
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient

from accounts.models import Organization
from farms.models import Farm, Shed, ProductionCycle, AttendanceRecord
from flock_management.models import ProductionRecord, MortalityRecord

User = get_user_model()


@pytest.fixture(autouse=True)
def clear_cache():
    """Clear cache before and after each test to prevent pollution."""
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def api_client():
    """API client for making requests."""
    return APIClient()


@pytest.fixture
def organization(db):
    return Organization.objects.create(name='Sunrise Poultry')


@pytest.fixture
def other_organization(db):
    """Second tenant for isolation tests."""
    return Organization.objects.create(name='Other Farms Ltd')


@pytest.fixture
def make_user(db):
    def _make_user(organization, username, role='WORKER', **kwargs):
        kwargs.setdefault('email', f'{username}@example.com')
        return User.objects.create_user(
            username=username,
            password='testpass123',
            organization=organization,
            role=role,
            **kwargs
        )
    return _make_user


@pytest.fixture
def owner(make_user, organization):
    return make_user(organization, 'owner', role='OWNER', first_name='Ama', last_name='Owusu')


@pytest.fixture
def manager(make_user, organization):
    return make_user(organization, 'manager', role='MANAGER', first_name='Kofi', last_name='Mensah')


@pytest.fixture
def farm(organization, manager):
    return Farm.objects.create(organization=organization, name='North Farm', location='Kumasi', manager=manager)


def _make_shed(farm, name, capacity):
    shed = Shed.objects.create(farm=farm, name=name, capacity=capacity)
    # Sheds exist well before the dates scenarios run against
    Shed.objects.filter(pk=shed.pk).update(created_at=timezone.make_aware(datetime(2023, 1, 1)))
    shed.refresh_from_db()
    return shed


@pytest.fixture
def shed(farm):
    return _make_shed(farm, 'Shed A', 5000)


@pytest.fixture
def shed_b(farm):
    return _make_shed(farm, 'Shed B', 5000)


@pytest.fixture
def other_farm(other_organization):
    return Farm.objects.create(organization=other_organization, name='Foreign Farm')


@pytest.fixture
def other_shed(other_farm):
    return _make_shed(other_farm, 'Foreign Shed', 3000)


@pytest.fixture
def make_cycle(db):
    def _make_cycle(organization, start_date, farm=None, **kwargs):
        return ProductionCycle.objects.create(
            organization=organization,
            farm=farm,
            start_date=start_date,
            name=kwargs.pop('name', f'Cycle {start_date.isoformat()}'),
            **kwargs
        )
    return _make_cycle


@pytest.fixture
def make_production(db):
    def _make_production(shed, on, sellable, broken=0, damaged=0, flock=(100, 4900), closing=None):
        opening_male, opening_female = flock
        closing_male, closing_female = closing or flock
        return ProductionRecord.objects.create(
            shed=shed,
            date=on,
            sellable_eggs=sellable,
            broken_eggs=broken,
            damaged_eggs=damaged,
            opening_male=opening_male,
            opening_female=opening_female,
            closing_male=closing_male,
            closing_female=closing_female,
        )
    return _make_production


@pytest.fixture
def make_mortality(db):
    def _make_mortality(farm, on, female, male=0, shed=None):
        return MortalityRecord.objects.create(
            farm=farm,
            shed=shed,
            date=on,
            male_mortality=male,
            female_mortality=female,
        )
    return _make_mortality


@pytest.fixture
def make_attendance(db):
    def _make_attendance(user, farm, on, status):
        return AttendanceRecord.objects.create(user=user, farm=farm, date=on, status=status)
    return _make_attendance


@pytest.fixture
def january():
    """Anchor dates used across scenarios."""
    return date(2024, 1, 1)
