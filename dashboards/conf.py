"""
Engine settings with their defaults.

Values come from the ``ANALYTICS`` and ``REPORT_SCHEDULER`` dicts in Django
settings; anything missing falls back to the defaults below.
"""

from django.conf import settings


ANALYTICS_DEFAULTS = {
    'MAX_RANGE_DAYS': 730,
    'LATE_ATTENDANCE_CREDIT': 1.0,
    'PRODUCTION_DROP_THRESHOLD': 0.85,
    'PRODUCTION_DROP_WINDOW_DAYS': 7,
    'MORTALITY_SPIKE_ABSOLUTE': 20,
    'MORTALITY_SPIKE_FLOCK_PERCENT': 1.0,
    'ATTENDANCE_SHORTFALL_THRESHOLD': 0.7,
    'STALE_DATA_DAYS': 2,
    'HIGH_LOSS_THRESHOLD': 0.10,
    'EXPECTED_LAY_RATE': 0.8,
    'LOW_PRODUCTION_RATIO': 0.6,
    'CAPACITY_ISSUE_UTILIZATION': 0.95,
    'ALERT_LOOKBACK_DAYS': 8,
}

SCHEDULER_DEFAULTS = {
    'CLAIM_TIMEOUT_MINUTES': 30,
    'ALERT_DEDUP_SECONDS': 86400,
}


def analytics_setting(name):
    configured = getattr(settings, 'ANALYTICS', {}) or {}
    return configured.get(name, ANALYTICS_DEFAULTS[name])


def scheduler_setting(name):
    configured = getattr(settings, 'REPORT_SCHEDULER', {}) or {}
    return configured.get(name, SCHEDULER_DEFAULTS[name])
