"""
Analytics and reporting engine services
"""

from .scopes import Scope
from .cycle_calendar import CycleCalendar, NO_CYCLE, resolve
from .metrics import AttendancePolicy, DateRange, MetricAggregator
from .alerts import AlertClassifier, AlertThresholds
from .reports import ReportCompiler, ComprehensiveReport
from .analytics import AnalyticsService
from .scheduler import ReportScheduler
from .notifications import AlertNotifier

__all__ = [
    'Scope',
    'CycleCalendar',
    'NO_CYCLE',
    'resolve',
    'AttendancePolicy',
    'DateRange',
    'MetricAggregator',
    'AlertClassifier',
    'AlertThresholds',
    'ReportCompiler',
    'ComprehensiveReport',
    'AnalyticsService',
    'ReportScheduler',
    'AlertNotifier',
]
