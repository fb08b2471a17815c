"""
Analytics URL Configuration
"""

from django.urls import path
from .analytics_views import (
    DashboardStatsView,
    ProductionTrendView,
    ShedPerformanceView,
    AttendanceSummaryView,
    ProductionAlertsView,
    WeekStatusView,
    WeeklyProductionView,
)

app_name = 'analytics'

urlpatterns = [
    path('dashboard/', DashboardStatsView.as_view(), name='dashboard'),
    path('production-trend/', ProductionTrendView.as_view(), name='production-trend'),
    path('shed-performance/', ShedPerformanceView.as_view(), name='shed-performance'),
    path('attendance-summary/', AttendanceSummaryView.as_view(), name='attendance-summary'),
    path('alerts/', ProductionAlertsView.as_view(), name='alerts'),
    path('week-status/', WeekStatusView.as_view(), name='week-status'),
    path('weekly-production/', WeeklyProductionView.as_view(), name='weekly-production'),
]
