from django.urls import path
from .views import (
    ReportView,
    ReportScheduleListView,
    ReportScheduleDetailView,
    CronReportsView,
    CronAlertsView,
)

report_urlpatterns = [
    path('', ReportView.as_view(), name='compile'),
    path('schedules/', ReportScheduleListView.as_view(), name='schedule-list'),
    path('schedules/<uuid:definition_id>/', ReportScheduleDetailView.as_view(), name='schedule-detail'),
]

cron_urlpatterns = [
    path('reports/', CronReportsView.as_view(), name='cron-reports'),
    path('alerts/', CronAlertsView.as_view(), name='cron-alerts'),
]
