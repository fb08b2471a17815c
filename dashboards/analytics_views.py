"""
Analytics Views

Dashboard analytics for the caller's organization. Every endpoint accepts
optional ``farm_id`` / ``shed_id`` / ``manager_id`` query parameters that
narrow the scope.

Endpoints:
- GET /api/analytics/dashboard/ - Headline stats for the last N days
- GET /api/analytics/production-trend/ - Daily production series
- GET /api/analytics/shed-performance/ - Per-shed performance
- GET /api/analytics/attendance-summary/ - Attendance per worker
- GET /api/analytics/alerts/ - Current production alerts
- GET /api/analytics/week-status/ - Position in the active cycle
- GET /api/analytics/weekly-production/ - Weekly production rollups
"""

import logging
from rest_framework import status
from rest_framework.views import APIView
from rest_framework.response import Response

from .exceptions import AnalyticsError
from .permissions import HasOrganization
from .serializers import AnalyticsPeriodSerializer, ScopeFilterSerializer, WeeklySummarySerializer
from .services.analytics import AnalyticsService
from .services.scopes import Scope

logger = logging.getLogger(__name__)


def error_response(exc: AnalyticsError):
    return Response({'error': str(exc), 'code': exc.code}, status=status.HTTP_400_BAD_REQUEST)


def scope_from(validated_data):
    return Scope.from_filters(
        farm_id=validated_data.get('farm_id'),
        shed_id=validated_data.get('shed_id'),
        manager_id=validated_data.get('manager_id'),
    )


class BaseAnalyticsView(APIView):
    """Validates query parameters and builds an organization-scoped service"""
    permission_classes = [HasOrganization]
    params_serializer_class = ScopeFilterSerializer

    def get(self, request):
        serializer = self.params_serializer_class(data=request.query_params)
        serializer.is_valid(raise_exception=True)
        params = serializer.validated_data

        organization_id = request.user.organization_id
        try:
            scope = scope_from(params).validate(organization_id)
            service = AnalyticsService(organization_id, scope)
            data = self.get_data(service, params)
        except AnalyticsError as e:
            return error_response(e)

        return Response({'data': data}, status=status.HTTP_200_OK)

    def get_data(self, service, params):
        raise NotImplementedError


class DashboardStatsView(BaseAnalyticsView):
    """
    GET /api/analytics/dashboard/?days=30

    Production, attendance and structure totals for the period plus
    today-vs-yesterday trends.
    """
    params_serializer_class = AnalyticsPeriodSerializer

    def get_data(self, service, params):
        return service.get_dashboard_stats(days=params['days'])


class ProductionTrendView(BaseAnalyticsView):
    """GET /api/analytics/production-trend/?days=30"""
    params_serializer_class = AnalyticsPeriodSerializer

    def get_data(self, service, params):
        return service.get_production_trend(days=params['days'])


class ShedPerformanceView(BaseAnalyticsView):
    """GET /api/analytics/shed-performance/?days=30"""
    params_serializer_class = AnalyticsPeriodSerializer

    def get_data(self, service, params):
        return service.get_shed_performance(days=params['days'])


class AttendanceSummaryView(BaseAnalyticsView):
    """GET /api/analytics/attendance-summary/?days=30"""
    params_serializer_class = AnalyticsPeriodSerializer

    def get_data(self, service, params):
        return service.get_attendance_summary(days=params['days'])


class ProductionAlertsView(BaseAnalyticsView):
    """GET /api/analytics/alerts/"""

    def get_data(self, service, params):
        return service.get_production_alerts()


class WeekStatusView(BaseAnalyticsView):
    """GET /api/analytics/week-status/"""

    def get_data(self, service, params):
        return service.get_current_week_status()


class WeeklyProductionView(BaseAnalyticsView):
    """
    GET /api/analytics/weekly-production/?weeks=12

    Weeks with no records are omitted rather than reported as zero.
    """
    params_serializer_class = WeeklySummarySerializer

    def get_data(self, service, params):
        return service.get_weekly_production_summary(weeks=params['weeks'])
