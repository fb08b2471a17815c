"""
Report and Scheduler Views

Endpoints:
- POST /api/reports/ - Compile a report on demand
- GET/POST /api/reports/schedules/ - List / create scheduled reports
- GET/PATCH/DELETE /api/reports/schedules/<id>/ - Manage one (DELETE deactivates)
- POST /api/cron/reports/ - Process due scheduled reports (Bearer CRON_SECRET)
- POST /api/cron/alerts/ - Send alert notifications (Bearer CRON_SECRET)
"""

import logging
from rest_framework import status
from rest_framework.views import APIView
from rest_framework.response import Response

from .analytics_views import error_response, scope_from
from .exceptions import AnalyticsError
from .models import ReportDefinition
from .permissions import HasCronSecret, HasOrganization, IsOwnerOrManager
from .serializers import ReportDefinitionSerializer, ReportRequestSerializer
from .services.metrics import DateRange
from .services.notifications import AlertNotifier
from .services.reports import ReportCompiler
from .services.scheduler import ReportScheduler

logger = logging.getLogger(__name__)


# =============================================================================
# ON-DEMAND REPORTS
# =============================================================================

class ReportView(APIView):
    """
    POST /api/reports/

    Body: report_type, start_date, end_date and optional farm_id / shed_id /
    manager_id. Returns the compiled report structure.
    """
    permission_classes = [HasOrganization]

    def post(self, request):
        serializer = ReportRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        params = serializer.validated_data

        try:
            report = ReportCompiler(request.user.organization_id).compile(
                params['report_type'],
                DateRange(params['start_date'], params['end_date']),
                scope_from(params),
                requested_by=request.user,
            )
        except AnalyticsError as e:
            return error_response(e)

        return Response({'data': report.as_dict()}, status=status.HTTP_200_OK)


# =============================================================================
# SCHEDULED REPORT DEFINITIONS
# =============================================================================

class ReportScheduleListView(APIView):
    """GET/POST /api/reports/schedules/"""
    permission_classes = [IsOwnerOrManager]

    def get(self, request):
        definitions = ReportDefinition.objects.filter(
            organization_id=request.user.organization_id
        ).order_by('name', 'id')
        serializer = ReportDefinitionSerializer(definitions, many=True)
        return Response({'data': serializer.data})

    def post(self, request):
        serializer = ReportDefinitionSerializer(
            data=request.data,
            context={'request': request, 'organization_id': request.user.organization_id},
        )
        if serializer.is_valid():
            definition = serializer.save(
                organization_id=request.user.organization_id,
                created_by=request.user,
            )
            logger.info(f"Report schedule {definition.id} created by {request.user.id}")
            return Response({'data': ReportDefinitionSerializer(definition).data}, status=status.HTTP_201_CREATED)

        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


class ReportScheduleDetailView(APIView):
    """GET/PATCH/DELETE /api/reports/schedules/<id>/"""
    permission_classes = [IsOwnerOrManager]

    def get_object(self, request, definition_id):
        try:
            return ReportDefinition.objects.get(id=definition_id, organization_id=request.user.organization_id)
        except ReportDefinition.DoesNotExist:
            return None

    def get(self, request, definition_id):
        definition = self.get_object(request, definition_id)
        if definition is None:
            return Response({'error': 'Report schedule not found'}, status=status.HTTP_404_NOT_FOUND)
        return Response({'data': ReportDefinitionSerializer(definition).data})

    def patch(self, request, definition_id):
        definition = self.get_object(request, definition_id)
        if definition is None:
            return Response({'error': 'Report schedule not found'}, status=status.HTTP_404_NOT_FOUND)

        serializer = ReportDefinitionSerializer(
            definition,
            data=request.data,
            partial=True,
            context={'request': request, 'organization_id': request.user.organization_id},
        )
        if serializer.is_valid():
            serializer.save()
            return Response({'data': serializer.data})

        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    def delete(self, request, definition_id):
        definition = self.get_object(request, definition_id)
        if definition is None:
            return Response({'error': 'Report schedule not found'}, status=status.HTTP_404_NOT_FOUND)

        # Definitions are kept for their delivery history
        definition.is_active = False
        definition.save(update_fields=['is_active', 'updated_at'])
        logger.info(f"Report schedule {definition.id} deactivated by {request.user.id}")
        return Response(status=status.HTTP_204_NO_CONTENT)


# =============================================================================
# CRON TRIGGERS
# =============================================================================

class CronReportsView(APIView):
    """POST /api/cron/reports/"""
    authentication_classes = []
    permission_classes = [HasCronSecret]

    def post(self, request):
        result = ReportScheduler().process_due_reports()
        return Response({'data': result.as_dict()}, status=status.HTTP_200_OK)


class CronAlertsView(APIView):
    """POST /api/cron/alerts/"""
    authentication_classes = []
    permission_classes = [HasCronSecret]

    def post(self, request):
        summary = AlertNotifier().send_alert_notifications_for_all()
        return Response({'data': summary}, status=status.HTTP_200_OK)
