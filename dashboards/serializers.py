"""
Analytics and Report Serializers

Query-parameter validation for the analytics endpoints and the
ReportDefinition model serializer.
"""

from rest_framework import serializers

from accounts.models import User
from farms.models import Farm, Shed

from .models import ReportDefinition
from .services.reports import REPORT_TYPES


class ScopeFilterSerializer(serializers.Serializer):
    """Optional farm / shed / manager filters"""
    farm_id = serializers.UUIDField(required=False, allow_null=True)
    shed_id = serializers.UUIDField(required=False, allow_null=True)
    manager_id = serializers.UUIDField(required=False, allow_null=True)


class AnalyticsPeriodSerializer(ScopeFilterSerializer):
    """Query parameters for analytics"""
    days = serializers.IntegerField(
        default=30,
        min_value=1,
        max_value=730,
        help_text="Number of days for analytics period, today included"
    )


class WeeklySummarySerializer(ScopeFilterSerializer):
    weeks = serializers.IntegerField(default=12, min_value=1, max_value=104)


class ReportRequestSerializer(ScopeFilterSerializer):
    """Body of an on-demand report request"""
    report_type = serializers.ChoiceField(choices=list(REPORT_TYPES), default='comprehensive')
    start_date = serializers.DateField()
    end_date = serializers.DateField()


class ReportDefinitionSerializer(serializers.ModelSerializer):
    recipients = serializers.ListField(child=serializers.EmailField(), allow_empty=False)
    farm = serializers.PrimaryKeyRelatedField(queryset=Farm.objects.none(), required=False, allow_null=True)
    shed = serializers.PrimaryKeyRelatedField(queryset=Shed.objects.none(), required=False, allow_null=True)
    manager = serializers.PrimaryKeyRelatedField(queryset=User.objects.none(), required=False, allow_null=True)

    class Meta:
        model = ReportDefinition
        fields = [
            'id', 'name', 'frequency', 'report_type', 'recipients',
            'farm', 'shed', 'manager',
            'send_time', 'weekday', 'day_of_month', 'is_active',
            'status', 'last_occurrence', 'last_delivered_at', 'last_error', 'failure_count',
            'created_at', 'updated_at',
        ]
        read_only_fields = [
            'id', 'status', 'last_occurrence', 'last_delivered_at', 'last_error', 'failure_count',
            'created_at', 'updated_at',
        ]

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        # Scope filters may only reference the caller's organization
        organization_id = self.context.get('organization_id')
        if organization_id:
            self.fields['farm'].queryset = Farm.objects.filter(organization_id=organization_id)
            self.fields['shed'].queryset = Shed.objects.filter(farm__organization_id=organization_id)
            self.fields['manager'].queryset = User.objects.filter(
                organization_id=organization_id,
                role__in=[User.UserRole.OWNER, User.UserRole.MANAGER],
            )
