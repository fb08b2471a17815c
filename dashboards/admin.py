"""
Admin interface for scheduled report definitions.
"""

from django.contrib import admin
from .models import ReportDefinition


@admin.register(ReportDefinition)
class ReportDefinitionAdmin(admin.ModelAdmin):
    list_display = [
        'name', 'organization', 'frequency', 'report_type', 'is_active',
        'status', 'last_occurrence', 'failure_count'
    ]
    list_filter = ['frequency', 'report_type', 'status', 'is_active']
    search_fields = ['name', 'organization__name']
    readonly_fields = [
        'id', 'status', 'last_occurrence', 'claimed_occurrence', 'claimed_at',
        'version', 'last_delivered_at', 'last_error', 'failure_count',
        'created_at', 'updated_at'
    ]
