"""
Admin interface for farms, sheds, production cycles and attendance.
"""

from django.contrib import admin
from .models import Farm, Shed, ProductionCycle, AttendanceRecord


class ShedInline(admin.TabularInline):
    model = Shed
    extra = 0
    fields = ['name', 'capacity', 'is_active']


@admin.register(Farm)
class FarmAdmin(admin.ModelAdmin):
    list_display = ['name', 'organization', 'location', 'manager', 'is_active']
    list_filter = ['is_active', 'organization']
    search_fields = ['name', 'location', 'organization__name']
    inlines = [ShedInline]


@admin.register(Shed)
class ShedAdmin(admin.ModelAdmin):
    list_display = ['name', 'farm', 'capacity', 'is_active']
    list_filter = ['is_active', 'farm__organization']
    search_fields = ['name', 'farm__name']


@admin.register(ProductionCycle)
class ProductionCycleAdmin(admin.ModelAdmin):
    list_display = ['__str__', 'organization', 'farm', 'start_date', 'start_week', 'expected_end_week', 'is_active']
    list_filter = ['is_active', 'organization']


@admin.register(AttendanceRecord)
class AttendanceRecordAdmin(admin.ModelAdmin):
    list_display = ['date', 'user', 'farm', 'status']
    list_filter = ['status', 'date', 'farm']
    search_fields = ['user__username', 'user__email', 'farm__name']
    date_hierarchy = 'date'
