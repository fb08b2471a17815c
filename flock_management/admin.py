"""
Admin interface for production and mortality records.
"""

from django.contrib import admin
from .models import ProductionRecord, MortalityRecord


@admin.register(ProductionRecord)
class ProductionRecordAdmin(admin.ModelAdmin):
    list_display = [
        'date', 'shed', 'sellable_eggs', 'broken_eggs', 'damaged_eggs',
        'total_eggs', 'opening_flock', 'closing_flock'
    ]
    list_filter = ['date', 'shed__farm']
    search_fields = ['shed__name', 'shed__farm__name']
    readonly_fields = ['id', 'total_eggs', 'recorded_at', 'updated_at']
    date_hierarchy = 'date'


@admin.register(MortalityRecord)
class MortalityRecordAdmin(admin.ModelAdmin):
    list_display = ['date', 'farm', 'shed', 'male_mortality', 'female_mortality', 'total']
    list_filter = ['date', 'farm']
    search_fields = ['farm__name', 'shed__name']
    readonly_fields = ['id', 'created_at']
    date_hierarchy = 'date'
