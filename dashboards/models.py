"""
Scheduled Report Models

A ReportDefinition is a recurring report rule for one organization. It also
carries the scheduler's per-definition state: the last delivered
occurrence, the current claim and a version counter used for
compare-and-swap updates.
"""

from datetime import time
import uuid

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator, MaxValueValidator, validate_email
from django.db import models

from accounts.models import Organization
from farms.models import Farm, Shed


class ReportDefinition(models.Model):

    class Frequency(models.TextChoices):
        DAILY = 'daily', 'Daily'
        WEEKLY = 'weekly', 'Weekly'
        MONTHLY = 'monthly', 'Monthly'

    class ReportType(models.TextChoices):
        COMPREHENSIVE = 'comprehensive', 'Comprehensive Report'
        PRODUCTION = 'production', 'Production Report'
        ATTENDANCE = 'attendance', 'Attendance Report'
        DAILY = 'daily', 'Daily Summary'
        WEEKLY = 'weekly', 'Weekly Summary'
        MONTHLY = 'monthly', 'Monthly Summary'

    class Status(models.TextChoices):
        IDLE = 'idle', 'Idle'
        DUE = 'due', 'Due'
        PROCESSING = 'processing', 'Processing'
        DELIVERED = 'delivered', 'Delivered'
        FAILED = 'failed', 'Failed'

    class Weekday(models.IntegerChoices):
        MONDAY = 0, 'Monday'
        TUESDAY = 1, 'Tuesday'
        WEDNESDAY = 2, 'Wednesday'
        THURSDAY = 3, 'Thursday'
        FRIDAY = 4, 'Friday'
        SATURDAY = 5, 'Saturday'
        SUNDAY = 6, 'Sunday'

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    organization = models.ForeignKey(
        Organization,
        on_delete=models.CASCADE,
        related_name='report_definitions'
    )
    name = models.CharField(max_length=200)
    frequency = models.CharField(max_length=10, choices=Frequency.choices)
    report_type = models.CharField(
        max_length=20,
        choices=ReportType.choices,
        default=ReportType.COMPREHENSIVE
    )
    recipients = models.JSONField(default=list, help_text="Email addresses")

    # === SCOPE FILTERS ===
    farm = models.ForeignKey(
        Farm, on_delete=models.CASCADE, null=True, blank=True, related_name='report_definitions'
    )
    shed = models.ForeignKey(
        Shed, on_delete=models.CASCADE, null=True, blank=True, related_name='report_definitions'
    )
    manager = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='managed_report_definitions'
    )

    # === RECURRENCE ===
    send_time = models.TimeField(default=time(8, 0), help_text="Local time of day the report is sent")
    weekday = models.PositiveSmallIntegerField(
        choices=Weekday.choices,
        default=Weekday.MONDAY,
        help_text="Day of week for weekly reports"
    )
    day_of_month = models.PositiveSmallIntegerField(
        default=1,
        validators=[MinValueValidator(1), MaxValueValidator(28)],
        help_text="Day of month for monthly reports"
    )
    is_active = models.BooleanField(default=True)

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='created_report_definitions'
    )

    # === SCHEDULER STATE ===
    status = models.CharField(max_length=12, choices=Status.choices, default=Status.IDLE)
    last_occurrence = models.DateTimeField(
        null=True, blank=True,
        help_text="Most recent occurrence delivered successfully"
    )
    claimed_occurrence = models.DateTimeField(null=True, blank=True)
    claimed_at = models.DateTimeField(null=True, blank=True)
    version = models.PositiveIntegerField(default=0)
    last_delivered_at = models.DateTimeField(null=True, blank=True)
    last_error = models.TextField(blank=True)
    failure_count = models.PositiveIntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'report_definitions'
        ordering = ['organization', 'name']
        indexes = [
            models.Index(fields=['is_active', 'frequency']),
            models.Index(fields=['organization', 'is_active']),
        ]

    def __str__(self):
        return f"{self.name} ({self.get_frequency_display()})"

    @property
    def scope(self):
        from dashboards.services.scopes import Scope
        return Scope.from_filters(farm_id=self.farm_id, shed_id=self.shed_id, manager_id=self.manager_id)

    def clean(self):
        errors = {}
        if not isinstance(self.recipients, list) or not self.recipients:
            errors['recipients'] = 'At least one recipient email is required.'
        else:
            for email in self.recipients:
                try:
                    validate_email(email)
                except ValidationError:
                    errors['recipients'] = f"Invalid email address: {email}"
                    break
        if self.farm_id and self.farm.organization_id != self.organization_id:
            errors['farm'] = 'Farm does not belong to this organization.'
        if self.shed_id and self.shed.farm.organization_id != self.organization_id:
            errors['shed'] = 'Shed does not belong to this organization.'
        if self.manager_id and self.manager.organization_id != self.organization_id:
            errors['manager'] = 'Manager does not belong to this organization.'
        if errors:
            raise ValidationError(errors)
