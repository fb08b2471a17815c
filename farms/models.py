"""
Farm Structure Models

Handles:
- Farms owned by an organization (tenant)
- Sheds (poultry houses) where production and mortality are recorded
- Production cycles that anchor the flock calendar (week 1, day 1)
- Daily worker attendance per farm
"""

from django.db import models
from django.core.validators import MinValueValidator, MaxValueValidator
from django.core.exceptions import ValidationError
from django.conf import settings
from accounts.models import Organization
import uuid


# =============================================================================
# FARM MODEL
# =============================================================================

class Farm(models.Model):
    """A farm site belonging to one organization."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    organization = models.ForeignKey(
        Organization,
        on_delete=models.CASCADE,
        related_name='farms'
    )
    name = models.CharField(max_length=200)
    location = models.CharField(max_length=255, blank=True)
    manager = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='managed_farms',
        help_text="Manager responsible for this farm"
    )
    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'farms'
        ordering = ['name']
        indexes = [
            models.Index(fields=['organization', 'is_active']),
        ]

    def __str__(self):
        return self.name

    def clean(self):
        if self.manager_id and self.manager.organization_id != self.organization_id:
            raise ValidationError({'manager': 'Manager must belong to the same organization as the farm.'})


# =============================================================================
# SHED MODEL
# =============================================================================

class Shed(models.Model):
    """Individual poultry house; the unit at which production is recorded."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    farm = models.ForeignKey(Farm, on_delete=models.CASCADE, related_name='sheds')
    name = models.CharField(max_length=100)
    capacity = models.PositiveIntegerField(
        validators=[MinValueValidator(1)],
        help_text="Maximum number of birds the shed can house"
    )
    description = models.TextField(blank=True)
    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'sheds'
        ordering = ['farm__name', 'name']
        unique_together = [('farm', 'name')]

    def __str__(self):
        return f"{self.farm.name} / {self.name}"


# =============================================================================
# PRODUCTION CYCLE MODEL
# =============================================================================

class ProductionCycle(models.Model):
    """
    A flock's production period. The start date is week 1, day 1.

    A cycle with no farm is the organization-wide default. Only one cycle
    may be active per farm, and one default per organization.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    organization = models.ForeignKey(
        Organization,
        on_delete=models.CASCADE,
        related_name='production_cycles'
    )
    farm = models.ForeignKey(
        Farm,
        on_delete=models.CASCADE,
        related_name='production_cycles',
        null=True,
        blank=True,
        help_text="Leave empty for the organization-wide default cycle"
    )
    name = models.CharField(max_length=100, blank=True)
    start_date = models.DateField(help_text="Week 1, day 1 of the cycle")
    start_week = models.PositiveIntegerField(
        default=1,
        validators=[MinValueValidator(1), MaxValueValidator(100)],
        help_text="Flock age in weeks on the start date"
    )
    expected_end_week = models.PositiveIntegerField(
        null=True,
        blank=True,
        validators=[MinValueValidator(1), MaxValueValidator(200)],
        help_text="Flock age in weeks when the cycle is expected to end"
    )
    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'production_cycles'
        ordering = ['-start_date']
        constraints = [
            models.UniqueConstraint(
                fields=['farm'],
                condition=models.Q(is_active=True, farm__isnull=False),
                name='one_active_cycle_per_farm',
            ),
            models.UniqueConstraint(
                fields=['organization'],
                condition=models.Q(is_active=True, farm__isnull=True),
                name='one_active_default_cycle_per_org',
            ),
        ]

    def __str__(self):
        return self.name or f"Cycle from {self.start_date}"

    @property
    def total_days(self):
        """Fixed cycle length in days, or None when open-ended."""
        if not self.expected_end_week:
            return None
        return max(self.expected_end_week - self.start_week + 1, 0) * 7

    def clean(self):
        if self.farm_id and self.farm.organization_id != self.organization_id:
            raise ValidationError({'farm': 'Farm does not belong to this organization.'})
        if self.expected_end_week and self.expected_end_week < self.start_week:
            raise ValidationError({'expected_end_week': 'Expected end week must not precede the start week.'})

    def save(self, *args, **kwargs):
        # Activating a cycle retires the previous active cycle of the same scope
        if self.is_active:
            siblings = ProductionCycle.objects.filter(
                organization_id=self.organization_id,
                farm_id=self.farm_id,
                is_active=True,
            )
            if self.pk:
                siblings = siblings.exclude(pk=self.pk)
            siblings.update(is_active=False)
        super().save(*args, **kwargs)


# =============================================================================
# ATTENDANCE MODEL
# =============================================================================

class AttendanceRecord(models.Model):
    """One worker's attendance status on one day at a farm."""

    class Status(models.TextChoices):
        PRESENT = 'PRESENT', 'Present'
        LATE = 'LATE', 'Late'
        ABSENT = 'ABSENT', 'Absent'

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='attendance_records'
    )
    farm = models.ForeignKey(Farm, on_delete=models.CASCADE, related_name='attendance_records')
    date = models.DateField(db_index=True)
    status = models.CharField(max_length=10, choices=Status.choices)
    notes = models.CharField(max_length=255, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'attendance_records'
        ordering = ['-date']
        unique_together = [('user', 'date')]
        indexes = [
            models.Index(fields=['farm', 'date']),
        ]

    def __str__(self):
        return f"{self.user} - {self.date} ({self.status})"

    def clean(self):
        if self.user_id and self.farm_id and self.user.organization_id != self.farm.organization_id:
            raise ValidationError('Worker and farm belong to different organizations.')
