"""
Flock Production Tracking Models

Handles:
- Daily production records per shed (eggs by category, flock counts)
- Mortality records per shed or farm
"""

from django.db import models
from django.core.exceptions import ValidationError
from django.conf import settings
from farms.models import Farm, Shed
import uuid


# =============================================================================
# DAILY PRODUCTION MODEL
# =============================================================================

class ProductionRecord(models.Model):
    """
    Daily production record for a shed.
    Records eggs by category and the opening/closing flock counts.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    shed = models.ForeignKey(Shed, on_delete=models.CASCADE, related_name='production_records')
    date = models.DateField(
        db_index=True,
        help_text="Date of this production record"
    )

    # === EGG PRODUCTION ===
    sellable_eggs = models.PositiveIntegerField(
        default=0,
        help_text="Clean, sellable eggs"
    )
    broken_eggs = models.PositiveIntegerField(
        default=0,
        help_text="Eggs broken during collection"
    )
    damaged_eggs = models.PositiveIntegerField(
        default=0,
        help_text="Cracked, leaking or otherwise unsellable eggs"
    )
    total_eggs = models.PositiveIntegerField(
        default=0,
        editable=False,
        help_text="Sum of all egg categories"
    )

    # === FLOCK COUNTS ===
    opening_male = models.PositiveIntegerField(default=0)
    opening_female = models.PositiveIntegerField(default=0)
    closing_male = models.PositiveIntegerField(default=0)
    closing_female = models.PositiveIntegerField(default=0)

    notes = models.TextField(blank=True)
    recorded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='production_records'
    )
    recorded_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'production_records'
        ordering = ['-date']
        unique_together = [('shed', 'date')]
        indexes = [
            models.Index(fields=['shed', 'date']),
        ]

    def __str__(self):
        return f"{self.shed.name} - {self.date}"

    def save(self, *args, **kwargs):
        self.total_eggs = self.sellable_eggs + self.broken_eggs + self.damaged_eggs
        super().save(*args, **kwargs)

    @property
    def opening_flock(self):
        return self.opening_male + self.opening_female

    @property
    def closing_flock(self):
        return self.closing_male + self.closing_female

    def clean(self):
        errors = {}
        if self.closing_male > self.opening_male:
            errors['closing_male'] = 'Closing male count cannot exceed the opening count.'
        if self.closing_female > self.opening_female:
            errors['closing_female'] = 'Closing female count cannot exceed the opening count.'
        if errors:
            raise ValidationError(errors)


# =============================================================================
# MORTALITY MODEL
# =============================================================================

class MortalityRecord(models.Model):
    """
    Birds lost on a given day, recorded against a shed or (when the shed
    is unknown) against the farm as a whole.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    farm = models.ForeignKey(Farm, on_delete=models.CASCADE, related_name='mortality_records')
    shed = models.ForeignKey(
        Shed,
        on_delete=models.CASCADE,
        related_name='mortality_records',
        null=True,
        blank=True
    )
    production_record = models.ForeignKey(
        ProductionRecord,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='mortality_records',
        help_text="Production record of the same shed and date"
    )
    date = models.DateField(db_index=True)
    male_mortality = models.PositiveIntegerField(default=0)
    female_mortality = models.PositiveIntegerField(default=0)
    notes = models.TextField(blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'mortality_records'
        ordering = ['-date']
        indexes = [
            models.Index(fields=['farm', 'date']),
            models.Index(fields=['shed', 'date']),
        ]

    def __str__(self):
        where = self.shed.name if self.shed_id else self.farm.name
        return f"{where} - {self.date}: {self.total}"

    @property
    def total(self):
        return self.male_mortality + self.female_mortality

    def clean(self):
        errors = {}
        if self.shed_id and self.shed.farm_id != self.farm_id:
            errors['shed'] = 'Shed does not belong to this farm.'
        if self.production_record_id:
            record = self.production_record
            if record.date != self.date:
                errors['production_record'] = 'Production record date does not match the mortality date.'
            elif self.shed_id and record.shed_id != self.shed_id:
                errors['production_record'] = 'Production record belongs to a different shed.'
        if errors:
            raise ValidationError(errors)
