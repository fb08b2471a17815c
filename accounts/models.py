from django.contrib.auth.models import AbstractUser
from django.db import models
import uuid


class Organization(models.Model):
    """
    Tenant boundary. Every farm, shed, record and report definition is
    reachable from exactly one organization.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=200)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'organizations'
        ordering = ['name']

    def __str__(self):
        return self.name


class User(AbstractUser):
    """
    Custom User model extending Django's AbstractUser.
    Each user belongs to one organization and holds a single role in it.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    class UserRole(models.TextChoices):
        OWNER = 'OWNER', 'Owner'
        MANAGER = 'MANAGER', 'Manager'
        WORKER = 'WORKER', 'Worker'

    organization = models.ForeignKey(
        Organization,
        on_delete=models.CASCADE,
        related_name='members',
        null=True,
        blank=True,
        help_text="Organization (tenant) this user belongs to"
    )
    role = models.CharField(
        max_length=20,
        choices=UserRole.choices,
        default=UserRole.WORKER,
        db_index=True,
        help_text="User's role within the organization"
    )

    class Meta:
        db_table = 'users'
        indexes = [
            models.Index(fields=['organization', 'role']),
        ]

    def __str__(self):
        return self.display_name

    @property
    def display_name(self):
        return self.get_full_name() or self.email or self.username
