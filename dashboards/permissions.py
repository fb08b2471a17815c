"""
Permissions for analytics, report and cron endpoints.
"""

import hmac

from django.conf import settings
from rest_framework import permissions


class HasOrganization(permissions.BasePermission):
    """
    Authenticated user attached to an organization.
    """
    message = 'Organization not found for this user.'

    def has_permission(self, request, view):
        return (
            request.user and
            request.user.is_authenticated and
            request.user.organization_id is not None
        )


class IsOwnerOrManager(HasOrganization):
    """
    Owners and managers may manage scheduled reports.
    """
    message = 'Only owners and managers can manage scheduled reports.'

    def has_permission(self, request, view):
        return (
            super().has_permission(request, view) and
            request.user.role in ['OWNER', 'MANAGER']
        )


class HasCronSecret(permissions.BasePermission):
    """
    Requests from the external scheduler: ``Authorization: Bearer <CRON_SECRET>``.
    """
    message = 'Invalid cron secret.'

    def has_permission(self, request, view):
        secret = getattr(settings, 'CRON_SECRET', '')
        if not secret:
            return False
        header = request.headers.get('Authorization', '')
        return hmac.compare_digest(header, f"Bearer {secret}")
