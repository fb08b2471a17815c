"""
Scope Filters

A scope narrows an aggregation or report to the whole organization, one
farm, one shed, or the farms run by one manager. Every predicate produced
here carries the organization filter, so a query built from a scope can
never read another tenant's rows.
"""

from dataclasses import dataclass
from typing import Any, Optional

from django.core.exceptions import ValidationError
from django.db.models import Q

from dashboards.exceptions import InvalidScopeError


def _path(prefix: str, field: str) -> str:
    return f"{prefix}__{field}" if prefix else field


@dataclass(frozen=True)
class Scope:
    """
    Tagged scope variant: ``AllOrg | Farm(id) | Shed(id) | Manager(id)``.

    Usage:
        scope = Scope.from_filters(farm_id=request.query_params.get('farm_id'))
        scope.validate(organization_id)
        ProductionRecord.objects.filter(
            scope.predicate(organization_id, farm_path='shed__farm', shed_path='shed')
        )
    """

    ALL_ORG = 'organization'
    FARM = 'farm'
    SHED = 'shed'
    MANAGER = 'manager'

    kind: str = ALL_ORG
    id: Optional[Any] = None

    # -------------------------------------------------------------------------
    # Constructors
    # -------------------------------------------------------------------------

    @classmethod
    def all_org(cls):
        return cls(cls.ALL_ORG, None)

    @classmethod
    def farm(cls, farm_id):
        return cls(cls.FARM, farm_id)

    @classmethod
    def shed(cls, shed_id):
        return cls(cls.SHED, shed_id)

    @classmethod
    def manager(cls, manager_id):
        return cls(cls.MANAGER, manager_id)

    @classmethod
    def from_filters(cls, farm_id=None, shed_id=None, manager_id=None):
        """Build the most specific scope from optional filter ids (shed > farm > manager)."""
        if shed_id:
            return cls.shed(shed_id)
        if farm_id:
            return cls.farm(farm_id)
        if manager_id:
            return cls.manager(manager_id)
        return cls.all_org()

    # -------------------------------------------------------------------------
    # Filters
    # -------------------------------------------------------------------------

    def predicate(self, organization_id, farm_path: str = 'farm', shed_path: Optional[str] = None) -> Q:
        """
        Build the filter for a model reachable from Farm through ``farm_path``.

        Args:
            organization_id: Tenant every row must belong to
            farm_path: Lookup path from the queried model to Farm ('' for Farm itself)
            shed_path: Lookup path to Shed ('' for Shed itself, None if the
                model has no shed; a shed scope then narrows to the shed's farm)
        """
        q = Q(**{_path(farm_path, 'organization_id'): organization_id})

        if self.kind == self.FARM:
            q &= Q(**{_path(farm_path, 'id'): self.id})
        elif self.kind == self.SHED:
            if shed_path is None:
                q &= Q(**{_path(farm_path, 'sheds__id'): self.id})
            else:
                q &= Q(**{_path(shed_path, 'id'): self.id})
        elif self.kind == self.MANAGER:
            q &= Q(**{_path(farm_path, 'manager_id'): self.id})

        return q

    def validate(self, organization_id):
        """
        Check that the referenced farm/shed/manager exists inside the organization.

        Raises:
            InvalidScopeError if it does not.
        """
        from accounts.models import User
        from farms.models import Farm, Shed

        if self.kind == self.ALL_ORG:
            return self

        try:
            if self.kind == self.FARM:
                found = Farm.objects.filter(id=self.id, organization_id=organization_id).exists()
            elif self.kind == self.SHED:
                found = Shed.objects.filter(id=self.id, farm__organization_id=organization_id).exists()
            elif self.kind == self.MANAGER:
                found = User.objects.filter(
                    id=self.id,
                    organization_id=organization_id,
                    role__in=[User.UserRole.OWNER, User.UserRole.MANAGER],
                ).exists()
            else:
                found = False
        except (ValueError, TypeError, ValidationError):
            # Malformed identifiers (e.g. not a UUID)
            found = False

        if not found:
            raise InvalidScopeError(self.kind, self.id)
        return self

    def as_dict(self):
        return {'type': self.kind, 'id': str(self.id) if self.id is not None else None}

    def __str__(self):
        if self.kind == self.ALL_ORG:
            return 'organization'
        return f"{self.kind}:{self.id}"
