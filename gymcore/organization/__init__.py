"""
Organization

Read-only organization lookups; the source of each tenant's timezone.
"""

from gymcore.organization.services.organization_service import OrganizationService

__all__ = ["OrganizationService"]
