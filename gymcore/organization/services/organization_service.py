"""
Organization lookup service.

Resolves the organization document and its configured timezone. Day
boundaries for check-ins and expiry are always computed in this timezone.
"""

import logging
from typing import Optional, Dict, Any

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase

from gymcore.clock import resolve_timezone
from gymcore.membership.services.member_service import IdLike, to_object_id
from common.utils.exceptions import InvalidTimestampException

logger = logging.getLogger(__name__)


class OrganizationService:
    """
    Read-only access to organizations, cached per process.

    Organizations change rarely; the cache is cleared with clear_cache().
    """

    def __init__(self, db: AsyncIOMotorDatabase, default_timezone: str = "Asia/Kolkata"):
        """
        Initialize OrganizationService.

        Args:
            db: MongoDB database connection
            default_timezone: Used when an organization has no valid timezone
        """
        self._db = db
        self._organizations_collection = db["organizations"]
        self._default_timezone = default_timezone
        self._cache: Dict[ObjectId, Dict[str, Any]] = {}

    async def get_organization(self, organization_id: IdLike) -> Dict[str, Any]:
        """
        Get an organization document.

        A missing organization yields a stub carrying only the id, so
        notifications and day boundaries still work with defaults.
        """
        org_id = to_object_id(organization_id, "Organization not found", "ORGANIZATION_NOT_FOUND")
        if org_id in self._cache:
            return self._cache[org_id]

        organization = await self._organizations_collection.find_one(
            {"_id": org_id},
            {"name": 1, "email": 1, "phone": 1, "timezone": 1},
        )
        if not organization:
            logger.warning(f"Organization {org_id} not found, using defaults")
            organization = {"_id": org_id}

        self._cache[org_id] = organization
        return organization

    async def get_timezone(self, organization_id: IdLike) -> str:
        """IANA timezone name for the organization."""
        organization = await self.get_organization(organization_id)
        return self.timezone_of(organization)

    def timezone_of(self, organization: Optional[Dict[str, Any]]) -> str:
        """Validated timezone of an organization document, or the default."""
        tz_name = (organization or {}).get("timezone") or self._default_timezone
        try:
            resolve_timezone(tz_name)
        except InvalidTimestampException:
            logger.warning(
                f"Invalid timezone '{tz_name}' on organization "
                f"{(organization or {}).get('_id')}, using {self._default_timezone}"
            )
            return self._default_timezone
        return tz_name

    def clear_cache(self) -> None:
        """Drop cached organization documents."""
        self._cache.clear()
