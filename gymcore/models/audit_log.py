"""
Audit log model.

Written best-effort after the primary change has been persisted.
"""

from typing import Any, Dict, Optional

from beanie import PydanticObjectId
from pymongo import ASCENDING, DESCENDING, IndexModel

from common.database import BaseDocument


class AuditLog(BaseDocument):
    """Audit trail entry for attendance actions."""

    organizationId: PydanticObjectId
    # None when the action came from an unattended device
    userId: Optional[PydanticObjectId] = None
    action: str
    entityType: str
    entityId: PydanticObjectId
    changes: Optional[Dict[str, Any]] = None
    metadata: Optional[Dict[str, Any]] = None

    class Settings:
        name = "auditLogs"
        indexes = [
            IndexModel([("organizationId", ASCENDING), ("createdAt", DESCENDING)]),
            IndexModel([("entityType", ASCENDING), ("entityId", ASCENDING)]),
            IndexModel([("action", ASCENDING)]),
        ]
