"""
Base document class with common fields for all models.

Provides createdAt and updatedAt timestamps, stored with the same camelCase
names the services write through raw Motor collections.

Example:
    from common.database import BaseDocument

    class AuditLog(BaseDocument):
        action: str

        class Settings:
            name = "auditLogs"
"""

from datetime import datetime, timezone

from beanie import Document
from pydantic import Field


def _utcnow() -> datetime:
    """Get current UTC time (timezone-aware)."""
    return datetime.now(timezone.utc)


class BaseDocument(Document):
    """
    Base document with common fields.

    All documents extending this class will have:
    - createdAt: Timestamp when document was created
    - updatedAt: Timestamp when document was last modified
    """

    createdAt: datetime = Field(default_factory=_utcnow)
    updatedAt: datetime = Field(default_factory=_utcnow)

    class Settings:
        use_state_management = True
