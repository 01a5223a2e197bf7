"""
Audit trail for attendance actions.

Events are published after the primary write has been persisted and are
delivered in the background. A failing audit write is logged and never
rolls back or blocks the attendance change it describes.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional, Dict, Any, Set

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase

logger = logging.getLogger(__name__)


def build_audit_event(
    organization_id: ObjectId,
    action: str,
    entity_type: str,
    entity_id: ObjectId,
    user_id: Optional[ObjectId] = None,
    changes: Optional[Dict[str, Any]] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Assemble an auditLogs document."""
    event: Dict[str, Any] = {
        "organizationId": organization_id,
        "userId": user_id,
        "action": action,
        "entityType": entity_type,
        "entityId": entity_id,
        "createdAt": datetime.now(timezone.utc),
    }
    if changes is not None:
        event["changes"] = changes
    if metadata:
        event["metadata"] = metadata
    return event


class AuditService:
    """Audit sink backed by the auditLogs collection."""

    def __init__(self, db: AsyncIOMotorDatabase):
        """
        Initialize AuditService.

        Args:
            db: MongoDB database connection
        """
        self._db = db
        self._audit_logs_collection = db["auditLogs"]

    async def record(self, event: Dict[str, Any]) -> None:
        """Persist one audit event."""
        await self._audit_logs_collection.insert_one(event)
        logger.debug(f"Audit event recorded: {event.get('action')} {event.get('entityId')}")


class AuditPublisher:
    """
    Fire-and-forget front of an AuditService.

    emit() schedules the write and returns immediately. drain() waits for
    outstanding writes, for shutdown and tests.
    """

    def __init__(self, sink: AuditService):
        self._sink = sink
        self._pending: Set[asyncio.Task] = set()

    def emit(self, event: Dict[str, Any]) -> None:
        """Schedule delivery of an audit event."""
        task = asyncio.create_task(self._deliver(event))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _deliver(self, event: Dict[str, Any]) -> None:
        try:
            await self._sink.record(event)
        except Exception as e:
            # Audit is best-effort; the ledger write is the source of truth
            logger.error(
                f"Failed to record audit event {event.get('action')} "
                f"for {event.get('entityId')}: {e}"
            )

    async def drain(self) -> None:
        """Wait for every scheduled audit write to finish."""
        if self._pending:
            await asyncio.gather(*list(self._pending))

    @property
    def pending_count(self) -> int:
        return len(self._pending)
