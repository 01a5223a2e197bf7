"""
Attendance ledger.

Owns the attendances collection and the rule that a member has at most one
open successful visit per calendar day unless staff explicitly override.
The rule is enforced twice: an in-process lock serializes check-then-write
for a member, and a unique sparse index on openVisitKey makes storage refuse
a second open visit written by any other process.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import date, datetime, timezone
from typing import Optional, List, Dict, Any, Union

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from common.utils.exceptions import NotFoundException, AlreadyClosedException
from gymcore.clock import calendar_day, parse_instant
from gymcore.membership.services.member_service import IdLike, to_object_id
from gymcore.models.attendance import CHECK_IN_METHODS

logger = logging.getLogger(__name__)


class DuplicateVisitError(Exception):
    """An open successful visit already exists for this member and day."""

    def __init__(self, existing: Optional[Dict[str, Any]]):
        super().__init__("Member already has an open visit today")
        self.existing = existing


def open_visit_key(member_id: ObjectId, visit_day: str) -> str:
    """Uniqueness key of an open successful visit."""
    return f"{member_id}:{visit_day}"


def range_filter(
    start: Optional[Union[str, date, datetime]],
    end: Optional[Union[str, date, datetime]],
) -> Dict[str, Any]:
    """
    Query fragment for an inclusive start/end range.

    Calendar dates bound visitDay, the local day key, so a date range follows
    the organization's timezone. Instants bound checkInTime.
    """
    fragment: Dict[str, Dict[str, Any]] = {}
    for operator, bound in (("$gte", start), ("$lte", end)):
        if bound is None:
            continue
        day = calendar_day(bound)
        if day is not None:
            fragment.setdefault("visitDay", {})[operator] = day.isoformat()
        else:
            fragment.setdefault("checkInTime", {})[operator] = parse_instant(bound)
    return fragment


class AttendanceLedger:
    """
    Attendance record storage and queries.

    Records are only ever inserted; the single mutation is close(), plus
    staff corrections through apply_correction().
    """

    MAX_LIMIT = 100

    def __init__(self, db: AsyncIOMotorDatabase):
        """
        Initialize AttendanceLedger.

        Args:
            db: MongoDB database connection
        """
        self._db = db
        self._attendance_collection = db["attendances"]
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_waiters: Dict[str, int] = {}

    @asynccontextmanager
    async def visit_lock(self, member_id: IdLike):
        """
        Serialize check-in work for one member inside this process.

        Locks are dropped once nobody holds or awaits them.
        """
        key = str(member_id)
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._lock_waiters[key] = self._lock_waiters.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_waiters[key] -= 1
            if self._lock_waiters[key] == 0:
                del self._lock_waiters[key]
                del self._locks[key]

    async def find_open_visit(
        self,
        organization_id: ObjectId,
        member_id: ObjectId,
        visit_day: str,
    ) -> Optional[Dict[str, Any]]:
        """
        Find the member's open successful visit on a local calendar day.

        Args:
            organization_id: Caller's organization
            member_id: Member _id
            visit_day: YYYY-MM-DD in the organization's timezone

        Returns:
            Attendance document or None
        """
        return await self._attendance_collection.find_one({
            "organizationId": organization_id,
            "memberId": member_id,
            "visitDay": visit_day,
            "status": "success",
            "checkOutTime": None,
        })

    async def record(self, entry: Dict[str, Any]) -> Dict[str, Any]:
        """
        Insert a new attendance record.

        Args:
            entry: Attendance fields; visitDay is required

        Returns:
            The stored document including _id

        Raises:
            DuplicateVisitError: Storage already holds an open visit for
                this member and day
        """
        now = datetime.now(timezone.utc)
        document = {key: value for key, value in entry.items() if value is not None}
        document.setdefault("checkOutTime", None)
        document.setdefault("manualOverride", False)
        document["createdAt"] = now
        document["updatedAt"] = now

        is_open_visit = (
            document.get("status") == "success"
            and document["checkOutTime"] is None
            and not document["manualOverride"]
        )
        if is_open_visit:
            document["openVisitKey"] = open_visit_key(document["memberId"], document["visitDay"])

        try:
            result = await self._attendance_collection.insert_one(document)
        except DuplicateKeyError:
            existing = await self._attendance_collection.find_one(
                {"openVisitKey": document["openVisitKey"]}
            )
            logger.info(
                f"Refused second open visit for member {document['memberId']} "
                f"on {document['visitDay']}"
            )
            raise DuplicateVisitError(existing)

        document["_id"] = result.inserted_id
        logger.info(
            f"Attendance {result.inserted_id} recorded for member {document['memberId']} "
            f"({document.get('status')})"
        )
        return document

    async def get(self, organization_id: ObjectId, record_id: IdLike) -> Dict[str, Any]:
        """
        Get an attendance record inside the caller's organization.

        Raises:
            NotFoundException: Record does not exist in this organization
        """
        record = await self._attendance_collection.find_one({
            "_id": to_object_id(record_id, "Attendance record not found", "ATTENDANCE_NOT_FOUND"),
            "organizationId": organization_id,
        })
        if not record:
            raise NotFoundException(
                message="Attendance record not found",
                code="ATTENDANCE_NOT_FOUND",
            )
        return record

    async def close(
        self,
        organization_id: ObjectId,
        record_id: IdLike,
        check_out_time: datetime,
    ) -> Dict[str, Any]:
        """
        Set the check-out time of a record, once.

        Raises:
            NotFoundException: Record does not exist in this organization
            AlreadyClosedException: Record already has a check-out time
        """
        record_oid = to_object_id(record_id, "Attendance record not found", "ATTENDANCE_NOT_FOUND")

        closed = await self._attendance_collection.find_one_and_update(
            {
                "_id": record_oid,
                "organizationId": organization_id,
                "checkOutTime": None,
            },
            {
                "$set": {
                    "checkOutTime": check_out_time,
                    "updatedAt": datetime.now(timezone.utc),
                },
                "$unset": {"openVisitKey": ""},
            },
            return_document=ReturnDocument.AFTER,
        )
        if closed:
            logger.info(f"Attendance {record_oid} checked out")
            return closed

        existing = await self.get(organization_id, record_oid)
        raise AlreadyClosedException(
            message="Already checked out",
            details={"checkOutTime": existing.get("checkOutTime")},
        )

    async def apply_correction(
        self,
        organization_id: ObjectId,
        record_id: ObjectId,
        updates: Dict[str, Any],
        unset_fields: List[str],
    ) -> Dict[str, Any]:
        """
        Overwrite fields of a record as a staff correction.

        Raises:
            NotFoundException: Record does not exist in this organization
        """
        operation: Dict[str, Any] = {
            "$set": {**updates, "updatedAt": datetime.now(timezone.utc)},
        }
        if unset_fields:
            operation["$unset"] = {field: "" for field in unset_fields}

        updated = await self._attendance_collection.find_one_and_update(
            {"_id": record_id, "organizationId": organization_id},
            operation,
            return_document=ReturnDocument.AFTER,
        )
        if not updated:
            raise NotFoundException(
                message="Attendance record not found",
                code="ATTENDANCE_NOT_FOUND",
            )
        return updated

    # ─────────────────────────────────────────────────────────────
    # Queries
    # ─────────────────────────────────────────────────────────────

    async def list_member_history(
        self,
        organization_id: ObjectId,
        member_id: IdLike,
        limit: int = 20,
        offset: int = 0,
    ) -> Dict[str, Any]:
        """
        Paginated attendance of one member, newest first.

        Returns:
            dict with records, total, limit, offset, hasMore
        """
        limit = min(limit, self.MAX_LIMIT)
        query = {
            "organizationId": organization_id,
            "memberId": to_object_id(member_id, "Member not found", "MEMBER_NOT_FOUND"),
        }

        cursor = self._attendance_collection.find(query)
        cursor = cursor.sort("checkInTime", -1)
        cursor = cursor.skip(offset)
        cursor = cursor.limit(limit)
        records = await cursor.to_list(length=limit)

        total = await self._attendance_collection.count_documents(query)

        return {
            "records": records,
            "total": total,
            "limit": limit,
            "offset": offset,
            "hasMore": (offset + len(records)) < total,
        }

    async def list_attendance(
        self,
        organization_id: ObjectId,
        branch_id: Optional[IdLike] = None,
        status: Optional[str] = None,
        start: Optional[Union[str, date, datetime]] = None,
        end: Optional[Union[str, date, datetime]] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> Dict[str, Any]:
        """
        Paginated attendance of an organization, newest first.

        Args:
            organization_id: Caller's organization
            branch_id: Optional branch filter
            status: Optional outcome filter (success, expired, ...)
            start: Inclusive lower bound, a date or an instant
            end: Inclusive upper bound, a date or an instant
            limit: Page size, capped at MAX_LIMIT
            offset: Records to skip

        Returns:
            dict with records, total, limit, offset, hasMore

        Raises:
            InvalidTimestampException: Unparseable range bound
        """
        limit = min(limit, self.MAX_LIMIT)
        query: Dict[str, Any] = {"organizationId": organization_id}
        if branch_id is not None:
            query["branchId"] = to_object_id(branch_id, "Branch not found", "BRANCH_NOT_FOUND")
        if status is not None:
            query["status"] = status
        query.update(range_filter(start, end))

        cursor = self._attendance_collection.find(query)
        cursor = cursor.sort("checkInTime", -1)
        cursor = cursor.skip(offset)
        cursor = cursor.limit(limit)
        records = await cursor.to_list(length=limit)

        total = await self._attendance_collection.count_documents(query)

        return {
            "records": records,
            "total": total,
            "limit": limit,
            "offset": offset,
            "hasMore": (offset + len(records)) < total,
        }

    async def list_branch_day(
        self,
        organization_id: ObjectId,
        branch_id: IdLike,
        visit_day: str,
    ) -> List[Dict[str, Any]]:
        """All attempts at a branch on one local day, newest first."""
        cursor = self._attendance_collection.find({
            "organizationId": organization_id,
            "branchId": to_object_id(branch_id, "Branch not found", "BRANCH_NOT_FOUND"),
            "visitDay": visit_day,
        })
        cursor = cursor.sort("checkInTime", -1)
        return await cursor.to_list(length=None)

    async def get_stats(
        self,
        organization_id: ObjectId,
        today: str,
        branch_id: Optional[IdLike] = None,
        start: Optional[Union[str, date, datetime]] = None,
        end: Optional[Union[str, date, datetime]] = None,
    ) -> Dict[str, Any]:
        """
        Successful check-in counts: overall, today and per method.

        The total and per-method counts honour the start/end range; the
        today count always covers the organization's current day.

        Args:
            organization_id: Caller's organization
            today: YYYY-MM-DD of the organization's current day
            branch_id: Optional branch filter
            start: Inclusive lower bound, a date or an instant
            end: Inclusive upper bound, a date or an instant
        """
        query: Dict[str, Any] = {"organizationId": organization_id, "status": "success"}
        if branch_id is not None:
            query["branchId"] = to_object_id(branch_id, "Branch not found", "BRANCH_NOT_FOUND")

        ranged = {**query, **range_filter(start, end)}

        total = await self._attendance_collection.count_documents(ranged)
        today_count = await self._attendance_collection.count_documents({**query, "visitDay": today})

        by_method = {}
        for method in CHECK_IN_METHODS:
            by_method[method] = await self._attendance_collection.count_documents(
                {**ranged, "method": method}
            )

        return {
            "totalCheckIns": total,
            "todayCheckIns": today_count,
            "byMethod": by_method,
        }
