"""
Member repository.

Reads member snapshots and writes the only member fields the attendance
core owns: membershipStatus, currentPlan.lastExpiryNotification and
attendanceStats.
"""

import logging
from datetime import datetime, timezone
from typing import Optional, Dict, Any, Union

from bson import ObjectId
from bson.errors import InvalidId
from motor.motor_asyncio import AsyncIOMotorDatabase

from common.utils.exceptions import NotFoundException
from gymcore.schemas.attendance import AttendanceStats

logger = logging.getLogger(__name__)

IdLike = Union[str, ObjectId]

SWEEP_PROJECTION = {
    "organizationId": 1,
    "branchId": 1,
    "memberId": 1,
    "firstName": 1,
    "lastName": 1,
    "email": 1,
    "phone": 1,
    "membershipStatus": 1,
    "currentPlan": 1,
}


def to_object_id(value: IdLike, message: str = "Not found", code: str = "NOT_FOUND") -> ObjectId:
    """
    Convert an id to ObjectId.

    A missing or malformed id cannot exist in scope, so it is reported as
    not found.
    """
    if isinstance(value, ObjectId):
        return value
    if value is None:
        raise NotFoundException(message=message, code=code)
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        raise NotFoundException(message=message, code=code)


def member_summary(member: Dict[str, Any]) -> Dict[str, Any]:
    """Minimal member projection safe to return with a check-in result."""
    plan = member.get("currentPlan") or {}
    return {
        "id": str(member["_id"]),
        "memberId": member.get("memberId"),
        "firstName": member.get("firstName"),
        "lastName": member.get("lastName"),
        "profilePicture": member.get("profilePicture"),
        "membershipStatus": member.get("membershipStatus"),
        "planName": plan.get("planName"),
        "planEndDate": plan.get("endDate"),
    }


def member_display_name(member: Dict[str, Any]) -> str:
    """First and last name joined, tolerating missing parts."""
    return f"{member.get('firstName') or ''} {member.get('lastName') or ''}".strip()


class MemberService:
    """
    Member reads and the narrow set of member writes owned by this core.
    """

    def __init__(self, db: AsyncIOMotorDatabase):
        """
        Initialize MemberService.

        Args:
            db: MongoDB database connection
        """
        self._db = db
        self._members_collection = db["members"]

    async def get_member(self, organization_id: IdLike, member_id: IdLike) -> Dict[str, Any]:
        """
        Get a member inside the caller's organization.

        Raises:
            NotFoundException: Member does not exist in this organization
        """
        member = await self._members_collection.find_one({
            "_id": to_object_id(member_id, "Member not found", "MEMBER_NOT_FOUND"),
            "organizationId": to_object_id(organization_id, "Member not found", "MEMBER_NOT_FOUND"),
        })

        if not member:
            raise NotFoundException(message="Member not found", code="MEMBER_NOT_FOUND")
        return member

    async def find_by_fingerprint(self, organization_id: IdLike, fingerprint: str) -> Dict[str, Any]:
        """
        Resolve a member from a biometric template id.

        Raises:
            NotFoundException: No member enrolled with this fingerprint
        """
        member = await self._members_collection.find_one({
            "organizationId": to_object_id(organization_id, "Member not found", "MEMBER_NOT_FOUND"),
            "biometricData.fingerprint": fingerprint,
        })

        if not member:
            raise NotFoundException(
                message="No member registered for this fingerprint",
                code="MEMBER_NOT_FOUND",
            )
        return member

    @staticmethod
    def get_attendance_stats(member: Dict[str, Any]) -> AttendanceStats:
        """Read the member's stats, defaulting absent fields."""
        return AttendanceStats(**(member.get("attendanceStats") or {}))

    async def save_attendance_stats(self, member_id: ObjectId, stats: AttendanceStats) -> None:
        """Persist recomputed attendance statistics."""
        await self._members_collection.update_one(
            {"_id": member_id},
            {
                "$set": {
                    "attendanceStats.totalCheckIns": stats.totalCheckIns,
                    "attendanceStats.lastCheckIn": stats.lastCheckIn,
                    "attendanceStats.currentStreak": stats.currentStreak,
                    "attendanceStats.longestStreak": stats.longestStreak,
                    "updatedAt": datetime.now(timezone.utc),
                }
            }
        )
        logger.debug(f"Attendance stats saved for member {member_id}")

    # ─────────────────────────────────────────────────────────────
    # Expiry sweep
    # ─────────────────────────────────────────────────────────────

    def find_active_dated_members(self, batch_size: int = 500):
        """
        Cursor over active members whose current plan has an end date.

        Returns:
            Motor cursor; iterate with `async for`
        """
        return self._members_collection.find(
            {
                "membershipStatus": "active",
                "currentPlan.endDate": {"$exists": True, "$ne": None},
            },
            SWEEP_PROJECTION,
        ).batch_size(batch_size)

    async def mark_expired(self, member_id: ObjectId) -> bool:
        """
        Flip an active member to expired.

        Conditional on the member still being active, so only one worker
        ever wins the transition.

        Returns:
            True if this call performed the transition
        """
        result = await self._members_collection.update_one(
            {"_id": member_id, "membershipStatus": "active"},
            {
                "$set": {
                    "membershipStatus": "expired",
                    "updatedAt": datetime.now(timezone.utc),
                }
            }
        )
        return result.modified_count == 1

    async def claim_expiry_notification(
        self,
        member_id: ObjectId,
        day_start: datetime,
        stamp: datetime,
    ) -> bool:
        """
        Record today's reminder before sending it.

        Succeeds only when no reminder has been stamped since day_start.

        Returns:
            True if the caller now owns today's reminder
        """
        result = await self._members_collection.update_one(
            {
                "_id": member_id,
                "membershipStatus": "active",
                "$or": [
                    {"currentPlan.lastExpiryNotification": None},
                    {"currentPlan.lastExpiryNotification": {"$lt": day_start}},
                ],
            },
            {
                "$set": {
                    "currentPlan.lastExpiryNotification": stamp,
                    "updatedAt": datetime.now(timezone.utc),
                }
            }
        )
        return result.modified_count == 1

    async def release_expiry_notification(
        self,
        member_id: ObjectId,
        stamp: datetime,
        previous: Optional[datetime],
    ) -> None:
        """Undo a claim whose reminder could not be delivered."""
        await self._members_collection.update_one(
            {"_id": member_id, "currentPlan.lastExpiryNotification": stamp},
            {"$set": {"currentPlan.lastExpiryNotification": previous}}
        )
