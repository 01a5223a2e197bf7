"""
Attendance model.

One document per check-in attempt, successful or denied. Denials are kept
so front-desk staff have a trail of refused entries.
"""

from datetime import datetime, timezone
from typing import Optional, Literal

from beanie import PydanticObjectId
from pydantic import Field
from pymongo import ASCENDING, DESCENDING, IndexModel

from common.database import BaseDocument

CheckInMethod = Literal["biometric", "manual", "qr", "mobile"]
AttendanceStatus = Literal["success", "blocked", "expired", "frozen", "guest"]

CHECK_IN_METHODS = ("biometric", "manual", "qr", "mobile")
ATTENDANCE_STATUSES = ("success", "blocked", "expired", "frozen", "guest")


class Attendance(BaseDocument):
    """
    Attendance document.

    `openVisitKey` is "<memberId>:<visitDay>" while the record is an open,
    successful, non-override visit and is unset otherwise. The unique sparse
    index on it lets storage refuse a second open visit for the same day.
    """

    organizationId: PydanticObjectId
    branchId: Optional[PydanticObjectId] = None
    memberId: PydanticObjectId

    checkInTime: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    checkOutTime: Optional[datetime] = None

    # Local calendar day of checkInTime in the organization's timezone
    visitDay: str

    method: CheckInMethod = "manual"
    deviceId: Optional[str] = None
    deviceName: Optional[str] = None

    status: AttendanceStatus = "success"
    blockedReason: Optional[str] = None

    # None for unattended device check-ins
    checkedInBy: Optional[PydanticObjectId] = None
    notes: Optional[str] = None

    manualOverride: bool = False
    openVisitKey: Optional[str] = None

    class Settings:
        name = "attendances"
        indexes = [
            IndexModel(
                [("organizationId", ASCENDING), ("memberId", ASCENDING), ("visitDay", ASCENDING)],
                name="org_member_day",
            ),
            IndexModel(
                [("branchId", ASCENDING), ("visitDay", ASCENDING)],
                name="branch_day",
            ),
            IndexModel(
                [("organizationId", ASCENDING), ("checkInTime", DESCENDING)],
                name="org_check_in_time",
            ),
            IndexModel(
                [("openVisitKey", ASCENDING)],
                name="open_visit_unique",
                unique=True,
                sparse=True,
            ),
        ]
