"""Request and value schemas."""

from gymcore.schemas.attendance import (
    CheckInRequest,
    FingerprintCheckInRequest,
    AttendancePatch,
    AttendanceStats,
)

__all__ = [
    "CheckInRequest",
    "FingerprintCheckInRequest",
    "AttendancePatch",
    "AttendanceStats",
]
