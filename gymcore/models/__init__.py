"""
Beanie document models owned by the attendance core.

Passed to MongoDB.connect() so init_beanie creates their indexes.
"""

from gymcore.models.attendance import (
    Attendance,
    CheckInMethod,
    AttendanceStatus,
    CHECK_IN_METHODS,
    ATTENDANCE_STATUSES,
)
from gymcore.models.audit_log import AuditLog

DOCUMENT_MODELS = [Attendance, AuditLog]

__all__ = [
    "Attendance",
    "AuditLog",
    "CheckInMethod",
    "AttendanceStatus",
    "CHECK_IN_METHODS",
    "ATTENDANCE_STATUSES",
    "DOCUMENT_MODELS",
]
