"""
Attendance: check-in orchestration, the attendance ledger and streaks.
"""

from gymcore.attendance.outcomes import CheckInOutcome, Admitted, Denied, DuplicateCheckIn
from gymcore.attendance.services.attendance_ledger import AttendanceLedger, DuplicateVisitError
from gymcore.attendance.services.checkin_orchestrator import CheckInOrchestrator
from gymcore.attendance.services.streak_tracker import update_stats

__all__ = [
    "CheckInOutcome",
    "Admitted",
    "Denied",
    "DuplicateCheckIn",
    "AttendanceLedger",
    "DuplicateVisitError",
    "CheckInOrchestrator",
    "update_stats",
]
