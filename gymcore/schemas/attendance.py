"""
Pydantic models for attendance request validation.
"""

from datetime import datetime
from typing import Optional, Union

from pydantic import BaseModel, Field

from gymcore.models.attendance import CheckInMethod, AttendanceStatus


# =============================================================================
# Request Schemas
# =============================================================================

class CheckInRequest(BaseModel):
    """Staff terminal, QR or mobile check-in."""
    memberId: str = Field(..., min_length=1)
    method: CheckInMethod = "manual"
    deviceId: Optional[str] = None
    deviceName: Optional[str] = None
    notes: Optional[str] = Field(None, max_length=500)
    checkInDate: Optional[str] = Field(None, description="YYYY-MM-DD, organization local")
    checkInTime: Optional[str] = Field(None, description="HH:MM, organization local")
    allowManualOverride: bool = False


class FingerprintCheckInRequest(BaseModel):
    """Unattended biometric device check-in."""
    fingerprint: str = Field(..., min_length=1)
    deviceId: Optional[str] = None
    deviceName: Optional[str] = None


class AttendancePatch(BaseModel):
    """Manual correction of an existing attendance record."""
    checkInTime: Optional[Union[datetime, str]] = None
    checkOutTime: Optional[Union[datetime, str]] = None
    status: Optional[AttendanceStatus] = None
    blockedReason: Optional[str] = Field(None, max_length=200)
    notes: Optional[str] = Field(None, max_length=500)


# =============================================================================
# Member-side Schemas
# =============================================================================

class AttendanceStats(BaseModel):
    """Running attendance statistics stored on the member."""
    totalCheckIns: int = 0
    lastCheckIn: Optional[datetime] = None
    currentStreak: int = 0
    longestStreak: int = 0
