"""
Check-in outcomes.

A check-in request that was processed returns one of these, so callers can
tell "admission denied" and "duplicate visit" apart from a failed request,
which raises instead.
"""

from dataclasses import dataclass
from typing import Optional, Dict, Any

SUCCESS_MESSAGE = "Check-in successful"
DUPLICATE_MESSAGE = "Member already checked in today"


@dataclass(frozen=True)
class CheckInOutcome:
    """Base outcome: the relevant ledger record, a member projection and a message."""
    record: Dict[str, Any]
    member: Optional[Dict[str, Any]]
    message: str

    @property
    def verdict(self) -> str:
        return self.record["status"]

    @property
    def success(self) -> bool:
        return False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "verdict": self.verdict,
            "attendance": self.record,
            "member": self.member,
            "message": self.message,
        }


@dataclass(frozen=True)
class Admitted(CheckInOutcome):
    """Visit admitted and recorded; stats updated."""

    @property
    def success(self) -> bool:
        return True


@dataclass(frozen=True)
class Denied(CheckInOutcome):
    """Visit refused; the refusal itself is recorded in the ledger."""

    @property
    def reason(self) -> str:
        return self.record.get("blockedReason") or self.message


@dataclass(frozen=True)
class DuplicateCheckIn(CheckInOutcome):
    """
    An open visit already exists for the day; nothing was written.

    `record` is the existing visit.
    """

    @property
    def verdict(self) -> str:
        return "duplicate"
