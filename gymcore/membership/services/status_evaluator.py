"""
Membership status evaluator.

Pure admission decision, no I/O. Given the member's status field, the
current plan's end date and the moment of the check-in, decides whether
the visit is admitted and why not.
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional, Union

from gymcore.clock import TimezoneLike, end_of_day, parse_instant, plan_end_day

EXPIRED_REASON = "Membership has expired"
FROZEN_REASON = "Membership is frozen"
CANCELLED_REASON = "Membership is cancelled"
INACTIVE_REASON = "Membership is not active"


@dataclass(frozen=True)
class MembershipVerdict:
    """Admission verdict: success, expired, frozen or blocked."""
    verdict: str
    reason: Optional[str] = None

    @property
    def admitted(self) -> bool:
        return self.verdict == "success"


ADMITTED = MembershipVerdict("success")


def evaluate_membership(
    membership_status: Optional[str],
    plan_end_date: Optional[Union[str, date, datetime]],
    now: datetime,
    allow_manual_override: bool,
    tz: TimezoneLike,
) -> MembershipVerdict:
    """
    Decide whether a member may be admitted.

    First match wins:
        1. Manual override admits unconditionally. Callers must record who
           performed the override.
        2. Plan end date passed (end of that local day is before now).
           A date-only end date is a calendar day in the organization's
           timezone.
        3. Status field: expired, frozen, cancelled, anything not active.
        4. Admitted.

    The plan date is checked before the status field so a stale "active"
    status cannot hide an expired plan.

    Args:
        membership_status: Member's membershipStatus field
        plan_end_date: currentPlan.endDate, if any
        now: Moment of the check-in
        allow_manual_override: Staff bypass flag
        tz: Organization timezone

    Returns:
        MembershipVerdict
    """
    if allow_manual_override:
        return ADMITTED

    if plan_end_date is not None and end_of_day(plan_end_day(plan_end_date, tz), tz) < parse_instant(now):
        return MembershipVerdict("expired", EXPIRED_REASON)

    if membership_status == "expired":
        return MembershipVerdict("expired", EXPIRED_REASON)
    if membership_status == "frozen":
        return MembershipVerdict("frozen", FROZEN_REASON)
    if membership_status == "cancelled":
        return MembershipVerdict("blocked", CANCELLED_REASON)
    if membership_status != "active":
        return MembershipVerdict("blocked", INACTIVE_REASON)

    return ADMITTED
