"""
Membership

Member reads, the admission evaluator and the membership status writes
owned by the attendance core.
"""

from gymcore.membership.services.member_service import MemberService
from gymcore.membership.services.status_evaluator import (
    MembershipVerdict,
    evaluate_membership,
)

__all__ = [
    "MemberService",
    "MembershipVerdict",
    "evaluate_membership",
]
