"""
Check-in / check-out orchestration.

Request-facing state machine:

    Requested -> Evaluated -> Recorded-Success | Recorded-Denied -> Closed

Each call is one unit of work against the persisted entities; nothing is
shared between calls except the ledger's per-member lock.
"""

import logging
from datetime import datetime
from typing import Callable, Optional, Dict, Any

from bson import ObjectId

from common.utils.exceptions import ValidationException, InvalidTimestampException
from gymcore.attendance.outcomes import (
    CheckInOutcome,
    Admitted,
    Denied,
    DuplicateCheckIn,
    SUCCESS_MESSAGE,
    DUPLICATE_MESSAGE,
)
from gymcore.attendance.services.attendance_ledger import (
    AttendanceLedger,
    DuplicateVisitError,
)
from gymcore.attendance.services.streak_tracker import update_stats
from gymcore.audit.services.audit_service import AuditPublisher, build_audit_event
from gymcore.clock import (
    TimezoneLike,
    utcnow,
    parse_instant,
    parse_date,
    parse_time_fragments,
    to_local,
    day_key,
    combine_local,
)
from gymcore.membership.services.member_service import (
    MemberService,
    IdLike,
    to_object_id,
    member_summary,
)
from gymcore.membership.services.status_evaluator import (
    evaluate_membership,
    EXPIRED_REASON,
    FROZEN_REASON,
    INACTIVE_REASON,
)
from gymcore.organization.services.organization_service import OrganizationService
from gymcore.schemas.attendance import (
    CheckInRequest,
    FingerprintCheckInRequest,
    AttendancePatch,
)

logger = logging.getLogger(__name__)

BIOMETRIC_DENIAL_NOTE = "Automatic biometric check-in denied"

# blockedReason used when a correction turns a record into a denial
CORRECTION_REASONS = {
    "expired": EXPIRED_REASON,
    "frozen": FROZEN_REASON,
    "blocked": INACTIVE_REASON,
    "guest": "Guest visit",
}


def resolve_check_in_time(
    check_in_date: Optional[str],
    check_in_time: Optional[str],
    now: datetime,
    tz: TimezoneLike,
) -> datetime:
    """
    Effective check-in instant of a request.

    date + time -> that local wall-clock time
    date only   -> that date at the current local time of day
    time only   -> today at that time
    neither     -> now

    Time fragments that are not numbers (or out of range) become 0, so
    "9:xx" is 09:00. The date itself must be valid.

    Raises:
        InvalidTimestampException: Date cannot be parsed
    """
    if not check_in_date and not check_in_time:
        return now

    local_now = to_local(now, tz)
    day = parse_date(check_in_date) if check_in_date else local_now.date()

    if check_in_time:
        hour, minute, second = parse_time_fragments(check_in_time)
        return combine_local(day, tz, hour, minute, second)

    return combine_local(
        day, tz, local_now.hour, local_now.minute, local_now.second, local_now.microsecond
    )


class CheckInOrchestrator:
    """
    Drives check-in, biometric check-in, check-out and manual corrections.
    """

    def __init__(
        self,
        member_service: MemberService,
        organization_service: OrganizationService,
        ledger: AttendanceLedger,
        audit_publisher: AuditPublisher,
        now_fn: Callable[[], datetime] = utcnow,
    ):
        """
        Initialize CheckInOrchestrator.

        Args:
            member_service: Member reads and stats writes
            organization_service: Organization timezone lookup
            ledger: Attendance record storage
            audit_publisher: Fire-and-forget audit events
            now_fn: Clock, replaceable in tests
        """
        self._member_service = member_service
        self._organization_service = organization_service
        self._ledger = ledger
        self._audit = audit_publisher
        self._now = now_fn

    async def check_in(
        self,
        organization_id: IdLike,
        request: CheckInRequest,
        actor_id: Optional[IdLike] = None,
    ) -> CheckInOutcome:
        """
        Check a member in by id.

        Args:
            organization_id: Caller's organization
            request: Check-in request
            actor_id: Staff user performing the check-in; mandatory with
                allowManualOverride

        Returns:
            Admitted, Denied or DuplicateCheckIn

        Raises:
            NotFoundException: Member not in this organization
            InvalidTimestampException: checkInDate is not a valid date
            ValidationException: Override requested without an actor
        """
        org_id = to_object_id(organization_id, "Member not found", "MEMBER_NOT_FOUND")
        actor = to_object_id(actor_id, "Staff user not found", "USER_NOT_FOUND") if actor_id else None

        if request.allowManualOverride and actor is None:
            raise ValidationException(
                message="Manual override requires an identified staff member",
                code="OVERRIDE_ACTOR_REQUIRED",
            )

        member_oid = to_object_id(request.memberId, "Member not found", "MEMBER_NOT_FOUND")
        tz = await self._organization_service.get_timezone(org_id)
        now = self._now()
        check_in_time = resolve_check_in_time(request.checkInDate, request.checkInTime, now, tz)

        return await self._admit(
            org_id=org_id,
            member_id=member_oid,
            tz=tz,
            now=now,
            check_in_time=check_in_time,
            method=request.method,
            device_id=request.deviceId,
            device_name=request.deviceName,
            notes=request.notes,
            actor=actor,
            allow_override=request.allowManualOverride,
            action="attendance.checkin",
        )

    async def fingerprint_check_in(
        self,
        organization_id: IdLike,
        request: FingerprintCheckInRequest,
    ) -> CheckInOutcome:
        """
        Check a member in from an unattended biometric device.

        Never overrides. A denial still leaves a ledger entry with a fixed
        note so unattended devices keep an audit trail.

        Raises:
            NotFoundException: No member enrolled with this fingerprint
        """
        org_id = to_object_id(organization_id, "Member not found", "MEMBER_NOT_FOUND")
        member = await self._member_service.find_by_fingerprint(org_id, request.fingerprint)

        tz = await self._organization_service.get_timezone(org_id)
        now = self._now()

        return await self._admit(
            org_id=org_id,
            member_id=member["_id"],
            tz=tz,
            now=now,
            check_in_time=now,
            method="biometric",
            device_id=request.deviceId,
            device_name=request.deviceName,
            notes=None,
            actor=None,
            allow_override=False,
            action="attendance.checkin.biometric",
            denial_note=BIOMETRIC_DENIAL_NOTE,
        )

    async def _admit(
        self,
        org_id: ObjectId,
        member_id: ObjectId,
        tz: TimezoneLike,
        now: datetime,
        check_in_time: datetime,
        method: str,
        device_id: Optional[str],
        device_name: Optional[str],
        notes: Optional[str],
        actor: Optional[ObjectId],
        allow_override: bool,
        action: str,
        denial_note: Optional[str] = None,
    ) -> CheckInOutcome:
        visit_day = day_key(check_in_time, tz)

        async with self._ledger.visit_lock(member_id):
            # Re-read inside the lock so stats are never folded into a stale snapshot
            member = await self._member_service.get_member(org_id, member_id)
            summary = member_summary(member)

            if not allow_override:
                existing = await self._ledger.find_open_visit(org_id, member_id, visit_day)
                if existing:
                    logger.info(f"Duplicate check-in for member {member_id} on {visit_day}")
                    return DuplicateCheckIn(record=existing, member=summary, message=DUPLICATE_MESSAGE)

            plan = member.get("currentPlan") or {}
            verdict = evaluate_membership(
                membership_status=member.get("membershipStatus"),
                plan_end_date=plan.get("endDate"),
                now=now,
                allow_manual_override=allow_override,
                tz=tz,
            )

            entry = {
                "organizationId": org_id,
                "branchId": member.get("branchId"),
                "memberId": member_id,
                "checkInTime": check_in_time,
                "visitDay": visit_day,
                "method": method,
                "deviceId": device_id,
                "deviceName": device_name,
                "status": verdict.verdict,
                "blockedReason": verdict.reason,
                "checkedInBy": actor,
                "notes": notes if verdict.admitted else (denial_note or notes),
                "manualOverride": allow_override,
            }

            try:
                record = await self._ledger.record(entry)
            except DuplicateVisitError as e:
                return DuplicateCheckIn(record=e.existing or entry, member=summary, message=DUPLICATE_MESSAGE)

            if verdict.admitted:
                stats = update_stats(
                    self._member_service.get_attendance_stats(member), check_in_time, tz
                )
                await self._member_service.save_attendance_stats(member_id, stats)
                summary["attendanceStats"] = stats.model_dump()

        metadata: Dict[str, Any] = {
            "memberId": str(member_id),
            "status": verdict.verdict,
            "method": method,
        }
        if allow_override:
            metadata["manualOverride"] = True
        self._audit.emit(build_audit_event(
            organization_id=org_id,
            action=action,
            entity_type="Attendance",
            entity_id=record["_id"],
            user_id=actor,
            metadata=metadata,
        ))

        if verdict.admitted:
            return Admitted(record=record, member=summary, message=SUCCESS_MESSAGE)
        logger.info(f"Check-in denied for member {member_id}: {verdict.reason}")
        return Denied(record=record, member=summary, message=verdict.reason)

    async def check_out(
        self,
        organization_id: IdLike,
        attendance_id: IdLike,
    ) -> Dict[str, Any]:
        """
        Close an attendance record. Statistics are not touched.

        Raises:
            NotFoundException: Record not in this organization
            AlreadyClosedException: Record already checked out
        """
        org_id = to_object_id(organization_id, "Attendance record not found", "ATTENDANCE_NOT_FOUND")
        return await self._ledger.close(org_id, attendance_id, self._now())

    async def update_attendance(
        self,
        organization_id: IdLike,
        attendance_id: IdLike,
        patch: AttendancePatch,
        override: bool,
        actor_id: Optional[IdLike] = None,
    ) -> Dict[str, Any]:
        """
        Correct an attendance record after the fact.

        Bypasses the duplicate-visit and admission checks; it is a
        correction tool, not a new check-in. Member stats are left alone.

        Args:
            organization_id: Caller's organization
            attendance_id: Record to correct
            patch: Fields to overwrite; unset fields are kept
            override: Must be True
            actor_id: Staff user performing the correction

        Raises:
            ValidationException: Missing override/actor or inconsistent patch
            InvalidTimestampException: Unparseable or inverted times
            NotFoundException: Record not in this organization
        """
        if not override:
            raise ValidationException(
                message="Attendance corrections require an explicit override",
                code="OVERRIDE_REQUIRED",
            )
        if actor_id is None:
            raise ValidationException(
                message="Attendance corrections require an identified staff member",
                code="OVERRIDE_ACTOR_REQUIRED",
            )

        org_id = to_object_id(organization_id, "Attendance record not found", "ATTENDANCE_NOT_FOUND")
        actor = to_object_id(actor_id, "Staff user not found", "USER_NOT_FOUND")
        before = await self._ledger.get(org_id, attendance_id)
        tz = await self._organization_service.get_timezone(org_id)

        fields = patch.model_dump(exclude_none=True)
        updates: Dict[str, Any] = {}
        unset_fields = []

        if "checkInTime" in fields:
            check_in_time = parse_instant(fields["checkInTime"])
            updates["checkInTime"] = check_in_time
            updates["visitDay"] = day_key(check_in_time, tz)

        if "checkOutTime" in fields:
            updates["checkOutTime"] = parse_instant(fields["checkOutTime"])

        effective_in = updates.get("checkInTime", before.get("checkInTime"))
        effective_out = updates.get("checkOutTime", before.get("checkOutTime"))
        if effective_in and effective_out and parse_instant(effective_out) < parse_instant(effective_in):
            raise InvalidTimestampException(
                message="Check-out time cannot be before check-in time",
                code="INVALID_TIME_RANGE",
            )

        status = fields.get("status", before.get("status"))
        if "status" in fields:
            updates["status"] = status
        if status == "success":
            if "blockedReason" in fields:
                raise ValidationException(
                    message="A successful visit cannot carry a blocked reason",
                    code="INVALID_BLOCKED_REASON",
                )
            if before.get("blockedReason") is not None:
                unset_fields.append("blockedReason")
        elif "blockedReason" in fields:
            updates["blockedReason"] = fields["blockedReason"]
        elif not before.get("blockedReason") or status != before.get("status"):
            updates["blockedReason"] = CORRECTION_REASONS.get(status, INACTIVE_REASON)

        if "notes" in fields:
            updates["notes"] = fields["notes"]

        if not updates and not unset_fields:
            return before

        # Corrections never claim the open-visit slot; keep it only if the
        # record is still the same open successful visit
        keeps_slot = (
            before.get("openVisitKey") is not None
            and status == "success"
            and effective_out is None
            and updates.get("visitDay", before.get("visitDay")) == before.get("visitDay")
        )
        if before.get("openVisitKey") is not None and not keeps_slot:
            unset_fields.append("openVisitKey")

        updated = await self._ledger.apply_correction(org_id, before["_id"], updates, unset_fields)

        changed = [field for field in list(updates) + unset_fields if field != "openVisitKey"]
        self._audit.emit(build_audit_event(
            organization_id=org_id,
            action="attendance.updated",
            entity_type="Attendance",
            entity_id=before["_id"],
            user_id=actor,
            changes={
                "before": {field: before.get(field) for field in changed},
                "after": {field: updated.get(field) for field in changed},
            },
            metadata={"manualOverride": True, "memberId": str(before.get("memberId"))},
        ))

        logger.info(f"Attendance {before['_id']} corrected by {actor}: {', '.join(changed)}")
        return updated
