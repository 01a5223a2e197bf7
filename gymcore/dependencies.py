"""
Dependency wiring for the attendance and membership-lifecycle services.

Provides the service singletons used by host applications and jobs.
"""

from typing import Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from gymcore.attendance.services.attendance_ledger import AttendanceLedger
from gymcore.attendance.services.checkin_orchestrator import CheckInOrchestrator
from gymcore.audit.services.audit_service import AuditService, AuditPublisher
from gymcore.config import Settings
from gymcore.membership.services.member_service import MemberService
from gymcore.notifications.channels import EmailChannel, SmsChannel, WhatsAppChannel
from gymcore.notifications.services.expiry_notifier import ExpiryNotifier
from gymcore.organization.services.organization_service import OrganizationService


_member_service: Optional[MemberService] = None
_organization_service: Optional[OrganizationService] = None
_attendance_ledger: Optional[AttendanceLedger] = None
_audit_publisher: Optional[AuditPublisher] = None
_checkin_orchestrator: Optional[CheckInOrchestrator] = None
_expiry_notifier: Optional[ExpiryNotifier] = None


def build_expiry_notifier(app_settings: Settings) -> ExpiryNotifier:
    """Create the notifier with email, SMS and WhatsApp channels from settings."""
    channels = [
        EmailChannel(
            mode=app_settings.EMAIL_MODE,
            from_email=app_settings.SMTP_FROM_EMAIL,
            from_name=app_settings.SMTP_FROM_NAME,
            resend_api_key=app_settings.RESEND_API_KEY,
            smtp_host=app_settings.SMTP_HOST,
            smtp_port=app_settings.SMTP_PORT,
            smtp_user=app_settings.SMTP_USER,
            smtp_password=app_settings.SMTP_PASSWORD,
        ),
        SmsChannel(
            auth_key=app_settings.MSG91_AUTH_KEY,
            sender_id=app_settings.MSG91_SENDER_ID,
        ),
        WhatsAppChannel(
            api_key=app_settings.WHATSAPP_API_KEY,
            phone_number_id=app_settings.WHATSAPP_PHONE_NUMBER_ID,
        ),
    ]
    return ExpiryNotifier(
        channels,
        timeout_seconds=app_settings.NOTIFICATION_TIMEOUT_SECONDS,
        frontend_url=app_settings.FRONTEND_URL,
    )


def init_attendance_services(db: AsyncIOMotorDatabase, app_settings: Settings) -> None:
    """
    Initialize attendance services with database connection.

    Called once at application startup.

    Args:
        db: MongoDB database connection
        app_settings: Application settings
    """
    global _member_service, _organization_service, _attendance_ledger
    global _audit_publisher, _checkin_orchestrator, _expiry_notifier

    _member_service = MemberService(db)
    _organization_service = OrganizationService(db, default_timezone=app_settings.DEFAULT_TIMEZONE)
    _attendance_ledger = AttendanceLedger(db)
    _audit_publisher = AuditPublisher(AuditService(db))
    _checkin_orchestrator = CheckInOrchestrator(
        member_service=_member_service,
        organization_service=_organization_service,
        ledger=_attendance_ledger,
        audit_publisher=_audit_publisher,
    )
    _expiry_notifier = build_expiry_notifier(app_settings)


def _require(service):
    if service is None:
        raise RuntimeError("Attendance services not initialized. Call init_attendance_services first.")
    return service


def get_member_service() -> MemberService:
    """Get member service instance."""
    return _require(_member_service)


def get_organization_service() -> OrganizationService:
    """Get organization service instance."""
    return _require(_organization_service)


def get_attendance_ledger() -> AttendanceLedger:
    """Get attendance ledger instance."""
    return _require(_attendance_ledger)


def get_audit_publisher() -> AuditPublisher:
    """Get audit publisher instance."""
    return _require(_audit_publisher)


def get_checkin_orchestrator() -> CheckInOrchestrator:
    """Get check-in orchestrator instance."""
    return _require(_checkin_orchestrator)


def get_expiry_notifier() -> ExpiryNotifier:
    """Get expiry notifier instance."""
    return _require(_expiry_notifier)
