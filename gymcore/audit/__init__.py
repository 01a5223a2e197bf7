"""
Audit

Best-effort audit trail for attendance actions.
"""

from gymcore.audit.services.audit_service import (
    AuditService,
    AuditPublisher,
    build_audit_event,
)

__all__ = [
    "AuditService",
    "AuditPublisher",
    "build_audit_event",
]
