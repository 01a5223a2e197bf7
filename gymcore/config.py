"""
Gym core application settings.

Extends the base settings with attendance and membership-lifecycle
configuration.
"""

from typing import List, Optional
from common.config import BaseAppSettings


class Settings(BaseAppSettings):
    """Attendance and expiry-sweep specific settings."""

    # ==========================================================================
    # Calendar
    # ==========================================================================
    # Used when an organization document carries no timezone of its own
    DEFAULT_TIMEZONE: str = "Asia/Kolkata"

    # ==========================================================================
    # Expiry Sweep
    # ==========================================================================
    # Days-before-expiry on which a reminder goes out (comma-separated)
    EXPIRY_REMINDER_DAYS: str = "7,3,1"

    # Members processed concurrently within one sweep run
    SWEEP_CONCURRENCY: int = 8

    # Cursor batch size when scanning members
    SWEEP_BATCH_SIZE: int = 500

    # Upper bound for a single channel delivery
    NOTIFICATION_TIMEOUT_SECONDS: float = 10.0

    # ==========================================================================
    # Email Settings
    # ==========================================================================
    EMAIL_MODE: str = "console"  # console, smtp or resend
    RESEND_API_KEY: Optional[str] = None
    SMTP_HOST: Optional[str] = None
    SMTP_PORT: int = 587
    SMTP_USER: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    SMTP_FROM_EMAIL: str = "noreply@gymcore.app"
    SMTP_FROM_NAME: str = "Gym Management"

    # ==========================================================================
    # SMS Settings (MSG91)
    # ==========================================================================
    MSG91_AUTH_KEY: Optional[str] = None
    MSG91_SENDER_ID: str = "GymMgt"

    # ==========================================================================
    # WhatsApp Settings (Cloud API)
    # ==========================================================================
    WHATSAPP_API_KEY: Optional[str] = None
    WHATSAPP_PHONE_NUMBER_ID: Optional[str] = None

    # ==========================================================================
    # Frontend URL (for renewal links)
    # ==========================================================================
    FRONTEND_URL: str = "http://localhost:5173"

    def get_reminder_days(self) -> List[int]:
        """Parse EXPIRY_REMINDER_DAYS into a descending list of positive ints."""
        days = {int(day.strip()) for day in self.EXPIRY_REMINDER_DAYS.split(",") if day.strip()}
        return sorted((day for day in days if day > 0), reverse=True)


# Global settings instance
settings = Settings()
