"""
Notification channel contract.

A channel decides whether it can reach a member and delivers an already
rendered expiry reminder. Missing configuration or a missing address is a
skip, not an error.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Dict, Any

from gymcore.notifications.expiry_messages import ExpiryMessage


@dataclass(frozen=True)
class ChannelResult:
    """Outcome of one channel delivery attempt."""
    channel: str
    success: bool
    skipped: bool = False
    error: Optional[str] = None
    message_id: Optional[str] = None


class NotificationChannel(ABC):
    """Base class for email, SMS and WhatsApp delivery."""

    name: str = "channel"

    @abstractmethod
    def is_configured(self) -> bool:
        """True when credentials/settings allow sending at all."""

    @abstractmethod
    def can_reach(self, member: Dict[str, Any]) -> bool:
        """True when the member has an address for this channel."""

    @abstractmethod
    async def send_expiry_reminder(
        self,
        member: Dict[str, Any],
        organization: Dict[str, Any],
        expiry_date: datetime,
        days_remaining: int,
        message: ExpiryMessage,
    ) -> ChannelResult:
        """Deliver the reminder. Transport errors may raise."""

    def skipped(self, reason: str) -> ChannelResult:
        return ChannelResult(channel=self.name, success=False, skipped=True, error=reason)

    def failed(self, error: str) -> ChannelResult:
        return ChannelResult(channel=self.name, success=False, error=error)

    def delivered(self, message_id: Optional[str] = None) -> ChannelResult:
        return ChannelResult(channel=self.name, success=True, message_id=message_id)
