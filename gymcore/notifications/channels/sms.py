"""
SMS channel for expiry reminders (MSG91 transactional route).
"""

import logging
import re
from datetime import datetime
from typing import Optional, Dict, Any

import httpx

from gymcore.notifications.channels.base import NotificationChannel, ChannelResult
from gymcore.notifications.expiry_messages import ExpiryMessage

logger = logging.getLogger(__name__)

MSG91_API_URL = "https://api.msg91.com/api/v2/sendsms"
MSG91_TRANSACTIONAL_ROUTE = "4"


def normalize_msg91_number(phone: str) -> str:
    """
    Digits only, with India's country code prefixed to bare 10-digit numbers.
    """
    digits = re.sub(r"\D", "", phone)
    if len(digits) == 10:
        digits = "91" + digits
    return digits


class SmsChannel(NotificationChannel):
    """Transactional SMS via MSG91."""

    name = "sms"

    def __init__(
        self,
        auth_key: Optional[str] = None,
        sender_id: str = "GymMgt",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the SMS channel.

        Args:
            auth_key: MSG91 auth key; channel is skipped without it
            sender_id: Registered sender id
            transport: Optional httpx transport (tests)
        """
        self._auth_key = auth_key
        self._sender_id = sender_id
        self._transport = transport

    def is_configured(self) -> bool:
        return bool(self._auth_key)

    def can_reach(self, member: Dict[str, Any]) -> bool:
        return bool(member.get("phone"))

    async def send_expiry_reminder(
        self,
        member: Dict[str, Any],
        organization: Dict[str, Any],
        expiry_date: datetime,
        days_remaining: int,
        message: ExpiryMessage,
    ) -> ChannelResult:
        phone = normalize_msg91_number(member["phone"])

        async with httpx.AsyncClient(transport=self._transport) as client:
            response = await client.post(
                MSG91_API_URL,
                headers={
                    "authkey": self._auth_key,
                    "Content-Type": "application/json",
                },
                json={
                    "sender": self._sender_id,
                    "route": MSG91_TRANSACTIONAL_ROUTE,
                    "country": "91",
                    "sms": [{"message": message.sms_text, "to": [phone]}],
                },
            )

        data = response.json()
        if response.status_code == 200 and data.get("type") == "success":
            logger.info(f"Expiry SMS sent to {phone}")
            return self.delivered(data.get("message"))

        error_msg = data.get("message", f"HTTP {response.status_code}")
        logger.error(f"MSG91 error for {phone}: {error_msg}")
        return self.failed(error_msg)
