"""
WhatsApp channel for expiry reminders (WhatsApp Business Cloud API).
"""

import logging
import re
from datetime import datetime
from typing import Optional, Dict, Any

import httpx

from gymcore.notifications.channels.base import NotificationChannel, ChannelResult
from gymcore.notifications.expiry_messages import ExpiryMessage

logger = logging.getLogger(__name__)

GRAPH_API_URL = "https://graph.facebook.com/v18.0"


def normalize_whatsapp_number(phone: str) -> str:
    """E.164-ish: keep digits and '+', default bare 10-digit numbers to +91."""
    cleaned = re.sub(r"[^\d+]", "", phone)
    if cleaned.startswith("+"):
        return cleaned
    if len(cleaned) == 10:
        return "+91" + cleaned
    return "+" + cleaned


class WhatsAppChannel(NotificationChannel):
    """Free-form text message through the Cloud API."""

    name = "whatsapp"

    def __init__(
        self,
        api_key: Optional[str] = None,
        phone_number_id: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the WhatsApp channel.

        Args:
            api_key: Cloud API bearer token
            phone_number_id: Sending phone number id
            transport: Optional httpx transport (tests)
        """
        self._api_key = api_key
        self._phone_number_id = phone_number_id
        self._transport = transport

    def is_configured(self) -> bool:
        return bool(self._api_key and self._phone_number_id)

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
        to = normalize_whatsapp_number(member["phone"])

        async with httpx.AsyncClient(transport=self._transport) as client:
            response = await client.post(
                f"{GRAPH_API_URL}/{self._phone_number_id}/messages",
                headers={
                    "Authorization": f"Bearer {self._api_key}",
                    "Content-Type": "application/json",
                },
                json={
                    "messaging_product": "whatsapp",
                    "to": to,
                    "type": "text",
                    "text": {"body": message.whatsapp_text},
                },
            )

        data = response.json()
        if response.status_code == 200:
            logger.info(f"Expiry WhatsApp sent to {to}")
            messages = data.get("messages") or [{}]
            return self.delivered(messages[0].get("id"))

        error_msg = (data.get("error") or {}).get("message", f"HTTP {response.status_code}")
        logger.warning(f"WhatsApp delivery failed for {to}: {error_msg}")
        return self.failed(error_msg)
