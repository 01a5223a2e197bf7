"""
Email channel for expiry reminders.

Supports SMTP, Resend API, and console logging modes.
"""

import logging
from datetime import datetime
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import Optional, Dict, Any

import aiosmtplib
import httpx

from gymcore.notifications.channels.base import NotificationChannel, ChannelResult
from gymcore.notifications.expiry_messages import ExpiryMessage

logger = logging.getLogger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"


class EmailChannel(NotificationChannel):
    """
    Email delivery with multi-mode support.

    Modes:
        - console: Log emails (development)
        - smtp: Send via SMTP
        - resend: Send via Resend HTTP API
    """

    name = "email"

    def __init__(
        self,
        mode: str = "console",
        from_email: str = "noreply@gymcore.app",
        from_name: str = "Gym Management",
        resend_api_key: Optional[str] = None,
        smtp_host: Optional[str] = None,
        smtp_port: int = 587,
        smtp_user: Optional[str] = None,
        smtp_password: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the email channel.

        Args:
            mode: "console", "smtp" or "resend"
            from_email: Sender email address
            from_name: Sender display name
            resend_api_key: Resend API key
            smtp_host: SMTP server host
            smtp_port: SMTP server port
            smtp_user: SMTP username
            smtp_password: SMTP password
            transport: Optional httpx transport (tests)
        """
        self._mode = mode
        self._from_email = from_email
        self._from_name = from_name
        self._resend_api_key = resend_api_key
        self._smtp_host = smtp_host
        self._smtp_port = smtp_port
        self._smtp_user = smtp_user
        self._smtp_password = smtp_password
        self._transport = transport

        # Normalize mode: smtp with a Resend key goes through the HTTP API
        if self._mode == "smtp" and self._resend_api_key:
            logger.info("EMAIL_MODE=smtp with Resend API key detected, using Resend HTTP API")
            self._mode = "resend"
        elif self._mode == "resend" and not self._resend_api_key:
            logger.warning("Resend API key not configured, email channel disabled")
            self._mode = "disabled"
        elif self._mode == "smtp" and not self._smtp_host:
            logger.warning("SMTP host not configured, email channel disabled")
            self._mode = "disabled"

        logger.info(f"Email channel initialized in {self._mode} mode")

    @property
    def mode(self) -> str:
        return self._mode

    def is_configured(self) -> bool:
        return self._mode in ("console", "smtp", "resend")

    def can_reach(self, member: Dict[str, Any]) -> bool:
        return bool(member.get("email"))

    async def send_expiry_reminder(
        self,
        member: Dict[str, Any],
        organization: Dict[str, Any],
        expiry_date: datetime,
        days_remaining: int,
        message: ExpiryMessage,
    ) -> ChannelResult:
        return await self._send(member["email"], message.subject, message.html, message.text)

    async def _send(self, to: str, subject: str, html: str, text: str) -> ChannelResult:
        """Send email via configured provider."""
        if self._mode == "console":
            return self._send_console(to, subject, text)
        elif self._mode == "smtp":
            return await self._send_smtp(to, subject, html, text)
        elif self._mode == "resend":
            return await self._send_resend(to, subject, html, text)
        return self.skipped(f"Email mode {self._mode}")

    def _send_console(self, to: str, subject: str, text: str) -> ChannelResult:
        """Log email to console (development mode)."""
        logger.info("=" * 60)
        logger.info("EMAIL (console mode)")
        logger.info(f"To: {to}")
        logger.info(f"Subject: {subject}")
        logger.info("-" * 60)
        logger.info(text)
        logger.info("=" * 60)
        return self.delivered()

    async def _send_smtp(self, to: str, subject: str, html: str, text: str) -> ChannelResult:
        """Send email via SMTP."""
        message = MIMEMultipart("alternative")
        message["Subject"] = subject
        message["From"] = f"{self._from_name} <{self._from_email}>"
        message["To"] = to
        message.attach(MIMEText(text, "plain"))
        message.attach(MIMEText(html, "html"))

        # Port 465 is implicit TLS, anything else negotiates STARTTLS
        use_tls = self._smtp_port == 465

        await aiosmtplib.send(
            message,
            hostname=self._smtp_host,
            port=self._smtp_port,
            username=self._smtp_user,
            password=self._smtp_password,
            use_tls=use_tls,
            start_tls=not use_tls,
        )

        logger.info(f"Expiry email sent via SMTP to {to}")
        return self.delivered()

    async def _send_resend(self, to: str, subject: str, html: str, text: str) -> ChannelResult:
        """Send email via Resend API."""
        async with httpx.AsyncClient(transport=self._transport) as client:
            response = await client.post(
                RESEND_API_URL,
                headers={
                    "Authorization": f"Bearer {self._resend_api_key}",
                    "Content-Type": "application/json",
                },
                json={
                    "from": f"{self._from_name} <{self._from_email}>",
                    "to": [to],
                    "subject": subject,
                    "html": html,
                    "text": text,
                },
            )

        if response.status_code == 200:
            logger.info(f"Expiry email sent via Resend to {to}")
            return self.delivered(response.json().get("id"))

        error_msg = response.json().get("message", "Unknown error")
        logger.error(f"Resend API error: {error_msg}")
        return self.failed(error_msg)
