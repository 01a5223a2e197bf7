"""Delivery channels for expiry reminders."""

from gymcore.notifications.channels.base import NotificationChannel, ChannelResult
from gymcore.notifications.channels.email import EmailChannel
from gymcore.notifications.channels.sms import SmsChannel
from gymcore.notifications.channels.whatsapp import WhatsAppChannel

__all__ = [
    "NotificationChannel",
    "ChannelResult",
    "EmailChannel",
    "SmsChannel",
    "WhatsAppChannel",
]
