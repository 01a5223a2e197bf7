"""
Expiry reminder notifications.

Content is built by build_expiry_message(); delivery goes through the
channels in gymcore.notifications.channels, fanned out by ExpiryNotifier.
"""

from gymcore.notifications.expiry_messages import ExpiryMessage, build_expiry_message
from gymcore.notifications.channels import (
    NotificationChannel,
    ChannelResult,
    EmailChannel,
    SmsChannel,
    WhatsAppChannel,
)
from gymcore.notifications.services.expiry_notifier import ExpiryNotifier, NotificationChannelFailure

__all__ = [
    "ExpiryMessage",
    "build_expiry_message",
    "NotificationChannel",
    "ChannelResult",
    "EmailChannel",
    "SmsChannel",
    "WhatsAppChannel",
    "ExpiryNotifier",
    "NotificationChannelFailure",
]
