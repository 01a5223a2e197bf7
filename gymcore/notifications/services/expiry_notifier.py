"""
Expiry reminder fan-out.

Renders one ExpiryMessage and hands it to every channel that is configured
and can reach the member. Each delivery is bounded by a timeout.
"""

import asyncio
import logging
from datetime import datetime
from typing import Optional, List, Dict, Any, Sequence

from gymcore.clock import TimezoneLike
from gymcore.notifications.channels.base import NotificationChannel, ChannelResult
from gymcore.notifications.expiry_messages import build_expiry_message

logger = logging.getLogger(__name__)


class NotificationChannelFailure(Exception):
    """Every attempted channel failed for a member."""

    def __init__(self, member_id: Any, results: List[ChannelResult]):
        self.member_id = member_id
        self.results = results
        errors = ", ".join(f"{r.channel}: {r.error}" for r in results)
        super().__init__(f"All notification channels failed for member {member_id} ({errors})")


class ExpiryNotifier:
    """
    Sends membership expiry reminders over email, SMS and WhatsApp.
    """

    def __init__(
        self,
        channels: Sequence[NotificationChannel],
        timeout_seconds: float = 10.0,
        frontend_url: Optional[str] = None,
    ):
        """
        Initialize the notifier.

        Args:
            channels: Delivery channels, tried in order
            timeout_seconds: Upper bound for a single channel call
            frontend_url: Base URL used to build renewal links
        """
        self._channels = list(channels)
        self._timeout = timeout_seconds
        self._frontend_url = frontend_url.rstrip("/") if frontend_url else None

    @property
    def channels(self) -> List[NotificationChannel]:
        return list(self._channels)

    def renewal_link(self, member: Dict[str, Any]) -> Optional[str]:
        if not self._frontend_url:
            return None
        return f"{self._frontend_url}/members/{member['_id']}?renew=true"

    async def notify_expiry(
        self,
        member: Dict[str, Any],
        organization: Dict[str, Any],
        expiry_date: datetime,
        days_remaining: int,
        tz: TimezoneLike,
    ) -> List[ChannelResult]:
        """
        Deliver the reminder on every reachable channel.

        Args:
            member: Member document
            organization: Organization document
            expiry_date: currentPlan.endDate
            days_remaining: 0 when the membership just expired
            tz: Organization timezone

        Returns:
            One ChannelResult per channel, skipped ones included

        Raises:
            NotificationChannelFailure: At least one channel was attempted
                and none succeeded
        """
        message = build_expiry_message(
            member,
            organization,
            expiry_date,
            days_remaining,
            tz,
            renewal_link=self.renewal_link(member),
        )

        results: List[ChannelResult] = []
        attempted: List[ChannelResult] = []

        for channel in self._channels:
            if not channel.is_configured():
                results.append(channel.skipped("not configured"))
                continue
            if not channel.can_reach(member):
                results.append(channel.skipped("no address"))
                continue

            result = await self._deliver(channel, member, organization, expiry_date, days_remaining, message)
            results.append(result)
            attempted.append(result)

        if attempted and not any(r.success for r in attempted):
            raise NotificationChannelFailure(member.get("_id"), attempted)

        logger.info(
            f"Expiry reminder for member {member.get('_id')} "
            f"({days_remaining} days): "
            + ", ".join(f"{r.channel}={'ok' if r.success else 'skipped' if r.skipped else 'failed'}" for r in results)
        )
        return results

    async def _deliver(self, channel, member, organization, expiry_date, days_remaining, message) -> ChannelResult:
        try:
            return await asyncio.wait_for(
                channel.send_expiry_reminder(member, organization, expiry_date, days_remaining, message),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"{channel.name} delivery timed out after {self._timeout}s for member {member.get('_id')}")
            return channel.failed("timeout")
        except Exception as e:
            logger.error(f"{channel.name} delivery failed for member {member.get('_id')}: {e}")
            return channel.failed(str(e))
