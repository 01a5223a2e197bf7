"""
Membership expiry background job.

Marks lapsed memberships as expired and sends pre-expiry reminders on the
configured thresholds (7, 3 and 1 days by default). Day boundaries follow
each member's organization timezone. Safe to run more than once a day: the
expiry transition and the reminder stamp are conditional updates.

Usage:
    Run via CRON:
        0 0 * * * cd /path/to/project && python -m jobs.membership_expiry

    Or run directly:
        python -m jobs.membership_expiry
"""

import asyncio
import logging
import signal
import sys
from datetime import datetime, timezone
from typing import Callable, Dict, Any, Optional, Sequence

from common.database import MongoDB, set_main_database
from gymcore.clock import combine_local, days_between, plan_end_day, start_of_day, utcnow
from gymcore.config import settings as default_settings
from gymcore.dependencies import build_expiry_notifier
from gymcore.membership.services.member_service import MemberService
from gymcore.models import DOCUMENT_MODELS
from gymcore.notifications.services.expiry_notifier import ExpiryNotifier, NotificationChannelFailure
from gymcore.organization.services.organization_service import OrganizationService

logger = logging.getLogger(__name__)


class MembershipExpiryJob:
    """
    Daily sweep over active members with a dated plan.

    For each member, in the organization's timezone:
    1. Plan end day before today: flip to expired and send the "expired"
       reminder (days remaining 0). Only the worker that wins the
       transition notifies.
    2. Otherwise, when the days left equal a reminder threshold: claim
       today's reminder stamp, then send. The claim is released when every
       attempted channel fails so a later run can retry.

    A failure on one member is counted and logged; the sweep continues.
    """

    def __init__(
        self,
        member_service: MemberService,
        organization_service: OrganizationService,
        notifier: ExpiryNotifier,
        reminder_days: Sequence[int] = (7, 3, 1),
        concurrency: int = 8,
        batch_size: int = 500,
        now_fn: Callable[[], datetime] = utcnow,
    ):
        """
        Initialize the membership expiry job.

        Args:
            member_service: Member reads and expiry writes
            organization_service: Organization and timezone lookup
            notifier: Reminder fan-out over the configured channels
            reminder_days: Days-before-expiry thresholds
            concurrency: Members processed at the same time
            batch_size: Cursor batch size for the member scan
            now_fn: Clock, replaceable in tests
        """
        self._member_service = member_service
        self._organization_service = organization_service
        self._notifier = notifier
        self._reminder_days = frozenset(reminder_days)
        self._concurrency = max(1, concurrency)
        self._batch_size = batch_size
        self._now = now_fn
        self._stop_event = asyncio.Event()
        self._pending = set()

    def request_stop(self) -> None:
        """Stop picking up new members; in-flight members finish."""
        logger.info("Stop requested for membership expiry job")
        self._stop_event.set()

    async def run(self) -> Dict[str, Any]:
        """
        Execute the membership expiry sweep.

        Returns:
            Dict with job results including counts and any errors
        """
        logger.info("Starting membership expiry job")
        start_time = datetime.now(timezone.utc)
        now = self._now()

        results = {
            "startTime": start_time.isoformat(),
            "membersScanned": 0,
            "expiredCount": 0,
            "notifiedCount": 0,
            "failedCount": 0,
            "stopped": False,
            "errors": [],
        }

        semaphore = asyncio.Semaphore(self._concurrency)
        self._pending = set()

        try:
            cursor = self._member_service.find_active_dated_members(batch_size=self._batch_size)
            async for member in cursor:
                if self._stop_event.is_set():
                    results["stopped"] = True
                    break

                await semaphore.acquire()
                results["membersScanned"] += 1
                task = asyncio.ensure_future(self._guarded(member, now, results, semaphore))
                self._pending.add(task)
                task.add_done_callback(self._pending.discard)

        except Exception as e:
            error_msg = f"Job failed: {str(e)}"
            logger.error(error_msg)
            results["errors"].append(error_msg)

        if self._pending:
            await asyncio.gather(*self._pending)

        results["endTime"] = datetime.now(timezone.utc).isoformat()
        results["durationSeconds"] = (
            datetime.now(timezone.utc) - start_time
        ).total_seconds()

        logger.info(
            f"Membership expiry job completed. "
            f"Scanned: {results['membersScanned']}, "
            f"Expired: {results['expiredCount']}, "
            f"Notified: {results['notifiedCount']}, "
            f"Errors: {len(results['errors'])}"
        )

        return results

    async def _guarded(
        self,
        member: Dict[str, Any],
        now: datetime,
        results: Dict[str, Any],
        semaphore: asyncio.Semaphore,
    ) -> None:
        try:
            await self._process_member(member, now, results)
        except NotificationChannelFailure as e:
            results["failedCount"] += 1
            results["errors"].append(str(e))
            logger.warning(str(e))
        except Exception as e:
            error_msg = f"Failed to process member {member.get('_id')}: {str(e)}"
            logger.error(error_msg)
            results["failedCount"] += 1
            results["errors"].append(error_msg)
        finally:
            semaphore.release()

    async def _process_member(self, member: Dict[str, Any], now: datetime, results: Dict[str, Any]) -> None:
        """
        Expire or remind a single member.

        Args:
            member: Member document (sweep projection)
            now: Instant the run started
            results: Shared results dict, updated in place
        """
        organization = await self._organization_service.get_organization(member["organizationId"])
        tz = self._organization_service.timezone_of(organization)

        plan = member.get("currentPlan") or {}
        end_day = combine_local(plan_end_day(plan["endDate"], tz), tz)
        today = start_of_day(now, tz)

        if end_day < today:
            if not await self._member_service.mark_expired(member["_id"]):
                logger.debug(f"Member {member['_id']} already transitioned, skipping")
                return

            results["expiredCount"] += 1
            logger.info(
                f"Marked member {member.get('memberId')} "
                f"({member.get('firstName', '')} {member.get('lastName', '')}) as expired"
            )
            await self._notifier.notify_expiry(member, organization, end_day, 0, tz)
            results["notifiedCount"] += 1
            return

        days_until_expiry = days_between(today, end_day, tz)
        if days_until_expiry not in self._reminder_days:
            return

        previous = plan.get("lastExpiryNotification")
        claimed = await self._member_service.claim_expiry_notification(member["_id"], today, today)
        if not claimed:
            logger.debug(f"Reminder already sent today for member {member['_id']}")
            return

        try:
            await self._notifier.notify_expiry(member, organization, end_day, days_until_expiry, tz)
        except NotificationChannelFailure:
            await self._member_service.release_expiry_notification(member["_id"], today, previous)
            raise

        results["notifiedCount"] += 1
        logger.info(f"Sent expiry reminder to {member.get('memberId')} ({days_until_expiry} days remaining)")


def build_job(db, app_settings) -> MembershipExpiryJob:
    """Wire a job from a database handle and settings."""
    return MembershipExpiryJob(
        member_service=MemberService(db),
        organization_service=OrganizationService(db, default_timezone=app_settings.DEFAULT_TIMEZONE),
        notifier=build_expiry_notifier(app_settings),
        reminder_days=app_settings.get_reminder_days(),
        concurrency=app_settings.SWEEP_CONCURRENCY,
        batch_size=app_settings.SWEEP_BATCH_SIZE,
    )


async def main(app_settings: Optional[Any] = None):
    """Main entry point for the membership expiry job."""
    app_settings = app_settings or default_settings

    database = MongoDB()
    await database.connect(
        uri=app_settings.MONGODB_URI,
        database_name=app_settings.MONGODB_DATABASE,
        document_models=DOCUMENT_MODELS,
    )
    set_main_database(database)

    try:
        job = build_job(database.db, app_settings)

        # SIGTERM stops the sweep between members
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            try:
                loop.add_signal_handler(sig, job.request_stop)
            except NotImplementedError:
                logger.debug(f"Signal handler for {sig} not supported on this platform")

        results = await job.run()

        print("\n=== Membership Expiry Job Results ===")
        print(f"Start Time: {results['startTime']}")
        print(f"End Time: {results['endTime']}")
        print(f"Duration: {results['durationSeconds']:.2f} seconds")
        print(f"Members Scanned: {results['membersScanned']}")
        print(f"Memberships Expired: {results['expiredCount']}")
        print(f"Notifications Sent: {results['notifiedCount']}")
        print(f"Failures: {results['failedCount']}")

        if results["errors"]:
            print(f"\nErrors ({len(results['errors'])}):")
            for error in results["errors"]:
                print(f"  - {error}")

        exit_code = 1 if results["errors"] else 0
        sys.exit(exit_code)

    finally:
        await database.disconnect()


if __name__ == "__main__":
    logging.basicConfig(
        level=default_settings.LOG_LEVEL.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    asyncio.run(main())
