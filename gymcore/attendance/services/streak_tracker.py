"""
Attendance statistics.

One-pass running update of the member's attendance stats. It trusts the
previous lastCheckIn/currentStreak values instead of replaying the ledger.
"""

from datetime import datetime, timedelta

from gymcore.clock import TimezoneLike, parse_instant, start_of_day
from gymcore.schemas.attendance import AttendanceStats


def update_stats(
    stats: AttendanceStats,
    check_in_instant: datetime,
    tz: TimezoneLike,
) -> AttendanceStats:
    """
    Fold one successful check-in into the member's stats.

    Algorithm:
        1. totalCheckIns += 1
        2. yesterday = local day before the check-in
        3. previous lastCheckIn on yesterday      -> currentStreak += 1
           previous lastCheckIn before yesterday  -> currentStreak = 1
           no previous lastCheckIn                -> currentStreak = 1
           previous lastCheckIn on the same day   -> unchanged
        4. longestStreak = max(longestStreak, currentStreak)
        5. lastCheckIn = check-in instant

    A backdated check-in (local day earlier than the previous lastCheckIn)
    only counts toward the total. It neither touches the streak nor moves
    lastCheckIn backwards.

    Args:
        stats: Stats before this check-in
        check_in_instant: Effective check-in time
        tz: Organization timezone

    Returns:
        New AttendanceStats
    """
    instant = parse_instant(check_in_instant)
    today = start_of_day(instant, tz)
    yesterday = start_of_day(today - timedelta(hours=12), tz)

    total = stats.totalCheckIns + 1
    current = stats.currentStreak
    last_check_in = instant

    if stats.lastCheckIn is None:
        current = 1
    else:
        previous_day = start_of_day(stats.lastCheckIn, tz)
        if previous_day == yesterday:
            current += 1
        elif previous_day < yesterday:
            current = 1
        elif previous_day > today:
            last_check_in = parse_instant(stats.lastCheckIn)
        # same day: streak already counted

    return AttendanceStats(
        totalCheckIns=total,
        lastCheckIn=last_check_in,
        currentStreak=current,
        longestStreak=max(stats.longestStreak, current),
    )
