"""
Clock & calendar helpers.

Pure functions, timezone always passed explicitly.
"""

from gymcore.clock.day_boundaries import (
    TimezoneLike,
    resolve_timezone,
    utcnow,
    parse_instant,
    parse_date,
    parse_time_fragments,
    calendar_day,
    to_local,
    local_date,
    plan_end_day,
    day_key,
    combine_local,
    start_of_day,
    end_of_day,
    same_calendar_day,
    days_between,
)

__all__ = [
    "TimezoneLike",
    "resolve_timezone",
    "utcnow",
    "parse_instant",
    "parse_date",
    "parse_time_fragments",
    "calendar_day",
    "to_local",
    "local_date",
    "plan_end_day",
    "day_key",
    "combine_local",
    "start_of_day",
    "end_of_day",
    "same_calendar_day",
    "days_between",
]
