"""
Timezone-anchored calendar helpers.

Every day boundary is computed in an explicit timezone, normally the one
configured on the member's organization. Naive datetimes are taken to be
UTC, which is how MongoDB hands them back.
"""

import math
import re
from datetime import date, datetime, time, timezone, tzinfo
from typing import Optional, Tuple, Union

import pytz

from common.utils.exceptions import InvalidTimestampException

TimezoneLike = Union[str, tzinfo]

SECONDS_PER_DAY = 24 * 60 * 60

DATE_ONLY_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def resolve_timezone(tz: TimezoneLike) -> tzinfo:
    """
    Turn an IANA name or tzinfo into a tzinfo.

    Raises:
        InvalidTimestampException: Unknown timezone name
    """
    if isinstance(tz, tzinfo):
        return tz
    try:
        return pytz.timezone(tz)
    except pytz.UnknownTimeZoneError:
        raise InvalidTimestampException(
            message=f"Unknown timezone: {tz}",
            code="INVALID_TIMEZONE",
        )


def utcnow() -> datetime:
    """Current instant, timezone-aware UTC."""
    return datetime.now(timezone.utc)


def parse_instant(value: Union[str, date, datetime]) -> datetime:
    """
    Coerce a stored or supplied value into an aware datetime.

    Accepts aware/naive datetimes, plain dates (midnight UTC) and ISO-8601
    strings.

    Raises:
        InvalidTimestampException: Value cannot be interpreted as an instant
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            raise InvalidTimestampException(
                message=f"Invalid timestamp: {value}",
                details={"value": value},
            )
    else:
        raise InvalidTimestampException(
            message=f"Invalid timestamp: {value!r}",
            details={"value": repr(value)},
        )

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_date(value: Union[str, date, datetime]) -> date:
    """
    Parse a calendar date (YYYY-MM-DD).

    Raises:
        InvalidTimestampException: Value is not a valid date
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip())
    except ValueError:
        raise InvalidTimestampException(
            message=f"Invalid date: {value}",
            details={"value": value},
        )


def parse_time_fragments(value: str) -> Tuple[int, int, int]:
    """
    Split "HH", "HH:MM" or "HH:MM:SS" into integers.

    Lenient on purpose: a fragment that is not a number, or is out of range
    for its position, becomes 0 instead of failing the whole request.
    """
    limits = (23, 59, 59)
    parts = str(value or "").strip().split(":")
    fragments = []
    for index, limit in enumerate(limits):
        raw = parts[index].strip() if index < len(parts) else ""
        try:
            number = int(raw)
        except ValueError:
            number = 0
        fragments.append(number if 0 <= number <= limit else 0)
    return fragments[0], fragments[1], fragments[2]


def _localize(zone: tzinfo, naive: datetime) -> datetime:
    # pytz zones need localize() to pick the right offset
    localize = getattr(zone, "localize", None)
    if localize is not None:
        return localize(naive)
    return naive.replace(tzinfo=zone)


def calendar_day(value: Union[str, date, datetime]) -> Optional[date]:
    """
    The calendar date carried by a plain date or a "YYYY-MM-DD" string.

    Returns None for anything that names an instant (datetimes and
    timestamp strings).
    """
    if isinstance(value, datetime):
        return None
    if isinstance(value, date):
        return value
    if isinstance(value, str) and DATE_ONLY_PATTERN.match(value.strip()):
        return parse_date(value)
    return None


def to_local(instant: Union[str, date, datetime], tz: TimezoneLike) -> datetime:
    """
    Express an instant in the given timezone.

    Plain dates are local midnight of that date in the timezone.
    """
    day = calendar_day(instant)
    if day is not None:
        return combine_local(day, tz)
    return parse_instant(instant).astimezone(resolve_timezone(tz))


def local_date(instant: Union[str, date, datetime], tz: TimezoneLike) -> date:
    """Calendar date of an instant in the given timezone. Plain dates pass through."""
    day = calendar_day(instant)
    if day is not None:
        return day
    return to_local(instant, tz).date()


def plan_end_day(value: Union[str, date, datetime], tz: TimezoneLike) -> date:
    """
    Calendar day on which a plan ends.

    Plain dates and "YYYY-MM-DD" strings are taken as-is. An instant at
    exactly midnight UTC is a date-only value that went through storage, so
    its UTC date is used. Any other instant is read in the given timezone.

    Raises:
        InvalidTimestampException: Value cannot be interpreted
    """
    day = calendar_day(value)
    if day is not None:
        return day
    instant = parse_instant(value)
    utc_instant = instant.astimezone(timezone.utc)
    if utc_instant.time() == time(0):
        return utc_instant.date()
    return local_date(instant, tz)


def day_key(instant: Union[str, date, datetime], tz: TimezoneLike) -> str:
    """YYYY-MM-DD key of the local calendar day."""
    return local_date(instant, tz).isoformat()


def combine_local(
    day: date,
    tz: TimezoneLike,
    hour: int = 0,
    minute: int = 0,
    second: int = 0,
    microsecond: int = 0,
) -> datetime:
    """Build the aware instant for a local wall-clock time on a given day."""
    naive = datetime(day.year, day.month, day.day, hour, minute, second, microsecond)
    return _localize(resolve_timezone(tz), naive)


def start_of_day(instant: Union[str, date, datetime], tz: TimezoneLike) -> datetime:
    """00:00:00.000 of the local day containing the instant."""
    return combine_local(local_date(instant, tz), tz)


def end_of_day(instant: Union[str, date, datetime], tz: TimezoneLike) -> datetime:
    """23:59:59.999 of the local day containing the instant."""
    return combine_local(local_date(instant, tz), tz, 23, 59, 59, 999000)


def same_calendar_day(
    a: Union[str, date, datetime],
    b: Union[str, date, datetime],
    tz: TimezoneLike,
) -> bool:
    """True when both instants fall on the same local calendar day."""
    return local_date(a, tz) == local_date(b, tz)


def days_between(
    start: Union[str, date, datetime],
    end: Union[str, date, datetime],
    tz: TimezoneLike,
) -> int:
    """
    Ceiling of the difference in days from start to end.

    Measured on local wall-clock time, so a 23h or 25h DST day still counts
    as one day.
    """
    start_wall = to_local(start, tz).replace(tzinfo=None)
    end_wall = to_local(end, tz).replace(tzinfo=None)
    return math.ceil((end_wall - start_wall).total_seconds() / SECONDS_PER_DAY)
