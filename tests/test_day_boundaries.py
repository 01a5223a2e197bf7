"""Unit tests for the timezone-anchored calendar helpers."""

import pytest
from datetime import date, datetime, timezone, timedelta

from common.utils.exceptions import InvalidTimestampException
from gymcore.clock import (
    parse_instant,
    parse_date,
    parse_time_fragments,
    start_of_day,
    end_of_day,
    same_calendar_day,
    days_between,
    day_key,
    local_date,
    plan_end_day,
    combine_local,
    resolve_timezone,
)

IST = "Asia/Kolkata"


class TestParseInstant:
    def test_naive_datetime_is_utc(self):
        parsed = parse_instant(datetime(2024, 3, 10, 9, 15))

        assert parsed.tzinfo is not None
        assert parsed.utcoffset() == timedelta(0)

    def test_iso_string_with_z_suffix(self):
        parsed = parse_instant("2024-03-10T03:45:00Z")

        assert parsed == datetime(2024, 3, 10, 3, 45, tzinfo=timezone.utc)

    def test_plain_date_is_midnight_utc(self):
        assert parse_instant(date(2024, 1, 5)) == datetime(2024, 1, 5, tzinfo=timezone.utc)

    def test_garbage_raises_invalid_timestamp(self):
        with pytest.raises(InvalidTimestampException) as exc:
            parse_instant("not-a-date")

        assert exc.value.status_code == 422
        assert exc.value.code == "INVALID_TIMESTAMP"

    def test_unsupported_type_raises(self):
        with pytest.raises(InvalidTimestampException):
            parse_instant(12345)


class TestParseDate:
    def test_valid_date(self):
        assert parse_date("2024-03-10") == date(2024, 3, 10)

    def test_invalid_date_raises(self):
        with pytest.raises(InvalidTimestampException):
            parse_date("2024-02-30")


class TestParseTimeFragments:
    def test_hours_and_minutes(self):
        assert parse_time_fragments("09:15") == (9, 15, 0)

    def test_hours_only(self):
        assert parse_time_fragments("7") == (7, 0, 0)

    def test_non_numeric_fragment_defaults_to_zero(self):
        assert parse_time_fragments("9:xx") == (9, 0, 0)

    def test_out_of_range_fragment_defaults_to_zero(self):
        assert parse_time_fragments("25:61:10") == (0, 0, 10)

    def test_empty_string(self):
        assert parse_time_fragments("") == (0, 0, 0)


class TestDayBoundaries:
    def test_start_of_day_uses_organization_timezone(self):
        # 20:00 UTC on Jan 1 is already Jan 2 in India
        instant = datetime(2024, 1, 1, 20, 0, tzinfo=timezone.utc)

        start = start_of_day(instant, IST)

        assert start.date() == date(2024, 1, 2)
        assert start.hour == 0 and start.minute == 0
        assert start.astimezone(timezone.utc) == datetime(2024, 1, 1, 18, 30, tzinfo=timezone.utc)

    def test_end_of_day_is_last_millisecond(self):
        end = end_of_day(datetime(2024, 1, 5, 6, 0, tzinfo=timezone.utc), IST)

        assert (end.hour, end.minute, end.second, end.microsecond) == (23, 59, 59, 999000)
        assert end.date() == date(2024, 1, 5)

    def test_same_calendar_day_across_utc_midnight(self):
        a = datetime(2024, 1, 1, 19, 0, tzinfo=timezone.utc)   # Jan 2 00:30 IST
        b = datetime(2024, 1, 2, 10, 0, tzinfo=timezone.utc)   # Jan 2 15:30 IST

        assert same_calendar_day(a, b, IST)
        assert not same_calendar_day(a, b, "UTC")

    def test_day_key(self):
        assert day_key(datetime(2024, 3, 9, 20, 0, tzinfo=timezone.utc), IST) == "2024-03-10"

    def test_combine_local_round_trip(self):
        instant = combine_local(date(2024, 3, 10), IST, 9, 15)

        assert instant.astimezone(timezone.utc) == datetime(2024, 3, 10, 3, 45, tzinfo=timezone.utc)


class TestCalendarDates:
    NEW_YORK = "America/New_York"

    def test_plain_date_keeps_its_day_west_of_utc(self):
        assert local_date(date(2024, 1, 5), self.NEW_YORK) == date(2024, 1, 5)
        assert local_date("2024-01-05", self.NEW_YORK) == date(2024, 1, 5)

    def test_start_of_plain_date_is_local_midnight(self):
        start = start_of_day("2024-01-05", self.NEW_YORK)

        assert start.astimezone(timezone.utc) == datetime(2024, 1, 5, 5, 0, tzinfo=timezone.utc)

    def test_stored_midnight_utc_reads_as_its_utc_date(self):
        stored = datetime(2024, 1, 5, tzinfo=timezone.utc)

        assert plan_end_day(stored, self.NEW_YORK) == date(2024, 1, 5)
        assert plan_end_day(stored, IST) == date(2024, 1, 5)
        assert plan_end_day(datetime(2024, 1, 5), self.NEW_YORK) == date(2024, 1, 5)

    def test_other_instants_use_the_local_day(self):
        # 03:00 UTC on Jan 5 is still Jan 4 in New York
        assert plan_end_day(datetime(2024, 1, 5, 3, 0, tzinfo=timezone.utc), self.NEW_YORK) == date(2024, 1, 4)
        # 18:30 UTC on Jan 4 is local midnight of Jan 5 in India
        assert plan_end_day(datetime(2024, 1, 4, 18, 30, tzinfo=timezone.utc), IST) == date(2024, 1, 5)

    def test_days_between_plain_dates(self):
        assert days_between("2024-01-01", date(2024, 1, 4), self.NEW_YORK) == 3


class TestDaysBetween:
    def test_whole_days(self):
        today = start_of_day(datetime(2024, 1, 1, 4, 0, tzinfo=timezone.utc), IST)
        end = start_of_day(datetime(2024, 1, 4, 4, 0, tzinfo=timezone.utc), IST)

        assert days_between(today, end, IST) == 3

    def test_partial_day_rounds_up(self):
        start = datetime(2024, 1, 1, 0, 0, tzinfo=timezone.utc)
        end = datetime(2024, 1, 2, 1, 0, tzinfo=timezone.utc)

        assert days_between(start, end, "UTC") == 2

    def test_dst_short_day_counts_as_one(self):
        # Europe/Stockholm springs forward on 2024-03-31
        start = start_of_day(datetime(2024, 3, 30, 12, 0, tzinfo=timezone.utc), "Europe/Stockholm")
        end = start_of_day(datetime(2024, 4, 1, 12, 0, tzinfo=timezone.utc), "Europe/Stockholm")

        assert days_between(start, end, "Europe/Stockholm") == 2

    def test_just_after_local_midnight_is_not_miscounted(self):
        # 18:35 UTC is 00:05 IST the next day
        now = datetime(2024, 1, 1, 18, 35, tzinfo=timezone.utc)
        plan_end = datetime(2024, 1, 5, 0, 0, tzinfo=timezone.utc)

        assert days_between(start_of_day(now, IST), start_of_day(plan_end, IST), IST) == 3


class TestResolveTimezone:
    def test_unknown_name_raises(self):
        with pytest.raises(InvalidTimestampException) as exc:
            resolve_timezone("Mars/Olympus")

        assert exc.value.code == "INVALID_TIMEZONE"
