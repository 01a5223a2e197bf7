"""Unit tests for AttendanceLedger (open-visit uniqueness, close, queries)."""

import asyncio
import pytest
from datetime import date, datetime, timezone
from bson import ObjectId

from common.utils.exceptions import NotFoundException, AlreadyClosedException, InvalidTimestampException
from gymcore.attendance.services.attendance_ledger import (
    AttendanceLedger,
    DuplicateVisitError,
    open_visit_key,
)
from gymcore.membership.services.member_service import to_object_id


# ─────────────────────────────────────────────────────────────────
# Fixtures
# ─────────────────────────────────────────────────────────────────


@pytest.fixture
def member_oid():
    return ObjectId()


@pytest.fixture
def make_entry(org_id, branch_id, member_oid):
    def _make(**overrides):
        entry = {
            "organizationId": org_id,
            "branchId": branch_id,
            "memberId": member_oid,
            "checkInTime": datetime(2024, 1, 1, 2, 30, tzinfo=timezone.utc),
            "visitDay": "2024-01-01",
            "method": "manual",
            "status": "success",
            "blockedReason": None,
        }
        entry.update(overrides)
        return entry
    return _make


# ─────────────────────────────────────────────────────────────────
# record
# ─────────────────────────────────────────────────────────────────


class TestRecord:
    @pytest.mark.asyncio
    async def test_open_success_claims_visit_key(self, ledger, make_entry, member_oid):
        record = await ledger.record(make_entry())

        assert record["_id"] is not None
        assert record["openVisitKey"] == open_visit_key(member_oid, "2024-01-01")
        assert record["checkOutTime"] is None
        assert record["manualOverride"] is False
        assert "blockedReason" not in record

    @pytest.mark.asyncio
    async def test_denied_record_has_no_visit_key(self, ledger, make_entry):
        record = await ledger.record(make_entry(status="expired", blockedReason="Membership has expired"))

        assert "openVisitKey" not in record
        assert record["blockedReason"] == "Membership has expired"

    @pytest.mark.asyncio
    async def test_second_open_visit_is_refused_by_storage(self, ledger, make_entry):
        first = await ledger.record(make_entry())

        with pytest.raises(DuplicateVisitError) as exc:
            await ledger.record(make_entry(checkInTime=datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)))

        assert exc.value.existing["_id"] == first["_id"]

    @pytest.mark.asyncio
    async def test_override_visits_do_not_collide(self, ledger, make_entry, fake_db):
        await ledger.record(make_entry())
        await ledger.record(make_entry(manualOverride=True))

        assert len(fake_db["attendances"].documents) == 2

    @pytest.mark.asyncio
    async def test_next_day_is_independent(self, ledger, make_entry):
        await ledger.record(make_entry())
        record = await ledger.record(make_entry(visitDay="2024-01-02"))

        assert record["openVisitKey"].endswith(":2024-01-02")


# ─────────────────────────────────────────────────────────────────
# find_open_visit
# ─────────────────────────────────────────────────────────────────


class TestFindOpenVisit:
    @pytest.mark.asyncio
    async def test_finds_open_success(self, ledger, make_entry, org_id, member_oid):
        record = await ledger.record(make_entry())

        found = await ledger.find_open_visit(org_id, member_oid, "2024-01-01")

        assert found["_id"] == record["_id"]

    @pytest.mark.asyncio
    async def test_ignores_denied_and_closed(self, ledger, make_entry, org_id, member_oid):
        await ledger.record(make_entry(status="frozen", blockedReason="Membership is frozen"))
        closed = await ledger.record(make_entry())
        await ledger.close(org_id, closed["_id"], datetime(2024, 1, 1, 4, 0, tzinfo=timezone.utc))

        assert await ledger.find_open_visit(org_id, member_oid, "2024-01-01") is None

    @pytest.mark.asyncio
    async def test_scoped_to_organization(self, ledger, make_entry, member_oid):
        await ledger.record(make_entry())

        assert await ledger.find_open_visit(ObjectId(), member_oid, "2024-01-01") is None


# ─────────────────────────────────────────────────────────────────
# close
# ─────────────────────────────────────────────────────────────────


class TestClose:
    @pytest.mark.asyncio
    async def test_close_sets_check_out_and_frees_slot(self, ledger, make_entry, org_id):
        record = await ledger.record(make_entry())
        check_out = datetime(2024, 1, 1, 4, 0, tzinfo=timezone.utc)

        closed = await ledger.close(org_id, record["_id"], check_out)

        assert closed["checkOutTime"] == check_out
        assert "openVisitKey" not in closed
        # Slot is free again for a new visit the same day
        reopened = await ledger.record(make_entry())
        assert reopened["openVisitKey"] == record["openVisitKey"]

    @pytest.mark.asyncio
    async def test_close_twice_raises_already_closed(self, ledger, make_entry, org_id):
        record = await ledger.record(make_entry())
        await ledger.close(org_id, record["_id"], datetime(2024, 1, 1, 4, 0, tzinfo=timezone.utc))

        with pytest.raises(AlreadyClosedException) as exc:
            await ledger.close(org_id, record["_id"], datetime(2024, 1, 1, 5, 0, tzinfo=timezone.utc))

        assert exc.value.status_code == 409
        assert exc.value.code == "ALREADY_CHECKED_OUT"

    @pytest.mark.asyncio
    async def test_close_in_other_organization_is_not_found(self, ledger, make_entry):
        record = await ledger.record(make_entry())

        with pytest.raises(NotFoundException) as exc:
            await ledger.close(ObjectId(), record["_id"], datetime.now(timezone.utc))

        assert exc.value.code == "ATTENDANCE_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_malformed_id_is_not_found(self, ledger, org_id):
        with pytest.raises(NotFoundException):
            await ledger.close(org_id, "not-an-id", datetime.now(timezone.utc))


# ─────────────────────────────────────────────────────────────────
# Queries
# ─────────────────────────────────────────────────────────────────


class TestQueries:
    @pytest.mark.asyncio
    async def test_member_history_is_paginated_newest_first(self, ledger, make_entry, org_id, member_oid):
        for day in range(1, 6):
            await ledger.record(make_entry(
                checkInTime=datetime(2024, 1, day, 2, 30, tzinfo=timezone.utc),
                visitDay=f"2024-01-0{day}",
            ))

        page = await ledger.list_member_history(org_id, member_oid, limit=2, offset=1)

        assert page["total"] == 5
        assert page["hasMore"] is True
        assert [r["visitDay"] for r in page["records"]] == ["2024-01-04", "2024-01-03"]

    @pytest.mark.asyncio
    async def test_member_history_limit_is_capped(self, ledger, org_id, member_oid):
        page = await ledger.list_member_history(org_id, member_oid, limit=1000)

        assert page["limit"] == AttendanceLedger.MAX_LIMIT
        assert page["records"] == []

    @pytest.mark.asyncio
    async def test_branch_day_lists_denials_too(self, ledger, make_entry, org_id, branch_id):
        await ledger.record(make_entry())
        await ledger.record(make_entry(memberId=ObjectId(), status="blocked", blockedReason="Membership is not active"))
        await ledger.record(make_entry(visitDay="2024-01-02"))

        records = await ledger.list_branch_day(org_id, branch_id, "2024-01-01")

        assert len(records) == 2

    @pytest.mark.asyncio
    async def test_stats_count_successes_by_method(self, ledger, make_entry, org_id):
        await ledger.record(make_entry())
        await ledger.record(make_entry(memberId=ObjectId(), method="biometric"))
        await ledger.record(make_entry(memberId=ObjectId(), method="qr", visitDay="2023-12-31"))
        await ledger.record(make_entry(memberId=ObjectId(), status="expired", blockedReason="Membership has expired"))

        stats = await ledger.get_stats(org_id, "2024-01-01")

        assert stats["totalCheckIns"] == 3
        assert stats["todayCheckIns"] == 2
        assert stats["byMethod"] == {"biometric": 1, "manual": 1, "qr": 1, "mobile": 0}


    @pytest.mark.asyncio
    async def test_list_attendance_filters_and_pages(self, ledger, make_entry, org_id, branch_id):
        other_branch = ObjectId()
        for day in range(1, 6):
            await ledger.record(make_entry(
                memberId=ObjectId(),
                checkInTime=datetime(2024, 1, day, 2, 30, tzinfo=timezone.utc),
                visitDay=f"2024-01-0{day}",
            ))
        await ledger.record(make_entry(memberId=ObjectId(), branchId=other_branch, visitDay="2024-01-03"))
        await ledger.record(make_entry(
            memberId=ObjectId(), status="frozen", blockedReason="Membership is frozen", visitDay="2024-01-03",
        ))
        await ledger.record(make_entry(organizationId=ObjectId(), memberId=ObjectId()))

        everything = await ledger.list_attendance(org_id)
        assert everything["total"] == 7

        page = await ledger.list_attendance(
            org_id, branch_id=branch_id, status="success", start="2024-01-02", end="2024-01-04", limit=2,
        )
        assert page["total"] == 3
        assert page["hasMore"] is True
        assert [r["visitDay"] for r in page["records"]] == ["2024-01-04", "2024-01-03"]

        denials = await ledger.list_attendance(org_id, status="frozen")
        assert [r["status"] for r in denials["records"]] == ["frozen"]

    @pytest.mark.asyncio
    async def test_list_attendance_instant_bounds(self, ledger, make_entry, org_id):
        for hour in (1, 5, 9):
            await ledger.record(make_entry(
                memberId=ObjectId(), checkInTime=datetime(2024, 1, 1, hour, 0, tzinfo=timezone.utc),
            ))

        page = await ledger.list_attendance(
            org_id,
            start=datetime(2024, 1, 1, 4, 0, tzinfo=timezone.utc),
            end="2024-01-01T09:00:00Z",
        )

        assert [r["checkInTime"].hour for r in page["records"]] == [9, 5]

    @pytest.mark.asyncio
    async def test_list_attendance_rejects_bad_bound(self, ledger, org_id):
        with pytest.raises(InvalidTimestampException):
            await ledger.list_attendance(org_id, start="last tuesday")

    @pytest.mark.asyncio
    async def test_stats_range_limits_totals_not_today(self, ledger, make_entry, org_id):
        await ledger.record(make_entry())
        await ledger.record(make_entry(memberId=ObjectId(), method="qr", visitDay="2023-12-31"))
        await ledger.record(make_entry(memberId=ObjectId(), method="qr", visitDay="2023-12-30"))

        stats = await ledger.get_stats(org_id, "2024-01-01", start=date(2023, 12, 31), end=date(2023, 12, 31))

        assert stats["totalCheckIns"] == 1
        assert stats["byMethod"]["qr"] == 1
        assert stats["byMethod"]["manual"] == 0
        assert stats["todayCheckIns"] == 1



# ─────────────────────────────────────────────────────────────────
# visit_lock
# ─────────────────────────────────────────────────────────────────


class TestVisitLock:
    @pytest.mark.asyncio
    async def test_lock_serializes_same_member(self, ledger, member_oid):
        order = []

        async def worker(name):
            async with ledger.visit_lock(member_oid):
                order.append(f"{name}-in")
                await asyncio.sleep(0)
                await asyncio.sleep(0)
                order.append(f"{name}-out")

        await asyncio.gather(worker("a"), worker("b"))

        assert order in (["a-in", "a-out", "b-in", "b-out"], ["b-in", "b-out", "a-in", "a-out"])

    @pytest.mark.asyncio
    async def test_locks_are_released_after_use(self, ledger, member_oid):
        async with ledger.visit_lock(member_oid):
            pass

        assert ledger._locks == {}


class TestObjectIds:
    def test_none_is_not_found(self):
        with pytest.raises(NotFoundException) as exc:
            to_object_id(None, "Organization not found", "ORGANIZATION_NOT_FOUND")

        assert exc.value.code == "ORGANIZATION_NOT_FOUND"

    def test_malformed_is_not_found(self):
        with pytest.raises(NotFoundException):
            to_object_id("not-an-id")

    def test_hex_string_is_converted(self):
        oid = ObjectId()

        assert to_object_id(str(oid)) == oid
