"""Shared test fixtures for gymcore tests."""

import asyncio
import copy
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from gymcore.attendance.services.attendance_ledger import AttendanceLedger
from gymcore.attendance.services.checkin_orchestrator import CheckInOrchestrator
from gymcore.audit.services.audit_service import AuditService, AuditPublisher
from gymcore.membership.services.member_service import MemberService
from gymcore.organization.services.organization_service import OrganizationService


# ─────────────────────────────────────────────────────────────────
# In-memory Motor double
# ─────────────────────────────────────────────────────────────────

_MISSING = object()


def _get_path(document, path):
    current = document
    for part in path.split("."):
        if not isinstance(current, dict) or part not in current:
            return _MISSING
        current = current[part]
    return current


def _set_path(document, path, value):
    parts = path.split(".")
    current = document
    for part in parts[:-1]:
        if not isinstance(current.get(part), dict):
            current[part] = {}
        current = current[part]
    current[parts[-1]] = value


def _unset_path(document, path):
    parts = path.split(".")
    current = document
    for part in parts[:-1]:
        current = current.get(part)
        if not isinstance(current, dict):
            return
    current.pop(parts[-1], None)


def _compare(actual, operator, expected):
    if operator == "$exists":
        return (actual is not _MISSING) == bool(expected)
    if operator == "$ne":
        return not _equals(actual, expected)
    if operator == "$in":
        return any(_equals(actual, candidate) for candidate in expected)
    if actual is _MISSING or actual is None:
        return False
    if operator == "$lt":
        return actual < expected
    if operator == "$lte":
        return actual <= expected
    if operator == "$gt":
        return actual > expected
    if operator == "$gte":
        return actual >= expected
    raise NotImplementedError(operator)


def _equals(actual, expected):
    if expected is None:
        return actual is _MISSING or actual is None
    return actual is not _MISSING and actual == expected


def matches(document, query):
    """Subset of MongoDB query semantics used by the services."""
    for key, condition in query.items():
        if key == "$or":
            if not any(matches(document, sub) for sub in condition):
                return False
            continue
        actual = _get_path(document, key)
        if isinstance(condition, dict) and condition and all(k.startswith("$") for k in condition):
            if not all(_compare(actual, op, value) for op, value in condition.items()):
                return False
        elif not _equals(actual, condition):
            return False
    return True


def _project(document, projection):
    if not projection:
        return copy.deepcopy(document)
    projected = {"_id": document["_id"]}
    for field, include in projection.items():
        if include and field in document:
            projected[field] = copy.deepcopy(document[field])
    return projected


class FakeCursor:
    """Chainable cursor supporting sort/skip/limit/batch_size/to_list/async for."""

    def __init__(self, documents):
        self._documents = documents
        self._skip = 0
        self._limit = 0
        self.batch_size_value = None

    def sort(self, key, direction=1):
        self._documents = sorted(
            self._documents,
            key=lambda doc: doc.get(key),
            reverse=direction == -1,
        )
        return self

    def skip(self, count):
        self._skip = count
        return self

    def limit(self, count):
        self._limit = count
        return self

    def batch_size(self, size):
        self.batch_size_value = size
        return self

    def _window(self):
        documents = self._documents[self._skip:]
        if self._limit:
            documents = documents[:self._limit]
        return documents

    async def to_list(self, length=None):
        documents = self._window()
        return documents if length is None else documents[:length]

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for document in self._window():
            await asyncio.sleep(0)
            yield document


class FakeCollection:
    """
    Async collection kept in memory.

    Every call yields to the event loop once so concurrent callers really
    interleave. A unique sparse index can be declared per field.
    """

    def __init__(self, name, unique_sparse=()):
        self.name = name
        self.documents = []
        self._unique_sparse = tuple(unique_sparse)
        self.fail_on = {}

    def _maybe_fail(self, operation):
        error = self.fail_on.get(operation)
        if error is not None:
            raise error

    def _check_unique(self, candidate, ignore=None):
        for field in self._unique_sparse:
            value = candidate.get(field, _MISSING)
            if value is _MISSING:
                continue
            for existing in self.documents:
                if existing is not ignore and existing.get(field, _MISSING) == value:
                    raise DuplicateKeyError(f"E11000 duplicate key error collection: {self.name} index: {field}")

    async def find_one(self, query, projection=None):
        await asyncio.sleep(0)
        self._maybe_fail("find_one")
        for document in self.documents:
            if matches(document, query):
                return _project(document, projection)
        return None

    def find(self, query=None, projection=None):
        found = [_project(doc, projection) for doc in self.documents if matches(doc, query or {})]
        return FakeCursor(found)

    async def insert_one(self, document):
        await asyncio.sleep(0)
        self._maybe_fail("insert_one")
        stored = copy.deepcopy(document)
        stored.setdefault("_id", ObjectId())
        self._check_unique(stored)
        self.documents.append(stored)
        return SimpleNamespace(inserted_id=stored["_id"])

    def _apply(self, document, update):
        for path, value in update.get("$set", {}).items():
            _set_path(document, path, copy.deepcopy(value))
        for path in update.get("$unset", {}):
            _unset_path(document, path)

    async def update_one(self, query, update):
        await asyncio.sleep(0)
        self._maybe_fail("update_one")
        for document in self.documents:
            if matches(document, query):
                before = copy.deepcopy(document)
                self._apply(document, update)
                return SimpleNamespace(matched_count=1, modified_count=int(before != document))
        return SimpleNamespace(matched_count=0, modified_count=0)

    async def find_one_and_update(self, query, update, return_document=ReturnDocument.BEFORE):
        await asyncio.sleep(0)
        self._maybe_fail("find_one_and_update")
        for document in self.documents:
            if matches(document, query):
                before = copy.deepcopy(document)
                self._apply(document, update)
                return copy.deepcopy(document) if return_document == ReturnDocument.AFTER else before
        return None

    async def count_documents(self, query):
        await asyncio.sleep(0)
        return sum(1 for document in self.documents if matches(document, query))


class FakeDatabase:
    """Dict of FakeCollections created on first access."""

    def __init__(self):
        self._collections = {
            "attendances": FakeCollection("attendances", unique_sparse=("openVisitKey",)),
        }

    def __getitem__(self, name):
        if name not in self._collections:
            self._collections[name] = FakeCollection(name)
        return self._collections[name]


class Clock:
    """Settable clock for now_fn injection."""

    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


# ─────────────────────────────────────────────────────────────────
# Fixtures
# ─────────────────────────────────────────────────────────────────


@pytest.fixture
def fake_db():
    return FakeDatabase()


@pytest.fixture
def org_id():
    return ObjectId()


@pytest.fixture
def branch_id():
    return ObjectId()


@pytest.fixture
def staff_id():
    return ObjectId()


@pytest.fixture
def organization_doc(fake_db, org_id):
    doc = {
        "_id": org_id,
        "name": "Iron Temple Fitness",
        "email": "desk@irontemple.in",
        "phone": "+91 98765 43210",
        "timezone": "Asia/Kolkata",
    }
    fake_db["organizations"].documents.append(doc)
    return doc


@pytest.fixture
def make_member(fake_db, org_id, branch_id):
    """Insert a member document and return it."""
    def _make(**overrides):
        member = {
            "_id": ObjectId(),
            "organizationId": org_id,
            "branchId": branch_id,
            "memberId": "MEM-0001",
            "firstName": "Asha",
            "lastName": "Rao",
            "email": "asha@example.com",
            "phone": "9876543210",
            "membershipStatus": "active",
            "createdAt": datetime(2023, 12, 1, tzinfo=timezone.utc),
        }
        member.update(overrides)
        fake_db["members"].documents.append(member)
        return member
    return _make


@pytest.fixture
def clock():
    return Clock(datetime(2024, 1, 1, 2, 30, tzinfo=timezone.utc))


@pytest.fixture
def member_service(fake_db):
    return MemberService(fake_db)


@pytest.fixture
def organization_service(fake_db, organization_doc):
    return OrganizationService(fake_db, default_timezone="Asia/Kolkata")


@pytest.fixture
def ledger(fake_db):
    return AttendanceLedger(fake_db)


@pytest.fixture
def audit_publisher(fake_db):
    return AuditPublisher(AuditService(fake_db))


@pytest.fixture
def orchestrator(member_service, organization_service, ledger, audit_publisher, clock):
    return CheckInOrchestrator(
        member_service=member_service,
        organization_service=organization_service,
        ledger=ledger,
        audit_publisher=audit_publisher,
        now_fn=clock,
    )


@pytest.fixture
def mock_collection():
    collection = AsyncMock()
    # Motor's find() returns a cursor synchronously (not a coroutine),
    # so use MagicMock for it. Async methods like find_one, insert_one,
    # count_documents etc. stay as AsyncMock.
    collection.find = MagicMock()
    return collection


@pytest.fixture
def mock_db(mock_collection):
    db = MagicMock()
    db.__getitem__ = MagicMock(return_value=mock_collection)
    return db
