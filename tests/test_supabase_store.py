"""
SupabaseResourceStore against an in-process stand-in for the PostgREST query builder.
"""

import asyncio
import copy
from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

from transport_backend.domain.errors import ConcurrencyError, PartialWriteError, PreconditionError
from transport_backend.infrastructure.supabase_store import SupabaseResourceStore


class FakeQuery:
    def __init__(self, table, op, payload=None):
        self.table = table
        self.op = op
        self.payload = payload
        self.filters = []
        self.order_by = None
        self.max_rows = None

    def eq(self, column, value):
        self.filters.append((column, value))
        return self

    def is_(self, column, value):
        self.filters.append((column, None))
        return self

    def order(self, column, desc=False):
        self.order_by = (column, desc)
        return self

    def limit(self, n):
        self.max_rows = n
        return self

    def execute(self):
        return SimpleNamespace(data=self.table.run(self))


class FakeTable:
    def __init__(self):
        self.rows = {}

    @staticmethod
    def _value(row, column):
        if column.startswith("data->>"):
            value = row["data"].get(column[len("data->>"):])
            return None if value is None else str(value)
        return row.get(column)

    def _matching(self, query):
        return [
            row for row in self.rows.values()
            if all(self._value(row, column) == value for column, value in query.filters)
        ]

    def select(self, *_):
        return FakeQuery(self, "select")

    def insert(self, row):
        return FakeQuery(self, "insert", row)

    def update(self, patch):
        return FakeQuery(self, "update", patch)

    def delete(self):
        return FakeQuery(self, "delete")

    def upsert(self, row):
        return FakeQuery(self, "upsert", row)

    def run(self, query):
        if query.op == "insert":
            self.rows[query.payload["id"]] = copy.deepcopy(query.payload)
            return [query.payload]
        if query.op == "upsert":
            self.rows[query.payload["id"]] = copy.deepcopy(query.payload)
            return [query.payload]
        matched = self._matching(query)
        if query.op == "update":
            for row in matched:
                row.update(copy.deepcopy(query.payload))
            return copy.deepcopy(matched)
        if query.op == "delete":
            for row in matched:
                del self.rows[row["id"]]
            return matched
        rows = copy.deepcopy(matched)
        if query.order_by:
            column, desc = query.order_by
            rows.sort(key=lambda r: self._value(r, column) or "", reverse=desc)
        return rows[: query.max_rows] if query.max_rows is not None else rows


class FakeClient:
    def __init__(self):
        self.tables = {}

    def table(self, name):
        return self.tables.setdefault(name, FakeTable())


@pytest.fixture
def client():
    return FakeClient()


@pytest.fixture
def store(client):
    return SupabaseResourceStore(client, poll_seconds=0.01)


def run(coro):
    return asyncio.run(coro)


def test_documents_round_trip_with_timestamps(store, client):
    when = datetime(2025, 10, 9, 8, 0, tzinfo=timezone.utc)
    run(store.create("routes", {"organization_id": "ORG-1", "completion_date": when, "stops": []}, doc_id="R1"))

    row = client.tables["routes"].rows["R1"]
    assert row["organization_id"] == "ORG-1"
    assert row["data"]["completion_date"] == {"$ts": "2025-10-09T08:00:00+00:00"}

    doc = run(store.get("routes", "R1"))
    assert doc["completion_date"] == when
    assert doc["version"] == 1
    assert doc["created_at"].tzinfo is not None


def test_update_is_compare_and_set(store):
    run(store.create("routes", {"status": "Pending"}, doc_id="R1"))
    run(store.update("routes", "R1", {"status": "In Progress"}, expected_version=1))

    assert run(store.get("routes", "R1"))["version"] == 2
    with pytest.raises(ConcurrencyError):
        run(store.update("routes", "R1", {"status": "Completed"}, expected_version=1))


def test_query_filters_on_document_fields(store):
    run(store.create("routes", {"organization_id": "ORG-1", "status": "Pending"}, doc_id="R1"))
    run(store.create("routes", {"organization_id": "ORG-1", "status": "Completed"}, doc_id="R2"))
    run(store.create("routes", {"organization_id": "ORG-2", "status": "Pending"}, doc_id="R3"))

    found = run(store.query("routes", {"organization_id": "ORG-1", "status": "Pending"}))
    assert [d["id"] for d in found] == ["R1"]


def test_failed_transaction_is_compensated(store, client):
    run(store.create("routes", {"status": "Pending"}, doc_id="R1"))
    run(store.create("drivers", {"status": "Idle"}, doc_id="D1"))

    async def scenario():
        async with store.transaction():
            await store.update("routes", "R1", {"status": "In Progress"})
            await store.update("drivers", "D1", {"status": "On-route"})
            await store.create("safety_inspections", {"route_id": "R1"}, doc_id="INSP-1")
            raise RuntimeError("vehicles table unavailable")

    with pytest.raises(PartialWriteError):
        run(scenario())

    assert run(store.get("routes", "R1"))["status"] == "Pending"
    assert run(store.get("routes", "R1"))["version"] == 1
    assert run(store.get("drivers", "D1"))["status"] == "Idle"
    assert "INSP-1" not in client.tables["safety_inspections"].rows


def test_workflow_errors_are_re_raised_after_compensation(store):
    run(store.create("routes", {"status": "Pending"}, doc_id="R1"))

    async def scenario():
        async with store.transaction():
            await store.update("routes", "R1", {"status": "In Progress"})
            raise PreconditionError("vehicle is In-Shop")

    with pytest.raises(PreconditionError):
        run(scenario())
    assert run(store.get("routes", "R1"))["status"] == "Pending"


def test_subscribe_polls_for_changes(store):
    run(store.create("routes", {"organization_id": "ORG-1"}, doc_id="R1"))

    async def scenario():
        feed = store.subscribe("routes", {"organization_id": "ORG-1"})
        first = await feed.__anext__()
        await store.update("routes", "R1", {"status": "In Progress"})
        second = await asyncio.wait_for(feed.__anext__(), 1)
        await feed.aclose()
        return first, second

    first, second = run(scenario())
    assert first[0]["version"] == 1
    assert second[0]["status"] == "In Progress"
