"""Tests for the Supabase-backed key store and results table."""

import asyncio
from types import SimpleNamespace

import pytest

from app.schemas import DominantFlag, StoredResult
from app.store import PersistenceError, SupabaseStore


class FakeQuery:
    def __init__(self, client, table):
        self.client = client
        self.table = table
        self.ops = []

    def select(self, *columns):
        self.ops.append(("select", columns))
        return self

    def eq(self, column, value):
        self.ops.append(("eq", column, value))
        return self

    def limit(self, n):
        self.ops.append(("limit", n))
        return self

    def insert(self, rows):
        self.ops.append(("insert", rows))
        return self

    async def execute(self):
        self.client.executed.append((self.table, self.ops))
        if self.client.error is not None:
            raise self.client.error
        return SimpleNamespace(data=self.client.data)


class FakeSupabase:
    def __init__(self, data=None, error=None):
        self.data = data
        self.error = error
        self.executed = []

    def table(self, name):
        return FakeQuery(self, name)


def _result():
    return StoredResult(
        api_key="good-key",
        content="some text",
        flags=DominantFlag(type="spam", score=0.72, flagged=True),
        status="flagged",
    )


def test_verify_api_key_found():
    sb = FakeSupabase(data=[{"key": "good-key"}])
    store = SupabaseStore(sb)

    assert asyncio.run(store.verify_api_key("good-key")) is True
    table, ops = sb.executed[0]
    assert table == "api_key"
    assert ("eq", "key", "good-key") in ops


def test_verify_api_key_missing():
    store = SupabaseStore(FakeSupabase(data=[]))
    assert asyncio.run(store.verify_api_key("nope")) is False


def test_verify_api_key_lookup_error_is_invalid():
    store = SupabaseStore(FakeSupabase(error=RuntimeError("connection refused")))
    assert asyncio.run(store.verify_api_key("good-key")) is False


def test_insert_result_writes_row():
    sb = FakeSupabase(data=[{"id": 1}])
    store = SupabaseStore(sb, results_table="results")

    assert asyncio.run(store.insert_result(_result())) == [{"id": 1}]

    table, ops = sb.executed[0]
    assert table == "results"
    (_, rows), = ops
    assert rows == [{
        "api_key": "good-key",
        "content": "some text",
        "content_type": "text",
        "flags": {"type": "spam", "score": 0.72, "flagged": True},
        "user_id": None,
        "status": "flagged",
    }]


def test_insert_result_failure():
    store = SupabaseStore(FakeSupabase(error=RuntimeError("permission denied")))
    with pytest.raises(PersistenceError, match="permission denied"):
        asyncio.run(store.insert_result(_result()))


def test_connect_requires_credentials(settings):
    with pytest.raises(RuntimeError, match="SUPABASE_URL"):
        asyncio.run(SupabaseStore.connect(settings))
