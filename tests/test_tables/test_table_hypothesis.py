"""Property-based tests for table write batching."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from repotables.exceptions import ClosedError
from repotables.manager import TableManager
from repotables.table import canonical_key
from tests.conftest import RecordingStore, make_settings

PROPERTY_SETTINGS = settings(
    max_examples=120,
    deadline=None,
    suppress_health_check=[HealthCheck.too_slow],
)

_KEY = st.one_of(
    st.text(alphabet="abc", min_size=1, max_size=2),
    st.integers(min_value=0, max_value=3),
    st.booleans(),
)
_VALUE = st.one_of(
    st.none(),
    st.integers(),
    st.text(max_size=3),
    st.lists(st.integers(), max_size=2),
)
_OPERATION = st.one_of(
    st.tuples(st.just("set"), _KEY, _VALUE),
    st.tuples(st.just("delete"), _KEY, st.none()),
)


async def _apply_and_flush(operations: list[tuple[str, Any, Any]]) -> None:
    store = RecordingStore()
    manager = TableManager(make_settings(flush_interval_ms=60_000), store=store)
    try:
        table = manager.create_table("table.json")
        await table.connect()

        model: dict[str, Any] = {}
        futures: list[asyncio.Future[bool]] = []
        expected: list[bool] = []
        for operation, key, value in operations:
            skey = canonical_key(key)
            if operation == "set":
                futures.append(table.set(key, value))
                expected.append(True)
                model[skey] = value
            else:
                futures.append(table.delete(key))
                expected.append(skey in model)
                model.pop(skey, None)
            assert table.get(key) == model.get(skey)

        assert table.pending == len(operations)
        assert not any(future.done() for future in futures)

        await table.flush()

        assert [future.result() for future in futures] == expected
        assert store.count("write", "table.json") == 1
        assert store.files()["table.json"] == model
        assert table.collection() == model
    finally:
        await manager.aclose()


async def _apply_while_closed(operations: list[tuple[str, Any, Any]]) -> None:
    store = RecordingStore()
    manager = TableManager(make_settings(flush_interval_ms=60_000), store=store)
    try:
        table = manager.create_table("table.json")
        await table.connect()
        before = table.collection()
        manager.close()

        for operation, key, value in operations:
            with pytest.raises(ClosedError):
                if operation == "set":
                    table.set(key, value)
                else:
                    table.delete(key)

        assert table.pending == 0
        assert table.collection() == before
        assert not table.flush_scheduled
    finally:
        await manager.aclose()


class TestWriteBatchingProperties:
    @PROPERTY_SETTINGS
    @given(operations=st.lists(_OPERATION, max_size=25))
    def test_one_flush_commits_every_queued_mutation(
        self, operations: list[tuple[str, Any, Any]]
    ) -> None:
        asyncio.run(_apply_and_flush(operations))

    @PROPERTY_SETTINGS
    @given(operations=st.lists(_OPERATION, min_size=1, max_size=10))
    def test_closed_manager_rejects_every_mutation(
        self, operations: list[tuple[str, Any, Any]]
    ) -> None:
        asyncio.run(_apply_while_closed(operations))
