"""Tests for the persistence coalescer."""

import asyncio

import pytest

from agent_knowledge_core.errors import PersistenceError
from agent_knowledge_core.models import KnowledgeSnapshot
from agent_knowledge_core.storage import MemoryKeyValueStore, PersistenceCoalescer


def snap(version):
    return KnowledgeSnapshot(owner_id="agent-1", version=version)


def written_versions(store):
    return [value["version"] for _, value in store.saves]


class ExplodingStore(MemoryKeyValueStore):
    async def save(self, key, value):
        raise OSError("disk full")


class TestPersistenceCoalescer:
    """Test PersistenceCoalescer functionality."""

    @pytest.mark.asyncio
    async def test_writes_when_idle(self):
        store = MemoryKeyValueStore()
        coalescer = PersistenceCoalescer(store, "knowledge:agent-1", debounce=0)

        coalescer.schedule(snap(1))
        assert await coalescer.flush() is True

        assert store.saves[0][0] == "knowledge:agent-1"
        assert written_versions(store) == [1]
        assert coalescer.written_version == 1
        assert coalescer.idle

    @pytest.mark.asyncio
    async def test_schedule_during_write_yields_one_follow_up_with_latest(self):
        store = MemoryKeyValueStore(latency=0.05)
        coalescer = PersistenceCoalescer(store, "k", debounce=0)

        coalescer.schedule(snap(1))
        await asyncio.sleep(0.01)
        assert coalescer.in_flight

        coalescer.schedule(snap(2))
        coalescer.schedule(snap(3))
        assert coalescer.pending.version == 3
        await coalescer.flush()

        assert written_versions(store) == [1, 3]
        assert store.max_concurrent_saves == 1

    @pytest.mark.asyncio
    async def test_debounce_coalesces_burst(self):
        store = MemoryKeyValueStore()
        coalescer = PersistenceCoalescer(store, "k", debounce=0.05)

        for version in range(1, 6):
            coalescer.schedule(snap(version))
            await asyncio.sleep(0)
        await asyncio.sleep(0.1)

        assert written_versions(store) == [5]

    @pytest.mark.asyncio
    async def test_debounce_window_restarts_on_each_snapshot(self):
        store = MemoryKeyValueStore()
        coalescer = PersistenceCoalescer(store, "k", debounce=0.1)

        for version in range(1, 6):
            coalescer.schedule(snap(version))
            await asyncio.sleep(0.06)
        assert store.saves == []

        await asyncio.sleep(0.3)

        assert written_versions(store) == [5]
        assert coalescer.idle

    @pytest.mark.asyncio
    async def test_flush_skips_debounce_window(self):
        store = MemoryKeyValueStore()
        coalescer = PersistenceCoalescer(store, "k", debounce=30)

        coalescer.schedule(snap(1))
        await asyncio.wait_for(coalescer.flush(), timeout=1)

        assert written_versions(store) == [1]

    @pytest.mark.asyncio
    async def test_stale_snapshot_ignored(self):
        store = MemoryKeyValueStore()
        coalescer = PersistenceCoalescer(store, "k", debounce=0)

        coalescer.schedule(snap(5))
        await coalescer.flush()
        coalescer.schedule(snap(3))

        assert coalescer.idle
        assert written_versions(store) == [5]

    @pytest.mark.asyncio
    async def test_failed_write_is_retried_once(self):
        store = MemoryKeyValueStore()
        store.fail_next = 1
        coalescer = PersistenceCoalescer(store, "k", debounce=0)

        coalescer.schedule(snap(1))

        assert await coalescer.flush() is True
        assert written_versions(store) == [1]
        assert coalescer.write_count == 1

    @pytest.mark.asyncio
    async def test_retry_uses_latest_snapshot(self):
        store = MemoryKeyValueStore(latency=0.03)
        store.fail_next = 1
        coalescer = PersistenceCoalescer(store, "k", debounce=0)

        coalescer.schedule(snap(1))
        await asyncio.sleep(0.01)
        coalescer.schedule(snap(2))
        await coalescer.flush()

        assert written_versions(store) == [2]
        assert coalescer.pending is None

    @pytest.mark.asyncio
    async def test_failure_after_retry_surfaces_error(self):
        errors = []
        store = MemoryKeyValueStore()
        store.fail_next = 2
        coalescer = PersistenceCoalescer(store, "k", debounce=0, on_error=errors.append)

        coalescer.schedule(snap(1))

        assert await coalescer.flush() is False
        assert len(errors) == 1
        assert isinstance(coalescer.last_error, PersistenceError)
        assert coalescer.written_version == -1

        coalescer.schedule(snap(2))
        assert await coalescer.flush() is True
        assert coalescer.last_error is None
        assert written_versions(store) == [2]

    @pytest.mark.asyncio
    async def test_store_exception_becomes_persistence_error(self):
        errors = []
        coalescer = PersistenceCoalescer(ExplodingStore(), "k", debounce=0, on_error=errors.append)

        coalescer.schedule(snap(1))
        await coalescer.flush()

        assert len(errors) == 1
        assert "disk full" in errors[0].message

    @pytest.mark.asyncio
    async def test_schedule_after_close_ignored(self):
        store = MemoryKeyValueStore()
        coalescer = PersistenceCoalescer(store, "k", debounce=0)

        await coalescer.close()
        coalescer.schedule(snap(1))

        assert coalescer.idle
        assert store.saves == []
