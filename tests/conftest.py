"""Shared fixtures for knowledge tracking tests."""

import random
from typing import List

import pytest
import pytest_asyncio

from agent_knowledge_core.server import KnowledgeController
from agent_knowledge_core.storage import MemoryKeyValueStore
from agent_knowledge_core.tracking import BaseProgressSource
from agent_knowledge_core.utils.config_utils import KnowledgeSettings


class ManualProgressSource(BaseProgressSource):
    """Progress source that never ticks on its own; tests push events."""

    def __init__(self, sink):
        super().__init__(sink)
        self.started: List[str] = []
        self.cancelled: List[str] = []
        self._running = set()

    def start(self, item_id: str) -> None:
        self.started.append(item_id)
        self._running.add(item_id)

    def cancel(self, item_id: str) -> bool:
        if item_id not in self._running:
            return False
        self._running.discard(item_id)
        self.cancelled.append(item_id)
        return True

    def is_running(self, item_id: str) -> bool:
        return item_id in self._running


@pytest.fixture
def settings(tmp_path):
    return KnowledgeSettings(
        tick_interval=0,
        autosave_debounce=0,
        persist_retry_wait=0,
        data_dir=str(tmp_path / "data"),
        log_dir=str(tmp_path / "logs"),
    )


@pytest.fixture
def store():
    return MemoryKeyValueStore()


@pytest_asyncio.fixture
async def controller(store, settings):
    """Controller driven by the simulated emitter with a seeded RNG."""
    async with KnowledgeController("agent-1", store, settings=settings, rng=random.Random(7)) as ctrl:
        yield ctrl


@pytest_asyncio.fixture
async def manual_controller(store, settings):
    """Controller whose progress is pushed by the test through handle_event."""
    async with KnowledgeController("agent-1", store, settings=settings,
                                   progress_source=ManualProgressSource) as ctrl:
        yield ctrl
