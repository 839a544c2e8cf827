import asyncio
import copy
from typing import Any, Dict, List, Optional, Tuple

from loguru import logger

from .base import BaseKeyValueStore


class MemoryKeyValueStore(BaseKeyValueStore):
    """In-process store, mainly for tests and local development.

    ``latency`` delays every save, and ``fail_next`` makes the next N saves
    report failure, so write coalescing and retries can be exercised.
    """

    def __init__(self, latency: float = 0.0):
        self.latency = latency
        self.fail_next = 0
        self._data: Dict[str, Dict[str, Any]] = {}
        self.saves: List[Tuple[str, Dict[str, Any]]] = []
        self.active_saves = 0
        self.max_concurrent_saves = 0

    async def load(self, key: str) -> Optional[Dict[str, Any]]:
        value = self._data.get(key)
        return copy.deepcopy(value) if value is not None else None

    async def save(self, key: str, value: Dict[str, Any]) -> bool:
        self.active_saves += 1
        self.max_concurrent_saves = max(self.max_concurrent_saves, self.active_saves)
        try:
            if self.latency:
                await asyncio.sleep(self.latency)
            if self.fail_next > 0:
                self.fail_next -= 1
                logger.warning(f"Simulated save failure for {key}")
                return False
            stored = copy.deepcopy(value)
            self._data[key] = stored
            self.saves.append((key, stored))
            return True
        finally:
            self.active_saves -= 1

    def keys(self) -> List[str]:
        return list(self._data.keys())
