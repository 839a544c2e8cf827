from abc import ABC, abstractmethod
from typing import Any, Dict, Optional


class BaseKeyValueStore(ABC):
    """Base class for the string-keyed backing store.

    A save is all-or-nothing from the caller's point of view, but it is not
    atomic with respect to concurrent external writers.
    """

    @abstractmethod
    async def load(self, key: str) -> Optional[Dict[str, Any]]:
        """Return the value stored under ``key`` or None"""
        pass

    @abstractmethod
    async def save(self, key: str, value: Dict[str, Any]) -> bool:
        """Store ``value`` under ``key`` and report success"""
        pass

    async def close(self) -> None:
        pass
