from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from .base import BaseKeyValueStore

KNOWLEDGE_FIELD = "knowledge"


def agent_key(entity_id: str) -> str:
    return f"agent:{entity_id}"


def knowledge_key(entity_id: str) -> str:
    """Backing-store key holding an agent's persisted knowledge snapshot"""
    return f"knowledge:{entity_id}"


class BaseEntityStore(ABC):
    """Base class for the store holding owning agent records"""

    @abstractmethod
    async def get_entity(self, entity_id: str) -> Optional[Dict[str, Any]]:
        pass

    @abstractmethod
    async def update_entity(self, entity_id: str, patch: Dict[str, Any]) -> Dict[str, Any]:
        pass


class KeyValueEntityStore(BaseEntityStore):
    """Entity store layered on a backing store.

    The agent record lives under ``agent:{id}``; its ``knowledge`` field is the
    snapshot the persistence coalescer writes under ``knowledge:{id}``.
    """

    def __init__(self, store: BaseKeyValueStore):
        self.store = store

    async def get_entity(self, entity_id: str) -> Optional[Dict[str, Any]]:
        record = await self.store.load(agent_key(entity_id))
        knowledge = await self.store.load(knowledge_key(entity_id))
        if record is None and knowledge is None:
            return None
        entity = dict(record or {})
        entity["id"] = entity_id
        entity[KNOWLEDGE_FIELD] = knowledge
        return entity

    async def update_entity(self, entity_id: str, patch: Dict[str, Any]) -> Dict[str, Any]:
        patch = dict(patch)
        if KNOWLEDGE_FIELD in patch:
            knowledge = patch.pop(KNOWLEDGE_FIELD)
            if not await self.store.save(knowledge_key(entity_id), knowledge):
                raise IOError(f"Failed to save knowledge for {entity_id}")

        record = await self.store.load(agent_key(entity_id)) or {}
        record.update(patch)
        if not await self.store.save(agent_key(entity_id), record):
            raise IOError(f"Failed to save entity {entity_id}")
        return await self.get_entity(entity_id)
