"""
存储模块 - 后端键值存储、实体存储与快照持久化

提供键值存储的统一接口以及快照写入合并器
"""

from .base import BaseKeyValueStore
from .memory import MemoryKeyValueStore
from .file_store import JsonFileStore
from .entity_store import BaseEntityStore, KeyValueEntityStore, agent_key, knowledge_key
from .coalescer import PersistenceCoalescer

__all__ = [
    "BaseKeyValueStore",
    "MemoryKeyValueStore",
    "JsonFileStore",
    "BaseEntityStore",
    "KeyValueEntityStore",
    "agent_key",
    "knowledge_key",
    "PersistenceCoalescer",
]
