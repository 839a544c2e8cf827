"""
Agent Knowledge Core - 智能体知识库摄取跟踪核心库

提供任务注册、进度跟踪、批次完成检测与快照持久化等核心功能的Python库
"""

__version__ = "0.1.0"
__author__ = "Agent Knowledge Team"

from .errors import *
from .models import *
from .storage import MemoryKeyValueStore, JsonFileStore, KeyValueEntityStore, PersistenceCoalescer
from .tracking import JobRegistry, SimulatedProgressEmitter, BatchBarrier, KnowledgeAggregator
from .server import KnowledgeController
from .utils.config_utils import KnowledgeSettings, load_settings

__all__ = [
    "KnowledgeController",
    "JobRegistry",
    "SimulatedProgressEmitter",
    "BatchBarrier",
    "KnowledgeAggregator",
    "PersistenceCoalescer",
    "MemoryKeyValueStore",
    "JsonFileStore",
    "KeyValueEntityStore",
    "KnowledgeSettings",
    "load_settings",
]
