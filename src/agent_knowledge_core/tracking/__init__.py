"""
跟踪模块 - 任务注册、进度驱动、批次屏障与快照聚合
"""

from .registry import JobRegistry
from .emitter import BaseProgressSource, SimulatedProgressEmitter
from .factory import ProgressSourceFactory
from .barrier import BatchBarrier
from .aggregator import KnowledgeAggregator

__all__ = [
    "JobRegistry",
    "BaseProgressSource",
    "SimulatedProgressEmitter",
    "ProgressSourceFactory",
    "BatchBarrier",
    "KnowledgeAggregator",
]
