"""
数据模型 - 核心数据结构定义

定义知识摄取跟踪过程中使用的数据模型
"""

from .knowledge_item import KnowledgeItem, KnowledgeKind, ItemStatus
from .job import UploadJob, ProgressTick, JobFinished, ProgressEvent
from .batch import Batch, BatchCompleted
from .snapshot import KnowledgeSnapshot, SNAPSHOT_FORMAT_VERSION
from .entries import (
    BaseEntry,
    DocumentEntry,
    WebPageEntry,
    TextEntry,
    QAEntry,
    ImageEntry,
    ENTRY_MODELS,
)

__all__ = [
    "KnowledgeItem",
    "KnowledgeKind",
    "ItemStatus",
    "UploadJob",
    "ProgressTick",
    "JobFinished",
    "ProgressEvent",
    "Batch",
    "BatchCompleted",
    "KnowledgeSnapshot",
    "SNAPSHOT_FORMAT_VERSION",
    "BaseEntry",
    "DocumentEntry",
    "WebPageEntry",
    "TextEntry",
    "QAEntry",
    "ImageEntry",
    "ENTRY_MODELS",
]
