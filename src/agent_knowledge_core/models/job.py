"""
上传任务与进度消息模型
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Union

from .knowledge_item import ItemStatus, KnowledgeKind


@dataclass
class UploadJob:
    """单个条目的摄取任务，仅在条目处理期间存在"""
    item_id: str
    kind: KnowledgeKind
    progress: int = 0
    terminal: bool = False
    outcome: Optional[ItemStatus] = None
    finished_at: Optional[datetime] = None


@dataclass(frozen=True)
class ProgressTick:
    """进度增量消息"""
    item_id: str
    delta: int


@dataclass(frozen=True)
class JobFinished:
    """终态消息"""
    item_id: str
    outcome: ItemStatus
    error_message: Optional[str] = None


ProgressEvent = Union[ProgressTick, JobFinished]
