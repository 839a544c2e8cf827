"""
批次相关数据模型
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import FrozenSet, Optional, Set, Tuple

from .knowledge_item import KnowledgeKind, utcnow


@dataclass
class Batch:
    """一次用户提交对应的批次"""
    batch_id: str
    member_item_ids: FrozenSet[str]
    pending_item_ids: Set[str]
    created_at: datetime = field(default_factory=utcnow)
    kind: Optional[KnowledgeKind] = None

    @property
    def size(self) -> int:
        return len(self.member_item_ids)

    @property
    def remaining(self) -> int:
        return len(self.pending_item_ids)


@dataclass(frozen=True)
class BatchCompleted:
    """批次内所有条目均已进入终态"""
    batch_id: str
    item_ids: Tuple[str, ...]
    completed_at: datetime
