"""
知识条目数据模型
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class KnowledgeKind(Enum):
    """知识来源类型"""
    DOCUMENT = "document"
    WEB_PAGE = "web_page"
    TEXT = "text"
    QA = "qa"
    IMAGE = "image"


class ItemStatus(Enum):
    """条目状态枚举，只能向前推进"""
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def rank(self) -> int:
        return _STATUS_RANK[self]

    @property
    def is_terminal(self) -> bool:
        return self in (ItemStatus.COMPLETED, ItemStatus.FAILED)


_STATUS_RANK = {
    ItemStatus.QUEUED: 0,
    ItemStatus.PROCESSING: 1,
    ItemStatus.COMPLETED: 2,
    ItemStatus.FAILED: 2,
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_datetime(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


@dataclass
class KnowledgeItem:
    """知识条目模型"""
    id: str
    kind: KnowledgeKind
    display_name: str
    added_at: datetime
    status: ItemStatus = ItemStatus.QUEUED
    progress: int = 0
    metadata: Dict[str, Any] = field(default_factory=dict)
    completed_at: Optional[datetime] = None
    error_message: Optional[str] = None
    sequence: int = 0

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def to_dict(self) -> Dict[str, Any]:
        """序列化为可写入存储的字典"""
        return {
            "id": self.id,
            "kind": self.kind.value,
            "display_name": self.display_name,
            "added_at": self.added_at.isoformat(),
            "status": self.status.value,
            "progress": self.progress,
            "metadata": dict(self.metadata),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "error_message": self.error_message,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "KnowledgeItem":
        """从存储字典恢复条目，字段缺失或取值非法时抛出 KeyError/ValueError"""
        return cls(
            id=str(data["id"]),
            kind=KnowledgeKind(data["kind"]),
            display_name=str(data.get("display_name") or data["id"]),
            added_at=_parse_datetime(data["added_at"]),
            status=ItemStatus(data.get("status", ItemStatus.QUEUED.value)),
            progress=int(data.get("progress", 0)),
            metadata=dict(data.get("metadata") or {}),
            completed_at=_parse_datetime(data.get("completed_at")),
            error_message=data.get("error_message"),
        )
