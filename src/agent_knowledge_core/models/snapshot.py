"""
知识快照模型 - 所有条目在某一时刻的有序视图
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from .knowledge_item import ItemStatus, KnowledgeItem, KnowledgeKind, utcnow

SNAPSHOT_FORMAT_VERSION = 1


@dataclass(frozen=True)
class KnowledgeSnapshot:
    """知识快照，按 added_at 倒序排列，每次变更时重建"""
    owner_id: str
    items: Tuple[KnowledgeItem, ...] = ()
    version: int = 0
    generated_at: datetime = field(default_factory=utcnow)

    @property
    def count(self) -> int:
        return len(self.items)

    def get(self, item_id: str) -> Optional[KnowledgeItem]:
        return next((item for item in self.items if item.id == item_id), None)

    def by_kind(self) -> Dict[KnowledgeKind, List[KnowledgeItem]]:
        grouped: Dict[KnowledgeKind, List[KnowledgeItem]] = {}
        for item in self.items:
            grouped.setdefault(item.kind, []).append(item)
        return grouped

    def by_status(self) -> Dict[ItemStatus, int]:
        counts: Dict[ItemStatus, int] = {}
        for item in self.items:
            counts[item.status] = counts.get(item.status, 0) + 1
        return counts

    def to_dict(self) -> Dict[str, Any]:
        return {
            "format_version": SNAPSHOT_FORMAT_VERSION,
            "owner_id": self.owner_id,
            "version": self.version,
            "generated_at": self.generated_at.isoformat(),
            "count": self.count,
            "items": [item.to_dict() for item in self.items],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "KnowledgeSnapshot":
        """
        从存储字典恢复快照

        Raises:
            ValueError: 格式版本不匹配或条目数与 count 不一致
            KeyError: 缺少必要字段
        """
        if not isinstance(data, dict):
            raise ValueError(f"Snapshot payload must be a mapping, got {type(data).__name__}")
        format_version = data.get("format_version")
        if format_version != SNAPSHOT_FORMAT_VERSION:
            raise ValueError(f"Unsupported snapshot format version: {format_version}")

        items = tuple(KnowledgeItem.from_dict(raw) for raw in data["items"])
        if "count" in data and data["count"] != len(items):
            raise ValueError(f"Snapshot count mismatch: {data['count']} != {len(items)}")

        generated_at = data.get("generated_at")
        return cls(
            owner_id=str(data["owner_id"]),
            items=items,
            version=int(data.get("version", 0)),
            generated_at=datetime.fromisoformat(generated_at) if generated_at else utcnow(),
        )
