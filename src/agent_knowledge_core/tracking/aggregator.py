"""
知识聚合器 - 将所有类型的条目合并为一个有序快照
"""

from dataclasses import replace
from typing import Any, Dict

from ..models.snapshot import KnowledgeSnapshot
from .registry import JobRegistry


class KnowledgeAggregator:
    """从注册表重建快照，无副作用，可在每次变更后调用"""

    def __init__(self, owner_id: str, registry: JobRegistry):
        self.owner_id = owner_id
        self.registry = registry

    def recompute(self, version: int = 0) -> KnowledgeSnapshot:
        """
        合并所有条目并按 added_at 倒序排列

        sorted 是稳定排序，reverse=True 时相同时间戳的条目仍保持插入顺序。
        返回的条目是副本，之后对注册表的修改不会影响快照。
        """
        items = sorted(
            self.registry.items(),
            key=lambda item: item.added_at,
            reverse=True,
        )
        return KnowledgeSnapshot(
            owner_id=self.owner_id,
            items=tuple(replace(item, metadata=dict(item.metadata)) for item in items),
            version=version,
        )

    def stats(self) -> Dict[str, Any]:
        """按类型和状态统计条目数量"""
        kinds: Dict[str, int] = {}
        statuses: Dict[str, int] = {}
        for item in self.registry.items():
            kinds[item.kind.value] = kinds.get(item.kind.value, 0) + 1
            statuses[item.status.value] = statuses.get(item.status.value, 0) + 1
        return {
            "owner_id": self.owner_id,
            "total": len(self.registry),
            "kinds": kinds,
            "statuses": statuses,
            "in_flight": sum(1 for job in self.registry.jobs() if not job.terminal),
        }
