"""
任务注册表 - 条目ID到条目状态与上传任务的权威映射
"""

from dataclasses import replace
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from loguru import logger

from ..errors import DuplicateIdError, UnknownJobError
from ..models.job import ProgressTick, UploadJob
from ..models.knowledge_item import ItemStatus, KnowledgeItem, KnowledgeKind, utcnow

MAX_PROGRESS = 100
# 非终态条目的进度上限，保证进度为100当且仅当条目进入终态
MAX_PENDING_PROGRESS = MAX_PROGRESS - 1


def _clamp(value: int, upper: int = MAX_PROGRESS) -> int:
    return max(0, min(upper, int(value)))


class JobRegistry:
    """任务注册表，单线程协作调度下使用，无需加锁"""

    def __init__(self):
        self._items: Dict[str, KnowledgeItem] = {}
        self._jobs: Dict[str, UploadJob] = {}
        self._sequence = 0

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, item_id: str) -> bool:
        return item_id in self._items

    def _next_sequence(self) -> int:
        self._sequence += 1
        return self._sequence

    def register(
        self,
        item_id: str,
        kind: KnowledgeKind,
        metadata: Optional[Dict[str, Any]] = None,
        display_name: Optional[str] = None,
        added_at: Optional[datetime] = None,
    ) -> KnowledgeItem:
        """
        注册新条目并创建对应的上传任务

        Raises:
            DuplicateIdError: 条目ID已存在
        """
        if item_id in self._items:
            raise DuplicateIdError(item_id)

        item = KnowledgeItem(
            id=item_id,
            kind=kind,
            display_name=display_name or item_id,
            added_at=added_at or utcnow(),
            metadata=dict(metadata or {}),
            sequence=self._next_sequence(),
        )
        self._items[item_id] = item
        self._jobs[item_id] = UploadJob(item_id=item_id, kind=kind)
        logger.debug(f"注册任务: {item_id} ({kind.value})")
        return item

    def adopt(self, item: KnowledgeItem) -> KnowledgeItem:
        """收录已构建的条目（加载或导入），不创建上传任务"""
        if item.id in self._items:
            raise DuplicateIdError(item.id)
        adopted = replace(item, metadata=dict(item.metadata), sequence=self._next_sequence())
        self._items[item.id] = adopted
        return adopted

    def contains(self, item_id: str) -> bool:
        return item_id in self._items

    def get(self, item_id: str) -> KnowledgeItem:
        try:
            return self._items[item_id]
        except KeyError:
            raise UnknownJobError(item_id) from None

    def get_job(self, item_id: str) -> Optional[UploadJob]:
        return self._jobs.get(item_id)

    def items(self) -> List[KnowledgeItem]:
        """按插入顺序返回所有条目"""
        return list(self._items.values())

    def jobs(self) -> List[UploadJob]:
        return list(self._jobs.values())

    def find(
        self,
        kind: Optional[KnowledgeKind] = None,
        predicate: Optional[Callable[[KnowledgeItem], bool]] = None,
    ) -> List[KnowledgeItem]:
        return [
            item for item in self._items.values()
            if (kind is None or item.kind == kind) and (predicate is None or predicate(item))
        ]

    def update_progress(self, item_id: str, value: int) -> KnowledgeItem:
        """
        更新进度：截断到 [0,100]，不回退，终态条目不再变化

        Raises:
            UnknownJobError: 条目不存在
        """
        item = self.get(item_id)
        if item.is_terminal:
            return item

        progress = max(item.progress, _clamp(value))
        item.progress = progress
        if item.status == ItemStatus.QUEUED:
            item.status = ItemStatus.PROCESSING

        job = self._jobs.get(item_id)
        if job is not None:
            job.progress = max(job.progress, progress)
        return item

    def apply_tick(self, tick: ProgressTick) -> KnowledgeItem:
        """应用进度增量，非终态进度最多到99，终态由 mark_terminal 设置"""
        item = self.get(tick.item_id)
        if item.is_terminal:
            return item
        target = min(item.progress + max(0, tick.delta), MAX_PENDING_PROGRESS)
        return self.update_progress(tick.item_id, target)

    def mark_terminal(
        self,
        item_id: str,
        outcome: ItemStatus,
        error_message: Optional[str] = None,
    ) -> bool:
        """
        标记条目终态，幂等

        Returns:
            是否发生了状态转换
        """
        if not outcome.is_terminal:
            raise ValueError(f"Not a terminal outcome: {outcome.value}")

        item = self.get(item_id)
        if item.is_terminal:
            return False

        finished_at = utcnow()
        item.status = outcome
        item.progress = MAX_PROGRESS
        item.completed_at = finished_at
        item.error_message = error_message

        job = self._jobs.get(item_id)
        if job is not None:
            job.progress = MAX_PROGRESS
            job.terminal = True
            job.outcome = outcome
            job.finished_at = finished_at

        logger.info(f"任务结束: {item_id} -> {outcome.value}")
        return True

    def discard_job(self, item_id: str) -> Optional[UploadJob]:
        return self._jobs.pop(item_id, None)

    def remove(self, item_id: str) -> Optional[KnowledgeItem]:
        self._jobs.pop(item_id, None)
        return self._items.pop(item_id, None)
