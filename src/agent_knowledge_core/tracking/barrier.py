"""
批次屏障 - 检测一次提交中的所有条目是否都已进入终态
"""

import uuid
from typing import Callable, Dict, Iterable, List, Optional

from loguru import logger

from ..errors import DuplicateIdError
from ..models.batch import Batch, BatchCompleted
from ..models.knowledge_item import KnowledgeKind, utcnow


class BatchBarrier:
    """批次屏障，每个批次维护唯一的待完成集合"""

    def __init__(self, on_complete: Optional[Callable[[BatchCompleted], None]] = None):
        self._batches: Dict[str, Batch] = {}
        self._membership: Dict[str, str] = {}
        self._on_complete = on_complete

    def __len__(self) -> int:
        return len(self._batches)

    def open_batch(
        self,
        item_ids: Iterable[str],
        kind: Optional[KnowledgeKind] = None,
        batch_id: Optional[str] = None,
    ) -> Batch:
        """
        打开新批次

        一个条目最多属于一个未完成批次；上一批次未完成时的新提交会创建独立批次。

        Raises:
            ValueError: 条目集合为空
            DuplicateIdError: 条目已属于某个未完成批次，或批次ID已存在
        """
        members = frozenset(item_ids)
        if not members:
            raise ValueError("Cannot open an empty batch")
        for item_id in members:
            if item_id in self._membership:
                raise DuplicateIdError(item_id)

        batch_id = batch_id or f"batch_{uuid.uuid4().hex}"
        if batch_id in self._batches:
            raise DuplicateIdError(batch_id)

        batch = Batch(
            batch_id=batch_id,
            member_item_ids=members,
            pending_item_ids=set(members),
            kind=kind,
        )
        self._batches[batch_id] = batch
        for item_id in members:
            self._membership[item_id] = batch_id
        logger.info(f"打开批次 {batch_id}，共 {len(members)} 个条目")
        return batch

    def on_item_terminal(self, item_id: str) -> Optional[BatchCompleted]:
        """条目进入终态；批次待完成集合清空时只发出一次 BatchCompleted"""
        batch = self._detach(item_id)
        if batch is None or batch.pending_item_ids:
            return None

        del self._batches[batch.batch_id]
        event = BatchCompleted(
            batch_id=batch.batch_id,
            item_ids=tuple(sorted(batch.member_item_ids)),
            completed_at=utcnow(),
        )
        logger.info(f"批次完成: {batch.batch_id}")
        if self._on_complete is not None:
            self._on_complete(event)
        return event

    def discard_item(self, item_id: str) -> None:
        """删除条目时调用，不触发完成事件；因此清空的批次直接关闭"""
        batch = self._detach(item_id)
        if batch is not None and not batch.pending_item_ids:
            del self._batches[batch.batch_id]
            logger.debug(f"批次 {batch.batch_id} 因条目删除而关闭")

    def _detach(self, item_id: str) -> Optional[Batch]:
        batch_id = self._membership.pop(item_id, None)
        if batch_id is None:
            return None
        batch = self._batches[batch_id]
        batch.pending_item_ids.discard(item_id)
        return batch

    def get(self, batch_id: str) -> Optional[Batch]:
        return self._batches.get(batch_id)

    def is_open(self, batch_id: str) -> bool:
        return batch_id in self._batches

    def batch_for(self, item_id: str) -> Optional[Batch]:
        batch_id = self._membership.get(item_id)
        return self._batches.get(batch_id) if batch_id else None

    def open_batches(self) -> List[Batch]:
        return list(self._batches.values())
