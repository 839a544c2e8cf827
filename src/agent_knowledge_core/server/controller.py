"""
知识库控制器 - 对外操作入口，编排注册表、进度源、批次屏障、聚合器与持久化
"""

import asyncio
import random
import uuid
from collections import deque
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Deque, Dict, List, Optional, Sequence, Tuple, Union

from loguru import logger

from ..errors import PersistenceError, SnapshotImportError, UnknownJobError, ValidationError
from ..models.batch import Batch, BatchCompleted
from ..models.job import JobFinished, ProgressEvent, ProgressTick
from ..models.knowledge_item import ItemStatus, KnowledgeItem, KnowledgeKind, utcnow
from ..models.snapshot import KnowledgeSnapshot
from ..storage.base import BaseKeyValueStore
from ..storage.coalescer import PersistenceCoalescer
from ..storage.entity_store import KNOWLEDGE_FIELD, BaseEntityStore, KeyValueEntityStore, knowledge_key
from ..tracking.aggregator import KnowledgeAggregator
from ..tracking.barrier import BatchBarrier
from ..tracking.emitter import BaseProgressSource
from ..tracking.factory import ProgressSourceFactory
from ..tracking.registry import JobRegistry
from ..utils.config_utils import KnowledgeSettings
from ..utils.file_utils import normalize_url
from .validation import RawEntry, SubmissionValidator

Listener = Callable[[KnowledgeSnapshot], None]

INTERRUPTED_MESSAGE = "Ingestion interrupted before completion"


@dataclass
class BatchRecord:
    """控制器侧的批次记录；批次关闭后只保留最近的若干条"""
    item_ids: Tuple[str, ...]
    done: asyncio.Event = field(default_factory=asyncio.Event)
    completed: Optional[BatchCompleted] = None


class KnowledgeController:
    """
    知识库控制器，每个智能体（或会话）一个实例

    实例之间不共享任何状态；所有回调在同一个事件循环中依次执行。
    控制器只能使用一次：close() 之后不能再次 initialize()。
    """

    def __init__(
        self,
        owner_id: str,
        store: BaseKeyValueStore,
        entity_store: Optional[BaseEntityStore] = None,
        settings: Optional[KnowledgeSettings] = None,
        progress_source: Optional[Callable[..., BaseProgressSource]] = None,
        rng: Optional[random.Random] = None,
    ):
        """
        初始化控制器

        Args:
            owner_id: 所属智能体ID
            store: 后端键值存储
            entity_store: 实体存储，默认基于 store 构建
            settings: 跟踪配置
            progress_source: 以事件接收函数为参数构造进度源的工厂，默认按配置创建
            rng: 模拟进度使用的随机数生成器
        """
        self.owner_id = owner_id
        self.settings = settings or KnowledgeSettings()
        self.store = store
        self.entity_store = entity_store or KeyValueEntityStore(store)

        self.registry = JobRegistry()
        self.barrier = BatchBarrier(on_complete=self._on_batch_completed)
        self.aggregator = KnowledgeAggregator(owner_id, self.registry)
        self.validator = SubmissionValidator(self.settings)
        self.coalescer = PersistenceCoalescer(
            store,
            knowledge_key(owner_id),
            debounce=self.settings.autosave_debounce,
            max_attempts=self.settings.persist_max_attempts,
            retry_wait=self.settings.persist_retry_wait,
            on_error=self._on_persistence_error,
        )
        if progress_source is not None:
            self.progress_source = progress_source(self.handle_event)
        else:
            self.progress_source = self._create_progress_source(rng)

        self.notices: List[str] = []
        self._listeners: List[Listener] = []
        self._batches: Dict[str, BatchRecord] = {}
        self._closed_batches: Deque[str] = deque()
        self._version = 0
        self._initialized = False
        self._closed = False

    def _create_progress_source(self, rng: Optional[random.Random]) -> BaseProgressSource:
        name = self.settings.progress_source
        if name == "simulated":
            return ProgressSourceFactory.create_source(
                name,
                self.handle_event,
                tick_interval=self.settings.tick_interval,
                min_step=self.settings.min_step,
                max_step=self.settings.max_step,
                failure_rate=self.settings.failure_rate,
                rng=rng,
            )
        return ProgressSourceFactory.create_source(name, self.handle_event)

    async def initialize(self) -> None:
        """
        加载已持久化的快照

        Raises:
            RuntimeError: 控制器已关闭；关闭后需要创建新的控制器
            PersistenceError: 快照无法解析
        """
        if self._closed:
            raise RuntimeError(f"控制器已关闭，不能重新初始化: {self.owner_id}")
        if self._initialized:
            logger.warning(f"控制器已经初始化: {self.owner_id}")
            return

        try:
            payload = await self.store.load(knowledge_key(self.owner_id))
            snapshot = KnowledgeSnapshot.from_dict(payload) if payload else None
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"加载知识快照失败 {self.owner_id}: {e}")
            raise PersistenceError(f"Cannot load knowledge snapshot for {self.owner_id}: {e}") from e

        if snapshot is not None:
            # 按快照顺序收录，重建后的快照与持久化时完全一致
            for item in snapshot.items:
                self.registry.adopt(self._settled_copy(item))
            self._version = snapshot.version
            self.coalescer.written_version = snapshot.version
            logger.info(f"已加载知识快照: {self.owner_id} v{snapshot.version} ({snapshot.count} 条)")

        self._initialized = True

    async def close(self) -> None:
        """停止所有进度任务并写入待写快照"""
        if not self._initialized:
            return
        await self.progress_source.aclose()
        await self.coalescer.close()
        self._initialized = False
        self._closed = True
        logger.info(f"控制器已关闭: {self.owner_id}")

    async def __aenter__(self):
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def _check_initialized(self) -> None:
        if not self._initialized:
            raise RuntimeError("控制器未初始化，请先调用 initialize() 方法")

    # 对外操作
    def submit(self, kind: Union[KnowledgeKind, str], entries: Sequence[RawEntry]) -> str:
        """
        提交一批条目，立即返回批次ID，不等待处理完成

        Raises:
            ValidationError: 任意条目不合法，此时不会创建任何任务
        """
        self._check_initialized()
        if not isinstance(kind, KnowledgeKind):
            try:
                kind = KnowledgeKind(kind)
            except ValueError:
                raise ValidationError(f"Unsupported knowledge kind: {kind}") from None

        parsed = self.validator.validate(kind, entries, self.registry.items())

        added_at = utcnow()
        item_ids = []
        for entry in parsed:
            item_id = f"{kind.value}_{uuid.uuid4().hex}"
            self.registry.register(
                item_id,
                kind,
                entry.to_metadata(),
                display_name=entry.display_name(),
                added_at=added_at,
            )
            item_ids.append(item_id)

        batch = self.barrier.open_batch(item_ids, kind=kind)
        self._batches[batch.batch_id] = BatchRecord(tuple(item_ids))
        for item_id in item_ids:
            self.progress_source.start(item_id)

        logger.info(f"提交 {len(item_ids)} 个 {kind.value} 条目，批次 {batch.batch_id}")
        self._publish()
        return batch.batch_id

    async def remove(self, item_id: str) -> bool:
        """
        删除条目：停止进度，立即重建并持久化快照，不经过批次屏障

        Returns:
            条目是否存在
        """
        self._check_initialized()
        if not self.registry.contains(item_id):
            logger.warning(f"条目不存在: {item_id}")
            return False

        self.progress_source.cancel(item_id)
        batch = self.barrier.batch_for(item_id)
        self.barrier.discard_item(item_id)
        self.registry.remove(item_id)
        if batch is not None and not self.barrier.is_open(batch.batch_id):
            for member_id in batch.member_item_ids:
                self.registry.discard_job(member_id)
            self._retire_batch(batch.batch_id)

        logger.info(f"条目已删除: {item_id}")
        self._publish()
        self._persist()
        await self.coalescer.flush()
        return True

    async def import_from(self, source_id: str) -> int:
        """
        原子地复制另一个智能体的全部知识条目

        Returns:
            导入的条目数

        Raises:
            SnapshotImportError: 源不可读或不匹配，目标保持不变
        """
        self._check_initialized()
        if source_id == self.owner_id:
            raise SnapshotImportError("Cannot import knowledge from the same agent", {"source_id": source_id})

        try:
            entity = await self.entity_store.get_entity(source_id)
        except (IOError, ValueError) as e:
            raise SnapshotImportError(f"Cannot read source agent {source_id}: {e}", {"source_id": source_id}) from e
        if entity is None:
            raise SnapshotImportError(f"Unknown source agent: {source_id}", {"source_id": source_id})

        payload = entity.get(KNOWLEDGE_FIELD)
        if payload is None:
            raise SnapshotImportError(f"Source agent {source_id} has no knowledge", {"source_id": source_id})
        try:
            source = KnowledgeSnapshot.from_dict(payload)
        except (KeyError, TypeError, ValueError) as e:
            raise SnapshotImportError(f"Unreadable knowledge snapshot from {source_id}: {e}",
                                      {"source_id": source_id}) from e

        known_urls = {
            normalize_url(item.metadata.get("url", ""))
            for item in self.registry.find(kind=KnowledgeKind.WEB_PAGE)
        }
        copies = []
        for item in source.items:
            if item.kind == KnowledgeKind.WEB_PAGE:
                url = normalize_url(item.metadata.get("url", ""))
                if url is None or url in known_urls:
                    raise SnapshotImportError(
                        f"Web page from {source_id} conflicts with existing knowledge: {item.metadata.get('url')}",
                        {"source_id": source_id, "item_id": item.id},
                    )
                known_urls.add(url)
            copies.append(self._settled_copy(item, item_id=f"{item.kind.value}_{uuid.uuid4().hex}"))

        for copy in copies:
            self.registry.adopt(copy)

        logger.info(f"从 {source_id} 导入 {len(copies)} 个条目到 {self.owner_id}")
        if copies:
            self._publish()
            self._persist()
            await self.coalescer.flush()
        return len(copies)

    def handle_event(self, event: ProgressEvent) -> bool:
        """
        处理进度消息；真实后端可以通过回调或轮询直接调用

        Returns:
            条目是否仍然存在
        """
        if not self.registry.contains(event.item_id):
            logger.debug(f"忽略已删除条目的消息: {event.item_id}")
            return False

        if isinstance(event, ProgressTick):
            self.registry.apply_tick(event)
            self._publish()
            return True
        if isinstance(event, JobFinished):
            if self.registry.mark_terminal(event.item_id, event.outcome, event.error_message):
                self.progress_source.cancel(event.item_id)
                self._publish()
                self.barrier.on_item_terminal(event.item_id)
            return True
        raise TypeError(f"Unsupported progress event: {type(event).__name__}")

    # 查询
    def snapshot(self) -> KnowledgeSnapshot:
        return self.aggregator.recompute(self._version)

    def get_item(self, item_id: str) -> KnowledgeItem:
        return self.registry.get(item_id)

    def get_batch(self, batch_id: str) -> Optional[Batch]:
        """返回未完成的批次"""
        return self.barrier.get(batch_id)

    def describe_batch(self, batch_id: str) -> Dict[str, Any]:
        record = self._batches.get(batch_id)
        if record is None:
            raise UnknownJobError(batch_id)
        batch = self.barrier.get(batch_id)
        return {
            "batch_id": batch_id,
            "open": batch is not None,
            "completed": record.completed is not None,
            "pending": sorted(batch.pending_item_ids) if batch else [],
            "items": [
                self.registry.get(item_id).to_dict()
                for item_id in record.item_ids
                if self.registry.contains(item_id)
            ],
        }

    async def wait_for_batch(self, batch_id: str, timeout: Optional[float] = None) -> Optional[BatchCompleted]:
        """
        等待批次结束

        Returns:
            BatchCompleted；批次因条目删除而关闭时返回 None
        """
        record = self._batches.get(batch_id)
        if record is None:
            raise UnknownJobError(batch_id)
        await asyncio.wait_for(record.done.wait(), timeout=timeout)
        return record.completed

    async def flush(self) -> bool:
        return await self.coalescer.flush()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """订阅状态变更，返回取消订阅函数"""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def stats(self) -> Dict[str, Any]:
        stats = self.aggregator.stats()
        stats["open_batches"] = len(self.barrier)
        stats["written_version"] = self.coalescer.written_version
        stats["notices"] = list(self.notices)
        return stats

    # 内部方法
    def _on_batch_completed(self, event: BatchCompleted) -> None:
        for item_id in event.item_ids:
            self.registry.discard_job(item_id)
        self._batches[event.batch_id].completed = event
        self._persist()
        self._retire_batch(event.batch_id)

    def _retire_batch(self, batch_id: str) -> None:
        """唤醒等待者；已关闭批次的记录只保留最近 retained_batches 条"""
        self._batches[batch_id].done.set()
        self._closed_batches.append(batch_id)
        while len(self._closed_batches) > self.settings.retained_batches:
            self._batches.pop(self._closed_batches.popleft(), None)

    def _on_persistence_error(self, error: PersistenceError) -> None:
        notice = f"Knowledge changes are not saved yet: {error.message}"
        self.notices.append(notice)
        logger.warning(f"{self.owner_id}: {notice}")

    def _persist(self) -> None:
        self._version += 1
        self.coalescer.schedule(self.aggregator.recompute(self._version))

    def _publish(self) -> None:
        if not self._listeners:
            return
        snapshot = self.aggregator.recompute(self._version)
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as e:
                logger.error(f"状态订阅回调出错: {e}")

    @staticmethod
    def _settled_copy(item: KnowledgeItem, item_id: Optional[str] = None) -> KnowledgeItem:
        """复制条目；未进入终态的条目已无进度来源，标记为失败"""
        if item.is_terminal:
            return replace(item, id=item_id or item.id, progress=100, metadata=dict(item.metadata))
        return replace(
            item,
            id=item_id or item.id,
            status=ItemStatus.FAILED,
            progress=100,
            metadata=dict(item.metadata),
            completed_at=utcnow(),
            error_message=INTERRUPTED_MESSAGE,
        )
